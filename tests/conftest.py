"""
Test configuration and fixtures.
Uses a temp-file SQLite database and a recording fake in place of the CRM.
"""
import os

os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("LOG_FORMAT", "console")

import json
import uuid
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from lead_intake.core.config import get_pipeline_config, load_config
from lead_intake.db.base import Base
from lead_intake.db.session import get_session_factory
from lead_intake.integrations.gohighlevel import CRMResponse
from lead_intake.main import create_app
from lead_intake.models.lead import Lead
from lead_intake.routes.deps import get_crm_client_factory
from lead_intake.schemas.lead import LeadSubmission

LOCATION_ID = "GbOoP9eUwGI1Eb30Baex"
CUSTOM_FIELDS_PATH = f"/locations/{LOCATION_ID}/customFields"

BASE_SECRETS = {
    "DATABASE_URL": "postgresql://postgres@db.example.com:5432/postgres",
    "DATABASE_SERVICE_ROLE_KEY": "service-role-key",
    "WEBHOOK_URL": "https://hooks.example.com/catch/123",
    "GHL_API_KEY": "pit-0123456789abcdef",
    "GHL_LOCATION_ID": LOCATION_ID,
}

VALID_LEAD = {
    "firstName": "Jane",
    "lastName": "Doe",
    "email": "jane@example.com",
    "phone": "(512) 555-0123",
    "address": "123 Main St, Austin, TX",
    "isListed": "no",
    "condition": "fair",
    "timeline": "asap",
    "askingPrice": "250000",
    "smsConsent": True,
}


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


class FakeCRMClient:
    """Records every request and answers from a (method, path) table."""

    def __init__(self, responses: Optional[Dict[Any, Any]] = None):
        self.responses = dict(responses or {})
        self.requests: List[Dict[str, Any]] = []
        self.loaded = False
        self.closed = False

    def reply(self, method: str, path: str, status: int, body: Any) -> None:
        text = body if isinstance(body, str) else json.dumps(body)
        self.responses[(method, path)] = CRMResponse(status=status, text=text)

    def fail(self, method: str, path: str, exc: Exception) -> None:
        self.responses[(method, path)] = exc

    def calls(self, method: str, path: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["method"] == method and r["path"] == path]

    async def load(self) -> None:
        self.loaded = True

    async def request(self, method, path, *, json=None, params=None, headers=None):
        self.requests.append(
            {"method": method, "path": path, "json": json, "params": params, "headers": headers}
        )
        response = self.responses.get((method, path))
        if isinstance(response, Exception):
            raise response
        if response is None:
            return CRMResponse(status=404, text='{"message":"Not Found"}')
        return response

    async def close(self) -> None:
        self.closed = True


def secrets(**overrides: Optional[str]) -> Dict[str, str]:
    merged = dict(BASE_SECRETS)
    for key, value in overrides.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged


def make_lead(**overrides: Any) -> LeadSubmission:
    payload = dict(VALID_LEAD)
    payload.update(overrides)
    return LeadSubmission.model_validate(payload)


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'leads.db'}"


@pytest.fixture
def sync_engine(db_url):
    engine = create_engine(db_url)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sync_engine, db_url):
    engine = create_async_engine(db_url.replace("sqlite://", "sqlite+aiosqlite://"), poolclass=NullPool)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def fetch_lead(sync_engine):
    def _fetch(lead_id) -> Optional[Lead]:
        if isinstance(lead_id, str):
            lead_id = uuid.UUID(lead_id)
        with Session(sync_engine) as session:
            return session.get(Lead, lead_id)
    return _fetch


@pytest.fixture
def count_leads(sync_engine):
    def _count() -> int:
        with Session(sync_engine) as session:
            return session.query(Lead).count()
    return _count


@pytest.fixture
def pipeline_config():
    return load_config(secrets())


@pytest.fixture
def fake_crm():
    crm = FakeCRMClient()
    crm.reply("GET", CUSTOM_FIELDS_PATH, 200, {"customFields": []})
    crm.reply("POST", "/contacts/upsert", 200, {"contact": {"id": "contact-1"}})
    return crm


@pytest.fixture
def make_client(session_factory, fake_crm):
    """Build a TestClient with the app's dependencies pointed at test doubles."""
    def _make(config=None) -> TestClient:
        app = create_app()
        resolved = config if config is not None else load_config(secrets())
        app.dependency_overrides[get_pipeline_config] = lambda: resolved
        app.dependency_overrides[get_session_factory] = lambda: session_factory
        app.dependency_overrides[get_crm_client_factory] = lambda: (lambda crm: fake_crm)
        return TestClient(app, raise_server_exceptions=False)
    return _make
