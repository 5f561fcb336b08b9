"""
GoHighLevel CRM client, REST API v2.

Auth: Bearer token (private integration token, ``pit-...``).
Every call goes through ``request()`` which never raises on a non-2xx
status; callers inspect ``CRMResponse.status`` themselves.
"""
from __future__ import annotations

import json as jsonlib
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import aiohttp

from lead_intake.core.config import CRMConfig, settings
from lead_intake.core.logging import get_structlog_logger

logger = get_structlog_logger(__name__)

API_VERSION = "2021-07-28"


@dataclass(frozen=True)
class CRMResponse:
    status: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Parsed body, or None when the body is not JSON."""
        try:
            return jsonlib.loads(self.text)
        except ValueError:
            return None


class CRMClient(Protocol):
    async def load(self) -> None: ...

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> CRMResponse: ...

    async def close(self) -> None: ...


class GoHighLevelClient:
    """GoHighLevel API v2 client backed by one aiohttp session."""

    def __init__(
        self,
        api_key: str,
        location_id: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> None:
        self.location_id = location_id
        self.base_url = (base_url or settings.crm_base_url).rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout or settings.crm_timeout_seconds)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Version": API_VERSION,
        }
        self._session: Optional[aiohttp.ClientSession] = None

    async def load(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self._headers, timeout=self._timeout)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> CRMResponse:
        await self.load()
        url = f"{self.base_url}{path}"
        async with self._session.request(
            method,
            url,
            json=json,
            params=params,
            headers=headers,
        ) as response:
            body = await response.text()
            logger.debug("crm.request", method=method, path=path, status=response.status)
            return CRMResponse(status=response.status, text=body)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "GoHighLevelClient":
        await self.load()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def build_crm_client(crm: CRMConfig) -> CRMClient:
    return GoHighLevelClient(crm.api_key, crm.location_id)
