# lead_intake/services/field_mapping.py
"""
Resolve logical lead fields to CRM custom field ids.

Lookup tables are keyed by normalized tokens so that ``utm_source``,
``utmSource``, ``contact.utm_source`` and ``UTM Source`` all collide.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from lead_intake.services.attribution import CustomFieldSpec

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_CONTACT_PREFIX = "contact."


@dataclass(frozen=True)
class CustomFieldDescriptor:
    id: str
    name: Optional[str] = None
    field_key: Optional[str] = None


def normalize_token(value: Optional[str]) -> str:
    if not value:
        return ""
    token = value.strip().lower()
    if token.startswith(_CONTACT_PREFIX):
        token = token[len(_CONTACT_PREFIX):]
    return _NON_ALNUM.sub("", token)


def parse_custom_fields(body: Any) -> List[CustomFieldDescriptor]:
    """Parse a ``{"customFields": [...]}`` catalog body. Entries without an id are skipped."""
    if not isinstance(body, dict):
        return []
    fields = body.get("customFields")
    if not isinstance(fields, list):
        return []

    descriptors: List[CustomFieldDescriptor] = []
    for item in fields:
        if not isinstance(item, dict):
            continue
        field_id = item.get("id")
        if not field_id:
            continue
        descriptors.append(
            CustomFieldDescriptor(
                id=str(field_id),
                name=item.get("name"),
                field_key=item.get("fieldKey"),
            )
        )
    return descriptors


class CustomFieldIndex:
    """Lookup tables over the tenant's custom field catalog."""

    def __init__(self, descriptors: Optional[List[CustomFieldDescriptor]] = None) -> None:
        self.by_key: Dict[str, str] = {}
        self.by_name: Dict[str, str] = {}
        for descriptor in descriptors or []:
            key = normalize_token(descriptor.field_key)
            name = normalize_token(descriptor.name)
            if key:
                self.by_key.setdefault(key, descriptor.id)
            if name:
                self.by_name.setdefault(name, descriptor.id)

    def __len__(self) -> int:
        return len(set(self.by_key.values()) | set(self.by_name.values()))

    def register(self, field_spec: CustomFieldSpec, field_id: str) -> None:
        for synonym in field_spec.key_synonyms:
            self.by_key.setdefault(normalize_token(synonym), field_id)
        for synonym in field_spec.name_synonyms:
            self.by_name.setdefault(normalize_token(synonym), field_id)

    def resolve(
        self,
        field_spec: CustomFieldSpec,
        overrides: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        """
        Resolve one logical field: machine key first, then display name,
        then the operator override. A used override is registered under the
        field's synonyms.
        """
        for synonym in field_spec.key_synonyms:
            field_id = self.by_key.get(normalize_token(synonym))
            if field_id:
                return field_id

        for synonym in field_spec.name_synonyms:
            field_id = self.by_name.get(normalize_token(synonym))
            if field_id:
                return field_id

        override = (overrides or {}).get(field_spec.name)
        if override:
            self.register(field_spec, override)
            return override

        return None
