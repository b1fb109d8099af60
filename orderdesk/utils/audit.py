"""Audit logging helper utilities."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from sqlalchemy.orm import Session

from orderdesk.models.audit import AuditLog
from orderdesk.utils.time import utcnow

SENSITIVE_KEYS = {"email", "key_hash", "api_key"}


def _mask_value(key: str, value: Any) -> Any:
    if value is None:
        return None
    if key == "email":
        text = str(value)
        if "@" in text:
            _, domain = text.split("@", 1)
            return f"***@{domain}"
        return "***"
    return "***"


def sanitize_payload_for_audit(data: Any) -> Any:
    """Return a JSON-safe copy of ``data`` with secrets and PII masked.

    Decimals are kept exact as strings, datetimes become ISO strings and
    enums their values.
    """

    if isinstance(data, Mapping):
        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            masked_value = _mask_value(key, value) if key in SENSITIVE_KEYS else value
            sanitized[key] = sanitize_payload_for_audit(masked_value)
        return sanitized

    if isinstance(data, (list, tuple)):
        return [sanitize_payload_for_audit(item) for item in data]
    if isinstance(data, Enum):
        return data.value
    if isinstance(data, Decimal):
        return str(data)
    if isinstance(data, datetime):
        return data.isoformat()
    return data


def log_audit(
    db: Session,
    *,
    actor: str,
    action: str,
    entity: str,
    entity_id: int | str | None,
    company_id: int | None = None,
    old_values: dict | None = None,
    new_values: dict | None = None,
) -> AuditLog:
    """Add an audit entry to the current transaction.

    The caller owns the commit, so the entry lands atomically with the
    change it describes.
    """

    entry = AuditLog(
        actor=actor,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else "0",
        company_id=company_id,
        old_values=sanitize_payload_for_audit(old_values) if old_values is not None else None,
        new_values=sanitize_payload_for_audit(new_values) if new_values is not None else None,
        at=utcnow(),
    )
    db.add(entry)
    return entry


def actor_label(actor: Any, fallback: str = "system") -> str:
    """Return the canonical actor string recorded in audit rows."""

    user_id = getattr(actor, "user_id", None)
    if user_id is not None:
        return f"user:{user_id}"
    return fallback


__all__ = ["actor_label", "log_audit", "sanitize_payload_for_audit"]
