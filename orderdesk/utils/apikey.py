"""API key generation and validation helpers."""
from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from orderdesk.config import get_settings
from orderdesk.models.api_key import ApiKey
from orderdesk.utils.time import ensure_utc, utcnow

KEY_PREFIX = "odk_"


def hash_key(raw: str) -> str:
    """Return an HMAC-SHA256 hash for the provided API key."""

    secret = get_settings().SECRET_KEY
    return hmac.new(secret.encode(), raw.encode(), hashlib.sha256).hexdigest()


def gen_key(prefix_len: int = 8) -> tuple[str, str, str]:
    """Generate a user-facing API key, its prefix, and the stored hash."""

    prefix = KEY_PREFIX + secrets.token_hex(prefix_len)[:prefix_len]
    suffix = secrets.token_urlsafe(32)
    raw = f"{prefix}.{suffix}"
    return raw, prefix, hash_key(raw)


def find_valid_key(db: Session, raw: str) -> Optional[ApiKey]:
    """Return the active, unexpired key matching ``raw`` or ``None``."""

    key = db.scalars(
        select(ApiKey).where(ApiKey.key_hash == hash_key(raw), ApiKey.is_active.is_(True))
    ).first()
    if key is None:
        return None
    if key.expires_at is not None and ensure_utc(key.expires_at) <= utcnow():
        return None
    return key


__all__ = ["KEY_PREFIX", "find_valid_key", "gen_key", "hash_key"]
