"""Security dependencies resolving the acting user from an API key."""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.models.api_key import ApiScope
from orderdesk.utils.apikey import find_valid_key
from orderdesk.utils.errors import Unauthenticated, Unauthorized
from orderdesk.utils.time import utcnow


@dataclass(frozen=True)
class Actor:
    """Authenticated caller passed explicitly into every service call."""

    user_id: int
    scope: ApiScope
    key_prefix: str

    @property
    def is_platform_admin(self) -> bool:
        return self.scope == ApiScope.admin


def _extract_key(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> str | None:
    """Read the key from ``X-API-Key`` or ``Authorization: Bearer ...``."""
    if x_api_key:
        return x_api_key.strip()
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    return None


def require_actor(
    db: Session = Depends(get_db),
    token: str | None = Depends(_extract_key),
) -> Actor:
    """Validate the API key and return the actor it identifies."""
    if not token:
        raise Unauthenticated("API key required.", code="NO_API_KEY")

    key = find_valid_key(db, token)
    if key is None:
        raise Unauthenticated("Invalid or expired API key.")
    if key.user is None or not key.user.is_active:
        raise Unauthenticated("API key owner is inactive.")

    key.last_used_at = utcnow()
    db.commit()
    return Actor(user_id=key.user_id, scope=key.scope, key_prefix=key.prefix)


def require_platform_admin(actor: Actor = Depends(require_actor)) -> Actor:
    """Gate platform-level setup (users, keys, companies) to admin-scoped keys."""
    if not actor.is_platform_admin:
        raise Unauthorized(
            "Requires an admin-scoped API key.",
            code="INSUFFICIENT_SCOPE",
        )
    return actor


__all__ = ["Actor", "require_actor", "require_platform_admin"]
