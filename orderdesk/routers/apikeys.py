"""API key management endpoints."""
from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.models.api_key import ApiKey
from orderdesk.models.user import User
from orderdesk.schemas.apikey import ApiKeyCreate, ApiKeyCreateOut, ApiKeyRead
from orderdesk.security import Actor, require_platform_admin
from orderdesk.utils.apikey import gen_key
from orderdesk.utils.audit import actor_label, log_audit
from orderdesk.utils.errors import ConflictError, NotFoundError
from orderdesk.utils.time import utcnow

router = APIRouter(prefix="/apikeys", tags=["apikeys"])


def _get_key(db: Session, api_key_id: int) -> ApiKey:
    row = db.get(ApiKey, api_key_id)
    if not row:
        raise NotFoundError("API key not found.", code="APIKEY_NOT_FOUND")
    return row


@router.post("", response_model=ApiKeyCreateOut, status_code=status.HTTP_201_CREATED)
def create_api_key(
    payload: ApiKeyCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_platform_admin),
) -> ApiKeyCreateOut:
    """Create a key server-side and return its raw value exactly once."""

    if db.get(User, payload.user_id) is None:
        raise NotFoundError("User not found.", code="USER_NOT_FOUND")

    raw, prefix, key_hash = gen_key()
    expires_at = utcnow() + timedelta(days=payload.days_valid) if payload.days_valid else None
    row = ApiKey(
        name=payload.name,
        prefix=prefix,
        key_hash=key_hash,
        scope=payload.scope,
        user_id=payload.user_id,
        expires_at=expires_at,
        is_active=True,
    )
    db.add(row)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Key name already exists.", code="APIKEY_EXISTS") from exc

    log_audit(
        db,
        actor=actor_label(actor),
        action="create_api_key",
        entity="ApiKey",
        entity_id=row.id,
        new_values={"name": row.name, "scope": row.scope, "user_id": row.user_id, "prefix": prefix},
    )
    db.commit()
    db.refresh(row)
    return ApiKeyCreateOut(
        id=row.id,
        name=row.name,
        user_id=row.user_id,
        scope=row.scope,
        prefix=row.prefix,
        key=raw,
        expires_at=row.expires_at,
    )


@router.get("/{api_key_id}", response_model=ApiKeyRead)
def get_apikey(
    api_key_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_platform_admin),
) -> ApiKey:
    return _get_key(db, api_key_id)


@router.delete("/{api_key_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def revoke_apikey(
    api_key_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_platform_admin),
) -> Response:
    row = _get_key(db, api_key_id)
    if row.is_active:
        row.is_active = False
        log_audit(
            db,
            actor=actor_label(actor),
            action="revoke_api_key",
            entity="ApiKey",
            entity_id=api_key_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
