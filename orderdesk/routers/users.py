"""User endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.models.user import User
from orderdesk.schemas.user import UserCreate, UserRead
from orderdesk.security import Actor, require_platform_admin
from orderdesk.utils.audit import actor_label, log_audit
from orderdesk.utils.errors import ConflictError, NotFoundError

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_platform_admin),
) -> User:
    """Create a new user."""

    user = User(**payload.model_dump())
    db.add(user)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Username or email already exists.", code="USER_EXISTS") from exc

    log_audit(
        db,
        actor=actor_label(actor),
        action="create_user",
        entity="User",
        entity_id=user.id,
        new_values={"username": user.username, "email": user.email},
    )
    db.commit()
    db.refresh(user)
    return user


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_platform_admin),
) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found.", code="USER_NOT_FOUND")
    return user
