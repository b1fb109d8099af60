"""API key schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from orderdesk.models.api_key import ApiScope


class ApiKeyCreate(BaseModel):
    """Create a key for ``user_id``; the raw key is returned only once."""

    name: str
    user_id: int = Field(gt=0)
    scope: ApiScope = ApiScope.user
    days_valid: int | None = Field(default=90, gt=0)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("name cannot be blank")
        return value.strip()


class ApiKeyCreateOut(BaseModel):
    id: int
    name: str
    user_id: int
    scope: ApiScope
    prefix: str
    key: str
    expires_at: datetime | None


class ApiKeyRead(BaseModel):
    id: int
    name: str
    user_id: int
    scope: ApiScope
    prefix: str
    is_active: bool
    created_at: datetime
    expires_at: datetime | None
    last_used_at: datetime | None

    model_config = ConfigDict(from_attributes=True)
