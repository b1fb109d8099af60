"""User schemas."""
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from orderdesk.schemas.company import MemberRead


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: EmailStr
    is_active: bool = True


class UserRead(BaseModel):
    """A user and the companies they belong to, with their role in each."""

    id: int
    username: str
    email: EmailStr
    is_active: bool
    memberships: list[MemberRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
