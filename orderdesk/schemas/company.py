"""Company setup schemas."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from orderdesk.models.company import MemberRole


class CompanyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    slug: str = Field(min_length=1, max_length=100, pattern=r"^[a-z0-9-]+$")
    admin_user_id: int = Field(gt=0, description="User who becomes the company's first admin.")


class CompanyRead(BaseModel):
    id: int
    name: str
    slug: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class MemberCreate(BaseModel):
    user_id: int = Field(gt=0)
    role: MemberRole = MemberRole.EMPLOYEE
    department: str | None = Field(default=None, max_length=120)


class MemberRead(BaseModel):
    id: int
    company_id: int
    user_id: int
    role: MemberRole
    department: str | None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class VendorCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    contact_email: EmailStr | None = None
    user_ids: list[int] = Field(default_factory=list)


class VendorRead(BaseModel):
    id: int
    company_id: int
    name: str
    contact_email: str | None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
