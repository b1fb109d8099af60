"""Company and membership ORM models."""
from __future__ import annotations

from enum import Enum

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, enum_type


class MemberRole(str, Enum):
    """Roles a user can hold inside a company."""

    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class Company(Base):
    """Tenant owning budgets, members and orders."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    members = relationship("CompanyMember", back_populates="company")


class CompanyMember(Base):
    """A user's membership in a company."""

    __tablename__ = "company_members"
    __table_args__ = (UniqueConstraint("company_id", "user_id", name="uq_company_member_user"),)

    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    role: Mapped[MemberRole] = mapped_column(
        enum_type(MemberRole, "member_role"), nullable=False, default=MemberRole.EMPLOYEE
    )
    department: Mapped[str | None] = mapped_column(String(120), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    company = relationship("Company", back_populates="members")
    user = relationship("User", back_populates="memberships")
