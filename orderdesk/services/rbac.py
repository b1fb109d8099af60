"""Company-scoped capability checks.

Every check takes the database session and the acting user explicitly; no
check consults request state.
"""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from orderdesk.models.company import Company, CompanyMember, MemberRole
from orderdesk.models.vendor import Vendor, VendorMember
from orderdesk.security import Actor
from orderdesk.utils.errors import NotFoundError, Unauthenticated, Unauthorized


def require_actor(actor: Actor | None) -> Actor:
    if actor is None:
        raise Unauthenticated("Authentication required.")
    return actor


def find_membership(db: Session, user_id: int, company_id: int) -> CompanyMember | None:
    stmt = select(CompanyMember).where(
        CompanyMember.company_id == company_id,
        CompanyMember.user_id == user_id,
        CompanyMember.is_active.is_(True),
    )
    return db.scalars(stmt).first()


def get_company_or_404(db: Session, company_id: int) -> Company:
    company = db.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found.", code="COMPANY_NOT_FOUND")
    return company


def require_company_member(db: Session, actor: Actor | None, company_id: int) -> CompanyMember:
    """Return the actor's active membership in ``company_id``."""

    actor = require_actor(actor)
    get_company_or_404(db, company_id)
    member = find_membership(db, actor.user_id, company_id)
    if member is None:
        raise Unauthorized("Not a member of this company.", code="NOT_A_MEMBER")
    return member


def require_company_manager(db: Session, actor: Actor | None, company_id: int) -> CompanyMember:
    member = require_company_member(db, actor, company_id)
    if member.role not in (MemberRole.ADMIN, MemberRole.MANAGER):
        raise Unauthorized("Company admin or manager role required.")
    return member


def require_company_admin(db: Session, actor: Actor | None, company_id: int) -> CompanyMember:
    member = require_company_member(db, actor, company_id)
    if member.role != MemberRole.ADMIN:
        raise Unauthorized("Company admin role required.")
    return member


def find_vendor_for_company(db: Session, user_id: int, company_id: int) -> Vendor | None:
    stmt = (
        select(Vendor)
        .join(VendorMember, VendorMember.vendor_id == Vendor.id)
        .where(
            VendorMember.user_id == user_id,
            VendorMember.is_active.is_(True),
            Vendor.company_id == company_id,
            Vendor.is_active.is_(True),
        )
    )
    return db.scalars(stmt).first()


def require_vendor_for_company(db: Session, actor: Actor | None, company_id: int) -> Vendor:
    """Return the vendor the actor works for, provided it serves ``company_id``."""

    actor = require_actor(actor)
    vendor = find_vendor_for_company(db, actor.user_id, company_id)
    if vendor is None:
        raise Unauthorized("Not a vendor for this company.", code="NOT_A_VENDOR")
    return vendor


__all__ = [
    "find_membership",
    "find_vendor_for_company",
    "get_company_or_404",
    "require_actor",
    "require_company_admin",
    "require_company_manager",
    "require_company_member",
    "require_vendor_for_company",
]
