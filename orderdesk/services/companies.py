"""Company setup: tenants, memberships and vendors."""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.models.company import Company, CompanyMember, MemberRole
from orderdesk.models.user import User
from orderdesk.models.vendor import Vendor, VendorMember
from orderdesk.security import Actor
from orderdesk.services import rbac
from orderdesk.utils.audit import actor_label, log_audit
from orderdesk.utils.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


def _require_setup_rights(db: Session, actor: Actor | None, company_id: int) -> None:
    actor = rbac.require_actor(actor)
    rbac.get_company_or_404(db, company_id)
    if actor.is_platform_admin:
        return
    rbac.require_company_admin(db, actor, company_id)


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.", code="USER_NOT_FOUND")
    return user


def create_company(
    db: Session, actor: Actor | None, *, name: str, slug: str, admin_user_id: int
) -> Company:
    """Create a company together with its first admin membership."""

    admin_user = _get_user(db, admin_user_id)
    company = Company(name=name.strip(), slug=slug, is_active=True)
    db.add(company)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Company slug already exists.", code="COMPANY_EXISTS") from exc

    db.add(CompanyMember(company_id=company.id, user_id=admin_user.id, role=MemberRole.ADMIN, is_active=True))
    log_audit(
        db,
        actor=actor_label(actor),
        action="create_company",
        entity="Company",
        entity_id=company.id,
        company_id=company.id,
        new_values={"name": company.name, "slug": slug, "admin_user_id": admin_user.id},
    )
    db.commit()
    db.refresh(company)
    logger.info("Company created", extra={"company_id": company.id})
    return company


def add_member(
    db: Session,
    actor: Actor | None,
    company_id: int,
    *,
    user_id: int,
    role: MemberRole = MemberRole.EMPLOYEE,
    department: str | None = None,
) -> CompanyMember:
    _require_setup_rights(db, actor, company_id)
    _get_user(db, user_id)
    member = CompanyMember(
        company_id=company_id, user_id=user_id, role=role, department=department, is_active=True
    )
    db.add(member)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("User is already a member of this company.", code="MEMBER_EXISTS") from exc
    log_audit(
        db,
        actor=actor_label(actor),
        action="add_member",
        entity="CompanyMember",
        entity_id=member.id,
        company_id=company_id,
        new_values={"user_id": user_id, "role": role, "department": department},
    )
    db.commit()
    db.refresh(member)
    return member


def add_vendor(
    db: Session,
    actor: Actor | None,
    company_id: int,
    *,
    name: str,
    contact_email: str | None = None,
    user_ids: list[int] | None = None,
) -> Vendor:
    """Register a vendor for the company and link the users acting for it."""

    _require_setup_rights(db, actor, company_id)
    linked = list(dict.fromkeys(user_ids or []))
    for user_id in linked:
        _get_user(db, user_id)
    vendor = Vendor(company_id=company_id, name=name.strip(), contact_email=contact_email, is_active=True)
    db.add(vendor)
    db.flush()
    for user_id in linked:
        db.add(VendorMember(vendor_id=vendor.id, user_id=user_id, is_active=True))
    log_audit(
        db,
        actor=actor_label(actor),
        action="add_vendor",
        entity="Vendor",
        entity_id=vendor.id,
        company_id=company_id,
        new_values={"name": vendor.name, "user_ids": linked},
    )
    db.commit()
    db.refresh(vendor)
    return vendor


__all__ = ["add_member", "add_vendor", "create_company"]
