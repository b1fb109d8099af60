"""Company setup endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.models.company import Company, CompanyMember
from orderdesk.models.vendor import Vendor
from orderdesk.schemas.company import (
    CompanyCreate,
    CompanyRead,
    MemberCreate,
    MemberRead,
    VendorCreate,
    VendorRead,
)
from orderdesk.security import Actor, require_actor, require_platform_admin
from orderdesk.services import companies as company_service

router = APIRouter(prefix="/companies", tags=["companies"])


@router.post("", response_model=CompanyRead, status_code=status.HTTP_201_CREATED)
def create_company(
    payload: CompanyCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_platform_admin),
) -> Company:
    return company_service.create_company(
        db, actor, name=payload.name, slug=payload.slug, admin_user_id=payload.admin_user_id
    )


@router.post("/{company_id}/members", response_model=MemberRead, status_code=status.HTTP_201_CREATED)
def add_member(
    company_id: int,
    payload: MemberCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> CompanyMember:
    return company_service.add_member(
        db,
        actor,
        company_id,
        user_id=payload.user_id,
        role=payload.role,
        department=payload.department,
    )


@router.post("/{company_id}/vendors", response_model=VendorRead, status_code=status.HTTP_201_CREATED)
def add_vendor(
    company_id: int,
    payload: VendorCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> Vendor:
    return company_service.add_vendor(
        db,
        actor,
        company_id,
        name=payload.name,
        contact_email=payload.contact_email,
        user_ids=payload.user_ids,
    )
