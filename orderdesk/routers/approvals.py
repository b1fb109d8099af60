"""Approval queue endpoints for company admins."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.models.order import Order
from orderdesk.routers.orders import bulk_response
from orderdesk.schemas.order import (
    ApproveIn,
    BulkApproveIn,
    BulkResultRead,
    OrderRead,
    PendingApprovalRead,
    RejectIn,
)
from orderdesk.security import Actor, require_actor
from orderdesk.services import bulk, orders as order_service, reports
from orderdesk.services.reports import PendingApproval

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("/pending", response_model=list[PendingApprovalRead])
def pending(
    company_id: int = Query(gt=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> list[PendingApproval]:
    return reports.pending_approvals(db, actor, company_id)


@router.post("/bulk-approve", response_model=BulkResultRead)
def bulk_approve(
    payload: BulkApproveIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> BulkResultRead:
    return bulk_response(bulk.bulk_approve(db, actor, payload.order_ids, notes=payload.notes))


@router.post("/{order_id}/approve", response_model=OrderRead)
def approve(
    order_id: int,
    payload: ApproveIn | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> Order:
    notes = payload.notes if payload else None
    return order_service.approve_order(db, actor, order_id, notes=notes)


@router.post("/{order_id}/reject", response_model=OrderRead)
def reject(
    order_id: int,
    payload: RejectIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> Order:
    return order_service.reject_order(db, actor, order_id, payload.reason)
