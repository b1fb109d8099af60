"""Company reporting endpoints for admins."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.models.order import OrderStatus
from orderdesk.schemas.report import OrderReportRead, VendorReportRead
from orderdesk.security import Actor, require_actor
from orderdesk.services import reports
from orderdesk.services.reports import OrderReport, VendorReport

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/orders", response_model=OrderReportRead)
def order_report(
    company_id: int = Query(gt=0),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    department: str | None = Query(default=None, max_length=120),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> OrderReport:
    return reports.order_report(
        db,
        actor,
        company_id,
        start_date=start_date,
        end_date=end_date,
        status=status_filter,
        department=department,
    )


@router.get("/vendors", response_model=VendorReportRead)
def vendor_report(
    company_id: int = Query(gt=0),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> VendorReport:
    """Purchase orders in the window with per-vendor totals."""

    return reports.vendor_report(db, actor, company_id, start_date=start_date, end_date=end_date)
