"""Pydantic schemas for budgets and allocations."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from orderdesk.models.budget import BudgetStatus, PeriodType


class BudgetCreate(BaseModel):
    company_id: int = Field(gt=0)
    period_type: PeriodType
    total_budget: Decimal = Field(gt=Decimal("0"), max_digits=18, decimal_places=2)
    period_start: datetime | None = Field(
        default=None, description="Any instant inside the target period; defaults to now."
    )

    @field_validator("period_start")
    @classmethod
    def _ensure_timezone(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class BudgetAmountUpdate(BaseModel):
    total_budget: Decimal = Field(gt=Decimal("0"), max_digits=18, decimal_places=2)


class BudgetStatusUpdate(BaseModel):
    status: BudgetStatus


class BudgetRead(BaseModel):
    id: int
    company_id: int
    period_type: PeriodType
    period_start: datetime
    period_end: datetime
    status: BudgetStatus
    total_budget: Decimal
    allocated_budget: Decimal
    spent_budget: Decimal
    remaining_budget: Decimal
    unallocated_budget: Decimal
    version: int

    model_config = ConfigDict(from_attributes=True)


class PeriodSummaryRead(BaseModel):
    period_type: PeriodType
    budget_id: int | None
    total_budget: Decimal
    allocated_budget: Decimal
    spent_budget: Decimal
    remaining_budget: Decimal
    allocation_count: int

    model_config = ConfigDict(from_attributes=True)


class AllocationCreate(BaseModel):
    member_id: int = Field(gt=0)
    amount: Decimal = Field(gt=Decimal("0"), max_digits=18, decimal_places=2)


class AllocationUpdate(BaseModel):
    amount: Decimal = Field(gt=Decimal("0"), max_digits=18, decimal_places=2)


class AllocationRead(BaseModel):
    id: int
    budget_id: int
    member_id: int
    user_id: int
    department: str | None
    allocated_amount: Decimal
    spent_amount: Decimal
    remaining_amount: Decimal
    period_start: datetime
    period_end: datetime

    model_config = ConfigDict(from_attributes=True)


class MemberBudgetRead(BaseModel):
    period_type: PeriodType
    budget_id: int
    allocation_id: int
    period_start: datetime
    period_end: datetime
    allocated: Decimal
    spent: Decimal
    remaining: Decimal

    model_config = ConfigDict(from_attributes=True)


class AvailabilityRead(BaseModel):
    available: bool
    remaining: Decimal
    reason: str | None
    budget_id: int | None
    employee_budget_id: int | None

    model_config = ConfigDict(from_attributes=True)
