"""Budget ledger ORM models."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, enum_type


class PeriodType(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class BudgetStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BudgetPeriod(Base):
    """Record of the amount a company set aside for one period window."""

    __tablename__ = "budget_periods"
    __table_args__ = (CheckConstraint("budget_amount > 0", name="ck_budget_period_amount_positive"),)

    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    period_type: Mapped[PeriodType] = mapped_column(enum_type(PeriodType, "period_type"), nullable=False)
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    budget_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2, asdecimal=True), nullable=False)
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)


class Budget(Base):
    """Company budget for a period.

    ``allocated_budget``, ``spent_budget`` and ``remaining_budget`` are caches
    rewritten whenever recognised spend changes; gating decisions always
    recompute from orders instead.
    """

    __tablename__ = "budgets"
    __table_args__ = (
        CheckConstraint("total_budget > 0", name="ck_budget_total_positive"),
        Index("ix_budgets_company_status", "company_id", "status"),
    )

    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    budget_period_id: Mapped[int] = mapped_column(ForeignKey("budget_periods.id"), nullable=False)
    period_type: Mapped[PeriodType] = mapped_column(enum_type(PeriodType, "period_type"), nullable=False)
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_budget: Mapped[Decimal] = mapped_column(Numeric(18, 2, asdecimal=True), nullable=False)
    allocated_budget: Mapped[Decimal] = mapped_column(
        Numeric(18, 2, asdecimal=True), nullable=False, default=Decimal("0.00")
    )
    spent_budget: Mapped[Decimal] = mapped_column(
        Numeric(18, 2, asdecimal=True), nullable=False, default=Decimal("0.00")
    )
    remaining_budget: Mapped[Decimal] = mapped_column(Numeric(18, 2, asdecimal=True), nullable=False)
    status: Mapped[BudgetStatus] = mapped_column(
        enum_type(BudgetStatus, "budget_status"), nullable=False, default=BudgetStatus.ACTIVE
    )
    version: Mapped[int] = mapped_column(nullable=False, default=0)

    budget_period = relationship("BudgetPeriod")
    allocations = relationship("EmployeeBudget", back_populates="budget", order_by="EmployeeBudget.id")


class EmployeeBudget(Base):
    """Portion of a budget allocated to one company member."""

    __tablename__ = "employee_budgets"
    __table_args__ = (
        UniqueConstraint("budget_id", "member_id", name="uq_employee_budget_member"),
        CheckConstraint("allocated_amount > 0", name="ck_employee_budget_amount_positive"),
    )

    budget_id: Mapped[int] = mapped_column(ForeignKey("budgets.id"), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("company_members.id"), nullable=False, index=True)
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2, asdecimal=True), nullable=False)
    spent_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2, asdecimal=True), nullable=False, default=Decimal("0.00")
    )
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    version: Mapped[int] = mapped_column(nullable=False, default=0)

    budget = relationship("Budget", back_populates="allocations")
    member = relationship("CompanyMember")


__all__ = ["Budget", "BudgetPeriod", "BudgetStatus", "EmployeeBudget", "PeriodType"]
