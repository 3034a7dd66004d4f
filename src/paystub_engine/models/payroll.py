"""Payroll period, pay stub and calculation detail models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from paystub_engine.models.base import Base, JSONType, TimestampMixin, utcnow

MONEY = Numeric(14, 2)
HOURS = Numeric(8, 2)


# ===== Payroll Periods =====


class PayrollPeriod(Base, TimestampMixin):
    """A pay period with its lifecycle status and derived totals."""

    __tablename__ = "payroll_period"

    payroll_period_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    # Optional department scope
    department_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)

    # Derived totals, refreshed by full recompute over the period's stubs
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_gross_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_net_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_taxes: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    created_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    processed_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'processing', 'completed', 'cancelled')",
            name="payroll_period_status_check",
        ),
        CheckConstraint("period_end >= period_start", name="payroll_period_dates_check"),
        CheckConstraint("pay_date >= period_end", name="payroll_period_pay_date_check"),
    )

    # Relationships
    pay_stubs: Mapped[list[PayStub]] = relationship(
        back_populates="payroll_period", viewonly=True
    )
    employees: Mapped[list[PeriodEmployee]] = relationship(
        back_populates="payroll_period", viewonly=True
    )


class PeriodEmployee(Base, TimestampMixin):
    """Outcome of the latest calculation for one employee in a period."""

    __tablename__ = "payroll_period_employee"

    period_employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    error_type: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "payroll_period_id", "employee_id", name="period_employee_unique"
        ),
        CheckConstraint(
            "status IN ('calculated', 'error')",
            name="period_employee_status_check",
        ),
    )

    payroll_period: Mapped[PayrollPeriod] = relationship(back_populates="employees")


# ===== Pay Stubs =====


class PayStub(Base, TimestampMixin):
    """Pay stub issued to one employee for one payroll period."""

    __tablename__ = "pay_stub"

    paystub_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    employee_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    payroll_period_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )

    # Copied from the period when the stub is created
    pay_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    pay_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")

    regular_hours: Mapped[Decimal] = mapped_column(HOURS, nullable=False, default=Decimal("0"))
    regular_rate: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    overtime_hours: Mapped[Decimal] = mapped_column(HOURS, nullable=False, default=Decimal("0"))
    overtime_rate: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    overtime_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    double_time_hours: Mapped[Decimal] = mapped_column(HOURS, nullable=False, default=Decimal("0"))

    bonuses: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    total_earnings: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    gross_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    taxes: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    total_taxes: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    deductions: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    ytd_gross_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    ytd_net_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    ytd_taxes: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    warnings: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    calculation_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "payroll_period_id", name="pay_stub_employee_period_unique"
        ),
        CheckConstraint(
            "status IN ('pending', 'processing', 'paid')",
            name="pay_stub_status_check",
        ),
        CheckConstraint("net_pay >= 0", name="pay_stub_net_non_negative"),
    )

    # Relationships
    payroll_period: Mapped[PayrollPeriod] = relationship(back_populates="pay_stubs")
    calculation: Mapped[PayrollCalculation | None] = relationship(
        back_populates="pay_stub", uselist=False, viewonly=True
    )


class PayrollCalculation(Base, TimestampMixin):
    """Full computation breakdown behind a pay stub (1:1)."""

    __tablename__ = "payroll_calculation"

    calculation_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    paystub_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("pay_stub.paystub_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    payroll_period_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )

    hours: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    earnings: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    deductions: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    calculation_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    calculated_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    calculation_version: Mapped[str] = mapped_column(String, nullable=False)
    calculation_rules: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    rules_fingerprint: Mapped[str] = mapped_column(String(32), nullable=False)
    inputs_fingerprint: Mapped[str] = mapped_column(String(32), nullable=False)

    __table_args__ = (
        UniqueConstraint("paystub_id", name="payroll_calculation_paystub_unique"),
    )

    pay_stub: Mapped[PayStub] = relationship(back_populates="calculation")
