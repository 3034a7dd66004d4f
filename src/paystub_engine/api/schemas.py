"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


# ============================================================================
# Payroll Period schemas
# ============================================================================


class PayrollPeriodCreate(BaseModel):
    """Schema for creating a new payroll period."""

    period_start: date
    period_end: date
    pay_date: date
    department_id: UUID | None = None
    department: str | None = None


class PayrollPeriodUpdate(BaseModel):
    """Schema for editing a draft payroll period; omitted fields are kept."""

    period_start: date | None = None
    period_end: date | None = None
    pay_date: date | None = None
    department_id: UUID | None = None
    department: str | None = None


class PayrollPeriodResponse(BaseModel):
    """Schema for payroll period response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    period_start: date
    period_end: date
    pay_date: date
    status: str
    department_id: UUID | None = None
    department: str | None = None
    employee_count: int
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_net_pay: Decimal
    total_taxes: Decimal
    total_amount: Decimal
    created_by: UUID | None = None
    processed_by: UUID | None = None
    processed_at: datetime | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    cancelled_by: UUID | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class PayrollPeriodListResponse(BaseModel):
    """Schema for listing payroll periods."""

    items: list[PayrollPeriodResponse]
    total: int
    page: int
    page_size: int


class CurrentPeriodResponse(BaseModel):
    """Current open period, if one exists or could be created."""

    period: PayrollPeriodResponse | None = None
    requires_manual_creation: bool = False


class NextPayDateResponse(BaseModel):
    """Next pay date, null when no pay day is configured."""

    next_pay_date: date | None = None


class PeriodTotalsResponse(BaseModel):
    """Aggregate totals of a period."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    employee_count: int
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_net_pay: Decimal
    total_taxes: Decimal


# ============================================================================
# Processing schemas
# ============================================================================


class ProcessRequest(BaseModel):
    """Optionally restrict a re-run to some employees."""

    employee_ids: list[UUID] | None = None


class EmployeeFailureResponse(BaseModel):
    """Schema for one failed employee."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    error_type: str
    message: str


class ProcessingReportResponse(BaseModel):
    """Schema for a process run outcome."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    status: str
    succeeded: list[UUID]
    failed: list[EmployeeFailureResponse]
    skipped: list[UUID]
    written: int
    cancelled: bool
    totals: PeriodTotalsResponse | None = None


# ============================================================================
# Pay Stub schemas
# ============================================================================


class PayStubResponse(BaseModel):
    """Schema for pay stub response."""

    model_config = ConfigDict(from_attributes=True)

    paystub_id: UUID
    employee_id: UUID
    payroll_period_id: UUID
    pay_period_start: date
    pay_period_end: date
    pay_date: date
    status: str
    regular_hours: Decimal
    regular_rate: Decimal
    overtime_hours: Decimal
    overtime_rate: Decimal
    overtime_pay: Decimal
    double_time_hours: Decimal
    bonuses: list[dict[str, Any]]
    total_earnings: Decimal
    gross_pay: Decimal
    taxes: dict[str, Any]
    total_taxes: Decimal
    deductions: list[dict[str, Any]]
    total_deductions: Decimal
    net_pay: Decimal
    ytd_gross_pay: Decimal
    ytd_net_pay: Decimal
    ytd_taxes: Decimal
    warnings: list[str]
    calculation_id: UUID
    created_at: datetime
    updated_at: datetime


class PayStubListResponse(BaseModel):
    """Schema for listing pay stubs."""

    items: list[PayStubResponse]
    total: int
    page: int
    page_size: int


class PayrollCalculationResponse(BaseModel):
    """Schema for the calculation detail behind a pay stub."""

    model_config = ConfigDict(from_attributes=True)

    calculation_id: UUID
    paystub_id: UUID
    employee_id: UUID
    payroll_period_id: UUID
    hours: dict[str, Any]
    earnings: dict[str, Any]
    deductions: dict[str, Any]
    net_pay: Decimal
    calculation_date: datetime
    calculated_by: UUID | None = None
    calculation_version: str
    calculation_rules: dict[str, Any]
    rules_fingerprint: str
    inputs_fingerprint: str


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
