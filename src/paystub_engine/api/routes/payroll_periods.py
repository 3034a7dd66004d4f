"""Payroll period API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, Path, Query, status

from paystub_engine.api.dependencies import CurrentActor, PeriodService
from paystub_engine.api.schemas import (
    CurrentPeriodResponse,
    ErrorResponse,
    NextPayDateResponse,
    PayrollPeriodCreate,
    PayrollPeriodListResponse,
    PayrollPeriodResponse,
    PayrollPeriodUpdate,
    PayStubResponse,
    PeriodTotalsResponse,
    ProcessingReportResponse,
    ProcessRequest,
)

router = APIRouter(prefix="/payroll-periods", tags=["payroll-periods"])


# ============================================================================
# Payroll Period CRUD
# ============================================================================


@router.post(
    "",
    response_model=PayrollPeriodResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_payroll_period(
    service: PeriodService,
    actor: CurrentActor,
    payload: PayrollPeriodCreate,
) -> PayrollPeriodResponse:
    """Create a new payroll period in draft status."""
    period = await service.create_period(
        payload.period_start,
        payload.period_end,
        payload.pay_date,
        actor,
        department_id=payload.department_id,
        department=payload.department,
    )
    return PayrollPeriodResponse.model_validate(period)


@router.get("", response_model=PayrollPeriodListResponse)
async def list_payroll_periods(
    service: PeriodService,
    actor: CurrentActor,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    department_id: UUID | None = None,
) -> PayrollPeriodListResponse:
    """List payroll periods with optional filters."""
    periods, total = await service.list_periods(
        status=status_filter,
        department_id=department_id,
        page=page,
        page_size=page_size,
    )
    return PayrollPeriodListResponse(
        items=[PayrollPeriodResponse.model_validate(p) for p in periods],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/current", response_model=CurrentPeriodResponse)
async def get_current_payroll_period(
    service: PeriodService,
    actor: CurrentActor,
) -> CurrentPeriodResponse:
    """Open period covering today; created from the pay calendar when possible."""
    period = await service.get_current_period(actor)
    if period is None:
        return CurrentPeriodResponse(period=None, requires_manual_creation=True)
    return CurrentPeriodResponse(period=PayrollPeriodResponse.model_validate(period))


@router.get("/next-pay-date", response_model=NextPayDateResponse)
async def get_next_pay_date(
    service: PeriodService,
    actor: CurrentActor,
) -> NextPayDateResponse:
    """Next pay date from the configured salary cycle."""
    return NextPayDateResponse(next_pay_date=await service.next_pay_date())


@router.get(
    "/{period_id}",
    response_model=PayrollPeriodResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_period(
    service: PeriodService,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
) -> PayrollPeriodResponse:
    """Get a specific payroll period by ID."""
    return PayrollPeriodResponse.model_validate(await service.get_period(period_id))


@router.patch(
    "/{period_id}",
    response_model=PayrollPeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_payroll_period(
    service: PeriodService,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
    payload: PayrollPeriodUpdate,
) -> PayrollPeriodResponse:
    """Edit a draft payroll period."""
    period = await service.update_period(
        period_id, actor, payload.model_dump(exclude_unset=True)
    )
    return PayrollPeriodResponse.model_validate(period)


@router.get(
    "/{period_id}/totals",
    response_model=PeriodTotalsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_period_totals(
    service: PeriodService,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
) -> PeriodTotalsResponse:
    """Aggregate totals of a period."""
    totals = await service.get_period_totals(period_id)
    return PeriodTotalsResponse.model_validate(totals)


@router.get(
    "/{period_id}/paystubs/{employee_id}",
    response_model=PayStubResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_employee_pay_stub(
    service: PeriodService,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
    employee_id: Annotated[UUID, Path()],
) -> PayStubResponse:
    """Pay stub of one employee for a period."""
    stub = await service.get_pay_stub(employee_id, period_id, actor)
    return PayStubResponse.model_validate(stub)


# ============================================================================
# Payroll Period State Transitions
# ============================================================================


@router.post(
    "/{period_id}/process",
    response_model=ProcessingReportResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def process_payroll_period(
    service: PeriodService,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
    payload: Annotated[ProcessRequest | None, Body()] = None,
) -> ProcessingReportResponse:
    """Calculate pay stubs for the period roster. Safe to re-run."""
    employee_ids = payload.employee_ids if payload else None
    report = await service.process_period(period_id, actor, employee_ids)
    return ProcessingReportResponse.model_validate(report)


@router.post(
    "/{period_id}/approve",
    response_model=PayrollPeriodResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def approve_payroll_period(
    service: PeriodService,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
) -> PayrollPeriodResponse:
    """Approve a processed period; its stubs become paid."""
    period = await service.approve_period(period_id, actor)
    return PayrollPeriodResponse.model_validate(period)


@router.post(
    "/{period_id}/cancel",
    response_model=PayrollPeriodResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def cancel_payroll_period(
    service: PeriodService,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
) -> PayrollPeriodResponse:
    """Cancel a draft or processing period."""
    period = await service.cancel_period(period_id, actor)
    return PayrollPeriodResponse.model_validate(period)
