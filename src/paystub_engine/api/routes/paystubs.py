"""Pay stub API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from paystub_engine.api.dependencies import CurrentActor, PeriodService
from paystub_engine.api.schemas import (
    ErrorResponse,
    PayrollCalculationResponse,
    PayStubListResponse,
    PayStubResponse,
)

router = APIRouter(prefix="/paystubs", tags=["paystubs"])


@router.get("", response_model=PayStubListResponse)
async def list_pay_stubs(
    service: PeriodService,
    actor: CurrentActor,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    payroll_period_id: UUID | None = None,
    employee_id: UUID | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> PayStubListResponse:
    """List pay stubs; employees only see their own."""
    stubs, total = await service.list_pay_stubs(
        actor,
        period_id=payroll_period_id,
        employee_id=employee_id,
        status=status_filter,
        page=page,
        page_size=page_size,
    )
    return PayStubListResponse(
        items=[PayStubResponse.model_validate(s) for s in stubs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{paystub_id}",
    response_model=PayStubResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_pay_stub(
    service: PeriodService,
    actor: CurrentActor,
    paystub_id: Annotated[UUID, Path()],
) -> PayStubResponse:
    """Get a specific pay stub by ID."""
    stub = await service.get_pay_stub_by_id(paystub_id, actor)
    return PayStubResponse.model_validate(stub)


@router.get(
    "/{paystub_id}/calculation",
    response_model=PayrollCalculationResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_pay_stub_calculation(
    service: PeriodService,
    actor: CurrentActor,
    paystub_id: Annotated[UUID, Path()],
) -> PayrollCalculationResponse:
    """Calculation detail behind a pay stub."""
    calculation = await service.get_calculation(paystub_id, actor)
    return PayrollCalculationResponse.model_validate(calculation)
