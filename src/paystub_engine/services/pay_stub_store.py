"""Transactional persistence of pay stubs and their calculation detail."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from paystub_engine.calculators.types import CalculationResult, LineItem
from paystub_engine.errors import ConflictError, StoreError
from paystub_engine.models import PayrollCalculation, PayrollPeriod, PayStub, PeriodEmployee
from paystub_engine.services.state_machine import PayStubStatus, PeriodStateMachine

logger = logging.getLogger(__name__)


def stub_id_for(period_id: UUID, employee_id: UUID) -> UUID:
    """Deterministic pay stub ID for an (employee, period) pair."""
    data = {"payroll_period_id": str(period_id), "employee_id": str(employee_id)}
    hash_bytes = hashlib.sha256(json.dumps(data, sort_keys=True).encode()).digest()
    return UUID(bytes=hash_bytes[:16])


class PayStubStore:
    """Persistence for the PayStub + PayrollCalculation pair.

    Key invariants:
    1. One pay_stub per (employee_id, payroll_period_id) (unique constraint)
    2. One payroll_calculation per paystub_id (unique constraint)
    3. A stub and its calculation are written or removed in one transaction
    4. Re-saving an unchanged calculation (same calculation_id) writes nothing,
       so retries leave the stored rows untouched

    Every write opens its own session so writes for different employees can
    run concurrently.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    # === Writes ===

    async def save_result(
        self,
        period: PayrollPeriod,
        result: CalculationResult,
        calculated_by: UUID | None = None,
    ) -> bool:
        """Upsert the stub/calculation pair for one employee.

        Returns True if rows were written, False if the stored calculation
        already matched.

        Raises:
            ConflictError: the period no longer accepts stub changes
            StoreError: if the transaction failed; nothing was written
        """
        period_id = period.payroll_period_id
        if not PeriodStateMachine.can_write_stubs(period.status):
            raise ConflictError(
                f"Pay stubs of a {period.status} period cannot be changed",
                {"period_id": str(period_id), "status": period.status},
            )
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    existing = await session.execute(
                        select(PayStub.paystub_id, PayStub.calculation_id).where(
                            PayStub.employee_id == result.employee_id,
                            PayStub.payroll_period_id == period_id,
                        )
                    )
                    row = existing.first()
                    if row is not None and row.calculation_id == result.calculation_id:
                        await self._mark_employee(session, period_id, result.employee_id)
                        return False

                    await self._delete_pair(session, period_id, [result.employee_id])
                    stub, calculation = self._build_records(period, result, calculated_by)
                    session.add(stub)
                    await session.flush()
                    session.add(calculation)
                    await self._mark_employee(session, period_id, result.employee_id)
                    await session.flush()
        except SQLAlchemyError as e:
            raise StoreError(
                f"Failed to save pay stub for employee {result.employee_id}: {e}",
                {"employee_id": str(result.employee_id), "period_id": str(period_id)},
            ) from e

        return True

    async def record_failure(
        self,
        period_id: UUID,
        employee_id: UUID,
        error_type: str,
        message: str,
    ) -> None:
        """Record a calculation failure and drop the employee's stale stub."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await self._delete_pair(session, period_id, [employee_id])
                    await self._mark_employee(
                        session, period_id, employee_id, "error", error_type, message
                    )
        except SQLAlchemyError as e:
            raise StoreError(
                f"Failed to record failure for employee {employee_id}: {e}",
                {"employee_id": str(employee_id), "period_id": str(period_id)},
            ) from e

    async def prune(
        self, session: AsyncSession, period_id: UUID, keep: Iterable[UUID]
    ) -> int:
        """Remove stubs and outcomes of employees no longer on the roster.

        Runs inside the caller's transaction. Returns count of stubs removed.
        """
        keep_ids = set(keep)
        result = await session.execute(
            select(PayStub.employee_id).where(PayStub.payroll_period_id == period_id)
        )
        stale = [emp_id for emp_id in result.scalars().all() if emp_id not in keep_ids]

        outcome_result = await session.execute(
            select(PeriodEmployee.employee_id).where(
                PeriodEmployee.payroll_period_id == period_id
            )
        )
        stale_outcomes = [
            emp_id for emp_id in outcome_result.scalars().all() if emp_id not in keep_ids
        ]

        if stale:
            await self._delete_pair(session, period_id, stale)
        if stale_outcomes:
            await session.execute(
                delete(PeriodEmployee).where(
                    PeriodEmployee.payroll_period_id == period_id,
                    PeriodEmployee.employee_id.in_(stale_outcomes),
                )
            )
        return len(stale)

    async def advance_stub_status(
        self, session: AsyncSession, period_id: UUID, to_status: str
    ) -> int:
        """Move the period's stubs forward to ``to_status``; never backwards."""
        earlier = [
            s
            for s in PeriodStateMachine.STUB_ORDER
            if s != to_status and PeriodStateMachine.can_advance_stub(s, to_status)
        ]
        result = await session.execute(
            update(PayStub)
            .where(
                PayStub.payroll_period_id == period_id,
                PayStub.status.in_([s.value for s in earlier]),
            )
            .values(status=to_status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    # === Reads ===

    async def get_stub(
        self, session: AsyncSession, employee_id: UUID, period_id: UUID
    ) -> PayStub | None:
        result = await session.execute(
            select(PayStub).where(
                PayStub.employee_id == employee_id,
                PayStub.payroll_period_id == period_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_stub_by_id(self, session: AsyncSession, paystub_id: UUID) -> PayStub | None:
        return await session.get(PayStub, paystub_id)

    async def get_calculation(
        self, session: AsyncSession, paystub_id: UUID
    ) -> PayrollCalculation | None:
        result = await session.execute(
            select(PayrollCalculation).where(PayrollCalculation.paystub_id == paystub_id)
        )
        return result.scalar_one_or_none()

    async def list_period_stubs(self, session: AsyncSession, period_id: UUID) -> list[PayStub]:
        result = await session.execute(
            select(PayStub)
            .where(PayStub.payroll_period_id == period_id)
            .order_by(PayStub.employee_id)
        )
        return list(result.scalars().all())

    async def list_outcomes(
        self, session: AsyncSession, period_id: UUID
    ) -> list[PeriodEmployee]:
        result = await session.execute(
            select(PeriodEmployee)
            .where(PeriodEmployee.payroll_period_id == period_id)
            .order_by(PeriodEmployee.employee_id)
        )
        return list(result.scalars().all())

    async def search(
        self,
        session: AsyncSession,
        period_id: UUID | None = None,
        employee_id: UUID | None = None,
        status: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[PayStub], int]:
        """Paginated stub listing, newest pay date first."""
        query = select(PayStub)
        if period_id:
            query = query.where(PayStub.payroll_period_id == period_id)
        if employee_id:
            query = query.where(PayStub.employee_id == employee_id)
        if status:
            query = query.where(PayStub.status == status)

        count_query = select(func.count()).select_from(query.subquery())
        total = await session.scalar(count_query) or 0

        query = query.order_by(PayStub.pay_date.desc(), PayStub.employee_id)
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await session.execute(query)
        return list(result.scalars().all()), total

    # === Helpers ===

    async def _delete_pair(
        self, session: AsyncSession, period_id: UUID, employee_ids: list[UUID]
    ) -> None:
        """Delete calculation rows before their stubs."""
        stub_ids = [stub_id_for(period_id, emp_id) for emp_id in employee_ids]
        await session.execute(
            delete(PayrollCalculation).where(PayrollCalculation.paystub_id.in_(stub_ids))
        )
        await session.execute(
            delete(PayStub).where(
                PayStub.payroll_period_id == period_id,
                PayStub.employee_id.in_(employee_ids),
            )
        )

    async def _mark_employee(
        self,
        session: AsyncSession,
        period_id: UUID,
        employee_id: UUID,
        status: str = "calculated",
        error_type: str | None = None,
        error_message: str | None = None,
    ) -> None:
        result = await session.execute(
            update(PeriodEmployee)
            .where(
                PeriodEmployee.payroll_period_id == period_id,
                PeriodEmployee.employee_id == employee_id,
            )
            .values(status=status, error_type=error_type, error_message=error_message)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            session.add(
                PeriodEmployee(
                    payroll_period_id=period_id,
                    employee_id=employee_id,
                    status=status,
                    error_type=error_type,
                    error_message=error_message,
                )
            )
            await session.flush()

    def _build_records(
        self,
        period: PayrollPeriod,
        result: CalculationResult,
        calculated_by: UUID | None,
    ) -> tuple[PayStub, PayrollCalculation]:
        paystub_id = stub_id_for(period.payroll_period_id, result.employee_id)
        hours = result.hours

        stub = PayStub(
            paystub_id=paystub_id,
            employee_id=result.employee_id,
            payroll_period_id=period.payroll_period_id,
            pay_period_start=period.period_start,
            pay_period_end=period.period_end,
            pay_date=period.pay_date,
            status=PayStubStatus.PENDING.value,
            regular_hours=hours.regular,
            regular_rate=result.hourly_rate,
            overtime_hours=hours.overtime,
            overtime_rate=result.overtime_rate,
            overtime_pay=result.overtime_pay,
            double_time_hours=hours.double_time,
            bonuses=[
                {"name": line.name, "amount": str(line.amount), "category": line.category.value}
                for line in result.bonuses + result.allowances
            ],
            total_earnings=result.total_earnings,
            gross_pay=result.gross_pay,
            taxes=result.taxes_breakdown(),
            total_taxes=result.total_taxes,
            deductions=_lines(result.benefits + result.other_deductions),
            total_deductions=result.total_deductions,
            net_pay=result.net_pay,
            ytd_gross_pay=result.ytd.gross,
            ytd_net_pay=result.ytd.net,
            ytd_taxes=result.ytd.taxes,
            warnings=list(result.warnings),
            calculation_id=result.calculation_id,
        )

        calculation = PayrollCalculation(
            calculation_id=result.calculation_id,
            paystub_id=paystub_id,
            employee_id=result.employee_id,
            payroll_period_id=period.payroll_period_id,
            hours={
                "regular": str(hours.regular),
                "overtime": str(hours.overtime),
                "double_time": str(hours.double_time),
                "total": str(hours.total),
            },
            earnings={
                "base_salary": str(result.base_salary),
                "hourly_rate": str(result.hourly_rate),
                "regular_pay": str(result.regular_pay),
                "overtime_pay": str(result.overtime_pay),
                "double_time_pay": str(result.double_time_pay),
                "bonuses": _lines(result.bonuses),
                "allowances": _lines(result.allowances),
                "total_earnings": str(result.total_earnings),
            },
            deductions={
                "taxes": result.taxes_breakdown(),
                "benefits": _lines(result.benefits),
                "other": _lines(result.other_deductions),
                "total_deductions": str(result.total_deductions),
            },
            net_pay=result.net_pay,
            calculated_by=calculated_by,
            calculation_version=result.calculation_version,
            calculation_rules=result.rules,
            rules_fingerprint=result.rules_fingerprint,
            inputs_fingerprint=result.inputs_fingerprint,
        )
        return stub, calculation


def _lines(lines: list[LineItem]) -> list[dict[str, Any]]:
    return [line.to_dict() for line in lines]
