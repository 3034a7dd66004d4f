"""Period totals and year-to-date figures derived from stored pay stubs.

Totals are a view over the stub set: they are always recomputed from every
current stub of the period, never adjusted incrementally.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from paystub_engine.calculators.types import YtdFigures, ZERO
from paystub_engine.models import PayrollPeriod, PayStub
from paystub_engine.services.state_machine import PayStubStatus


@dataclass(frozen=True)
class PeriodTotals:
    """Aggregate figures for one payroll period."""

    payroll_period_id: UUID
    employee_count: int = 0
    total_gross_pay: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net_pay: Decimal = ZERO
    total_taxes: Decimal = ZERO

    @classmethod
    def from_stubs(cls, period_id: UUID, stubs: Iterable[PayStub]) -> PeriodTotals:
        count = 0
        gross = deductions = net = taxes = ZERO
        for stub in stubs:
            count += 1
            gross += stub.gross_pay
            deductions += stub.total_deductions
            net += stub.net_pay
            taxes += stub.total_taxes
        return cls(
            payroll_period_id=period_id,
            employee_count=count,
            total_gross_pay=gross,
            total_deductions=deductions,
            total_net_pay=net,
            total_taxes=taxes,
        )

    @classmethod
    def from_period(cls, period: PayrollPeriod) -> PeriodTotals:
        """Totals as currently stored on the period row."""
        return cls(
            payroll_period_id=period.payroll_period_id,
            employee_count=period.employee_count,
            total_gross_pay=period.total_gross_pay,
            total_deductions=period.total_deductions,
            total_net_pay=period.total_net_pay,
            total_taxes=period.total_taxes,
        )

    def apply_to(self, period: PayrollPeriod) -> None:
        period.employee_count = self.employee_count
        period.total_gross_pay = self.total_gross_pay
        period.total_deductions = self.total_deductions
        period.total_net_pay = self.total_net_pay
        period.total_taxes = self.total_taxes
        period.total_amount = self.total_net_pay


async def compute_period_totals(session: AsyncSession, period_id: UUID) -> PeriodTotals:
    """Sum every current stub of the period."""
    result = await session.execute(
        select(PayStub).where(PayStub.payroll_period_id == period_id)
    )
    return PeriodTotals.from_stubs(period_id, result.scalars().all())


async def refresh_period_totals(session: AsyncSession, period: PayrollPeriod) -> PeriodTotals:
    """Recompute totals from scratch and store them on the period row."""
    totals = await compute_period_totals(session, period.payroll_period_id)
    totals.apply_to(period)
    return totals


async def verify_period_totals(session: AsyncSession, period: PayrollPeriod) -> list[str]:
    """Compare stored totals with the stub set.

    Returns list of mismatch descriptions (empty if consistent).
    """
    expected = await compute_period_totals(session, period.payroll_period_id)
    stored = PeriodTotals.from_period(period)
    errors: list[str] = []
    for name in (
        "employee_count",
        "total_gross_pay",
        "total_deductions",
        "total_net_pay",
        "total_taxes",
    ):
        if getattr(stored, name) != getattr(expected, name):
            errors.append(
                f"{name}: stored {getattr(stored, name)}, stubs sum to {getattr(expected, name)}"
            )
    return errors


async def prior_ytd(
    session: AsyncSession, employee_id: UUID, year: int, before_date: date
) -> YtdFigures:
    """Sum of the employee's paid stubs in ``year`` ending before ``before_date``."""
    result = await session.execute(
        select(PayStub.gross_pay, PayStub.net_pay, PayStub.total_taxes).where(
            PayStub.employee_id == employee_id,
            PayStub.status == PayStubStatus.PAID.value,
            PayStub.pay_date >= date(year, 1, 1),
            PayStub.pay_date <= date(year, 12, 31),
            PayStub.pay_period_end < before_date,
        )
    )
    figures = YtdFigures()
    for gross, net, taxes in result.all():
        figures = figures + YtdFigures(gross=gross, net=net, taxes=taxes)
    return figures


class StoreYtdSource:
    """YTD source backed by paid stubs in the pay stub store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_prior_ytd(
        self, employee_id: UUID, year: int, before_date: date
    ) -> YtdFigures:
        async with self.session_factory() as session:
            return await prior_ytd(session, employee_id, year, before_date)
