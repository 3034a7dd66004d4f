"""Payroll period service - orchestrator for period processing."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import date
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from paystub_engine.calculators import PayrollEngine, PeriodWindow
from paystub_engine.calculators.types import CalculationResult, PayrollConfig
from paystub_engine.config import Settings, get_settings
from paystub_engine.errors import (
    AccessDeniedError,
    CollaboratorError,
    CollaboratorTimeoutError,
    ConfigurationError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PayrollError,
    StoreError,
)
from paystub_engine.events import (
    DomainEvent,
    EventEmitter,
    EventMetadata,
    PayrollApproved,
    PayrollCancelled,
    PayrollProcessed,
    PayStubAvailable,
)
from paystub_engine.models import PayrollCalculation, PayrollPeriod, PayStub
from paystub_engine.models.base import utcnow
from paystub_engine.services import pay_calendar
from paystub_engine.services.aggregation import (
    PeriodTotals,
    StoreYtdSource,
    refresh_period_totals,
)
from paystub_engine.services.collaborators import Collaborators
from paystub_engine.services.locking_service import (
    LockingService,
    PeriodLockRegistry,
    PeriodRun,
)
from paystub_engine.services.pay_stub_store import PayStubStore, stub_id_for
from paystub_engine.services.state_machine import (
    InvalidTransitionError,
    PayStubStatus,
    PeriodStateMachine,
    PeriodStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ADMIN_ROLES = frozenset({"admin"})
SELF_SERVICE_ROLES = frozenset({"employee"})

# Per-employee errors recorded in the report instead of aborting the run
RECOVERABLE_ERRORS = (
    ConfigurationError,
    InvalidInputError,
    CollaboratorTimeoutError,
    CollaboratorError,
)


@dataclass(frozen=True)
class Actor:
    """Identity of the caller, as resolved by the (external) auth layer."""

    user_id: UUID | None
    role: str = "admin"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_self_service(self) -> bool:
        return self.role in SELF_SERVICE_ROLES


@dataclass(frozen=True)
class EmployeeFailure:
    """One employee that could not be calculated."""

    employee_id: UUID
    error_type: str
    message: str


@dataclass
class ProcessingReport:
    """Outcome of one process_period call."""

    payroll_period_id: UUID
    status: str
    succeeded: list[UUID] = field(default_factory=list)
    failed: list[EmployeeFailure] = field(default_factory=list)
    skipped: list[UUID] = field(default_factory=list)
    written: int = 0
    cancelled: bool = False
    totals: PeriodTotals | None = None

    @property
    def has_failures(self) -> bool:
        return len(self.failed) > 0


@dataclass
class _RunState:
    """Mutable state shared by the workers of one run."""

    run: PeriodRun
    succeeded: list[UUID] = field(default_factory=list)
    failed: list[EmployeeFailure] = field(default_factory=list)
    skipped: list[UUID] = field(default_factory=list)
    written: list[CalculationResult] = field(default_factory=list)
    aborted: bool = False

    @property
    def stop_writes(self) -> bool:
        return self.aborted or self.run.is_cancel_requested


class PayrollPeriodService:
    """Service for managing the payroll period lifecycle.

    Operations:
    - create_period / update_period: define a draft period
    - process_period: price the roster and upsert one stub per employee
    - approve_period: processing → completed, stubs become paid
    - cancel_period: draft/processing → cancelled
    - reads: periods, stubs, calculation detail, totals, pay calendar

    Every mutating operation holds the per-period lock for its duration;
    a second caller for the same period fails fast with ConflictError.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        collaborators: Collaborators,
        settings: Settings | None = None,
        emitter: EventEmitter | None = None,
        registry: PeriodLockRegistry | None = None,
        engine: PayrollEngine | None = None,
    ):
        self.session_factory = session_factory
        self.collaborators = collaborators
        self.settings = settings or get_settings()
        self.emitter = emitter or EventEmitter()
        self.locking = LockingService(session_factory, registry)
        self.engine = engine or PayrollEngine(self.settings.engine_version)
        self.store = PayStubStore(session_factory)
        self.ytd_source = collaborators.ytd or StoreYtdSource(session_factory)

    # === Period definition ===

    async def create_period(
        self,
        period_start: date,
        period_end: date,
        pay_date: date,
        actor: Actor,
        department_id: UUID | None = None,
        department: str | None = None,
    ) -> PayrollPeriod:
        """Create a draft payroll period."""
        self._require_admin(actor, "create")
        self._validate_dates(period_start, period_end, pay_date)

        period = PayrollPeriod(
            period_start=period_start,
            period_end=period_end,
            pay_date=pay_date,
            status=PeriodStatus.DRAFT.value,
            department_id=department_id,
            department=department,
            created_by=actor.user_id,
        )
        async with self.session_factory() as session:
            async with session.begin():
                session.add(period)

        logger.info(
            "Created payroll period %s (%s to %s, pay date %s)",
            period.payroll_period_id,
            period_start,
            period_end,
            pay_date,
        )
        return period

    async def update_period(
        self,
        period_id: UUID,
        actor: Actor,
        changes: dict[str, Any],
    ) -> PayrollPeriod:
        """Edit dates or scope of a draft period."""
        self._require_admin(actor, "update")
        allowed = {"period_start", "period_end", "pay_date", "department_id", "department"}
        unknown = set(changes) - allowed
        if unknown:
            raise InvalidInputError(
                f"Cannot update field(s): {', '.join(sorted(unknown))}",
                {"fields": sorted(unknown)},
            )

        async with self.locking.period_lock(period_id, "update"):
            async with self.session_factory() as session:
                async with session.begin():
                    period = await self._get_period(session, period_id)
                    if not PeriodStateMachine.can_modify_definition(period.status):
                        raise ConflictError(
                            f"Payroll period in status '{period.status}' cannot be edited",
                            {"period_id": str(period_id), "status": period.status},
                        )
                    self._validate_dates(
                        changes.get("period_start", period.period_start),
                        changes.get("period_end", period.period_end),
                        changes.get("pay_date", period.pay_date),
                    )
                    for name, value in changes.items():
                        setattr(period, name, value)

        logger.info("Updated payroll period %s: %s", period_id, sorted(changes))
        return period

    # === Processing ===

    async def process_period(
        self,
        period_id: UUID,
        actor: Actor,
        employee_ids: list[UUID] | None = None,
    ) -> ProcessingReport:
        """Calculate the roster (or the given employees) and upsert their stubs.

        Per-employee configuration, input and collaborator errors (including
        timeouts and a missing compensation profile) are collected in the
        report; the period stays ``processing`` and may be re-run.

        Raises:
            AccessDeniedError: actor is not an administrator
            NotFoundError: unknown period
            ConflictError: period busy, terminal, or its guard failed
            ConfigurationError: no active payroll configuration
            CollaboratorTimeoutError: roster or settings source timed out
            CollaboratorError: roster or settings source failed
            StoreError: a write failed; the run was stopped
        """
        self._require_admin(actor, "process")
        if employee_ids is not None and not employee_ids:
            raise InvalidInputError("employee_ids must not be empty")

        async with self.locking.period_lock(period_id, "process") as run:
            async with self.session_factory() as session:
                period = await self._get_period(session, period_id)
            PeriodStateMachine.validate_transition(period.status, PeriodStatus.PROCESSING)

            config = await self.active_payroll_config()
            roster = await self._call(
                "roster", self.collaborators.roster.list_roster(period.department_id)
            )
            if not roster:
                raise InvalidTransitionError(
                    period.status, PeriodStatus.PROCESSING, "roster is empty"
                )
            targets = self._select_targets(roster, employee_ids)

            if period.status == PeriodStatus.DRAFT:
                period = await self._set_status(period_id, PeriodStatus.PROCESSING)

            logger.info(
                "Processing payroll period %s for %d employee(s)", period_id, len(targets)
            )
            state = _RunState(run=run)
            await self._run_workers(state, period, config, targets, actor)

            report = ProcessingReport(
                payroll_period_id=period_id,
                status=period.status,
                succeeded=sorted(state.succeeded, key=str),
                failed=sorted(state.failed, key=lambda f: str(f.employee_id)),
                skipped=sorted(state.skipped, key=str),
                written=len(state.written),
            )

            if run.is_cancel_requested:
                logger.info("Processing of period %s stopped by cancel", period_id)
                report.cancelled = True
                return report

            async with self.session_factory() as session:
                async with session.begin():
                    period = await self._get_period(session, period_id)
                    if employee_ids is None:
                        pruned = await self.store.prune(session, period_id, roster)
                        if pruned:
                            logger.info("Removed %d stub(s) no longer on the roster", pruned)
                    await self.store.advance_stub_status(
                        session, period_id, PayStubStatus.PROCESSING.value
                    )
                    totals = await refresh_period_totals(session, period)
                    period.processed_by = actor.user_id
                    period.processed_at = utcnow()

        report.totals = totals
        logger.info(
            "Processed payroll period %s: %d succeeded, %d failed, %d rewritten",
            period_id,
            len(report.succeeded),
            len(report.failed),
            report.written,
        )

        events: list[DomainEvent] = []
        metadata = EventMetadata.create(actor_id=actor.user_id)
        for result in state.written:
            events.append(
                PayStubAvailable(
                    metadata=metadata,
                    paystub_id=stub_id_for(period_id, result.employee_id),
                    employee_id=result.employee_id,
                    payroll_period_id=period_id,
                    pay_date=period.pay_date,
                    net_pay=result.net_pay,
                )
            )
        events.append(
            PayrollProcessed(
                metadata=metadata,
                payroll_period_id=period_id,
                status=period.status,
                succeeded=len(report.succeeded),
                failed=len(report.failed),
                employee_count=totals.employee_count,
                total_gross_pay=totals.total_gross_pay,
                total_net_pay=totals.total_net_pay,
            )
        )
        await self.emitter.emit_all(events)
        return report

    async def _run_workers(
        self,
        state: _RunState,
        period: PayrollPeriod,
        config: PayrollConfig,
        targets: list[UUID],
        actor: Actor,
    ) -> None:
        semaphore = asyncio.Semaphore(self.settings.max_workers)
        window = PeriodWindow(
            period_start=period.period_start,
            period_end=period.period_end,
            pay_date=period.pay_date,
            period_id=period.payroll_period_id,
        )
        results = await asyncio.gather(
            *(
                self._process_employee(state, semaphore, period, window, config, emp, actor)
                for emp in targets
            ),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            raise errors[0]

    async def _process_employee(
        self,
        state: _RunState,
        semaphore: asyncio.Semaphore,
        period: PayrollPeriod,
        window: PeriodWindow,
        config: PayrollConfig,
        employee_id: UUID,
        actor: Actor,
    ) -> None:
        period_id = period.payroll_period_id
        async with semaphore:
            if state.stop_writes:
                state.skipped.append(employee_id)
                return

            try:
                result = await self._calculate_employee(window, config, employee_id)
            except RECOVERABLE_ERRORS as e:
                logger.warning(
                    "Payroll calculation failed for employee %s in period %s: %s",
                    employee_id,
                    period_id,
                    e.message,
                    exc_info=isinstance(e, CollaboratorError),
                )
                if state.stop_writes:
                    state.skipped.append(employee_id)
                    return
                await self._record_failure(state, period_id, employee_id, e.code, e.message)
                return
            except Exception:
                state.aborted = True
                raise

            if state.stop_writes:
                state.skipped.append(employee_id)
                return

            if result.has_warnings:
                logger.warning(
                    "Employee %s in period %s: %s",
                    employee_id,
                    period_id,
                    "; ".join(result.warnings),
                )

            try:
                written = await self.store.save_result(period, result, actor.user_id)
            except (StoreError, ConflictError):
                state.aborted = True
                raise

            state.succeeded.append(employee_id)
            if written:
                state.written.append(result)

    async def _calculate_employee(
        self, window: PeriodWindow, config: PayrollConfig, employee_id: UUID
    ) -> CalculationResult:
        try:
            compensation = await self._call(
                "compensation",
                self.collaborators.compensation.get_compensation_profile(employee_id),
            )
        except NotFoundError:
            compensation = None
        hours = await self._call(
            "time",
            self.collaborators.time.get_approved_hours(
                employee_id, window.period_start, window.period_end
            ),
        )
        prior = await self._call(
            "ytd",
            self.ytd_source.get_prior_ytd(
                employee_id, window.pay_date.year, window.period_start
            ),
        )
        return self.engine.calculate(compensation, hours, window, config, prior)

    async def _record_failure(
        self,
        state: _RunState,
        period_id: UUID,
        employee_id: UUID,
        error_type: str,
        message: str,
    ) -> None:
        try:
            await self.store.record_failure(period_id, employee_id, error_type, message)
        except StoreError:
            state.aborted = True
            raise
        state.failed.append(EmployeeFailure(employee_id, error_type, message))

    def _select_targets(
        self, roster: list[UUID], employee_ids: list[UUID] | None
    ) -> list[UUID]:
        if employee_ids is None:
            return list(roster)
        on_roster = set(roster)
        unknown = [emp for emp in employee_ids if emp not in on_roster]
        if unknown:
            raise InvalidInputError(
                f"{len(unknown)} employee(s) are not on the period roster",
                {"employee_ids": [str(emp) for emp in unknown]},
            )
        return list(dict.fromkeys(employee_ids))

    # === Approval / cancellation ===

    async def approve_period(self, period_id: UUID, actor: Actor) -> PayrollPeriod:
        """Complete a processed period; its stubs become paid and immutable."""
        self._require_admin(actor, "approve")

        async with self.locking.period_lock(period_id, "approve"):
            async with self.session_factory() as session:
                async with session.begin():
                    period = await self._get_period(session, period_id)
                    stubs = await self.store.list_period_stubs(session, period_id)
                    outcomes = await self.store.list_outcomes(session, period_id)

                    errors = PeriodStateMachine.validate_period_for_transition(
                        period, PeriodStatus.COMPLETED, outcomes, len(stubs)
                    )
                    pending = [s for s in stubs if s.status == PayStubStatus.PENDING]
                    if pending and not errors:
                        errors.append(f"{len(pending)} pay stub(s) were not fully processed")
                    if errors:
                        raise InvalidTransitionError(
                            period.status, PeriodStatus.COMPLETED, "; ".join(errors)
                        )

                    await self.store.advance_stub_status(
                        session, period_id, PayStubStatus.PAID.value
                    )
                    totals = await refresh_period_totals(session, period)
                    period.status = PeriodStatus.COMPLETED.value
                    period.approved_by = actor.user_id
                    period.approved_at = utcnow()

        logger.info("Approved payroll period %s", period_id)
        await self.emitter.emit(
            PayrollApproved(
                metadata=EventMetadata.create(actor_id=actor.user_id),
                payroll_period_id=period_id,
                employee_count=totals.employee_count,
                total_net_pay=totals.total_net_pay,
            )
        )
        return period

    async def cancel_period(self, period_id: UUID, actor: Actor) -> PayrollPeriod:
        """Cancel a draft or processing period.

        If a process run holds the period, it is asked to stop issuing writes
        and this call waits for it to drain before cancelling.
        """
        self._require_admin(actor, "cancel")

        active = self.locking.active_run(period_id)
        if active is not None:
            if active.operation != "process":
                raise ConflictError(
                    f"Payroll period {period_id} is busy with '{active.operation}'",
                    {"period_id": str(period_id), "operation": active.operation},
                )
            logger.info("Cancel requested for in-flight processing of period %s", period_id)
            active.request_cancel()
            await active.wait_drained()

        async with self.locking.period_lock(period_id, "cancel"):
            async with self.session_factory() as session:
                async with session.begin():
                    period = await self._get_period(session, period_id)
                    previous_status = period.status
                    PeriodStateMachine.validate_transition(
                        previous_status, PeriodStatus.CANCELLED
                    )
                    await refresh_period_totals(session, period)
                    period.status = PeriodStatus.CANCELLED.value
                    period.cancelled_by = actor.user_id
                    period.cancelled_at = utcnow()

        logger.info("Cancelled payroll period %s (was %s)", period_id, previous_status)
        await self.emitter.emit(
            PayrollCancelled(
                metadata=EventMetadata.create(actor_id=actor.user_id),
                payroll_period_id=period_id,
                previous_status=previous_status,
            )
        )
        return period

    # === Reads ===

    async def get_period(self, period_id: UUID) -> PayrollPeriod:
        async with self.session_factory() as session:
            return await self._get_period(session, period_id)

    async def list_periods(
        self,
        status: str | None = None,
        department_id: UUID | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[PayrollPeriod], int]:
        """Paginated periods, latest first."""
        query = select(PayrollPeriod)
        if status:
            query = query.where(PayrollPeriod.status == status)
        if department_id:
            query = query.where(PayrollPeriod.department_id == department_id)

        async with self.session_factory() as session:
            total = await session.scalar(select(func.count()).select_from(query.subquery())) or 0
            result = await session.execute(
                query.order_by(PayrollPeriod.period_start.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            return list(result.scalars().all()), total

    async def get_period_totals(self, period_id: UUID) -> PeriodTotals:
        period = await self.get_period(period_id)
        return PeriodTotals.from_period(period)

    async def get_pay_stub(
        self, employee_id: UUID, period_id: UUID, actor: Actor | None = None
    ) -> PayStub:
        """Stub of one employee for one period."""
        self._check_stub_access(actor, employee_id)
        async with self.session_factory() as session:
            await self._get_period(session, period_id)
            stub = await self.store.get_stub(session, employee_id, period_id)
        if stub is None:
            raise NotFoundError("Pay stub", f"for employee {employee_id} in period {period_id}")
        return stub

    async def get_pay_stub_by_id(self, paystub_id: UUID, actor: Actor | None = None) -> PayStub:
        async with self.session_factory() as session:
            stub = await self.store.get_stub_by_id(session, paystub_id)
        if stub is None:
            raise NotFoundError("Pay stub", paystub_id)
        self._check_stub_access(actor, stub.employee_id)
        return stub

    async def get_calculation(
        self, paystub_id: UUID, actor: Actor | None = None
    ) -> PayrollCalculation:
        stub = await self.get_pay_stub_by_id(paystub_id, actor)
        async with self.session_factory() as session:
            calculation = await self.store.get_calculation(session, stub.paystub_id)
        if calculation is None:
            raise NotFoundError("Payroll calculation", f"for pay stub {paystub_id}")
        return calculation

    async def list_pay_stubs(
        self,
        actor: Actor | None = None,
        period_id: UUID | None = None,
        employee_id: UUID | None = None,
        status: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[PayStub], int]:
        """Paginated stubs; employees only ever see their own."""
        if actor is not None and actor.is_self_service:
            if employee_id is not None and employee_id != actor.user_id:
                raise AccessDeniedError("You can only view your own pay stubs")
            employee_id = actor.user_id
        async with self.session_factory() as session:
            return await self.store.search(
                session, period_id, employee_id, status, page, page_size
            )

    # === Pay calendar ===

    async def get_current_period(
        self, actor: Actor, today: date | None = None
    ) -> PayrollPeriod | None:
        """Open period covering today, auto-created from the pay calendar if needed."""
        today = today or date.today()
        async with self.session_factory() as session:
            result = await session.execute(
                select(PayrollPeriod)
                .where(
                    PayrollPeriod.period_start <= today,
                    PayrollPeriod.period_end >= today,
                    PayrollPeriod.status.in_(
                        [PeriodStatus.DRAFT.value, PeriodStatus.PROCESSING.value]
                    ),
                )
                .order_by(PayrollPeriod.period_start.desc())
                .limit(1)
            )
            period = result.scalar_one_or_none()
        if period is not None:
            return period

        try:
            config = await self.active_payroll_config()
        except ConfigurationError as e:
            logger.warning("Cannot auto-create current payroll period: %s", e.message)
            return None
        if config.pay_day is None:
            return None

        period_start, period_end = pay_calendar.period_bounds(today, config.salary_cycle)
        pay_date = pay_calendar.pay_date_for(period_end, config.salary_cycle, config.pay_day)

        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(PayrollPeriod).where(
                        PayrollPeriod.period_start == period_start,
                        PayrollPeriod.period_end == period_end,
                        PayrollPeriod.department_id.is_(None),
                    )
                )
                existing = result.scalars().first()
                if existing is not None:
                    return existing
                period = PayrollPeriod(
                    period_start=period_start,
                    period_end=period_end,
                    pay_date=pay_date,
                    status=PeriodStatus.DRAFT.value,
                    created_by=actor.user_id,
                )
                session.add(period)

        logger.info(
            "Auto-created payroll period %s (%s to %s)",
            period.payroll_period_id,
            period_start,
            period_end,
        )
        return period

    async def next_pay_date(self, today: date | None = None) -> date | None:
        """Next pay date per the configured cycle, or None if no pay day is set."""
        config = await self.active_payroll_config()
        if config.pay_day is None:
            return None
        return pay_calendar.next_pay_date(
            today or date.today(), config.salary_cycle, config.pay_day
        )

    # === Helpers ===

    async def _get_period(self, session: AsyncSession, period_id: UUID) -> PayrollPeriod:
        period = await session.get(PayrollPeriod, period_id)
        if period is None:
            raise NotFoundError("Payroll period", period_id)
        return period

    async def _set_status(self, period_id: UUID, to_status: str) -> PayrollPeriod:
        async with self.session_factory() as session:
            async with session.begin():
                period = await self._get_period(session, period_id)
                from_status = period.status
                PeriodStateMachine.validate_transition(from_status, to_status)
                period.status = to_status
        logger.info("Payroll period %s: %s -> %s", period_id, from_status, to_status)
        return period

    async def active_payroll_config(self) -> PayrollConfig:
        """Current payroll rules from the Settings Provider."""
        return await self._call(
            "settings", self.collaborators.settings.get_active_payroll_config()
        )

    async def _call(self, source: str, awaitable: Awaitable[T]) -> T:
        """Await a collaborator call under the configured timeout.

        Domain errors pass through; anything else (transport, client or
        parsing errors) is wrapped in ``CollaboratorError``.
        """
        timeout = self.settings.collaborator_timeout_seconds
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            raise CollaboratorTimeoutError(source, timeout) from None
        except PayrollError:
            raise
        except Exception as e:
            raise CollaboratorError(source, e) from e

    def _require_admin(self, actor: Actor | None, action: str) -> None:
        if actor is None or not actor.is_admin:
            raise AccessDeniedError(
                f"Only administrators may {action} payroll periods",
                {"role": actor.role if actor else None},
            )

    def _check_stub_access(self, actor: Actor | None, employee_id: UUID) -> None:
        if actor is not None and actor.is_self_service and actor.user_id != employee_id:
            raise AccessDeniedError("You can only view your own pay stubs")

    @staticmethod
    def _validate_dates(period_start: date, period_end: date, pay_date: date) -> None:
        if period_end < period_start:
            raise InvalidInputError(
                "Period end date must not be before period start date",
                {"period_start": str(period_start), "period_end": str(period_end)},
            )
        if pay_date < period_end:
            raise InvalidInputError(
                "Pay date must not be before period end date",
                {"period_end": str(period_end), "pay_date": str(pay_date)},
            )
