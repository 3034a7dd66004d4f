"""Per-period mutual exclusion for process/approve/cancel."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from paystub_engine.database import (
    acquire_advisory_lock,
    is_postgres,
    release_advisory_lock,
)
from paystub_engine.errors import ConflictError

logger = logging.getLogger(__name__)


@dataclass
class PeriodRun:
    """A mutating operation currently holding a period."""

    period_id: UUID
    operation: str
    cancel_requested: asyncio.Event = field(default_factory=asyncio.Event)
    drained: asyncio.Event = field(default_factory=asyncio.Event)

    def request_cancel(self) -> None:
        self.cancel_requested.set()

    @property
    def is_cancel_requested(self) -> bool:
        return self.cancel_requested.is_set()

    async def wait_drained(self) -> None:
        await self.drained.wait()


class PeriodLockRegistry:
    """In-process registry of held periods.

    Acquisition never waits: a second caller for the same period gets a
    ConflictError immediately. Different periods never block each other.
    """

    def __init__(self) -> None:
        self._runs: dict[UUID, PeriodRun] = {}

    def active(self, period_id: UUID) -> PeriodRun | None:
        return self._runs.get(period_id)

    def acquire(self, period_id: UUID, operation: str) -> PeriodRun:
        current = self._runs.get(period_id)
        if current is not None:
            raise ConflictError(
                f"Payroll period {period_id} is busy with '{current.operation}'",
                {"period_id": str(period_id), "operation": current.operation},
            )
        run = PeriodRun(period_id=period_id, operation=operation)
        self._runs[period_id] = run
        return run

    def release(self, run: PeriodRun) -> None:
        if self._runs.get(run.period_id) is run:
            del self._runs[run.period_id]
        run.drained.set()


_default_registry = PeriodLockRegistry()


def default_registry() -> PeriodLockRegistry:
    """Process-wide registry shared by service instances."""
    return _default_registry


class LockingService:
    """Serializes mutating operations per payroll period.

    Two layers:
    1. The in-process registry (fail fast, no waiting)
    2. A PostgreSQL advisory lock held on a dedicated connection, so
       several API workers cannot run the same period at once
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: PeriodLockRegistry | None = None,
    ):
        self.session_factory = session_factory
        self.registry = registry or default_registry()

    @asynccontextmanager
    async def period_lock(self, period_id: UUID, operation: str) -> AsyncIterator[PeriodRun]:
        """Hold the period for the duration of the block."""
        run = self.registry.acquire(period_id, operation)
        try:
            async with self.session_factory() as lock_session:
                held = await self._acquire_db_lock(lock_session, period_id)
                try:
                    logger.debug("Period %s locked for %s", period_id, operation)
                    yield run
                finally:
                    if held:
                        await release_advisory_lock(lock_session, str(period_id))
                        await lock_session.commit()
        finally:
            self.registry.release(run)

    async def _acquire_db_lock(self, session: AsyncSession, period_id: UUID) -> bool:
        if not is_postgres(session):
            return False
        if not await acquire_advisory_lock(session, str(period_id)):
            raise ConflictError(
                f"Payroll period {period_id} is locked by another worker",
                {"period_id": str(period_id)},
            )
        return True

    def active_run(self, period_id: UUID) -> PeriodRun | None:
        return self.registry.active(period_id)
