"""Pytest fixtures for paystub engine tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from paystub_engine.calculators.types import (
    AdjustmentRule,
    OvertimeRules,
    PayrollConfig,
    PeriodWindow,
    TaxRates,
)
from paystub_engine.config import Settings
from paystub_engine.database import create_session_factory, get_engine
from paystub_engine.events import DomainEvent, EventEmitter
from paystub_engine.models import Base
from paystub_engine.services.collaborators import (
    Collaborators,
    InMemoryDirectory,
    in_memory_collaborators,
)
from paystub_engine.services.locking_service import PeriodLockRegistry
from paystub_engine.services.period_service import Actor, PayrollPeriodService

# One week, Monday to Sunday
WEEK_START = date(2026, 3, 2)
WEEK_END = date(2026, 3, 8)
WEEK_PAY_DATE = date(2026, 3, 13)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}",
        engine_version="1.0.0",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
        max_workers=4,
        collaborator_timeout_seconds=5.0,
    )


@pytest.fixture
async def engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine with all tables."""
    engine = get_engine(test_settings.database_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def week() -> PeriodWindow:
    return PeriodWindow(
        period_start=WEEK_START,
        period_end=WEEK_END,
        pay_date=WEEK_PAY_DATE,
        period_id=uuid4(),
    )


@pytest.fixture
def hourly_config() -> PayrollConfig:
    """7.65% flat tax, 1.5x overtime over 40h/week, $50 health benefit."""
    return PayrollConfig(
        overtime=OvertimeRules(
            enabled=True,
            multiplier=Decimal("1.5"),
            weekly_threshold=Decimal("40"),
        ),
        deductions=(
            AdjustmentRule(name="Health benefit", kind="fixed", value=Decimal("50")),
        ),
        taxes=TaxRates(federal=Decimal("0.0765")),
    )


@pytest.fixture
def salaried_config() -> PayrollConfig:
    """22% flat tax, nothing else."""
    return PayrollConfig(taxes=TaxRates(federal=Decimal("0.22")))


@pytest.fixture
def directory() -> InMemoryDirectory:
    return InMemoryDirectory()


@pytest.fixture
def collaborators(directory: InMemoryDirectory, hourly_config: PayrollConfig) -> Collaborators:
    return in_memory_collaborators(directory, hourly_config)


@pytest.fixture
def registry() -> PeriodLockRegistry:
    """Lock registry isolated from other tests."""
    return PeriodLockRegistry()


@pytest.fixture
def events() -> list[DomainEvent]:
    return []


@pytest.fixture
def emitter(events: list[DomainEvent]) -> EventEmitter:
    emitter = EventEmitter()
    emitter.on_all(events.append)
    return emitter


@pytest.fixture
def service(
    session_factory: async_sessionmaker[AsyncSession],
    collaborators: Collaborators,
    test_settings: Settings,
    emitter: EventEmitter,
    registry: PeriodLockRegistry,
) -> PayrollPeriodService:
    return PayrollPeriodService(
        session_factory,
        collaborators,
        settings=test_settings,
        emitter=emitter,
        registry=registry,
    )


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=uuid4(), role="admin")


@pytest.fixture
def clerk() -> Actor:
    return Actor(user_id=uuid4(), role="manager")
