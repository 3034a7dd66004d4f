"""Injected data sources the period service reads from.

These are the seams to the rest of the HR portal (employee records,
timesheets, settings). Each is a Protocol; the in-memory implementations
below back the tests and local runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Protocol, runtime_checkable
from uuid import UUID

from paystub_engine.calculators.types import (
    CompensationProfile,
    HoursWorked,
    PayrollConfig,
    YtdFigures,
)
from paystub_engine.errors import ConfigurationError


@runtime_checkable
class RosterSource(Protocol):
    """Active employees eligible for a payroll period."""

    async def list_roster(self, department_id: UUID | None) -> list[UUID]: ...


@runtime_checkable
class CompensationSource(Protocol):
    """Compensation profiles; ``None`` means not found."""

    async def get_compensation_profile(
        self, employee_id: UUID
    ) -> CompensationProfile | None: ...


@runtime_checkable
class TimeSource(Protocol):
    """Approved worked hours for a date range."""

    async def get_approved_hours(
        self, employee_id: UUID, period_start: date, period_end: date
    ) -> HoursWorked: ...


@runtime_checkable
class SettingsProvider(Protocol):
    """Active payroll configuration."""

    async def get_active_payroll_config(self) -> PayrollConfig: ...


@runtime_checkable
class YtdSource(Protocol):
    """Prior year-to-date figures."""

    async def get_prior_ytd(
        self, employee_id: UUID, year: int, before_date: date
    ) -> YtdFigures: ...


@dataclass
class Collaborators:
    """Bundle of injected sources.

    ``ytd`` defaults to deriving figures from paid stubs in the store.
    """

    roster: RosterSource
    compensation: CompensationSource
    time: TimeSource
    settings: SettingsProvider
    ytd: YtdSource | None = None


# ===== In-memory implementations =====


@dataclass
class InMemoryDirectory:
    """Employee directory held in memory: roster, compensation and hours."""

    profiles: dict[UUID, CompensationProfile] = field(default_factory=dict)
    departments: dict[UUID, UUID | None] = field(default_factory=dict)
    hours: dict[UUID, HoursWorked] = field(default_factory=dict)
    roster_extra: list[UUID] = field(default_factory=list)

    def add_employee(
        self,
        profile: CompensationProfile | None,
        employee_id: UUID | None = None,
        hours: HoursWorked | None = None,
        department_id: UUID | None = None,
    ) -> UUID:
        """Register an employee; a ``None`` profile models a missing record."""
        if profile is not None:
            employee_id = profile.employee_id
            self.profiles[employee_id] = profile
        if employee_id is None:
            raise ValueError("employee_id is required when profile is None")
        self.departments[employee_id] = department_id
        self.hours[employee_id] = hours or HoursWorked()
        return employee_id

    def remove_employee(self, employee_id: UUID) -> None:
        self.profiles.pop(employee_id, None)
        self.departments.pop(employee_id, None)
        self.hours.pop(employee_id, None)

    def set_hours(self, employee_id: UUID, hours: HoursWorked) -> None:
        self.hours[employee_id] = hours

    async def list_roster(self, department_id: UUID | None) -> list[UUID]:
        return sorted(
            (
                emp_id
                for emp_id, dept in self.departments.items()
                if department_id is None or dept == department_id
            ),
            key=str,
        )

    async def get_compensation_profile(
        self, employee_id: UUID
    ) -> CompensationProfile | None:
        return self.profiles.get(employee_id)

    async def get_approved_hours(
        self, employee_id: UUID, period_start: date, period_end: date
    ) -> HoursWorked:
        return self.hours.get(employee_id, HoursWorked())


class StaticSettingsProvider:
    """Serves a fixed configuration, optionally swapped at runtime."""

    def __init__(self, config: PayrollConfig | None):
        self.config = config

    async def get_active_payroll_config(self) -> PayrollConfig:
        if self.config is None:
            raise ConfigurationError("No active payroll configuration")
        return self.config


def in_memory_collaborators(
    directory: InMemoryDirectory, config: PayrollConfig | None
) -> Collaborators:
    """Wire an in-memory directory and a static config together."""
    return Collaborators(
        roster=directory,
        compensation=directory,
        time=directory,
        settings=StaticSettingsProvider(config),
    )
