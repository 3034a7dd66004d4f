"""Payroll period services."""

from paystub_engine.services.state_machine import (
    InvalidTransitionError,
    PayStubStatus,
    PeriodStateMachine,
    PeriodStatus,
)
from paystub_engine.services.locking_service import LockingService, PeriodLockRegistry
from paystub_engine.services.pay_stub_store import PayStubStore
from paystub_engine.services.period_service import (
    Actor,
    EmployeeFailure,
    PayrollPeriodService,
    ProcessingReport,
)

__all__ = [
    "PeriodStateMachine",
    "PeriodStatus",
    "PayStubStatus",
    "InvalidTransitionError",
    "LockingService",
    "PeriodLockRegistry",
    "PayStubStore",
    "PayrollPeriodService",
    "Actor",
    "EmployeeFailure",
    "ProcessingReport",
]
