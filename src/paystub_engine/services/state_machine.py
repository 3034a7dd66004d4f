"""Payroll period state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from paystub_engine.errors import ConflictError

if TYPE_CHECKING:
    from paystub_engine.models import PayrollPeriod, PeriodEmployee


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    DRAFT = "draft"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PayStubStatus(str, Enum):
    """Pay stub status values, driven by the owning period."""

    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"


class InvalidTransitionError(ConflictError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, {"from_status": from_status, "to_status": to_status})


class PeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - draft → processing (process)
    - processing → processing (re-run)
    - processing → completed (approve)
    - draft → cancelled
    - processing → cancelled

    completed and cancelled are terminal.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.DRAFT: [PeriodStatus.PROCESSING, PeriodStatus.CANCELLED],
        PeriodStatus.PROCESSING: [
            PeriodStatus.PROCESSING,
            PeriodStatus.COMPLETED,
            PeriodStatus.CANCELLED,
        ],
        PeriodStatus.COMPLETED: [],
        PeriodStatus.CANCELLED: [],
    }

    TERMINAL = {PeriodStatus.COMPLETED, PeriodStatus.CANCELLED}

    # Statuses where stubs may be written or replaced
    STUBS_MUTABLE = {PeriodStatus.DRAFT, PeriodStatus.PROCESSING}

    # Statuses where dates and scope may still change
    DEFINITION_MUTABLE = {PeriodStatus.DRAFT}

    STUB_ORDER = [PayStubStatus.PENDING, PayStubStatus.PROCESSING, PayStubStatus.PAID]

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            reason = "period is in a terminal state" if cls.is_terminal(from_status) else None
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def can_write_stubs(cls, status: str) -> bool:
        """Check if stubs may be created or replaced in this status."""
        return status in cls.STUBS_MUTABLE

    @classmethod
    def can_modify_definition(cls, status: str) -> bool:
        """Check if period dates/scope can be edited."""
        return status in cls.DEFINITION_MUTABLE

    @classmethod
    def can_advance_stub(cls, from_status: str, to_status: str) -> bool:
        """Stub statuses only move forward."""
        return cls.STUB_ORDER.index(to_status) >= cls.STUB_ORDER.index(from_status)

    @classmethod
    def validate_period_for_transition(
        cls,
        period: PayrollPeriod,
        to_status: str,
        employees: list[PeriodEmployee] | None = None,
        stub_count: int = 0,
    ) -> list[str]:
        """Validate a period for a specific transition, returning any errors.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []
        from_status = period.status

        if not cls.can_transition(from_status, to_status):
            errors.append(f"Cannot transition from '{from_status}' to '{to_status}'")
            return errors

        if to_status == PeriodStatus.COMPLETED:
            if stub_count == 0:
                errors.append("Payroll period has no pay stubs")

            failed = [e for e in (employees or []) if e.status == "error"]
            if failed:
                errors.append(f"{len(failed)} employee(s) have calculation errors")

        return errors
