"""Tests for the payroll period state machine."""

from datetime import date
from types import SimpleNamespace

import pytest

from paystub_engine.errors import ConflictError
from paystub_engine.services.state_machine import (
    InvalidTransitionError,
    PayStubStatus,
    PeriodStateMachine,
    PeriodStatus,
)


def period(status: str) -> SimpleNamespace:
    return SimpleNamespace(
        status=status,
        period_start=date(2026, 3, 2),
        period_end=date(2026, 3, 8),
    )


class TestPeriodStateMachine:
    """Tests for PeriodStateMachine."""

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (PeriodStatus.DRAFT, PeriodStatus.PROCESSING),
            (PeriodStatus.DRAFT, PeriodStatus.CANCELLED),
            (PeriodStatus.PROCESSING, PeriodStatus.PROCESSING),
            (PeriodStatus.PROCESSING, PeriodStatus.COMPLETED),
            (PeriodStatus.PROCESSING, PeriodStatus.CANCELLED),
        ],
    )
    def test_valid_transitions(self, from_status, to_status):
        """Allowed transitions validate."""
        assert PeriodStateMachine.can_transition(from_status, to_status)
        PeriodStateMachine.validate_transition(from_status, to_status)

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (PeriodStatus.DRAFT, PeriodStatus.COMPLETED),
            (PeriodStatus.COMPLETED, PeriodStatus.PROCESSING),
            (PeriodStatus.COMPLETED, PeriodStatus.CANCELLED),
            (PeriodStatus.CANCELLED, PeriodStatus.PROCESSING),
            (PeriodStatus.CANCELLED, PeriodStatus.DRAFT),
        ],
    )
    def test_invalid_transitions(self, from_status, to_status):
        """Disallowed transitions raise a conflict."""
        assert not PeriodStateMachine.can_transition(from_status, to_status)
        with pytest.raises(InvalidTransitionError) as exc_info:
            PeriodStateMachine.validate_transition(from_status, to_status)
        assert isinstance(exc_info.value, ConflictError)

    def test_plain_strings_accepted(self):
        """Statuses read from the database are plain strings."""
        assert PeriodStateMachine.can_transition("processing", "completed")
        assert not PeriodStateMachine.can_transition("completed", "processing")

    def test_terminal_reason(self):
        """Transitions out of terminal states say so."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            PeriodStateMachine.validate_transition("completed", "cancelled")

        assert "terminal" in str(exc_info.value)
        assert exc_info.value.details == {
            "from_status": "completed",
            "to_status": "cancelled",
        }

    def test_terminal_states(self):
        """Completed and cancelled are terminal."""
        assert PeriodStateMachine.is_terminal(PeriodStatus.COMPLETED)
        assert PeriodStateMachine.is_terminal(PeriodStatus.CANCELLED)
        assert not PeriodStateMachine.is_terminal(PeriodStatus.PROCESSING)

    def test_definition_only_editable_in_draft(self):
        """Dates and scope are editable only while draft."""
        assert PeriodStateMachine.can_modify_definition("draft")
        assert not PeriodStateMachine.can_modify_definition("processing")

    def test_stub_writes(self):
        """Stubs may change only while the period is open."""
        assert PeriodStateMachine.can_write_stubs("processing")
        assert not PeriodStateMachine.can_write_stubs("completed")


class TestStubStatus:
    """Tests for stub status ordering."""

    def test_stubs_only_move_forward(self):
        """pending -> processing -> paid, never backwards."""
        assert PeriodStateMachine.can_advance_stub(PayStubStatus.PENDING, PayStubStatus.PAID)
        assert PeriodStateMachine.can_advance_stub(
            PayStubStatus.PROCESSING, PayStubStatus.PROCESSING
        )
        assert not PeriodStateMachine.can_advance_stub(
            PayStubStatus.PAID, PayStubStatus.PROCESSING
        )


class TestValidatePeriodForTransition:
    """Tests for approval guards."""

    def test_approve_without_stubs(self):
        """A period without stubs cannot be approved."""
        errors = PeriodStateMachine.validate_period_for_transition(
            period("processing"), PeriodStatus.COMPLETED, [], 0
        )

        assert errors == ["Payroll period has no pay stubs"]

    def test_approve_with_failed_employees(self):
        """Failed employees block approval."""
        outcomes = [SimpleNamespace(status="calculated"), SimpleNamespace(status="error")]

        errors = PeriodStateMachine.validate_period_for_transition(
            period("processing"), PeriodStatus.COMPLETED, outcomes, 1
        )

        assert errors == ["1 employee(s) have calculation errors"]

    def test_approve_clean_period(self):
        """A processed period with stubs and no failures may be approved."""
        errors = PeriodStateMachine.validate_period_for_transition(
            period("processing"),
            PeriodStatus.COMPLETED,
            [SimpleNamespace(status="calculated")],
            1,
        )

        assert errors == []

    def test_approve_from_draft(self):
        """Drafts cannot be approved."""
        errors = PeriodStateMachine.validate_period_for_transition(
            period("draft"), PeriodStatus.COMPLETED, [], 3
        )

        assert len(errors) == 1
        assert "Cannot transition" in errors[0]
