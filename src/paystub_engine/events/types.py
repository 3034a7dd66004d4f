"""Domain event types for payroll period processing.

All events are:
- Immutable (frozen dataclasses)
- Typed with explicit payloads
- Traceable via metadata
- Serializable for notifier and audit sinks

Events are emitted only after the transaction that caused them commits.
Delivery (email, in-app notification, audit store) is up to the handlers.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from paystub_engine.models.base import utcnow


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    PAYROLL = "payroll"
    PAYSTUB = "paystub"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    correlation_id: UUID  # Links events of one operation
    actor_id: UUID | None
    actor_type: str  # 'user', 'system'
    source_service: str
    version: int = 1

    @classmethod
    def create(
        cls,
        correlation_id: UUID | None = None,
        actor_id: UUID | None = None,
        actor_type: str = "user",
        source_service: str = "payroll_period",
    ) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=utcnow(),
            correlation_id=correlation_id or uuid4(),
            actor_id=actor_id,
            actor_type=actor_type,
            source_service=source_service,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        """Event category for filtering."""
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        data = asdict(self)
        data["event_type"] = self.event_type
        return _serialize_dict(data)

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


def _serialize_dict(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize_dict(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_serialize_dict(v) for v in obj]
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, datetime):
        return obj.isoformat()
    elif isinstance(obj, date):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, Enum):
        return obj.value
    return obj


# =============================================================================
# Payroll Period Events
# =============================================================================


@dataclass(frozen=True)
class PayrollProcessed(DomainEvent):
    """A process run finished and the period totals were refreshed."""

    payroll_period_id: UUID
    status: str
    succeeded: int
    failed: int
    employee_count: int
    total_gross_pay: Decimal
    total_net_pay: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYROLL


@dataclass(frozen=True)
class PayrollApproved(DomainEvent):
    """Period approved; its stubs are now paid and immutable."""

    payroll_period_id: UUID
    employee_count: int
    total_net_pay: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYROLL


@dataclass(frozen=True)
class PayrollCancelled(DomainEvent):
    """Period cancelled from draft or processing."""

    payroll_period_id: UUID
    previous_status: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYROLL


# =============================================================================
# Pay Stub Events
# =============================================================================


@dataclass(frozen=True)
class PayStubAvailable(DomainEvent):
    """A pay stub was written or replaced for an employee."""

    paystub_id: UUID
    employee_id: UUID
    payroll_period_id: UUID
    pay_date: date
    net_pay: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYSTUB
