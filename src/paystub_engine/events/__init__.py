"""Payroll domain events package.

This package provides:
- Typed domain events for period and pay stub lifecycle
- Event emitter for publishing events to notifier/audit sinks
"""

from paystub_engine.events.emitter import EventBatch, EventEmitter, HandlerRegistration
from paystub_engine.events.types import (
    DomainEvent,
    EventCategory,
    EventMetadata,
    PayrollApproved,
    PayrollCancelled,
    PayrollProcessed,
    PayStubAvailable,
)

__all__ = [
    # Base
    "DomainEvent",
    "EventMetadata",
    "EventCategory",
    # Payroll Events
    "PayrollProcessed",
    "PayrollApproved",
    "PayrollCancelled",
    # Pay Stub Events
    "PayStubAvailable",
    # Emitter
    "EventEmitter",
    "EventBatch",
    "HandlerRegistration",
]
