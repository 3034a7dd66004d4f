"""ORM models."""

from paystub_engine.models.base import Base, TimestampMixin
from paystub_engine.models.payroll import (
    PayrollCalculation,
    PayrollPeriod,
    PayStub,
    PeriodEmployee,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "PayrollCalculation",
    "PayrollPeriod",
    "PayStub",
    "PeriodEmployee",
]
