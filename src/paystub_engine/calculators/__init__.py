"""Payroll calculation engine."""

from paystub_engine.calculators.engine import PayrollEngine
from paystub_engine.calculators.line_builder import LineItemBuilder
from paystub_engine.calculators.tax_calculator import TaxCalculator
from paystub_engine.calculators.types import (
    AdjustmentRule,
    CalculationResult,
    CompensationProfile,
    HoursWorked,
    OvertimeRules,
    PayrollConfig,
    PeriodWindow,
    SalaryCycle,
    SalaryType,
    TaxRates,
    YtdFigures,
)

__all__ = [
    "PayrollEngine",
    "LineItemBuilder",
    "TaxCalculator",
    "AdjustmentRule",
    "CalculationResult",
    "CompensationProfile",
    "HoursWorked",
    "OvertimeRules",
    "PayrollConfig",
    "PeriodWindow",
    "SalaryCycle",
    "SalaryType",
    "TaxRates",
    "YtdFigures",
]
