"""Type definitions for the calculation pipeline."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

ZERO = Decimal("0")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Convert a config or input value to Decimal without going through float."""
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class SalaryType(str, Enum):
    """How an employee's base compensation is expressed."""

    MONTHLY = "monthly"
    HOURLY = "hourly"
    ANNUAL = "annual"


class SalaryCycle(str, Enum):
    """Pay frequency configured for the organization."""

    MONTHLY = "monthly"
    SEMI_MONTHLY = "semi-monthly"
    BI_WEEKLY = "bi-weekly"
    WEEKLY = "weekly"

    @property
    def periods_per_year(self) -> int:
        return {
            SalaryCycle.MONTHLY: 12,
            SalaryCycle.SEMI_MONTHLY: 24,
            SalaryCycle.BI_WEEKLY: 26,
            SalaryCycle.WEEKLY: 52,
        }[self]


class AmountKind(str, Enum):
    """Bonus/deduction amount kinds."""

    FIXED = "fixed"
    PERCENTAGE = "percentage"


@dataclass(frozen=True)
class CompensationProfile:
    """Read-only projection of an employee record used for pricing."""

    employee_id: UUID
    salary_type: str
    base_salary: Decimal | None = None
    hourly_rate: Decimal | None = None
    role: str | None = None


@dataclass(frozen=True)
class HoursWorked:
    """Approved hours for a date range."""

    regular: Decimal = ZERO
    overtime: Decimal = ZERO
    double_time: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.regular + self.overtime + self.double_time


@dataclass(frozen=True)
class YtdFigures:
    """Cumulative year-to-date figures."""

    gross: Decimal = ZERO
    net: Decimal = ZERO
    taxes: Decimal = ZERO

    def __add__(self, other: YtdFigures) -> YtdFigures:
        return YtdFigures(
            gross=self.gross + other.gross,
            net=self.net + other.net,
            taxes=self.taxes + other.taxes,
        )


@dataclass(frozen=True)
class PeriodWindow:
    """Date range being priced."""

    period_start: date
    period_end: date
    pay_date: date
    period_id: UUID | None = None

    @property
    def days(self) -> int:
        return (self.period_end - self.period_start).days + 1


# ===== Payroll configuration =====


@dataclass(frozen=True)
class OvertimeRules:
    """Overtime configuration."""

    enabled: bool = True
    multiplier: Decimal = Decimal("1.5")
    weekly_threshold: Decimal = Decimal("40")
    double_time_multiplier: Decimal = Decimal("2")


@dataclass(frozen=True)
class AdjustmentRule:
    """A configured bonus/allowance or deduction.

    ``kind`` is kept as a plain string so an unknown value survives loading
    and is rejected by the engine as a configuration error.
    """

    name: str
    kind: str
    value: Decimal
    enabled: bool = True
    rule_id: str | None = None
    category: str = "bonus"  # bonus | allowance (bonuses only)
    mandatory: bool = False  # deductions only
    applicable_roles: tuple[str, ...] = ()

    def applies_to(self, role: str | None) -> bool:
        if not self.applicable_roles:
            return True
        return role is not None and role in self.applicable_roles


@dataclass(frozen=True)
class TaxRates:
    """Flat tax rates, each a fraction of gross pay."""

    federal: Decimal = ZERO
    state: Decimal = ZERO
    local: Decimal = ZERO
    social_security: Decimal = ZERO
    medicare: Decimal = ZERO

    def items(self) -> list[tuple[str, Decimal]]:
        return [
            ("federal", self.federal),
            ("state", self.state),
            ("local", self.local),
            ("social_security", self.social_security),
            ("medicare", self.medicare),
        ]


@dataclass(frozen=True)
class PayrollConfig:
    """Versioned payroll configuration snapshot.

    Passed explicitly into the engine and stored with every calculation so
    historical stubs stay reproducible after the settings change.
    """

    version: str = "1"
    salary_cycle: SalaryCycle = SalaryCycle.MONTHLY
    pay_day: int | None = None
    overtime: OvertimeRules = field(default_factory=OvertimeRules)
    bonuses: tuple[AdjustmentRule, ...] = ()
    deductions: tuple[AdjustmentRule, ...] = ()
    taxes: TaxRates = field(default_factory=TaxRates)
    social_security_wage_base: Decimal | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PayrollConfig:
        """Build a config from a settings document."""
        overtime = data.get("overtime_rules") or {}
        taxes = data.get("tax_settings") or {}
        wage_base = data.get("social_security_wage_base")

        return cls(
            version=str(data.get("version", "1")),
            salary_cycle=SalaryCycle(data.get("salary_cycle", SalaryCycle.MONTHLY.value)),
            pay_day=data.get("pay_day"),
            overtime=OvertimeRules(
                enabled=bool(overtime.get("enabled", True)),
                multiplier=to_decimal(overtime.get("rate"), Decimal("1.5")),
                weekly_threshold=to_decimal(overtime.get("threshold"), Decimal("40")),
                double_time_multiplier=to_decimal(
                    overtime.get("double_time_rate"), Decimal("2")
                ),
            ),
            bonuses=tuple(_rule_from_dict(b) for b in data.get("bonuses", [])),
            deductions=tuple(_rule_from_dict(d) for d in data.get("deductions", [])),
            taxes=TaxRates(
                federal=to_decimal(taxes.get("federal_rate")),
                state=to_decimal(taxes.get("state_rate")),
                local=to_decimal(taxes.get("local_rate")),
                social_security=to_decimal(taxes.get("social_security_rate")),
                medicare=to_decimal(taxes.get("medicare_rate")),
            ),
            social_security_wage_base=(
                to_decimal(wage_base) if wage_base is not None else None
            ),
        )

    def snapshot(self) -> dict[str, Any]:
        """Canonical JSON-safe dict of the rules in effect."""
        return {
            "version": self.version,
            "salary_cycle": self.salary_cycle.value,
            "pay_day": self.pay_day,
            "overtime_rules": {
                "enabled": self.overtime.enabled,
                "rate": str(self.overtime.multiplier),
                "threshold": str(self.overtime.weekly_threshold),
                "double_time_rate": str(self.overtime.double_time_multiplier),
            },
            "bonuses": [_rule_to_dict(b) for b in self.bonuses],
            "deductions": [_rule_to_dict(d) for d in self.deductions],
            "tax_settings": {
                f"{name}_rate": str(rate) for name, rate in self.taxes.items()
            },
            "social_security_wage_base": (
                str(self.social_security_wage_base)
                if self.social_security_wage_base is not None
                else None
            ),
        }

    def fingerprint(self) -> str:
        """Stable hash of the snapshot."""
        json_str = json.dumps(self.snapshot(), sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]


def _rule_from_dict(data: dict[str, Any]) -> AdjustmentRule:
    return AdjustmentRule(
        name=data.get("name", ""),
        kind=data.get("type", ""),
        value=to_decimal(data.get("value")),
        enabled=bool(data.get("enabled", True)),
        rule_id=data.get("id"),
        category=data.get("category", "bonus"),
        mandatory=bool(data.get("mandatory", False)),
        applicable_roles=tuple(data.get("applicable_roles") or ()),
    )


def _rule_to_dict(rule: AdjustmentRule) -> dict[str, Any]:
    return {
        "id": rule.rule_id,
        "name": rule.name,
        "type": rule.kind,
        "value": str(rule.value),
        "enabled": rule.enabled,
        "category": rule.category,
        "mandatory": rule.mandatory,
        "applicable_roles": list(rule.applicable_roles),
    }


# ===== Calculation output =====


class LineCategory(str, Enum):
    """Calculation line categories."""

    EARNING = "EARNING"
    BONUS = "BONUS"
    ALLOWANCE = "ALLOWANCE"
    TAX = "TAX"
    BENEFIT = "BENEFIT"
    DEDUCTION = "DEDUCTION"


@dataclass
class LineItem:
    """A priced line, rounded to cents when built."""

    category: LineCategory
    name: str
    amount: Decimal
    kind: str | None = None
    value: Decimal | None = None
    configured_amount: Decimal | None = None  # set when capped

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "amount": str(self.amount)}
        if self.kind is not None:
            data["type"] = self.kind
        if self.value is not None:
            data["value"] = str(self.value)
        if self.configured_amount is not None:
            data["configured_amount"] = str(self.configured_amount)
        return data


@dataclass
class CalculationResult:
    """Priced result for one employee in one period."""

    employee_id: UUID
    calculation_id: UUID
    hours: HoursWorked
    base_salary: Decimal
    hourly_rate: Decimal
    overtime_rate: Decimal
    regular_pay: Decimal
    overtime_pay: Decimal
    double_time_pay: Decimal
    bonuses: list[LineItem]
    allowances: list[LineItem]
    gross_pay: Decimal
    taxes: list[LineItem]
    total_taxes: Decimal
    benefits: list[LineItem]
    other_deductions: list[LineItem]
    total_deductions: Decimal
    net_pay: Decimal
    ytd: YtdFigures
    warnings: list[str]
    calculation_version: str
    rules: dict[str, Any]
    rules_fingerprint: str
    inputs_fingerprint: str

    @property
    def total_earnings(self) -> Decimal:
        return self.gross_pay

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def taxes_breakdown(self) -> dict[str, str]:
        data = {line.name: str(line.amount) for line in self.taxes}
        data["total"] = str(self.total_taxes)
        return data
