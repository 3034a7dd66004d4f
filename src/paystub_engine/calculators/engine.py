"""Payroll calculation engine."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from paystub_engine.calculators.line_builder import LineItemBuilder
from paystub_engine.calculators.tax_calculator import TaxCalculator
from paystub_engine.calculators.types import (
    AmountKind,
    CalculationResult,
    CompensationProfile,
    HoursWorked,
    LineCategory,
    LineItem,
    PayrollConfig,
    PeriodWindow,
    SalaryType,
    YtdFigures,
    ZERO,
)
from paystub_engine.errors import ConfigurationError, InvalidInputError

SEVEN = Decimal("7")
KNOWN_KINDS = {k.value for k in AmountKind}
BONUS_CATEGORIES = {"bonus": LineCategory.BONUS, "allowance": LineCategory.ALLOWANCE}


@dataclass(frozen=True)
class _SplitHours:
    regular: Decimal
    overtime: Decimal
    double_time: Decimal


class PayrollEngine:
    """Pure payroll calculation engine.

    Calculation pipeline (stable order per employee):
    1) Validate compensation and hours
    2) Split hours against the prorated overtime threshold
    3) Regular pay (hours × rate, or salary for the period)
    4) Overtime and double-time pay
    5) Bonuses and allowances against earnings before bonuses
    6) Gross pay
    7) Taxes, each applied independently to gross
    8) Benefits and other deductions against gross
    9) Cap deductions at gross, net pay, year-to-date

    No I/O and no clock: identical arguments give identical results.
    """

    def __init__(self, engine_version: str = "1.0.0"):
        self.engine_version = engine_version

    def calculate(
        self,
        compensation: CompensationProfile | None,
        hours_worked: HoursWorked,
        period: PeriodWindow,
        config: PayrollConfig,
        prior_ytd: YtdFigures | None = None,
    ) -> CalculationResult:
        """Price one employee for one period.

        Raises:
            ConfigurationError: missing/invalid compensation or unknown rule type
            InvalidInputError: negative hours or an inverted period
        """
        prior_ytd = prior_ytd or YtdFigures()
        compensation, salary_type = self._validate_compensation(compensation)
        self._validate_hours(hours_worked)
        if period.period_end < period.period_start:
            raise InvalidInputError("Period end must not precede period start")

        warnings: list[str] = []
        hourly = salary_type == SalaryType.HOURLY
        rate = compensation.hourly_rate or ZERO
        split = self._split_hours(hours_worked, period, config)

        # Regular pay
        if hourly:
            base_salary = ZERO
            regular_line = LineItemBuilder.create_earning_line("regular", split.regular, rate)
        else:
            base_salary = self._base_salary_for_period(
                compensation.base_salary or ZERO, salary_type, config
            )
            regular_line = LineItemBuilder.create_salary_line("base_salary", base_salary)

        # Overtime only for hourly staff or salaried staff with an hourly equivalent
        overtime_rate = ZERO
        overtime_pay = ZERO
        double_time_pay = ZERO
        if rate > 0 and config.overtime.enabled:
            overtime_rate = rate * config.overtime.multiplier
            overtime_pay = LineItemBuilder.create_earning_line(
                "overtime", split.overtime, rate, config.overtime.multiplier
            ).amount
            double_time_pay = LineItemBuilder.create_earning_line(
                "double_time", split.double_time, rate, config.overtime.double_time_multiplier
            ).amount

        regular_pay = regular_line.amount
        earnings_before_bonus = regular_pay + overtime_pay + double_time_pay

        # Bonuses/allowances (no compounding)
        bonuses, allowances = self._build_bonus_lines(
            compensation, config, earnings_before_bonus
        )
        gross_pay = (
            earnings_before_bonus
            + LineItemBuilder.sum_lines(bonuses)
            + LineItemBuilder.sum_lines(allowances)
        )

        # Taxes
        tax_calculator = TaxCalculator(config.taxes, config.social_security_wage_base)
        taxes = tax_calculator.calculate(gross_pay, prior_ytd.gross)

        # Benefits and other deductions
        benefits, other = self._build_deduction_lines(config, gross_pay)

        # Never deduct more than gross: taxes first, then benefits, then other
        configured_total = LineItemBuilder.sum_lines(taxes + benefits + other)
        _, shortfall = LineItemBuilder.cap_lines(taxes + benefits + other, gross_pay)
        if shortfall > 0:
            warnings.append(
                f"Deductions of {configured_total} exceed gross pay of {gross_pay}; "
                f"capped at gross, shortfall {shortfall}"
            )

        total_taxes = tax_calculator.total(taxes)
        total_deductions = total_taxes + LineItemBuilder.sum_lines(benefits + other)
        net_pay = gross_pay - total_deductions

        ytd = prior_ytd + YtdFigures(gross=gross_pay, net=net_pay, taxes=total_taxes)

        rules = config.snapshot()
        rules_fingerprint = config.fingerprint()
        inputs_fingerprint = self._compute_inputs_fingerprint(
            compensation, hours_worked, period, prior_ytd
        )
        calculation_id = self._generate_calculation_id(
            compensation.employee_id, period, inputs_fingerprint, rules_fingerprint
        )

        return CalculationResult(
            employee_id=compensation.employee_id,
            calculation_id=calculation_id,
            hours=HoursWorked(
                regular=split.regular,
                overtime=split.overtime,
                double_time=split.double_time,
            ),
            base_salary=base_salary,
            hourly_rate=rate,
            overtime_rate=LineItemBuilder.round_to_cents(overtime_rate),
            regular_pay=regular_pay,
            overtime_pay=overtime_pay,
            double_time_pay=double_time_pay,
            bonuses=bonuses,
            allowances=allowances,
            gross_pay=gross_pay,
            taxes=taxes,
            total_taxes=total_taxes,
            benefits=benefits,
            other_deductions=other,
            total_deductions=total_deductions,
            net_pay=net_pay,
            ytd=ytd,
            warnings=warnings,
            calculation_version=self.engine_version,
            rules=rules,
            rules_fingerprint=rules_fingerprint,
            inputs_fingerprint=inputs_fingerprint,
        )

    # === Validation ===

    def _validate_compensation(
        self, compensation: CompensationProfile | None
    ) -> tuple[CompensationProfile, SalaryType]:
        if compensation is None:
            raise ConfigurationError("Missing compensation profile")

        try:
            salary_type = SalaryType(compensation.salary_type)
        except ValueError:
            raise ConfigurationError(
                f"Unknown salary type '{compensation.salary_type}'",
                {"employee_id": str(compensation.employee_id)},
            ) from None

        if salary_type == SalaryType.HOURLY:
            if compensation.hourly_rate is None or compensation.hourly_rate <= 0:
                raise ConfigurationError(
                    "Hourly compensation requires a positive hourly rate",
                    {"employee_id": str(compensation.employee_id)},
                )
        else:
            if compensation.base_salary is None or compensation.base_salary <= 0:
                raise ConfigurationError(
                    f"{salary_type.value.capitalize()} compensation requires a positive base salary",
                    {"employee_id": str(compensation.employee_id)},
                )
            if compensation.hourly_rate is not None and compensation.hourly_rate < 0:
                raise ConfigurationError(
                    "Hourly-equivalent rate must not be negative",
                    {"employee_id": str(compensation.employee_id)},
                )

        return compensation, salary_type

    def _validate_hours(self, hours: HoursWorked) -> None:
        for name in ("regular", "overtime", "double_time"):
            value = getattr(hours, name)
            if value is None or value < 0:
                raise InvalidInputError(
                    f"{name.replace('_', ' ').capitalize()} hours must be >= 0, got {value}"
                )

    # === Earnings ===

    def _split_hours(
        self, hours: HoursWorked, period: PeriodWindow, config: PayrollConfig
    ) -> _SplitHours:
        """Move regular hours above the prorated weekly threshold into overtime."""
        if not config.overtime.enabled:
            return _SplitHours(regular=hours.total, overtime=ZERO, double_time=ZERO)

        threshold = LineItemBuilder.round_to_cents(
            config.overtime.weekly_threshold * Decimal(period.days) / SEVEN
        )
        excess = max(ZERO, hours.regular - threshold)
        return _SplitHours(
            regular=hours.regular - excess,
            overtime=hours.overtime + excess,
            double_time=hours.double_time,
        )

    def _base_salary_for_period(
        self,
        base_salary: Decimal,
        salary_type: SalaryType,
        config: PayrollConfig,
    ) -> Decimal:
        periods = Decimal(config.salary_cycle.periods_per_year)
        if salary_type == SalaryType.ANNUAL:
            annual = base_salary
        else:
            annual = base_salary * 12
        return LineItemBuilder.round_to_cents(annual / periods)

    def _build_bonus_lines(
        self,
        compensation: CompensationProfile,
        config: PayrollConfig,
        earnings_before_bonus: Decimal,
    ) -> tuple[list[LineItem], list[LineItem]]:
        bonuses: list[LineItem] = []
        allowances: list[LineItem] = []

        for rule in config.bonuses:
            if not rule.enabled:
                continue
            self._check_kind(rule.kind, rule.name)
            category = BONUS_CATEGORIES.get(rule.category)
            if category is None:
                raise ConfigurationError(
                    f"Unknown bonus category '{rule.category}' for '{rule.name}'"
                )
            if not rule.applies_to(compensation.role):
                continue

            line = LineItemBuilder.create_adjustment_line(
                category, rule.name, rule.kind, rule.value, earnings_before_bonus
            )
            if category == LineCategory.ALLOWANCE:
                allowances.append(line)
            else:
                bonuses.append(line)

        return bonuses, allowances

    # === Deductions ===

    def _build_deduction_lines(
        self, config: PayrollConfig, gross_pay: Decimal
    ) -> tuple[list[LineItem], list[LineItem]]:
        benefits: list[LineItem] = []
        other: list[LineItem] = []

        for rule in config.deductions:
            if not rule.enabled:
                continue
            self._check_kind(rule.kind, rule.name)

            is_benefit = rule.mandatory or "benefit" in rule.name.lower()
            line = LineItemBuilder.create_adjustment_line(
                LineCategory.BENEFIT if is_benefit else LineCategory.DEDUCTION,
                rule.name,
                rule.kind,
                rule.value,
                gross_pay,
            )
            (benefits if is_benefit else other).append(line)

        return benefits, other

    def _check_kind(self, kind: str, name: str) -> None:
        if kind not in KNOWN_KINDS:
            raise ConfigurationError(f"Unknown adjustment type '{kind}' for '{name}'")

    # === Fingerprints ===

    def _compute_inputs_fingerprint(
        self,
        compensation: CompensationProfile,
        hours: HoursWorked,
        period: PeriodWindow,
        prior_ytd: YtdFigures,
    ) -> str:
        """Compute fingerprint of all inputs used in calculation."""
        data: dict[str, Any] = {
            "employee_id": str(compensation.employee_id),
            "salary_type": compensation.salary_type,
            "base_salary": str(compensation.base_salary),
            "hourly_rate": str(compensation.hourly_rate),
            "role": compensation.role,
            "hours": [str(hours.regular), str(hours.overtime), str(hours.double_time)],
            "period": [
                str(period.period_start),
                str(period.period_end),
                str(period.pay_date),
            ],
            "prior_ytd": [str(prior_ytd.gross), str(prior_ytd.net), str(prior_ytd.taxes)],
        }
        return LineItemBuilder.compute_hash(data)

    def _generate_calculation_id(
        self,
        employee_id: UUID,
        period: PeriodWindow,
        inputs_fingerprint: str,
        rules_fingerprint: str,
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "period_id": str(period.period_id),
            "employee_id": str(employee_id),
            "engine_version": self.engine_version,
            "inputs_fingerprint": inputs_fingerprint,
            "rules_fingerprint": rules_fingerprint,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])
