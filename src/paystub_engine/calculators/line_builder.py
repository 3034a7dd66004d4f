"""Line item builder with banker's rounding and deterministic hashing."""

from __future__ import annotations

import hashlib
import json
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any

from paystub_engine.calculators.types import LineCategory, LineItem, ZERO

HUNDRED = Decimal("100")


class LineItemBuilder:
    """Builds priced line items.

    Rounding:
    - Every line is rounded to cents with ROUND_HALF_EVEN when it is built
    - Totals are sums of rounded lines, never rounded on their own
    - Rates and multipliers are never rounded
    """

    OUTPUT_PRECISION = Decimal("0.01")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places using banker's rounding."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_EVEN)

    @staticmethod
    def percentage_of(base: Decimal, percent: Decimal) -> Decimal:
        """``percent`` is expressed in percent units, e.g. 5 for 5%."""
        return LineItemBuilder.round_to_cents(base * percent / HUNDRED)

    @staticmethod
    def fraction_of(base: Decimal, rate: Decimal) -> Decimal:
        """``rate`` is a fraction, e.g. 0.062 for 6.2%."""
        return LineItemBuilder.round_to_cents(base * rate)

    @staticmethod
    def create_earning_line(
        name: str,
        hours: Decimal,
        rate: Decimal,
        multiplier: Decimal = Decimal("1"),
    ) -> LineItem:
        """Create an hours × rate earning line."""
        return LineItem(
            category=LineCategory.EARNING,
            name=name,
            amount=LineItemBuilder.round_to_cents(hours * rate * multiplier),
            value=rate * multiplier,
        )

    @staticmethod
    def create_salary_line(name: str, amount: Decimal) -> LineItem:
        """Create a fixed salary earning line."""
        return LineItem(
            category=LineCategory.EARNING,
            name=name,
            amount=LineItemBuilder.round_to_cents(amount),
        )

    @staticmethod
    def create_adjustment_line(
        category: LineCategory,
        name: str,
        kind: str,
        value: Decimal,
        base: Decimal,
    ) -> LineItem:
        """Create a fixed or percentage line; caller validates ``kind``."""
        if kind == "fixed":
            amount = LineItemBuilder.round_to_cents(value)
        else:
            amount = LineItemBuilder.percentage_of(base, value)
        return LineItem(
            category=category,
            name=name,
            amount=max(amount, ZERO),
            kind=kind,
            value=value,
        )

    @staticmethod
    def create_tax_line(name: str, taxable: Decimal, rate: Decimal) -> LineItem:
        """Create a tax line applied to ``taxable`` wages."""
        return LineItem(
            category=LineCategory.TAX,
            name=name,
            amount=LineItemBuilder.fraction_of(taxable, rate),
            value=rate,
        )

    @staticmethod
    def sum_lines(lines: list[LineItem]) -> Decimal:
        """Sum already-rounded line amounts."""
        return sum((line.amount for line in lines), ZERO)

    @staticmethod
    def cap_lines(lines: list[LineItem], available: Decimal) -> tuple[Decimal, Decimal]:
        """Clip lines in order so their sum never exceeds ``available``.

        Mutates the lines in place. Returns (remaining, shortfall).
        """
        remaining = available
        shortfall = ZERO
        for line in lines:
            if line.amount <= remaining:
                remaining -= line.amount
                continue
            shortfall += line.amount - remaining
            line.configured_amount = line.amount
            line.amount = remaining
            remaining = ZERO
        return remaining, shortfall

    @staticmethod
    def compute_hash(data: Any) -> str:
        """Deterministic hash of a JSON-serializable structure."""
        json_str = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]
