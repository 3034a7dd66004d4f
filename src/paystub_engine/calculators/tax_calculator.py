"""Flat-rate tax calculator."""

from __future__ import annotations

from decimal import Decimal

from paystub_engine.calculators.line_builder import LineItemBuilder
from paystub_engine.calculators.types import LineItem, TaxRates, ZERO


class TaxCalculator:
    """Applies each configured rate independently to gross pay.

    Rates are never cascaded: every tax is computed on the same taxable
    base. Social security optionally stops at an annual wage base, using the
    employee's prior year-to-date gross.
    """

    def __init__(self, rates: TaxRates, social_security_wage_base: Decimal | None = None):
        self.rates = rates
        self.social_security_wage_base = social_security_wage_base

    def calculate(self, gross: Decimal, prior_ytd_gross: Decimal = ZERO) -> list[LineItem]:
        """Return one tax line per configured jurisdiction, in fixed order."""
        lines: list[LineItem] = []
        for name, rate in self.rates.items():
            taxable = gross
            if name == "social_security":
                taxable = self.social_security_taxable(gross, prior_ytd_gross)
            lines.append(LineItemBuilder.create_tax_line(name, taxable, rate))
        return lines

    def social_security_taxable(self, gross: Decimal, prior_ytd_gross: Decimal) -> Decimal:
        """Portion of this period's gross still under the wage base."""
        if self.social_security_wage_base is None:
            return gross
        headroom = max(ZERO, self.social_security_wage_base - prior_ytd_gross)
        return min(gross, headroom)

    @staticmethod
    def total(lines: list[LineItem]) -> Decimal:
        return LineItemBuilder.sum_lines(lines)
