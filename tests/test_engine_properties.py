"""Property tests for pay stub arithmetic."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from hypothesis import given, settings
from hypothesis import strategies as st

from paystub_engine.calculators import (
    AdjustmentRule,
    CompensationProfile,
    HoursWorked,
    PayrollConfig,
    PayrollEngine,
    PeriodWindow,
    TaxRates,
)

EMPLOYEE_ID = UUID("00000000-0000-0000-0000-000000000001")
PERIOD = PeriodWindow(date(2026, 3, 2), date(2026, 3, 8), date(2026, 3, 13))

rates = st.decimals(min_value=Decimal("1"), max_value=Decimal("200"), places=2)
hours = st.decimals(min_value=Decimal("0"), max_value=Decimal("80"), places=2)
amounts = st.decimals(min_value=Decimal("0"), max_value=Decimal("5000"), places=2)
tax_rates = st.decimals(min_value=Decimal("0"), max_value=Decimal("0.5"), places=4)


class TestNetPayProperties:
    """Invariants that hold for any hourly calculation."""

    @settings(max_examples=200, deadline=None)
    @given(
        rate=rates,
        regular=hours,
        overtime=hours,
        deduction=amounts,
        federal=tax_rates,
        state=tax_rates,
    )
    def test_net_is_gross_minus_deductions(
        self, rate, regular, overtime, deduction, federal, state
    ):
        """Net equals gross minus deductions and never goes negative."""
        config = PayrollConfig(
            deductions=(AdjustmentRule("Loan repayment", "fixed", deduction),),
            taxes=TaxRates(federal=federal, state=state),
        )
        profile = CompensationProfile(EMPLOYEE_ID, "hourly", hourly_rate=rate)

        result = PayrollEngine().calculate(
            profile, HoursWorked(regular=regular, overtime=overtime), PERIOD, config
        )

        assert result.net_pay == result.gross_pay - result.total_deductions
        assert result.net_pay >= 0
        assert result.total_deductions <= result.gross_pay
        assert result.total_deductions == result.total_taxes + sum(
            (line.amount for line in result.benefits + result.other_deductions),
            Decimal("0"),
        )

    @settings(max_examples=100, deadline=None)
    @given(rate=rates, regular=hours)
    def test_every_amount_is_in_cents(self, rate, regular):
        """Every priced line carries at most two decimal places."""
        config = PayrollConfig(
            bonuses=(AdjustmentRule("Performance", "percentage", Decimal("7.5")),),
            taxes=TaxRates(federal=Decimal("0.0765"), medicare=Decimal("0.0145")),
        )
        profile = CompensationProfile(EMPLOYEE_ID, "hourly", hourly_rate=rate)

        result = PayrollEngine().calculate(
            profile, HoursWorked(regular=regular), PERIOD, config
        )

        for line in result.bonuses + result.taxes:
            assert line.amount == line.amount.quantize(Decimal("0.01"))
        assert result.net_pay == result.net_pay.quantize(Decimal("0.01"))
