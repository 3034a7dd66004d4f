"""Tests for the flat-rate tax calculator."""

from decimal import Decimal

from paystub_engine.calculators import TaxCalculator, TaxRates


class TestTaxCalculator:
    """Tests for TaxCalculator."""

    def test_one_line_per_jurisdiction(self):
        """Lines come back in a fixed order, zero rates included."""
        calculator = TaxCalculator(TaxRates(federal=Decimal("0.1")))

        lines = calculator.calculate(Decimal("1000"))

        assert [item.name for item in lines] == [
            "federal",
            "state",
            "local",
            "social_security",
            "medicare",
        ]
        assert lines[0].amount == Decimal("100.00")
        assert lines[1].amount == Decimal("0")

    def test_rates_do_not_cascade(self):
        """Each rate applies to gross, not to gross after earlier taxes."""
        calculator = TaxCalculator(
            TaxRates(
                federal=Decimal("0.12"),
                state=Decimal("0.05"),
                local=Decimal("0.01"),
                social_security=Decimal("0.062"),
                medicare=Decimal("0.0145"),
            )
        )

        lines = calculator.calculate(Decimal("2000"))

        assert [item.amount for item in lines] == [
            Decimal("240.00"),
            Decimal("100.00"),
            Decimal("20.00"),
            Decimal("124.00"),
            Decimal("29.00"),
        ]
        assert TaxCalculator.total(lines) == Decimal("513.00")

    def test_no_wage_base(self):
        """Without a wage base all gross is taxable."""
        calculator = TaxCalculator(TaxRates(social_security=Decimal("0.062")))

        taxable = calculator.social_security_taxable(Decimal("5000"), Decimal("500000"))

        assert taxable == Decimal("5000")

    def test_wage_base_partially_reached(self):
        """Only the headroom under the wage base is taxed."""
        calculator = TaxCalculator(
            TaxRates(social_security=Decimal("0.062")), Decimal("168600")
        )

        lines = calculator.calculate(Decimal("5000"), Decimal("165600"))

        assert lines[3].amount == Decimal("186.00")

    def test_wage_base_exceeded(self):
        """Nothing is taxed once YTD gross passes the wage base."""
        calculator = TaxCalculator(
            TaxRates(social_security=Decimal("0.062"), medicare=Decimal("0.0145")),
            Decimal("168600"),
        )

        lines = calculator.calculate(Decimal("5000"), Decimal("170000"))

        assert lines[3].amount == Decimal("0")
        assert lines[4].amount == Decimal("72.50")
