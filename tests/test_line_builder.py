"""Tests for line item building and rounding."""

from decimal import Decimal

from paystub_engine.calculators import LineItemBuilder
from paystub_engine.calculators.types import LineCategory, LineItem


def line(amount: str, name: str = "x") -> LineItem:
    return LineItem(category=LineCategory.DEDUCTION, name=name, amount=Decimal(amount))


class TestRounding:
    """Tests for banker's rounding."""

    def test_half_even_rounds_down_to_even(self):
        """10.125 rounds to 10.12."""
        assert LineItemBuilder.round_to_cents(Decimal("10.125")) == Decimal("10.12")

    def test_half_even_rounds_up_to_even(self):
        """10.135 rounds to 10.14."""
        assert LineItemBuilder.round_to_cents(Decimal("10.135")) == Decimal("10.14")

    def test_above_half_rounds_up(self):
        """10.1251 rounds to 10.13."""
        assert LineItemBuilder.round_to_cents(Decimal("10.1251")) == Decimal("10.13")

    def test_percentage_of(self):
        """Percent values are in percent units."""
        assert LineItemBuilder.percentage_of(Decimal("950"), Decimal("5")) == Decimal("47.50")

    def test_fraction_of(self):
        """Fractions are rounded once."""
        assert LineItemBuilder.fraction_of(Decimal("950"), Decimal("0.0765")) == Decimal("72.68")


class TestLineCreation:
    """Tests for line factories."""

    def test_earning_line(self):
        """Earning lines are hours x rate x multiplier."""
        item = LineItemBuilder.create_earning_line(
            "overtime", Decimal("5"), Decimal("20"), Decimal("1.5")
        )

        assert item.category == LineCategory.EARNING
        assert item.amount == Decimal("150.00")
        assert item.value == Decimal("30.0")

    def test_fixed_adjustment(self):
        """Fixed adjustments ignore the base."""
        item = LineItemBuilder.create_adjustment_line(
            LineCategory.BONUS, "Signing", "fixed", Decimal("250"), Decimal("1000")
        )

        assert item.amount == Decimal("250.00")
        assert item.to_dict() == {
            "name": "Signing",
            "amount": "250.00",
            "type": "fixed",
            "value": "250",
        }

    def test_negative_adjustment_floors_at_zero(self):
        """A negative configured value never produces a negative line."""
        item = LineItemBuilder.create_adjustment_line(
            LineCategory.DEDUCTION, "Refund", "fixed", Decimal("-10"), Decimal("1000")
        )

        assert item.amount == Decimal("0")

    def test_tax_line(self):
        """Tax lines keep the unrounded rate."""
        item = LineItemBuilder.create_tax_line("medicare", Decimal("950"), Decimal("0.0145"))

        assert item.category == LineCategory.TAX
        assert item.amount == Decimal("13.78")
        assert item.value == Decimal("0.0145")


class TestCapLines:
    """Tests for capping deductions at gross."""

    def test_under_limit_untouched(self):
        """Lines that fit are not changed."""
        lines = [line("10"), line("20")]

        remaining, shortfall = LineItemBuilder.cap_lines(lines, Decimal("100"))

        assert remaining == Decimal("70")
        assert shortfall == Decimal("0")
        assert all(item.configured_amount is None for item in lines)

    def test_clips_in_order(self):
        """Earlier lines are kept whole; later ones absorb the cap."""
        lines = [line("60", "tax"), line("30", "benefit"), line("40", "other")]

        remaining, shortfall = LineItemBuilder.cap_lines(lines, Decimal("80"))

        assert [item.amount for item in lines] == [Decimal("60"), Decimal("20"), Decimal("0")]
        assert lines[1].configured_amount == Decimal("30")
        assert lines[2].configured_amount == Decimal("40")
        assert remaining == Decimal("0")
        assert shortfall == Decimal("50")

    def test_sum_lines(self):
        """Totals are sums of the rounded lines."""
        assert LineItemBuilder.sum_lines([line("0.01"), line("0.02")]) == Decimal("0.03")
        assert LineItemBuilder.sum_lines([]) == Decimal("0")


class TestComputeHash:
    """Tests for deterministic hashing."""

    def test_key_order_does_not_matter(self):
        """Dicts hash the same regardless of insertion order."""
        first = LineItemBuilder.compute_hash({"a": 1, "b": "2"})
        second = LineItemBuilder.compute_hash({"b": "2", "a": 1})

        assert first == second
        assert len(first) == 32

    def test_values_matter(self):
        """Different values hash differently."""
        assert LineItemBuilder.compute_hash({"a": 1}) != LineItemBuilder.compute_hash({"a": 2})
