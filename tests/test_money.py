"""Tests for money rounding and remainder assignment."""

from decimal import Decimal

import pytest

from household_ledger.split.money import (
    assign_remainder,
    from_cents,
    round_money,
    share_of,
    to_cents,
)


class TestRoundMoney:
    """Test rounding to cents."""

    def test_half_up(self):
        assert round_money(Decimal("0.005")) == Decimal("0.01")
        assert round_money(Decimal("0.015")) == Decimal("0.02")
        assert round_money(Decimal("-0.005")) == Decimal("-0.01")

    def test_float_goes_through_str(self):
        """2.675 as a float is 2.67499..., but we round the literal."""
        assert round_money(2.675) == Decimal("2.68")

    def test_integer(self):
        assert round_money(5) == Decimal("5.00")


class TestCents:
    """Test integer cents conversion."""

    def test_to_cents(self):
        assert to_cents(Decimal("12.34")) == 1234
        assert to_cents(Decimal("-0.01")) == -1
        assert to_cents(Decimal("0.005")) == 1

    def test_from_cents(self):
        assert from_cents(1234) == Decimal("12.34")
        assert from_cents(0) == Decimal("0.00")


class TestShareOf:
    """Test percentage shares."""

    def test_simple_share(self):
        assert share_of(Decimal("100.00"), Decimal("40")) == Decimal("40.00")

    def test_share_rounds_half_up(self):
        # 10.05 * 50% = 5.025
        assert share_of(Decimal("10.05"), Decimal("50")) == Decimal("5.03")


class TestAssignRemainder:
    """Test that rounded shares are forced to sum to the expected total."""

    def test_no_residual(self):
        shares = {"a": Decimal("40.00"), "b": Decimal("20.00")}
        assert assign_remainder(shares, Decimal("60.00")) == shares

    def test_residual_goes_to_largest_share(self):
        # 100 split three ways: 33.33 each, complement of a 0% payer is 100.00
        shares = {"a": Decimal("33.33"), "b": Decimal("33.33"), "c": Decimal("33.34")}
        result = assign_remainder(shares, Decimal("100.01"))

        assert sum(result.values()) == Decimal("100.01")
        assert result["c"] == Decimal("33.35")
        assert result["a"] == Decimal("33.33")

    def test_ties_broken_by_key(self):
        shares = {"b": Decimal("33.33"), "a": Decimal("33.33")}
        result = assign_remainder(shares, Decimal("66.67"))

        assert result["a"] == Decimal("33.34")
        assert result["b"] == Decimal("33.33")

    def test_negative_residual(self):
        shares = {"a": Decimal("16.67"), "b": Decimal("16.67")}
        result = assign_remainder(shares, Decimal("33.33"))

        assert sum(result.values()) == Decimal("33.33")

    def test_input_not_mutated(self):
        shares = {"a": Decimal("33.33")}
        assign_remainder(shares, Decimal("33.34"))
        assert shares["a"] == Decimal("33.33")

    def test_empty(self):
        assert assign_remainder({}, Decimal("10.00")) == {}

    def test_residual_too_large(self):
        shares = {"a": Decimal("10.00")}
        with pytest.raises(ValueError, match="exceeds rounding bound"):
            assign_remainder(shares, Decimal("10.50"))
