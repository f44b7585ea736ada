"""Tests for split ratio calculation and split settings."""

from decimal import Decimal

import pytest

from household_ledger.exceptions import InvalidSplitSettingsError
from household_ledger.models import HouseholdMember, SplitSettings
from household_ledger.split.ratios import (
    SplitRatioCalculator,
    calculate_split_ratio,
    validate_manual_ratios,
)


def members(*ids: str) -> list[HouseholdMember]:
    return [HouseholdMember(household_id="h", member_id=m) for m in ids]


class TestCalculateSplitRatio:
    """Test the pure ratio function."""

    def test_income_proportional(self):
        ratios = calculate_split_ratio(
            SplitSettings(household_id="h"),
            members("alice", "bob"),
            {"alice": Decimal("3000"), "bob": Decimal("2000")},
        )

        assert [r.member_id for r in ratios] == ["alice", "bob"]
        assert ratios[0].percentage == Decimal("60")
        assert ratios[1].percentage == Decimal("40")
        assert ratios[0].income == Decimal("3000")

    def test_zero_income_splits_evenly(self):
        ratios = calculate_split_ratio(
            SplitSettings(household_id="h"), members("alice", "bob"), {}
        )

        assert [r.percentage for r in ratios] == [Decimal("50"), Decimal("50")]
        assert all(r.income == 0 for r in ratios)

    def test_single_member_gets_everything(self):
        ratios = calculate_split_ratio(
            SplitSettings(household_id="h"), members("alice"), {"alice": Decimal("100")}
        )

        assert len(ratios) == 1
        assert ratios[0].percentage == Decimal("100")

    def test_no_members(self):
        assert calculate_split_ratio(SplitSettings(household_id="h"), [], {}) == []

    def test_manual_ratios(self):
        settings = SplitSettings(
            household_id="h",
            split_method="manual",
            manual_ratios={"alice": Decimal("70"), "bob": Decimal("30")},
        )
        ratios = calculate_split_ratio(
            settings, members("alice", "bob"), {"alice": Decimal("1000")}
        )

        assert ratios[0].percentage == Decimal("70")
        assert ratios[1].percentage == Decimal("30")

    def test_manual_missing_member_gets_zero(self):
        settings = SplitSettings(
            household_id="h", split_method="manual", manual_ratios={"alice": Decimal("100")}
        )
        ratios = calculate_split_ratio(settings, members("alice", "bob"), {})

        assert ratios[1].member_id == "bob"
        assert ratios[1].percentage == Decimal("0")

    def test_percentages_sum_to_100(self):
        ratios = calculate_split_ratio(
            SplitSettings(household_id="h"),
            members("a", "b", "c"),
            {"a": Decimal("1000"), "b": Decimal("1000"), "c": Decimal("1000")},
        )

        total = sum(r.percentage for r in ratios)
        assert abs(total - Decimal("100")) < Decimal("0.0001")


class TestValidateManualRatios:
    """Test manual ratio validation."""

    def test_valid(self):
        validate_manual_ratios({"a": Decimal("60"), "b": Decimal("40")}, ["a", "b"])

    def test_within_tolerance(self):
        validate_manual_ratios({"a": Decimal("33.33"), "b": Decimal("66.67")})
        validate_manual_ratios({"a": Decimal("33.33"), "b": Decimal("66.66")})

    def test_not_100(self):
        with pytest.raises(InvalidSplitSettingsError, match="total 100"):
            validate_manual_ratios({"a": Decimal("60"), "b": Decimal("30")})

    def test_empty(self):
        with pytest.raises(InvalidSplitSettingsError):
            validate_manual_ratios({})

    def test_negative(self):
        with pytest.raises(InvalidSplitSettingsError, match="negative"):
            validate_manual_ratios({"a": Decimal("110"), "b": Decimal("-10")})

    def test_non_member(self):
        with pytest.raises(InvalidSplitSettingsError, match="non-members: carol"):
            validate_manual_ratios({"a": Decimal("50"), "carol": Decimal("50")}, ["a", "b"])


class TestSplitRatioCalculator:
    """Test the storage-backed calculator."""

    def test_defaults_to_automatic(self, db, household):
        calculator = SplitRatioCalculator(db)

        settings = calculator.get_split_settings(household)

        assert settings.split_method == "automatic"
        assert settings.manual_ratios == {}

    def test_uses_latest_income(self, db, household):
        db.record_income("bob", Decimal("3000.00"))

        ratios = SplitRatioCalculator(db).calculate(household)

        assert [r.percentage for r in ratios] == [Decimal("50"), Decimal("50")]

    def test_inactive_members_excluded(self, db, household):
        db.add_member(
            HouseholdMember(household_id=household, member_id="carol", status="inactive")
        )

        ratios = SplitRatioCalculator(db).calculate(household)

        assert [r.member_id for r in ratios] == ["alice", "bob"]

    def test_update_to_manual_and_back(self, db, household):
        calculator = SplitRatioCalculator(db)

        calculator.update_split_settings(
            household, "manual", {"alice": Decimal("50"), "bob": Decimal("50")}
        )
        stored = calculator.get_split_settings(household)
        assert stored.split_method == "manual"
        assert stored.manual_ratios == {"alice": Decimal("50"), "bob": Decimal("50")}
        assert [r.percentage for r in calculator.calculate(household)] == [
            Decimal("50"),
            Decimal("50"),
        ]

        calculator.update_split_settings(household, "automatic")
        stored = calculator.get_split_settings(household)
        assert stored.split_method == "automatic"
        assert stored.manual_ratios == {}

    def test_invalid_manual_not_saved(self, db, household):
        calculator = SplitRatioCalculator(db)

        with pytest.raises(InvalidSplitSettingsError):
            calculator.update_split_settings(
                household, "manual", {"alice": Decimal("80"), "bob": Decimal("30")}
            )

        assert db.get_split_settings(household) is None

    def test_explicit_settings_override_stored(self, db, household):
        calculator = SplitRatioCalculator(db)
        override = SplitSettings(
            household_id=household,
            split_method="manual",
            manual_ratios={"alice": Decimal("10"), "bob": Decimal("90")},
        )

        ratios = calculator.calculate(household, override)

        assert ratios[1].percentage == Decimal("90")
