"""Split ratio calculation from household split settings."""

import logging
from decimal import Decimal

from ..db import Database
from ..exceptions import InvalidSplitSettingsError
from ..models import HouseholdMember, SplitMethod, SplitRatio, SplitSettings
from .money import HUNDRED

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal("0.01")


def calculate_split_ratio(
    settings: SplitSettings,
    members: list[HouseholdMember],
    incomes: dict[str, Decimal],
) -> list[SplitRatio]:
    """
    Compute each active member's percentage of a shared expense.

    This is a pure function: callers fetch settings, members and incomes once.

    Manual settings take percentages as configured (members missing from the
    mapping get 0). Automatic settings use each member's share of total
    income, falling back to an equal split when nobody declared an income.

    Args:
        settings: The household's split settings
        members: Active household members
        incomes: Latest declared income per member id

    Returns:
        One SplitRatio per member, in member order
    """
    if not members:
        return []

    member_incomes = {m.member_id: incomes.get(m.member_id, Decimal("0")) for m in members}

    if settings.split_method == "manual":
        return [
            SplitRatio(
                member_id=m.member_id,
                percentage=settings.manual_ratios.get(m.member_id, Decimal("0")),
                income=member_incomes[m.member_id],
            )
            for m in members
        ]

    total_income = sum(member_incomes.values(), Decimal("0"))
    if total_income == 0:
        even = HUNDRED / len(members)
        return [
            SplitRatio(member_id=m.member_id, percentage=even, income=Decimal("0"))
            for m in members
        ]

    return [
        SplitRatio(
            member_id=m.member_id,
            percentage=member_incomes[m.member_id] / total_income * HUNDRED,
            income=member_incomes[m.member_id],
        )
        for m in members
    ]


def validate_manual_ratios(
    ratios: dict[str, Decimal],
    member_ids: list[str] | None = None,
    tolerance: Decimal = DEFAULT_TOLERANCE,
):
    """
    Check manual ratios before they are saved.

    Raises:
        InvalidSplitSettingsError: If ratios are negative, name unknown
            members, or do not total 100 within ``tolerance``
    """
    if not ratios:
        raise InvalidSplitSettingsError("Manual split requires at least one ratio")

    negative = [k for k, v in ratios.items() if v < 0]
    if negative:
        raise InvalidSplitSettingsError(
            f"Percentages must not be negative: {', '.join(sorted(negative))}"
        )

    if member_ids is not None:
        unknown = sorted(set(ratios) - set(member_ids))
        if unknown:
            raise InvalidSplitSettingsError(
                f"Ratios reference non-members: {', '.join(unknown)}"
            )

    total = sum(ratios.values(), Decimal("0"))
    if abs(total - HUNDRED) > tolerance:
        raise InvalidSplitSettingsError(f"Percentages must total 100% (got {total})")


class SplitRatioCalculator:
    """Reads split inputs from storage and runs :func:`calculate_split_ratio`."""

    def __init__(self, database: Database, tolerance: Decimal = DEFAULT_TOLERANCE):
        self.db = database
        self.tolerance = tolerance

    def get_split_settings(self, household_id: str) -> SplitSettings:
        """Get stored settings, defaulting to automatic."""
        settings = self.db.get_split_settings(household_id)
        return settings or SplitSettings(household_id=household_id)

    def update_split_settings(
        self,
        household_id: str,
        split_method: SplitMethod,
        manual_ratios: dict[str, Decimal] | None = None,
    ) -> SplitSettings:
        """
        Change how a household splits shared expenses.

        Switching to automatic discards any manual ratios.

        Raises:
            InvalidSplitSettingsError: If manual ratios are invalid
        """
        if split_method == "manual":
            member_ids = [m.member_id for m in self.db.list_active_members(household_id)]
            ratios = {k: Decimal(v) for k, v in (manual_ratios or {}).items()}
            validate_manual_ratios(ratios, member_ids, self.tolerance)
        else:
            ratios = {}

        settings = SplitSettings(
            household_id=household_id, split_method=split_method, manual_ratios=ratios
        )
        self.db.save_split_settings(settings)

        logger.info(f"Updated split settings for household {household_id}: {split_method}")
        return settings

    def calculate(
        self, household_id: str, settings: SplitSettings | None = None
    ) -> list[SplitRatio]:
        """
        Compute split ratios for a household's active members.

        Args:
            household_id: The household
            settings: Settings to apply; fetched from storage when omitted

        Returns:
            One SplitRatio per active member
        """
        if settings is None:
            settings = self.get_split_settings(household_id)

        members = self.db.list_active_members(household_id)
        incomes = {m.member_id: self.db.latest_income(m.member_id) for m in members}

        ratios = calculate_split_ratio(settings, members, incomes)
        logger.debug(f"Calculated {len(ratios)} split ratios ({settings.split_method})")
        return ratios
