"""Debt aggregation over unpaid expense splits."""

import logging
from decimal import Decimal

from ..db import Database
from ..models import (
    DebtBalance,
    DirectionSummary,
    HouseholdDebt,
    UnsettledExpense,
)
from .money import round_money

logger = logging.getLogger(__name__)


class DebtAggregator:
    """Folds unpaid splits into balances between members."""

    def __init__(self, database: Database):
        """Initialize the aggregator."""
        self.db = database

    def calculate_debt_balance(self, user_a: str, user_b: str) -> DebtBalance:
        """
        Calculate the net balance between two members.

        ``net_balance`` is positive when ``user_a`` owes ``user_b``. Swapping
        the arguments negates the balance and swaps who owes whom; at exactly
        zero the second argument is reported as owing.
        """
        a_owes = sum(
            (s.split_amount for s in self.db.get_unpaid_splits(user_a, user_b)),
            Decimal("0"),
        )
        b_owes = sum(
            (s.split_amount for s in self.db.get_unpaid_splits(user_b, user_a)),
            Decimal("0"),
        )
        net = round_money(a_owes - b_owes)

        return DebtBalance(
            net_balance=net,
            who_owes=user_a if net > 0 else user_b,
            who_is_owed=user_b if net > 0 else user_a,
            amount=abs(net),
        )

    def get_unsettled_shared_expenses(
        self, household_id: str, user_id: str
    ) -> list[UnsettledExpense]:
        """
        List unpaid splits on the household's shared expenses involving a user.

        ``your_share`` is positive when the user owes and negative when the
        user is owed. Newest expenses come first.
        """
        transactions = {t.id: t for t in self.db.get_shared_transactions(household_id)}
        if not transactions:
            return []

        splits = self.db.get_unpaid_splits(ower_user_id=user_id) + self.db.get_unpaid_splits(
            owed_to_user_id=user_id
        )

        expenses = []
        seen = set()
        for split in splits:
            if split.id in seen:
                continue
            seen.add(split.id)

            tx = transactions.get(split.transaction_id)
            if tx is None:
                continue

            user_owes = split.ower_user_id == user_id
            expenses.append(
                UnsettledExpense(
                    split_id=split.id,
                    transaction_id=tx.id,
                    date=tx.date,
                    category_id=tx.category_id,
                    total_amount=tx.amount,
                    your_share=split.split_amount if user_owes else -split.split_amount,
                    paid_by_user_id=tx.paid_by_user_id,
                    created_by_user_id=tx.user_id,
                    description=tx.note or tx.payee or tx.category_id or "Shared expense",
                    payee=tx.payee or "Unknown",
                )
            )

        expenses.sort(key=lambda e: e.date, reverse=True)
        logger.debug(f"Found {len(expenses)} unsettled expenses")
        return expenses

    def get_unsettled_expenses_by_direction(
        self, household_id: str, user_id: str
    ) -> DirectionSummary:
        """Bucket a user's unsettled expenses into owed and owing."""
        expenses = self.get_unsettled_shared_expenses(household_id, user_id)

        you_owe = [e for e in expenses if e.your_share > 0]
        you_are_owed = [e for e in expenses if e.your_share < 0]

        total_you_owe = sum((e.your_share for e in you_owe), Decimal("0"))
        total_you_are_owed = abs(sum((e.your_share for e in you_are_owed), Decimal("0")))

        return DirectionSummary(
            you_owe=you_owe,
            you_are_owed=you_are_owed,
            total_you_owe=round_money(total_you_owe),
            total_you_are_owed=round_money(total_you_are_owed),
            net_debt=round_money(total_you_owe - total_you_are_owed),
        )

    def calculate_household_debt(
        self, household_id: str, user_id: str
    ) -> HouseholdDebt | None:
        """
        Net debt between a user and the other active household member.

        Returns:
            The debt summary, or None when the user has nobody to owe
        """
        other = next(
            (m for m in self.db.list_active_members(household_id) if m.member_id != user_id),
            None,
        )
        if other is None:
            logger.debug("No other member found in household")
            return None

        expenses = self.get_unsettled_shared_expenses(household_id, user_id)
        total = sum((e.your_share for e in expenses), Decimal("0"))

        return HouseholdDebt(
            amount=round_money(total),
            other_member_id=other.member_id,
            other_member_name=other.name or other.member_id,
        )
