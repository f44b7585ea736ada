"""Expense split ledger: per-transaction obligations between members."""

import logging
import sqlite3
import uuid
from datetime import datetime
from decimal import Decimal

from ..db import Database
from ..exceptions import (
    SplitNotFoundError,
    SplitsAlreadyExistError,
    StorageError,
    ValidationError,
)
from ..models import ExpenseSplit, SplitSettings
from .money import assign_remainder, round_money, share_of
from .ratios import SplitRatioCalculator

logger = logging.getLogger(__name__)


class ExpenseSplitLedger:
    """Creates, queries and pays off expense splits."""

    def __init__(self, database: Database, calculator: SplitRatioCalculator | None = None):
        """Initialize the ledger."""
        self.db = database
        self.calculator = calculator or SplitRatioCalculator(database)

    def create_expense_splits(
        self,
        transaction_id: str,
        amount: Decimal,
        household_id: str,
        paid_by_user_id: str,
        settings: SplitSettings | None = None,
    ) -> list[ExpenseSplit]:
        """
        Create one split per non-payer member for a shared expense.

        Each split is ``round(amount * percentage / 100, 2)``. Any rounding
        residual goes to the largest split, so the splits always sum to
        ``round(amount * owed% / 100, 2)``, where ``owed%`` is the total of
        the non-payers' percentages (``100 - payer%`` when ratios total 100).

        Splits for a transaction can only be created once; the existence
        check and the insert run in one database transaction.

        Args:
            transaction_id: The shared expense the splits derive from
            amount: The expense amount
            household_id: Household whose split settings apply
            paid_by_user_id: Member who paid; owed by everyone else
            settings: Split settings to use instead of the stored ones

        Returns:
            The created splits (empty for solo or empty households)

        Raises:
            ValidationError: If amount is not a positive number
            SplitsAlreadyExistError: If splits already exist for the transaction
            StorageError: If the batch write fails
        """
        if not Decimal(amount).is_finite():
            raise ValidationError("Expense amount must be a finite number")
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError("Expense amount must be greater than 0")

        ratios = self.calculator.calculate(household_id, settings)
        if not ratios:
            logger.debug("No split ratios for household, no splits created")
            return []

        owers = [r for r in ratios if r.member_id != paid_by_user_id]
        if not owers:
            logger.debug("Payer is the only member, no splits created")
            return []

        # Manual ratios total 100 only within tolerance
        owed_percentage = sum((r.percentage for r in owers), Decimal("0"))
        shares = {r.member_id: share_of(amount, r.percentage) for r in owers}
        try:
            shares = assign_remainder(shares, share_of(amount, owed_percentage))
        except ValueError as e:
            raise ValidationError(f"Cannot split {amount}: {e}") from e

        now = datetime.now()
        splits = [
            ExpenseSplit(
                id=str(uuid.uuid4()),
                transaction_id=transaction_id,
                ower_user_id=r.member_id,
                owed_to_user_id=paid_by_user_id,
                split_amount=shares[r.member_id],
                split_percentage=r.percentage,
                is_paid=False,
                created_at=now,
            )
            for r in owers
        ]

        try:
            with self.db.transaction():
                if self.db.count_splits_for_transaction(transaction_id):
                    raise SplitsAlreadyExistError(transaction_id)
                self.db.insert_splits(splits)
        except sqlite3.IntegrityError as e:
            raise SplitsAlreadyExistError(transaction_id) from e
        except sqlite3.Error as e:
            raise StorageError(f"Failed to create splits: {e}") from e

        logger.info(f"Created {len(splits)} splits for transaction {transaction_id}")
        return splits

    def delete_expense_splits(self, transaction_id: str) -> int:
        """
        Remove every split of a transaction (deleted or un-shared expense).

        Returns:
            Number of splits deleted
        """
        try:
            with self.db.transaction():
                deleted = self.db.delete_splits_for_transaction(transaction_id)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete splits: {e}") from e

        logger.info(f"Deleted {deleted} splits for transaction {transaction_id}")
        return deleted

    def get_splits_for_transaction(self, transaction_id: str) -> list[ExpenseSplit]:
        """Get all splits of a transaction."""
        return self.db.get_splits_for_transaction(transaction_id)

    def get_unpaid_splits_for_user(self, user_id: str) -> list[ExpenseSplit]:
        """Get unpaid splits the user owes to others."""
        return self.db.get_unpaid_splits(ower_user_id=user_id)

    def get_unpaid_splits_owed_to_user(self, user_id: str) -> list[ExpenseSplit]:
        """Get unpaid splits others owe to the user."""
        return self.db.get_unpaid_splits(owed_to_user_id=user_id)

    def mark_split_as_paid(self, split_id: str) -> ExpenseSplit:
        """
        Mark a split paid. Marking an already-paid split again changes nothing.

        Raises:
            SplitNotFoundError: If the split does not exist
        """
        split = self.db.get_split(split_id)
        if split is None:
            raise SplitNotFoundError(split_id)

        if self.db.mark_split_paid(split_id):
            logger.info(f"Marked split {split_id} as paid")
        else:
            logger.debug(f"Split {split_id} was already paid")

        return split.model_copy(update={"is_paid": True})
