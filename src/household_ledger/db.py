"""SQLite database operations for Household Ledger."""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from .models import (
    Account,
    Budget,
    BudgetPeriod,
    ExpenseSplit,
    HouseholdMember,
    Settlement,
    SplitSettings,
    Transaction,
)
from .split.money import from_cents, to_cents

logger = logging.getLogger(__name__)


class Database:
    """SQLite database manager.

    The connection runs in autocommit mode: single statements commit on their
    own, and multi-record writes go through :meth:`transaction`.
    """

    def __init__(self, db_path: Path | str):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), isolation_level=None)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._tx_depth = 0
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS household_members (
                member_id TEXT PRIMARY KEY,
                household_id TEXT NOT NULL,
                name TEXT NOT NULL DEFAULT '',
                role TEXT NOT NULL DEFAULT 'member',
                status TEXT NOT NULL DEFAULT 'active'
            );

            CREATE TABLE IF NOT EXISTS member_incomes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                member_id TEXT NOT NULL,
                amount_cents INTEGER NOT NULL,
                recorded_at TIMESTAMP NOT NULL
            );

            CREATE TABLE IF NOT EXISTS split_settings (
                household_id TEXT PRIMARY KEY,
                split_method TEXT NOT NULL,
                manual_ratios TEXT,
                updated_at TIMESTAMP NOT NULL
            );

            CREATE TABLE IF NOT EXISTS accounts (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                name TEXT NOT NULL DEFAULT '',
                balance_cents INTEGER NOT NULL DEFAULT 0,
                currency TEXT NOT NULL DEFAULT 'CHF'
            );

            CREATE TABLE IF NOT EXISTS transactions (
                id TEXT PRIMARY KEY,
                household_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                account_id TEXT,
                category_id TEXT,
                type TEXT NOT NULL,
                amount_cents INTEGER NOT NULL,
                date DATE NOT NULL,
                note TEXT NOT NULL DEFAULT '',
                payee TEXT NOT NULL DEFAULT '',
                is_shared INTEGER NOT NULL DEFAULT 0,
                paid_by_user_id TEXT,
                settled INTEGER NOT NULL DEFAULT 0,
                settled_at TIMESTAMP,
                settlement_id TEXT
            );

            CREATE TABLE IF NOT EXISTS expense_splits (
                id TEXT PRIMARY KEY,
                transaction_id TEXT NOT NULL,
                ower_user_id TEXT NOT NULL,
                owed_to_user_id TEXT NOT NULL,
                split_amount_cents INTEGER NOT NULL,
                split_percentage TEXT NOT NULL,
                is_paid INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP NOT NULL,
                UNIQUE (transaction_id, ower_user_id)
            );

            CREATE INDEX IF NOT EXISTS idx_splits_ower
                ON expense_splits (ower_user_id, is_paid);
            CREATE INDEX IF NOT EXISTS idx_splits_owed_to
                ON expense_splits (owed_to_user_id, is_paid);

            CREATE TABLE IF NOT EXISTS settlements (
                id TEXT PRIMARY KEY,
                household_id TEXT NOT NULL,
                payer_user_id TEXT NOT NULL,
                receiver_user_id TEXT NOT NULL,
                amount_cents INTEGER NOT NULL,
                payment_method TEXT NOT NULL,
                category_id TEXT,
                note TEXT NOT NULL DEFAULT '',
                settled_expenses TEXT NOT NULL,
                settled_at TIMESTAMP NOT NULL,
                created_at TIMESTAMP NOT NULL
            );

            CREATE TABLE IF NOT EXISTS budget_periods (
                member_id TEXT NOT NULL,
                household_id TEXT NOT NULL,
                period_start DATE NOT NULL,
                period_end DATE NOT NULL,
                PRIMARY KEY (member_id, household_id)
            );

            CREATE TABLE IF NOT EXISTS budgets (
                member_id TEXT NOT NULL,
                category_id TEXT NOT NULL,
                period_start DATE NOT NULL,
                spent_cents INTEGER NOT NULL DEFAULT 0,
                is_active INTEGER NOT NULL DEFAULT 1,
                PRIMARY KEY (member_id, category_id, period_start)
            );
            """
        )

    def close(self):
        """Close database connection."""
        self.conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run the enclosed writes as one all-or-nothing unit.

        Uses ``BEGIN IMMEDIATE`` so the write lock is taken up front and a
        concurrent writer fails at BEGIN rather than halfway through. Nested
        uses join the outermost transaction.
        """
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield self.conn
            finally:
                self._tx_depth -= 1
            return

        self.conn.execute("BEGIN IMMEDIATE")
        self._tx_depth = 1
        try:
            yield self.conn
            self.conn.execute("COMMIT")
        except BaseException:
            # A failed COMMIT leaves the transaction open; SQLite may also
            # have rolled back on its own
            if self.conn.in_transaction:
                self.conn.execute("ROLLBACK")
            raise
        finally:
            self._tx_depth = 0

    # ========================================================================
    # Household member operations
    # ========================================================================

    def add_member(self, member: HouseholdMember):
        """Add or replace a household member."""
        self.conn.execute(
            """
            INSERT INTO household_members (member_id, household_id, name, role, status)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(member_id) DO UPDATE SET
                household_id = excluded.household_id,
                name = excluded.name,
                role = excluded.role,
                status = excluded.status
            """,
            (
                member.member_id,
                member.household_id,
                member.name,
                member.role,
                member.status,
            ),
        )

    def list_active_members(self, household_id: str) -> list[HouseholdMember]:
        """List active members of a household, ordered by member id."""
        cursor = self.conn.execute(
            """
            SELECT member_id, household_id, name, role, status
            FROM household_members
            WHERE household_id = ? AND status = 'active'
            ORDER BY member_id
            """,
            (household_id,),
        )
        return [
            HouseholdMember(
                member_id=row["member_id"],
                household_id=row["household_id"],
                name=row["name"],
                role=row["role"],
                status=row["status"],
            )
            for row in cursor.fetchall()
        ]

    def record_income(self, member_id: str, amount: Decimal):
        """Record a member's declared periodic income."""
        self.conn.execute(
            """
            INSERT INTO member_incomes (member_id, amount_cents, recorded_at)
            VALUES (?, ?, ?)
            """,
            (member_id, to_cents(amount), datetime.now().isoformat()),
        )

    def latest_income(self, member_id: str) -> Decimal:
        """Get a member's most recently declared income (0 if none)."""
        cursor = self.conn.execute(
            """
            SELECT amount_cents FROM member_incomes
            WHERE member_id = ?
            ORDER BY recorded_at DESC, id DESC
            LIMIT 1
            """,
            (member_id,),
        )
        row = cursor.fetchone()
        return from_cents(row["amount_cents"]) if row else Decimal("0.00")

    # ========================================================================
    # Split settings operations
    # ========================================================================

    def get_split_settings(self, household_id: str) -> SplitSettings | None:
        """Get a household's split settings, if any were saved."""
        cursor = self.conn.execute(
            "SELECT split_method, manual_ratios FROM split_settings WHERE household_id = ?",
            (household_id,),
        )
        row = cursor.fetchone()
        if not row:
            return None

        ratios = json.loads(row["manual_ratios"]) if row["manual_ratios"] else {}
        return SplitSettings(
            household_id=household_id,
            split_method=row["split_method"],
            manual_ratios={k: Decimal(v) for k, v in ratios.items()},
        )

    def save_split_settings(self, settings: SplitSettings):
        """Save a household's split settings."""
        ratios = (
            json.dumps({k: str(v) for k, v in settings.manual_ratios.items()})
            if settings.split_method == "manual"
            else None
        )
        self.conn.execute(
            """
            INSERT INTO split_settings (household_id, split_method, manual_ratios, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(household_id) DO UPDATE SET
                split_method = excluded.split_method,
                manual_ratios = excluded.manual_ratios,
                updated_at = excluded.updated_at
            """,
            (
                settings.household_id,
                settings.split_method,
                ratios,
                datetime.now().isoformat(),
            ),
        )

    # ========================================================================
    # Account operations
    # ========================================================================

    def create_account(self, account: Account):
        """Create a member-owned account."""
        self.conn.execute(
            """
            INSERT INTO accounts (id, owner_id, name, balance_cents, currency)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                account.id,
                account.owner_id,
                account.name,
                to_cents(account.balance),
                account.currency,
            ),
        )

    def get_account(self, account_id: str) -> Account | None:
        """Get an account by id."""
        cursor = self.conn.execute(
            "SELECT id, owner_id, name, balance_cents, currency FROM accounts WHERE id = ?",
            (account_id,),
        )
        row = cursor.fetchone()
        if not row:
            return None

        return Account(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            balance=from_cents(row["balance_cents"]),
            currency=row["currency"],
        )

    def set_balance(
        self, account_id: str, value: Decimal, expected: Decimal | None = None
    ) -> bool:
        """
        Set an account balance.

        Args:
            account_id: The account to update
            value: New balance
            expected: If given, only write when the stored balance still equals it

        Returns:
            True if a row was written
        """
        if expected is None:
            cursor = self.conn.execute(
                "UPDATE accounts SET balance_cents = ? WHERE id = ?",
                (to_cents(value), account_id),
            )
        else:
            cursor = self.conn.execute(
                "UPDATE accounts SET balance_cents = ? WHERE id = ? AND balance_cents = ?",
                (to_cents(value), account_id, to_cents(expected)),
            )
        return cursor.rowcount == 1

    # ========================================================================
    # Transaction operations
    # ========================================================================

    def create_transaction(self, tx: Transaction):
        """Insert a transaction."""
        self.conn.execute(
            """
            INSERT INTO transactions (
                id, household_id, user_id, account_id, category_id, type,
                amount_cents, date, note, payee, is_shared, paid_by_user_id,
                settled, settled_at, settlement_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                tx.id,
                tx.household_id,
                tx.user_id,
                tx.account_id,
                tx.category_id,
                tx.type,
                to_cents(tx.amount),
                tx.date.isoformat(),
                tx.note,
                tx.payee,
                int(tx.is_shared),
                tx.paid_by_user_id,
                int(tx.settled),
                tx.settled_at.isoformat() if tx.settled_at else None,
                tx.settlement_id,
            ),
        )

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        """Get a transaction by id."""
        cursor = self.conn.execute(
            "SELECT * FROM transactions WHERE id = ?", (transaction_id,)
        )
        row = cursor.fetchone()
        return _row_to_transaction(row) if row else None

    def get_shared_transactions(self, household_id: str) -> list[Transaction]:
        """Get all shared transactions of a household."""
        cursor = self.conn.execute(
            "SELECT * FROM transactions WHERE household_id = ? AND is_shared = 1",
            (household_id,),
        )
        return [_row_to_transaction(row) for row in cursor.fetchall()]

    def update_transaction(
        self,
        transaction_id: str,
        *,
        amount: Decimal | None = None,
        expected_amount: Decimal | None = None,
        settled: bool | None = None,
        settled_at: datetime | None = None,
        settlement_id: str | None = None,
    ) -> bool:
        """
        Update selected fields of a transaction.

        When ``expected_amount`` is given the write only lands if the stored
        amount still equals it.

        Returns:
            True if a row was written
        """
        assignments = []
        params: list = []
        if amount is not None:
            assignments.append("amount_cents = ?")
            params.append(to_cents(amount))
        if settled is not None:
            assignments.append("settled = ?")
            params.append(int(settled))
        if settled_at is not None:
            assignments.append("settled_at = ?")
            params.append(settled_at.isoformat())
        if settlement_id is not None:
            assignments.append("settlement_id = ?")
            params.append(settlement_id)
        if not assignments:
            return False

        query = f"UPDATE transactions SET {', '.join(assignments)} WHERE id = ?"
        params.append(transaction_id)
        if expected_amount is not None:
            query += " AND amount_cents = ?"
            params.append(to_cents(expected_amount))

        cursor = self.conn.execute(query, params)
        return cursor.rowcount == 1

    # ========================================================================
    # Expense split operations
    # ========================================================================

    def insert_splits(self, splits: list[ExpenseSplit]):
        """Insert a batch of splits."""
        self.conn.executemany(
            """
            INSERT INTO expense_splits (
                id, transaction_id, ower_user_id, owed_to_user_id,
                split_amount_cents, split_percentage, is_paid, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    split.id,
                    split.transaction_id,
                    split.ower_user_id,
                    split.owed_to_user_id,
                    to_cents(split.split_amount),
                    str(split.split_percentage),
                    int(split.is_paid),
                    split.created_at.isoformat(),
                )
                for split in splits
            ],
        )

    def count_splits_for_transaction(self, transaction_id: str) -> int:
        """Count splits recorded for a transaction."""
        cursor = self.conn.execute(
            "SELECT COUNT(*) AS n FROM expense_splits WHERE transaction_id = ?",
            (transaction_id,),
        )
        return int(cursor.fetchone()["n"])

    def delete_splits_for_transaction(self, transaction_id: str) -> int:
        """Delete all splits for a transaction."""
        cursor = self.conn.execute(
            "DELETE FROM expense_splits WHERE transaction_id = ?", (transaction_id,)
        )
        return cursor.rowcount

    def get_split(self, split_id: str) -> ExpenseSplit | None:
        """Get a split by id."""
        cursor = self.conn.execute(
            "SELECT * FROM expense_splits WHERE id = ?", (split_id,)
        )
        row = cursor.fetchone()
        return _row_to_split(row) if row else None

    def get_splits_for_transaction(self, transaction_id: str) -> list[ExpenseSplit]:
        """Get all splits for a transaction."""
        cursor = self.conn.execute(
            """
            SELECT * FROM expense_splits
            WHERE transaction_id = ?
            ORDER BY created_at, id
            """,
            (transaction_id,),
        )
        return [_row_to_split(row) for row in cursor.fetchall()]

    def get_unpaid_splits(
        self, ower_user_id: str | None = None, owed_to_user_id: str | None = None
    ) -> list[ExpenseSplit]:
        """Get unpaid splits filtered by ower and/or creditor."""
        query = "SELECT * FROM expense_splits WHERE is_paid = 0"
        params: list = []
        if ower_user_id is not None:
            query += " AND ower_user_id = ?"
            params.append(ower_user_id)
        if owed_to_user_id is not None:
            query += " AND owed_to_user_id = ?"
            params.append(owed_to_user_id)
        query += " ORDER BY created_at, id"

        cursor = self.conn.execute(query, params)
        return [_row_to_split(row) for row in cursor.fetchall()]

    def mark_split_paid(self, split_id: str) -> bool:
        """
        Flip a split to paid if it is still unpaid.

        Returns:
            True if this call changed the split
        """
        cursor = self.conn.execute(
            "UPDATE expense_splits SET is_paid = 1 WHERE id = ? AND is_paid = 0",
            (split_id,),
        )
        return cursor.rowcount == 1

    # ========================================================================
    # Settlement operations
    # ========================================================================

    def insert_settlement(self, settlement: Settlement):
        """Append a settlement record."""
        self.conn.execute(
            """
            INSERT INTO settlements (
                id, household_id, payer_user_id, receiver_user_id, amount_cents,
                payment_method, category_id, note, settled_expenses,
                settled_at, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                settlement.id,
                settlement.household_id,
                settlement.payer_user_id,
                settlement.receiver_user_id,
                to_cents(settlement.amount),
                settlement.payment_method,
                settlement.category_id,
                settlement.note,
                json.dumps(settlement.settled_expenses),
                settlement.settled_at.isoformat(),
                settlement.created_at.isoformat(),
            ),
        )

    def get_settlement(self, settlement_id: str) -> Settlement | None:
        """Get a settlement by id."""
        cursor = self.conn.execute(
            "SELECT * FROM settlements WHERE id = ?", (settlement_id,)
        )
        row = cursor.fetchone()
        return _row_to_settlement(row) if row else None

    def get_settlements(self, household_id: str) -> list[Settlement]:
        """Get a household's settlements, newest first."""
        cursor = self.conn.execute(
            """
            SELECT * FROM settlements
            WHERE household_id = ?
            ORDER BY settled_at DESC, id
            """,
            (household_id,),
        )
        return [_row_to_settlement(row) for row in cursor.fetchall()]

    # ========================================================================
    # Budget operations
    # ========================================================================

    def set_budget_period(self, member_id: str, household_id: str, period: BudgetPeriod):
        """Record a member's current budget period."""
        self.conn.execute(
            """
            INSERT INTO budget_periods (member_id, household_id, period_start, period_end)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(member_id, household_id) DO UPDATE SET
                period_start = excluded.period_start,
                period_end = excluded.period_end
            """,
            (member_id, household_id, period.start.isoformat(), period.end.isoformat()),
        )

    def get_budget_period(self, member_id: str, household_id: str) -> BudgetPeriod | None:
        """Get a member's current budget period."""
        cursor = self.conn.execute(
            "SELECT period_start, period_end FROM budget_periods WHERE member_id = ? AND household_id = ?",
            (member_id, household_id),
        )
        row = cursor.fetchone()
        if not row:
            return None
        return BudgetPeriod(
            start=date.fromisoformat(row["period_start"]),
            end=date.fromisoformat(row["period_end"]),
        )

    def save_budget(self, budget: Budget):
        """Insert or replace a budget aggregate."""
        self.conn.execute(
            """
            INSERT INTO budgets (member_id, category_id, period_start, spent_cents, is_active)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(member_id, category_id, period_start) DO UPDATE SET
                spent_cents = excluded.spent_cents,
                is_active = excluded.is_active
            """,
            (
                budget.member_id,
                budget.category_id,
                budget.period_start.isoformat(),
                to_cents(budget.spent_amount),
                int(budget.is_active),
            ),
        )

    def get_budget(
        self, member_id: str, category_id: str, period_start: date | None = None
    ) -> Budget | None:
        """Get the active budget for a member and category."""
        query = """
            SELECT member_id, category_id, period_start, spent_cents, is_active
            FROM budgets
            WHERE member_id = ? AND category_id = ? AND is_active = 1
        """
        params: list = [member_id, category_id]
        if period_start is not None:
            query += " AND period_start = ?"
            params.append(period_start.isoformat())
        query += " ORDER BY period_start DESC LIMIT 1"

        row = self.conn.execute(query, params).fetchone()
        if not row:
            return None
        return Budget(
            member_id=row["member_id"],
            category_id=row["category_id"],
            period_start=date.fromisoformat(row["period_start"]),
            spent_amount=from_cents(row["spent_cents"]),
            is_active=bool(row["is_active"]),
        )

    def set_budget_spent(
        self, member_id: str, category_id: str, period_start: date, spent: Decimal
    ) -> bool:
        """Set the spent aggregate of one budget."""
        cursor = self.conn.execute(
            """
            UPDATE budgets SET spent_cents = ?
            WHERE member_id = ? AND category_id = ? AND period_start = ?
            """,
            (to_cents(spent), member_id, category_id, period_start.isoformat()),
        )
        return cursor.rowcount == 1


# ============================================================================
# Row mapping helpers
# ============================================================================


def _row_to_split(row: sqlite3.Row) -> ExpenseSplit:
    return ExpenseSplit(
        id=row["id"],
        transaction_id=row["transaction_id"],
        ower_user_id=row["ower_user_id"],
        owed_to_user_id=row["owed_to_user_id"],
        split_amount=from_cents(row["split_amount_cents"]),
        split_percentage=Decimal(row["split_percentage"]),
        is_paid=bool(row["is_paid"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["id"],
        household_id=row["household_id"],
        user_id=row["user_id"],
        account_id=row["account_id"],
        category_id=row["category_id"],
        type=row["type"],
        amount=from_cents(row["amount_cents"]),
        date=date.fromisoformat(row["date"]),
        note=row["note"],
        payee=row["payee"],
        is_shared=bool(row["is_shared"]),
        paid_by_user_id=row["paid_by_user_id"],
        settled=bool(row["settled"]),
        settled_at=(
            datetime.fromisoformat(row["settled_at"]) if row["settled_at"] else None
        ),
        settlement_id=row["settlement_id"],
    )


def _row_to_settlement(row: sqlite3.Row) -> Settlement:
    return Settlement(
        id=row["id"],
        household_id=row["household_id"],
        payer_user_id=row["payer_user_id"],
        receiver_user_id=row["receiver_user_id"],
        amount=from_cents(row["amount_cents"]),
        payment_method=row["payment_method"],
        category_id=row["category_id"],
        note=row["note"],
        settled_expenses=json.loads(row["settled_expenses"]),
        settled_at=datetime.fromisoformat(row["settled_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )
