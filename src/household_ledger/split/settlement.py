"""Settlement engine: pays off unpaid splits between two members.

A settlement runs in four phases:

1. Gather and validate: read accounts, unpaid splits and their transactions.
   Validation failures raise before anything is written.
2. Build the commit set: new balances, the settlement record, an optional
   payer expense, split flips and transaction reductions.
3. Commit: every write of phase 2 in one database transaction. Each write
   is conditioned on the state read in phase 1, so a concurrent settlement
   that got there first turns into a ConflictError and a full rollback.
4. Best effort: reduce budget spent aggregates. Failures are logged only.
"""

import logging
import sqlite3
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..config import Settings
from ..db import Database
from ..exceptions import (
    AccountNotFoundError,
    AccountOwnershipError,
    ConflictError,
    NoSplitsToSettleError,
    NonCriticalError,
    StorageError,
    ValidationError,
)
from ..models import (
    Account,
    BudgetPeriod,
    ExpenseSplit,
    Settlement,
    SettlementResult,
    Transaction,
)
from .money import round_money

logger = logging.getLogger(__name__)

PeriodResolver = Callable[[str, str], BudgetPeriod | None]


@dataclass
class TransactionReduction:
    """How one shared transaction changes in a settlement."""

    transaction: Transaction
    reduction: Decimal
    new_amount: Decimal
    fully_settled: bool


@dataclass
class SettlementPlan:
    """Everything a settlement writes, computed before the commit."""

    settlement: Settlement
    payer_account: Account
    receiver_account: Account
    new_payer_balance: Decimal
    new_receiver_balance: Decimal
    splits: list[ExpenseSplit]
    reductions: list[TransactionReduction]
    payer_expense: Transaction | None = None
    now: datetime = field(default_factory=datetime.now)


class SettlementEngine:
    """Creates settlements atomically and keeps their history."""

    def __init__(
        self,
        database: Database,
        settings: Settings | None = None,
        period_resolver: PeriodResolver | None = None,
    ):
        """
        Initialize the engine.

        Args:
            database: Storage for accounts, splits, transactions and settlements
            settings: Application settings (payment method, payee, currency)
            period_resolver: Returns a member's current budget period;
                defaults to the periods stored in the database
        """
        self.db = database
        self.settings = settings
        self.period_resolver = period_resolver or database.get_budget_period

    @property
    def payment_method(self) -> str:
        return self.settings.settlement_payment_method if self.settings else "internal_transfer"

    @property
    def default_payee(self) -> str:
        return self.settings.default_settlement_payee if self.settings else "Debt Settlement"

    def create_settlement(
        self,
        payer_user_id: str,
        receiver_user_id: str,
        amount: Decimal,
        payer_account_id: str,
        receiver_account_id: str,
        household_id: str,
        category_id: str | None = None,
        selected_split_ids: list[str] | None = None,
        payee: str | None = None,
    ) -> SettlementResult:
        """
        Pay off what the payer owes the receiver, all or nothing.

        Args:
            payer_user_id: Member paying off their splits
            receiver_user_id: Member being paid
            amount: Amount moved between the two accounts
            payer_account_id: Account debited, must belong to the payer
            receiver_account_id: Account credited, must belong to the receiver
            household_id: Household the shared expenses belong to
            category_id: If given, also record the payment as a payer expense
            selected_split_ids: Restrict to these splits; unknown ids are ignored
            payee: Payee of the payer expense

        Returns:
            New balances and the number of splits settled

        Raises:
            ValidationError: Bad amount, unknown or foreign account, or no
                matching unpaid splits. Nothing was written.
            ConflictError: Another operation changed a targeted record first.
                Nothing was written; re-fetch and retry.
            StorageError: The commit failed. Nothing was written.
        """
        logger.debug(f"Settling splits {payer_user_id} owes {receiver_user_id}")

        plan = self._build_plan(
            payer_user_id=payer_user_id,
            receiver_user_id=receiver_user_id,
            amount=amount,
            payer_account_id=payer_account_id,
            receiver_account_id=receiver_account_id,
            household_id=household_id,
            category_id=category_id,
            selected_split_ids=selected_split_ids,
            payee=payee,
        )

        self._commit(plan)
        logger.info(
            f"Settlement {plan.settlement.id} committed "
            f"({len(plan.splits)} splits, {len(plan.reductions)} transactions)"
        )

        self._update_budgets(plan)

        return SettlementResult(
            settlement_id=plan.settlement.id,
            amount=plan.settlement.amount,
            new_payer_balance=plan.new_payer_balance,
            new_receiver_balance=plan.new_receiver_balance,
            splits_settled=len(plan.splits),
            settled_transaction_ids=plan.settlement.settled_expenses,
        )

    def get_settlement_history(self, household_id: str) -> list[Settlement]:
        """Get a household's settlements, newest first."""
        return self.db.get_settlements(household_id)

    # ========================================================================
    # Phase 1 and 2: gather, validate, build
    # ========================================================================

    def _build_plan(
        self,
        payer_user_id: str,
        receiver_user_id: str,
        amount: Decimal,
        payer_account_id: str,
        receiver_account_id: str,
        household_id: str,
        category_id: str | None,
        selected_split_ids: list[str] | None,
        payee: str | None,
    ) -> SettlementPlan:
        if not Decimal(amount).is_finite():
            raise ValidationError("Settlement amount must be a finite number")
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError("Settlement amount must be greater than 0")
        if payer_user_id == receiver_user_id:
            raise ValidationError("Payer and receiver must be different members")

        payer_account = self._get_owned_account(payer_account_id, payer_user_id, "payer")
        receiver_account = self._get_owned_account(
            receiver_account_id, receiver_user_id, "receiver"
        )

        transactions = {t.id: t for t in self.db.get_shared_transactions(household_id)}
        splits = [
            s
            for s in self.db.get_unpaid_splits(payer_user_id, receiver_user_id)
            if s.transaction_id in transactions
        ]
        if selected_split_ids:
            selected = set(selected_split_ids)
            splits = [s for s in splits if s.id in selected]

        if not splits:
            raise NoSplitsToSettleError(
                "No unpaid splits found where the payer owes the receiver"
            )

        logger.debug(f"Splits to settle: {len(splits)}")

        totals: dict[str, Decimal] = {}
        for split in splits:
            totals[split.transaction_id] = (
                totals.get(split.transaction_id, Decimal("0")) + split.split_amount
            )

        settling_ids = {s.id for s in splits}
        reductions = []
        for tx_id, reduction in totals.items():
            tx = transactions[tx_id]
            tx_splits = self.db.get_splits_for_transaction(tx_id)
            fully_settled = bool(tx_splits) and all(
                s.is_paid or s.id in settling_ids for s in tx_splits
            )
            reductions.append(
                TransactionReduction(
                    transaction=tx,
                    reduction=reduction,
                    new_amount=max(Decimal("0.00"), tx.amount - reduction),
                    fully_settled=fully_settled,
                )
            )

        now = datetime.now()
        settlement = Settlement(
            id=str(uuid.uuid4()),
            household_id=household_id,
            payer_user_id=payer_user_id,
            receiver_user_id=receiver_user_id,
            amount=amount,
            payment_method=self.payment_method,
            category_id=category_id,
            note=f"Debt settlement: {amount:.2f} {payer_account.currency}",
            settled_expenses=[r.transaction.id for r in reductions],
            settled_at=now,
            created_at=now,
        )

        payer_expense = None
        if category_id:
            payer_expense = Transaction(
                id=str(uuid.uuid4()),
                household_id=household_id,
                user_id=payer_user_id,
                account_id=payer_account_id,
                category_id=category_id,
                type="expense",
                amount=amount,
                date=now.date(),
                note="Debt settlement - paid to household",
                payee=payee or self.default_payee,
                is_shared=False,
                paid_by_user_id=payer_user_id,
            )

        return SettlementPlan(
            settlement=settlement,
            payer_account=payer_account,
            receiver_account=receiver_account,
            new_payer_balance=payer_account.balance - amount,
            new_receiver_balance=receiver_account.balance + amount,
            splits=splits,
            reductions=reductions,
            payer_expense=payer_expense,
            now=now,
        )

    def _get_owned_account(self, account_id: str, owner_id: str, role: str) -> Account:
        account = self.db.get_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        if account.owner_id != owner_id:
            raise AccountOwnershipError(account_id, role)
        return account

    # ========================================================================
    # Phase 3: atomic commit
    # ========================================================================

    def _commit(self, plan: SettlementPlan):
        logger.debug("Executing settlement in single atomic transaction")
        try:
            with self.db.transaction():
                self._write_balance(plan.payer_account, plan.new_payer_balance)
                self._write_balance(plan.receiver_account, plan.new_receiver_balance)

                self.db.insert_settlement(plan.settlement)

                if plan.payer_expense is not None:
                    self.db.create_transaction(plan.payer_expense)

                for split in plan.splits:
                    if not self.db.mark_split_paid(split.id):
                        raise ConflictError(
                            f"Split {split.id} was settled by another operation"
                        )

                for r in plan.reductions:
                    written = self.db.update_transaction(
                        r.transaction.id,
                        amount=r.new_amount,
                        expected_amount=r.transaction.amount,
                        settled=True if r.fully_settled else None,
                        settled_at=plan.now if r.fully_settled else None,
                        settlement_id=plan.settlement.id if r.fully_settled else None,
                    )
                    if not written:
                        raise ConflictError(
                            f"Transaction {r.transaction.id} changed during settlement"
                        )
        except sqlite3.Error as e:
            if self.db.conn.in_transaction:
                logger.error(f"Settlement commit failed and is still pending: {e}")
            else:
                logger.error(f"Settlement commit failed, rolled back: {e}")
            raise StorageError(f"Settlement failed: {e}") from e
        except ConflictError:
            logger.warning("Settlement aborted on conflict, rolled back")
            raise

    def _write_balance(self, account: Account, new_balance: Decimal):
        if not self.db.set_balance(account.id, new_balance, expected=account.balance):
            raise ConflictError(f"Balance of account {account.id} changed during settlement")

    # ========================================================================
    # Phase 4: best-effort budget aggregates
    # ========================================================================

    def _update_budgets(self, plan: SettlementPlan):
        logger.debug("Updating budget spent amounts (best-effort)")
        for r in plan.reductions:
            if r.transaction.type != "expense" or r.reduction <= 0:
                continue
            try:
                self._reduce_budget_spent(r.transaction, r.reduction)
            except NonCriticalError as e:
                logger.warning(f"Budget update failed (non-critical): {e}")

    def _reduce_budget_spent(self, tx: Transaction, reduction: Decimal):
        try:
            if not tx.category_id:
                return
            period = self.period_resolver(tx.user_id, tx.household_id)
            if period is None or not period.contains(tx.date):
                return

            budget = self.db.get_budget(tx.user_id, tx.category_id, period.start)
            if budget is None:
                return

            new_spent = max(Decimal("0.00"), budget.spent_amount - reduction)
            self.db.set_budget_spent(tx.user_id, tx.category_id, period.start, new_spent)
        except Exception as e:
            raise NonCriticalError(
                f"Could not reduce budget for transaction {tx.id}: {e}"
            ) from e
