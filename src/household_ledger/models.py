"""Pydantic domain models for Household Ledger."""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

SplitMethod = Literal["automatic", "manual"]
MemberRole = Literal["admin", "member"]
TransactionType = Literal["expense", "income"]

# ============================================================================
# Household Models
# ============================================================================


class HouseholdMember(BaseModel):
    """A person belonging to exactly one household."""

    household_id: str
    member_id: str
    name: str = ""
    role: MemberRole = "member"
    status: Literal["active", "inactive"] = "active"


class SplitSettings(BaseModel):
    """How a household divides shared expenses.

    Passed explicitly into the ratio calculator; callers fetch it once per
    operation.
    """

    household_id: str
    split_method: SplitMethod = "automatic"
    manual_ratios: dict[str, Decimal] = Field(default_factory=dict)


class SplitRatio(BaseModel):
    """Percentage of a shared expense attributed to one member."""

    member_id: str
    percentage: Decimal
    income: Decimal = Decimal("0")


# ============================================================================
# Ledger Models
# ============================================================================


class ExpenseSplit(BaseModel):
    """One member's obligation to another for a single shared expense.

    ``is_paid`` only ever moves from False to True.
    """

    id: str
    transaction_id: str
    ower_user_id: str
    owed_to_user_id: str
    split_amount: Decimal
    split_percentage: Decimal
    is_paid: bool = False
    created_at: datetime = Field(default_factory=datetime.now)


class Transaction(BaseModel):
    """A financial transaction; shared ones carry splits."""

    id: str
    household_id: str
    user_id: str
    account_id: str | None = None
    category_id: str | None = None
    type: TransactionType = "expense"
    amount: Decimal
    date: date
    note: str = ""
    payee: str = ""
    is_shared: bool = False
    paid_by_user_id: str | None = None
    settled: bool = False
    settled_at: datetime | None = None
    settlement_id: str | None = None


class Account(BaseModel):
    """A member-owned wallet with a mutable balance."""

    id: str
    owner_id: str
    name: str = ""
    balance: Decimal = Decimal("0.00")
    currency: str = "CHF"


class Settlement(BaseModel):
    """Immutable record of one payoff event."""

    id: str
    household_id: str
    payer_user_id: str
    receiver_user_id: str
    amount: Decimal
    payment_method: str
    category_id: str | None = None
    note: str = ""
    settled_expenses: list[str] = Field(default_factory=list)
    settled_at: datetime
    created_at: datetime


# ============================================================================
# Budget Models (consumed, not computed)
# ============================================================================


class BudgetPeriod(BaseModel):
    """Date range a member's budget aggregates are tracked against."""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


class Budget(BaseModel):
    """Spent aggregate for one member and category in one period."""

    member_id: str
    category_id: str
    period_start: date
    spent_amount: Decimal = Decimal("0.00")
    is_active: bool = True


# ============================================================================
# Query Results
# ============================================================================


class DebtBalance(BaseModel):
    """Net balance between two members.

    ``net_balance`` is positive when the first member owes the second.
    """

    net_balance: Decimal
    who_owes: str
    who_is_owed: str
    amount: Decimal


class UnsettledExpense(BaseModel):
    """An unpaid split seen from one member's perspective."""

    split_id: str
    transaction_id: str
    date: date
    category_id: str | None = None
    total_amount: Decimal
    your_share: Decimal  # positive = you owe, negative = you are owed
    paid_by_user_id: str | None = None
    created_by_user_id: str
    description: str
    payee: str


class DirectionSummary(BaseModel):
    """Unsettled expenses bucketed by who owes whom."""

    you_owe: list[UnsettledExpense]
    you_are_owed: list[UnsettledExpense]
    total_you_owe: Decimal
    total_you_are_owed: Decimal
    net_debt: Decimal


class HouseholdDebt(BaseModel):
    """Net debt between a member and the other active household member."""

    amount: Decimal  # positive = you owe, negative = you are owed
    other_member_id: str
    other_member_name: str


class SettlementResult(BaseModel):
    """What a committed settlement changed, for UI confirmation."""

    settlement_id: str
    amount: Decimal
    new_payer_balance: Decimal
    new_receiver_balance: Decimal
    splits_settled: int
    settled_transaction_ids: list[str] = Field(default_factory=list)
