"""Tests for debt aggregation."""

from datetime import date
from decimal import Decimal

import pytest

from household_ledger.models import HouseholdMember
from household_ledger.split.debts import DebtAggregator
from household_ledger.split.ledger import ExpenseSplitLedger


@pytest.fixture
def ledger(db):
    return ExpenseSplitLedger(db)


@pytest.fixture
def aggregator(db):
    return DebtAggregator(db)


@pytest.fixture
def shared_expenses(ledger, household, add_shared_expense):
    """Bob owes 40.00 on groceries; alice owes 15.00 on dinner."""
    add_shared_expense("tx-1", "100.00", "alice", day=date(2025, 3, 1), note="Groceries")
    add_shared_expense("tx-2", "25.00", "bob", day=date(2025, 3, 5), payee="Pizzeria")
    ledger.create_expense_splits("tx-1", Decimal("100.00"), household, "alice")
    ledger.create_expense_splits("tx-2", Decimal("25.00"), household, "bob")
    return household


class TestCalculateDebtBalance:
    """Test the net balance between two members."""

    def test_net_balance(self, aggregator, shared_expenses):
        balance = aggregator.calculate_debt_balance("bob", "alice")

        assert balance.net_balance == Decimal("25.00")
        assert balance.who_owes == "bob"
        assert balance.who_is_owed == "alice"
        assert balance.amount == Decimal("25.00")

    def test_symmetric(self, aggregator, shared_expenses):
        forward = aggregator.calculate_debt_balance("bob", "alice")
        backward = aggregator.calculate_debt_balance("alice", "bob")

        assert backward.net_balance == -forward.net_balance
        assert backward.who_owes == forward.who_owes
        assert backward.who_is_owed == forward.who_is_owed
        assert backward.amount == forward.amount

    def test_zero_balance_reports_second_member_as_owing(self, aggregator, household):
        balance = aggregator.calculate_debt_balance("alice", "bob")

        assert balance.net_balance == Decimal("0.00")
        assert balance.amount == Decimal("0.00")
        assert balance.who_owes == "bob"
        assert balance.who_is_owed == "alice"

    def test_paid_splits_ignored(self, db, aggregator, ledger, shared_expenses):
        for split in ledger.get_unpaid_splits_for_user("bob"):
            ledger.mark_split_as_paid(split.id)

        balance = aggregator.calculate_debt_balance("bob", "alice")

        assert balance.net_balance == Decimal("-15.00")
        assert balance.who_owes == "alice"
        assert balance.amount == Decimal("15.00")


class TestUnsettledSharedExpenses:
    """Test the per-user list of unsettled expenses."""

    def test_signed_shares_newest_first(self, aggregator, shared_expenses):
        expenses = aggregator.get_unsettled_shared_expenses(shared_expenses, "bob")

        assert [e.transaction_id for e in expenses] == ["tx-2", "tx-1"]
        assert expenses[0].your_share == Decimal("-15.00")
        assert expenses[1].your_share == Decimal("40.00")
        assert expenses[1].total_amount == Decimal("100.00")
        assert expenses[1].paid_by_user_id == "alice"

    def test_description_and_payee_fallbacks(self, aggregator, shared_expenses):
        expenses = {
            e.transaction_id: e
            for e in aggregator.get_unsettled_shared_expenses(shared_expenses, "bob")
        }

        assert expenses["tx-1"].description == "Groceries"
        assert expenses["tx-1"].payee == "Unknown"
        assert expenses["tx-2"].description == "Pizzeria"
        assert expenses["tx-2"].payee == "Pizzeria"

    def test_other_household_excluded(self, db, aggregator, ledger, shared_expenses):
        db.add_member(HouseholdMember(household_id="other", member_id="zoe"))
        db.add_member(HouseholdMember(household_id="other", member_id="yann"))
        ledger.create_expense_splits("tx-other", Decimal("10.00"), "other", "zoe")

        expenses = aggregator.get_unsettled_shared_expenses(shared_expenses, "bob")

        assert "tx-other" not in {e.transaction_id for e in expenses}

    def test_no_shared_transactions(self, aggregator, household):
        assert aggregator.get_unsettled_shared_expenses(household, "bob") == []


class TestUnsettledByDirection:
    """Test bucketing unsettled expenses by direction."""

    def test_buckets_and_totals(self, aggregator, shared_expenses):
        summary = aggregator.get_unsettled_expenses_by_direction(shared_expenses, "bob")

        assert [e.transaction_id for e in summary.you_owe] == ["tx-1"]
        assert [e.transaction_id for e in summary.you_are_owed] == ["tx-2"]
        assert summary.total_you_owe == Decimal("40.00")
        assert summary.total_you_are_owed == Decimal("15.00")
        assert summary.net_debt == Decimal("25.00")

    def test_net_matches_debt_balance(self, aggregator, shared_expenses):
        summary = aggregator.get_unsettled_expenses_by_direction(shared_expenses, "alice")
        balance = aggregator.calculate_debt_balance("alice", "bob")

        assert summary.net_debt == balance.net_balance


class TestHouseholdDebt:
    """Test the debt against the other household member."""

    def test_household_debt(self, aggregator, shared_expenses):
        debt = aggregator.calculate_household_debt(shared_expenses, "bob")

        assert debt.amount == Decimal("25.00")
        assert debt.other_member_id == "alice"
        assert debt.other_member_name == "Alice"

    def test_solo_household(self, db, aggregator):
        db.add_member(HouseholdMember(household_id="solo", member_id="alice"))

        assert aggregator.calculate_household_debt("solo", "alice") is None

    def test_name_falls_back_to_member_id(self, db, aggregator):
        db.add_member(HouseholdMember(household_id="h2", member_id="alice"))
        db.add_member(HouseholdMember(household_id="h2", member_id="zed"))

        debt = aggregator.calculate_household_debt("h2", "alice")

        assert debt.other_member_name == "zed"
        assert debt.amount == Decimal("0.00")
