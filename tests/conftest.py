"""Shared fixtures for Household Ledger tests."""

from datetime import date
from decimal import Decimal

import pytest

from household_ledger.db import Database
from household_ledger.models import Account, HouseholdMember, Transaction

HOUSEHOLD = "house-1"


@pytest.fixture
def db(tmp_path):
    """Create a temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def household(db):
    """Two members earning 3000 (alice) and 2000 (bob): a 60/40 split."""
    db.add_member(HouseholdMember(household_id=HOUSEHOLD, member_id="alice", name="Alice"))
    db.add_member(HouseholdMember(household_id=HOUSEHOLD, member_id="bob", name="Bob"))
    db.record_income("alice", Decimal("3000.00"))
    db.record_income("bob", Decimal("2000.00"))
    return HOUSEHOLD


@pytest.fixture
def accounts(db):
    """One account per member, 1000.00 each."""
    db.create_account(Account(id="acc-alice", owner_id="alice", balance=Decimal("1000.00")))
    db.create_account(Account(id="acc-bob", owner_id="bob", balance=Decimal("1000.00")))
    return {"alice": "acc-alice", "bob": "acc-bob"}


@pytest.fixture
def add_shared_expense(db):
    """Factory that stores a shared expense and returns it."""

    def _add(
        tx_id: str,
        amount: str,
        paid_by: str,
        category_id: str | None = "groceries",
        day: date = date(2025, 3, 10),
        note: str = "",
        payee: str = "",
    ) -> Transaction:
        tx = Transaction(
            id=tx_id,
            household_id=HOUSEHOLD,
            user_id=paid_by,
            account_id=f"acc-{paid_by}",
            category_id=category_id,
            type="expense",
            amount=Decimal(amount),
            date=day,
            note=note,
            payee=payee,
            is_shared=True,
            paid_by_user_id=paid_by,
        )
        db.create_transaction(tx)
        return tx

    return _add
