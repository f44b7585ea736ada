"""Tests for interactive split selection helpers."""

from datetime import date
from decimal import Decimal

import pytest
from prompt_toolkit.document import Document

from household_ledger.models import UnsettledExpense
from household_ledger.split.ui import SplitCompleter, parse_selection


def make_expense(n: int) -> UnsettledExpense:
    return UnsettledExpense(
        split_id=f"split-{n}",
        transaction_id=f"tx-{n}",
        date=date(2025, 3, n),
        total_amount=Decimal("100.00"),
        your_share=Decimal("40.00"),
        paid_by_user_id="alice",
        created_by_user_id="alice",
        description=f"Expense {n}",
        payee="Shop",
    )


@pytest.fixture
def expenses():
    return [make_expense(n) for n in range(1, 4)]


class TestParseSelection:
    """Test parsing of selection input."""

    def test_all(self, expenses):
        assert parse_selection(" ALL ", expenses) == ["split-1", "split-2", "split-3"]

    def test_numbers(self, expenses):
        assert parse_selection("3, 1", expenses) == ["split-3", "split-1"]

    def test_duplicates_and_blanks_ignored(self, expenses):
        assert parse_selection("2,,2,", expenses) == ["split-2"]

    @pytest.mark.parametrize("text", ["0", "4", "x", "1,-2"])
    def test_invalid(self, expenses, text):
        with pytest.raises(ValueError, match="Not a valid split number"):
            parse_selection(text, expenses)


class TestSplitCompleter:
    """Test selection completion."""

    def test_completes_numbers_after_comma(self, expenses):
        completer = SplitCompleter(expenses)

        completions = list(completer.get_completions(Document("1,"), None))

        assert [c.text for c in completions] == ["all", "1", "2", "3"]

    def test_filters_by_prefix(self, expenses):
        completer = SplitCompleter(expenses)

        completions = list(completer.get_completions(Document("a"), None))

        assert [c.text for c in completions] == ["all"]
