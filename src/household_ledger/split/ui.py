"""Interactive UI components for choosing splits to settle."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from ..models import UnsettledExpense

logger = logging.getLogger(__name__)


class SplitCompleter(Completer):
    """Completes split numbers, showing each expense as a hint."""

    def __init__(self, expenses: list[UnsettledExpense]):
        """Initialize the completer with the selectable expenses."""
        self.expenses = expenses

    def get_completions(self, document: Document, complete_event: Any):
        """Complete the number currently being typed."""
        current = document.text_before_cursor.split(",")[-1].strip()

        if "all".startswith(current.lower()):
            yield Completion("all", start_position=-len(current), display_meta="every split")

        for idx, expense in enumerate(self.expenses, 1):
            number = str(idx)
            if number.startswith(current):
                yield Completion(
                    number,
                    start_position=-len(current),
                    display_meta=f"{expense.description} ({expense.your_share:.2f})",
                )


def parse_selection(text: str, expenses: list[UnsettledExpense]) -> list[str]:
    """
    Turn a selection like ``"1,3"`` or ``"all"`` into split ids.

    Numbers are 1-based positions in ``expenses``.

    Raises:
        ValueError: If a number is not a valid position
    """
    text = text.strip().lower()
    if text == "all":
        return [e.split_id for e in expenses]

    split_ids = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit() or not 1 <= int(part) <= len(expenses):
            raise ValueError(f"Not a valid split number: {part}")
        split_id = expenses[int(part) - 1].split_id
        if split_id not in split_ids:
            split_ids.append(split_id)
    return split_ids


def select_splits_interactive(expenses: list[UnsettledExpense]) -> list[str] | None:
    """
    Let the user pick which unpaid splits to settle.

    Args:
        expenses: Splits the payer owes, in display order

    Returns:
        Selected split ids, or None if the user cancelled
    """
    if not expenses:
        return None

    print("\n   Enter split numbers separated by commas, or 'all'. Ctrl+C to cancel\n")

    completer = SplitCompleter(expenses)
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        while True:
            result = session.prompt("Settle: ", default="all", complete_while_typing=True)
            if not result.strip():
                return None
            try:
                selected = parse_selection(result, expenses)
            except ValueError as e:
                print(f"   {e}")
                continue
            if selected:
                logger.debug(f"Selected {len(selected)} splits")
                return selected
    except (KeyboardInterrupt, EOFError):
        return None
