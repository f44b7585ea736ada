"""CLI commands for expense splitting and settlement using Typer."""

import logging
import sys
from decimal import Decimal, InvalidOperation

import typer
from rich.console import Console
from rich.table import Table

from ..config import Settings, load_settings
from ..db import Database
from ..exceptions import HouseholdLedgerError
from ..models import ExpenseSplit, UnsettledExpense
from .debts import DebtAggregator
from .ledger import ExpenseSplitLedger
from .ratios import SplitRatioCalculator
from .settlement import SettlementEngine
from .ui import select_splits_interactive

app = typer.Typer(
    name="split",
    help="Split shared expenses and settle debts between household members",
)

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def open_database() -> tuple[Settings, Database]:
    """Load settings and open the configured database."""
    settings = load_settings()
    return settings, Database(settings.database_path)


def parse_amount(value: str) -> Decimal:
    """Parse a CLI amount argument."""
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise typer.BadParameter(f"Not a valid amount: {value}") from None
    if not amount.is_finite():
        raise typer.BadParameter(f"Not a valid amount: {value}")
    return amount


def fail(e: Exception, verbose: bool):
    """Report an error and exit."""
    console.print(f"\n[bold red]Error:[/bold red] {e}")
    if verbose:
        raise e
    sys.exit(1)


def format_money(amount: Decimal, currency: str = "", use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: (85.02)
    Positive amounts have spaces:      85.02
    """
    prefix = f"{currency} " if currency else ""
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"({prefix}[red]{abs_amount:,.2f}[/red])"
        return f"({prefix}{abs_amount:,.2f})"
    if use_color:
        return f" {prefix}[green]{abs_amount:,.2f}[/green] "
    return f" {prefix}{abs_amount:,.2f} "


def display_splits(splits: list[ExpenseSplit], title: str = "Expense Splits"):
    """Display splits in a table."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Split ID", style="dim")
    table.add_column("Ower", style="cyan")
    table.add_column("Owed To", style="cyan")
    table.add_column("Percentage", justify="right")
    table.add_column("Amount", justify="right")
    table.add_column("Paid", justify="center")

    for split in splits:
        table.add_row(
            split.id,
            split.ower_user_id,
            split.owed_to_user_id,
            f"{split.split_percentage:.2f}%",
            format_money(split.split_amount),
            "✓" if split.is_paid else "",
        )

    console.print(table)


def display_unsettled(expenses: list[UnsettledExpense], title: str, currency: str):
    """Display unsettled expenses with selection numbers."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=4)
    table.add_column("Date")
    table.add_column("Description", style="cyan", width=40)
    table.add_column("Total", justify="right")
    table.add_column("Your Share", justify="right")

    for idx, expense in enumerate(expenses, 1):
        desc = expense.description
        table.add_row(
            str(idx),
            expense.date.isoformat(),
            desc[:40] + "..." if len(desc) > 40 else desc,
            format_money(expense.total_amount, currency, use_color=False),
            format_money(expense.your_share, currency),
        )

    console.print(table)


@app.command()
def ratios(
    household_id: str = typer.Argument(..., help="Household ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show how shared expenses are currently split in a household."""
    setup_logging(verbose)

    try:
        settings, db = open_database()
        calculator = SplitRatioCalculator(db, settings.split_tolerance)
        split_settings = calculator.get_split_settings(household_id)
        result = calculator.calculate(household_id, split_settings)

        if not result:
            console.print("[yellow]No active members in this household.[/yellow]")
            return

        table = Table(
            title=f"Split Ratios ({split_settings.split_method})",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Member", style="cyan")
        table.add_column("Income", justify="right")
        table.add_column("Percentage", justify="right")
        for ratio in result:
            table.add_row(
                ratio.member_id,
                format_money(ratio.income, settings.currency, use_color=False),
                f"{ratio.percentage:.2f}%",
            )
        console.print(table)

    except HouseholdLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("settings")
def split_settings(
    household_id: str = typer.Argument(..., help="Household ID"),
    method: str | None = typer.Option(
        None, "--method", "-m", help="Set split method: automatic or manual"
    ),
    ratio: list[str] = typer.Option(
        [], "--ratio", "-r", help="Manual ratio as MEMBER=PERCENT (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show or change a household's split settings."""
    setup_logging(verbose)

    try:
        settings, db = open_database()
        calculator = SplitRatioCalculator(db, settings.split_tolerance)

        if method is None:
            current = calculator.get_split_settings(household_id)
        else:
            if method not in ("automatic", "manual"):
                raise typer.BadParameter("Method must be 'automatic' or 'manual'")
            manual_ratios = {}
            for item in ratio:
                member_id, _, pct = item.partition("=")
                manual_ratios[member_id] = parse_amount(pct)
            current = calculator.update_split_settings(household_id, method, manual_ratios)
            console.print("[bold green]✓ Split settings updated[/bold green]")

        console.print(f"\n[bold]Split method:[/bold] {current.split_method}")
        for member_id, pct in current.manual_ratios.items():
            console.print(f"  {member_id}: {pct}%")

    except HouseholdLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def create(
    transaction_id: str = typer.Argument(..., help="Shared transaction ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Create splits for a shared expense."""
    setup_logging(verbose)

    try:
        _, db = open_database()
        tx = db.get_transaction(transaction_id)
        if tx is None or not tx.is_shared or not tx.paid_by_user_id:
            console.print("[yellow]No shared transaction with a payer found.[/yellow]")
            sys.exit(1)

        splits = ExpenseSplitLedger(db).create_expense_splits(
            tx.id, tx.amount, tx.household_id, tx.paid_by_user_id
        )
        if not splits:
            console.print("[yellow]Nobody else to split with; no splits created.[/yellow]")
            return

        display_splits(splits, title="Created Splits")

    except HouseholdLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def delete(
    transaction_id: str = typer.Argument(..., help="Transaction ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete all splits of a transaction."""
    setup_logging(verbose)

    try:
        _, db = open_database()
        deleted = ExpenseSplitLedger(db).delete_expense_splits(transaction_id)
        console.print(f"[green]Deleted {deleted} splits[/green]")

    except HouseholdLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("list")
def list_splits(
    transaction_id: str = typer.Argument(..., help="Transaction ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List the splits of a transaction."""
    setup_logging(verbose)

    try:
        _, db = open_database()
        splits = ExpenseSplitLedger(db).get_splits_for_transaction(transaction_id)
        if not splits:
            console.print("[yellow]No splits for this transaction.[/yellow]")
            return
        display_splits(splits)

    except HouseholdLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("mark-paid")
def mark_paid(
    split_id: str = typer.Argument(..., help="Split ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Mark a single split as paid."""
    setup_logging(verbose)

    try:
        _, db = open_database()
        ExpenseSplitLedger(db).mark_split_as_paid(split_id)
        console.print(f"[green]✓ Split {split_id} is paid[/green]")

    except HouseholdLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def debt(
    user_a: str = typer.Argument(..., help="First member"),
    user_b: str = typer.Argument(..., help="Second member"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show the net debt between two members."""
    setup_logging(verbose)

    try:
        settings, db = open_database()
        balance = DebtAggregator(db).calculate_debt_balance(user_a, user_b)

        if balance.amount == 0:
            console.print("\n[bold green]All settled up.[/bold green]\n")
            return

        console.print(
            f"\n[bold]{balance.who_owes}[/bold] owes [bold]{balance.who_is_owed}[/bold] "
            f"{format_money(balance.amount, settings.currency)}\n"
        )

    except HouseholdLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def summary(
    household_id: str = typer.Argument(..., help="Household ID"),
    user_id: str = typer.Argument(..., help="Member to summarize for"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show unsettled shared expenses split by who owes whom."""
    setup_logging(verbose)

    try:
        settings, db = open_database()
        result = DebtAggregator(db).get_unsettled_expenses_by_direction(
            household_id, user_id
        )

        if result.you_owe:
            display_unsettled(result.you_owe, "You Owe", settings.currency)
        if result.you_are_owed:
            display_unsettled(result.you_are_owed, "You Are Owed", settings.currency)

        console.print()
        console.print("[bold]Summary:[/bold]")
        console.print(f"  You owe:        {format_money(result.total_you_owe, settings.currency)}")
        console.print(
            f"  You are owed:   {format_money(result.total_you_are_owed, settings.currency)}"
        )
        console.print(f"  Net:            {format_money(-result.net_debt, settings.currency)}")

    except HouseholdLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def settle(
    household_id: str = typer.Argument(..., help="Household ID"),
    payer: str = typer.Argument(..., help="Member paying off their debt"),
    receiver: str = typer.Argument(..., help="Member being paid"),
    amount: str = typer.Argument(..., help="Amount to transfer"),
    from_account: str = typer.Option(..., "--from-account", help="Payer's account ID"),
    to_account: str = typer.Option(..., "--to-account", help="Receiver's account ID"),
    category: str | None = typer.Option(
        None, "--category", "-c", help="Also record the payment as a payer expense"
    ),
    payee: str | None = typer.Option(None, "--payee", help="Payee of the payer expense"),
    split: list[str] = typer.Option(
        [], "--split", "-s", help="Settle only this split (repeatable)"
    ),
    select: bool = typer.Option(
        False, "--select", help="Choose splits to settle interactively"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Settle what PAYER owes RECEIVER.

    Moves AMOUNT between the two accounts, marks the chosen splits paid and
    shrinks their shared expenses, all in one transaction.
    """
    setup_logging(verbose)

    try:
        settings, db = open_database()
        selected = list(split)

        if select:
            owed = [
                e
                for e in DebtAggregator(db).get_unsettled_shared_expenses(household_id, payer)
                if e.your_share > 0 and e.paid_by_user_id == receiver
            ]
            if not owed:
                console.print("[yellow]Nothing to settle.[/yellow]")
                return
            display_unsettled(owed, "Unpaid Splits", settings.currency)
            chosen = select_splits_interactive(owed)
            if chosen is None:
                console.print("[yellow]No splits selected.[/yellow]")
                return
            selected = chosen

        engine = SettlementEngine(db, settings)
        result = engine.create_settlement(
            payer_user_id=payer,
            receiver_user_id=receiver,
            amount=parse_amount(amount),
            payer_account_id=from_account,
            receiver_account_id=to_account,
            household_id=household_id,
            category_id=category,
            selected_split_ids=selected or None,
            payee=payee,
        )

        console.print("\n[bold green]✓ Settlement recorded![/bold green]")
        console.print(f"  Settlement ID: {result.settlement_id}")
        console.print(f"  Amount: {format_money(result.amount, settings.currency)}")
        console.print(f"  Splits settled: {result.splits_settled}")
        console.print(
            f"  Payer balance: {format_money(result.new_payer_balance, settings.currency)}"
        )
        console.print(
            f"  Receiver balance: {format_money(result.new_receiver_balance, settings.currency)}"
        )

    except HouseholdLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def history(
    household_id: str = typer.Argument(..., help="Household ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show a household's settlement history."""
    setup_logging(verbose)

    try:
        settings, db = open_database()
        settlements = SettlementEngine(db, settings).get_settlement_history(household_id)

        if not settlements:
            console.print("[yellow]No settlements yet.[/yellow]")
            return

        table = Table(title="Settlements", show_header=True, header_style="bold magenta")
        table.add_column("Date")
        table.add_column("Payer", style="cyan")
        table.add_column("Receiver", style="cyan")
        table.add_column("Amount", justify="right")
        table.add_column("Expenses", justify="right")
        for s in settlements:
            table.add_row(
                s.settled_at.date().isoformat(),
                s.payer_user_id,
                s.receiver_user_id,
                format_money(s.amount, settings.currency, use_color=False),
                str(len(s.settled_expenses)),
            )
        console.print(table)

    except HouseholdLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()
