"""CLI for Household Ledger."""

import typer
from rich.console import Console

from .config import load_settings
from .db import Database
from .exceptions import ConfigurationError
from .split.cli import app as split_app

app = typer.Typer(
    name="household-ledger",
    help="Shared expense splitting and debt settlement for households",
)

app.add_typer(split_app, name="split", help="Expense splits and settlements")

console = Console()


@app.command("init-db")
def init_db():
    """Create the ledger database at the configured path."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1) from e

    Database(settings.database_path).close()
    console.print(f"[green]Database ready at {settings.database_path}[/green]")


if __name__ == "__main__":
    app()
