"""Configuration management for Household Ledger."""

from decimal import Decimal
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HOUSEHOLD_LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Display currency for settlement notes and CLI output
    currency: str = "CHF"

    # Settlement settings
    settlement_payment_method: str = "internal_transfer"
    default_settlement_payee: str = "Debt Settlement"

    # Manual split percentages must total 100 within this tolerance
    split_tolerance: Decimal = Decimal("0.01")

    # Database path
    database_path: Path = Path.home() / ".household_ledger" / "household_ledger.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check the HOUSEHOLD_LEDGER_* environment "
            f"variables or your .env file.\n"
            f"Error: {e}"
        ) from e
