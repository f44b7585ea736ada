"""Household Ledger - Shared expense splitting and debt settlement."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .models import (
    Account,
    DebtBalance,
    ExpenseSplit,
    HouseholdMember,
    Settlement,
    SettlementResult,
    SplitRatio,
    SplitSettings,
    Transaction,
)
from .split.debts import DebtAggregator
from .split.ledger import ExpenseSplitLedger
from .split.ratios import SplitRatioCalculator, calculate_split_ratio
from .split.settlement import SettlementEngine

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Account",
    "DebtBalance",
    "ExpenseSplit",
    "HouseholdMember",
    "Settlement",
    "SettlementResult",
    "SplitRatio",
    "SplitSettings",
    "Transaction",
    "DebtAggregator",
    "ExpenseSplitLedger",
    "SplitRatioCalculator",
    "calculate_split_ratio",
    "SettlementEngine",
]
