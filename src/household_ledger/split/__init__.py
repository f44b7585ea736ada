"""Expense splitting, debt aggregation and settlement."""
