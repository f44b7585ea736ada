"""Custom exceptions for Household Ledger."""


class HouseholdLedgerError(Exception):
    """Base exception for all Household Ledger errors."""

    pass


class ConfigurationError(HouseholdLedgerError):
    """Raised when configuration is invalid or missing."""

    pass


# ============================================================================
# Validation errors: bad input, reported before any write
# ============================================================================


class ValidationError(HouseholdLedgerError):
    """Raised when input is rejected before any mutation is attempted."""

    pass


class InvalidSplitSettingsError(ValidationError):
    """Raised when manual split percentages are malformed."""

    pass


class AccountNotFoundError(ValidationError):
    """Raised when a settlement references an unknown account."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class AccountOwnershipError(ValidationError):
    """Raised when an account does not belong to the stated member."""

    def __init__(self, account_id: str, role: str):
        self.account_id = account_id
        self.role = role
        super().__init__(f"{role.capitalize()} account does not belong to the {role}")


class SplitNotFoundError(ValidationError):
    """Raised when an expense split id does not exist."""

    def __init__(self, split_id: str):
        self.split_id = split_id
        super().__init__(f"Expense split not found: {split_id}")


class NoSplitsToSettleError(ValidationError):
    """Raised when a settlement has no matching unpaid splits."""

    pass


# ============================================================================
# Conflict errors: state changed underneath, caller must re-fetch
# ============================================================================


class ConflictError(HouseholdLedgerError):
    """Raised when a concurrent operation already changed the targeted records."""

    pass


class SplitsAlreadyExistError(ConflictError):
    """Raised when splits are created twice for the same transaction."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Splits already exist for transaction {transaction_id}")


# ============================================================================
# Storage and best-effort errors
# ============================================================================


class StorageError(HouseholdLedgerError):
    """Raised when an atomic write fails; nothing was applied."""

    pass


class NonCriticalError(HouseholdLedgerError):
    """Raised internally when a derived aggregate could not be refreshed."""

    pass
