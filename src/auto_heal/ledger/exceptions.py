"""Ledger-related exceptions."""


class LedgerError(Exception):
    """Base exception for issue ledger errors."""


class LedgerPersistenceError(LedgerError):
    """Reading or writing the persisted ledger failed."""


class IssueNotFoundError(LedgerError):
    """No ledger entry matches the given key."""


class InvalidTransitionError(LedgerError):
    """The requested status change is not allowed."""
