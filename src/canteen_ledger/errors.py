"""Exception taxonomy for Canteen Ledger."""

from typing import Any


class LedgerError(Exception):
    """Base exception for Canteen Ledger errors."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


class StoreUnavailableError(LedgerError):
    """The record store could not be read or written."""

    pass


class UnauthorizedTriggerError(LedgerError):
    """A report trigger did not present the shared secret."""

    pass


class TriggerError(LedgerError):
    """A self-referential trigger call did not succeed."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message, details=details)
        self.status_code = status_code
