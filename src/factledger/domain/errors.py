"""Domain error taxonomy.

There is no conflict error: escalation is an expected outcome, reported through
``FactOutcome.requires_manual_review`` instead of raising.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class FactLedgerError(Exception):
    """Base class for errors raised by factledger."""


class FactValidationError(FactLedgerError, ValueError):
    """Raised when a fact (or its subject) is missing required fields or is malformed."""

    def __init__(self, message: str, *, missing: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.missing = tuple(missing)


class StorageError(FactLedgerError):
    """Raised when the backing store fails to complete a read or a transaction."""


class ConcurrencyViolation(StorageError):
    """Raised when a concurrent writer changed the current fact of a slot under us."""


class EntityNotFoundError(FactLedgerError, LookupError):
    """Raised when a person or organization referenced by id does not exist."""
