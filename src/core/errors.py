"""
Error taxonomy for roster mutations.

Roster sources raise SourceError (or anything else on transport failure);
the modal boundary converts whatever it catches into ConflictError or
TransportError with classify_source_error. Query and lock code never raise
these.
"""

from typing import Dict, Optional


class RosterError(Exception):
    """Base class for roster console errors."""


class FormValidationError(RosterError):
    """Local field validation failed; submission was not dispatched."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__(f"{len(self.errors)} field(s) failed validation")


class SourceError(RosterError):
    """Raised by a roster source when a request fails."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None,
                 status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.field_errors = dict(field_errors or {})
        self.status = status


class ConflictError(SourceError):
    """Server rejected the mutation for uniqueness or state reasons."""


class TransportError(SourceError):
    """Network or server failure."""


class ConcurrencyRejection(RosterError):
    """Another mutating action is already in flight."""

    def __init__(self, holder=None):
        self.holder = holder
        super().__init__("Please wait until the current action completes")


class LockInvariantViolation(RuntimeError):
    """Reconciliation attempted without holding the action lock."""


def classify_source_error(exc: Exception) -> SourceError:
    """Map anything a roster source raised onto ConflictError or TransportError."""
    if isinstance(exc, (ConflictError, TransportError)):
        return exc
    if isinstance(exc, SourceError):
        cls = ConflictError if exc.field_errors else TransportError
        return cls(exc.message, exc.field_errors, exc.status)
    message = str(exc) or "Request failed. Please try again later."
    return TransportError(message)
