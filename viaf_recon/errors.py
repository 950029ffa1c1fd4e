from typing import Optional


class ReconcileError(Exception):
    """Base class for every error raised by the reconciliation core."""


class MalformedDocument(ReconcileError):
    """The registry response was not well-formed XML."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.column = column


class InvalidQuery(ReconcileError, ValueError):
    """A query description failed validation."""

    def __init__(self, message: str, key: Optional[str] = None):
        if key is not None:
            message = f"{key}: {message}"
        super().__init__(message)
        self.key = key


class LookupFailure(ReconcileError):
    """The registry lookup failed (network, HTTP status or timeout)."""
