"""
Error hierarchy for the bulk loader.

Configuration and node-loading errors are fatal and propagate to the CLI.
Unresolved endpoints and failed edge batches are caught by the edge loader,
logged, and the load continues.
"""

from typing import Optional


class LoaderError(Exception):
    """Base class for every error raised by graphload."""


class ConfigurationError(LoaderError):
    """Schema descriptor or settings are invalid (unsupported token, unknown key)."""


class ParseError(LoaderError):
    """A CSV cell or row could not be converted to the expected shape."""

    def __init__(
        self,
        message: str,
        column: Optional[str] = None,
        value: Optional[str] = None,
        line: Optional[int] = None,
    ):
        self.column = column
        self.value = value
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class UnresolvedEndpointError(LoaderError):
    """An edge row references an identifier with no matching vertex."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"No vertex with identity {identifier!r}")


class BatchCommitError(LoaderError):
    """One edge batch failed; its transaction was rolled back."""

    def __init__(self, batch_number: int, size: int, cause: BaseException):
        self.batch_number = batch_number
        self.size = size
        self.cause = cause
        super().__init__(f"Edge batch {batch_number} ({size} rows) failed: {cause}")


class StoreError(LoaderError):
    """Failure reported by a graph store backend."""


class SchemaViolationError(StoreError):
    """A write or schema change conflicts with the store's schema."""


class UniquenessViolationError(SchemaViolationError):
    """A write would duplicate a value under a unique composite index."""

    def __init__(self, index_name: str, value):
        self.index_name = index_name
        self.value = value
        super().__init__(f"Unique index {index_name!r} already holds {value!r}")


class TransactionClosedError(StoreError):
    """The transaction or management session was already committed or rolled back."""


class StaleVertexError(StoreError):
    """A vertex handle was used outside the transaction that produced it."""
