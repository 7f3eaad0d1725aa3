"""
Custom exceptions and error handling for the deal context engine.

Provides:
- Typed exception hierarchy for different failure modes
- Error context preservation for debugging
- Classification of raw store driver exceptions
"""

from typing import Any


class DealContextError(Exception):
    """Base exception for all deal context errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


# =============================================================================
# Store Errors
# =============================================================================


class StoreError(DealContextError):
    """Base class for document store errors."""

    pass


class StoreConnectionError(StoreError):
    """Failed to reach the document store."""

    pass


class StoreQueryError(StoreError):
    """Error executing a store read."""

    pass


class StorePermissionError(StoreError):
    """The store refused the read for the current credentials."""

    pass


class StoreIndexError(StoreError):
    """The store lacks an index required by a filtered/ordered query."""

    pass


# =============================================================================
# Context Errors
# =============================================================================


class ContextError(DealContextError):
    """Base class for context aggregation errors."""

    pass


class ValidationError(ContextError):
    """Input validation failed."""

    pass


class BranchFetchError(ContextError):
    """A single branch fetch failed. Never crosses the aggregator boundary."""

    pass


class AggregationError(ContextError):
    """The orchestration layer itself failed."""

    pass


# =============================================================================
# Error Handling Utilities
# =============================================================================


def wrap_store_error(exc: Exception, context: dict[str, Any] | None = None) -> StoreError:
    """
    Wrap a store driver exception in our typed error hierarchy.

    Args:
        exc: The original exception
        context: Additional context for debugging

    Returns:
        Typed StoreError subclass
    """
    if isinstance(exc, StoreError):
        return exc

    error_str = str(exc).lower()
    ctx = context or {}
    ctx['original_error'] = str(exc)
    ctx['error_type'] = type(exc).__name__

    if isinstance(exc, (ConnectionError, OSError)) or 'connection' in error_str or 'connect' in error_str:
        return StoreConnectionError(
            f"Document store connection failed: {exc}",
            context=ctx,
        )
    elif 'permission' in error_str or 'denied' in error_str:
        return StorePermissionError(
            f"Document store permission denied: {exc}",
            context=ctx,
        )
    elif 'index' in error_str:
        return StoreIndexError(
            f"Document store index missing: {exc}",
            context=ctx,
        )
    else:
        return StoreQueryError(
            f"Document store query error: {exc}",
            context=ctx,
        )
