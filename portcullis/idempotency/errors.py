"""Errors raised by idempotency store backends."""

from __future__ import annotations

from portcullis.errors import TransientBackendError


class IdempotencyStoreError(TransientBackendError):
    """Raised when a store backend cannot complete an I/O operation.

    Callers treat every store failure as potentially transient; the original
    driver exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, *, operation: str) -> None:
        """Record which store operation failed."""
        self.operation = operation
        super().__init__(message)

    @classmethod
    def operation_failed(
        cls, operation: str, event_id: str | None = None
    ) -> IdempotencyStoreError:
        """Return an error for a failed backend call."""
        if event_id is None:
            return cls(f"Idempotency store {operation} failed", operation=operation)
        return cls(
            f"Idempotency store {operation} failed for event {event_id}",
            operation=operation,
        )


class UnsupportedEventDataError(ValueError):
    """Raised when audit data contains non JSON-serialisable values."""

    def __init__(self, type_name: str) -> None:
        """Record the offending type name for diagnostics."""
        super().__init__(f"event data contains unsupported type {type_name}")


class TimezoneAwareRequiredError(ValueError):
    """Raised when a naive datetime reaches the store."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing context."""
        super().__init__(f"{context} must be timezone aware")


class InvalidTTLError(ValueError):
    """Raised when a retention period is negative."""

    def __init__(self, ttl_seconds: int) -> None:
        """Record the rejected TTL."""
        self.ttl_seconds = ttl_seconds
        super().__init__(f"ttl_seconds must be >= 0, got {ttl_seconds}")
