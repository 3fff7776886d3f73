"""Terminal failures raised by the ingestion controller."""

from __future__ import annotations

import enum

from portcullis.errors import PortcullisError


class ValidationFailure(enum.StrEnum):
    """Reasons a payload is rejected before verification."""

    EMPTY = "empty"
    MALFORMED = "malformed"
    OVERSIZED = "oversized"


class PayloadValidationError(PortcullisError):
    """Raised when a payload fails validation; never retried.

    Attributes
    ----------
    reason
        Which validation rule rejected the payload.

    """

    def __init__(self, message: str, *, reason: ValidationFailure) -> None:
        """Record the rejection reason."""
        self.reason = reason
        super().__init__(message)

    @classmethod
    def empty(cls) -> PayloadValidationError:
        """Return an error for an empty body."""
        return cls("Payload is empty.", reason=ValidationFailure.EMPTY)

    @classmethod
    def malformed(cls) -> PayloadValidationError:
        """Return an error for a body that is not a non-empty JSON object."""
        return cls(
            "Payload is not a valid JSON object.", reason=ValidationFailure.MALFORMED
        )

    @classmethod
    def oversized(cls, size: int, limit: int) -> PayloadValidationError:
        """Return an error for a body larger than ``limit`` bytes."""
        return cls(
            f"Payload of {size} bytes exceeds maximum size of {limit} bytes.",
            reason=ValidationFailure.OVERSIZED,
        )


class RetriesExhaustedError(PortcullisError):
    """Raised when every permitted attempt failed with a transient error.

    Attributes
    ----------
    attempts
        Number of attempts made.
    last_error
        The transient error from the final attempt.

    """

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        """Record the attempt count and final cause."""
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Max retries reached after {attempts} attempt(s): {last_error}")


class AttemptTimeoutError(PortcullisError):
    """Raised when one verification attempt exceeds its hard timeout.

    The attempt may have claimed the event before it was cancelled, so the
    controller does not retry it.
    """

    def __init__(self, attempt: int, timeout_s: float) -> None:
        """Record which attempt timed out and the limit it exceeded."""
        self.attempt = attempt
        self.timeout_s = timeout_s
        super().__init__(f"Attempt {attempt} timed out after {timeout_s:g}s")


class DeadlineExceededError(PortcullisError):
    """Raised when the caller's deadline leaves no room for another attempt."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        """Record the attempts made before the deadline stopped the loop."""
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Deadline reached after {attempts} attempt(s); last error: {last_error}"
        )
