"""Structured logging for webhook ingestion outcomes.

Every terminal result of :meth:`IngestionController.handle` is emitted as a
single ``[ingestion.<outcome>] key=value`` line so log aggregators can count
outcomes without parsing free text. Signature failures are logged at WARNING
because a burst of them usually means someone is probing the endpoint.
"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from portcullis.errors import ConfigurationError, TransientBackendError
from portcullis.gate.errors import AlreadyProcessedError
from portcullis.ingestion.errors import (
    AttemptTimeoutError,
    DeadlineExceededError,
    PayloadValidationError,
    RetriesExhaustedError,
)
from portcullis.logging import get_logger, log_error, log_info, log_warning
from portcullis.signature.errors import SignatureVerificationError

if typ.TYPE_CHECKING:
    from portcullis.logging import SupportsLog
    from portcullis.signature.models import Event

_logger = get_logger(__name__)


class IngestionOutcome(enum.StrEnum):
    """Terminal outcomes of one ingestion call."""

    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    VALIDATION_FAILED = "validation_failed"
    VERIFICATION_FAILED = "verification_failed"
    RETRIES_EXHAUSTED = "retries_exhausted"
    TIMED_OUT = "timed_out"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    PROCESSING_FAILED = "processing_failed"


class IngestionEventType(enum.StrEnum):
    """Structured log event types for ingestion observability."""

    PROCESSED = "ingestion.processed"
    DUPLICATE = "ingestion.duplicate"
    VALIDATION_FAILED = "ingestion.validation_failed"
    VERIFICATION_FAILED = "ingestion.verification_failed"
    ATTEMPT_RETRYING = "ingestion.attempt.retrying"
    RETRIES_EXHAUSTED = "ingestion.retries_exhausted"
    TIMED_OUT = "ingestion.timed_out"
    DEADLINE_EXCEEDED = "ingestion.deadline_exceeded"
    PROCESSING_FAILED = "ingestion.processing_failed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    CONFIGURATION = "configuration"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATABASE_ERROR = "database_error"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (PayloadValidationError, ErrorCategory.CLIENT_ERROR),
    (SignatureVerificationError, ErrorCategory.CLIENT_ERROR),
    (TransientBackendError, ErrorCategory.TRANSIENT),
    (ConfigurationError, ErrorCategory.CONFIGURATION),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)

_OUTCOME_MAP: tuple[tuple[type[BaseException], IngestionOutcome], ...] = (
    (AlreadyProcessedError, IngestionOutcome.DUPLICATE),
    (PayloadValidationError, IngestionOutcome.VALIDATION_FAILED),
    (SignatureVerificationError, IngestionOutcome.VERIFICATION_FAILED),
    (RetriesExhaustedError, IngestionOutcome.RETRIES_EXHAUSTED),
    (AttemptTimeoutError, IngestionOutcome.TIMED_OUT),
    (DeadlineExceededError, IngestionOutcome.DEADLINE_EXCEEDED),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    The chained cause is consulted for wrappers such as
    :class:`RetriesExhaustedError` so alerts route on the underlying failure.
    """
    for candidate in (exc, exc.__cause__):
        if candidate is None:
            continue
        for exc_type, category in _EXCEPTION_CATEGORY_MAP:
            if isinstance(candidate, exc_type):
                return category
    return ErrorCategory.UNKNOWN


def classify_outcome(exc: BaseException) -> IngestionOutcome:
    """Return the outcome tag for an exception raised by ``handle()``.

    Anything not raised by the ingestion pipeline itself came from the event
    callback and maps to ``PROCESSING_FAILED``.
    """
    for exc_type, outcome in _OUTCOME_MAP:
        if isinstance(exc, exc_type):
            return outcome
    return IngestionOutcome.PROCESSING_FAILED


class IngestionEventLogger:
    """Emit structured ingestion events through femtologging.

    Events are emitted at INFO for accepted and duplicate deliveries, WARNING
    for rejected input and retries, and ERROR for backend or callback
    failures.
    """

    def __init__(self, logger: SupportsLog | None = None) -> None:
        """Use ``logger`` instead of the module logger when supplied."""
        self._logger = logger if logger is not None else _logger

    def log_processed(self, event: Event, attempts: int) -> None:
        """Log a delivery that passed the gate and its callback."""
        log_info(
            self._logger,
            "[%s] event_id=%s event_type=%s attempts=%d outcome=%s",
            IngestionEventType.PROCESSED,
            event.id,
            event.type,
            attempts,
            IngestionOutcome.PROCESSED,
        )

    def log_duplicate(self, event_id: str, attempts: int) -> None:
        """Log a delivery whose event was already recorded."""
        log_info(
            self._logger,
            "[%s] event_id=%s attempts=%d outcome=%s",
            IngestionEventType.DUPLICATE,
            event_id,
            attempts,
            IngestionOutcome.DUPLICATE,
        )

    def log_validation_failed(
        self, error: PayloadValidationError, payload_size: int
    ) -> None:
        """Log a payload rejected before verification."""
        log_warning(
            self._logger,
            "[%s] reason=%s payload_size=%d outcome=%s",
            IngestionEventType.VALIDATION_FAILED,
            error.reason,
            payload_size,
            IngestionOutcome.VALIDATION_FAILED,
        )

    def log_verification_failed(
        self, error: SignatureVerificationError, attempts: int
    ) -> None:
        """Log a delivery whose signature or timestamp was rejected."""
        log_warning(
            self._logger,
            "[%s] error_type=%s attempts=%d outcome=%s",
            IngestionEventType.VERIFICATION_FAILED,
            type(error).__name__,
            attempts,
            IngestionOutcome.VERIFICATION_FAILED,
        )

    def log_retrying(
        self, attempt: int, delay_s: float, error: BaseException
    ) -> None:
        """Log a transient failure that will be retried after ``delay_s``."""
        log_warning(
            self._logger,
            "[%s] attempt=%d delay_seconds=%.3f error_type=%s "
            "error_category=%s error_message=%s",
            IngestionEventType.ATTEMPT_RETRYING,
            attempt,
            delay_s,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )

    def log_retries_exhausted(self, error: RetriesExhaustedError) -> None:
        """Log the final transient failure once no attempts remain."""
        log_error(
            self._logger,
            "[%s] attempts=%d error_type=%s error_category=%s outcome=%s",
            IngestionEventType.RETRIES_EXHAUSTED,
            error.attempts,
            type(error.last_error).__name__,
            categorize_error(error.last_error),
            IngestionOutcome.RETRIES_EXHAUSTED,
            exc_info=error.last_error,
        )

    def log_timed_out(self, error: AttemptTimeoutError) -> None:
        """Log an attempt cancelled by its hard timeout."""
        log_error(
            self._logger,
            "[%s] attempt=%d timeout_seconds=%.3f outcome=%s",
            IngestionEventType.TIMED_OUT,
            error.attempt,
            error.timeout_s,
            IngestionOutcome.TIMED_OUT,
        )

    def log_deadline_exceeded(self, error: DeadlineExceededError) -> None:
        """Log a retry loop stopped by the caller's deadline."""
        log_error(
            self._logger,
            "[%s] attempts=%d error_type=%s outcome=%s",
            IngestionEventType.DEADLINE_EXCEEDED,
            error.attempts,
            type(error.last_error).__name__,
            IngestionOutcome.DEADLINE_EXCEEDED,
        )

    def log_processing_failed(self, event: Event, error: BaseException) -> None:
        """Log an exception raised by the event callback."""
        log_error(
            self._logger,
            "[%s] event_id=%s event_type=%s error_type=%s error_category=%s "
            "error_message=%s outcome=%s",
            IngestionEventType.PROCESSING_FAILED,
            event.id,
            event.type,
            type(error).__name__,
            categorize_error(error),
            str(error),
            IngestionOutcome.PROCESSING_FAILED,
            exc_info=error,
        )
