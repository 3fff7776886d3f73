"""Retrying ingestion controller and its configuration."""

from __future__ import annotations

from .config import DEFAULT_ATTEMPT_TIMEOUT_S, DEFAULT_MAX_PAYLOAD_SIZE, IngestionConfig
from .controller import EventCallback, IngestionController
from .errors import (
    AttemptTimeoutError,
    DeadlineExceededError,
    PayloadValidationError,
    RetriesExhaustedError,
    ValidationFailure,
)
from .observability import (
    ErrorCategory,
    IngestionEventLogger,
    IngestionEventType,
    IngestionOutcome,
    categorize_error,
    classify_outcome,
)
from .retry import RetryPolicy, RetryState

__all__ = [
    "DEFAULT_ATTEMPT_TIMEOUT_S",
    "DEFAULT_MAX_PAYLOAD_SIZE",
    "AttemptTimeoutError",
    "DeadlineExceededError",
    "ErrorCategory",
    "EventCallback",
    "IngestionConfig",
    "IngestionController",
    "IngestionEventLogger",
    "IngestionEventType",
    "IngestionOutcome",
    "PayloadValidationError",
    "RetriesExhaustedError",
    "RetryPolicy",
    "RetryState",
    "ValidationFailure",
    "categorize_error",
    "classify_outcome",
]
