"""Idempotency stores recording which webhook events were processed."""

from __future__ import annotations

from .errors import (
    IdempotencyStoreError,
    InvalidTTLError,
    TimezoneAwareRequiredError,
    UnsupportedEventDataError,
)
from .factory import create_idempotency_store
from .memory import InMemoryIdempotencyStore
from .models import EventData, ProcessedEventRecord, normalise_event_data
from .protocol import IdempotencyStore
from .sql import SQLIdempotencyStore, SQLiteIdempotencyStore
from .storage import DEFAULT_TABLE_NAME, UTCDateTime, build_idempotency_table

__all__ = [
    "DEFAULT_TABLE_NAME",
    "EventData",
    "IdempotencyStore",
    "IdempotencyStoreError",
    "InMemoryIdempotencyStore",
    "InvalidTTLError",
    "ProcessedEventRecord",
    "SQLIdempotencyStore",
    "SQLiteIdempotencyStore",
    "TimezoneAwareRequiredError",
    "UTCDateTime",
    "UnsupportedEventDataError",
    "build_idempotency_table",
    "create_idempotency_store",
    "normalise_event_data",
]
