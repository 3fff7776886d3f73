"""Unit tests for processed-event records and audit data normalisation."""

from __future__ import annotations

import datetime as dt

import pytest

from portcullis.idempotency import (
    InvalidTTLError,
    ProcessedEventRecord,
    TimezoneAwareRequiredError,
    UnsupportedEventDataError,
    normalise_event_data,
)

NOW = dt.datetime(2024, 1, 1, tzinfo=dt.UTC)


class TestProcessedEventRecord:
    """Tests for ProcessedEventRecord.create and expiry."""

    def test_ttl_sets_expiry(self) -> None:
        """A TTL produces an expiry that many seconds after processing."""
        record = ProcessedEventRecord.create("evt_1", now=NOW, ttl_seconds=60)
        assert record.expires_at == NOW + dt.timedelta(seconds=60)
        assert not record.is_expired(NOW + dt.timedelta(seconds=59))
        assert record.is_expired(NOW + dt.timedelta(seconds=60)), (
            "A record must be expired exactly at its expiry instant"
        )

    def test_none_ttl_never_expires(self) -> None:
        """Records without a TTL stay live indefinitely."""
        record = ProcessedEventRecord.create("evt_1", now=NOW)
        assert record.expires_at is None
        assert not record.is_expired(NOW + dt.timedelta(days=3650))

    def test_zero_ttl_is_expired_immediately(self) -> None:
        """A zero TTL yields a record that no longer counts."""
        record = ProcessedEventRecord.create("evt_1", now=NOW, ttl_seconds=0)
        assert record.is_expired(NOW)

    def test_negative_ttl_is_rejected(self) -> None:
        """Negative TTLs raise InvalidTTLError."""
        with pytest.raises(InvalidTTLError) as excinfo:
            ProcessedEventRecord.create("evt_1", now=NOW, ttl_seconds=-1)
        assert excinfo.value.ttl_seconds == -1

    def test_naive_now_is_rejected(self) -> None:
        """Naive timestamps cannot be used as processing time."""
        with pytest.raises(TimezoneAwareRequiredError):
            ProcessedEventRecord.create("evt_1", now=dt.datetime(2024, 1, 1))  # noqa: DTZ001


class TestNormaliseEventData:
    """Tests for normalise_event_data."""

    def test_copies_nested_values(self) -> None:
        """Nested containers are deep-copied and tuples become lists."""
        source = {"nested": {"tags": ("a", "b")}, "count": 2}
        data = normalise_event_data(source)
        assert data == {"nested": {"tags": ["a", "b"]}, "count": 2}
        source["count"] = 3
        assert data["count"] == 2, "Normalised data must not alias the input"

    def test_aware_datetimes_become_iso_strings(self) -> None:
        """Datetimes are stored as UTC ISO-8601 strings."""
        data = normalise_event_data({"at": NOW})
        assert data == {"at": "2024-01-01T00:00:00+00:00"}

    def test_none_is_empty(self) -> None:
        """Missing audit data becomes an empty mapping."""
        assert normalise_event_data(None) == {}

    def test_unsupported_types_are_rejected(self) -> None:
        """Values outside the JSON model raise UnsupportedEventDataError."""
        with pytest.raises(UnsupportedEventDataError, match="set"):
            normalise_event_data({"ids": {1, 2}})
