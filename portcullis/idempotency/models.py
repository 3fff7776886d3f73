"""Value types held by idempotency stores."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

from portcullis.idempotency.errors import (
    InvalidTTLError,
    TimezoneAwareRequiredError,
    UnsupportedEventDataError,
)

type JSONValue = (
    dict[str, JSONValue] | list[JSONValue] | str | int | float | bool | None
)
type EventData = dict[str, JSONValue]


def _normalise_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        raise TimezoneAwareRequiredError("event data datetime values")
    return value.astimezone(dt.UTC).isoformat()


def _normalise_value(value: object) -> JSONValue:
    """Deep-copy ``value`` into plain JSON types.

    Aware datetimes become ISO-8601 strings. Tuples are stored as lists.
    Anything else outside the JSON model raises UnsupportedEventDataError so
    every backend persists identical data.
    """
    match value:
        case dict():
            return {str(k): _normalise_value(v) for k, v in value.items()}
        case list() | tuple():
            return [_normalise_value(item) for item in value]
        case dt.datetime():
            return _normalise_datetime(value)
        case None | bool() | int() | float() | str():
            return value
        case _:
            raise UnsupportedEventDataError(type(value).__name__)


def normalise_event_data(data: typ.Mapping[str, object] | None) -> EventData:
    """Return a JSON-safe copy of caller-supplied audit data."""
    if data is None:
        return {}
    return {str(k): _normalise_value(v) for k, v in data.items()}


def compute_expiry(now: dt.datetime, ttl_seconds: int | None) -> dt.datetime | None:
    """Return when a record written at ``now`` stops counting as processed.

    ``None`` means the record never expires. A TTL of zero produces a record
    that is already expired.
    """
    if ttl_seconds is None:
        return None
    if ttl_seconds < 0:
        raise InvalidTTLError(ttl_seconds)
    return now + dt.timedelta(seconds=ttl_seconds)


@dc.dataclass(frozen=True, slots=True)
class ProcessedEventRecord:
    """Ledger entry proving an event id has been handled."""

    event_id: str
    processed_at: dt.datetime
    expires_at: dt.datetime | None = None
    data: EventData = dc.field(default_factory=dict)

    @classmethod
    def create(
        cls,
        event_id: str,
        *,
        now: dt.datetime,
        ttl_seconds: int | None = None,
        data: typ.Mapping[str, object] | None = None,
    ) -> ProcessedEventRecord:
        """Build a record for ``event_id`` processed at ``now``."""
        if now.tzinfo is None:
            raise TimezoneAwareRequiredError("processed_at")
        return cls(
            event_id=event_id,
            processed_at=now,
            expires_at=compute_expiry(now, ttl_seconds),
            data=normalise_event_data(data),
        )

    def is_expired(self, now: dt.datetime) -> bool:
        """Return whether the record no longer counts at ``now``."""
        return self.expires_at is not None and self.expires_at <= now
