"""Common time utilities."""

from __future__ import annotations

import datetime as dt
import typing as typ

type Clock = typ.Callable[[], dt.datetime]


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def to_unix(value: dt.datetime) -> int:
    """Return whole seconds since the epoch for an aware datetime."""
    return int(value.timestamp())
