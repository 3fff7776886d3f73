"""Process-local idempotency store."""

from __future__ import annotations

import threading
import typing as typ

from portcullis.common.time import utcnow
from portcullis.idempotency.models import ProcessedEventRecord

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from portcullis.common.time import Clock
    from portcullis.idempotency.models import EventData


class InMemoryIdempotencyStore:
    """Idempotency store holding records in a lock-guarded dict.

    Records vanish with the process, so this backend suits development only.
    The lock makes each claim atomic across threads as well as tasks.
    """

    def __init__(self, *, clock: Clock = utcnow) -> None:
        """Create an empty store reading time from ``clock``."""
        self._records: dict[str, ProcessedEventRecord] = {}
        self._lock = threading.Lock()
        self._clock = clock

    async def initialise(self) -> None:
        """Do nothing; the dict needs no schema."""

    async def is_processed(self, event_id: str) -> bool:
        """Return whether a live record exists, dropping it when expired."""
        now = self._clock()
        with self._lock:
            record = self._records.get(event_id)
            if record is None:
                return False
            if record.is_expired(now):
                del self._records[event_id]
                return False
            return True

    async def mark_as_processed(
        self,
        event_id: str,
        ttl_seconds: int | None = None,
        data: cabc.Mapping[str, object] | None = None,
    ) -> bool:
        """Claim ``event_id``; return ``False`` if a live record exists."""
        now = self._clock()
        record = ProcessedEventRecord.create(
            event_id, now=now, ttl_seconds=ttl_seconds, data=data
        )
        with self._lock:
            existing = self._records.get(event_id)
            if existing is not None and not existing.is_expired(now):
                return False
            self._records[event_id] = record
        return True

    async def remove_event(self, event_id: str) -> None:
        """Delete the record for ``event_id`` if present."""
        with self._lock:
            self._records.pop(event_id, None)

    async def clear_all(self) -> None:
        """Delete every record."""
        with self._lock:
            self._records.clear()

    async def cleanup_expired(self) -> int:
        """Delete expired records and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [
                event_id
                for event_id, record in self._records.items()
                if record.is_expired(now)
            ]
            for event_id in expired:
                del self._records[event_id]
        return len(expired)

    async def get_all_events(self) -> list[EventData]:
        """Return the audit data of every record."""
        with self._lock:
            return [dict(record.data) for record in self._records.values()]

    async def close(self) -> None:
        """Do nothing; there is nothing to release."""
