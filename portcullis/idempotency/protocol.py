"""IdempotencyStore protocol shared by every backend."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from portcullis.idempotency.models import EventData


@typ.runtime_checkable
class IdempotencyStore(typ.Protocol):
    """De-duplication ledger keyed by event id.

    Implementations keep one record per event id with an optional expiry.
    ``mark_as_processed`` is the atomic claim: of any number of concurrent
    calls for the same live id exactly one returns ``True``. Backend I/O
    failures raise :class:`~portcullis.idempotency.errors.IdempotencyStoreError`.

    Examples
    --------
    >>> from portcullis.idempotency import InMemoryIdempotencyStore
    >>> store: IdempotencyStore = InMemoryIdempotencyStore()
    >>> isinstance(store, IdempotencyStore)
    True

    """

    async def initialise(self) -> None:
        """Create any backing schema the store needs."""
        ...

    async def is_processed(self, event_id: str) -> bool:
        """Return whether a live record exists for ``event_id``.

        Expired records are reported as unprocessed and purged.
        """
        ...

    async def mark_as_processed(
        self,
        event_id: str,
        ttl_seconds: int | None = None,
        data: cabc.Mapping[str, object] | None = None,
    ) -> bool:
        """Record ``event_id`` unless a live record already exists.

        Returns ``True`` when this call wrote the record and ``False`` when
        an earlier, unexpired record was kept. The first write wins.
        """
        ...

    async def remove_event(self, event_id: str) -> None:
        """Delete the record for ``event_id`` if present."""
        ...

    async def clear_all(self) -> None:
        """Delete every record."""
        ...

    async def cleanup_expired(self) -> int:
        """Delete expired records and return how many were removed."""
        ...

    async def get_all_events(self) -> list[EventData]:
        """Return the audit data of every stored record, in no fixed order."""
        ...

    async def close(self) -> None:
        """Release resources owned by the store."""
        ...
