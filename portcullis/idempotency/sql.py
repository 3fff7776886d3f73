"""SQLAlchemy-backed idempotency stores.

``SQLIdempotencyStore`` runs against any async SQLAlchemy session factory and
is the production backend when pointed at PostgreSQL. ``SQLiteIdempotencyStore``
owns an aiosqlite engine and serves test deployments.

Duplicate claims are resolved by the database: ``event_id`` carries a unique
constraint, and an ``IntegrityError`` on insert means another writer already
recorded the event.
"""

from __future__ import annotations

import asyncio
import contextlib
import typing as typ

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from portcullis.common.time import utcnow
from portcullis.idempotency.errors import IdempotencyStoreError
from portcullis.idempotency.models import ProcessedEventRecord
from portcullis.idempotency.storage import DEFAULT_TABLE_NAME, build_idempotency_table
from portcullis.logging import get_logger, log_debug

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt
    from pathlib import Path

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from portcullis.common.time import Clock
    from portcullis.idempotency.models import EventData

__all__ = ["SQLIdempotencyStore", "SQLiteIdempotencyStore"]

logger = get_logger(__name__)


@contextlib.contextmanager
def _translate_errors(
    operation: str, event_id: str | None = None
) -> typ.Iterator[None]:
    """Re-raise driver failures as IdempotencyStoreError."""
    try:
        yield
    except (SQLAlchemyError, OSError) as exc:
        raise IdempotencyStoreError.operation_failed(operation, event_id) from exc


class SQLIdempotencyStore:
    """Idempotency store persisted in a SQL table.

    The store borrows ``session_factory`` and never disposes its engine; the
    caller that created the engine owns it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        table_name: str = DEFAULT_TABLE_NAME,
        clock: Clock = utcnow,
    ) -> None:
        """Bind the store to a session factory and ledger table name."""
        self._session_factory = session_factory
        self._table = build_idempotency_table(table_name)
        self._clock = clock

    @contextlib.asynccontextmanager
    async def _session(self) -> typ.AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    @property
    def table_name(self) -> str:
        """Return the name of the ledger table."""
        return self._table.name

    def _expired_clauses(
        self, now: dt.datetime, event_id: str | None = None
    ) -> list[ColumnElement[bool]]:
        expiry = self._table.c.expiry
        clauses: list[ColumnElement[bool]] = [expiry.is_not(None), expiry <= now]
        if event_id is not None:
            clauses.append(self._table.c.event_id == event_id)
        return clauses

    async def initialise(self) -> None:
        """Create the ledger table if it does not exist yet."""
        with _translate_errors("initialise"):
            async with self._session() as session:
                connection = await session.connection()
                await connection.run_sync(self._table.metadata.create_all)
                await session.commit()

    async def is_processed(self, event_id: str) -> bool:
        """Return whether a live record exists, purging it when expired."""
        now = self._clock()
        table = self._table
        with _translate_errors("is_processed", event_id):
            async with self._session() as session:
                row = (
                    await session.execute(
                        select(table.c.expiry).where(table.c.event_id == event_id)
                    )
                ).first()
                if row is None:
                    return False
                if row.expiry is None or row.expiry > now:
                    return True
                await session.execute(
                    delete(table).where(*self._expired_clauses(now, event_id))
                )
                await session.commit()
                log_debug(logger, "Purged expired event %s on read", event_id)
                return False

    async def mark_as_processed(
        self,
        event_id: str,
        ttl_seconds: int | None = None,
        data: cabc.Mapping[str, object] | None = None,
    ) -> bool:
        """Insert a record for ``event_id``; return ``False`` if one is live.

        An expired record for the same id is replaced within the same
        transaction.
        """
        record = ProcessedEventRecord.create(
            event_id, now=self._clock(), ttl_seconds=ttl_seconds, data=data
        )
        table = self._table
        with _translate_errors("mark_as_processed", event_id):
            async with self._session() as session:
                try:
                    await session.execute(
                        delete(table).where(
                            *self._expired_clauses(record.processed_at, event_id)
                        )
                    )
                    await session.execute(
                        insert(table).values(
                            event_id=record.event_id,
                            data=record.data,
                            expiry=record.expires_at,
                            processed_at=record.processed_at,
                        )
                    )
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    log_debug(logger, "Event %s already recorded", event_id)
                    return False
        return True

    async def remove_event(self, event_id: str) -> None:
        """Delete the record for ``event_id`` if present."""
        with _translate_errors("remove_event", event_id):
            async with self._session() as session:
                await session.execute(
                    delete(self._table).where(self._table.c.event_id == event_id)
                )
                await session.commit()

    async def clear_all(self) -> None:
        """Delete every record in the ledger table."""
        with _translate_errors("clear_all"):
            async with self._session() as session:
                await session.execute(delete(self._table))
                await session.commit()

    async def cleanup_expired(self) -> int:
        """Delete expired records and return how many were removed."""
        now = self._clock()
        with _translate_errors("cleanup_expired"):
            async with self._session() as session:
                result = await session.execute(
                    delete(self._table).where(*self._expired_clauses(now))
                )
                await session.commit()
        return typ.cast("int", result.rowcount or 0)

    async def get_all_events(self) -> list[EventData]:
        """Return the ``data`` column of every row."""
        with _translate_errors("get_all_events"):
            async with self._session() as session:
                rows = await session.scalars(select(self._table.c.data))
                return list(rows)

    async def close(self) -> None:
        """Do nothing; the borrowed engine belongs to the caller."""


class SQLiteIdempotencyStore(SQLIdempotencyStore):
    """SQL store that owns an aiosqlite engine.

    SQLite allows one writer at a time and the in-memory variant shares a
    single connection, so sessions are serialised with an asyncio lock.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        table_name: str = DEFAULT_TABLE_NAME,
        clock: Clock = utcnow,
    ) -> None:
        """Wrap ``engine``; :meth:`close` disposes it."""
        super().__init__(
            async_sessionmaker(engine, expire_on_commit=False),
            table_name=table_name,
            clock=clock,
        )
        self._engine = engine
        self._lock = asyncio.Lock()

    @contextlib.asynccontextmanager
    async def _session(self) -> typ.AsyncIterator[AsyncSession]:
        async with self._lock, self._session_factory() as session:
            yield session

    @classmethod
    def open(
        cls,
        path: str | Path | None = None,
        *,
        table_name: str = DEFAULT_TABLE_NAME,
        clock: Clock = utcnow,
    ) -> SQLiteIdempotencyStore:
        """Open a SQLite-backed store.

        ``None`` or ``":memory:"`` yields a private in-memory database held
        on a single shared connection; any other value is a database file.
        """
        if path is None or str(path) == ":memory:":
            engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
        else:
            engine = create_async_engine(f"sqlite+aiosqlite:///{path}")
        return cls(engine, table_name=table_name, clock=clock)

    async def close(self) -> None:
        """Dispose the owned engine."""
        await self._engine.dispose()
