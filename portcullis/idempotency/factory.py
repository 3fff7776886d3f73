"""Select an idempotency store backend for a deployment stage."""

from __future__ import annotations

import typing as typ

from portcullis.common.time import utcnow
from portcullis.errors import ConfigurationError
from portcullis.idempotency.memory import InMemoryIdempotencyStore
from portcullis.idempotency.storage import DEFAULT_TABLE_NAME, validate_table_name
from portcullis.stage import Stage

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from portcullis.common.time import Clock
    from portcullis.idempotency.protocol import IdempotencyStore


def create_idempotency_store(
    stage: Stage,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    table_name: str = DEFAULT_TABLE_NAME,
    sqlite_path: str | Path | None = None,
    clock: Clock = utcnow,
) -> IdempotencyStore:
    """Create the store backend for ``stage``.

    - ``dev``: :class:`InMemoryIdempotencyStore`
    - ``test``: :class:`SQLiteIdempotencyStore` at ``sqlite_path`` (in memory
      when unset)
    - ``prod``: :class:`SQLIdempotencyStore` over ``session_factory``

    SQL backends still need ``await store.initialise()`` before first use.

    Raises
    ------
    ConfigurationError
        If ``prod`` is selected without a session factory, or the table name
        is not a plain identifier.

    Examples
    --------
    >>> store = create_idempotency_store(Stage.DEV)
    >>> isinstance(store, InMemoryIdempotencyStore)
    True

    """
    validate_table_name(table_name)

    if stage is Stage.DEV:
        return InMemoryIdempotencyStore(clock=clock)

    from portcullis.idempotency.sql import SQLIdempotencyStore, SQLiteIdempotencyStore

    if stage is Stage.TEST:
        return SQLiteIdempotencyStore.open(
            sqlite_path, table_name=table_name, clock=clock
        )

    if session_factory is None:
        raise ConfigurationError.missing_connection(stage.value)
    return SQLIdempotencyStore(session_factory, table_name=table_name, clock=clock)
