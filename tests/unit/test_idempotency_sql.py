"""SQL-specific behaviour of the idempotency stores."""

from __future__ import annotations

import typing as typ

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from portcullis.errors import ConfigurationError, TransientBackendError
from portcullis.idempotency import (
    IdempotencyStoreError,
    SQLIdempotencyStore,
    SQLiteIdempotencyStore,
    build_idempotency_table,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class TestSchema:
    """Tests for the ledger table definition."""

    def test_event_id_is_unique(self) -> None:
        """The table carries a named unique constraint on event_id."""
        table = build_idempotency_table("ledger")
        names = {constraint.name for constraint in table.constraints}
        assert "uq_ledger_event_id" in names

    @pytest.mark.parametrize("name", ["1table", "drop table", "ledger;--", ""])
    def test_rejects_unsafe_table_names(self, name: str) -> None:
        """Table names must be plain identifiers."""
        with pytest.raises(ConfigurationError):
            build_idempotency_table(name)

    @pytest.mark.asyncio
    async def test_initialise_creates_named_table(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """initialise() creates the configured table and is repeatable."""
        store = SQLIdempotencyStore(session_factory, table_name="custom_ledger")
        await store.initialise()
        await store.initialise()

        async with session_factory() as session:
            connection = await session.connection()
            tables = await connection.run_sync(
                lambda sync_conn: inspect(sync_conn).get_table_names()
            )
        assert "custom_ledger" in tables, f"Expected custom_ledger in {tables}"
        assert store.table_name == "custom_ledger"


class TestSQLiteStore:
    """Tests for the self-contained SQLite store."""

    @pytest.mark.asyncio
    async def test_file_store_persists_across_instances(self, tmp_path: Path) -> None:
        """Records written to a database file survive reopening."""
        path = tmp_path / "ledger.db"
        first = SQLiteIdempotencyStore.open(path)
        await first.initialise()
        await first.mark_as_processed("evt_persist", None, {"id": "evt_persist"})
        await first.close()

        second = SQLiteIdempotencyStore.open(path)
        await second.initialise()
        try:
            assert await second.is_processed("evt_persist") is True
        finally:
            await second.close()


class TestErrorTranslation:
    """Tests for driver error translation."""

    @pytest.mark.asyncio
    async def test_driver_failures_become_store_errors(self) -> None:
        """Driver errors surface as transient IdempotencyStoreError."""
        store = SQLiteIdempotencyStore.open()
        try:
            # No initialise(): the table does not exist yet.
            with pytest.raises(IdempotencyStoreError) as excinfo:
                await store.is_processed("evt_missing_table")
        finally:
            await store.close()

        error = excinfo.value
        assert isinstance(error, TransientBackendError)
        assert error.operation == "is_processed"
        assert isinstance(error.__cause__, OperationalError), (
            "The driver error must be chained as the cause"
        )
