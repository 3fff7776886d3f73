"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import contextlib
import logging
import os
import socket
import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tests.helpers.fakes import FakeClock, FakeLogger

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.engine import Connection

try:
    from py_pglite import PGliteConfig, PGliteManager

    _PGLITE_AVAILABLE = True
except ImportError:  # pragma: no cover - optional dependency
    _PGLITE_AVAILABLE = False

logger = logging.getLogger(__name__)


def _should_use_pglite() -> bool:
    """Return True when tests should run against py-pglite Postgres."""
    target = os.getenv("PORTCULLIS_TEST_DB", "sqlite").lower()
    return target == "pglite" and _PGLITE_AVAILABLE


def _find_free_port() -> int:
    """Find an available TCP port for a temporary Postgres instance."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@contextlib.asynccontextmanager
async def _pglite_engine(tmp_path: Path) -> typ.AsyncIterator[AsyncEngine]:
    """Start a py-pglite Postgres and yield an async engine bound to it."""
    port = _find_free_port()
    config = PGliteConfig(
        use_tcp=True, tcp_host="127.0.0.1", tcp_port=port, work_dir=tmp_path / "pglite"
    )

    with PGliteManager(config):
        url = (
            f"postgresql+asyncpg://postgres:postgres@{config.tcp_host}:"
            f"{config.tcp_port}/postgres"
        )
        engine = create_async_engine(url)
        try:
            yield engine
        finally:
            await engine.dispose()


async def _try_setup_pglite(
    tmp_path: Path,
) -> tuple[AsyncEngine, typ.Any] | None:
    """Attempt to set up a py-pglite Postgres engine.

    Returns a tuple of (engine, engine_cm) on success, or None if py-pglite
    is not selected or fails to start.
    """
    if not _should_use_pglite():
        return None

    engine_cm = None
    try:
        engine_cm = _pglite_engine(tmp_path)
        engine = await engine_cm.__aenter__()
    except Exception as exc:  # noqa: BLE001
        # pragma: no cover - fall back when py-pglite fails at any stage
        logger.warning("py-pglite unavailable, falling back to SQLite: %s", exc)
        if engine_cm is not None:
            with contextlib.suppress(Exception):
                await engine_cm.__aexit__(None, None, None)
        return None
    else:
        return (engine, engine_cm)


def _sqlite_engine(path: Path) -> AsyncEngine:
    """Return an aiosqlite engine whose transactions take the write lock up front.

    Deferred SQLite transactions on separate connections can deadlock when
    both upgrade to a write lock; immediate transactions queue instead.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}")

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection: typ.Any, _record: object) -> None:  # noqa: ANN401
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite or py-pglite."""
    engine_cm = None
    result = await _try_setup_pglite(tmp_path)
    if result is not None:
        engine, engine_cm = result
    else:
        engine = _sqlite_engine(tmp_path / "portcullis_test.db")

    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()
        if engine_cm is not None:
            await engine_cm.__aexit__(None, None, None)


@pytest.fixture
def clock() -> FakeClock:
    """Return a controllable clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Return a logger that records every call."""
    return FakeLogger()
