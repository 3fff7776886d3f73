"""Unit tests for the idempotency store lifecycle middleware."""

from __future__ import annotations

from unittest import mock

import falcon.asgi
import falcon.testing
import pytest

from portcullis.api.health.resources import ReadyResource
from portcullis.api.middleware import StoreLifecycleManager
from portcullis.idempotency import IdempotencyStoreError, InMemoryIdempotencyStore


@pytest.fixture
def store() -> mock.AsyncMock:
    """Return a mock store with async lifecycle methods."""
    return mock.AsyncMock(spec=InMemoryIdempotencyStore)


class TestStoreLifecycleManager:
    """Tests for StoreLifecycleManager startup and shutdown."""

    @pytest.mark.asyncio
    async def test_startup_initialises_store(self, store: mock.AsyncMock) -> None:
        """Startup awaits initialise() and marks the store ready."""
        lifecycle = StoreLifecycleManager(store)
        assert lifecycle.ready is False

        await lifecycle.process_startup({}, {})

        store.initialise.assert_awaited_once()
        assert lifecycle.ready is True

    @pytest.mark.asyncio
    async def test_startup_failure_propagates(self, store: mock.AsyncMock) -> None:
        """A failing backend aborts startup and stays not ready."""
        store.initialise.side_effect = IdempotencyStoreError.operation_failed(
            "initialise"
        )
        lifecycle = StoreLifecycleManager(store)

        with pytest.raises(IdempotencyStoreError):
            await lifecycle.process_startup({}, {})

        assert lifecycle.ready is False

    @pytest.mark.asyncio
    async def test_shutdown_closes_store(self, store: mock.AsyncMock) -> None:
        """Shutdown closes the store and clears readiness."""
        lifecycle = StoreLifecycleManager(store)
        await lifecycle.process_startup({}, {})

        await lifecycle.process_shutdown({}, {})

        store.close.assert_awaited_once()
        assert lifecycle.ready is False

    @pytest.mark.asyncio
    async def test_shutdown_disposes_borrowed_engine(
        self, store: mock.AsyncMock
    ) -> None:
        """The engine behind the store is disposed after the store closes."""
        order: list[str] = []
        store.close.side_effect = lambda: order.append("close")
        engine = mock.AsyncMock()
        engine.dispose.side_effect = lambda: order.append("dispose")
        lifecycle = StoreLifecycleManager(store, engine=engine)

        await lifecycle.process_shutdown({}, {})

        engine.dispose.assert_awaited_once()
        assert order == ["close", "dispose"]

    @pytest.mark.asyncio
    async def test_engine_disposed_when_store_close_fails(
        self, store: mock.AsyncMock
    ) -> None:
        """A failing store close still releases the engine's connections."""
        store.close.side_effect = IdempotencyStoreError.operation_failed("close")
        engine = mock.AsyncMock()
        lifecycle = StoreLifecycleManager(store, engine=engine)

        with pytest.raises(IdempotencyStoreError):
            await lifecycle.process_shutdown({}, {})

        engine.dispose.assert_awaited_once()


class TestReadyResource:
    """Tests for readiness reporting."""

    def test_not_ready_before_startup(self, store: mock.AsyncMock) -> None:
        """Readiness answers 503 until the store is initialised."""
        app = falcon.asgi.App()
        app.add_route("/ready", ReadyResource(StoreLifecycleManager(store)))

        result = falcon.testing.TestClient(app).simulate_get("/ready")

        assert result.status == falcon.HTTP_503
        assert result.json == {"status": "starting"}
