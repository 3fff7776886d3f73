"""Idempotency store lifecycle middleware for Falcon ASGI applications.

SQL-backed stores need their ledger table created before the first delivery
and their engine disposed at shutdown. The middleware hooks both into the
ASGI lifespan so request handlers never see an uninitialised store.

Usage
-----
Register the middleware when creating the Falcon app::

    from portcullis.api.middleware import StoreLifecycleManager

    app = falcon.asgi.App(middleware=[StoreLifecycleManager(store)])

"""

from __future__ import annotations

import typing as typ

from portcullis.idempotency.errors import IdempotencyStoreError
from portcullis.logging import get_logger, log_error, log_info

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from portcullis.idempotency.protocol import IdempotencyStore

__all__ = ["StoreLifecycleManager"]

logger = get_logger(__name__)


class StoreLifecycleManager:
    """Falcon middleware that initialises and closes an idempotency store.

    Parameters
    ----------
    store
        Store shared by every request the app serves.
    engine
        Engine the store borrows, disposed after the store is closed.

    """

    def __init__(
        self, store: IdempotencyStore, *, engine: AsyncEngine | None = None
    ) -> None:
        """Initialize the middleware with the store it manages."""
        self._store = store
        self._engine = engine
        self._ready = False

    @property
    def ready(self) -> bool:
        """Return whether the store finished initialising."""
        return self._ready

    async def process_startup(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Create the store's schema before traffic is accepted.

        Raises
        ------
        IdempotencyStoreError
            If the backend cannot be reached; startup fails.

        """
        try:
            await self._store.initialise()
        except IdempotencyStoreError:
            log_error(logger, "Idempotency store initialisation failed", exc_info=True)
            raise
        self._ready = True
        log_info(logger, "Idempotency store %s ready", type(self._store).__name__)

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Close the store, then dispose the borrowed engine."""
        self._ready = False
        try:
            await self._store.close()
        finally:
            if self._engine is not None:
                await self._engine.dispose()
                log_info(logger, "Database engine disposed")
