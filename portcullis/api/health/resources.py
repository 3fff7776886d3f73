"""Health probe resources for Kubernetes liveness and readiness checks.

Liveness never touches the idempotency store. Readiness reports ``503``
until the store lifecycle middleware has initialised the store, so traffic
is only routed once deliveries can be recorded.

Usage
-----
Register health endpoints on the Falcon app::

    from portcullis.api.health.resources import HealthResource, ReadyResource

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(lifecycle))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from portcullis.api.middleware import StoreLifecycleManager

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with liveness status.

        """
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource.

    Responds ``{"status": "ready"}`` once ``lifecycle`` reports the store
    initialised, or immediately when the app has no store to manage.
    """

    def __init__(self, lifecycle: StoreLifecycleManager | None = None) -> None:
        """Track readiness through ``lifecycle`` when one is supplied."""
        self._lifecycle = lifecycle

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests."""
        if self._lifecycle is not None and not self._lifecycle.ready:
            resp.media = {"status": "starting"}
            resp.status = HTTPStatus.SERVICE_UNAVAILABLE
            return
        resp.media = {"status": "ready"}
        resp.status = HTTPStatus.OK
