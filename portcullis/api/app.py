"""Application factory for the Portcullis Falcon ASGI application.

This module provides ``create_app()`` which builds the Falcon ASGI
application with health endpoints and, when an ingestion controller is
supplied, the webhook endpoint together with store lifecycle management.

Usage
-----
Create a health-only app::

    app = create_app()

Create a full app with the webhook endpoint::

    from portcullis.api.app import AppDependencies, create_app

    deps = AppDependencies(controller=controller, event_handler=handle_event)
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from portcullis.api.errors import register_error_handlers
from portcullis.api.health.resources import HealthResource, ReadyResource
from portcullis.api.webhooks.resources import log_event

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from portcullis.api.webhooks.resources import EventHandler
    from portcullis.ingestion.controller import IngestionController

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    controller
        Ingestion controller; enables ``POST /webhooks`` when set.
    event_handler
        Callback receiving each newly verified event.
    deadline_s
        Optional per-delivery retry budget in seconds.
    engine
        Database engine behind the controller's store; disposed at shutdown.

    """

    controller: IngestionController | None = None
    event_handler: EventHandler = log_event
    deadline_s: float | None = None
    engine: AsyncEngine | None = None


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None`` or without a
        controller, only ``/health`` and ``/ready`` are registered.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    controller = dependencies.controller if dependencies is not None else None
    engine = dependencies.engine if dependencies is not None else None
    middleware: list[object] = []
    lifecycle = None

    if controller is not None:
        from portcullis.api.middleware import StoreLifecycleManager

        lifecycle = StoreLifecycleManager(controller.store, engine=engine)
        middleware.append(lifecycle)

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(lifecycle))

    if controller is not None and dependencies is not None:
        from portcullis.api.webhooks.resources import WebhookResource

        app.add_route(
            "/webhooks",
            WebhookResource(
                controller,
                dependencies.event_handler,
                deadline_s=dependencies.deadline_s,
            ),
        )

    register_error_handlers(app)
    return app
