"""Portcullis runtime entrypoint for container deployments.

This module provides the ASGI application factory used by Granian. It
reads :class:`~portcullis.ingestion.config.IngestionConfig` from the
environment, assembles the ingestion controller and delegates app
construction to :func:`portcullis.api.app.create_app`.

When ``PORTCULLIS_DATABASE_URL`` is set, an async SQLAlchemy engine is
created for the production idempotency store and disposed by the app's
lifespan shutdown hook.

Server configuration is driven by environment variables:

- ``PORTCULLIS_HOST``: Bind address (default ``0.0.0.0``)
- ``PORTCULLIS_PORT``: Listen port (default ``8080``)
- ``PORTCULLIS_LOG_LEVEL``: Log level (default ``INFO``)

Run the service directly with ``python -m portcullis.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from portcullis.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid PORTCULLIS_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create the Falcon ASGI application from environment configuration.

    Returns
    -------
    falcon.asgi.App
        App serving ``/health``, ``/ready`` and ``POST /webhooks``.

    Raises
    ------
    ConfigurationError
        If the environment is incomplete or invalid for the active stage.

    """
    from portcullis.api.app import AppDependencies
    from portcullis.api.app import create_app as _create_api_app
    from portcullis.api.factory import build_ingestion_controller
    from portcullis.ingestion.config import IngestionConfig

    config = IngestionConfig.from_env()

    engine = None
    session_factory = None
    if config.database_url is not None:
        from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

        engine = create_async_engine(config.database_url, pool_pre_ping=True)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)

    controller = build_ingestion_controller(config, session_factory=session_factory)
    log_info(
        logger,
        "Ingestion configured for stage %s (store=%s max_attempts=%d)",
        config.stage,
        type(controller.store).__name__,
        controller.policy.max_attempts,
    )
    return _create_api_app(AppDependencies(controller=controller, engine=engine))


def main() -> None:
    """Start the Portcullis runtime server using Granian.

    Reads ``PORTCULLIS_HOST``, ``PORTCULLIS_PORT``, and
    ``PORTCULLIS_LOG_LEVEL`` from the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("PORTCULLIS_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port_str = os.environ.get("PORTCULLIS_PORT", "8080")
    port = _parse_port(port_str)
    log_level_str = os.environ.get("PORTCULLIS_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid PORTCULLIS_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting Portcullis runtime on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "portcullis.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
