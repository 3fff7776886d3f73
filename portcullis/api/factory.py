"""Factory for building an IngestionController from configuration.

Components are assembled explicitly: verifier, store, gate, controller.
The signing secret is resolved first so a misconfigured stage fails before
any database engine is opened.

Usage
-----
Build a controller for the API layer::

    from portcullis.api.factory import build_ingestion_controller

    controller = build_ingestion_controller(IngestionConfig.from_env())

"""

from __future__ import annotations

import typing as typ

from portcullis.gate import WebhookGate
from portcullis.idempotency import create_idempotency_store
from portcullis.ingestion import IngestionController, IngestionEventLogger
from portcullis.signature import SignatureVerifier

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from portcullis.ingestion.config import IngestionConfig

__all__ = ["build_ingestion_controller"]


def build_ingestion_controller(
    config: IngestionConfig,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    event_logger: IngestionEventLogger | None = None,
) -> IngestionController:
    """Build an ``IngestionController`` wired for ``config.stage``.

    Parameters
    ----------
    config
        Ingestion settings.
    session_factory
        Async session factory for the production store; ignored in other
        stages.
    event_logger
        Outcome logger; a default instance is created when omitted.

    Returns
    -------
    IngestionController
        Controller whose store still needs ``initialise()``.

    Raises
    ------
    ConfigurationError
        If the stage's secret is missing or production has no database.

    """
    verifier = SignatureVerifier(
        config.secrets,
        stage=config.stage,
        tolerance_seconds=config.tolerance_seconds,
    )
    store = create_idempotency_store(
        config.stage,
        session_factory=session_factory,
        table_name=config.table_name,
        sqlite_path=config.sqlite_path,
    )
    gate = WebhookGate(verifier, store, default_ttl=config.default_ttl)
    return IngestionController(
        gate,
        policy=config.stage_retry_policy,
        max_payload_size=config.max_payload_size,
        attempt_timeout_s=config.attempt_timeout_s,
        event_logger=event_logger or IngestionEventLogger(),
    )
