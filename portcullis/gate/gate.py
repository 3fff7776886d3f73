"""Verify-then-claim gate in front of the business callback.

Ordering matters: the store is consulted only after the signature has been
verified, so unauthenticated input can never mark an id as processed.
"""

from __future__ import annotations

import typing as typ

from portcullis.gate.errors import AlreadyProcessedError
from portcullis.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from portcullis.idempotency.protocol import IdempotencyStore
    from portcullis.signature.models import Event
    from portcullis.signature.verifier import SignatureVerifier
    from portcullis.stage import Stage

__all__ = ["DEFAULT_TTL_SECONDS", "WebhookGate"]

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 172800


class WebhookGate:
    """Turn raw deliveries into verified, de-duplicated events.

    Parameters
    ----------
    verifier
        Signature verifier bound to the active stage's secret.
    store
        Idempotency store shared by every concurrent delivery.
    default_ttl
        Retention in seconds for processed-event records; ``None`` keeps
        them forever.

    """

    def __init__(
        self,
        verifier: SignatureVerifier,
        store: IdempotencyStore,
        *,
        default_ttl: int | None = DEFAULT_TTL_SECONDS,
    ) -> None:
        """Bind the gate to its verifier and store."""
        self._verifier = verifier
        self._store = store
        self._default_ttl = default_ttl

    @property
    def store(self) -> IdempotencyStore:
        """Return the idempotency store."""
        return self._store

    @property
    def stage(self) -> Stage:
        """Return the verifier's active stage."""
        return self._verifier.stage

    @property
    def default_ttl(self) -> int | None:
        """Return the retention applied to newly processed events."""
        return self._default_ttl

    @property
    def tolerance(self) -> int:
        """Return the signature timestamp tolerance in seconds."""
        return self._verifier.tolerance_seconds

    def set_default_ttl(self, ttl_seconds: int | None) -> None:
        """Change the retention for events processed after this call."""
        self._default_ttl = ttl_seconds

    def set_tolerance(self, tolerance_seconds: int) -> None:
        """Change the timestamp tolerance for later verifications."""
        self._verifier.set_tolerance(tolerance_seconds)

    def set_stage(self, stage: Stage) -> None:
        """Switch the verifier to the secret for ``stage``."""
        self._verifier.set_stage(stage)

    async def verify_and_process(self, payload: bytes, sig_header: str) -> Event:
        """Verify a delivery and claim its event id.

        Returns
        -------
        Event
            The verified event, now recorded as processed.

        Raises
        ------
        SignatureVerificationError
            If verification fails; the store is not touched.
        AlreadyProcessedError
            If the event id is already recorded, including when a concurrent
            delivery of the same event claimed it first.
        IdempotencyStoreError
            If the store backend fails.

        """
        ttl = self._default_ttl
        event = self._verifier.verify(payload, sig_header)

        if await self._store.is_processed(event.id):
            raise AlreadyProcessedError(event.id)

        claimed = await self._store.mark_as_processed(
            event.id, ttl, event.audit_data()
        )
        if not claimed:
            log_info(logger, "Event %s claimed by a concurrent delivery", event.id)
            raise AlreadyProcessedError(event.id)
        return event
