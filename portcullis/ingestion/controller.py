"""Retrying front door for webhook deliveries.

``IngestionController.handle`` validates the raw body, runs the webhook gate
under a per-attempt timeout, retries transient backend failures with bounded
backoff, and finally hands the verified event to the caller's callback.

Only :class:`~portcullis.errors.TransientBackendError` is retried. Validation,
verification, duplicate and timeout outcomes are terminal on first
occurrence, and callback exceptions propagate unchanged.

Usage
-----
>>> controller = IngestionController(gate, policy=RetryPolicy(max_attempts=3))
>>> result = await controller.handle(body, header, process_event)

"""

from __future__ import annotations

import asyncio
import inspect
import time
import typing as typ

import msgspec

from portcullis.errors import TransientBackendError
from portcullis.gate.errors import AlreadyProcessedError
from portcullis.ingestion.config import (
    DEFAULT_ATTEMPT_TIMEOUT_S,
    DEFAULT_MAX_PAYLOAD_SIZE,
)
from portcullis.ingestion.errors import (
    AttemptTimeoutError,
    DeadlineExceededError,
    PayloadValidationError,
    RetriesExhaustedError,
)
from portcullis.ingestion.observability import IngestionEventLogger
from portcullis.ingestion.retry import RetryPolicy, RetryState
from portcullis.signature.errors import SignatureVerificationError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from portcullis.gate.gate import WebhookGate
    from portcullis.idempotency.models import EventData
    from portcullis.idempotency.protocol import IdempotencyStore
    from portcullis.signature.models import Event

__all__ = ["EventCallback", "IngestionController"]

type EventCallback[T] = cabc.Callable[[Event], T | cabc.Awaitable[T]]

_decoder = msgspec.json.Decoder()


class IngestionController:
    """Validate, verify with retries, then dispatch one delivery.

    Parameters
    ----------
    gate
        Verify-then-claim gate shared by all deliveries.
    policy
        Retry policy, already adapted to the deployment stage.
    max_payload_size
        Largest accepted body in bytes; a body of exactly this size passes.
    attempt_timeout_s
        Hard limit for one gate attempt; ``None`` disables it.
    event_logger
        Structured outcome logger.
    sleep
        Coroutine used for backoff delays.
    monotonic
        Clock used to evaluate caller deadlines.

    """

    def __init__(  # noqa: PLR0913
        self,
        gate: WebhookGate,
        *,
        policy: RetryPolicy | None = None,
        max_payload_size: int = DEFAULT_MAX_PAYLOAD_SIZE,
        attempt_timeout_s: float | None = DEFAULT_ATTEMPT_TIMEOUT_S,
        event_logger: IngestionEventLogger | None = None,
        sleep: cabc.Callable[[float], cabc.Awaitable[None]] = asyncio.sleep,
        monotonic: cabc.Callable[[], float] = time.monotonic,
    ) -> None:
        """Bind the controller to its gate and retry settings."""
        self._gate = gate
        self._policy = policy if policy is not None else RetryPolicy()
        self._max_payload_size = max_payload_size
        self._attempt_timeout_s = attempt_timeout_s
        self._events = (
            event_logger if event_logger is not None else IngestionEventLogger()
        )
        self._sleep = sleep
        self._monotonic = monotonic

    @property
    def gate(self) -> WebhookGate:
        """Return the webhook gate."""
        return self._gate

    @property
    def store(self) -> IdempotencyStore:
        """Return the gate's idempotency store."""
        return self._gate.store

    @property
    def policy(self) -> RetryPolicy:
        """Return the retry policy in effect."""
        return self._policy

    @property
    def max_payload_size(self) -> int:
        """Return the payload size limit in bytes."""
        return self._max_payload_size

    def validate_payload(self, payload: bytes) -> None:
        """Check ``payload`` is a non-empty JSON object within the size limit.

        Raises
        ------
        PayloadValidationError
            With reason ``EMPTY``, ``MALFORMED`` or ``OVERSIZED``, checked in
            that order.

        """
        if not payload:
            raise PayloadValidationError.empty()
        try:
            body = _decoder.decode(payload)
        except (msgspec.DecodeError, RecursionError) as exc:
            raise PayloadValidationError.malformed() from exc
        if not isinstance(body, dict) or not body:
            raise PayloadValidationError.malformed()
        if len(payload) > self._max_payload_size:
            raise PayloadValidationError.oversized(len(payload), self._max_payload_size)

    def check_declared_size(self, size: int | None) -> None:
        """Reject a body by its declared length before it is read.

        ``None`` means the length is unknown; the body is then checked by
        :meth:`validate_payload` once read.

        Raises
        ------
        PayloadValidationError
            With reason ``OVERSIZED`` if ``size`` exceeds the limit.

        """
        if size is None or size <= self._max_payload_size:
            return
        exc = PayloadValidationError.oversized(size, self._max_payload_size)
        self._events.log_validation_failed(exc, payload_size=size)
        raise exc

    async def handle[T](
        self,
        payload: bytes,
        sig_header: str,
        callback: EventCallback[T],
        *,
        deadline_s: float | None = None,
    ) -> T:
        """Ingest one delivery and return the callback's result.

        Parameters
        ----------
        payload
            Raw request body.
        sig_header
            Signature header value.
        callback
            Receives the verified event; may return a value or an awaitable.
        deadline_s
            Seconds from now after which no further retry is started.

        Raises
        ------
        PayloadValidationError
            If the body fails validation.
        SignatureVerificationError
            If the signature or timestamp is rejected.
        AlreadyProcessedError
            If the event was already recorded.
        AttemptTimeoutError
            If an attempt exceeded ``attempt_timeout_s``.
        RetriesExhaustedError
            If every attempt failed with a transient error.
        DeadlineExceededError
            If the next backoff would cross ``deadline_s``.

        """
        started = self._monotonic()
        try:
            self.validate_payload(payload)
        except PayloadValidationError as exc:
            self._events.log_validation_failed(exc, payload_size=len(payload))
            raise

        deadline = None if deadline_s is None else started + deadline_s
        event, attempts = await self._verify_with_retries(payload, sig_header, deadline)

        try:
            result = callback(event)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            self._events.log_processing_failed(event, exc)
            raise
        self._events.log_processed(event, attempts)
        return typ.cast("T", result)

    async def _verify_with_retries(
        self, payload: bytes, sig_header: str, deadline: float | None
    ) -> tuple[Event, int]:
        state = RetryState(self._policy)
        while True:
            attempt = state.start_attempt()
            try:
                event = await self._attempt(payload, sig_header, attempt)
            except AlreadyProcessedError as exc:
                self._events.log_duplicate(exc.event_id, attempt)
                raise
            except SignatureVerificationError as exc:
                self._events.log_verification_failed(exc, attempt)
                raise
            except AttemptTimeoutError as exc:
                self._events.log_timed_out(exc)
                raise
            except TransientBackendError as exc:
                if state.exhausted:
                    exhausted = RetriesExhaustedError(attempt, exc)
                    self._events.log_retries_exhausted(exhausted)
                    raise exhausted from exc
                delay = state.next_delay()
                if deadline is not None and self._monotonic() + delay >= deadline:
                    overrun = DeadlineExceededError(attempt, exc)
                    self._events.log_deadline_exceeded(overrun)
                    raise overrun from exc
                self._events.log_retrying(attempt, delay, exc)
                await self._sleep(delay)
            else:
                return event, attempt

    async def _attempt(self, payload: bytes, sig_header: str, attempt: int) -> Event:
        timeout = asyncio.timeout(self._attempt_timeout_s)
        try:
            async with timeout:
                return await self._gate.verify_and_process(payload, sig_header)
        except TimeoutError as exc:
            if not timeout.expired() or self._attempt_timeout_s is None:
                raise
            raise AttemptTimeoutError(attempt, self._attempt_timeout_s) from exc

    async def is_event_processed(self, event_id: str) -> bool:
        """Return whether ``event_id`` has a live record."""
        return await self._gate.store.is_processed(event_id)

    async def remove_processed_event(self, event_id: str) -> None:
        """Forget ``event_id`` so a redelivery is processed again."""
        await self._gate.store.remove_event(event_id)

    async def clear_processed_events(self) -> None:
        """Forget every processed event."""
        await self._gate.store.clear_all()

    async def cleanup_expired_events(self) -> int:
        """Purge expired records and return how many were removed."""
        return await self._gate.store.cleanup_expired()

    async def processed_events(self) -> list[EventData]:
        """Return the audit data of every recorded event."""
        return await self._gate.store.get_all_events()
