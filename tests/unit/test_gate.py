"""Unit tests for the verify-then-claim webhook gate."""

from __future__ import annotations

import asyncio
import datetime as dt
from unittest import mock

import pytest

from portcullis.gate import AlreadyProcessedError, WebhookGate
from portcullis.idempotency import IdempotencyStore, InMemoryIdempotencyStore
from portcullis.signature import (
    SignatureMismatchError,
    SignatureVerifier,
    WebhookSecrets,
)
from portcullis.stage import Stage
from tests.helpers.fakes import FakeClock
from tests.helpers.signing import LIVE_SECRET, NOW, TEST_SECRET, event_body, signed


def _clock() -> FakeClock:
    return FakeClock(dt.datetime.fromtimestamp(NOW, tz=dt.UTC))


def _gate(
    store: IdempotencyStore | None = None, *, default_ttl: int | None = 3600
) -> WebhookGate:
    clock = _clock()
    verifier = SignatureVerifier(
        WebhookSecrets(test=TEST_SECRET, live=LIVE_SECRET), clock=clock
    )
    return WebhookGate(
        verifier,
        store if store is not None else InMemoryIdempotencyStore(clock=clock),
        default_ttl=default_ttl,
    )


class TestVerifyAndProcess:
    """Tests for WebhookGate.verify_and_process."""

    @pytest.mark.asyncio
    async def test_first_delivery_is_recorded(self) -> None:
        """A new event is returned and marked with its audit data."""
        gate = _gate()
        body, header = signed(event_body("evt_new"))

        event = await gate.verify_and_process(body, header)

        assert event.id == "evt_new"
        assert await gate.store.is_processed("evt_new") is True
        assert await gate.store.get_all_events() == [
            {"id": "evt_new", "type": "payment_intent.succeeded", "created": NOW}
        ]

    @pytest.mark.asyncio
    async def test_redelivery_is_a_duplicate(self) -> None:
        """The same event delivered twice is rejected the second time."""
        gate = _gate()
        body, header = signed(event_body("evt_dup"))
        await gate.verify_and_process(body, header)

        with pytest.raises(AlreadyProcessedError) as excinfo:
            await gate.verify_and_process(body, header)
        assert excinfo.value.event_id == "evt_dup"

    @pytest.mark.asyncio
    async def test_bad_signature_never_touches_store(self) -> None:
        """Verification failures leave the store untouched."""
        store = mock.AsyncMock(spec=InMemoryIdempotencyStore)
        gate = _gate(store)
        body, _ = signed(event_body())

        with pytest.raises(SignatureMismatchError):
            await gate.verify_and_process(body, f"t={NOW},v1={'0' * 64}")

        store.is_processed.assert_not_awaited()
        store.mark_as_processed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lost_claim_is_a_duplicate(self) -> None:
        """A concurrent winner turns this delivery into a duplicate."""
        store = mock.AsyncMock(spec=InMemoryIdempotencyStore)
        store.is_processed.return_value = False
        store.mark_as_processed.return_value = False
        gate = _gate(store)
        body, header = signed(event_body("evt_lost"))

        with pytest.raises(AlreadyProcessedError):
            await gate.verify_and_process(body, header)

    @pytest.mark.asyncio
    async def test_concurrent_deliveries_process_once(self) -> None:
        """Of many simultaneous deliveries of one event, exactly one wins."""
        gate = _gate()
        body, header = signed(event_body("evt_burst"))

        results = await asyncio.gather(
            *(gate.verify_and_process(body, header) for _ in range(10)),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, BaseException)]
        duplicates = [r for r in results if isinstance(r, AlreadyProcessedError)]
        assert len(winners) == 1, f"Expected one winner, got {results}"
        assert len(duplicates) == 9

    @pytest.mark.asyncio
    async def test_default_ttl_is_passed_to_store(self) -> None:
        """Records are written with the gate's current default TTL."""
        store = mock.AsyncMock(spec=InMemoryIdempotencyStore)
        store.is_processed.return_value = False
        store.mark_as_processed.return_value = True
        gate = _gate(store, default_ttl=3600)
        gate.set_default_ttl(120)
        body, header = signed(event_body("evt_ttl"))

        await gate.verify_and_process(body, header)

        store.mark_as_processed.assert_awaited_once_with(
            "evt_ttl",
            120,
            {"id": "evt_ttl", "type": "payment_intent.succeeded", "created": NOW},
        )


class TestConfiguration:
    """Tests for the gate's configuration accessors."""

    def test_setters_delegate_to_verifier(self) -> None:
        """Stage and tolerance changes reach the verifier."""
        gate = _gate()
        gate.set_stage(Stage.PROD)
        gate.set_tolerance(300)
        assert gate.stage is Stage.PROD
        assert gate.tolerance == 300

    def test_default_ttl_can_disable_expiry(self) -> None:
        """A None TTL keeps records forever."""
        gate = _gate(default_ttl=None)
        assert gate.default_ttl is None
        gate.set_default_ttl(60)
        assert gate.default_ttl == 60
