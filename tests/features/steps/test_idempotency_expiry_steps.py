"""Behavioural coverage for idempotency record expiry and cleanup."""

from __future__ import annotations

import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from portcullis.idempotency import InMemoryIdempotencyStore
from tests.helpers import run_async
from tests.helpers.fakes import FakeClock


class ExpiryContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    clock: FakeClock
    store: InMemoryIdempotencyStore
    removed: int


@scenario("../idempotency_expiry.feature", "Expired records are cleaned up")
def test_expired_records_cleaned_up() -> None:
    """Wrap the pytest-bdd scenario for TTL cleanup."""


@pytest.fixture
def expiry_context() -> ExpiryContext:
    """Provide a store reading time from a controllable clock."""
    clock = FakeClock()
    return {"clock": clock, "store": InMemoryIdempotencyStore(clock=clock)}


def _hold(context: ExpiryContext, event_id: str, ttl: int) -> None:
    store = context["store"]
    claimed = run_async(lambda: store.mark_as_processed(event_id, ttl))
    assert claimed, f"{event_id} should be claimable"


@given(parsers.parse('an idempotency store holding "{event_id}" for {ttl:d} seconds'))
def given_store_holding(expiry_context: ExpiryContext, event_id: str, ttl: int) -> None:
    """Record the first event."""
    _hold(expiry_context, event_id, ttl)


@given(parsers.parse('the store also holds "{event_id}" for {ttl:d} seconds'))
def given_store_also_holds(
    expiry_context: ExpiryContext, event_id: str, ttl: int
) -> None:
    """Record another event."""
    _hold(expiry_context, event_id, ttl)


@when(parsers.parse("{seconds:d} seconds pass and expired records are cleaned up"))
def when_cleanup(expiry_context: ExpiryContext, seconds: int) -> None:
    """Advance the clock and purge expired records."""
    expiry_context["clock"].advance(seconds)
    store = expiry_context["store"]
    expiry_context["removed"] = run_async(store.cleanup_expired)


@then(parsers.parse("{count:d} record was removed"))
def then_removed(expiry_context: ExpiryContext, count: int) -> None:
    """Assert how many records cleanup removed."""
    removed = expiry_context["removed"]
    assert removed == count, f"expected {count} removed, got {removed}"


@then(parsers.parse('the event "{event_id}" is still processed'))
def then_still_processed(expiry_context: ExpiryContext, event_id: str) -> None:
    """Assert a live record remains."""
    store = expiry_context["store"]
    assert run_async(lambda: store.is_processed(event_id)) is True


@then(parsers.parse('the event "{event_id}" is no longer processed'))
def then_no_longer_processed(expiry_context: ExpiryContext, event_id: str) -> None:
    """Assert an expired record no longer counts."""
    store = expiry_context["store"]
    assert run_async(lambda: store.is_processed(event_id)) is False
