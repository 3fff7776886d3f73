"""Builders for signed webhook deliveries."""

from __future__ import annotations

import msgspec

from portcullis.signature import build_signature_header

TEST_SECRET = "whsec_test_secret"  # noqa: S105 - fixed test secret
LIVE_SECRET = "whsec_live_secret"  # noqa: S105 - fixed test secret
NOW = 1_700_000_000


def event_body(
    event_id: str = "evt_123",
    *,
    event_type: str = "payment_intent.succeeded",
    created: int = NOW,
    **extra: object,
) -> bytes:
    """Return a JSON event body with the given identifying fields."""
    body: dict[str, object] = {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": created,
        "data": {"object": {"amount": 2000, "currency": "gbp"}},
    }
    body.update(extra)
    return msgspec.json.encode(body)


def padded_body(size: int, event_id: str = "evt_padded") -> bytes:
    """Return a valid event body of exactly ``size`` bytes."""
    base = event_body(event_id, padding="")
    filler = size - len(base)
    if filler < 0:
        msg = f"size {size} is smaller than the minimal body ({len(base)} bytes)"
        raise ValueError(msg)
    return event_body(event_id, padding="x" * filler)


def signed(
    body: bytes,
    *,
    secret: str = TEST_SECRET,
    timestamp: int = NOW,
) -> tuple[bytes, str]:
    """Return ``(body, header)`` signed with ``secret`` at ``timestamp``."""
    return body, build_signature_header(body, secret, timestamp=timestamp)


def nested_body(depth: int = 100_000) -> bytes:
    """Return a JSON array nested ``depth`` levels deep."""
    return b"[" * depth + b"]" * depth
