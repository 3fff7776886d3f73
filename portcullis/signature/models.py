"""Verified event model."""

from __future__ import annotations

import typing as typ

import msgspec

NonEmptyStr = typ.Annotated[str, msgspec.Meta(min_length=1)]


class EventHeader(msgspec.Struct, frozen=True):
    """Identifying fields every event body must carry."""

    id: NonEmptyStr
    type: NonEmptyStr
    created: int


class Event(msgspec.Struct, frozen=True, kw_only=True):
    """An event whose signature has been verified.

    Only :func:`portcullis.signature.verify_signature` builds these from
    request bodies, so holding an ``Event`` implies the bytes it came from
    were signed with the active secret.

    Attributes
    ----------
    id
        Opaque unique id assigned by the event source.
    type
        Dot-separated category such as ``"payment_intent.succeeded"``.
    created
        Unix timestamp at which the source created the event.
    payload
        The complete decoded body.

    """

    id: str
    type: str
    created: int
    payload: dict[str, typ.Any]

    def audit_data(self) -> dict[str, object]:
        """Return the summary stored alongside the idempotency record."""
        return {"id": self.id, "type": self.type, "created": self.created}
