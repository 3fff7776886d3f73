"""Errors raised by the webhook gate."""

from __future__ import annotations

from portcullis.errors import PortcullisError


class AlreadyProcessedError(PortcullisError):
    """Raised when a verified event id is already in the idempotency store.

    Terminal for the event: the source should receive a success response so
    it stops redelivering.

    Attributes
    ----------
    event_id
        Id of the duplicate event.

    """

    def __init__(self, event_id: str) -> None:
        """Record the duplicate event id."""
        self.event_id = event_id
        super().__init__(f"Event already processed: {event_id}")
