"""Resource receiving signed webhook deliveries.

``POST /webhooks`` hands the raw body and ``Stripe-Signature`` header to the
ingestion controller. The body is read unparsed because the signature
covers the exact bytes sent.

Usage
-----
Register the resource on the Falcon app::

    app.add_route("/webhooks", WebhookResource(controller, handler))

"""

from __future__ import annotations

import inspect
import typing as typ

import falcon

from portcullis.gate.errors import AlreadyProcessedError
from portcullis.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from falcon.asgi import Request, Response

    from portcullis.ingestion.controller import IngestionController
    from portcullis.signature.models import Event

__all__ = ["SIGNATURE_HEADER", "EventHandler", "WebhookResource", "log_event"]

logger = get_logger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"

type EventHandler = cabc.Callable[[Event], object | cabc.Awaitable[object]]


def log_event(event: Event) -> None:
    """Record receipt of ``event``; used when no handler is configured."""
    log_info(
        logger,
        "[webhook.received] event_id=%s event_type=%s created=%d",
        event.id,
        event.type,
        event.created,
    )


class WebhookResource:
    """Resource for signed webhook deliveries.

    Parameters
    ----------
    controller
        Ingestion controller that validates, verifies and de-duplicates.
    handler
        Business callback run once per new event.
    deadline_s
        Optional time budget per delivery for retries.

    """

    def __init__(
        self,
        controller: IngestionController,
        handler: EventHandler = log_event,
        *,
        deadline_s: float | None = None,
    ) -> None:
        """Configure the resource with its controller and handler."""
        self._controller = controller
        self._handler = handler
        self._deadline_s = deadline_s

    async def _dispatch(self, event: Event) -> str:
        result = self._handler(event)
        if inspect.isawaitable(result):
            await result
        return event.id

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST /webhooks.

        Duplicates answer 200 so the source stops redelivering. Bodies whose
        declared length exceeds the limit are rejected unread. Other failures
        propagate to the app's error handlers.

        Parameters
        ----------
        req
            Falcon request carrying the raw body and signature header.
        resp
            Falcon response object.

        """
        self._controller.check_declared_size(req.content_length)
        payload = await req.stream.read()
        sig_header = req.get_header(SIGNATURE_HEADER, default="")
        try:
            event_id = await self._controller.handle(
                payload, sig_header, self._dispatch, deadline_s=self._deadline_s
            )
        except AlreadyProcessedError as exc:
            resp.media = {"status": "duplicate", "event_id": exc.event_id}
            resp.status = falcon.HTTP_200
            return
        resp.media = {"status": "processed", "event_id": event_id}
        resp.status = falcon.HTTP_200
