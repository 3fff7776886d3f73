"""Falcon error handlers for ingestion failures.

Each terminal ingestion error maps to one HTTP status. Signature failures
answer with a fixed body so nothing about the expected signature or the
server clock leaks to the caller.

Usage
-----
Register every handler on the Falcon app::

    from portcullis.api.errors import register_error_handlers

    register_error_handlers(app)

"""

from __future__ import annotations

import typing as typ

import falcon

from portcullis.ingestion.errors import (
    AttemptTimeoutError,
    DeadlineExceededError,
    PayloadValidationError,
    RetriesExhaustedError,
)
from portcullis.signature.errors import SignatureVerificationError

if typ.TYPE_CHECKING:
    from falcon.asgi import App, Request, Response

__all__ = [
    "handle_attempt_timeout",
    "handle_payload_validation",
    "handle_signature_verification",
    "handle_unavailable",
    "register_error_handlers",
]


async def handle_payload_validation(
    _req: Request,
    resp: Response,
    ex: PayloadValidationError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``PayloadValidationError`` to an HTTP 400 JSON response.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        The validation error carrying its reason.
    _params
        URI template parameters (unused).

    """
    resp.status = falcon.HTTP_400
    resp.media = {
        "title": "Invalid payload",
        "description": str(ex),
        "reason": ex.reason.value,
    }


async def handle_signature_verification(
    _req: Request,
    resp: Response,
    _ex: SignatureVerificationError,
    _params: dict[str, typ.Any],
) -> None:
    """Map any signature failure to the same HTTP 400 response."""
    resp.status = falcon.HTTP_400
    resp.media = {"title": "Invalid signature"}


async def handle_unavailable(
    _req: Request,
    resp: Response,
    ex: RetriesExhaustedError | DeadlineExceededError,
    _params: dict[str, typ.Any],
) -> None:
    """Map retry exhaustion and deadline overruns to HTTP 503.

    The event source treats 5xx as retryable and redelivers later, which is
    the desired outcome while the store backend is degraded.
    """
    resp.status = falcon.HTTP_503
    resp.media = {
        "title": "Service unavailable",
        "description": f"Delivery not recorded after {ex.attempts} attempt(s).",
    }


async def handle_attempt_timeout(
    _req: Request,
    resp: Response,
    _ex: AttemptTimeoutError,
    _params: dict[str, typ.Any],
) -> None:
    """Map a timed-out attempt to HTTP 504."""
    resp.status = falcon.HTTP_504
    resp.media = {"title": "Processing timed out"}


def register_error_handlers(app: App) -> None:
    """Install every ingestion error handler on ``app``."""
    app.add_error_handler(PayloadValidationError, handle_payload_validation)
    app.add_error_handler(SignatureVerificationError, handle_signature_verification)
    app.add_error_handler(RetriesExhaustedError, handle_unavailable)
    app.add_error_handler(DeadlineExceededError, handle_unavailable)
    app.add_error_handler(AttemptTimeoutError, handle_attempt_timeout)
