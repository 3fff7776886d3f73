"""Webhook signature verification and verified event parsing."""

from __future__ import annotations

from .errors import (
    MalformedPayloadError,
    MalformedSignatureHeaderError,
    SignatureMismatchError,
    SignatureVerificationError,
    TimestampOutOfToleranceError,
)
from .models import Event
from .verifier import (
    DEFAULT_TOLERANCE_SECONDS,
    SignatureVerifier,
    WebhookSecrets,
    build_signature_header,
    compute_signature,
    parse_signature_header,
    verify_signature,
)

__all__ = [
    "DEFAULT_TOLERANCE_SECONDS",
    "Event",
    "MalformedPayloadError",
    "MalformedSignatureHeaderError",
    "SignatureMismatchError",
    "SignatureVerificationError",
    "SignatureVerifier",
    "TimestampOutOfToleranceError",
    "WebhookSecrets",
    "build_signature_header",
    "compute_signature",
    "parse_signature_header",
    "verify_signature",
]
