"""Signature verification failures.

Every subclass maps to the same outward "verification failed" response; the
distinct types exist so logs can tell tampering apart from clock skew or a
corrupted body.
"""

from __future__ import annotations

from portcullis.errors import PortcullisError

# Body preview length for malformed payload messages
_PREVIEW_LIMIT = 64


class SignatureVerificationError(PortcullisError):
    """Base class for rejected webhook deliveries."""


class MalformedSignatureHeaderError(SignatureVerificationError):
    """Raised when the signature header cannot be parsed."""

    @classmethod
    def missing_timestamp(cls) -> MalformedSignatureHeaderError:
        """Return an error for a header without a usable ``t=`` entry."""
        return cls("Unable to extract timestamp from signature header")

    @classmethod
    def missing_signatures(cls, scheme: str) -> MalformedSignatureHeaderError:
        """Return an error for a header without entries for ``scheme``."""
        return cls(f"No signatures found with expected scheme {scheme}")


class SignatureMismatchError(SignatureVerificationError):
    """Raised when no provided signature matches the expected HMAC."""

    def __init__(self) -> None:
        """Use a fixed message that reveals nothing about the expected value."""
        super().__init__("No signatures found matching the expected signature")


class TimestampOutOfToleranceError(SignatureVerificationError):
    """Raised when the signed timestamp is too far from the current time.

    Attributes
    ----------
    timestamp
        Unix timestamp carried by the signature header.
    tolerance_seconds
        Allowed absolute skew in seconds.

    """

    def __init__(self, timestamp: int, tolerance_seconds: int) -> None:
        """Record the rejected timestamp and the active tolerance."""
        self.timestamp = timestamp
        self.tolerance_seconds = tolerance_seconds
        super().__init__(
            f"Timestamp {timestamp} outside the tolerance zone "
            f"of {tolerance_seconds}s"
        )


class MalformedPayloadError(SignatureVerificationError):
    """Raised when a correctly signed body is not a valid event object."""

    @classmethod
    def undecodable(cls, detail: str) -> MalformedPayloadError:
        """Return an error for a body that does not decode as an event."""
        if len(detail) > _PREVIEW_LIMIT:
            detail = detail[:_PREVIEW_LIMIT] + "..."
        return cls(f"Signed payload is not a valid event: {detail}")
