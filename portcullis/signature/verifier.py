"""HMAC-SHA256 webhook signature verification.

The event source signs ``"<timestamp>.<raw body>"`` with a shared secret and
sends ``t=<timestamp>,v1=<hex digest>`` in the signature header. Several
``v1`` entries may be present while a secret is being rolled; any match is
accepted. The timestamp check bounds the replay window independently of the
idempotency store.

Usage
-----
Verify a delivery against an explicit secret::

    event = verify_signature(body, header, "whsec_...", tolerance_seconds=20)

Or bind the stage-selected secret once::

    verifier = SignatureVerifier(WebhookSecrets(test="whsec_t", live="whsec_l"))
    event = verifier.verify(body, header)

"""

from __future__ import annotations

import dataclasses as dc
import hashlib
import hmac
import re
import time
import typing as typ

import msgspec

from portcullis.common.time import to_unix, utcnow
from portcullis.errors import ConfigurationError
from portcullis.signature.errors import (
    MalformedPayloadError,
    MalformedSignatureHeaderError,
    SignatureMismatchError,
    TimestampOutOfToleranceError,
)
from portcullis.signature.models import Event, EventHeader
from portcullis.stage import Stage

if typ.TYPE_CHECKING:
    from portcullis.common.time import Clock

__all__ = [
    "DEFAULT_TOLERANCE_SECONDS",
    "SIGNATURE_SCHEME",
    "SignatureVerifier",
    "WebhookSecrets",
    "build_signature_header",
    "compute_signature",
    "parse_signature_header",
    "verify_signature",
]

SIGNATURE_SCHEME = "v1"
DEFAULT_TOLERANCE_SECONDS = 20

_TEST_SECRET_KEY = "webhook_secret_test"
_LIVE_SECRET_KEY = "webhook_secret"

_TIMESTAMP_PATTERN = re.compile(r"-?[0-9]{1,20}")

_decoder = msgspec.json.Decoder()


@dc.dataclass(frozen=True, slots=True)
class ParsedSignatureHeader:
    """Timestamp and candidate signatures extracted from a header."""

    timestamp: str
    signatures: tuple[str, ...]

    @property
    def timestamp_seconds(self) -> int:
        """Return the timestamp as an integer."""
        return int(self.timestamp)


def parse_signature_header(
    sig_header: str, scheme: str = SIGNATURE_SCHEME
) -> ParsedSignatureHeader:
    """Split ``t=...,v1=...`` into its timestamp and ``scheme`` signatures.

    Entries for other schemes are ignored. The last ``t`` entry wins.

    Raises
    ------
    MalformedSignatureHeaderError
        If no integer timestamp or no ``scheme`` entry is present.

    """
    timestamp: str | None = None
    signatures: list[str] = []
    for item in sig_header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            timestamp = value.strip()
        elif key == scheme and value.strip():
            signatures.append(value.strip())

    if timestamp is None or not _TIMESTAMP_PATTERN.fullmatch(timestamp):
        raise MalformedSignatureHeaderError.missing_timestamp()
    if not signatures:
        raise MalformedSignatureHeaderError.missing_signatures(scheme)
    return ParsedSignatureHeader(timestamp=timestamp, signatures=tuple(signatures))


def compute_signature(payload: bytes, timestamp: int | str, secret: str) -> str:
    """Return the hex HMAC-SHA256 of ``"<timestamp>.<payload>"``."""
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def build_signature_header(
    payload: bytes,
    secret: str,
    *,
    timestamp: int | None = None,
) -> str:
    """Return a header that :func:`verify_signature` accepts for ``payload``."""
    ts = int(time.time()) if timestamp is None else timestamp
    return f"t={ts},{SIGNATURE_SCHEME}={compute_signature(payload, ts, secret)}"


def _decode_event(payload: bytes) -> Event:
    try:
        body = _decoder.decode(payload)
    except (msgspec.DecodeError, RecursionError) as exc:
        raise MalformedPayloadError.undecodable(str(exc)) from exc
    if not isinstance(body, dict):
        raise MalformedPayloadError.undecodable(
            f"expected a JSON object, got {type(body).__name__}"
        )
    try:
        header = msgspec.convert(body, EventHeader)
    except msgspec.ValidationError as exc:
        raise MalformedPayloadError.undecodable(str(exc)) from exc
    return Event(id=header.id, type=header.type, created=header.created, payload=body)


def verify_signature(
    payload: bytes,
    sig_header: str,
    secret: str,
    tolerance_seconds: int,
    *,
    now: int | None = None,
) -> Event:
    """Verify ``sig_header`` for ``payload`` and return the decoded Event.

    Parameters
    ----------
    payload
        Raw request body exactly as received.
    sig_header
        Signature header value.
    secret
        Signing secret for the active stage.
    tolerance_seconds
        Maximum allowed ``|now - timestamp|``; values ``<= 0`` disable the
        check.
    now
        Current Unix time; defaults to :func:`time.time`.

    Returns
    -------
    Event
        The verified event.

    Raises
    ------
    MalformedSignatureHeaderError
        If the header cannot be parsed.
    SignatureMismatchError
        If no ``v1`` signature matches.
    TimestampOutOfToleranceError
        If the signature is valid but the timestamp is outside tolerance.
    MalformedPayloadError
        If the signed body is not an event object.

    """
    parsed = parse_signature_header(sig_header)
    expected = compute_signature(payload, parsed.timestamp, secret)
    # Compare every candidate; no early exit.
    expected_bytes = expected.encode()
    matches = [
        hmac.compare_digest(expected_bytes, sig.encode()) for sig in parsed.signatures
    ]
    if not any(matches):
        raise SignatureMismatchError

    current = int(time.time()) if now is None else now
    timestamp = parsed.timestamp_seconds
    if tolerance_seconds > 0 and abs(current - timestamp) > tolerance_seconds:
        raise TimestampOutOfToleranceError(timestamp, tolerance_seconds)

    return _decode_event(payload)


@dc.dataclass(frozen=True, slots=True)
class WebhookSecrets:
    """Signing secrets for the test and live environments.

    Attributes
    ----------
    test
        Secret used in the ``dev`` and ``test`` stages.
    live
        Secret used in the ``prod`` stage.

    """

    test: str | None = None
    live: str | None = None

    def for_stage(self, stage: Stage) -> str:
        """Return the secret ``stage`` signs with.

        Raises
        ------
        ConfigurationError
            If that secret is unset or blank.

        """
        if stage.is_production:
            key, secret = _LIVE_SECRET_KEY, self.live
        else:
            key, secret = _TEST_SECRET_KEY, self.test
        if secret is None or not secret.strip():
            raise ConfigurationError.missing_secret(key, stage.value)
        return secret


class SignatureVerifier:
    """Verify deliveries with the secret selected by the current stage.

    Stage changes are explicit calls to :meth:`set_stage`; nothing here reads
    process environment.
    """

    def __init__(
        self,
        secrets: WebhookSecrets,
        *,
        stage: Stage = Stage.DEV,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
        clock: Clock = utcnow,
    ) -> None:
        """Resolve the secret for ``stage`` immediately.

        Raises
        ------
        ConfigurationError
            If ``secrets`` lacks the secret for ``stage``.

        """
        self._secrets = secrets
        self._clock = clock
        self._tolerance_seconds = tolerance_seconds
        self._stage = stage
        self._secret = secrets.for_stage(stage)

    @property
    def stage(self) -> Stage:
        """Return the active stage."""
        return self._stage

    @property
    def tolerance_seconds(self) -> int:
        """Return the active timestamp tolerance."""
        return self._tolerance_seconds

    def set_stage(self, stage: Stage) -> None:
        """Switch to the secret for ``stage``; unchanged on failure."""
        secret = self._secrets.for_stage(stage)
        self._stage = stage
        self._secret = secret

    def set_tolerance(self, tolerance_seconds: int) -> None:
        """Set the timestamp tolerance used by later verifications."""
        self._tolerance_seconds = tolerance_seconds

    def verify(self, payload: bytes, sig_header: str) -> Event:
        """Verify a delivery with the active secret and tolerance."""
        return verify_signature(
            payload,
            sig_header,
            self._secret,
            self._tolerance_seconds,
            now=to_unix(self._clock()),
        )
