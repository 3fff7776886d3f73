"""Configuration for the webhook ingestion pipeline.

Usage
-----
Create a configuration with defaults:

>>> config = IngestionConfig()
>>> config.max_payload_size
131072

Or load from environment variables:

>>> import os
>>> os.environ["PORTCULLIS_WEBHOOK_SECRET_TEST"] = "whsec_test"
>>> IngestionConfig.from_env().stage
<Stage.DEV: 'dev'>

"""

from __future__ import annotations

import dataclasses as dc
import os

from portcullis.errors import ConfigurationError
from portcullis.gate.gate import DEFAULT_TTL_SECONDS
from portcullis.idempotency.storage import DEFAULT_TABLE_NAME, validate_table_name
from portcullis.ingestion.retry import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_INITIAL_BACKOFF_S,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_BACKOFF_S,
    RetryPolicy,
)
from portcullis.signature.verifier import DEFAULT_TOLERANCE_SECONDS, WebhookSecrets
from portcullis.stage import Stage

DEFAULT_MAX_PAYLOAD_SIZE = 131072
DEFAULT_ATTEMPT_TIMEOUT_S = 60.0

_NO_EXPIRY_VALUES = frozenset({"none", "never", "off"})


@dc.dataclass(frozen=True, slots=True)
class IngestionConfig:
    """Settings for verification, idempotency and retries.

    Attributes
    ----------
    stage
        Deployment stage; selects the signing secret, store backend and
        retry behaviour.
    secrets
        Test and live signing secrets. Excluded from ``repr``.
    tolerance_seconds
        Allowed clock skew for signature timestamps; ``<= 0`` disables the
        check.
    default_ttl
        Retention for processed-event records in seconds; ``None`` keeps
        them forever.
    max_payload_size
        Largest accepted body in bytes.
    retry_policy
        Base policy; :meth:`RetryPolicy.for_stage` adapts it to ``stage``.
    attempt_timeout_s
        Hard limit for one verification attempt; ``None`` disables it.
    table_name
        Idempotency ledger table name.
    sqlite_path
        SQLite database file for the test stage; ``None`` keeps it in memory.
    database_url
        SQLAlchemy async URL for the production store.

    """

    stage: Stage = Stage.DEV
    secrets: WebhookSecrets = dc.field(default_factory=WebhookSecrets, repr=False)
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS
    default_ttl: int | None = DEFAULT_TTL_SECONDS
    max_payload_size: int = DEFAULT_MAX_PAYLOAD_SIZE
    retry_policy: RetryPolicy = dc.field(default_factory=RetryPolicy)
    attempt_timeout_s: float | None = DEFAULT_ATTEMPT_TIMEOUT_S
    table_name: str = DEFAULT_TABLE_NAME
    sqlite_path: str | None = None
    database_url: str | None = dc.field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Reject settings no component could honour."""
        if self.max_payload_size < 1:
            raise ConfigurationError.invalid_value(
                "max_payload_size", self.max_payload_size, "Must be positive"
            )
        if self.default_ttl is not None and self.default_ttl < 0:
            raise ConfigurationError.invalid_value(
                "default_ttl", self.default_ttl, "Must not be negative"
            )
        if self.attempt_timeout_s is not None and self.attempt_timeout_s <= 0:
            raise ConfigurationError.invalid_value(
                "attempt_timeout_s", self.attempt_timeout_s, "Must be positive"
            )
        validate_table_name(self.table_name)

    @property
    def stage_retry_policy(self) -> RetryPolicy:
        """Return the retry policy in effect for :attr:`stage`."""
        return self.retry_policy.for_stage(self.stage)

    @staticmethod
    def _read(env_var: str) -> str | None:
        raw = os.environ.get(env_var, "")
        return raw.strip() or None

    @classmethod
    def _parse_int(cls, env_var: str, default: int, *, minimum: int | None) -> int:
        """Read an integer env var, falling back to a default."""
        raw = cls._read(env_var)
        if raw is None:
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            raise ConfigurationError.invalid_value(
                env_var, raw, "Must be an integer"
            ) from exc
        if minimum is not None and value < minimum:
            raise ConfigurationError.invalid_value(
                env_var, raw, f"Must be at least {minimum}"
            )
        return value

    @classmethod
    def _parse_float(cls, env_var: str, default: float) -> float:
        """Read a non-negative float env var, falling back to a default."""
        raw = cls._read(env_var)
        if raw is None:
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            raise ConfigurationError.invalid_value(
                env_var, raw, "Must be a number"
            ) from exc
        if value < 0:
            raise ConfigurationError.invalid_value(env_var, raw, "Must not be negative")
        return value

    @classmethod
    def _parse_ttl(cls) -> int | None:
        raw = cls._read("PORTCULLIS_WEBHOOK_DEFAULT_TTL")
        if raw is not None and raw.lower() in _NO_EXPIRY_VALUES:
            return None
        return cls._parse_int(
            "PORTCULLIS_WEBHOOK_DEFAULT_TTL", DEFAULT_TTL_SECONDS, minimum=0
        )

    @classmethod
    def from_env(cls) -> IngestionConfig:
        """Create configuration from environment variables.

        Reads the following environment variables:

        - ``PORTCULLIS_STAGE``: ``dev`` (default), ``test`` or ``prod``.
        - ``PORTCULLIS_WEBHOOK_SECRET``: Live signing secret.
        - ``PORTCULLIS_WEBHOOK_SECRET_TEST``: Test signing secret.
        - ``PORTCULLIS_WEBHOOK_TOLERANCE``: Timestamp tolerance in seconds.
        - ``PORTCULLIS_WEBHOOK_DEFAULT_TTL``: Record retention in seconds, or
          ``none`` to keep records forever.
        - ``PORTCULLIS_MAX_PAYLOAD_SIZE``: Largest accepted body in bytes.
        - ``PORTCULLIS_WEBHOOK_RETRIES``: Total attempts per delivery.
        - ``PORTCULLIS_BACKOFF_INITIAL``, ``PORTCULLIS_BACKOFF_MULTIPLIER``,
          ``PORTCULLIS_BACKOFF_MAX``: Retry backoff shape.
        - ``PORTCULLIS_ATTEMPT_TIMEOUT``: Per-attempt timeout in seconds; ``0``
          disables it.
        - ``PORTCULLIS_IDEMPOTENCY_TABLE``: Ledger table name.
        - ``PORTCULLIS_SQLITE_PATH``: SQLite file for the test stage.
        - ``PORTCULLIS_DATABASE_URL``: Async database URL for production.

        Raises
        ------
        ConfigurationError
            If any value is malformed or out of range.

        """
        retry_policy = RetryPolicy(
            max_attempts=cls._parse_int(
                "PORTCULLIS_WEBHOOK_RETRIES", DEFAULT_MAX_ATTEMPTS, minimum=1
            ),
            initial_backoff_s=cls._parse_float(
                "PORTCULLIS_BACKOFF_INITIAL", DEFAULT_INITIAL_BACKOFF_S
            ),
            multiplier=cls._parse_float(
                "PORTCULLIS_BACKOFF_MULTIPLIER", DEFAULT_BACKOFF_MULTIPLIER
            ),
            max_backoff_s=cls._parse_float(
                "PORTCULLIS_BACKOFF_MAX", DEFAULT_MAX_BACKOFF_S
            ),
        )
        return cls(
            stage=Stage.parse(cls._read("PORTCULLIS_STAGE")),
            secrets=WebhookSecrets(
                test=cls._read("PORTCULLIS_WEBHOOK_SECRET_TEST"),
                live=cls._read("PORTCULLIS_WEBHOOK_SECRET"),
            ),
            tolerance_seconds=cls._parse_int(
                "PORTCULLIS_WEBHOOK_TOLERANCE", DEFAULT_TOLERANCE_SECONDS, minimum=None
            ),
            default_ttl=cls._parse_ttl(),
            max_payload_size=cls._parse_int(
                "PORTCULLIS_MAX_PAYLOAD_SIZE", DEFAULT_MAX_PAYLOAD_SIZE, minimum=1
            ),
            retry_policy=retry_policy,
            attempt_timeout_s=cls._parse_float(
                "PORTCULLIS_ATTEMPT_TIMEOUT", DEFAULT_ATTEMPT_TIMEOUT_S
            )
            or None,
            table_name=cls._read("PORTCULLIS_IDEMPOTENCY_TABLE") or DEFAULT_TABLE_NAME,
            sqlite_path=cls._read("PORTCULLIS_SQLITE_PATH"),
            database_url=cls._read("PORTCULLIS_DATABASE_URL"),
        )
