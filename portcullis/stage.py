"""Deployment stages that select signing secrets and store backends."""

from __future__ import annotations

import enum

from portcullis.errors import ConfigurationError

_ALIASES: dict[str, str] = {
    "dev": "dev",
    "development": "dev",
    "test": "test",
    "testing": "test",
    "prod": "prod",
    "production": "prod",
}


class Stage(enum.StrEnum):
    """Deployment context for webhook ingestion.

    Development and test share the test signing secret; production uses the
    live secret. The stage also picks the idempotency store backend and the
    retry policy.
    """

    DEV = "dev"
    TEST = "test"
    PROD = "prod"

    @classmethod
    def parse(cls, raw: str | None) -> Stage:
        """Return the stage named by ``raw``, accepting long-form aliases.

        ``None`` or an empty string selects :attr:`DEV`.

        Raises
        ------
        ConfigurationError
            If ``raw`` names no known stage.

        """
        if raw is None or not raw.strip():
            return cls.DEV
        canonical = _ALIASES.get(raw.strip().lower())
        if canonical is None:
            valid = ", ".join(sorted(_ALIASES))
            raise ConfigurationError.invalid_value(
                "stage", raw, f"Valid options are: {valid}"
            )
        return cls(canonical)

    @property
    def is_production(self) -> bool:
        """Return whether this stage signs with the live secret."""
        return self is Stage.PROD
