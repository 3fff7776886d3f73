"""Root exception types shared by every Portcullis package."""

from __future__ import annotations


class PortcullisError(Exception):
    """Base class for all errors raised by Portcullis."""


class TransientBackendError(PortcullisError):
    """Raised for failures that may succeed when the attempt is repeated.

    The ingestion controller retries these with backoff. Rate limiting and
    lost database connections belong here; anything that retrying cannot
    fix does not.
    """


class ConfigurationError(PortcullisError):
    """Raised when Portcullis is wired with missing or invalid settings.

    Configuration problems are detected while building objects, never per
    request.
    """

    @classmethod
    def missing_secret(cls, key: str, stage: str) -> ConfigurationError:
        """Return an error for a signing secret absent in the active stage."""
        return cls(f"{key} for stage {stage} is missing")

    @classmethod
    def invalid_value(
        cls, name: str, value: object, constraint: str
    ) -> ConfigurationError:
        """Return an error describing a rejected setting."""
        return cls(f"Invalid {name} {value!r}. {constraint}")

    @classmethod
    def missing_connection(cls, stage: str) -> ConfigurationError:
        """Return an error for a networked store built without a database."""
        return cls(
            f"Stage {stage} requires a database session factory for the "
            "idempotency store"
        )
