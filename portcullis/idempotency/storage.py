"""SQL schema for the processed-event ledger."""

from __future__ import annotations

import datetime as dt
import re
import typing as typ

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.types import TypeDecorator

from portcullis.errors import ConfigurationError
from portcullis.idempotency.errors import TimezoneAwareRequiredError

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect

DEFAULT_TABLE_NAME = "idempotency_store"

_TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Reject naive values and bind everything else in UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError("idempotency timestamps")
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Return stored datetimes as aware UTC values."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


def validate_table_name(table_name: str) -> str:
    """Return ``table_name`` if it is a plain SQL identifier.

    Raises
    ------
    ConfigurationError
        If the name contains anything other than letters, digits and
        underscores, or starts with a digit.

    """
    if not _TABLE_NAME_PATTERN.match(table_name):
        raise ConfigurationError.invalid_value(
            "idempotency table name",
            table_name,
            "Use letters, digits and underscores only",
        )
    return table_name


def build_idempotency_table(
    table_name: str = DEFAULT_TABLE_NAME,
    metadata: MetaData | None = None,
) -> Table:
    """Return the ledger table definition under ``table_name``.

    The unique constraint on ``event_id`` is what makes concurrent claims
    for the same event collapse to a single winner.
    """
    name = validate_table_name(table_name)
    return Table(
        name,
        metadata if metadata is not None else MetaData(),
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("event_id", String(255), nullable=False),
        Column("data", JSON, nullable=False),
        Column("expiry", UTCDateTime(), nullable=True),
        Column("processed_at", UTCDateTime(), nullable=False),
        UniqueConstraint("event_id", name=f"uq_{name}_event_id"),
        Index(f"ix_{name}_expiry", "expiry"),
    )
