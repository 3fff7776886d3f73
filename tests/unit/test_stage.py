"""Unit tests for deployment stage parsing."""

from __future__ import annotations

import pytest

from portcullis.errors import ConfigurationError
from portcullis.stage import Stage


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, Stage.DEV),
        ("", Stage.DEV),
        ("dev", Stage.DEV),
        ("Development", Stage.DEV),
        ("TEST", Stage.TEST),
        ("testing", Stage.TEST),
        (" prod ", Stage.PROD),
        ("production", Stage.PROD),
    ],
)
def test_parse_accepts_names_and_aliases(raw: str | None, expected: Stage) -> None:
    """Stage.parse maps canonical names and aliases case-insensitively."""
    assert Stage.parse(raw) is expected, f"Expected {raw!r} to parse as {expected}"


def test_parse_rejects_unknown_stage() -> None:
    """Unknown names raise ConfigurationError listing valid options."""
    with pytest.raises(ConfigurationError, match="staging"):
        Stage.parse("staging")


def test_only_prod_is_production() -> None:
    """Only the prod stage selects the live secret."""
    assert [stage for stage in Stage if stage.is_production] == [Stage.PROD]
