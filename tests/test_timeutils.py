"""Tests for local date/time input conversion."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from dental_admin.core.timeutils import (
    add_minutes_local,
    format_local_input,
    parse_local_input,
    same_minute,
)

BOGOTA = ZoneInfo("America/Bogota")


def test_parse_local_input_converts_to_utc() -> None:
    """09:00 in Bogotá is 14:00 UTC."""
    assert parse_local_input("2026-10-20T09:00", BOGOTA) == datetime(
        2026, 10, 20, 14, 0, tzinfo=UTC
    )


def test_parse_local_input_drops_seconds() -> None:
    """Inputs are kept at whole-minute precision."""
    assert parse_local_input("2026-10-20T09:00:45", BOGOTA).second == 0


@pytest.mark.parametrize("value", ["", "mañana", "2026-13-01T10:00", "2026-10-20T09:00+02:00"])
def test_parse_local_input_rejects_invalid_values(value: str) -> None:
    """Garbage and offset-carrying values are rejected."""
    with pytest.raises(ValueError):
        parse_local_input(value, BOGOTA)


def test_format_local_input() -> None:
    """Instants are rendered in the clinic zone; naive ones are taken as UTC."""
    instant = datetime(2026, 10, 20, 14, 0, 30, tzinfo=UTC)

    assert format_local_input(instant, BOGOTA) == "2026-10-20T09:00"
    assert format_local_input(instant.replace(tzinfo=None), BOGOTA) == "2026-10-20T09:00"
    assert format_local_input(None, BOGOTA) == ""


def test_add_minutes_local_crosses_midnight() -> None:
    """Durations may roll the end into the next day."""
    assert add_minutes_local("2026-10-20T23:45", 30) == "2026-10-21T00:15"


def test_same_minute() -> None:
    """Seconds are ignored when comparing instants."""
    a = datetime(2026, 10, 20, 14, 0, 5, tzinfo=UTC)
    b = datetime(2026, 10, 20, 9, 0, 59, tzinfo=BOGOTA)

    assert same_minute(a, b)
    assert not same_minute(a, datetime(2026, 10, 20, 14, 1, tzinfo=UTC))
    assert same_minute(None, None)
    assert not same_minute(a, None)
