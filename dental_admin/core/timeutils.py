"""Conversion between form date/time inputs and absolute instants.

Forms carry naive local values (``YYYY-MM-DDTHH:MM``) in the clinic time
zone. They become UTC instants only when a request body is built, and
instants are converted back for redisplay at whole-minute precision.
"""

from datetime import UTC, datetime, timedelta, tzinfo

LOCAL_INPUT_FORMAT = "%Y-%m-%dT%H:%M"


def parse_local_input(value: str, tz: tzinfo) -> datetime:
    """
    Parse a naive local input into an aware UTC datetime.

    Args:
        value: ``YYYY-MM-DDTHH:MM`` string (seconds are tolerated)
        tz: Time zone the operator typed the value in

    Returns:
        The same wall-clock moment as a UTC datetime

    Raises:
        ValueError: If the value is not a valid local date/time
    """
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is not None:
        raise ValueError(f"Expected a naive local date/time, got {value!r}")
    return parsed.replace(second=0, microsecond=0, tzinfo=tz).astimezone(UTC)


def format_local_input(instant: datetime | None, tz: tzinfo) -> str:
    """
    Render an instant as the naive local input value.

    Naive instants are taken as UTC. ``None`` renders as an empty string.
    """
    if instant is None:
        return ""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(tz).strftime(LOCAL_INPUT_FORMAT)


def add_minutes_local(value: str, minutes: int) -> str:
    """Shift a naive local input by a number of minutes."""
    parsed = datetime.fromisoformat(value.strip())
    return (parsed + timedelta(minutes=minutes)).strftime(LOCAL_INPUT_FORMAT)


def same_minute(left: datetime | None, right: datetime | None) -> bool:
    """Compare two instants at whole-minute precision."""
    if left is None or right is None:
        return left is right
    if left.tzinfo is None:
        left = left.replace(tzinfo=UTC)
    if right.tzinfo is None:
        right = right.replace(tzinfo=UTC)
    return left.replace(second=0, microsecond=0) == right.replace(second=0, microsecond=0)
