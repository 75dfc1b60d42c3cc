"""
Timestamp parsing for upstream article payloads.

All datetimes are stored as naive UTC.
"""
from datetime import datetime, timezone
from typing import Union

from newswire.exceptions import ParseError


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO-8601 timestamp carrying a UTC offset (``Z`` accepted).

    >>> parse_iso_datetime("2024-01-15T12:00:00Z")
    datetime.datetime(2024, 1, 15, 12, 0)
    >>> parse_iso_datetime("2024-01-15T14:00:00+02:00")
    datetime.datetime(2024, 1, 15, 12, 0)

    Raises:
        ParseError: if the value is not an offset-qualified ISO-8601 timestamp
    """
    if isinstance(value, datetime):
        return to_naive_utc(value)

    if not isinstance(value, str) or not value.strip():
        raise ParseError(f"Unsupported timestamp: {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ParseError(f"Invalid ISO-8601 timestamp: {value!r}") from e

    if parsed.tzinfo is None:
        raise ParseError(f"Timestamp has no UTC offset: {value!r}")

    return to_naive_utc(parsed)
