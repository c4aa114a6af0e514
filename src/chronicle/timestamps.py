"""Timestamp validation.

The engine compares timestamps as strings, so every accepted encoding is
rewritten to one canonical text where string order equals chronological
order. Times always carry seconds, and a fraction is padded to six digits
or dropped when it is zero. Midnight is written as the bare date, so a
bare date means the start of that day.
"""

import re
from datetime import date, datetime

from .errors import InvalidTimestampError

_TIMESTAMP_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:T(?P<hour>\d{2}):(?P<minute>\d{2})(?::(?P<second>\d{2})(?:\.(?P<fraction>\d{1,6}))?)?Z?)?$"
)


def _canonical(day: str, hour: int, minute: int, second: int, microsecond: int) -> str:
    if not (hour or minute or second or microsecond):
        return day
    text = f"{day}T{hour:02d}:{minute:02d}:{second:02d}"
    if microsecond:
        text += f".{microsecond:06d}"
    return text


def normalize_timestamp(value: str | date | datetime) -> str:
    """Validate a timestamp and return its canonical text form.

    ``2024-06-01T09:30``, ``2024-06-01T09:30:00.000`` and
    ``datetime(2024, 6, 1, 9, 30)`` all become ``2024-06-01T09:30:00``.

    Args:
        value: ISO text (``YYYY-MM-DD`` or ``YYYY-MM-DDTHH:MM[:SS[.ffffff]][Z]``),
            or a date/datetime object.

    Returns:
        The timestamp as sortable text.

    Raises:
        InvalidTimestampError: If the value cannot be used as a timestamp.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None and value.utcoffset():
            raise InvalidTimestampError(
                f"Timestamp must be naive or UTC, got offset {value.utcoffset()}"
            )
        return _canonical(
            value.date().isoformat(), value.hour, value.minute, value.second, value.microsecond
        )
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        raise InvalidTimestampError(f"Timestamp must be a string or date, got {type(value).__name__}")

    text = value.strip()
    m = _TIMESTAMP_RE.match(text)
    if m is None:
        raise InvalidTimestampError(f"Unsupported timestamp encoding: {value!r}")

    try:
        date.fromisoformat(m.group("date"))
    except ValueError as e:
        raise InvalidTimestampError(f"Invalid calendar date in {value!r}: {e}") from e

    if m.group("hour") is None:
        return m.group("date")

    hour, minute = int(m.group("hour")), int(m.group("minute"))
    second = int(m.group("second") or 0)
    if hour > 23 or minute > 59 or second > 59:
        raise InvalidTimestampError(f"Invalid time of day in {value!r}")

    microsecond = int((m.group("fraction") or "0").ljust(6, "0"))
    return _canonical(m.group("date"), hour, minute, second, microsecond)


def today() -> str:
    """Today's date as a timestamp."""
    return date.today().isoformat()
