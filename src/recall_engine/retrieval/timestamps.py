"""Lenient timestamp parsing and display formatting for chunk time spans."""

from __future__ import annotations

from datetime import datetime, timezone

# Epoch values below this are seconds, above it milliseconds.
_EPOCH_MS_THRESHOLD = 10_000_000_000


def ensure_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value) -> datetime | None:
    """Best-effort conversion of datetimes, ISO strings and epoch numbers.

    Returns None instead of raising for anything unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        value = int(value.strip())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value if value < _EPOCH_MS_THRESHOLD else value / 1000
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def format_timestamp(value, with_year: bool = True) -> str:
    """Render like 'Mar 4, 2025, 3:07 PM'; 'No time' when unusable."""
    ts = parse_timestamp(value)
    if ts is None:
        return "No time"
    hour = ts.hour % 12 or 12
    meridiem = "AM" if ts.hour < 12 else "PM"
    date_part = f"{ts:%b} {ts.day}, {ts.year}" if with_year else f"{ts:%b} {ts.day}"
    return f"{date_part}, {hour}:{ts.minute:02d} {meridiem}"


def format_date(value) -> str:
    ts = parse_timestamp(value)
    return ts.date().isoformat() if ts else "Unknown"
