"""
Time helpers shared by the scheduler, progress service and analyzers.

Review timestamps are epoch milliseconds (int). Practice timestamps are
ISO-8601 strings; challenge and practice-streak dates are YYYY-MM-DD.
"""

from __future__ import annotations

import math
from datetime import UTC, date, datetime, timedelta

MS_PER_DAY = 24 * 60 * 60 * 1000


def now_ms() -> int:
    """Current UTC time in epoch milliseconds."""
    return int(datetime.now(UTC).timestamp() * 1000)


def to_ms(moment: datetime) -> int:
    """Convert a datetime (naive values are treated as UTC) to epoch ms."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return int(moment.timestamp() * 1000)


def from_ms(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)


def iso_from_ms(timestamp_ms: int) -> str:
    """Format epoch ms as an ISO string with millisecond precision and a Z suffix."""
    return from_ms(timestamp_ms).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso_ms(value: str | None) -> int | None:
    """
    Parse an ISO-8601 timestamp into epoch ms.

    Returns:
        Epoch ms, or None when the value is missing or unparsable
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return to_ms(parsed)


def date_string(timestamp_ms: int) -> str:
    """YYYY-MM-DD (UTC) for an epoch ms timestamp."""
    return from_ms(timestamp_ms).date().isoformat()


def previous_date_string(day: str) -> str:
    return (date.fromisoformat(day) - timedelta(days=1)).isoformat()


def days_between(first: str, second: str) -> int:
    """
    Whole days between two ISO timestamps or dates (absolute, floored).

    Unparsable input counts as zero days.
    """
    first_ms = parse_iso_ms(first)
    second_ms = parse_iso_ms(second)
    if first_ms is None or second_ms is None:
        return 0
    return abs(second_ms - first_ms) // MS_PER_DAY


def day_bounds_ms(timestamp_ms: int) -> tuple[int, int]:
    """Start and end (inclusive) of the UTC day containing the timestamp."""
    start = datetime.combine(from_ms(timestamp_ms).date(), datetime.min.time(), tzinfo=UTC)
    start_ms = to_ms(start)
    return start_ms, start_ms + MS_PER_DAY - 1


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (the builtin rounds half to even)."""
    return math.floor(value + 0.5)
