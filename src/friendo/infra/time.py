"""Time utilities for consistent timestamp handling.

All persisted and compared timestamps are timezone-aware UTC. Local wall-clock
values only exist at the model boundary (prompt rendering and parsing the
model's answer) and always name their zone explicitly.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

LOCAL_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
MODEL_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return value as aware UTC; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_local(value: datetime, time_zone: str) -> datetime:
    """Convert an instant to wall-clock time in the named zone."""
    return ensure_utc(value).astimezone(ZoneInfo(time_zone))


def format_local(value: datetime, time_zone: str, fmt: str = LOCAL_TIMESTAMP_FORMAT) -> str:
    return to_local(value, time_zone).strftime(fmt)


def model_wall_clock_to_utc(value: datetime, time_zone: str) -> datetime:
    """Convert a timestamp produced by the model into true UTC.

    The model is asked for local wall-clock time in ``time_zone``. It answers
    either without an offset or, frequently, with the same wall-clock digits
    labelled ``Z``. Both forms are read as wall clock in ``time_zone``. A value
    carrying any other explicit offset is trusted and converted directly.

    For Asia/Kolkata this subtracts 5h30m from a ``Z``-labelled value:
    2023-10-02T10:00:00Z -> 2023-10-02T04:30:00Z.
    """
    offset = value.utcoffset()
    if value.tzinfo is None or offset is None or offset.total_seconds() == 0:
        wall_clock = value.replace(tzinfo=ZoneInfo(time_zone))
        return wall_clock.astimezone(timezone.utc)
    return value.astimezone(timezone.utc)
