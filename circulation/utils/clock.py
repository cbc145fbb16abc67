# circulation/utils/clock.py
"""
Wall-clock helpers.

All circulation timestamps are naive UTC datetimes. Services read the time
through utcnow() so deadline checks (pickup grace period, reservation hold,
due dates) can be driven from tests.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(value) -> datetime:
    """
    Accepts a datetime or an ISO-8601 string ("2024-01-10T09:30", trailing
    "Z" allowed). Aware values are converted to naive UTC.
    Raises ValueError on anything else.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not a datetime: {value!r}")

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def isoformat(value):
    return value.isoformat() if value else None
