"""
Time helpers shared by the core and the HTTP layer.
All instants handled by the service are timezone-aware UTC datetimes.
"""

from datetime import datetime, timezone


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(raw):
    """
    Parse a scanned timestamp: epoch milliseconds (int/float or digit string)
    or an ISO-8601 string. Raises ValueError on anything else.
    """
    if raw is None or isinstance(raw, bool):
        raise ValueError("timestamp is required")

    if isinstance(raw, (int, float)):
        return datetime.fromtimestamp(raw / 1000, tz=timezone.utc)

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            raise ValueError("timestamp is required")
        if text.isdigit():
            return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return as_utc(datetime.fromisoformat(text))

    raise ValueError(f"Unsupported timestamp type: {type(raw).__name__}")


def to_epoch_ms(value):
    return int(value.timestamp() * 1000)
