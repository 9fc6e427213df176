from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Make a naive datetime timezone-aware (UTC). Already-aware datetimes pass through.

    MongoDB stores datetimes without tzinfo (naive). Wrap values read back from
    a document with ensure_utc() before comparing them with utcnow().
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_utc(value: str | datetime) -> datetime:
    """Parse a date string or datetime into a tz-aware UTC datetime.

    Handles ISO 8601 strings (with or without Z/offset) and bare datetimes.
    Raises ValueError on malformed strings.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))


def isoformat_utc(dt: datetime | None) -> str | None:
    """ISO-8601 string with explicit UTC offset, or None."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()
