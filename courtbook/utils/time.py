from datetime import datetime, timezone


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc)


def parse_iso8601(value: object) -> datetime:
    """Parse an ISO-8601 instant carrying an offset into naive UTC.

    Accepts strings (a trailing ``Z`` is allowed) and aware datetimes. Raises
    ValueError for anything else, including naive values.
    """
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError("expected an ISO-8601 string")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return to_utc_naive(datetime.fromisoformat(text))
