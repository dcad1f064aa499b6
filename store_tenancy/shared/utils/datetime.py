"""UTC helpers for token expiry and provisioning timestamps.

Everything this package stores or compares is timezone-aware UTC; naive
values coming back from JSON or the database are read as UTC.
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive values and convert aware ones; None passes through."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_utc(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string (as written by isoformat()) into aware UTC."""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))


def seconds_from_now(seconds: float) -> datetime:
    """Absolute expiry for a relative lifetime such as OAuth expires_in."""
    return utc_now() + timedelta(seconds=seconds)


def has_passed(moment: datetime, *, skew_seconds: float = 0, now: datetime | None = None) -> bool:
    """True when moment is in the past, or less than skew_seconds away."""
    return moment - timedelta(seconds=skew_seconds) <= (now or utc_now())
