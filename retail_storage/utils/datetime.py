"""Datetime utilities for normalising instants to UTC."""
from datetime import datetime, timezone


def ensure_aware(dt: datetime | None) -> datetime | None:
    """
    Convert naive datetime to aware UTC datetime.

    Naive datetimes in the entity model represent UTC, so they are tagged
    with the UTC timezone before being sent to a store or a remote API.

    Args:
        dt: A datetime object, which may be naive or aware.

    Returns:
        A timezone-aware datetime in UTC, or None if input is None.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_utc_naive(dt: datetime | None) -> datetime | None:
    """
    Convert any datetime to the UTC-naive form used by the entity model.

    Aware datetimes are shifted to UTC and stripped of tzinfo; naive
    datetimes are assumed to be UTC already and returned unchanged.

    Examples:
        >>> from datetime import timedelta
        >>> tz = timezone(timedelta(hours=2))
        >>> to_utc_naive(datetime(2025, 1, 1, 12, 0, tzinfo=tz))
        datetime.datetime(2025, 1, 1, 10, 0)
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_now() -> datetime:
    """Current time as a UTC-naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
