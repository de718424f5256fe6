"""Clock and venue-calendar helpers. Stored instants are naive UTC."""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Current instant as naive UTC (the storage convention)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an incoming datetime; naive values are assumed to be UTC already"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def venue_local_to_utc(day: date, at: time, tz_name: str) -> datetime:
    """Wall-clock time at the venue on `day` as naive UTC"""
    local = datetime.combine(day, at, tzinfo=ZoneInfo(tz_name))
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def utc_to_venue_local(value: datetime, tz_name: str) -> datetime:
    return value.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))
