"""
Time bucketer - calendar-day and hour buckets over [start, end).

Key behaviors:
- Day boundaries are local midnights in the configured timezone,
  computed by calendar truncation (DST days are 23 or 25 hours long)
- Buckets tile the requested range exactly: the first and last bucket
  are clipped to it, empty buckets are kept
- end <= start yields no buckets
- Pure function of its inputs; results are never cached

All returned datetimes are timezone-aware UTC.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo

from .models import Bucket, Granularity

DAY_KEY_FORMAT = "%Y-%m-%d"
DAY_LABEL_FORMAT = "%d/%m"
HOUR_KEY_FORMAT = "%Y-%m-%dT%H:00"
HOUR_LABEL_FORMAT = "%H:00"


@lru_cache(maxsize=32)
def get_zone(tz_name: str) -> tzinfo:
    """Resolve an IANA timezone name."""
    if tz_name.upper() == "UTC":
        return UTC
    return ZoneInfo(tz_name)


def ensure_utc(ts: datetime) -> datetime:
    """Normalize to aware UTC; naive values are taken as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def local_midnight(day: date, zone: tzinfo) -> datetime:
    """UTC instant of local midnight starting `day`."""
    return datetime.combine(day, time(), tzinfo=zone).astimezone(UTC)


def calculate_bucket_start(
    ts: datetime,
    granularity: Granularity,
    tz_name: str = "UTC",
) -> datetime:
    """Start (UTC) of the local day or hour containing ts."""
    zone = get_zone(tz_name)
    local = ensure_utc(ts).astimezone(zone)

    if granularity == Granularity.DAY:
        return local_midnight(local.date(), zone)
    elif granularity == Granularity.HOUR:
        return local.replace(minute=0, second=0, microsecond=0).astimezone(UTC)
    else:
        msg = f"Unknown granularity: {granularity}"
        raise ValueError(msg)


def calculate_bucket_end(
    bucket_start: datetime,
    granularity: Granularity,
    tz_name: str = "UTC",
) -> datetime:
    """End (UTC, exclusive) of the bucket starting at bucket_start."""
    zone = get_zone(tz_name)
    start = ensure_utc(bucket_start)

    if granularity == Granularity.DAY:
        next_day = start.astimezone(zone).date() + timedelta(days=1)
        return local_midnight(next_day, zone)
    elif granularity == Granularity.HOUR:
        return start + timedelta(hours=1)
    else:
        msg = f"Unknown granularity: {granularity}"
        raise ValueError(msg)


def _day_buckets(start: datetime, end: datetime, zone: tzinfo) -> list[Bucket]:
    buckets: list[Bucket] = []
    day = start.astimezone(zone).date()
    cursor = start

    while cursor < end:
        bucket_end = min(end, local_midnight(day + timedelta(days=1), zone))
        buckets.append(
            Bucket(
                start=cursor,
                end=bucket_end,
                key=day.strftime(DAY_KEY_FORMAT),
                label=day.strftime(DAY_LABEL_FORMAT),
            )
        )
        cursor = bucket_end
        day += timedelta(days=1)

    return buckets


def _hour_buckets(start: datetime, end: datetime, zone: tzinfo) -> list[Bucket]:
    buckets: list[Bucket] = []
    boundary = (
        start.astimezone(zone).replace(minute=0, second=0, microsecond=0).astimezone(UTC)
    )
    cursor = start

    while cursor < end:
        next_boundary = boundary + timedelta(hours=1)
        bucket_end = min(end, next_boundary)
        local = boundary.astimezone(zone)
        buckets.append(
            Bucket(
                start=cursor,
                end=bucket_end,
                key=local.strftime(HOUR_KEY_FORMAT),
                label=local.strftime(HOUR_LABEL_FORMAT),
            )
        )
        cursor = bucket_end
        boundary = next_boundary

    return buckets


def build_buckets(
    start: datetime,
    end: datetime,
    granularity: Granularity | str = Granularity.DAY,
    tz_name: str = "UTC",
) -> tuple[Bucket, ...]:
    """
    Split [start, end) into ordered day or hour buckets.

    Args:
        start: Range start (inclusive).
        end: Range end (exclusive).
        granularity: "day" or "hour".
        tz_name: IANA timezone used for calendar boundaries.

    Returns:
        Buckets sorted ascending by start; empty when end <= start.
    """
    granularity = Granularity(granularity)
    start = ensure_utc(start)
    end = ensure_utc(end)

    if end <= start:
        return ()

    zone = get_zone(tz_name)
    if granularity == Granularity.DAY:
        return tuple(_day_buckets(start, end, zone))
    return tuple(_hour_buckets(start, end, zone))
