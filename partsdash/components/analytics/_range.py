"""
Date-range resolution for aggregation queries.

Precedence:
1. explicit start_date and end_date (ISO 8601), used verbatim
2. period token (last_7_days, last_30_days, last_90_days)
3. days (default from config)

Explicit dates without an offset are local wall-clock times in the
configured zone, so "2025-01-01" starts at local midnight like the day
buckets do. Token and day-count ranges are calendar aligned: they end at
the next local midnight, so today is the last bucket, and span whole days.
No range may cover more than MAX_DAYS days.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta

from ._buckets import ensure_utc, get_zone, local_midnight
from .config import DEFAULT_QUERY_CONFIG, QueryConfig
from .errors import IngestionError, ValidationError
from .models import DateRange, RangeQueryInput

# Ten years of day buckets
MAX_DAYS = 3650


def _invalid(code: str, message: str, field_name: str) -> ValidationError:
    return ValidationError(
        message,
        [IngestionError(code=code, message=message, field_name=field_name)],
    )


def parse_datetime(value: str, field_name: str, tz_name: str = "UTC") -> datetime:
    """Parse an ISO 8601 string to aware UTC; naive values are local to tz_name."""
    try:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=get_zone(tz_name))
        return ensure_utc(parsed)
    except (ValueError, OverflowError) as e:
        raise _invalid("invalid_datetime", f"Invalid datetime format: {value}", field_name) from e


def span_days(start: datetime, end: datetime, tz_name: str = "UTC") -> int:
    """
    Calendar days touched by [start, end), rounded up; 0 for empty ranges.

    Measured on the local wall clock so a 23 or 25 hour DST day counts once.
    """
    if end <= start:
        return 0
    zone = get_zone(tz_name)
    wall = end.astimezone(zone).replace(tzinfo=None) - start.astimezone(zone).replace(tzinfo=None)
    return max(1, math.ceil(wall.total_seconds() / 86400))


def resolve_days(
    period: str | None,
    days: int | None,
    config: QueryConfig = DEFAULT_QUERY_CONFIG,
) -> int:
    """Day count from a period token, else a raw day count, else the default."""
    if period and period in config.period_tokens:
        return config.period_tokens[period]

    if days is None:
        return config.default_days

    if days < 1:
        raise _invalid("invalid_days", "days must be a positive integer", "days")
    if days > MAX_DAYS:
        raise _invalid("invalid_days", f"days must be at most {MAX_DAYS}", "days")
    return days


def calendar_range(days: int, now: datetime, tz_name: str = "UTC") -> tuple[datetime, datetime]:
    """[start, end) covering the last `days` local calendar days, today included."""
    zone = get_zone(tz_name)
    today = ensure_utc(now).astimezone(zone).date()
    end = local_midnight(today + timedelta(days=1), zone)
    start = local_midnight(today - timedelta(days=days - 1), zone)
    return start, end


def today_range(now: datetime, tz_name: str = "UTC") -> DateRange:
    start, end = calendar_range(1, now, tz_name)
    return DateRange(start=start, end=end, period_days=1, label="today")


def resolve_range(
    inp: RangeQueryInput,
    now: datetime,
    config: QueryConfig = DEFAULT_QUERY_CONFIG,
) -> DateRange:
    """
    Resolve a range selector to a concrete window.

    Raises:
        ValidationError: Unparseable dates, a non-positive day count, or a
            range longer than MAX_DAYS.
    """
    if inp.start_date and inp.end_date:
        start = parse_datetime(inp.start_date, "startDate", config.timezone)
        end = parse_datetime(inp.end_date, "endDate", config.timezone)
        days = span_days(start, end, config.timezone)
        if days > MAX_DAYS:
            raise _invalid("invalid_range", f"Range must cover at most {MAX_DAYS} days", "endDate")
        # The comparator reads the equal-length window before start
        if start - datetime.min.replace(tzinfo=UTC) < end - start:
            raise _invalid("invalid_range", "Range starts too early to compare", "startDate")
        return DateRange(
            start=start,
            end=end,
            period_days=days,
            label=inp.period or f"{days} days",
        )

    days = resolve_days(inp.period, inp.days, config)
    start, end = calendar_range(days, now, config.timezone)
    label = inp.period if inp.period in config.period_tokens else f"{days} days"
    return DateRange(start=start, end=end, period_days=days, label=label)
