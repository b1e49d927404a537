"""
Time Range Helpers
==================

Turns "give me the last week" into actual start/end datetimes, parses
whatever date strings the frontend throws at us, and writes the friendly
"last week" / "last 3 months" labels that end up in reports.

All datetimes handed out from here are timezone-aware UTC.
"""

import calendar
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Union

from agritech.errors import ValidationError


class TimeRangeType(str, Enum):
    """Preset ranges the frontend can ask for."""
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    THREE_MONTHS = "3months"
    # Older frontend values
    LAST_24_HOURS = "last24hours"
    LAST_7_DAYS = "last7days"
    LAST_30_DAYS = "last30days"


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def description(self) -> str:
        return describe_time_range(self.start, self.end)


def _months_back(moment: datetime, months: int) -> datetime:
    """Same day-of-month N calendar months ago (clamped to the month's last day)."""
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_time_range(range_type: Union[TimeRangeType, str], now: Optional[datetime] = None) -> TimeRange:
    """
    Build a preset time range ending now.

    Args:
        range_type: One of TimeRangeType (or its string value)
        now: Override "now" (handy in tests)

    Returns:
        TimeRange with UTC start/end

    Raises:
        ValidationError: if the range type is unknown
    """
    try:
        range_type = TimeRangeType(range_type)
    except ValueError:
        raise ValidationError(f"Invalid time range type: {range_type}")

    end = now or utc_now()

    if range_type == TimeRangeType.HOUR:
        start = end - timedelta(hours=1)
    elif range_type in (TimeRangeType.DAY, TimeRangeType.LAST_24_HOURS):
        start = end - timedelta(days=1)
    elif range_type in (TimeRangeType.WEEK, TimeRangeType.LAST_7_DAYS):
        start = end - timedelta(days=7)
    elif range_type == TimeRangeType.LAST_30_DAYS:
        start = end - timedelta(days=30)
    elif range_type == TimeRangeType.MONTH:
        start = _months_back(end, 1)
    else:
        start = _months_back(end, 3)

    return TimeRange(start=start, end=end)


def parse_datetime(value: Union[datetime, str, int, float]) -> datetime:
    """
    Parse a datetime from an ISO string, "YYYY-MM-DD HH:MM:SS", epoch seconds
    or an existing datetime. Naive values are assumed to be UTC.

    Raises:
        ValidationError: if the value can't be understood
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Invalid date: {value}")
    else:
        raise ValidationError(f"Invalid date: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def resolve_time_range(
    range_type: Optional[Union[TimeRangeType, str]] = None,
    start_time: Optional[Union[datetime, str]] = None,
    end_time: Optional[Union[datetime, str]] = None,
    now: Optional[datetime] = None,
) -> TimeRange:
    """
    Work out the range a request is asking for.

    A preset wins over explicit times. Explicit times need both ends.

    Raises:
        ValidationError: no usable range, or start isn't before end
    """
    if range_type:
        return get_time_range(range_type, now=now)

    if start_time is None or end_time is None:
        raise ValidationError("A valid time range is required (range type or start and end time)")

    start = parse_datetime(start_time)
    end = parse_datetime(end_time)
    if start >= end:
        raise ValidationError("Start time must be before end time")
    return TimeRange(start=start, end=end)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def describe_time_range(start: datetime, end: datetime) -> str:
    """
    Human-readable label for how long a range is.

    Up to 1 hour is "last hour", up to 24 hours "last day", up to 7 days
    "last week", up to 30 days "last month", up to 90 days "last 3 months".
    Anything longer is "<N> days".
    """
    elapsed = end - start

    if elapsed <= timedelta(hours=1):
        return "last hour"
    if elapsed <= timedelta(hours=24):
        return "last day"
    if elapsed <= timedelta(days=7):
        return "last week"
    if elapsed <= timedelta(days=30):
        return "last month"
    if elapsed <= timedelta(days=90):
        return "last 3 months"

    days = _round_half_up(elapsed.total_seconds() / 86400)
    return f"{days} days"
