"""
Date ranges and calendar buckets for the reports.

A report range is two calendar dates, both inclusive: it starts at
00:00:00 on the first day and runs through 23:59:59.999999 on the last one,
in the report timezone. Buckets for the sales trend are aligned to the
calendar (day, ISO week starting Monday, month, year), never rolling windows.
"""

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Union
from zoneinfo import ZoneInfo

from ...core.config import REPORT_TIMEZONE
from ...core.exceptions import InvalidDateError, InvalidIntervalError, InvalidRangeError


class TrendInterval(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


def parse_interval(value: Union[TrendInterval, str, None]) -> TrendInterval:
    if value is None:
        return TrendInterval.DAY
    if isinstance(value, TrendInterval):
        return value
    try:
        return TrendInterval(value.strip().lower())
    except (ValueError, AttributeError):
        allowed = ", ".join(i.value for i in TrendInterval)
        raise InvalidIntervalError(f"Invalid interval '{value}'. Expected one of: {allowed}") from None


def parse_iso_date(value: str, param_name: str) -> datetime.date:
    try:
        return datetime.date.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        raise InvalidDateError(f"Invalid {param_name} '{value}'. Expected an ISO-8601 date (YYYY-MM-DD)") from None


@dataclass(frozen=True)
class DateRange:
    start: datetime.date
    end: datetime.date

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidRangeError(
                f"Start date {self.start.isoformat()} is after end date {self.end.isoformat()}"
            )

    def window(self, tz_name: str = REPORT_TIMEZONE) -> tuple[datetime.datetime, datetime.datetime]:
        """
        Returns the (first, last) instants of the range as naive UTC datetimes.

        Timestamps are stored naive in UTC (`use_tz` is off), so the bounds
        are compared the same way. The end is the last microsecond of the end
        date, so filtering with `created_at <= last` keeps sales made late on
        the final day.
        """
        tz = ZoneInfo(tz_name)
        first = datetime.datetime.combine(self.start, datetime.time.min, tzinfo=tz)
        last = datetime.datetime.combine(self.end, datetime.time.max, tzinfo=tz)
        return _naive_utc(first, datetime.datetime.min), _naive_utc(last, datetime.datetime.max)

    def days(self) -> Iterator[datetime.date]:
        day = self.start
        while True:
            yield day
            if day >= self.end:
                return
            day += datetime.timedelta(days=1)


def _naive_utc(moment: datetime.datetime, limit: datetime.datetime) -> datetime.datetime:
    try:
        return moment.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    except OverflowError:
        # 0001-01-01 or 9999-12-31 shifted past the calendar's edge
        return limit


def current_month(today: Optional[datetime.date] = None, tz_name: str = REPORT_TIMEZONE) -> DateRange:
    """The calendar month containing `today` (defaults to now in the report timezone)."""
    if today is None:
        today = datetime.datetime.now(ZoneInfo(tz_name)).date()
    first = today.replace(day=1)
    next_month = (first + datetime.timedelta(days=32)).replace(day=1)
    return DateRange(first, next_month - datetime.timedelta(days=1))


def local_date(moment: datetime.datetime, tz_name: str = REPORT_TIMEZONE) -> datetime.date:
    """The calendar date of a stored timestamp in the report timezone. Naive values are UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=datetime.timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name)).date()


def bucket_start(day: datetime.date, interval: TrendInterval) -> datetime.date:
    if interval is TrendInterval.DAY:
        return day
    if interval is TrendInterval.WEEK:
        return day - datetime.timedelta(days=day.weekday())
    if interval is TrendInterval.MONTH:
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def bucket_label(start: datetime.date, interval: TrendInterval) -> str:
    if interval is TrendInterval.DAY:
        return start.isoformat()
    if interval is TrendInterval.WEEK:
        iso_year, iso_week, _ = start.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if interval is TrendInterval.MONTH:
        return f"{start.year:04d}-{start.month:02d}"
    return f"{start.year:04d}"


def next_bucket_start(start: datetime.date, interval: TrendInterval) -> datetime.date:
    if interval is TrendInterval.DAY:
        return start + datetime.timedelta(days=1)
    if interval is TrendInterval.WEEK:
        return start + datetime.timedelta(days=7)
    if interval is TrendInterval.MONTH:
        return datetime.date(start.year + start.month // 12, start.month % 12 + 1, 1)
    return datetime.date(start.year + 1, 1, 1)


def count_buckets(date_range: DateRange, interval: TrendInterval) -> int:
    """Number of buckets that overlap the range, computed without walking it."""
    first = bucket_start(date_range.start, interval)
    last = bucket_start(date_range.end, interval)
    if interval is TrendInterval.DAY:
        return (last - first).days + 1
    if interval is TrendInterval.WEEK:
        return (last - first).days // 7 + 1
    if interval is TrendInterval.MONTH:
        return (last.year - first.year) * 12 + last.month - first.month + 1
    return last.year - first.year + 1


def buckets_in_range(date_range: DateRange, interval: TrendInterval) -> list[datetime.date]:
    """Start dates of every bucket that overlaps the range, oldest first."""
    start = bucket_start(date_range.start, interval)
    starts = [start]
    # Never step past the last bucket, it may be the last one the calendar has
    for _ in range(count_buckets(date_range, interval) - 1):
        start = next_bucket_start(start, interval)
        starts.append(start)
    return starts
