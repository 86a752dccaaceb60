"""
Calendar periods for history and leaderboards.
offset 0 is the current period, 1 the previous one, and so on.
All ranges are local wall-clock time (naive datetimes).
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum


class Period(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


_END_OF_DAY_MS = time(23, 59, 59, 999000)
_END_OF_DAY = time(23, 59, 59)


def to_local_naive(moment: datetime) -> datetime:
    """Aware datetimes are converted to local time; naive ones are taken as local already."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


def parse_record_date(value: str) -> datetime:
    """Parse a stored ISO timestamp (a trailing Z is accepted) into local naive time."""
    return to_local_naive(datetime.fromisoformat(value.replace("Z", "+00:00")))


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end]."""
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= to_local_naive(moment) <= self.end

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def period_range(
    period: Period | str,
    offset: int = 0,
    now: datetime | None = None,
) -> DateRange:
    """
    Concrete date range for a period. Weeks start on Monday. Negative offsets clamp to 0.

    Day and week ranges end at 23:59:59.999. Month and year ranges end at 23:59:59.000
    of their last day, so a match completed in the final second of a month or year
    (e.g. 23:59:59.5) falls outside that period's range and every other one.
    """
    period = Period(period)
    offset = max(0, offset)
    today: date = to_local_naive(now or datetime.now()).date()

    if period == Period.DAY:
        day = today - timedelta(days=offset)
        return DateRange(datetime.combine(day, time.min), datetime.combine(day, _END_OF_DAY_MS))

    if period == Period.WEEK:
        monday = today - timedelta(days=(today.isoweekday() - 1) + offset * 7)
        sunday = monday + timedelta(days=6)
        return DateRange(datetime.combine(monday, time.min), datetime.combine(sunday, _END_OF_DAY_MS))

    if period == Period.MONTH:
        months = today.year * 12 + (today.month - 1) - offset
        year, month = divmod(months, 12)
        month += 1
        last_day = calendar.monthrange(year, month)[1]
        return DateRange(
            datetime(year, month, 1),
            datetime.combine(date(year, month, last_day), _END_OF_DAY),
        )

    year = today.year - offset
    return DateRange(datetime(year, 1, 1), datetime(year, 12, 31, 23, 59, 59))
