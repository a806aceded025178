"""Inclusive date-range filtering of flagged items."""
from dataclasses import dataclass
from datetime import date, datetime, time, timezone, tzinfo
from typing import Iterable, Optional

from photodatefix.lib.timestamp import local_timezone, resolve_timezone


@dataclass(frozen=True)
class DateInterval:
    """
    Inclusive interval; a None bound is unbounded on that side.

    start > end is allowed and simply matches nothing.
    """
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True


def apply_range(items: Iterable, interval: Optional[DateInterval]) -> list:
    """
    Keep items whose recorded_date falls inside interval.

    Relative order is preserved and items are not modified.

    Args:
        items: FlaggedItem-like objects with a recorded_date attribute
        interval: DateInterval, or None for no filtering

    Returns:
        New list of matching items
    """
    if interval is None or not interval.is_active:
        return list(items)
    return [item for item in items if interval.contains(item.recorded_date)]


def day_interval(
    start_day: Optional[date],
    end_day: Optional[date],
    tz: str | tzinfo | None = None
) -> DateInterval:
    """
    Build an interval covering whole calendar days.

    The start bound is midnight of start_day and the end bound is the last
    microsecond of end_day (time.max), both in tz (None = system local time).
    Recorded dates carry sub-second precision, so 23:59:59.5 is still inside.
    """
    zone = resolve_timezone(tz)

    def _bound(day: Optional[date], clock: time) -> Optional[datetime]:
        if day is None:
            return None
        moment = datetime.combine(day, clock)
        return moment.replace(tzinfo=zone or local_timezone(moment)).astimezone(timezone.utc)

    return DateInterval(
        start=_bound(start_day, time(0, 0, 0)),
        end=_bound(end_day, time.max),
    )
