# barbershop/core.py

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Tuple

import pendulum
from pendulum import DateTime

from .data import shop_settings


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    """True if [a_start, a_end) overlaps [b_start, b_end)."""
    return a_start < b_end and b_start < a_end


def to_utc(value: datetime) -> DateTime:
    # Naive values come back from SQLite; they were written as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return pendulum.instance(value).in_timezone("UTC")


def local_datetime(day: date, wall: time, tz: str = None) -> DateTime:
    """Combine a calendar date with a wall-clock time in the business timezone."""
    return pendulum.datetime(
        day.year, day.month, day.day,
        wall.hour, wall.minute, wall.second,
        tz=tz or shop_settings["timezone"],
    )


def local_date(value: datetime, tz: str = None) -> date:
    """Calendar date of an instant in the business timezone."""
    return to_utc(value).in_timezone(tz or shop_settings["timezone"]).date()


def day_bounds(day: date, tz: str = None) -> Tuple[DateTime, DateTime]:
    start = local_datetime(day, time(0, 0), tz)
    return start, start.add(days=1)


def date_label(value: datetime, tz: str = None) -> str:
    return to_utc(value).in_timezone(tz or shop_settings["timezone"]).format("ddd, MMM D, YYYY")


def time_label(value: datetime, tz: str = None) -> str:
    return to_utc(value).in_timezone(tz or shop_settings["timezone"]).format("h:mm A")


def price_label(base_price) -> str:
    amount = base_price if base_price is not None else 0
    # whole amounts print without decimals
    if float(amount).is_integer():
        amount = int(amount)
    return f"{shop_settings['currency']} {amount}"


@dataclass(frozen=True)
class TimeRange:
    """
    Immutable half-open time range [start, end).

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def overlaps(self, other: "TimeRange") -> bool:
        return overlaps(self.start, self.end, other.start, other.end)
