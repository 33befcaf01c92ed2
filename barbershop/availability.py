# barbershop/availability.py

# An empty slot list means "no free slots"; a failed read raises instead.

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, List

from pendulum import DateTime

from .core import TimeRange, day_bounds, local_datetime, time_label, to_utc
from .data import shop_settings
from .exceptions import ConfigurationError, SlotConflictError


@dataclass(frozen=True)
class WorkingHours:
    """
    A barber's daily working window, wall-clock in the business timezone.

    Invariant: start_time < end_time.
    """
    start_time: time
    end_time: time

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ConfigurationError()


@dataclass(frozen=True)
class BreakWindow:
    """Business-wide daily break [start, end), contained in one day."""
    start: time
    end: time

    @classmethod
    def default(cls) -> "BreakWindow":
        return cls(start=shop_settings["break_start"], end=shop_settings["break_end"])


@dataclass(frozen=True)
class Slot:
    """One bookable unit. Computed on every query, never stored."""
    label: str
    start_at: DateTime
    end_at: DateTime


class SlotCalculator:
    """
    Calculates bookable slots for a barber on a date.

    Algorithm:
    1. Resolve working hours and the break window on the date in the business timezone
    2. Walk from work start in fixed steps; drop a trailing partial slot
    3. Drop candidates overlapping the break or any existing booking
    4. Drop candidates starting at or before ``now``
    """

    def __init__(
        self,
        working_hours: WorkingHours,
        break_window: BreakWindow = None,
        timezone: str = None,
        slot_minutes: int = None,
    ):
        self.working_hours = working_hours
        self.break_window = break_window or BreakWindow.default()
        self.timezone = timezone or shop_settings["timezone"]
        self.slot_minutes = slot_minutes or shop_settings["slot_minutes"]

    def find_available_slots(
        self,
        day: date,
        existing_bookings: Iterable[TimeRange],
        now: datetime,
    ) -> List[Slot]:
        work_start = local_datetime(day, self.working_hours.start_time, self.timezone)
        work_end = local_datetime(day, self.working_hours.end_time, self.timezone)
        break_range = TimeRange(
            start=local_datetime(day, self.break_window.start, self.timezone),
            end=local_datetime(day, self.break_window.end, self.timezone),
        )
        booked = list(existing_bookings)
        now = to_utc(now)
        step = timedelta(minutes=self.slot_minutes)

        slots: List[Slot] = []
        current = work_start
        while current + step <= work_end:
            candidate = TimeRange(start=current, end=current + step)
            current = current + step

            if candidate.overlaps(break_range):
                continue
            if any(candidate.overlaps(b) for b in booked):
                continue
            if candidate.start <= now:
                continue

            slots.append(
                Slot(
                    label=f"{time_label(candidate.start, self.timezone)} - {time_label(candidate.end, self.timezone)}",
                    start_at=candidate.start,
                    end_at=candidate.end,
                )
            )

        return slots


def get_available_slots(repository, barber_id: int, day: date, now: datetime) -> List[Slot]:
    """
    Load inputs for ``barber_id`` and compute the day's slots.

    Raises ConfigurationError when working hours are missing and
    DataAccessError when the bookings query fails.
    """
    working_hours = repository.get_working_hours(barber_id)
    day_start, day_end = day_bounds(day)
    bookings = repository.list_barber_bookings(barber_id, TimeRange(start=day_start, end=day_end))

    booked = [TimeRange(start=to_utc(b.start_at), end=to_utc(b.end_at)) for b in bookings]
    return SlotCalculator(working_hours).find_available_slots(day, booked, now)


def require_available_slot(repository, barber_id: int, day: date, start_at: datetime, end_at: datetime, now: datetime) -> Slot:
    """
    Return the slot offered for ``day`` that is exactly [start_at, end_at).

    A range that is not currently offered (past, outside working hours, in the
    break, taken, or not one slot long) raises SlotConflictError.
    """
    start_at, end_at = to_utc(start_at), to_utc(end_at)
    for slot in get_available_slots(repository, barber_id, day, now):
        if slot.start_at == start_at and slot.end_at == end_at:
            return slot
    raise SlotConflictError()
