# barbershop/data.py

from datetime import time

from .config import (
    BREAK_END,
    BREAK_START,
    BUSINESS_TIMEZONE,
    CANCELLATION_CUTOFF_HOURS,
    CURRENCY,
    GRACE_PERIOD_MS,
    SLOT_MINUTES,
)

ACTIVE_STATUSES = ("scheduled", "in_progress")

shop_settings = {
    "timezone": BUSINESS_TIMEZONE,
    "slot_minutes": SLOT_MINUTES,
    "break_start": time.fromisoformat(BREAK_START),
    "break_end": time.fromisoformat(BREAK_END),
    "grace_period_ms": GRACE_PERIOD_MS,
    "cancellation_cutoff_hours": CANCELLATION_CUTOFF_HOURS,
    "currency": CURRENCY,
}
