# barbershop/commit.py

# Commit failures are terminal for the attempt and never retried here.

import logging
from dataclasses import dataclass
from datetime import date as Date, datetime, timedelta
from typing import Callable, List, Optional

from .availability import Slot, require_available_slot
from .core import date_label, price_label, time_label, to_utc
from .data import shop_settings
from .exceptions import (
    AuthenticationError,
    BookingStatusError,
    CancellationWindowClosedError,
    DataAccessError,
    DuplicateActiveBookingError,
    IncompleteSelectionError,
)
from .models import Booking
from .notifications import (
    CANCELLATION,
    CONFIRMATION,
    BookingNotification,
    customer_display_name,
    for_both_audiences,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceChoice:
    id: int
    name: str
    base_price: Optional[float] = None


@dataclass(frozen=True)
class BarberChoice:
    id: int
    display_name: str


@dataclass(frozen=True)
class BookingSelection:
    service: Optional[ServiceChoice] = None
    barber: Optional[BarberChoice] = None
    date: Optional[Date] = None
    slot: Optional[Slot] = None

    def missing_fields(self) -> List[str]:
        return [name for name in ("service", "barber", "date", "slot") if getattr(self, name) is None]

    def require_complete(self) -> None:
        missing = self.missing_fields()
        if missing:
            raise IncompleteSelectionError(
                f"Booking details are missing ({', '.join(missing)}). Please review again."
            )


@dataclass(frozen=True)
class BookingReceipt:
    booking_id: int
    booking_ref: str
    start_at: datetime
    end_at: datetime


def commit_booking(
    selection: BookingSelection,
    *,
    repository,
    identity: Callable[[], int],
    notifications,
    now: datetime,
) -> BookingReceipt:
    """
    Steps:
      1. Selection still complete              -> IncompleteSelectionError
      2. Signed-in customer                    -> AuthenticationError
      3. No other active booking for customer  -> DuplicateActiveBookingError
      4. Slot still offered at ``now``         -> SlotConflictError
      5. Guarded insert                        -> SlotConflictError
      6. Publish confirmation to customer and admin
    """
    # 1) Re-validate the selection
    selection.require_complete()

    # 2) Resolve the customer
    customer_id = identity()
    customer = repository.get_user(customer_id)
    if customer is None:
        raise AuthenticationError()

    # 3) One active booking per customer
    if repository.find_active_booking(customer_id) is not None:
        raise DuplicateActiveBookingError()

    # 4) The slot must still be one the availability engine offers
    require_available_slot(
        repository,
        selection.barber.id,
        selection.date,
        selection.slot.start_at,
        selection.slot.end_at,
        now,
    )

    # 5) Insert; overlap and duplicate guards are enforced by the database
    booking = repository.insert_booking(
        customer_id=customer_id,
        barber_id=selection.barber.id,
        service_id=selection.service.id,
        start_at=selection.slot.start_at,
        end_at=selection.slot.end_at,
    )
    logger.info(f"Booking {booking.booking_ref} created for customer {customer_id}")

    # 6) Fire and forget
    notification = BookingNotification(
        event=CONFIRMATION,
        audience="customer",
        booking_id=booking.id,
        booking_ref=booking.booking_ref,
        service_name=selection.service.name,
        barber_name=selection.barber.display_name,
        booking_date_label=date_label(booking.start_at),
        booking_time_label=time_label(booking.start_at),
        total_price_label=price_label(selection.service.base_price),
        customer_name=customer_display_name(customer.first_name, customer.last_name),
        customer_email=customer.email,
        customer_phone=customer.phone,
    )
    for message in for_both_audiences(notification):
        notifications.publish(message)

    return BookingReceipt(
        booking_id=booking.id,
        booking_ref=booking.booking_ref,
        start_at=to_utc(booking.start_at),
        end_at=to_utc(booking.end_at),
    )


def cancellation_allowed(booking: Booking, now: datetime, cutoff_hours: int = None) -> bool:
    """True while more than the cutoff remains before the appointment."""
    if cutoff_hours is None:
        cutoff_hours = shop_settings["cancellation_cutoff_hours"]
    return to_utc(booking.start_at) - to_utc(now) > timedelta(hours=cutoff_hours)


def cancel_booking(booking: Booking, *, repository, notifications, now: datetime, enforce_cutoff: bool = True) -> Booking:
    """
    Mark ``booking`` cancelled, releasing its time back to availability.

    The cutoff is a business rule for customers; staff pass
    ``enforce_cutoff=False``.
    """
    if booking.status == "cancelled":
        raise BookingStatusError()
    if booking.status not in ("scheduled", "in_progress"):
        raise BookingStatusError(f"A {booking.status} booking cannot be cancelled.")
    if enforce_cutoff and not cancellation_allowed(booking, now):
        raise CancellationWindowClosedError(
            f"Bookings can only be cancelled up to {shop_settings['cancellation_cutoff_hours']} hours "
            "before the appointment."
        )

    booking = repository.update_status(booking, "cancelled")
    logger.info(f"Booking {booking.booking_ref} cancelled")

    try:
        notification = _cancellation_notification(booking, repository)
    except DataAccessError as e:
        logger.warning(f"Cancellation notice for booking {booking.booking_ref} not queued: {e}")
        return booking
    for message in for_both_audiences(notification):
        notifications.publish(message)

    return booking


def _cancellation_notification(booking: Booking, repository) -> BookingNotification:
    customer = repository.get_user(booking.customer_id)
    service = repository.get_service(booking.service_id)
    barber = repository.get_barber_profile(booking.barber_id)
    return BookingNotification(
        event=CANCELLATION,
        audience="customer",
        booking_id=booking.id,
        booking_ref=booking.booking_ref,
        service_name=service.name if service else "",
        barber_name=barber.display_name if barber else "",
        booking_date_label=date_label(booking.start_at),
        booking_time_label=time_label(booking.start_at),
        total_price_label=price_label(service.base_price if service else None),
        customer_name=customer_display_name(
            customer.first_name if customer else None,
            customer.last_name if customer else None,
        ),
        customer_email=customer.email if customer else None,
        customer_phone=customer.phone if customer else None,
    )
