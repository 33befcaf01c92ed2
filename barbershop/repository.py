# barbershop/repository.py

# Working-hours read failures become ConfigurationError, other backend
# failures DataAccessError; guard violations map to their booking errors.

import logging
import secrets
from datetime import datetime
from typing import List, Optional

import pendulum
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .availability import WorkingHours
from .core import TimeRange, to_utc
from .data import ACTIVE_STATUSES
from .exceptions import (
    ConfigurationError,
    DataAccessError,
    DuplicateActiveBookingError,
    SlotConflictError,
)
from .models import BarberProfile, Booking, Service, User

logger = logging.getLogger(__name__)

REF_ATTEMPTS = 3


def generate_booking_ref() -> str:
    return f"BK-{secrets.token_hex(3).upper()}"


class BookingRepository:
    def __init__(self, session: Session):
        self.session = session

    # ── Reads ────────────────────────────────────────────────────────────────

    def get_working_hours(self, barber_id: int):
        """Return the barber's WorkingHours or raise ConfigurationError."""
        try:
            profile = self.session.get(BarberProfile, barber_id)
        except SQLAlchemyError as e:
            logger.error(f"Working hours read failed for barber {barber_id}: {e}")
            raise ConfigurationError() from e

        if profile is None or profile.working_start_time is None or profile.working_end_time is None:
            raise ConfigurationError()
        return WorkingHours(start_time=profile.working_start_time, end_time=profile.working_end_time)

    def list_barber_bookings(self, barber_id: int, window: TimeRange) -> List[Booking]:
        """Non-cancelled bookings of a barber intersecting ``window``."""
        stmt = (
            select(Booking)
            .where(Booking.barber_id == barber_id)
            .where(Booking.status != "cancelled")
            .where(Booking.start_at < to_utc(window.end))
            .where(Booking.end_at > to_utc(window.start))
            .order_by(Booking.start_at)
        )
        try:
            return list(self.session.exec(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"Booking read failed for barber {barber_id}: {e}")
            raise DataAccessError() from e

    def find_active_booking(self, customer_id: int) -> Optional[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.customer_id == customer_id)
            .where(Booking.status.in_(ACTIVE_STATUSES))
            .limit(1)
        )
        try:
            return self.session.exec(stmt).first()
        except SQLAlchemyError as e:
            logger.error(f"Active booking check failed for customer {customer_id}: {e}")
            raise DataAccessError() from e

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        try:
            return self.session.get(Booking, booking_id)
        except SQLAlchemyError as e:
            raise DataAccessError() from e

    def get_user(self, user_id: int) -> Optional[User]:
        try:
            return self.session.get(User, user_id)
        except SQLAlchemyError as e:
            raise DataAccessError() from e

    def get_service(self, service_id: int) -> Optional[Service]:
        try:
            return self.session.get(Service, service_id)
        except SQLAlchemyError as e:
            raise DataAccessError() from e

    def get_barber_profile(self, barber_id: int) -> Optional[BarberProfile]:
        try:
            return self.session.get(BarberProfile, barber_id)
        except SQLAlchemyError as e:
            raise DataAccessError() from e

    def admin_emails(self) -> List[str]:
        try:
            rows = self.session.exec(select(User.email).where(User.role == "admin")).all()
        except SQLAlchemyError as e:
            raise DataAccessError() from e
        return [email.strip() for email in rows if email and email.strip()]

    # ── Writes ───────────────────────────────────────────────────────────────

    def insert_booking(
        self,
        *,
        customer_id: int,
        barber_id: int,
        service_id: int,
        start_at: datetime,
        end_at: datetime,
    ) -> Booking:
        """
        Insert a ``scheduled`` booking in a single statement.

        The overlap guard and the one-active-booking index are enforced by the
        database, so two racing inserts for the same barber/time cannot both
        succeed.
        """
        for _ in range(REF_ATTEMPTS):
            booking = Booking(
                booking_ref=generate_booking_ref(),
                customer_id=customer_id,
                barber_id=barber_id,
                service_id=service_id,
                start_at=to_utc(start_at),
                end_at=to_utc(end_at),
                status="scheduled",
                created_at=pendulum.now("UTC"),
            )
            self.session.add(booking)
            try:
                self.session.commit()
            except IntegrityError as e:
                self.session.rollback()
                if "booking_ref" in str(e.orig):
                    continue
                raise self._guard_error(e, barber_id, customer_id) from e
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(f"Booking insert failed: {e}")
                raise DataAccessError() from e

            self.session.refresh(booking)
            return booking

        raise DataAccessError()

    def update_status(self, booking: Booking, status: str) -> Booking:
        """Change ``booking.status``; reactivating is subject to the same guards as insert."""
        barber_id, customer_id = booking.barber_id, booking.customer_id
        booking.status = status
        self.session.add(booking)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise self._guard_error(e, barber_id, customer_id) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Status update to {status} failed for booking {booking.id}: {e}")
            raise DataAccessError() from e
        self.session.refresh(booking)
        return booking

    @staticmethod
    def _guard_error(e: IntegrityError, barber_id: int, customer_id: int):
        reason = str(e.orig)
        if "booking_no_overlap" in reason:
            logger.info(f"Overlap guard rejected booking for barber {barber_id}")
            return SlotConflictError()
        if "uq_booking_customer_active" in reason or "customer_id" in reason:
            logger.info(f"Active booking guard rejected booking for customer {customer_id}")
            return DuplicateActiveBookingError()
        logger.error(f"Booking write failed: {e}")
        return DataAccessError()
