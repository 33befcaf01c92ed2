# barbershop/routers/bookings_routes.py

import logging
from dataclasses import replace
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.auth import TokenIdentity, get_current_user, oauth2_scheme
from barbershop.availability import Slot, require_available_slot
from barbershop.commit import BarberChoice, BookingSelection, ServiceChoice, cancel_booking, commit_booking
from barbershop.core import local_date, to_utc
from barbershop.db import get_session
from barbershop.deps import get_clock, get_notifications, get_registry, get_session_factory, require_role
from barbershop.grace import GraceSession, start_grace_session
from barbershop.models import BarberProfile, Booking, Service
from barbershop.repository import BookingRepository
from barbershop.schemas import AttemptCreate, AttemptPublic, BookingPublic

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["bookings"],
)


def build_finalizer(session_factory, token: str, notifications, clock):
    """
    The commit runs when the grace period ends, possibly after the request
    that started it has returned, so it opens its own session.
    """
    def finalize(selection: BookingSelection):
        with session_factory() as session:
            return commit_booking(
                selection,
                repository=BookingRepository(session),
                identity=TokenIdentity(token, session),
                notifications=notifications,
                now=clock.now(),
            )

    return finalize


def attempt_state(attempt: GraceSession) -> dict:
    now_ms = attempt.clock.now_ms()
    state = {
        "attempt_id": attempt.attempt_id,
        "phase": attempt.phase,
        "remaining_ms": attempt.remaining_ms(now_ms),
        "seconds_left": attempt.seconds_left(now_ms),
        "progress": attempt.progress(now_ms),
    }
    if attempt.receipt is not None:
        state["booking_id"] = attempt.receipt.booking_id
        state["booking_ref"] = attempt.receipt.booking_ref
    if attempt.error is not None:
        state["error_code"] = attempt.error.code
        state["error_message"] = attempt.error.message
    return state


@router.post("/bookings/attempts", response_model=AttemptPublic, status_code=201)
def start_attempt(
    attempt: AttemptCreate,
    session: Session = Depends(get_session),
    token: str = Depends(oauth2_scheme),
    current_user: dict = Depends(get_current_user),
    registry=Depends(get_registry),
    notifications=Depends(get_notifications),
    session_factory=Depends(get_session_factory),
    clock=Depends(get_clock),
):
    require_role(current_user, "customer")

    # 1) Resolve what was picked; anything absent stays None
    service = None
    if attempt.service_id is not None:
        db_service = session.get(Service, attempt.service_id)
        if db_service is None:
            raise HTTPException(status_code=404, detail="Service not found")
        service = ServiceChoice(id=db_service.id, name=db_service.name, base_price=db_service.base_price)

    barber = None
    if attempt.barber_id is not None:
        profile = session.get(BarberProfile, attempt.barber_id)
        if profile is None:
            raise HTTPException(status_code=404, detail="Barber Not Found")
        barber = BarberChoice(id=profile.barber_id, display_name=profile.display_name)

    slot = None
    if attempt.start_at is not None and attempt.end_at is not None:
        start_at, end_at = to_utc(attempt.start_at), to_utc(attempt.end_at)
        if start_at >= end_at:
            raise HTTPException(status_code=422, detail="start_at must be before end_at")
        slot = Slot(label="", start_at=start_at, end_at=end_at)

    selection = BookingSelection(service=service, barber=barber, date=attempt.date, slot=slot)
    selection.require_complete()

    # 2) The range must be a slot offered on that date right now
    if local_date(selection.slot.start_at) != selection.date:
        raise HTTPException(status_code=422, detail="date does not match start_at")
    offered = require_available_slot(
        BookingRepository(session),
        selection.barber.id,
        selection.date,
        selection.slot.start_at,
        selection.slot.end_at,
        clock.now(),
    )
    selection = replace(selection, slot=offered)

    # 3) Start the countdown
    grace = start_grace_session(
        selection,
        build_finalizer(session_factory, token, notifications, clock),
        owner_id=current_user["id"],
        clock=registry.clock,
    )
    registry.add(grace)
    return attempt_state(grace)


@router.get("/bookings/attempts/{attempt_id}", response_model=AttemptPublic)
def get_attempt(
    attempt_id: str,
    current_user: dict = Depends(get_current_user),
    registry=Depends(get_registry),
):
    attempt = registry.get(attempt_id, current_user["id"])
    # Recompute from wall-clock; a countdown that ran out while the client
    # was away is finalized now.
    attempt.resume()
    return attempt_state(attempt)


@router.post("/bookings/attempts/{attempt_id}/cancel", response_model=AttemptPublic)
def cancel_attempt(
    attempt_id: str,
    current_user: dict = Depends(get_current_user),
    registry=Depends(get_registry),
):
    attempt = registry.get(attempt_id, current_user["id"])
    attempt.tick()
    attempt.cancel()
    return attempt_state(attempt)


@router.post("/bookings/attempts/{attempt_id}/confirm", response_model=AttemptPublic)
def confirm_attempt(
    attempt_id: str,
    current_user: dict = Depends(get_current_user),
    registry=Depends(get_registry),
):
    attempt = registry.get(attempt_id, current_user["id"])
    attempt.finalize()
    return attempt_state(attempt)


@router.patch("/bookings/{booking_id}/cancel", response_model=BookingPublic)
def cancel_existing_booking(
    booking_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
    notifications=Depends(get_notifications),
    clock=Depends(get_clock),
):
    repository = BookingRepository(session)

    # 1) Find the booking
    target = repository.get_booking(booking_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Booking not found")

    # 2) Authorization: customer who booked, the barber, or an admin
    user_id = current_user["id"]
    is_staff = current_user["role"] == "admin" or user_id == target.barber_id
    if user_id != target.customer_id and not is_staff:
        raise HTTPException(status_code=403, detail="Forbidden")

    # 3) Cancel; the cutoff only binds customers
    return cancel_booking(
        target,
        repository=repository,
        notifications=notifications,
        now=clock.now(),
        enforce_cutoff=not is_staff,
    )


@router.get("/customers/me/bookings", response_model=List[BookingPublic])
def list_my_bookings(
    status: Optional[str] = "active",
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "customer")

    if status not in ("active", "cancelled", "all"):
        raise HTTPException(status_code=422, detail="status must be 'active', 'cancelled', or 'all'")

    stmt = select(Booking).where(Booking.customer_id == current_user["id"])

    if status == "active":
        stmt = stmt.where(Booking.status.in_(("scheduled", "in_progress")))
    elif status == "cancelled":
        stmt = stmt.where(Booking.status == "cancelled")

    return session.exec(stmt.order_by(Booking.start_at)).all()
