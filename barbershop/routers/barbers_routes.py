# barbershop/routers/barbers_routes.py

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.availability import get_available_slots
from barbershop.core import day_bounds, to_utc
from barbershop.db import get_session
from barbershop.models import BarberProfile, Booking
from barbershop.repository import BookingRepository
from barbershop.schemas import AvailabilityResponse, BarberPublic, BookingPublic, WorkingHoursUpdate
from barbershop.auth import get_current_user
from barbershop.deps import get_clock, require_role

router = APIRouter(
    prefix="/barbers",
    tags=["barbers"],
)


@router.get("", response_model=List[BarberPublic])
def list_barbers(session: Session = Depends(get_session)):
    return session.exec(select(BarberProfile).order_by(BarberProfile.display_name)).all()


@router.put("/me/working-hours", response_model=BarberPublic)
def set_working_hours(
    hours: WorkingHoursUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "barber")

    if hours.working_start_time >= hours.working_end_time:
        raise HTTPException(status_code=422, detail="working_start_time must be before working_end_time")

    profile = session.get(BarberProfile, current_user["id"])
    if profile is None:
        profile = BarberProfile(barber_id=current_user["id"], display_name=current_user["email"].split("@")[0])
    profile.working_start_time = hours.working_start_time
    profile.working_end_time = hours.working_end_time

    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


@router.get("/me/working-hours", response_model=BarberPublic)
def get_working_hours(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "barber")

    profile = session.get(BarberProfile, current_user["id"])
    if profile is None or profile.working_start_time is None:
        raise HTTPException(status_code=404, detail="Working hours not set")
    return profile


@router.get("/me/bookings", response_model=List[BookingPublic])
def list_barber_bookings(
    status: Optional[str] = "active",
    on_date: Optional[date] = None,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "barber")

    if status not in ("active", "cancelled", "all"):
        raise HTTPException(status_code=422, detail="status must be 'active', 'cancelled', or 'all'")

    stmt = select(Booking).where(Booking.barber_id == current_user["id"])

    if on_date is not None:
        day_start, day_end = day_bounds(on_date)
        stmt = stmt.where(Booking.start_at < to_utc(day_end)).where(Booking.end_at > to_utc(day_start))

    if status == "active":
        stmt = stmt.where(Booking.status.in_(("scheduled", "in_progress")))
    elif status == "cancelled":
        stmt = stmt.where(Booking.status == "cancelled")

    return session.exec(stmt.order_by(Booking.start_at)).all()


@router.get("/{barber_id}/availability", response_model=AvailabilityResponse)
def barber_availability(
    barber_id: int,
    date: date,
    session: Session = Depends(get_session),
    clock=Depends(get_clock),
):
    # 1) Unknown barber is a 404, not an unconfigured one
    if session.get(BarberProfile, barber_id) is None:
        raise HTTPException(status_code=404, detail="Barber Not Found")

    # 2) Compute slots; configuration and data errors propagate
    slots = get_available_slots(BookingRepository(session), barber_id, date, clock.now())

    return {
        "barber_id": barber_id,
        "date": date,
        "slots": [
            {"label": s.label, "start_at": s.start_at, "end_at": s.end_at}
            for s in slots
        ],
    }
