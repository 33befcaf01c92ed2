# barbershop/schemas.py

from pydantic import BaseModel, Field, field_validator
from enum import Enum
from datetime import datetime, date as Date, time
from typing import List, Optional

from .core import to_utc


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRole(str, Enum):
    customer = "customer"
    barber = "barber"
    admin = "admin"


class BookingStatus(str, Enum):
    scheduled = "scheduled"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class UserPublic(BaseModel):
    id: int
    email: str
    role: UserRole
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=8, max_length=72)
    role: UserRole = UserRole.customer
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    # barbers only
    display_name: Optional[str] = None


class UserUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class WorkingHoursUpdate(BaseModel):
    working_start_time: time
    working_end_time: time


class BarberPublic(BaseModel):
    barber_id: int
    display_name: str
    working_start_time: Optional[time] = None
    working_end_time: Optional[time] = None


class ServiceCreate(BaseModel):
    name: str
    base_price: Optional[float] = None
    duration_minutes: int = Field(default=60, gt=0)


class ServicePublic(BaseModel):
    id: int
    name: str
    base_price: Optional[float] = None
    duration_minutes: int


class SlotPublic(BaseModel):
    label: str
    start_at: datetime
    end_at: datetime


class AvailabilityResponse(BaseModel):
    barber_id: int
    date: Date
    slots: List[SlotPublic]


# Fields are optional so a missing one is reported as an incomplete selection
class AttemptCreate(BaseModel):
    service_id: Optional[int] = None
    barber_id: Optional[int] = None
    date: Optional[Date] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None


class AttemptPublic(BaseModel):
    attempt_id: str
    phase: str
    remaining_ms: int
    seconds_left: int
    progress: float
    booking_id: Optional[int] = None
    booking_ref: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class BookingPublic(BaseModel):
    id: int
    booking_ref: str
    customer_id: int
    barber_id: int
    service_id: int
    start_at: datetime
    end_at: datetime
    status: BookingStatus

    # SQLite hands back naive values; they are stored as UTC
    @field_validator("start_at", "end_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return to_utc(value)
