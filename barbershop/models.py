# barbershop/models.py

from typing import Optional
from datetime import datetime, time

from sqlalchemy import DDL, Column, DateTime, Index, event, text
from sqlmodel import SQLModel, Field

ACTIVE_STATUS_SQL = "status IN ('scheduled', 'in_progress')"


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str = "customer"  # customer, barber or admin
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class BarberProfile(SQLModel, table=True):
    barber_id: int = Field(foreign_key="user.id", primary_key=True)
    display_name: str
    working_start_time: Optional[time] = None
    working_end_time: Optional[time] = None


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    base_price: Optional[float] = None
    duration_minutes: int = 60


class Booking(SQLModel, table=True):
    __table_args__ = (
        # one active booking per customer
        Index(
            "uq_booking_customer_active",
            "customer_id",
            unique=True,
            sqlite_where=text(ACTIVE_STATUS_SQL),
            postgresql_where=text(ACTIVE_STATUS_SQL),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    booking_ref: str = Field(index=True, unique=True)

    customer_id: int = Field(foreign_key="user.id", index=True)
    barber_id: int = Field(foreign_key="user.id", index=True)
    service_id: int = Field(foreign_key="service.id")
    # UTC instants
    start_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    end_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    status: str = "scheduled"
    created_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))


# Barber overlap guard. The database rejects an active booking that overlaps
# another active booking of the same barber.
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"""
        CREATE TRIGGER booking_no_overlap
        BEFORE INSERT ON booking
        WHEN NEW.{ACTIVE_STATUS_SQL}
        BEGIN
            SELECT RAISE(ABORT, 'booking_no_overlap: barber already booked for this time')
            WHERE EXISTS (
                SELECT 1 FROM booking
                WHERE barber_id = NEW.barber_id
                  AND {ACTIVE_STATUS_SQL}
                  AND start_at < NEW.end_at
                  AND NEW.start_at < end_at
            );
        END
        """
    ).execute_if(dialect="sqlite"),
)
# Same guard when a row is moved, reassigned or made active again.
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"""
        CREATE TRIGGER booking_no_overlap_update
        BEFORE UPDATE OF status, start_at, end_at, barber_id ON booking
        WHEN NEW.{ACTIVE_STATUS_SQL}
        BEGIN
            SELECT RAISE(ABORT, 'booking_no_overlap: barber already booked for this time')
            WHERE EXISTS (
                SELECT 1 FROM booking
                WHERE id != NEW.id
                  AND barber_id = NEW.barber_id
                  AND {ACTIVE_STATUS_SQL}
                  AND start_at < NEW.end_at
                  AND NEW.start_at < end_at
            );
        END
        """
    ).execute_if(dialect="sqlite"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        "ALTER TABLE booking ADD CONSTRAINT booking_no_overlap "
        "EXCLUDE USING gist (barber_id WITH =, tstzrange(start_at, end_at) WITH &&) "
        f"WHERE ({ACTIVE_STATUS_SQL})"
    ).execute_if(dialect="postgresql"),
)
