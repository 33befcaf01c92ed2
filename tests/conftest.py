"""
Shared fixtures: in-memory database, fake clock and recording collaborators.
"""

import os
from datetime import time, timedelta

os.environ.setdefault("SECRET_KEY", "test-secret")

import pendulum
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from barbershop.auth import hash_password
from barbershop.db import create_db_and_tables
from barbershop.models import BarberProfile, Service, User

TZ = "Asia/Kuala_Lumpur"


class FakeClock:
    """Clock whose time only moves when a test says so."""

    def __init__(self, start: str = "2024-05-24 08:00"):
        self.current = pendulum.parse(start, tz=TZ).in_timezone("UTC")

    def now(self):
        return self.current

    def now_ms(self) -> int:
        return int(self.current.timestamp() * 1000)

    def advance(self, ms: int) -> None:
        self.current = self.current + timedelta(milliseconds=ms)


class RecordingNotifications:
    """Stands in for NotificationQueue; keeps what was published."""

    def __init__(self):
        self.published = []

    def publish(self, notification) -> None:
        self.published.append(notification)


def make_engine(url: str = "sqlite://"):
    if url == "sqlite://":
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(url, connect_args={"check_same_thread": False})
    create_db_and_tables(engine)
    return engine


_hashes = {}


def password_hash(password: str) -> str:
    # bcrypt is slow; hash each test password once per run
    if password not in _hashes:
        _hashes[password] = hash_password(password)
    return _hashes[password]


def seed(session: Session, working_hours=(time(9, 0), time(18, 0))) -> dict:
    """One barber with hours, two customers, an admin and a service."""
    barber = User(email="arif@example.com", password_hash=password_hash("barberpass"), role="barber")
    alice = User(
        email="alice@example.com",
        password_hash=password_hash("alicepass"),
        role="customer",
        first_name="Alice",
        last_name="Tan",
        phone="+60123456789",
    )
    bob = User(email="bob@example.com", password_hash=password_hash("bobpass12"), role="customer")
    admin = User(email="admin@example.com", password_hash=password_hash("adminpass"), role="admin")
    service = Service(name="Fade and beard", base_price=35, duration_minutes=60)
    session.add_all([barber, alice, bob, admin, service])
    session.commit()
    for row in (barber, alice, bob, admin, service):
        session.refresh(row)

    start, end = working_hours if working_hours else (None, None)
    session.add(
        BarberProfile(
            barber_id=barber.id,
            display_name="Arif",
            working_start_time=start,
            working_end_time=end,
        )
    )
    session.commit()
    return {"barber": barber, "alice": alice, "bob": bob, "admin": admin, "service": service}


@pytest.fixture
def engine():
    return make_engine()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def seeded(session):
    return seed(session)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifications():
    return RecordingNotifications()
