# barbershop/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

from .config import LOG_LEVEL, RESEND_API_KEY
from .db import create_db_and_tables, engine
from .exceptions import BookingError
from .grace import GraceSessionRegistry, SystemClock
from .notifications import EmailNotificationSender, NotificationQueue, NullNotificationSender
from .repository import BookingRepository
from .routers import auth_routes, barbers_routes, bookings_routes, services_routes, users_routes

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)


def admin_emails():
    with Session(engine) as session:
        return BookingRepository(session).admin_emails()


def build_sender():
    if not RESEND_API_KEY:
        logger.warning("RESEND_API_KEY missing - booking emails will only be logged")
        return NullNotificationSender()
    return EmailNotificationSender(admin_emails=admin_emails)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    clock = SystemClock()
    app.state.clock = clock
    app.state.registry = GraceSessionRegistry(clock=clock)
    app.state.notifications = NotificationQueue(build_sender())
    app.state.notifications.start()
    logger.info("Booking service started")
    yield
    app.state.notifications.stop()


app = FastAPI(title="Barbershop Booking", lifespan=lifespan)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.get("/health")
def health_check():
    return {"status": "ok"}


app.include_router(auth_routes.router)
app.include_router(users_routes.router)
app.include_router(services_routes.router)
app.include_router(barbers_routes.router)
app.include_router(bookings_routes.router)
