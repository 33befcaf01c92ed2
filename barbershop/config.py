# barbershop/config.py

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./barber.db")

SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "change-me-later"  # noqa: S105 - dev fallback only
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

# Business rules. All wall-clock values are in BUSINESS_TIMEZONE.
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Asia/Kuala_Lumpur")
SLOT_MINUTES = int(os.getenv("SLOT_MINUTES", "60"))
BREAK_START = os.getenv("BREAK_START", "19:00")
BREAK_END = os.getenv("BREAK_END", "20:00")
GRACE_PERIOD_MS = int(os.getenv("GRACE_PERIOD_MS", "10000"))
CANCELLATION_CUTOFF_HOURS = int(os.getenv("CANCELLATION_CUTOFF_HOURS", "2"))
CURRENCY = os.getenv("CURRENCY", "MYR")

# Resend email configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Wellside <no-reply@mail.wellside.xyz>")
# Used when no admin user has an email on file
BOOKING_ADMIN_EMAIL = os.getenv("BOOKING_ADMIN_EMAIL")
NOTIFICATION_MAX_ATTEMPTS = int(os.getenv("NOTIFICATION_MAX_ATTEMPTS", "3"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
