# barbershop/notifications.py

# The booking flow only calls NotificationQueue.publish; delivery and retries
# happen on the queue's worker thread.

import logging
import queue
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

import resend

from .config import BOOKING_ADMIN_EMAIL, EMAIL_FROM_ADDRESS, NOTIFICATION_MAX_ATTEMPTS, RESEND_API_KEY

logger = logging.getLogger(__name__)

CONFIRMATION = "confirmation"
CANCELLATION = "cancellation"
CUSTOMER = "customer"
ADMIN = "admin"


@dataclass(frozen=True)
class BookingNotification:
    event: str        # confirmation | cancellation
    audience: str     # customer | admin
    booking_id: int
    booking_ref: Optional[str]
    service_name: str
    barber_name: str
    booking_date_label: str
    booking_time_label: str
    total_price_label: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None


def customer_display_name(first_name: Optional[str], last_name: Optional[str], fallback: str = "there") -> str:
    parts = [p.strip() for p in (first_name, last_name) if p and p.strip()]
    return " ".join(parts) or fallback


def for_both_audiences(notification: BookingNotification) -> List[BookingNotification]:
    return [replace(notification, audience=CUSTOMER), replace(notification, audience=ADMIN)]


class NullNotificationSender:
    """Used when no mail provider is configured."""

    def send(self, notification: BookingNotification) -> None:
        logger.info(
            f"Notification not sent (no provider): {notification.event}/{notification.audience} "
            f"for booking {notification.booking_ref or notification.booking_id}"
        )


class EmailNotificationSender:
    """Delivers booking notifications through Resend."""

    def __init__(
        self,
        api_key: str = RESEND_API_KEY,
        from_address: str = EMAIL_FROM_ADDRESS,
        admin_emails: Callable[[], List[str]] = None,
        admin_fallback: Optional[str] = BOOKING_ADMIN_EMAIL,
    ):
        resend.api_key = api_key
        self.from_address = from_address
        self.admin_emails = admin_emails or (lambda: [])
        self.admin_fallback = admin_fallback

    def recipients(self, notification: BookingNotification) -> List[str]:
        if notification.audience == ADMIN:
            emails = self.admin_emails()
            if emails:
                return emails
            return [self.admin_fallback] if self.admin_fallback else []
        email = (notification.customer_email or "").strip()
        return [email] if email else []

    def subject(self, notification: BookingNotification) -> str:
        reference = notification.booking_ref or notification.booking_id
        if notification.event == CANCELLATION:
            return f"Booking cancelled • {reference}"
        if notification.audience == ADMIN:
            return f"New booking created • {reference}"
        return f"Your booking is confirmed • {reference}"

    def body(self, notification: BookingNotification) -> str:
        name = notification.customer_name
        if notification.audience == ADMIN and name == "there":
            name = "Customer"
        headline = "Booking cancelled" if notification.event == CANCELLATION else "Booking confirmed"
        rows = [
            ("Reference", notification.booking_ref or str(notification.booking_id)),
            ("Service", notification.service_name),
            ("Barber", notification.barber_name),
            ("Date", notification.booking_date_label),
            ("Time", notification.booking_time_label),
            ("Total", notification.total_price_label),
        ]
        if notification.audience == ADMIN:
            rows.append(("Customer", name))
            if notification.customer_phone:
                rows.append(("Phone", notification.customer_phone))
        items = "".join(f"<li><strong>{label}:</strong> {value}</li>" for label, value in rows)
        greeting = "" if notification.audience == ADMIN else f"<p>Hi {name},</p>"
        return f"<h2>{headline}</h2>{greeting}<ul>{items}</ul>"

    def send(self, notification: BookingNotification) -> None:
        to = self.recipients(notification)
        if not to:
            logger.warning(
                f"Skipping {notification.event} email for booking {notification.booking_id}: "
                f"no {notification.audience} recipient"
            )
            return
        required = (
            notification.service_name,
            notification.barber_name,
            notification.booking_date_label,
            notification.booking_time_label,
            notification.total_price_label,
        )
        if not all(required):
            logger.warning(f"Skipping {notification.event} email for booking {notification.booking_id}: missing details")
            return

        response = resend.Emails.send(
            {
                "from": self.from_address,
                "to": to,
                "subject": self.subject(notification),
                "html": self.body(notification),
            }
        )
        logger.info(f"Email sent via Resend for booking {notification.booking_id}: {response}")


_STOP = object()


class NotificationQueue:
    """
    In-process channel drained by one daemon worker thread.

    Delivery is at-least-once: a failed send is retried up to ``max_attempts``
    times, then logged and dropped.
    """

    def __init__(self, sender, max_attempts: int = NOTIFICATION_MAX_ATTEMPTS, retry_delay: float = 1.0):
        self.sender = sender
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._queue: "queue.Queue" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="booking-notifications", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._thread = None

    def publish(self, notification: BookingNotification) -> None:
        self._queue.put(notification)
        logger.debug(f"Queued {notification.event}/{notification.audience} for booking {notification.booking_id}")

    def join(self) -> None:
        """Block until every queued notification has been handled."""
        self._queue.join()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._deliver(item)
            finally:
                self._queue.task_done()

    def _deliver(self, notification: BookingNotification) -> None:
        for attempt in range(1, self.max_attempts + 1):
            try:
                self.sender.send(notification)
                return
            except Exception as e:
                logger.warning(
                    f"Notification send failed (attempt {attempt}/{self.max_attempts}) "
                    f"for booking {notification.booking_id}: {e}"
                )
                if attempt < self.max_attempts:
                    time.sleep(self.retry_delay * attempt)
        logger.error(
            f"Dropping {notification.event}/{notification.audience} notification for booking {notification.booking_id}"
        )
