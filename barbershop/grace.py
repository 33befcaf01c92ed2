# barbershop/grace.py

# Phases: counting -> confirming -> confirmed | error, and counting -> cancelled.
# Remaining time is always recomputed from wall-clock timestamps.

import logging
import math
import threading
import time
import uuid
from typing import Callable, Dict, Optional, Protocol

import pendulum
from pendulum import DateTime

from .data import shop_settings
from .exceptions import BookingError, BookingNotFoundError, InvalidPhaseError

logger = logging.getLogger(__name__)

COUNTING = "counting"
CONFIRMING = "confirming"
CANCELLED = "cancelled"
CONFIRMED = "confirmed"
ERROR = "error"
TERMINAL_PHASES = (CANCELLED, CONFIRMED, ERROR)


def elapsed_ms(now_ms: int, started_at_ms: int) -> int:
    return max(0, now_ms - started_at_ms)


def remaining_ms(now_ms: int, started_at_ms: int, duration_ms: int) -> int:
    return max(0, duration_ms - elapsed_ms(now_ms, started_at_ms))


def progress(now_ms: int, started_at_ms: int, duration_ms: int) -> float:
    if duration_ms <= 0:
        return 1.0
    return min(1.0, elapsed_ms(now_ms, started_at_ms) / duration_ms)


class Clock(Protocol):
    def now_ms(self) -> int:
        ...

    def now(self) -> DateTime:
        ...


class SystemClock:
    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def now(self) -> DateTime:
        return pendulum.now("UTC")


class GraceSession:
    """
    One booking-confirmation attempt.

    ``finalizer`` performs the commit and returns its result (a receipt); a
    ``BookingError`` it raises moves the session to ``error``.
    """

    def __init__(
        self,
        selection,
        finalizer: Callable,
        *,
        owner_id: int,
        clock: Clock = None,
        duration_ms: int = None,
        started_at_ms: int = None,
        attempt_id: str = None,
    ):
        self.attempt_id = attempt_id or uuid.uuid4().hex
        self.selection = selection
        self.owner_id = owner_id
        self.clock = clock or SystemClock()
        self.duration_ms = duration_ms if duration_ms is not None else shop_settings["grace_period_ms"]
        self.started_at_ms = started_at_ms if started_at_ms is not None else self.clock.now_ms()
        self.phase = COUNTING
        self.receipt = None
        self.error: Optional[BookingError] = None
        self.finished_at_ms: Optional[int] = None
        self._finalizer = finalizer
        self._lock = threading.Lock()
        self._wakeup = threading.Event()

    def remaining_ms(self, now_ms: int = None) -> int:
        now_ms = self.clock.now_ms() if now_ms is None else now_ms
        return remaining_ms(now_ms, self.started_at_ms, self.duration_ms)

    def seconds_left(self, now_ms: int = None) -> int:
        return math.ceil(self.remaining_ms(now_ms) / 1000)

    def progress(self, now_ms: int = None) -> float:
        now_ms = self.clock.now_ms() if now_ms is None else now_ms
        return progress(now_ms, self.started_at_ms, self.duration_ms)

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def tick(self, now_ms: int = None) -> str:
        """Finalize if the countdown has run out; return the phase."""
        if self.phase == COUNTING and self.remaining_ms(now_ms) == 0:
            self.finalize()
        return self.phase

    # Same operation; named for the suspend/resume call site.
    resume = tick

    def cancel(self) -> None:
        with self._lock:
            if self.phase != COUNTING:
                raise InvalidPhaseError()
            self.phase = CANCELLED
            self.finished_at_ms = self.clock.now_ms()
        self._wakeup.set()
        logger.info(f"Booking attempt {self.attempt_id} cancelled during grace period")

    def finalize(self):
        """
        Commit the booking. Safe to call more than once: only the first call
        made while counting does any work, later calls return the current
        receipt (or None).
        """
        with self._lock:
            if self.phase != COUNTING:
                return self.receipt
            self.phase = CONFIRMING
        self._wakeup.set()

        try:
            receipt = self._finalizer(self.selection)
        except BookingError as e:
            self._finish(ERROR, error=e)
            logger.info(f"Booking attempt {self.attempt_id} failed: {e.code}")
            return None
        except Exception:
            self._finish(ERROR, error=BookingError())
            logger.exception(f"Booking attempt {self.attempt_id} failed unexpectedly")
            raise

        self._finish(CONFIRMED, receipt=receipt)
        logger.info(f"Booking attempt {self.attempt_id} confirmed")
        return receipt

    def _finish(self, phase: str, receipt=None, error: BookingError = None) -> None:
        with self._lock:
            self.phase = phase
            self.receipt = receipt
            self.error = error
            self.finished_at_ms = self.clock.now_ms()

    def wait_out(self, poll_ms: int = 250) -> str:
        """
        Block until the countdown ends or the session is cancelled.

        The wait is interruptible and re-reads the clock on every step, so it
        never drifts from the wall-clock deadline.
        """
        while self.phase == COUNTING:
            remaining = self.remaining_ms()
            if remaining == 0:
                self.finalize()
                break
            self._wakeup.wait(min(remaining, poll_ms) / 1000)
        return self.phase


def start_grace_session(selection, finalizer: Callable, **kwargs) -> GraceSession:
    """Validate ``selection`` up front and start its countdown."""
    selection.require_complete()
    session = GraceSession(selection, finalizer, **kwargs)
    logger.info(f"Booking attempt {session.attempt_id} started for customer {session.owner_id}")
    return session


class GraceSessionRegistry:
    """
    Process-local store of in-flight attempts. Not persisted across restarts.

    With ``autostart`` each added session gets a daemon thread running
    ``wait_out`` so it finalizes even if the client never polls again.
    """

    def __init__(self, clock: Clock = None, autostart: bool = True, retention_ms: int = 10 * 60 * 1000):
        self.clock = clock or SystemClock()
        self.autostart = autostart
        self.retention_ms = retention_ms
        self._sessions: Dict[str, GraceSession] = {}
        self._lock = threading.Lock()

    def add(self, session: GraceSession) -> GraceSession:
        self.prune()
        with self._lock:
            self._sessions[session.attempt_id] = session
        if self.autostart:
            threading.Thread(
                target=session.wait_out,
                name=f"grace-{session.attempt_id[:8]}",
                daemon=True,
            ).start()
        return session

    def get(self, attempt_id: str, owner_id: int) -> GraceSession:
        with self._lock:
            session = self._sessions.get(attempt_id)
        if session is None or session.owner_id != owner_id:
            raise BookingNotFoundError("Booking attempt not found.")
        return session

    def prune(self) -> None:
        now_ms = self.clock.now_ms()
        with self._lock:
            expired = [
                key for key, s in self._sessions.items()
                if s.finished_at_ms is not None and now_ms - s.finished_at_ms > self.retention_ms
            ]
            for key in expired:
                del self._sessions[key]

    def __len__(self) -> int:
        return len(self._sessions)
