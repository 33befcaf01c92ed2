"""
Tests for the grace period state machine and countdown.
"""

import threading
import time
from datetime import date

import pendulum
import pytest

from barbershop.availability import Slot
from barbershop.commit import BarberChoice, BookingSelection, ServiceChoice
from barbershop.exceptions import (
    BookingNotFoundError,
    DuplicateActiveBookingError,
    IncompleteSelectionError,
    InvalidPhaseError,
)
from barbershop.grace import (
    CANCELLED,
    CONFIRMED,
    CONFIRMING,
    COUNTING,
    ERROR,
    GraceSession,
    GraceSessionRegistry,
    SystemClock,
    progress,
    remaining_ms,
    start_grace_session,
)


def full_selection() -> BookingSelection:
    start = pendulum.datetime(2024, 5, 24, 11, 0, tz="Asia/Kuala_Lumpur")
    return BookingSelection(
        service=ServiceChoice(id=1, name="Fade and beard", base_price=35),
        barber=BarberChoice(id=2, display_name="Arif"),
        date=date(2024, 5, 24),
        slot=Slot(label="11:00 AM - 12:00 PM", start_at=start, end_at=start.add(hours=1)),
    )


class CountingFinalizer:
    def __init__(self, result="receipt", error=None):
        self.calls = 0
        self.result = result
        self.error = error

    def __call__(self, selection):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class TestCountdownMath:
    """Remaining time is a pure function of timestamps."""

    def test_remaining_counts_down(self):
        assert remaining_ms(now_ms=1_000, started_at_ms=1_000, duration_ms=10_000) == 10_000
        assert remaining_ms(now_ms=4_000, started_at_ms=1_000, duration_ms=10_000) == 7_000

    def test_remaining_is_clamped(self):
        assert remaining_ms(now_ms=50_000, started_at_ms=1_000, duration_ms=10_000) == 0
        # clock stepped backwards
        assert remaining_ms(now_ms=0, started_at_ms=1_000, duration_ms=10_000) == 10_000

    def test_progress(self):
        assert progress(now_ms=6_000, started_at_ms=1_000, duration_ms=10_000) == 0.5
        assert progress(now_ms=99_000, started_at_ms=1_000, duration_ms=10_000) == 1.0


class TestGraceSession:
    """Tests for GraceSession phases."""

    def test_starts_counting(self, clock):
        session = GraceSession(full_selection(), CountingFinalizer(), owner_id=1, clock=clock, duration_ms=10_000)

        assert session.phase == COUNTING
        assert session.seconds_left() == 10

    def test_seconds_left_rounds_up(self, clock):
        session = GraceSession(full_selection(), CountingFinalizer(), owner_id=1, clock=clock, duration_ms=10_000)
        clock.advance(2_500)

        assert session.seconds_left() == 8

    def test_tick_before_deadline_does_nothing(self, clock):
        finalizer = CountingFinalizer()
        session = GraceSession(full_selection(), finalizer, owner_id=1, clock=clock, duration_ms=10_000)
        clock.advance(9_999)

        assert session.tick() == COUNTING
        assert finalizer.calls == 0

    def test_tick_at_deadline_finalizes(self, clock):
        finalizer = CountingFinalizer()
        session = GraceSession(full_selection(), finalizer, owner_id=1, clock=clock, duration_ms=10_000)
        clock.advance(10_000)

        assert session.tick() == CONFIRMED
        assert session.receipt == "receipt"
        assert finalizer.calls == 1

    def test_resume_after_suspension_finalizes_immediately(self, clock):
        """Suspended at 3s, resumed 12s later: elapsed comes from timestamps."""
        finalizer = CountingFinalizer()
        session = GraceSession(full_selection(), finalizer, owner_id=1, clock=clock, duration_ms=10_000)
        clock.advance(3_000)
        assert session.tick() == COUNTING

        clock.advance(12_000)

        assert session.resume() == CONFIRMED
        assert finalizer.calls == 1

    def test_cancel_while_counting(self, clock):
        finalizer = CountingFinalizer()
        session = GraceSession(full_selection(), finalizer, owner_id=1, clock=clock, duration_ms=10_000)
        clock.advance(4_000)

        session.cancel()
        clock.advance(20_000)
        session.tick()

        assert session.phase == CANCELLED
        assert finalizer.calls == 0

    def test_cancel_after_commit_started_is_rejected(self, clock):
        session = GraceSession(full_selection(), CountingFinalizer(), owner_id=1, clock=clock, duration_ms=10_000)
        session.finalize()

        with pytest.raises(InvalidPhaseError):
            session.cancel()
        assert session.phase == CONFIRMED

    def test_cancel_is_rejected_while_confirming(self, clock):
        holder = {}

        def finalizer(selection):
            with pytest.raises(InvalidPhaseError):
                holder["session"].cancel()
            assert holder["session"].phase == CONFIRMING
            return "receipt"

        session = GraceSession(full_selection(), finalizer, owner_id=1, clock=clock, duration_ms=10_000)
        holder["session"] = session

        assert session.finalize() == "receipt"
        assert session.phase == CONFIRMED

    def test_finalize_twice_commits_once(self, clock):
        finalizer = CountingFinalizer()
        session = GraceSession(full_selection(), finalizer, owner_id=1, clock=clock, duration_ms=10_000)

        session.finalize()
        session.finalize()
        clock.advance(10_000)
        session.tick()

        assert finalizer.calls == 1

    def test_concurrent_finalize_commits_once(self, clock):
        """Double-tap: many threads racing into finalize run one commit."""
        gate = threading.Event()
        calls = []

        def slow_finalizer(selection):
            calls.append(1)
            gate.wait(1)
            return "receipt"

        session = GraceSession(full_selection(), slow_finalizer, owner_id=1, clock=clock, duration_ms=10_000)
        threads = [threading.Thread(target=session.finalize) for _ in range(5)]
        for t in threads:
            t.start()
        gate.set()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert session.phase == CONFIRMED

    def test_booking_error_is_terminal(self, clock):
        finalizer = CountingFinalizer(error=DuplicateActiveBookingError())
        session = GraceSession(full_selection(), finalizer, owner_id=1, clock=clock, duration_ms=10_000)

        assert session.finalize() is None
        session.finalize()

        assert session.phase == ERROR
        assert session.error.code == "duplicate_active_booking"
        assert finalizer.calls == 1

    def test_unexpected_error_is_terminal_and_raised(self, clock):
        finalizer = CountingFinalizer(error=RuntimeError("boom"))
        session = GraceSession(full_selection(), finalizer, owner_id=1, clock=clock, duration_ms=10_000)

        with pytest.raises(RuntimeError):
            session.finalize()
        assert session.phase == ERROR


class TestWaitOut:
    """The blocking countdown used by the background driver."""

    def test_wait_out_finalizes_on_expiry(self):
        finalizer = CountingFinalizer()
        session = GraceSession(full_selection(), finalizer, owner_id=1, clock=SystemClock(), duration_ms=50)

        assert session.wait_out(poll_ms=10) == CONFIRMED
        assert finalizer.calls == 1

    def test_cancel_interrupts_wait(self):
        finalizer = CountingFinalizer()
        session = GraceSession(full_selection(), finalizer, owner_id=1, clock=SystemClock(), duration_ms=60_000)
        waiter = threading.Thread(target=session.wait_out)
        waiter.start()

        time.sleep(0.05)
        session.cancel()
        waiter.join(timeout=2)

        assert not waiter.is_alive()
        assert session.phase == CANCELLED
        assert finalizer.calls == 0


class TestStartGraceSession:
    """Entry validation."""

    @pytest.mark.parametrize("missing", ["service", "barber", "date", "slot"])
    def test_missing_field_is_rejected(self, clock, missing):
        fields = {
            "service": full_selection().service,
            "barber": full_selection().barber,
            "date": full_selection().date,
            "slot": full_selection().slot,
        }
        fields[missing] = None

        with pytest.raises(IncompleteSelectionError) as exc:
            start_grace_session(BookingSelection(**fields), CountingFinalizer(), owner_id=1, clock=clock)
        assert missing in exc.value.message

    def test_uses_configured_duration(self, clock):
        session = start_grace_session(full_selection(), CountingFinalizer(), owner_id=1, clock=clock)

        assert session.duration_ms == 10_000


class TestRegistry:
    """Process-local attempt store."""

    def test_get_checks_owner(self, clock):
        registry = GraceSessionRegistry(clock=clock, autostart=False)
        session = registry.add(GraceSession(full_selection(), CountingFinalizer(), owner_id=1, clock=clock))

        assert registry.get(session.attempt_id, 1) is session
        with pytest.raises(BookingNotFoundError):
            registry.get(session.attempt_id, 2)
        with pytest.raises(BookingNotFoundError):
            registry.get("missing", 1)

    def test_finished_sessions_are_pruned(self, clock):
        registry = GraceSessionRegistry(clock=clock, autostart=False, retention_ms=60_000)
        done = registry.add(GraceSession(full_selection(), CountingFinalizer(), owner_id=1, clock=clock))
        live = registry.add(GraceSession(full_selection(), CountingFinalizer(), owner_id=1, clock=clock))
        done.cancel()

        clock.advance(61_000)
        registry.prune()

        assert len(registry) == 1
        assert registry.get(live.attempt_id, 1) is live

    def test_autostart_finalizes_without_polling(self):
        finalizer = CountingFinalizer()
        registry = GraceSessionRegistry()
        session = registry.add(
            GraceSession(full_selection(), finalizer, owner_id=1, clock=registry.clock, duration_ms=20)
        )

        deadline = time.time() + 2
        while session.phase != CONFIRMED and time.time() < deadline:
            time.sleep(0.01)

        assert session.phase == CONFIRMED
        assert finalizer.calls == 1
