from __future__ import annotations

from harness import ManualScheduler

from overlay_notifier.envelope import Envelope
from overlay_notifier.rate_limiter import RateLimiter


def _env(label: str) -> Envelope:
    return Envelope(sender="test", payload=label)


def _limiter(interval: float = 800):
    scheduler = ManualScheduler()
    limiter = RateLimiter(scheduler, interval)
    fired: list[tuple[str, float]] = []

    def on_due(envelope: Envelope) -> None:
        limiter.mark_sent()
        fired.append((envelope.payload, scheduler.now()))

    return scheduler, limiter, fired, on_due


def test_first_notification_is_due_immediately():
    scheduler, limiter, fired, on_due = _limiter()
    assert limiter.schedule(_env("a"), on_due=on_due) == 0
    scheduler.advance(0)
    assert fired == [("a", 0)]


def test_burst_is_spaced_by_min_interval():
    scheduler, limiter, fired, on_due = _limiter()
    due = [limiter.schedule(_env(label), on_due=on_due) for label in "abc"]

    assert due == [0, 800, 1600]
    scheduler.advance(2000)
    assert [label for label, _ in fired] == ["a", "b", "c"]
    times = [at for _, at in fired]
    assert all(later - earlier >= 800 for earlier, later in zip(times, times[1:]))


def test_delay_measured_from_last_send():
    scheduler, limiter, fired, on_due = _limiter()
    limiter.schedule(_env("a"), on_due=on_due)
    scheduler.advance(300)
    assert limiter.schedule(_env("b"), on_due=on_due) == 800
    scheduler.advance(5000)
    assert limiter.schedule(_env("c"), on_due=on_due) == scheduler.now()


def test_cancel_all_drops_pending_deliveries():
    scheduler, limiter, fired, on_due = _limiter()
    for label in "abc":
        limiter.schedule(_env(label), on_due=on_due)
    assert limiter.pending == 3

    assert limiter.cancel_all() == 3
    scheduler.advance(5000)
    assert fired == []
    assert limiter.pending == 0


def test_pending_tracks_fired_timers():
    scheduler, limiter, fired, on_due = _limiter()
    limiter.schedule(_env("a"), on_due=on_due)
    limiter.schedule(_env("b"), on_due=on_due)
    scheduler.advance(0)
    assert limiter.pending == 1
    scheduler.advance(800)
    assert limiter.pending == 0


def test_reset_forgets_last_send():
    scheduler, limiter, fired, on_due = _limiter()
    limiter.schedule(_env("a"), on_due=on_due)
    scheduler.advance(0)
    limiter.reset()
    assert limiter.delay_for(scheduler.now()) == 0
