from __future__ import annotations

import logging
from typing import Callable, Optional

from .envelope import Envelope
from .lifecycle import PendingTimers
from .preferences import DEFAULT_MIN_INTERVAL_MS
from .scheduler import Scheduler

DueFn = Callable[[Envelope], None]

_LOGGER = logging.getLogger("OverlayNotifier.RateLimiter")


class RateLimiter:
    """Spaces transmissions at least ``min_interval_ms`` apart.

    The delay for a new envelope is measured from the later of the last
    real transmission and the slot already reserved for the previous
    envelope, so a burst is spread out and due times never go backwards.
    ``last_sent_at`` itself only moves when :meth:`mark_sent` records an
    actual attempt.
    """

    def __init__(self, scheduler: Scheduler, min_interval_ms: float = DEFAULT_MIN_INTERVAL_MS) -> None:
        self._scheduler = scheduler
        self._timers = PendingTimers(scheduler.cancel, _LOGGER)
        self.min_interval_ms = max(0.0, float(min_interval_ms))
        self.last_sent_at: Optional[float] = None
        self._reserved_until: Optional[float] = None

    @property
    def pending(self) -> int:
        return len(self._timers)

    def delay_for(self, now: float) -> float:
        anchors = [value for value in (self.last_sent_at, self._reserved_until) if value is not None]
        if not anchors:
            return 0.0
        return max(0.0, self.min_interval_ms - (now - max(anchors)))

    def schedule(self, envelope: Envelope, now: Optional[float] = None, *, on_due: DueFn) -> float:
        """Arrange for ``on_due(envelope)`` once the spacing allows; returns the due time."""
        if now is None:
            now = self._scheduler.now()
        delay = self.delay_for(now)
        effective = now + delay
        self._reserved_until = effective
        holder: dict[str, object] = {}

        def _fire() -> None:
            self._timers.discard(holder.get("handle"))
            on_due(envelope)

        handle = self._scheduler.call_later(delay, _fire)
        holder["handle"] = handle
        self._timers.add(handle)
        if delay > 0:
            _LOGGER.debug("Rate limit: notification deferred %.0fms", delay)
        return effective

    def mark_sent(self, at: Optional[float] = None) -> None:
        self.last_sent_at = self._scheduler.now() if at is None else at

    def cancel_all(self) -> int:
        cancelled = self._timers.cancel_all()
        self._reserved_until = None
        return cancelled

    def reset(self) -> None:
        self.cancel_all()
        self.last_sent_at = None
