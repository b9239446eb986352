"""Notifier engine: the one object that owns connection, queue and timers."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, Optional

from .connection_manager import ConnectionManager
from .dispatch import TEST_BODY, TEST_TITLE, Dispatcher, NotificationRequest
from .icon_fetch import FetchFn, IconFetcher, fetch_icon_or_none
from .message_adapter import ChatMessage, should_notify, to_request
from .outbound_queue import OutboundQueue
from .preferences import Preferences
from .rate_limiter import RateLimiter
from .scheduler import LoopThreadScheduler, Scheduler
from .transport import TransportFactory, websocket_transport_factory

_LOGGER = logging.getLogger("OverlayNotifier.Engine")


class NotifierEngine:
    """Thread-safe entry point for event sources and settings UIs.

    Public methods may be called from any thread and return immediately;
    the work runs on the engine's scheduler. When no scheduler is supplied
    the engine runs its own asyncio loop on a background thread.
    """

    def __init__(
        self,
        preferences: Optional[Preferences] = None,
        *,
        scheduler: Optional[Scheduler] = None,
        transport_factory: Optional[TransportFactory] = None,
        icon_fetcher: Optional[FetchFn] = None,
        rng: Optional[Callable[[], float]] = None,
    ) -> None:
        self.preferences = preferences if preferences is not None else Preferences()
        self._owns_scheduler = scheduler is None
        self._scheduler: Scheduler = scheduler if scheduler is not None else LoopThreadScheduler()
        if transport_factory is None:
            loop_scheduler = self._scheduler
            transport_factory = websocket_transport_factory(lambda: getattr(loop_scheduler, "loop", None))
        self._icon_fetcher: Optional[FetchFn] = icon_fetcher if icon_fetcher is not None else IconFetcher()
        self.queue = OutboundQueue(self.preferences.max_queue)
        self.connection = ConnectionManager(
            self._scheduler,
            self.preferences,
            transport_factory,
            queue=self.queue,
            rng=rng,
        )
        self.rate_limiter = RateLimiter(self._scheduler, self.preferences.min_interval_ms)
        self.dispatcher = Dispatcher(self.preferences, self.connection, self.rate_limiter)
        self.connection.set_greeting(self.dispatcher.greeting)
        self._lock = threading.Lock()
        self._running = False
        self._fetches_in_flight = 0
        self._fetch_generation = 0

    # Lifecycle -----------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            if self._owns_scheduler:
                self._scheduler.start()  # type: ignore[attr-defined]
            self._running = True
        self._scheduler.call_soon(self._on_started)
        _LOGGER.info("Started.")

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
        if self._owns_scheduler:
            self._stop_owned_scheduler()
        else:
            self._scheduler.call_soon(self._shutdown)
        _LOGGER.info("Stopped.")

    def _stop_owned_scheduler(self) -> None:
        scheduler = self._scheduler
        if getattr(scheduler, "in_loop_thread", lambda: False)():
            self._shutdown()
        else:
            done = threading.Event()

            def _shutdown_then_signal() -> None:
                try:
                    self._shutdown()
                finally:
                    done.set()

            try:
                scheduler.call_soon(_shutdown_then_signal)
            except RuntimeError as exc:
                _LOGGER.debug("Event loop already stopped: %s", exc)
            else:
                if not done.wait(timeout=2.0):
                    _LOGGER.warning("Notifier shutdown did not complete within 2.0s")
        scheduler.stop()  # type: ignore[attr-defined]

    def _on_started(self) -> None:
        self._apply_runtime_settings()
        if self.preferences.auto_connect:
            self.connection.connect()

    def _fetch_finished(self, generation: int) -> bool:
        """Settle one fetch; ``False`` when it was started before the last shutdown."""
        with self._lock:
            if generation != self._fetch_generation:
                return False
            self._fetches_in_flight -= 1
            return True

    def _shutdown(self) -> None:
        # Fetch callbacks from before a stop may never run once the loop is gone.
        with self._lock:
            self._fetch_generation += 1
            self._fetches_in_flight = 0
        self.rate_limiter.reset()
        self.connection.shutdown()

    # Notifications -------------------------------------------------------

    def notify(
        self,
        title: Any,
        body: Any,
        timeout_ms: Optional[float] = None,
        icon_bytes: Optional[bytes] = None,
    ) -> bool:
        """Queue a notification; returns ``False`` when the engine is not running."""
        return self._submit(self.dispatcher.notify, title, body, timeout_ms, icon_bytes)

    def notify_request(self, request: NotificationRequest) -> bool:
        if request.icon_url and request.icon_bytes is None and self._icon_fetcher is not None:
            if not self._running:
                _LOGGER.debug("Engine stopped; dropping notification %r", request.title)
                return False
            fetch = self._icon_fetcher
            with self._lock:
                self._fetches_in_flight += 1
                generation = self._fetch_generation
            timeout = self.preferences.icon_fetch_timeout
            try:
                self._scheduler.run_blocking(
                    lambda: fetch_icon_or_none(fetch, request.icon_url, timeout),
                    lambda icon, _error: self._after_icon_fetch(request, icon, generation),
                )
            except RuntimeError as exc:
                self._fetch_finished(generation)
                _LOGGER.warning("Notification dropped; event loop unavailable: %s", exc)
                return False
            return True
        return self._submit(self.dispatcher.notify_request, request)

    def notify_message(self, message: ChatMessage, self_id: str) -> bool:
        """Notify about a chat message if the category filters allow it."""
        if not should_notify(message, self_id, self.preferences):
            return False
        return self.notify_request(to_request(message, self.preferences))

    def send_test(self) -> bool:
        return self.notify(TEST_TITLE, TEST_BODY, self.preferences.timeout_ms)

    def _after_icon_fetch(self, request: NotificationRequest, icon: Optional[bytes], generation: int) -> None:
        if not self._fetch_finished(generation) or not self._running:
            return
        self.dispatcher.notify(request.title, request.body, request.timeout_ms, icon)

    # Connection ----------------------------------------------------------

    def reconnect(self) -> bool:
        return self._submit(self.connection.reconnect)

    def status(self) -> str:
        return self.connection.status_text()

    def target_url(self) -> str:
        return self.connection.target_url()

    def is_idle(self) -> bool:
        """True when connected with nothing fetching, scheduled or queued."""
        if self._fetches_in_flight:
            return False
        return self.connection.is_connected and self.rate_limiter.pending == 0 and len(self.queue) == 0

    # Settings ------------------------------------------------------------

    def apply_preferences(self, changes: Mapping[str, Any], *, persist: bool = True) -> None:
        """Apply edited settings; connection fields take effect on the next (re)connect."""
        self.preferences.update(changes)
        if persist:
            try:
                self.preferences.save()
            except OSError as exc:
                _LOGGER.warning("Failed to save preferences: %s", exc)
        if self._running:
            self._submit(self._apply_runtime_settings)

    def _apply_runtime_settings(self) -> None:
        self.rate_limiter.min_interval_ms = max(0.0, float(self.preferences.min_interval_ms))
        evicted = self.queue.resize(self.preferences.max_queue)
        if evicted:
            _LOGGER.debug("Queue resized to %d; dropped %d oldest notification(s)", self.queue.capacity, len(evicted))

    def _submit(self, callback: Callable[..., Any], *args: Any) -> bool:
        if not self._running:
            _LOGGER.debug("Engine stopped; ignoring %s", getattr(callback, "__name__", callback))
            return False
        try:
            self._scheduler.call_soon(callback, *args)
        except RuntimeError as exc:
            _LOGGER.warning("Event loop unavailable: %s", exc)
            return False
        return True
