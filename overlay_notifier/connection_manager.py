"""Connection state machine for the overlay WebSocket."""
from __future__ import annotations

import enum
import logging
import random
from typing import Callable, Optional
from urllib.parse import quote

from .envelope import Envelope, to_frame
from .errors import TransportOpenFailed, TransportSendFailed
from .outbound_queue import OutboundQueue
from .preferences import DEFAULT_CLIENT_NAME, DEFAULT_HOST, DEFAULT_PORT, Preferences
from .scheduler import Scheduler
from .transport import EventKind, Transport, TransportEvent, TransportFactory

BACKOFF_FLOOR_MS = 1000.0
BACKOFF_CEILING_MS = 15000.0
RECONNECT_JITTER_MS = 400.0

GreetingFn = Callable[[], Optional[Envelope]]

_LOGGER = logging.getLogger("OverlayNotifier.Connection")
_FRAME_LOGGER = logging.getLogger("OverlayNotifier.Frames")


class ConnectionState(enum.Enum):
    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"


def build_target_url(host: str, port: int, client_name: str) -> str:
    host = (host or DEFAULT_HOST).strip() or DEFAULT_HOST
    try:
        port = int(port) or DEFAULT_PORT
    except (TypeError, ValueError):
        port = DEFAULT_PORT
    client = quote(client_name or DEFAULT_CLIENT_NAME, safe="")
    return f"ws://{host}:{port}/?client={client}"


class ConnectionManager:
    """Owns the transport, the outbound queue and the reconnect backoff.

    All methods must run on the scheduler context. Transport events arrive
    through :meth:`post_event` and are applied in order on that context;
    events from a transport that has since been torn down are ignored.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        preferences: Preferences,
        transport_factory: TransportFactory,
        *,
        queue: Optional[OutboundQueue] = None,
        greeting: Optional[GreetingFn] = None,
        rng: Optional[Callable[[], float]] = None,
        backoff_floor_ms: float = BACKOFF_FLOOR_MS,
        backoff_ceiling_ms: float = BACKOFF_CEILING_MS,
    ) -> None:
        self._scheduler = scheduler
        self._prefs = preferences
        self._factory = transport_factory
        self.queue = queue if queue is not None else OutboundQueue(preferences.max_queue)
        self._greeting = greeting
        self._rng = rng or random.random
        self.backoff_floor_ms = backoff_floor_ms
        self.backoff_ceiling_ms = max(backoff_floor_ms, backoff_ceiling_ms)
        self.backoff_ms = backoff_floor_ms
        self.state = ConnectionState.DISCONNECTED
        self._transport: Optional[Transport] = None
        self._reconnect_handle: Optional[object] = None

    # Queries -------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    def status_text(self) -> str:
        return self.state.value

    def target_url(self) -> str:
        return build_target_url(self._prefs.host, self._prefs.port, self._prefs.client_name)

    def set_greeting(self, greeting: Optional[GreetingFn]) -> None:
        self._greeting = greeting

    # Lifecycle -----------------------------------------------------------

    def connect(self, force: bool = False) -> None:
        if self.state is not ConnectionState.DISCONNECTED and not force:
            return
        if force:
            self.disconnect(silent=True)
        self._cancel_reconnect()

        url = self.target_url()
        self.state = ConnectionState.CONNECTING
        try:
            self._transport = self._factory(url, self.post_event)
        except (TransportOpenFailed, OSError) as exc:
            _LOGGER.warning("Overlay connection failed to open: %s", exc)
            self._transport = None
            self.state = ConnectionState.DISCONNECTED
            self._schedule_reconnect()
            return
        _LOGGER.info("Connecting to overlay: %s", url)

    def reconnect(self) -> None:
        """User-initiated reconnect; bypasses the already-connecting guard."""
        self.connect(force=True)

    def disconnect(self, silent: bool = False) -> None:
        """Tear down the transport without scheduling a reconnect."""
        self._cancel_reconnect()
        self._teardown()
        self.state = ConnectionState.DISCONNECTED
        if not silent:
            _LOGGER.info("Disconnected from overlay.")

    def shutdown(self) -> None:
        self.disconnect(silent=True)
        self.queue.clear()
        self.backoff_ms = self.backoff_floor_ms

    # Sending -------------------------------------------------------------

    def send(self, envelope: Envelope) -> bool:
        """Write ``envelope`` now; returns whether the connection is still usable.

        A failed write loses the envelope. The socket is expected to close
        shortly and its close event drives reconnection.
        """
        transport = self._transport
        if self.state is not ConnectionState.CONNECTED or transport is None:
            return False
        frame = to_frame(envelope)
        if self._prefs.log_debug:
            _FRAME_LOGGER.debug("WS -> %s", frame)
        try:
            transport.send(frame)
        except TransportSendFailed as exc:
            _LOGGER.warning("Send failed: %s", exc)
            return False
        return self.state is ConnectionState.CONNECTED

    def enqueue(self, envelope: Envelope) -> None:
        evicted = self.queue.push(envelope)
        if evicted is not None:
            _LOGGER.debug("Outbound queue full (%d); dropped oldest notification", self.queue.capacity)

    # Transport events ----------------------------------------------------

    def post_event(self, event: TransportEvent) -> None:
        """Event channel from the transport; applied on the scheduler context."""
        self._scheduler.call_soon(self.handle_event, event)

    def handle_event(self, event: TransportEvent) -> None:
        transport = self._transport
        if transport is None or event.transport_id != transport.transport_id:
            _LOGGER.debug("Ignoring %s event from stale transport %s", event.kind.value, event.transport_id)
            return
        if event.kind is EventKind.OPENED:
            self._on_open()
        elif event.kind is EventKind.MESSAGE:
            if self._prefs.log_debug:
                _FRAME_LOGGER.debug("WS <- %s", event.data)
        elif event.kind is EventKind.CLOSED:
            _LOGGER.info("Overlay disconnected.")
            self._teardown()
            self.state = ConnectionState.DISCONNECTED
            self._schedule_reconnect()
        elif event.kind is EventKind.ERROR:
            _LOGGER.warning("Overlay connection error: %s", event.error)
            self._teardown()
            self.state = ConnectionState.DISCONNECTED
            self._schedule_reconnect()

    def _on_open(self) -> None:
        self.state = ConnectionState.CONNECTED
        self.backoff_ms = self.backoff_floor_ms
        _LOGGER.info("Overlay connected.")
        if self._greeting is not None:
            greeting = self._greeting()
            if greeting is not None:
                self.send(greeting)
        if self.is_connected and len(self.queue):
            sent = self.queue.drain_into(self.send)
            _LOGGER.debug("Drained %d queued notification(s); %d remain", sent, len(self.queue))

    # Reconnect -----------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        if not self._prefs.auto_connect:
            return
        if self._reconnect_handle is not None:
            return
        jitter = self._rng() * RECONNECT_JITTER_MS
        wait = self.backoff_ms + jitter
        _LOGGER.info("Reconnecting in %ds...", int(wait // 1000))
        self._reconnect_handle = self._scheduler.call_later(wait, self._on_reconnect_timer)

    def _on_reconnect_timer(self) -> None:
        self._reconnect_handle = None
        self.backoff_ms = min(self.backoff_ms * 2, self.backoff_ceiling_ms)
        self.connect()

    def _cancel_reconnect(self) -> None:
        handle = self._reconnect_handle
        self._reconnect_handle = None
        if handle is not None:
            self._scheduler.cancel(handle)

    def _teardown(self) -> None:
        transport = self._transport
        self._transport = None
        if transport is None:
            return
        try:
            transport.close()
        except Exception as exc:  # pragma: no cover - transport close should not raise
            _LOGGER.debug("Error closing transport: %s", exc)
