"""WebSocket transport that owns the socket on the notifier loop.

The transport never touches engine state. It reports lifecycle
transitions through a :class:`TransportEvent` sink, which the connection
manager consumes on the same loop.
"""
from __future__ import annotations

import asyncio
import enum
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol
from urllib.parse import urlsplit

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import TransportClosed, TransportError, TransportOpenFailed, TransportSendFailed

_LOGGER = logging.getLogger("OverlayNotifier.Transport")
_OPEN_TIMEOUT_SECONDS = 5.0
_IDS = itertools.count(1)


class EventKind(enum.Enum):
    OPENED = "opened"
    MESSAGE = "message"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class TransportEvent:
    kind: EventKind
    transport_id: int
    data: Any = None
    error: Optional[BaseException] = None


EventSink = Callable[[TransportEvent], None]


class Transport(Protocol):
    transport_id: int

    def send(self, frame: str) -> None:
        """Queue ``frame`` for writing; raises :class:`TransportSendFailed` when not open."""

    def close(self) -> None:
        ...


TransportFactory = Callable[[str, EventSink], Transport]


def validate_url(url: str) -> None:
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as exc:
        raise TransportOpenFailed(f"Invalid overlay URL {url!r}: {exc}") from exc
    if parts.scheme not in {"ws", "wss"} or not parts.hostname:
        raise TransportOpenFailed(f"Invalid overlay URL {url!r}")
    if port is not None and not 0 < port < 65536:
        raise TransportOpenFailed(f"Invalid overlay port in {url!r}")


class WebSocketTransport:
    """One connection attempt; a new instance is created per (re)connect."""

    def __init__(self, loop: asyncio.AbstractEventLoop, url: str, sink: EventSink) -> None:
        validate_url(url)
        if loop.is_closed():
            raise TransportOpenFailed("Notifier event loop is closed")
        self.transport_id = next(_IDS)
        self._loop = loop
        self._url = url
        self._sink = sink
        self._outgoing: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._open = False
        self._closing = False
        try:
            self._task = loop.create_task(self._run(), name=f"OverlayNotifier-WS-{self.transport_id}")
        except RuntimeError as exc:
            raise TransportOpenFailed(f"Unable to start connection task: {exc}") from exc

    @property
    def is_open(self) -> bool:
        return self._open and not self._closing

    def send(self, frame: str) -> None:
        if not self.is_open:
            raise TransportSendFailed("WebSocket is not open")
        self._outgoing.put_nowait(frame)

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        self._open = False
        self._outgoing.put_nowait(None)
        if not self._task.done():
            self._task.cancel()

    # Connection task -----------------------------------------------------

    def _emit(self, kind: EventKind, data: Any = None, error: Optional[BaseException] = None) -> None:
        if self._closing:
            return
        self._sink(TransportEvent(kind=kind, transport_id=self.transport_id, data=data, error=error))

    async def _run(self) -> None:
        try:
            async with websockets.connect(self._url, open_timeout=_OPEN_TIMEOUT_SECONDS) as ws:
                self._open = True
                self._emit(EventKind.OPENED)
                writer = asyncio.create_task(self._flush_outgoing(ws))
                try:
                    async for message in ws:
                        self._emit(EventKind.MESSAGE, data=message)
                finally:
                    self._open = False
                    writer.cancel()
                    await asyncio.gather(writer, return_exceptions=True)
            self._emit(EventKind.CLOSED, error=TransportClosed("Overlay closed the connection"))
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as exc:
            self._emit(EventKind.CLOSED, error=TransportClosed(str(exc)))
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            self._emit(EventKind.ERROR, error=TransportError(f"{type(exc).__name__}: {exc}"))
        finally:
            self._open = False

    async def _flush_outgoing(self, ws: Any) -> None:
        while True:
            frame = await self._outgoing.get()
            if frame is None:
                break
            try:
                await ws.send(frame)
            except (ConnectionClosed, OSError) as exc:
                # The socket is about to close; its own close event drives reconnection.
                _LOGGER.warning("Send failed: %s", TransportSendFailed(str(exc)))
                break


def websocket_transport_factory(loop_source: Callable[[], Optional[asyncio.AbstractEventLoop]]) -> TransportFactory:
    """Factory bound to the loop returned by ``loop_source`` at connect time."""

    def _factory(url: str, sink: EventSink) -> Transport:
        loop = loop_source()
        if loop is None:
            raise TransportOpenFailed("Notifier event loop is not running")
        return WebSocketTransport(loop, url, sink)

    return _factory
