"""Dispatch facade: one notification request in, one rate-limited envelope out."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .connection_manager import ConnectionManager
from .envelope import Envelope, encode
from .payload_builder import IconInput, build
from .preferences import Preferences
from .rate_limiter import RateLimiter
from .sanitizer import sanitize

GREETING_TITLE = "Overlay Notifier"
GREETING_BODY = "Overlay notifications online"
GREETING_TIMEOUT_MS = 2500
GREETING_HEIGHT_SOURCE = "Hello"
TEST_TITLE = "Overlay Notifier"
TEST_BODY = "Test notification"

_LOGGER = logging.getLogger("OverlayNotifier.Dispatch")


@dataclass(frozen=True)
class NotificationRequest:
    title: str
    body: str
    timeout_ms: Optional[float] = None
    icon_bytes: Optional[bytes] = None
    icon_url: Optional[str] = None


class Dispatcher:
    """Builds envelopes and hands them to the rate limiter.

    Runs on the scheduler context. :meth:`notify` never raises: failures
    are logged and the notification is dropped.
    """

    def __init__(self, preferences: Preferences, connection: ConnectionManager, rate_limiter: RateLimiter) -> None:
        self._prefs = preferences
        self._connection = connection
        self._rate_limiter = rate_limiter

    def prepare(self, title: Any, body: Any, timeout_ms: Any = None, icon: IconInput = None) -> Envelope:
        content = sanitize(body)
        record = build(title, content, timeout_ms, icon, content, self._prefs)
        return encode(record, self._prefs.client_name)

    def notify(self, title: Any, body: Any, timeout_ms: Any = None, icon: IconInput = None) -> Optional[float]:
        """Schedule a notification; returns the time it is due, or ``None`` if dropped."""
        try:
            envelope = self.prepare(title, body, timeout_ms, icon)
            return self._rate_limiter.schedule(envelope, on_due=self.deliver)
        except Exception as exc:
            _LOGGER.warning("Dropping notification %r: %s", title, exc, exc_info=exc)
            return None

    def notify_request(self, request: NotificationRequest) -> Optional[float]:
        return self.notify(request.title, request.body, request.timeout_ms, request.icon_bytes)

    def deliver(self, envelope: Envelope) -> None:
        """Send-or-queue decision, taken when the rate-limit delay expires."""
        try:
            self._rate_limiter.mark_sent()
            if self._connection.is_connected:
                self._connection.send(envelope)
            else:
                self._connection.enqueue(envelope)
        except Exception as exc:
            _LOGGER.warning("Failed to deliver notification: %s", exc, exc_info=exc)

    def greeting(self) -> Optional[Envelope]:
        try:
            record = build(
                GREETING_TITLE,
                GREETING_BODY,
                GREETING_TIMEOUT_MS,
                None,
                GREETING_HEIGHT_SOURCE,
                self._prefs,
            )
            return encode(record, self._prefs.client_name)
        except Exception as exc:  # pragma: no cover - build is pure and total
            _LOGGER.warning("Failed to build greeting: %s", exc)
            return None
