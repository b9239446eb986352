"""Deliver chat notifications to a VR overlay over its local WebSocket API."""
from __future__ import annotations

from .connection_manager import ConnectionManager, ConnectionState, build_target_url
from .dispatch import Dispatcher, NotificationRequest
from .engine import NotifierEngine
from .envelope import Envelope, encode
from .errors import (
    AssetFetchFailed,
    ConfigInvalid,
    NotifierError,
    TransportClosed,
    TransportError,
    TransportOpenFailed,
    TransportSendFailed,
)
from .height_estimator import HeightModel, estimate_height
from .outbound_queue import OutboundQueue
from .payload_builder import NotificationRecord, build
from .preferences import Preferences
from .rate_limiter import RateLimiter
from .sanitizer import sanitize
from .version import __version__

__all__ = [
    "AssetFetchFailed",
    "ConfigInvalid",
    "ConnectionManager",
    "ConnectionState",
    "Dispatcher",
    "Envelope",
    "HeightModel",
    "NotificationRecord",
    "NotificationRequest",
    "NotifierEngine",
    "NotifierError",
    "OutboundQueue",
    "Preferences",
    "RateLimiter",
    "TransportClosed",
    "TransportError",
    "TransportOpenFailed",
    "TransportSendFailed",
    "__version__",
    "build",
    "build_target_url",
    "encode",
    "estimate_height",
    "sanitize",
]
