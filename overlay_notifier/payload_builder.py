"""Build display-ready notification records."""
from __future__ import annotations

import base64
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .height_estimator import estimate_height
from .preferences import (
    DEFAULT_CLIENT_NAME,
    DEFAULT_FIXED_HEIGHT,
    DEFAULT_OPACITY,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_VOLUME,
    Preferences,
    clamp_unit,
)
from .sanitizer import normalise_lines

MAX_TITLE_CHARS = 128
MAX_CONTENT_CHARS = 1024
MIN_TIMEOUT_SECONDS = 0.5
DEFAULT_TITLE = "Notification"
EMPTY_CONTENT_PLACEHOLDER = "(no text)"
DEFAULT_AUDIO = "default"
NOTIFICATION_TYPE = 1

_DATA_URI_PREFIX = re.compile(r"^data:image/\w+;base64,")

IconInput = Union[bytes, bytearray, memoryview, str, None]


@dataclass(frozen=True)
class NotificationRecord:
    title: str
    content: str
    timeout_seconds: float
    height: int
    opacity: float
    volume: float
    audio_selector: str
    use_embedded_icon: bool
    icon_data: str
    source_label: str

    def to_wire(self) -> Dict[str, Any]:
        """Field names and constants the overlay's notification API expects."""
        return {
            "type": NOTIFICATION_TYPE,
            "index": 0,
            "timeout": self.timeout_seconds,
            "height": self.height,
            "opacity": self.opacity,
            "volume": self.volume,
            "audioPath": self.audio_selector,
            "title": self.title,
            "content": self.content,
            "useBase64Icon": self.use_embedded_icon,
            "icon": self.icon_data,
            "sourceApp": self.source_label,
        }


def cap(text: Any, limit: int) -> str:
    value = "" if text is None else str(text)
    return value[:limit] if len(value) > limit else value


def timeout_seconds(timeout_ms: Any, default_ms: Any = DEFAULT_TIMEOUT_MS) -> float:
    """Convert a millisecond hint to seconds, never below half a second."""
    for candidate in (timeout_ms, default_ms, DEFAULT_TIMEOUT_MS):
        if isinstance(candidate, bool):
            continue
        try:
            value = float(candidate)
        except (TypeError, ValueError):
            continue
        if math.isfinite(value) and value > 0:
            return max(MIN_TIMEOUT_SECONDS, value / 1000.0)
    return DEFAULT_TIMEOUT_MS / 1000.0


def resolve_icon(icon: IconInput, prefs: Preferences) -> tuple[bool, str]:
    """Return ``(embedded, icon_data)`` for the wire payload.

    Caller-supplied bytes are base64 encoded; a caller string is taken as
    already encoded. Without a caller icon the configured fallback is used
    (keyword, path or data URI) and is only embedded when it is a base64
    image data URI and base64 icons are enabled.
    """
    if isinstance(icon, (bytes, bytearray, memoryview)):
        raw = bytes(icon)
        if raw:
            return True, base64.b64encode(raw).decode("ascii")
    elif isinstance(icon, str) and icon:
        return True, _DATA_URI_PREFIX.sub("", icon)

    fallback = prefs.fallback_icon or ""
    if prefs.use_base64_icon and _DATA_URI_PREFIX.match(fallback):
        return True, _DATA_URI_PREFIX.sub("", fallback)
    return False, fallback


def _resolve_height(height_source_text: str, prefs: Preferences) -> int:
    if prefs.auto_height:
        return estimate_height(height_source_text, prefs.height_model())
    try:
        fixed = int(prefs.height)
    except (TypeError, ValueError):
        fixed = 0
    return fixed if fixed > 0 else DEFAULT_FIXED_HEIGHT


def build(
    title: Any,
    content: Any,
    timeout_ms: Any,
    icon: IconInput,
    height_source_text: Optional[str],
    prefs: Preferences,
) -> NotificationRecord:
    """Compose a record from already sanitized content.

    Pure function of its inputs and the preferences snapshot.
    """
    title_text = cap(title, MAX_TITLE_CHARS) or DEFAULT_TITLE
    # The cut can land just after a newline.
    content_text = normalise_lines(cap(content, MAX_CONTENT_CHARS)) or EMPTY_CONTENT_PLACEHOLDER
    embedded, icon_data = resolve_icon(icon, prefs)
    height_source = height_source_text if height_source_text else content_text
    return NotificationRecord(
        title=title_text,
        content=content_text,
        timeout_seconds=timeout_seconds(timeout_ms, prefs.timeout_ms),
        height=_resolve_height(height_source, prefs),
        opacity=clamp_unit(prefs.opacity, DEFAULT_OPACITY),
        volume=clamp_unit(prefs.volume, DEFAULT_VOLUME),
        audio_selector=DEFAULT_AUDIO if prefs.force_default_sound else "",
        use_embedded_icon=embedded,
        icon_data=icon_data,
        source_label=prefs.client_name or DEFAULT_CLIENT_NAME,
    )
