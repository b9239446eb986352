from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "OverlayNotifier"
FRAME_LOGGER_NAME = f"{LOGGER_NAME}.Frames"
FRAME_LOG_FILENAME = "notifier-frames.log"
LOG_TAG = "OverlayNotifier"

_IMPORTANT = re.compile(r"Loaded|Started|Stopped|Connecting|connected|disconnected|Reconnecting|failed", re.IGNORECASE)


class _LifecycleFilter(logging.Filter):
    """Always pass connection lifecycle messages, even when debug chatter is off."""

    def __init__(self, debug_enabled: bool) -> None:
        super().__init__()
        self.debug_enabled = debug_enabled

    def filter(self, record: logging.LogRecord) -> bool:
        if self.debug_enabled or record.levelno >= logging.WARNING:
            return True
        return bool(_IMPORTANT.search(record.getMessage()))


def attach_frame_log(log_dir: Path, *, retention: int = 5, max_bytes: int = 512 * 1024) -> logging.Handler:
    """Write raw ``WS ->``/``WS <-`` frames to a rotating file in ``log_dir``.

    ``retention`` counts the live file, so ``retention=3`` keeps two backups.
    Frames then go only to the file. Calling again returns the existing handler.
    """
    frame_logger = logging.getLogger(FRAME_LOGGER_NAME)
    for existing in frame_logger.handlers:
        if getattr(existing, "_notifier_frames", False):
            return existing
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / FRAME_LOG_FILENAME,
        maxBytes=max_bytes,
        backupCount=max(1, retention) - 1,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(message)s"))
    handler.setLevel(logging.DEBUG)
    handler._notifier_frames = True  # type: ignore[attr-defined]
    frame_logger.addHandler(handler)
    frame_logger.setLevel(logging.DEBUG)
    frame_logger.propagate = False
    return handler


def configure_logging(
    debug: bool,
    *,
    log_dir: Optional[Path] = None,
    retention: int = 5,
    max_bytes: int = 512 * 1024,
) -> logging.Logger:
    """Attach the notifier's console handler (idempotent) and optional frame log."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    handler = next((h for h in logger.handlers if getattr(h, "_notifier_handler", False)), None)
    if handler is None:
        handler = logging.StreamHandler()
        handler._notifier_handler = True  # type: ignore[attr-defined]
        handler.setFormatter(logging.Formatter(f"[%(asctime)s] [{LOG_TAG}] %(message)s", "%H:%M:%S"))
        logger.addHandler(handler)
    for existing in list(handler.filters):
        if isinstance(existing, _LifecycleFilter):
            handler.removeFilter(existing)
    handler.addFilter(_LifecycleFilter(debug))
    logger.propagate = False

    if log_dir is not None:
        attach_frame_log(log_dir, retention=retention, max_bytes=max_bytes)
    return logger
