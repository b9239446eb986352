#!/usr/bin/env python3
"""Send a notification to the overlay from the command line."""
from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .dispatch import NotificationRequest
from .engine import NotifierEngine
from .logging_utils import configure_logging
from .preferences import Preferences

DEFAULT_TITLE = "overlay-notify"
DEFAULT_MESSAGE = "Hello from overlay-notify"
_POLL_SECONDS = 0.1
_FLUSH_GRACE_SECONDS = 0.3


def _print_step(message: str) -> None:
    print(f"[overlay-notify] {message}")


def _fail(message: str, *, code: int = 1) -> int:
    print(f"[overlay-notify] ERROR: {message}", file=sys.stderr)
    return code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send a notification to the overlay over its WebSocket API.")
    parser.add_argument("body", nargs="?", default=DEFAULT_MESSAGE, help="Notification text (markdown is stripped)")
    parser.add_argument("--title", default=DEFAULT_TITLE, help="Notification title")
    parser.add_argument("--timeout-ms", type=int, default=None, help="Display time in milliseconds")
    parser.add_argument("--host", help="Overlay host (default from settings)")
    parser.add_argument("--port", type=int, help="Overlay port (default from settings)")
    parser.add_argument("--client", help="Client name sent in the connection URL")
    parser.add_argument("--config-dir", type=Path, help="Directory holding notifier_settings.json")
    parser.add_argument("--icon", type=Path, help="Image file to embed as the icon")
    parser.add_argument("--icon-url", help="Image URL to download and embed as the icon")
    parser.add_argument("--wait", type=float, default=10.0, help="Seconds to wait for delivery before giving up")
    parser.add_argument("--debug", action="store_true", help="Log outbound and inbound frames")
    parser.add_argument("--log-dir", type=Path, help="Write outbound and inbound frames to a rotating log here")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    preferences = Preferences(config_dir=args.config_dir)
    preferences.apply_env_overrides()
    overrides = {"auto_connect": True, "log_debug": bool(args.debug or args.log_dir)}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.client:
        overrides["client_name"] = args.client
    preferences.update(overrides)
    configure_logging(preferences.log_debug, log_dir=args.log_dir)

    icon_bytes = None
    if args.icon is not None:
        try:
            icon_bytes = args.icon.read_bytes()
        except OSError as exc:
            return _fail(f"Unable to read icon {args.icon}: {exc}")

    engine = NotifierEngine(preferences)
    _print_step(f"Target: {engine.target_url()}")
    engine.start()
    try:
        if args.icon_url and icon_bytes is None:
            accepted = engine.notify_request(
                NotificationRequest(title=args.title, body=args.body, timeout_ms=args.timeout_ms, icon_url=args.icon_url)
            )
        else:
            accepted = engine.notify(args.title, args.body, args.timeout_ms, icon_bytes)
        if not accepted:
            return _fail("Notifier engine refused the notification")

        deadline = time.monotonic() + max(0.0, args.wait)
        while time.monotonic() < deadline:
            if engine.is_idle():
                time.sleep(_FLUSH_GRACE_SECONDS)
                _print_step("Notification delivered.")
                return 0
            time.sleep(_POLL_SECONDS)
        return _fail(f"Overlay did not accept the notification within {args.wait:.1f}s (status: {engine.status()})")
    finally:
        engine.stop()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
