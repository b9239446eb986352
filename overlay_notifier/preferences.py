"""Preferences management for the overlay notifier."""
from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigInvalid
from .height_estimator import HeightModel

PREFERENCES_FILE = "notifier_settings.json"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 42070
DEFAULT_CLIENT_NAME = "XSOverlayNotifier"
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_MIN_INTERVAL_MS = 800
DEFAULT_FIXED_HEIGHT = 175
DEFAULT_OPACITY = 1.0
DEFAULT_VOLUME = 0.7
DEFAULT_MAX_QUEUE = 200

ENV_HOST = "OVERLAY_NOTIFIER_HOST"
ENV_PORT = "OVERLAY_NOTIFIER_PORT"
ENV_CLIENT_NAME = "OVERLAY_NOTIFIER_CLIENT"

_LOGGER = logging.getLogger("OverlayNotifier.Preferences")


def _coerce_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        token = value.strip().lower()
        if token in {"1", "true", "yes", "on"}:
            return True
        if token in {"0", "false", "no", "off"}:
            return False
        return default
    return bool(value)


def _parse_number(value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigInvalid(f"Expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigInvalid(f"Expected a number, got {value!r}") from exc
    if math.isnan(number) or math.isinf(number):
        raise ConfigInvalid(f"Expected a finite number, got {value!r}")
    return number


def _coerce_int(value: Any, default: int, *, minimum: Optional[int] = None) -> int:
    try:
        number = int(_parse_number(value))
    except ConfigInvalid as exc:
        _LOGGER.debug("Using default %s: %s", default, exc)
        number = default
    if minimum is not None:
        number = max(minimum, number)
    return number


def _coerce_float(value: Any, default: float) -> float:
    try:
        return _parse_number(value)
    except ConfigInvalid as exc:
        _LOGGER.debug("Using default %s: %s", default, exc)
        return default


def _coerce_str(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text if text else default


def clamp_unit(value: Any, default: float) -> float:
    """Clamp ``value`` to ``[0, 1]``; invalid input yields ``default``."""
    number = _coerce_float(value, default)
    return max(0.0, min(1.0, number))


@dataclass
class Preferences:
    """Simple JSON-backed preferences store.

    When ``config_dir`` is ``None`` the preferences live in memory only and
    :meth:`save` is a no-op.
    """

    config_dir: Optional[Path] = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    auto_connect: bool = True
    client_name: str = DEFAULT_CLIENT_NAME

    notify_dms: bool = True
    notify_mentions: bool = True
    notify_guild_messages: bool = False
    include_channel_name: bool = True

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS
    log_debug: bool = True

    volume: float = DEFAULT_VOLUME
    opacity: float = DEFAULT_OPACITY

    auto_height: bool = True
    height: int = DEFAULT_FIXED_HEIGHT
    min_height: int = 140
    max_height: int = 520
    line_height: int = 18
    wrap_chars: int = 38
    base_padding: int = 92

    force_default_sound: bool = True
    avatar_icon: bool = True
    fallback_icon: str = ""
    use_base64_icon: bool = True

    max_queue: int = DEFAULT_MAX_QUEUE
    icon_fetch_timeout: float = 5.0
    _path: Optional[Path] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.config_dir is not None:
            self.config_dir = Path(self.config_dir)
            self._path = self.config_dir / PREFERENCES_FILE
            self._load()

    # Persistence ---------------------------------------------------------

    def _load(self) -> None:
        assert self._path is not None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.warning("Failed to read preferences from %s: %s", self._path, exc)
            return
        if not isinstance(data, dict):
            return
        self.update(data)

    def update(self, data: Mapping[str, Any]) -> None:
        """Apply raw values (as persisted or edited) with per-field coercion."""
        if "host" in data:
            self.host = _coerce_str(data.get("host"), DEFAULT_HOST)
        if "port" in data:
            port = _coerce_int(data.get("port"), DEFAULT_PORT)
            self.port = port if 0 < port < 65536 else DEFAULT_PORT
        if "auto_connect" in data:
            self.auto_connect = _coerce_bool(data.get("auto_connect"), True)
        if "client_name" in data:
            self.client_name = _coerce_str(data.get("client_name"), DEFAULT_CLIENT_NAME)
        for flag in ("notify_dms", "notify_mentions", "include_channel_name"):
            if flag in data:
                setattr(self, flag, _coerce_bool(data.get(flag), True))
        if "notify_guild_messages" in data:
            self.notify_guild_messages = _coerce_bool(data.get("notify_guild_messages"), False)
        if "timeout_ms" in data:
            self.timeout_ms = _coerce_int(data.get("timeout_ms"), DEFAULT_TIMEOUT_MS, minimum=500)
        if "min_interval_ms" in data:
            self.min_interval_ms = _coerce_int(data.get("min_interval_ms"), DEFAULT_MIN_INTERVAL_MS, minimum=0)
        if "log_debug" in data:
            self.log_debug = _coerce_bool(data.get("log_debug"), True)
        if "volume" in data:
            self.volume = clamp_unit(data.get("volume"), DEFAULT_VOLUME)
        if "opacity" in data:
            self.opacity = clamp_unit(data.get("opacity"), DEFAULT_OPACITY)
        if "auto_height" in data:
            self.auto_height = _coerce_bool(data.get("auto_height"), True)
        if "height" in data:
            self.height = _coerce_int(data.get("height"), DEFAULT_FIXED_HEIGHT, minimum=1)
        model = HeightModel.from_values(
            data.get("wrap_chars", self.wrap_chars),
            data.get("line_height", self.line_height),
            data.get("base_padding", self.base_padding),
            data.get("min_height", self.min_height),
            data.get("max_height", self.max_height),
        )
        self.wrap_chars = int(model.wrap_chars)
        self.line_height = int(model.line_height)
        self.base_padding = int(model.base_padding)
        self.min_height = int(model.min_height)
        self.max_height = int(model.max_height)
        for flag in ("force_default_sound", "avatar_icon", "use_base64_icon"):
            if flag in data:
                setattr(self, flag, _coerce_bool(data.get(flag), True))
        if "fallback_icon" in data:
            raw_icon = data.get("fallback_icon")
            self.fallback_icon = str(raw_icon).strip() if raw_icon is not None else ""
        if "max_queue" in data:
            self.max_queue = _coerce_int(data.get("max_queue"), DEFAULT_MAX_QUEUE, minimum=1)
        if "icon_fetch_timeout" in data:
            timeout = _coerce_float(data.get("icon_fetch_timeout"), 5.0)
            self.icon_fetch_timeout = timeout if timeout > 0 else 5.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if item.name not in {"config_dir", "_path"}
        }

    def save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self.as_dict(), indent=2), encoding="utf-8")

    # Derived values ------------------------------------------------------

    def height_model(self) -> HeightModel:
        return HeightModel.from_values(
            self.wrap_chars, self.line_height, self.base_padding, self.min_height, self.max_height
        )

    def apply_env_overrides(self, env: Optional[Mapping[str, str]] = None) -> list[str]:
        """Override connection settings from the environment; returns the applied keys."""
        env = os.environ if env is None else env
        applied: list[str] = []
        if env.get(ENV_HOST):
            self.update({"host": env[ENV_HOST]})
            applied.append(ENV_HOST)
        if env.get(ENV_PORT):
            self.update({"port": env[ENV_PORT]})
            applied.append(ENV_PORT)
        if env.get(ENV_CLIENT_NAME):
            self.update({"client_name": env[ENV_CLIENT_NAME]})
            applied.append(ENV_CLIENT_NAME)
        if applied:
            _LOGGER.debug("Applied env overrides: %s", ", ".join(applied))
        return applied
