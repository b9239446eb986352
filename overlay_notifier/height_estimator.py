"""Estimate toast height from wrapped line count."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

DEFAULT_WRAP_CHARS = 38
DEFAULT_LINE_HEIGHT = 18
DEFAULT_BASE_PADDING = 92
DEFAULT_MIN_HEIGHT = 140
DEFAULT_MAX_HEIGHT = 520

WRAP_CHARS_FLOOR = 20
LINE_HEIGHT_FLOOR = 12
BASE_PADDING_FLOOR = 60
MIN_HEIGHT_FLOOR = 80


def _coerce_positive(value: Any, default: float) -> float:
    """Return ``value`` as a float, or ``default`` when missing, invalid or not positive."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number) or number <= 0:
        return default
    return number


@dataclass(frozen=True)
class HeightModel:
    wrap_chars: float = DEFAULT_WRAP_CHARS
    line_height: float = DEFAULT_LINE_HEIGHT
    base_padding: float = DEFAULT_BASE_PADDING
    min_height: float = DEFAULT_MIN_HEIGHT
    max_height: float = DEFAULT_MAX_HEIGHT

    @classmethod
    def from_values(
        cls,
        wrap_chars: Any = None,
        line_height: Any = None,
        base_padding: Any = None,
        min_height: Any = None,
        max_height: Any = None,
    ) -> "HeightModel":
        """Build a model with every input coerced to a sane floor."""
        wrap = max(WRAP_CHARS_FLOOR, _coerce_positive(wrap_chars, DEFAULT_WRAP_CHARS))
        line = max(LINE_HEIGHT_FLOOR, _coerce_positive(line_height, DEFAULT_LINE_HEIGHT))
        padding = max(BASE_PADDING_FLOOR, _coerce_positive(base_padding, DEFAULT_BASE_PADDING))
        low = max(MIN_HEIGHT_FLOOR, _coerce_positive(min_height, DEFAULT_MIN_HEIGHT))
        high = max(low, _coerce_positive(max_height, DEFAULT_MAX_HEIGHT))
        return cls(wrap_chars=wrap, line_height=line, base_padding=padding, min_height=low, max_height=high)

    @classmethod
    def from_mapping(cls, cfg: Optional[Mapping[str, Any]]) -> "HeightModel":
        cfg = cfg or {}
        return cls.from_values(
            wrap_chars=cfg.get("wrap_chars"),
            line_height=cfg.get("line_height"),
            base_padding=cfg.get("base_padding"),
            min_height=cfg.get("min_height"),
            max_height=cfg.get("max_height"),
        )


def count_visual_lines(text: str, wrap_chars: float) -> int:
    total = 0
    for line in (text or "").split("\n"):
        total += max(1, math.ceil(len(line) / wrap_chars))
    return total


def estimate_height(text: Optional[str], cfg: Any = None) -> int:
    """Return the display height in pixels for ``text``.

    ``cfg`` may be a :class:`HeightModel`, a mapping of the model's field
    names, or ``None`` for the defaults. Raw values are always re-coerced
    so a malformed configuration cannot invert the clamp range.
    """
    if isinstance(cfg, HeightModel):
        model = HeightModel.from_values(
            cfg.wrap_chars, cfg.line_height, cfg.base_padding, cfg.min_height, cfg.max_height
        )
    else:
        model = HeightModel.from_mapping(cfg)
    lines = count_visual_lines(text or "", model.wrap_chars)
    total = math.floor(model.base_padding + lines * model.line_height + 0.5)
    return int(max(model.min_height, min(model.max_height, total)))
