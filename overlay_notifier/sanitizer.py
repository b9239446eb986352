"""Convert chat markup into plain text the overlay can display."""
from __future__ import annotations

import re
from typing import Optional

_CUSTOM_EMOJI = re.compile(r"<a?:\w+:\d+>", re.ASCII)
_USER_MENTION = re.compile(r"<@!?\d+>")
_ROLE_MENTION = re.compile(r"<@&\d+>")
_CHANNEL_MENTION = re.compile(r"<#\d+>")
_EMPHASIS = re.compile(r"\*{1,3}([^*]+)\*{1,3}")
_CODE = re.compile(r"`{1,3}([^`]+)`{1,3}")
_STRAY_MARKERS = re.compile(r"[*`]+")
_LINK = re.compile(r"\[(.*?)\]\((.*?)\)")
_ZERO_WIDTH = "\u200b"


def _single_pass(text: str) -> str:
    text = _CUSTOM_EMOJI.sub(" ", text)
    text = _USER_MENTION.sub("@mention", text)
    text = _ROLE_MENTION.sub("@role", text)
    text = _CHANNEL_MENTION.sub("#channel", text)
    text = _EMPHASIS.sub(r"\1", text)
    text = _CODE.sub(r"\1", text)
    text = _STRAY_MARKERS.sub("", text)
    text = _LINK.sub(r"\1", text)
    text = text.replace(_ZERO_WIDTH, "")
    return normalise_lines(text)


def normalise_lines(text: str) -> str:
    """Trim the text and drop every blank line.

    Line endings become ``\\n``, the result never starts or ends with
    whitespace and never contains two newlines in a row.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n").strip()
    lines = [line.rstrip() for line in text.split("\n")]
    return "\n".join(line for line in lines if line.strip())


def sanitize(raw: Optional[str]) -> str:
    """Return ``raw`` with markup removed, or ``""`` for empty input.

    Removing one token can expose another (``<@1*2*>`` becomes ``<@12>``
    once the emphasis is gone), so passes repeat until nothing changes.
    Every pass strictly removes markup characters or whitespace, which
    bounds the loop.
    """
    if not raw:
        return ""
    text = str(raw)
    while True:
        cleaned = _single_pass(text)
        if cleaned == text:
            return cleaned
        text = cleaned
