"""Wrap notification records in the overlay's WebSocket message envelope."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict

from .payload_builder import NotificationRecord
from .preferences import DEFAULT_CLIENT_NAME

OVERLAY_TARGET = "xsoverlay"
SEND_NOTIFICATION = "SendNotification"


@dataclass(frozen=True)
class Envelope:
    sender: str
    payload: str
    target: str = OVERLAY_TARGET
    command: str = SEND_NOTIFICATION

    def to_message(self) -> Dict[str, Any]:
        return {
            "sender": self.sender,
            "target": self.target,
            "command": self.command,
            "jsonData": self.payload,
            "rawData": None,
        }


def encode(record: NotificationRecord, sender: str = DEFAULT_CLIENT_NAME) -> Envelope:
    """Serialise ``record`` into an envelope; purely structural."""
    payload = json.dumps(record.to_wire(), ensure_ascii=False)
    return Envelope(sender=sender or DEFAULT_CLIENT_NAME, payload=payload)


def to_frame(envelope: Envelope) -> str:
    """Text frame written to the socket."""
    return json.dumps(envelope.to_message(), ensure_ascii=False)
