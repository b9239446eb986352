"""Bounded FIFO of encoded envelopes awaiting a connection."""
from __future__ import annotations

from collections import deque
from typing import Callable, Deque, List, Optional

from .envelope import Envelope
from .preferences import DEFAULT_MAX_QUEUE

SendFn = Callable[[Envelope], bool]


class OutboundQueue:
    """Drop-oldest queue; ``push`` never blocks and never grows past capacity."""

    def __init__(self, capacity: int = DEFAULT_MAX_QUEUE) -> None:
        self._capacity = max(1, int(capacity))
        self._items: Deque[Envelope] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    def resize(self, capacity: int) -> List[Envelope]:
        """Change capacity, evicting the oldest entries that no longer fit."""
        self._capacity = max(1, int(capacity))
        evicted: List[Envelope] = []
        while len(self._items) > self._capacity:
            evicted.append(self._items.popleft())
        return evicted

    def push(self, envelope: Envelope) -> Optional[Envelope]:
        """Append ``envelope``; returns the evicted head when the queue was full."""
        evicted = None
        if len(self._items) >= self._capacity:
            evicted = self._items.popleft()
        self._items.append(envelope)
        return evicted

    def drain_into(self, send_fn: SendFn) -> int:
        """Send from the head until empty or ``send_fn`` reports the link unusable.

        The envelope handed to a failing ``send_fn`` is consumed; everything
        behind it stays queued in order. Returns the number of envelopes popped.
        """
        popped = 0
        while self._items:
            envelope = self._items.popleft()
            popped += 1
            if not send_fn(envelope):
                break
        return popped

    def clear(self) -> None:
        self._items.clear()

    def snapshot(self) -> List[Envelope]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)
