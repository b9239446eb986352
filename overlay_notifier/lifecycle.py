"""Teardown bookkeeping for the notifier loop thread and its timers."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional


class PendingTimers:
    """Handles that were scheduled and have neither fired nor been cancelled.

    Lives on the scheduler context, so no locking is needed.
    """

    def __init__(self, cancel: Callable[[Any], None], logger: logging.Logger) -> None:
        self._cancel = cancel
        self._logger = logger
        self._handles: Dict[int, Any] = {}

    def __len__(self) -> int:
        return len(self._handles)

    def add(self, handle: Any) -> None:
        if handle is not None:
            self._handles[id(handle)] = handle

    def discard(self, handle: Any) -> None:
        if handle is not None:
            self._handles.pop(id(handle), None)

    def cancel_all(self) -> int:
        """Cancel and forget every pending handle; returns how many there were."""
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            try:
                self._cancel(handle)
            except Exception as exc:
                self._logger.debug("Failed to cancel timer %r: %s", handle, exc)
        return len(handles)


def join_loop_thread(thread: Optional[threading.Thread], logger: logging.Logger, *, timeout: float = 2.0) -> bool:
    """Join ``thread``; returns ``False`` (after a warning) when it is still alive."""
    if thread is None or thread is threading.current_thread():
        return True
    thread.join(timeout=timeout)
    if thread.is_alive():
        logger.warning("Thread %s did not exit cleanly within %.1fs", thread.name, timeout)
        return False
    return True
