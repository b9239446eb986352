"""Single scheduling context that owns all mutable notifier state.

Every component that mutates engine state runs its callbacks through a
:class:`Scheduler`. Production code uses :class:`LoopThreadScheduler`, an
asyncio event loop on a background thread; tests substitute a manual
clock with the same surface.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Optional, Protocol

from .lifecycle import join_loop_thread

DoneFn = Callable[[Any, Optional[BaseException]], None]

_LOGGER = logging.getLogger("OverlayNotifier.Scheduler")


class Scheduler(Protocol):
    def now(self) -> float:
        """Monotonic time in milliseconds."""

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        """Run ``callback`` on the scheduler; safe to call from any thread."""

    def call_later(self, delay_ms: float, callback: Callable[..., Any], *args: Any) -> object:
        """Run ``callback`` after ``delay_ms``; returns a handle for :meth:`cancel`."""

    def cancel(self, handle: object) -> None:
        ...

    def run_blocking(self, func: Callable[[], Any], on_done: DoneFn) -> None:
        """Run ``func`` off the scheduler, then ``on_done(result, error)`` back on it."""


class LoopThreadScheduler:
    """Runs an asyncio loop on a daemon thread and exposes it as a :class:`Scheduler`."""

    def __init__(self, name: str = "OverlayNotifier-Loop") -> None:
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    @property
    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive() and self._loop and self._loop.is_running())

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._ready.clear()
        self._thread = threading.Thread(target=self._thread_main, name=self._name, daemon=True)
        self._thread.start()
        if not self._ready.wait(timeout=5.0):
            raise RuntimeError("Notifier event loop failed to start in time")

    def stop(self) -> None:
        loop = self._loop
        if loop is not None and loop.is_running():
            loop.call_soon_threadsafe(loop.stop)
        join_loop_thread(self._thread, _LOGGER, timeout=5.0)
        self._thread = None
        self._loop = None

    def in_loop_thread(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread

    # Scheduler surface ---------------------------------------------------

    def now(self) -> float:
        loop = self._require_loop()
        return loop.time() * 1000.0

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        self._require_loop().call_soon_threadsafe(callback, *args)

    def call_later(self, delay_ms: float, callback: Callable[..., Any], *args: Any) -> object:
        loop = self._require_loop()
        return loop.call_later(max(0.0, delay_ms) / 1000.0, callback, *args)

    def cancel(self, handle: object) -> None:
        cancel = getattr(handle, "cancel", None)
        if callable(cancel):
            cancel()

    def run_blocking(self, func: Callable[[], Any], on_done: DoneFn) -> None:
        loop = self._require_loop()

        def _submit() -> None:
            future = loop.run_in_executor(None, func)

            def _finished(fut: "asyncio.Future[Any]") -> None:
                if fut.cancelled():
                    on_done(None, asyncio.CancelledError())
                    return
                error = fut.exception()
                on_done(None if error else fut.result(), error)

            future.add_done_callback(_finished)

        loop.call_soon_threadsafe(_submit)

    # Background thread ---------------------------------------------------

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        loop = self._loop
        if loop is None or loop.is_closed():
            raise RuntimeError("Notifier event loop is not running")
        return loop

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        loop.set_exception_handler(self._handle_loop_exception)
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    @staticmethod
    def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception")
        _LOGGER.warning("Unhandled error on notifier loop: %s", context.get("message"), exc_info=exc)
