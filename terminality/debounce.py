# python
"""
terminality/debounce.py
Trailing-edge debounce used to coalesce bursts of snapshot saves.
"""
from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Optional, Protocol


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


CallLater = Callable[[float, Callable[[], None]], Cancellable]

_NOTHING = object()


def default_call_later(delay: float, callback: Callable[[], None]) -> Cancellable:
    """
    Schedule on the running event loop when there is one, otherwise on a
    daemon timer thread.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(delay, callback)


class Debouncer:
    """
    Holds at most one pending call of `action`. Every schedule() cancels the
    pending timer and starts a new one with the latest payload, so only the
    last payload of a burst is delivered.
    """

    def __init__(
        self,
        delay: float,
        action: Callable[[Any], None],
        call_later: Optional[CallLater] = None,
    ):
        self.delay = float(delay)
        self.action = action
        self._call_later = call_later or default_call_later
        self._handle: Optional[Cancellable] = None
        self._payload: Any = _NOTHING
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        return self._payload is not _NOTHING

    def schedule(self, payload: Any) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._payload = payload
            self._handle = self._call_later(self.delay, self._fire)

    def cancel(self) -> None:
        self.take()

    def take(self) -> Any:
        """
        Cancel the pending timer and hand back its payload (None if idle).
        """
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._handle = None
            payload, self._payload = self._payload, _NOTHING
        return None if payload is _NOTHING else payload

    def flush(self) -> None:
        if not self.pending:
            return
        self.action(self.take())

    def _fire(self) -> None:
        with self._lock:
            self._handle = None
            payload, self._payload = self._payload, _NOTHING
        if payload is not _NOTHING:
            self.action(payload)
