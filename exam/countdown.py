"""One-second countdown ticker for an active attempt."""
from __future__ import annotations

import threading
from typing import Callable, Optional, Protocol


class CountdownLike(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> bool: ...


class Countdown:
    """Call ``on_tick`` every ``interval`` seconds on a daemon thread until cancelled."""

    def __init__(self, on_tick: Callable[[], None], interval: float = 1.0) -> None:
        self._on_tick = on_tick
        self._interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._cancelled = False

    def start(self) -> None:
        with self._lock:
            if self._thread is not None or self._cancelled:
                return
            self._thread = threading.Thread(target=self._run, name="exam-countdown", daemon=True)
            self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self._on_tick()

    def cancel(self) -> bool:
        """Stop ticking. Returns ``True`` only for the call that actually cancelled."""

        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
        # No join: cancel may run on the ticker thread itself, and a tick that
        # is already in flight is a no-op once the attempt has finished.
        self._stop.set()
        return True

    @property
    def active(self) -> bool:
        return self._thread is not None and not self._cancelled


__all__ = ["Countdown", "CountdownLike"]
