"""
Cancellable recurring callbacks driven by an injectable timer host.

A PeriodicTask re-arms itself only after its callback returns, so a slow
callback delays the next wake instead of piling up overlapping calls.
"""

import threading
from typing import Callable, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class TimerHost(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class ThreadTimerHost:
    """Timer host backed by daemon ``threading.Timer`` instances."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(0.0, delay_s), callback)
        timer.daemon = True
        timer.start()
        return timer


class PeriodicTask:
    def __init__(self, interval_s: float, callback: Callable[[], None],
                 timer_host: Optional[TimerHost] = None, name: str = "task"):
        if interval_s <= 0:
            raise ValueError(f"interval must be positive, got {interval_s}")
        self.interval_s = interval_s
        self.callback = callback
        self.timer_host = timer_host or ThreadTimerHost()
        self.name = name
        self._lock = threading.Lock()
        self._handle: Optional[TimerHandle] = None
        self._generation = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._generation += 1
            self._arm(self._generation)

    def stop(self) -> None:
        """Cancel the pending wake. Safe to call repeatedly and from inside the callback."""
        with self._lock:
            self._running = False
            self._generation += 1
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def _arm(self, generation: int) -> None:
        self._handle = self.timer_host.call_later(self.interval_s, lambda: self._fire(generation))

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or not self._running:
                return
            self._handle = None
        try:
            self.callback()
        finally:
            with self._lock:
                if generation == self._generation and self._running:
                    self._arm(generation)
