"""Tick sources that drive the timer engine at a fixed interval.

The engine never reads wall-clock time while counting down; it only reacts to
ticks. Swapping the tick source is what makes timing logic testable
(``ManualClock``), runnable behind the API server (``ThreadedClockSource``)
and runnable on the Qt event loop (``QtClockSource``).
"""

from __future__ import annotations

from collections.abc import Callable
import logging
from threading import Event, Lock, Thread
from typing import Protocol

from PySide6.QtCore import QObject, QTimer

from proctor_app.constants.timing_constants import TICK_INTERVAL_MS

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class ClockSource(Protocol):
    """Minimal interface the timer engine needs from a tick provider."""

    def start(self, on_tick: TickCallback) -> None: ...

    def stop(self) -> None: ...

    def is_active(self) -> bool: ...


class ManualClock:
    """Clock that only ticks when told to."""

    def __init__(self) -> None:
        self._on_tick: TickCallback | None = None
        self._ticks_delivered: int = 0

    def start(self, on_tick: TickCallback) -> None:
        self._on_tick = on_tick

    def stop(self) -> None:
        self._on_tick = None

    def is_active(self) -> bool:
        return self._on_tick is not None

    def get_ticks_delivered(self) -> int:
        return self._ticks_delivered

    def advance(self, seconds: int = 1) -> None:
        """Deliver one tick per second; stops early if the listener stops the clock."""
        for _ in range(seconds):
            callback = self._on_tick
            if callback is None:
                return
            self._ticks_delivered += 1
            callback()


class ThreadedClockSource:
    """Ticks from a daemon thread; the consumer serialises its own state."""

    def __init__(self, interval_ms: int = TICK_INTERVAL_MS, name: str = "AttemptClock") -> None:
        if interval_ms <= 0:
            raise ValueError("Tick interval must be positive.")
        self._interval = interval_ms / 1000
        self._name = name
        self._lock = Lock()
        self._thread: Thread | None = None
        self._stop_event: Event | None = None

    def start(self, on_tick: TickCallback) -> None:
        with self._lock:
            self._stop_locked()
            stop_event = Event()
            thread = Thread(
                target=self._run,
                args=(on_tick, stop_event),
                name=self._name,
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()

    def stop(self) -> None:
        with self._lock:
            self._stop_locked()

    def is_active(self) -> bool:
        with self._lock:
            return self._stop_event is not None and not self._stop_event.is_set()

    def _stop_locked(self) -> None:
        if self._stop_event is None:
            return
        # The worker exits on its own; joining here could deadlock with a tick
        # that is waiting on the consumer's lock.
        self._stop_event.set()
        self._stop_event = None
        self._thread = None

    def _run(self, on_tick: TickCallback, stop_event: Event) -> None:
        while not stop_event.wait(self._interval):
            try:
                on_tick()
            except Exception:
                logger.exception("Tick callback failed on %s", self._name)


class QtClockSource:
    """Ticks on the Qt event loop via a QTimer owned by ``parent``."""

    def __init__(self, parent: QObject | None = None, interval_ms: int = TICK_INTERVAL_MS) -> None:
        self._timer = QTimer(parent)
        self._timer.setInterval(interval_ms)
        self._on_tick: TickCallback | None = None
        self._timer.timeout.connect(self._handle_timeout)

    def start(self, on_tick: TickCallback) -> None:
        self._on_tick = on_tick
        self._timer.start()

    def stop(self) -> None:
        self._on_tick = None
        if self._timer.isActive():
            self._timer.stop()

    def is_active(self) -> bool:
        return self._timer.isActive()

    def _handle_timeout(self) -> None:
        if self._on_tick is not None:
            self._on_tick()
