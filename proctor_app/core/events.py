"""Synchronous event publisher for timer notifications.

Consumers (attempt session, UI, logging) subscribe and unsubscribe on their
own schedule; the timer engine only ever calls ``emit_*``.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
import logging

from proctor_app.core.models import CountdownKind, TimingMode

logger = logging.getLogger(__name__)


class TimerEvent(Enum):
    TIME_UPDATE = "time_update"
    WARNING = "warning"
    CRITICAL = "critical"
    QUESTION_TIMEOUT = "question_timeout"
    TIME_EXPIRED = "time_expired"


TimeUpdateCallback = Callable[[CountdownKind, int, int | None], None]
ThresholdCallback = Callable[[CountdownKind, int], None]
QuestionTimeoutCallback = Callable[[int], None]
TimeExpiredCallback = Callable[[TimingMode], None]


class TimerEvents:
    """Holds subscriptions per event kind and delivers events in subscription order."""

    def __init__(self) -> None:
        self._subscribers: dict[TimerEvent, list[Callable[..., None]]] = {
            event: [] for event in TimerEvent
        }

    def subscribe(self, event: TimerEvent, callback: Callable[..., None]) -> Callable[[], None]:
        """Register ``callback`` and return a function that removes it again."""
        self._subscribers[event].append(callback)

        def unsubscribe() -> None:
            try:
                self._subscribers[event].remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def on_time_update(self, callback: TimeUpdateCallback) -> Callable[[], None]:
        return self.subscribe(TimerEvent.TIME_UPDATE, callback)

    def on_warning(self, callback: ThresholdCallback) -> Callable[[], None]:
        return self.subscribe(TimerEvent.WARNING, callback)

    def on_critical(self, callback: ThresholdCallback) -> Callable[[], None]:
        return self.subscribe(TimerEvent.CRITICAL, callback)

    def on_question_timeout(self, callback: QuestionTimeoutCallback) -> Callable[[], None]:
        return self.subscribe(TimerEvent.QUESTION_TIMEOUT, callback)

    def on_time_expired(self, callback: TimeExpiredCallback) -> Callable[[], None]:
        return self.subscribe(TimerEvent.TIME_EXPIRED, callback)

    def subscriber_count(self, event: TimerEvent) -> int:
        return len(self._subscribers[event])

    def clear(self) -> None:
        for callbacks in self._subscribers.values():
            callbacks.clear()

    def emit_time_update(self, kind: CountdownKind, remaining: int, question_index: int | None = None) -> None:
        self._emit(TimerEvent.TIME_UPDATE, kind, remaining, question_index)

    def emit_warning(self, kind: CountdownKind, remaining: int) -> None:
        self._emit(TimerEvent.WARNING, kind, remaining)

    def emit_critical(self, kind: CountdownKind, remaining: int) -> None:
        self._emit(TimerEvent.CRITICAL, kind, remaining)

    def emit_question_timeout(self, question_index: int) -> None:
        self._emit(TimerEvent.QUESTION_TIMEOUT, question_index)

    def emit_time_expired(self, mode: TimingMode) -> None:
        self._emit(TimerEvent.TIME_EXPIRED, mode)

    def _emit(self, event: TimerEvent, *args: object) -> None:
        # Copy so a callback may unsubscribe itself while we iterate.
        for callback in list(self._subscribers[event]):
            try:
                callback(*args)
            except Exception:
                logger.exception("Subscriber for %s failed", event.value)
