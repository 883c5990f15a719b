"""Countdown engine for total-quiz and per-question timing."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import logging
import math

from proctor_app.constants.timing_constants import (
    CRITICAL_THRESHOLD_PERCENT,
    DEFAULT_TIME_LIMIT_SECONDS,
    WARNING_THRESHOLD_PERCENT,
)
from proctor_app.core.clock import ClockSource
from proctor_app.core.errors import ConfigurationError
from proctor_app.core.events import TimerEvents
from proctor_app.core.models import CountdownKind, Question, TimerState, TimingMode, is_valid_seconds

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Countdown:
    """The single active countdown; replaced, never duplicated."""

    kind: CountdownKind
    length_seconds: int
    remaining: int
    question_index: int | None = None
    warning_fired: bool = False
    critical_fired: bool = False


class TimerEngine:
    """Owns one countdown at a time and publishes its events.

    In total mode the countdown spans the whole attempt. In per-question mode
    each question gets its own countdown; when one reaches zero the engine
    announces the timeout and starts the next question at its full limit.
    """

    def __init__(
        self,
        mode: TimingMode | str,
        clock: ClockSource,
        *,
        duration_seconds: float | None = None,
        questions: Sequence[Question] | None = None,
        events: TimerEvents | None = None,
        warning_threshold: float = WARNING_THRESHOLD_PERCENT,
        critical_threshold: float = CRITICAL_THRESHOLD_PERCENT,
    ) -> None:
        try:
            self._mode = TimingMode(mode)
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid timing mode: {mode!r}. Must be 'total' or 'per-question'."
            ) from exc

        self._duration_seconds: int | None = None
        self._time_limits: list[int] = []
        if self._mode is TimingMode.TOTAL:
            if not is_valid_seconds(duration_seconds) or duration_seconds <= 0:
                raise ConfigurationError("Total mode requires a positive quiz duration.")
            self._duration_seconds = int(duration_seconds)
        else:
            if not questions:
                raise ConfigurationError("Per-question mode requires a non-empty question list.")
            self._time_limits = [
                question.time_limit_seconds or DEFAULT_TIME_LIMIT_SECONDS for question in questions
            ]

        if not 0 < critical_threshold < warning_threshold <= 100:
            raise ConfigurationError("Thresholds must satisfy 0 < critical < warning <= 100.")

        self._clock = clock
        self._events = events or TimerEvents()
        self._warning_threshold = warning_threshold
        self._critical_threshold = critical_threshold

        self._countdown: _Countdown | None = None
        self._running: bool = False
        self._paused: bool = False
        # Bumped whenever the clock is (re)attached so late ticks from a
        # previous attachment are ignored.
        self._generation: int = 0

    @property
    def events(self) -> TimerEvents:
        return self._events

    @property
    def mode(self) -> TimingMode:
        return self._mode

    # --- Lifecycle ---

    def start(
        self,
        remaining_seconds: float | None = None,
        question_index: int = 0,
        question_remaining: float | None = None,
    ) -> None:
        """Start counting down.

        Args:
            remaining_seconds: Total mode only; defaults to the full duration.
            question_index: Per-question mode only; question to start on.
            question_remaining: Per-question mode only; remaining time for that
                question when resuming, otherwise its full limit is used.
        """
        if self._running:
            logger.info("Timer already running, ignoring start")
            return

        if self._mode is TimingMode.TOTAL:
            if remaining_seconds is None:
                remaining_seconds = self._duration_seconds
            if not is_valid_seconds(remaining_seconds):
                raise ValueError(f"Invalid remaining time for total mode: {remaining_seconds!r}")
            self._countdown = _Countdown(
                kind=CountdownKind.TOTAL,
                length_seconds=self._duration_seconds,
                remaining=min(int(remaining_seconds), self._duration_seconds),
            )
        else:
            self._check_question_index(question_index)
            self._countdown = self._build_question_countdown(question_index, question_remaining)

        self._running = True
        self._paused = False
        self._attach_clock()
        logger.info(
            "Started %s timer with %ss remaining",
            self._mode.value,
            self._countdown.remaining,
        )

    def switch_to_question(self, index: int, remaining_override: float | None = None) -> None:
        """Replace the active countdown with one scoped to question ``index``."""
        if self._mode is not TimingMode.PER_QUESTION:
            logger.debug("switch_to_question ignored in %s mode", self._mode.value)
            return
        self._check_question_index(index)
        if not self._running:
            self.start(question_index=index, question_remaining=remaining_override)
            return
        self._countdown = self._build_question_countdown(index, remaining_override)
        logger.info(
            "Switched to question %s with %ss remaining",
            index,
            self._countdown.remaining,
        )

    def pause(self) -> None:
        if not self._running or self._paused:
            return
        self._paused = True
        self._generation += 1
        self._clock.stop()
        logger.info("Timer paused after %ss elapsed", self.get_elapsed_seconds())

    def resume(self) -> None:
        if not self._running or not self._paused:
            return
        self._paused = False
        self._attach_clock()
        logger.info("Timer resumed with %ss remaining", self.get_remaining_seconds())

    def stop(self) -> None:
        """Stop counting; safe to call any number of times."""
        was_running = self._running
        self._running = False
        self._paused = False
        self._countdown = None
        self._generation += 1
        self._clock.stop()
        if was_running:
            logger.info("Timer stopped")

    # --- Queries ---

    def is_running(self) -> bool:
        return self._running

    def is_paused(self) -> bool:
        return self._paused

    def get_remaining_seconds(self) -> int:
        return self._countdown.remaining if self._countdown else 0

    def get_elapsed_seconds(self) -> int:
        if self._countdown is None:
            return 0
        return self._countdown.length_seconds - self._countdown.remaining

    def get_current_question_index(self) -> int | None:
        return self._countdown.question_index if self._countdown else None

    def get_active_countdowns(self) -> int:
        return 1 if self._running and self._countdown is not None else 0

    def get_state(self) -> TimerState:
        countdown = self._countdown
        return TimerState(
            mode=self._mode,
            remaining_seconds=countdown.remaining if countdown else 0,
            current_question_index=countdown.question_index if countdown else None,
            warning_fired=countdown.warning_fired if countdown else False,
            critical_fired=countdown.critical_fired if countdown else False,
            running=self._running,
            paused=self._paused,
        )

    # --- Internals ---

    def _attach_clock(self) -> None:
        self._generation += 1
        generation = self._generation
        self._clock.start(lambda: self._handle_tick(generation))

    def _check_question_index(self, index: int) -> None:
        if self._mode is not TimingMode.PER_QUESTION:
            raise ValueError("Question indexes only apply to per-question mode.")
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._time_limits):
            raise IndexError(f"Question index {index} out of range")

    def _build_question_countdown(self, index: int, remaining: float | None) -> _Countdown:
        limit = self._time_limits[index]
        if remaining is None:
            start_at = limit
        elif is_valid_seconds(remaining):
            start_at = min(int(math.floor(remaining)), limit)
        else:
            logger.warning(
                "Ignoring invalid remaining time %r for question %s; using full limit",
                remaining,
                index,
            )
            start_at = limit
        return _Countdown(
            kind=CountdownKind.QUESTION,
            length_seconds=limit,
            remaining=start_at,
            question_index=index,
        )

    def _handle_tick(self, generation: int) -> None:
        if generation != self._generation or not self._running or self._paused:
            return
        countdown = self._countdown
        if countdown is None:
            return

        countdown.remaining = max(0, countdown.remaining - 1)
        self._check_thresholds(countdown)
        self._events.emit_time_update(countdown.kind, countdown.remaining, countdown.question_index)

        # A subscriber may have switched or stopped the countdown meanwhile.
        if countdown is not self._countdown or countdown.remaining > 0:
            return

        if self._mode is TimingMode.TOTAL:
            logger.info("Total time expired")
            self.stop()
            self._events.emit_time_expired(TimingMode.TOTAL)
        else:
            self._handle_question_expiry(countdown.question_index)

    def _handle_question_expiry(self, index: int) -> None:
        logger.info("Question %s timed out", index)
        self._countdown = None
        self._events.emit_question_timeout(index)

        if not self._running or self._countdown is not None:
            return

        next_index = index + 1
        if next_index < len(self._time_limits):
            self._countdown = self._build_question_countdown(next_index, None)
            logger.info("Auto-advanced timer to question %s", next_index)
            return

        logger.info("Last question timed out; per-question attempt expired")
        self.stop()
        self._events.emit_time_expired(TimingMode.PER_QUESTION)

    def _check_thresholds(self, countdown: _Countdown) -> None:
        if countdown.length_seconds <= 0:
            return
        percent_remaining = countdown.remaining / countdown.length_seconds * 100

        if percent_remaining < self._critical_threshold:
            if not countdown.critical_fired:
                countdown.critical_fired = True
                logger.info("Critical for %s timer: %ss remaining", countdown.kind.value, countdown.remaining)
                self._events.emit_critical(countdown.kind, countdown.remaining)
        elif percent_remaining < self._warning_threshold and not countdown.warning_fired:
            countdown.warning_fired = True
            logger.info("Warning for %s timer: %ss remaining", countdown.kind.value, countdown.remaining)
            self._events.emit_warning(countdown.kind, countdown.remaining)
