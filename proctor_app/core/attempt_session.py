"""One quiz attempt: timer, answer ledger, navigation and scoring wired together."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
import logging
from threading import RLock
from typing import Protocol

from proctor_app.constants.timing_constants import TIMING_SAVE_INTERVAL_SECONDS
from proctor_app.core.clock import ClockSource
from proctor_app.core.errors import AttemptStateError
from proctor_app.core.events import TimerEvents
from proctor_app.core.models import (
    AnswerLedgerEntry,
    AttemptSnapshot,
    AttemptStatus,
    CountdownKind,
    FormattedAnswer,
    FreeTextResponse,
    Question,
    QuizDefinition,
    Response,
    SnapshotAnswer,
    SubmissionPayload,
    TimerState,
    TimingMode,
)
from proctor_app.core.quiz_loader import format_answer
from proctor_app.core.services.answer_ledger import AnswerLedger
from proctor_app.core.services.navigation import NavigationController, NavigationResult
from proctor_app.core.services.resume_reconciler import ResumeReconciler
from proctor_app.core.services.scoring import AttemptResult, ScoringEngine, ScoringPolicy
from proctor_app.core.services.timer_engine import TimerEngine

logger = logging.getLogger(__name__)


class PersistenceSink(Protocol):
    def save_answers(self, attempt_id: str, answers: list[FormattedAnswer]) -> None: ...

    def save_question_timing(self, attempt_id: str, question_id: str, remaining_seconds: int) -> None: ...


class SubmissionSink(Protocol):
    def submit(self, attempt_id: str, payload: SubmissionPayload) -> None: ...


class _SerializedClock:
    """Delivers ticks under the session lock so they never interleave with user actions."""

    def __init__(self, clock: ClockSource, lock: RLock) -> None:
        self._clock = clock
        self._lock = lock

    def start(self, on_tick: Callable[[], None]) -> None:
        def locked_tick() -> None:
            with self._lock:
                on_tick()

        self._clock.start(locked_tick)

    def stop(self) -> None:
        self._clock.stop()

    def is_active(self) -> bool:
        return self._clock.is_active()


class AttemptSession:
    """Facade for a single attempt, shared between UI, API and the clock thread."""

    def __init__(
        self,
        attempt_id: str,
        quiz: QuizDefinition,
        clock: ClockSource,
        *,
        persistence: PersistenceSink | None = None,
        submission: SubmissionSink | None = None,
        scoring_policy: ScoringPolicy | None = None,
        events: TimerEvents | None = None,
    ) -> None:
        self._lock = RLock()
        self._attempt_id = attempt_id
        self._quiz = quiz
        self._persistence = persistence
        self._submission = submission
        self._scoring = ScoringEngine(scoring_policy)

        self._events = events or TimerEvents()
        self._engine = TimerEngine(
            quiz.timing_mode,
            _SerializedClock(clock, self._lock),
            duration_seconds=quiz.duration_seconds,
            questions=quiz.questions,
            events=self._events,
        )
        self._ledger = AnswerLedger(quiz.questions)
        self._navigation = NavigationController(quiz.questions, self._ledger)

        self._status = AttemptStatus.NOT_STARTED
        self._start_time: datetime | None = None
        self._stored_question_remaining: dict[str, float] = {}
        self._ticks_since_save = 0
        self._result: AttemptResult | None = None
        self._payload: SubmissionPayload | None = None
        self._closed = False

        self._unsubscribers = [
            self._events.on_time_update(self._handle_time_update),
            self._events.on_question_timeout(self._handle_question_timeout),
            self._events.on_time_expired(self._handle_time_expired),
        ]

    @property
    def events(self) -> TimerEvents:
        return self._events

    # --- Lifecycle ---

    def start(self, now: datetime | None = None) -> None:
        with self._lock:
            self._require_status(AttemptStatus.NOT_STARTED)
            self._start_time = now or datetime.now(timezone.utc)
            self._status = AttemptStatus.IN_PROGRESS
            self._engine.start()
            logger.info("Attempt %s started (%s mode)", self._attempt_id, self._quiz.timing_mode.value)

    def resume(self, snapshot: AttemptSnapshot, now: datetime | None = None) -> None:
        """Continue a persisted attempt exactly where it left off."""
        with self._lock:
            self._require_status(AttemptStatus.NOT_STARTED)
            if snapshot.status != AttemptStatus.IN_PROGRESS.value:
                raise AttemptStateError(f"Cannot resume an attempt with status {snapshot.status!r}")

            now = now or datetime.now(timezone.utc)
            reconciled = ResumeReconciler().reconcile(snapshot, self._quiz, now)
            self._ledger = reconciled.ledger
            self._navigation = NavigationController(self._quiz.questions, self._ledger)
            self._stored_question_remaining = dict(snapshot.question_time_remaining)
            self._start_time = snapshot.start_time or now
            self._status = AttemptStatus.IN_PROGRESS

            if reconciled.ready_to_submit:
                logger.info("Attempt %s resumed with every question locked; submitting", self._attempt_id)
                self.submit()
                return

            if self._quiz.timing_mode is TimingMode.TOTAL:
                self._engine.start(remaining_seconds=reconciled.timer_state.remaining_seconds)
            else:
                self._engine.start(
                    question_index=reconciled.current_index,
                    question_remaining=reconciled.question_remaining_seconds,
                )

    def set_draft(self, question_id: str, response: Response | None) -> bool:
        """Store a draft for the current question. Returns False when it is rejected.

        Raises ValueError for free text longer than the question allows.
        """
        with self._lock:
            self._require_status(AttemptStatus.IN_PROGRESS)
            if question_id != self._navigation.current_question_id():
                logger.debug("Rejected draft for non-current question %s", question_id)
                return False
            question = self._quiz.questions[self._quiz.index_of(question_id)]
            if (
                isinstance(response, FreeTextResponse)
                and question.max_length > 0
                and len(response.text) > question.max_length
            ):
                raise ValueError(
                    f"Answer for question {question_id} exceeds {question.max_length} characters."
                )
            return self._ledger.set_draft(question_id, response)

    def next_question(self, question_id: str | None = None) -> NavigationResult:
        """Lock the current answer and move on; the last advance submits the attempt.

        Passing the ``question_id`` the user was looking at turns a click that
        lost the race against that question's timeout into a no-op.
        """
        with self._lock:
            self._require_status(AttemptStatus.IN_PROGRESS)
            expected_index = self._quiz.index_of(question_id) if question_id is not None else None
            result = self._navigation.advance(expected_index)
            if expected_index is not None and not result.newly_locked:
                logger.info(
                    "Attempt %s: next for question %s arrived after it was locked",
                    self._attempt_id,
                    question_id,
                )
                return result
            if result.newly_locked:
                self._persist_answers()
            if result.ready_to_submit:
                self.submit()
            elif self._quiz.timing_mode is TimingMode.PER_QUESTION:
                self._switch_countdown(result.current_index)
            return result

    def abandon(self) -> None:
        """Stop timing without submitting, as when the page is closed or reloaded.

        The current question's remaining time is saved so a resume can pick it up.
        """
        with self._lock:
            if self._closed or self._result is not None:
                return
            if self._quiz.timing_mode is TimingMode.PER_QUESTION and self._engine.is_running():
                question_id = self._navigation.current_question_id()
                remaining = self._engine.get_remaining_seconds()
                self._stored_question_remaining[question_id] = remaining
                if self._persistence is not None:
                    try:
                        self._persistence.save_question_timing(self._attempt_id, question_id, remaining)
                    except Exception:
                        logger.exception("Saving question timing for attempt %s failed", self._attempt_id)
            self._engine.stop()
            self._closed = True
            for unsubscribe in self._unsubscribers:
                unsubscribe()
            self._unsubscribers.clear()
            logger.info("Attempt %s abandoned without submission", self._attempt_id)

    def forced_refresh(self) -> AttemptResult:
        with self._lock:
            return self.submit(forced_refresh=True)

    def submit(self, *, time_expired: bool = False, forced_refresh: bool = False) -> AttemptResult:
        """Lock everything that is left, score, and hand the answers to the submission sink.

        Calling it again returns the first result unchanged.
        """
        with self._lock:
            if self._result is not None:
                return self._result
            if self._closed:
                raise AttemptStateError(f"Attempt {self._attempt_id} was closed; resume it to continue")
            if self._status is AttemptStatus.NOT_STARTED:
                raise AttemptStateError("Attempt has not been started.")

            self._ledger.lock_all_remaining()
            self._engine.stop()
            self._result = self._scoring.score_attempt(self._quiz, self._ledger)
            self._payload = SubmissionPayload(
                answers=tuple(self._formatted_answers()),
                time_expired=time_expired,
                forced_refresh=forced_refresh,
            )
            self._status = AttemptStatus.TIME_UP if time_expired else AttemptStatus.SUBMITTED
            logger.info(
                "Attempt %s submitted: %s/%s points",
                self._attempt_id,
                self._result.total_score,
                self._result.max_score,
            )

            self._persist_answers()
            if self._submission is not None:
                try:
                    self._submission.submit(self._attempt_id, self._payload)
                except Exception:
                    logger.exception("Submission of attempt %s failed", self._attempt_id)

            for unsubscribe in self._unsubscribers:
                unsubscribe()
            self._unsubscribers.clear()
            return self._result

    # --- Queries ---

    def get_attempt_id(self) -> str:
        return self._attempt_id

    def get_quiz(self) -> QuizDefinition:
        return self._quiz

    def get_start_time(self) -> datetime | None:
        with self._lock:
            return self._start_time

    def get_status(self) -> AttemptStatus:
        with self._lock:
            return self._status

    def is_finished(self) -> bool:
        with self._lock:
            return self._result is not None

    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    def get_result(self) -> AttemptResult | None:
        with self._lock:
            return self._result

    def get_submission_payload(self) -> SubmissionPayload | None:
        with self._lock:
            return self._payload

    def get_current_index(self) -> int:
        with self._lock:
            return self._navigation.current_index()

    def get_current_question(self) -> Question:
        with self._lock:
            return self._quiz.questions[self._navigation.current_index()]

    def get_entries(self) -> list[AnswerLedgerEntry]:
        with self._lock:
            return self._ledger.get_entries()

    def get_timer_state(self) -> TimerState:
        with self._lock:
            return self._engine.get_state()

    def get_remaining_seconds(self) -> int:
        with self._lock:
            return self._engine.get_remaining_seconds()

    def build_snapshot(self) -> AttemptSnapshot:
        """Capture the live state in the same shape the resume path consumes."""
        with self._lock:
            question_remaining = dict(self._stored_question_remaining)
            remaining_time: float | None = None
            if self._engine.is_running():
                if self._quiz.timing_mode is TimingMode.TOTAL:
                    remaining_time = self._engine.get_remaining_seconds()
                else:
                    question_id = self._navigation.current_question_id()
                    question_remaining[question_id] = self._engine.get_remaining_seconds()
            status = AttemptStatus.IN_PROGRESS if self._status is AttemptStatus.NOT_STARTED else self._status
            return AttemptSnapshot(
                status=status.value,
                start_time=self._start_time,
                remaining_time=remaining_time,
                answers=[
                    SnapshotAnswer(
                        question_id=answer.question_id,
                        selected_options=answer.selected_options,
                        text_answer=answer.text_answer,
                    )
                    for answer in self._formatted_answers()
                ],
                question_time_remaining=question_remaining,
            )

    # --- Timer event handlers ---

    def _handle_time_update(self, kind: CountdownKind, remaining: int, question_index: int | None) -> None:
        with self._lock:
            if kind is not CountdownKind.QUESTION or question_index is None:
                return
            self._ticks_since_save += 1
            if self._ticks_since_save < TIMING_SAVE_INTERVAL_SECONDS:
                return
            self._ticks_since_save = 0
            question_id = self._quiz.questions[question_index].id
            self._stored_question_remaining[question_id] = remaining
            self._persist_answers()
            if self._persistence is not None:
                try:
                    self._persistence.save_question_timing(self._attempt_id, question_id, remaining)
                except Exception:
                    logger.exception("Saving question timing for attempt %s failed", self._attempt_id)

    def _handle_question_timeout(self, index: int) -> None:
        with self._lock:
            if self._status is not AttemptStatus.IN_PROGRESS:
                return
            result = self._navigation.on_timeout(index)
            if result.newly_locked:
                self._persist_answers()
            if result.ready_to_submit:
                # The last question's timeout is followed by the engine's expiry event.
                if index != len(self._quiz.questions) - 1:
                    self.submit(time_expired=True)
                return
            if result.current_index != index + 1:
                self._switch_countdown(result.current_index)
            self._ticks_since_save = 0

    def _handle_time_expired(self, mode: TimingMode) -> None:
        with self._lock:
            if self._status is not AttemptStatus.IN_PROGRESS:
                return
            logger.info("Time expired for attempt %s (%s)", self._attempt_id, mode.value)
            self.submit(time_expired=True)

    # --- Internals ---

    def _switch_countdown(self, index: int) -> None:
        question_id = self._quiz.questions[index].id
        self._engine.switch_to_question(index, self._stored_question_remaining.get(question_id))
        self._ticks_since_save = 0

    def _formatted_answers(self) -> list[FormattedAnswer]:
        return [
            format_answer(entry.question_id, entry.locked_response)
            for entry in self._ledger.get_entries()
            if entry.locked
        ]

    def _persist_answers(self) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.save_answers(self._attempt_id, self._formatted_answers())
        except Exception:
            logger.exception("Saving answers for attempt %s failed", self._attempt_id)

    def _require_status(self, expected: AttemptStatus) -> None:
        if self._closed:
            raise AttemptStateError(f"Attempt {self._attempt_id} was closed; resume it to continue")
        if self._status is not expected:
            raise AttemptStateError(
                f"Attempt {self._attempt_id} is {self._status.value}, expected {expected.value}"
            )
