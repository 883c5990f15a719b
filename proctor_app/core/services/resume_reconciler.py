"""Rebuild ledger and timer state from a persisted attempt snapshot."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import math

from proctor_app.core.models import (
    AttemptSnapshot,
    FreeTextResponse,
    MultiSelectResponse,
    Question,
    QuestionType,
    QuizDefinition,
    Response,
    SingleSelectResponse,
    SnapshotAnswer,
    TimerState,
    TimingMode,
    is_valid_seconds,
)
from proctor_app.core.services.answer_ledger import AnswerLedger

logger = logging.getLogger(__name__)

SecondsSource = Callable[[], float | None]


@dataclass(slots=True)
class ReconciledAttempt:
    """Everything an attempt session needs to continue where it left off."""

    ledger: AnswerLedger
    timer_state: TimerState
    current_index: int
    question_remaining_seconds: int | None
    overall_remaining_seconds: int
    ready_to_submit: bool


def response_from_snapshot_answer(question: Question, answer: SnapshotAnswer) -> Response | None:
    """Convert a persisted answer into the response variant for ``question``."""
    if question.type is QuestionType.FREE_TEXT:
        return FreeTextResponse(answer.text_answer) if answer.text_answer else None
    if not answer.selected_options:
        return None
    if question.type is QuestionType.SINGLE_SELECT:
        return SingleSelectResponse(answer.selected_options[0])
    return MultiSelectResponse(frozenset(answer.selected_options))


def first_valid_seconds(candidates: Iterable[SecondsSource]) -> float | None:
    """Evaluate the candidates in order and return the first usable value."""
    for candidate in candidates:
        value = candidate()
        if is_valid_seconds(value):
            return value
        if value is not None:
            logger.warning("Discarding invalid resume timing value %r", value)
    return None


class ResumeReconciler:
    """Turns a possibly partial or stale snapshot into a valid starting state.

    Remaining times never exceed the original limit and never reach the timer
    engine as negative or non-finite values; every missing or broken field
    falls through to the next, safer source.
    """

    def reconcile(
        self,
        snapshot: AttemptSnapshot,
        quiz: QuizDefinition,
        now: datetime | None = None,
    ) -> ReconciledAttempt:
        now = now or datetime.now(timezone.utc)
        questions = quiz.questions
        ledger = self._restore_ledger(snapshot, questions)

        current_index = next(
            (index for index, question in enumerate(questions) if not ledger.is_locked(question.id)),
            len(questions) - 1,
        )
        ready = ledger.all_locked()
        elapsed = self._elapsed_seconds(snapshot, now)

        if quiz.timing_mode is TimingMode.TOTAL:
            remaining = self._total_remaining(snapshot, quiz, elapsed)
            timer_state = TimerState(mode=TimingMode.TOTAL, remaining_seconds=remaining)
            question_remaining = None
            overall_remaining = remaining
        else:
            question_remaining = self._question_remaining(snapshot, questions, current_index, elapsed)
            timer_state = TimerState(
                mode=TimingMode.PER_QUESTION,
                remaining_seconds=question_remaining,
                current_question_index=current_index,
            )
            total_limits = sum(question.time_limit_seconds for question in questions)
            overall_remaining = int(max(0.0, total_limits - (elapsed or 0.0)))

        logger.info(
            "Resumed attempt at question %s with %s/%s questions locked",
            current_index,
            ledger.locked_count(),
            len(questions),
        )
        return ReconciledAttempt(
            ledger=ledger,
            timer_state=timer_state,
            current_index=current_index,
            question_remaining_seconds=question_remaining,
            overall_remaining_seconds=overall_remaining,
            ready_to_submit=ready,
        )

    def _restore_ledger(self, snapshot: AttemptSnapshot, questions: list[Question]) -> AnswerLedger:
        ledger = AnswerLedger(questions)
        by_id = {question.id: question for question in questions}
        for answer in snapshot.answers:
            question = by_id.get(answer.question_id)
            if question is None:
                logger.warning("Ignoring snapshot answer for unknown question %s", answer.question_id)
                continue
            ledger.restore_locked(question.id, response_from_snapshot_answer(question, answer))
        return ledger

    @staticmethod
    def _elapsed_seconds(snapshot: AttemptSnapshot, now: datetime) -> float | None:
        start = snapshot.start_time
        if start is None:
            return None
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return max(0.0, (now - start).total_seconds())

    @staticmethod
    def _total_remaining(snapshot: AttemptSnapshot, quiz: QuizDefinition, elapsed: float | None) -> int:
        duration = quiz.duration_seconds or 0
        value = first_valid_seconds(
            (
                lambda: snapshot.remaining_time,
                lambda: max(0.0, duration - elapsed) if elapsed is not None else None,
            )
        )
        if value is None:
            logger.info("No usable remaining time in snapshot; using full duration")
            value = duration
        return int(min(math.floor(value), duration))

    @staticmethod
    def _question_remaining(
        snapshot: AttemptSnapshot,
        questions: list[Question],
        index: int,
        elapsed: float | None,
    ) -> int:
        question = questions[index]
        limit = question.time_limit_seconds

        def stored() -> float | None:
            return snapshot.question_time_remaining.get(question.id)

        def from_time_limits() -> float | None:
            return next(
                (
                    timing.time_remaining
                    for timing in snapshot.question_time_limits
                    if timing.question_id == question.id
                ),
                None,
            )

        def estimated() -> float | None:
            if elapsed is None:
                return None
            used_before = sum(previous.time_limit_seconds for previous in questions[:index])
            used_here = max(0.0, elapsed - used_before)
            return max(0.0, limit - used_here)

        value = first_valid_seconds((stored, from_time_limits, estimated))
        if value is None:
            logger.info("No usable timing for question %s; using full limit", index)
            value = limit
        return int(min(math.floor(value), limit))
