"""In-memory persistence and submission sink for attempts served over HTTP."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from threading import Lock

from proctor_app.core.models import (
    AttemptSnapshot,
    AttemptStatus,
    FormattedAnswer,
    QuizDefinition,
    SnapshotAnswer,
    SubmissionPayload,
    TimingMode,
)
from proctor_app.core.timing_utils import calculate_remaining_time

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StoredAttempt:
    attempt_id: str
    quiz: QuizDefinition
    start_time: datetime
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    answers: list[FormattedAnswer] = field(default_factory=list)
    question_time_remaining: dict[str, int] = field(default_factory=dict)
    submission: SubmissionPayload | None = None


class InMemoryAttemptStore:
    """Records what a real backend would persist and rebuilds snapshots from it.

    Saves are idempotent: every call replaces the stored answers with the
    latest full list.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._attempts: dict[str, StoredAttempt] = {}

    def create_attempt(self, attempt_id: str, quiz: QuizDefinition, start_time: datetime | None = None) -> None:
        with self._lock:
            self._attempts[attempt_id] = StoredAttempt(
                attempt_id=attempt_id,
                quiz=quiz,
                start_time=start_time or datetime.now(timezone.utc),
            )

    def get_attempt(self, attempt_id: str) -> StoredAttempt:
        with self._lock:
            return self._get(attempt_id)

    # --- PersistenceSink ---

    def save_answers(self, attempt_id: str, answers: list[FormattedAnswer]) -> None:
        with self._lock:
            self._get(attempt_id).answers = list(answers)
            logger.debug("Saved %s answers for attempt %s", len(answers), attempt_id)

    def save_question_timing(self, attempt_id: str, question_id: str, remaining_seconds: int) -> None:
        with self._lock:
            self._get(attempt_id).question_time_remaining[question_id] = remaining_seconds

    # --- SubmissionSink ---

    def submit(self, attempt_id: str, payload: SubmissionPayload) -> None:
        with self._lock:
            stored = self._get(attempt_id)
            if stored.submission is not None:
                logger.info("Ignoring duplicate submission for attempt %s", attempt_id)
                return
            stored.submission = payload
            stored.answers = list(payload.answers)
            stored.status = AttemptStatus.TIME_UP if payload.time_expired else AttemptStatus.SUBMITTED

    def build_snapshot(self, attempt_id: str, now: datetime | None = None) -> AttemptSnapshot:
        """Snapshot as a page reload would receive it; total-mode time is derived from the start time."""
        with self._lock:
            stored = self._get(attempt_id)
            remaining_time = None
            if stored.quiz.timing_mode is TimingMode.TOTAL and stored.quiz.duration_minutes:
                remaining_time = calculate_remaining_time(stored.start_time, stored.quiz.duration_minutes, now)
            return AttemptSnapshot(
                status=stored.status.value,
                start_time=stored.start_time,
                remaining_time=remaining_time,
                answers=[
                    SnapshotAnswer(
                        question_id=answer.question_id,
                        selected_options=answer.selected_options,
                        text_answer=answer.text_answer,
                    )
                    for answer in stored.answers
                ],
                question_time_remaining=dict(stored.question_time_remaining),
            )

    def _get(self, attempt_id: str) -> StoredAttempt:
        try:
            return self._attempts[attempt_id]
        except KeyError:
            raise KeyError(f"Unknown attempt id: {attempt_id}") from None
