"""Quizzes and running attempts shared between the API server and the desktop window."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from threading import Lock
import uuid

from proctor_app.core.attempt_session import AttemptSession
from proctor_app.core.attempt_store import InMemoryAttemptStore
from proctor_app.core.clock import ClockSource, ThreadedClockSource
from proctor_app.core.errors import AttemptStateError
from proctor_app.core.models import AttemptSnapshot, QuizDefinition
from proctor_app.core.services.quiz_repository import QuizRepository
from proctor_app.core.services.scoring import ScoringPolicy


class AttemptRegistry:
    """Facade for the quiz repository, the attempt store and live attempt sessions."""

    def __init__(
        self,
        clock_factory: Callable[[], ClockSource] = ThreadedClockSource,
        scoring_policy: ScoringPolicy | None = None,
        store: InMemoryAttemptStore | None = None,
    ) -> None:
        self._lock = Lock()
        self._clock_factory = clock_factory
        self._scoring_policy = scoring_policy
        self._repository = QuizRepository()
        self._store = store or InMemoryAttemptStore()
        self._sessions: dict[str, AttemptSession] = {}

    # --- Quiz Repository Delegation ---

    def add_quiz(self, quiz: QuizDefinition) -> QuizDefinition:
        with self._lock:
            return self._repository.add_quiz(quiz)

    def get_quiz(self, quiz_id: str) -> QuizDefinition:
        with self._lock:
            return self._repository.get_quiz(quiz_id)

    def get_quizzes(self) -> list[QuizDefinition]:
        with self._lock:
            return self._repository.get_quizzes()

    def delete_quiz(self, quiz_id: str) -> None:
        """Remove a quiz; attempts already started from it keep running."""
        with self._lock:
            self._repository.delete_quiz(quiz_id)

    # --- Attempt lifecycle ---

    def start_attempt(
        self,
        quiz_id: str,
        now: datetime | None = None,
        clock: ClockSource | None = None,
    ) -> AttemptSession:
        """Start a fresh attempt; ``clock`` overrides the factory (the desktop window passes a Qt clock)."""
        with self._lock:
            quiz = self._repository.get_quiz(quiz_id)
            attempt_id = uuid.uuid4().hex
            start_time = now or datetime.now(timezone.utc)
            self._store.create_attempt(attempt_id, quiz, start_time)
            session = self._build_session(attempt_id, quiz, clock)
            session.start(start_time)
            self._sessions[attempt_id] = session
            return session

    def get_session(self, attempt_id: str) -> AttemptSession:
        with self._lock:
            return self._get_session(attempt_id)

    def resume_attempt(self, attempt_id: str, now: datetime | None = None) -> AttemptSession:
        """Replace the live session with one rebuilt from the store, as after a page reload."""
        with self._lock:
            previous = self._get_session(attempt_id)
            if previous.is_finished():
                raise AttemptStateError(f"Attempt {attempt_id} has already been submitted")
            previous.abandon()
            snapshot = self._store.build_snapshot(attempt_id, now)
            session = self._build_session(attempt_id, previous.get_quiz())
            session.resume(snapshot, now)
            self._sessions[attempt_id] = session
            return session

    def get_snapshot(self, attempt_id: str, now: datetime | None = None) -> AttemptSnapshot:
        with self._lock:
            self._get_session(attempt_id)
            return self._store.build_snapshot(attempt_id, now)

    def shutdown(self) -> None:
        """Stop every running timer without submitting."""
        with self._lock:
            for session in self._sessions.values():
                session.abandon()

    def _build_session(
        self,
        attempt_id: str,
        quiz: QuizDefinition,
        clock: ClockSource | None = None,
    ) -> AttemptSession:
        return AttemptSession(
            attempt_id,
            quiz,
            clock if clock is not None else self._clock_factory(),
            persistence=self._store,
            submission=self._store,
            scoring_policy=self._scoring_policy,
        )

    def _get_session(self, attempt_id: str) -> AttemptSession:
        try:
            return self._sessions[attempt_id]
        except KeyError:
            raise KeyError(f"Unknown attempt id: {attempt_id}") from None
