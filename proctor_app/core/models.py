"""Domain models for quiz attempts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import math

from proctor_app.constants.timing_constants import (
    DEFAULT_FREE_TEXT_MAX_LENGTH,
    DEFAULT_TIME_LIMIT_SECONDS,
)


class TimingMode(str, Enum):
    """How an attempt is timed."""

    TOTAL = "total"
    PER_QUESTION = "per-question"


class CountdownKind(str, Enum):
    """Which countdown an update, warning or critical event belongs to."""

    TOTAL = "total"
    QUESTION = "question"


class QuestionType(str, Enum):
    """Supported question types."""

    SINGLE_SELECT = "single-select"
    MULTI_SELECT = "multi-select"
    FREE_TEXT = "free-text"


class AttemptStatus(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    SUBMITTED = "submitted"
    TIME_UP = "time_up"


@dataclass(slots=True, frozen=True)
class Option:
    """Selectable option of a single- or multi-select question."""

    id: str
    text: str
    is_correct: bool = False
    probability: float | None = None


@dataclass(slots=True)
class Question:
    """Quiz question as authored; immutable for the duration of an attempt."""

    id: str
    type: QuestionType
    text: str
    points: float = 1.0
    time_limit_seconds: int = DEFAULT_TIME_LIMIT_SECONDS
    options: list[Option] = field(default_factory=list)
    correct_answer: str | None = None
    keywords: list[str] = field(default_factory=list)
    max_length: int = DEFAULT_FREE_TEXT_MAX_LENGTH

    def get_option(self, option_id: str) -> Option | None:
        return next((option for option in self.options if option.id == option_id), None)

    def option_ids(self) -> set[str]:
        return {option.id for option in self.options}

    def correct_option_ids(self) -> set[str]:
        return {option.id for option in self.options if option.is_correct}

    def uses_probability_values(self) -> bool:
        """True when any option carries a probability, switching multi-select scoring."""
        return any(option.probability is not None for option in self.options)


@dataclass(slots=True, frozen=True)
class SingleSelectResponse:
    option_id: str


@dataclass(slots=True, frozen=True)
class MultiSelectResponse:
    option_ids: frozenset[str]


@dataclass(slots=True, frozen=True)
class FreeTextResponse:
    text: str


Response = SingleSelectResponse | MultiSelectResponse | FreeTextResponse


@dataclass(slots=True)
class AnswerLedgerEntry:
    """Draft and locked state of one question's answer."""

    question_id: str
    draft_response: Response | None = None
    locked: bool = False
    locked_response: Response | None = None


@dataclass(slots=True)
class TimerState:
    """Snapshot of the timer engine, also used as the resume plan."""

    mode: TimingMode
    remaining_seconds: int
    current_question_index: int | None = None
    warning_fired: bool = False
    critical_fired: bool = False
    running: bool = False
    paused: bool = False


@dataclass(slots=True, frozen=True)
class NegativeMarking:
    enabled: bool = False
    penalty_value: float = 0.0


@dataclass(slots=True)
class QuizDefinition:
    """Quiz as handed to the attempt engine."""

    quiz_id: str
    timing_mode: TimingMode
    questions: list[Question]
    duration_minutes: float | None = None
    title: str = ""
    negative_marking: NegativeMarking = field(default_factory=NegativeMarking)

    @property
    def duration_seconds(self) -> int | None:
        if self.duration_minutes is None:
            return None
        return int(self.duration_minutes * 60)

    def index_of(self, question_id: str) -> int:
        for index, question in enumerate(self.questions):
            if question.id == question_id:
                return index
        raise KeyError(question_id)


@dataclass(slots=True, frozen=True)
class SnapshotAnswer:
    """Answer as persisted outside the engine."""

    question_id: str
    selected_options: tuple[str, ...] = ()
    text_answer: str = ""


@dataclass(slots=True, frozen=True)
class QuestionTiming:
    question_id: str
    time_remaining: float | None


@dataclass(slots=True)
class AttemptSnapshot:
    """Persisted attempt state consumed by the resume reconciler."""

    status: str = AttemptStatus.IN_PROGRESS.value
    start_time: datetime | None = None
    remaining_time: float | None = None
    answers: list[SnapshotAnswer] = field(default_factory=list)
    question_time_remaining: dict[str, float] = field(default_factory=dict)
    question_time_limits: list[QuestionTiming] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class FormattedAnswer:
    """Answer in the shape expected by persistence and submission endpoints."""

    question_id: str
    selected_options: tuple[str, ...] = ()
    text_answer: str = ""


@dataclass(slots=True, frozen=True)
class SubmissionPayload:
    answers: tuple[FormattedAnswer, ...]
    time_expired: bool = False
    forced_refresh: bool = False


def is_valid_seconds(value: object) -> bool:
    """True for a finite, non-negative number (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def validate_question(question: Question) -> None:
    """Raise ValueError when a question violates its type's invariants."""
    if not question.id:
        raise ValueError("Question id must not be empty.")
    if not question.text.strip():
        raise ValueError(f"Question {question.id}: text must not be empty.")
    if isinstance(question.points, bool) or not isinstance(question.points, (int, float)) or question.points <= 0:
        raise ValueError(f"Question {question.id}: points must be a positive number.")
    if not isinstance(question.time_limit_seconds, int) or question.time_limit_seconds <= 0:
        raise ValueError(f"Question {question.id}: time limit must be a positive integer.")

    if question.type is QuestionType.FREE_TEXT:
        return

    if len(question.options) < 2:
        raise ValueError(f"Question {question.id}: select questions need at least two options.")
    if len(question.option_ids()) != len(question.options):
        raise ValueError(f"Question {question.id}: option ids must be unique.")
    correct_count = len(question.correct_option_ids())
    if question.type is QuestionType.SINGLE_SELECT and correct_count != 1:
        raise ValueError(f"Question {question.id}: single-select needs exactly one correct option.")
    if question.type is QuestionType.MULTI_SELECT and correct_count < 1:
        raise ValueError(f"Question {question.id}: multi-select needs at least one correct option.")


def validate_response(question: Question, response: Response | None) -> Response | None:
    """Return the response if its shape fits the question, otherwise None ("no answer")."""
    if response is None:
        return None

    if question.type is QuestionType.SINGLE_SELECT:
        if isinstance(response, SingleSelectResponse) and response.option_id in question.option_ids():
            return response
        return None

    if question.type is QuestionType.MULTI_SELECT:
        if not isinstance(response, MultiSelectResponse) or not response.option_ids:
            return None
        if not response.option_ids <= question.option_ids():
            return None
        return response

    if not isinstance(response, FreeTextResponse):
        return None
    if not response.text.strip():
        return None
    if question.max_length > 0 and len(response.text) > question.max_length:
        return None
    return response
