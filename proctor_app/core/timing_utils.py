"""Timing helpers shared by the API server, the attempt store and the UI."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from proctor_app.constants.timing_constants import (
    DEFAULT_TIME_LIMIT_SECONDS,
    MAX_DURATION_MINUTES,
    MAX_QUESTION_TIME_LIMIT_SECONDS,
    MIN_DURATION_MINUTES,
    MIN_QUESTION_TIME_LIMIT_SECONDS,
)
from proctor_app.core.models import AttemptStatus, Question, QuizDefinition, TimingMode


@dataclass(slots=True)
class TimingInfo:
    timing_mode: TimingMode
    total_time: int = 0
    remaining_time: int = 0
    is_expired: bool = False
    question_time_limits: list[tuple[str, int]] = field(default_factory=list)


def format_time(seconds: float | None, show_hours: bool = False) -> str:
    """Format seconds as MM:SS, or HH:MM:SS when asked or when an hour or more remains."""
    if not seconds or seconds < 0:
        return "00:00:00" if show_hours else "00:00"
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if show_hours or hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def _elapsed_whole_seconds(start: datetime, now: datetime | None) -> int:
    now = now or datetime.now(timezone.utc)
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max(0, int((now - start).total_seconds()))


def calculate_remaining_time(start_time: datetime, duration_minutes: float, now: datetime | None = None) -> int:
    return max(0, int(duration_minutes * 60) - _elapsed_whole_seconds(start_time, now))


def calculate_total_question_time(questions: Sequence[Question]) -> int:
    return sum(question.time_limit_seconds or DEFAULT_TIME_LIMIT_SECONDS for question in questions)


def calculate_timing_info(
    quiz: QuizDefinition,
    start_time: datetime,
    status: AttemptStatus | str = AttemptStatus.IN_PROGRESS,
    now: datetime | None = None,
) -> TimingInfo:
    """Server-side view of an attempt's timing, derived from its start time."""
    info = TimingInfo(timing_mode=quiz.timing_mode)
    if AttemptStatus(status) is not AttemptStatus.IN_PROGRESS:
        return info

    elapsed = _elapsed_whole_seconds(start_time, now)
    if quiz.timing_mode is TimingMode.TOTAL:
        info.total_time = quiz.duration_seconds or 0
    else:
        info.total_time = calculate_total_question_time(quiz.questions)
        info.question_time_limits = [(question.id, question.time_limit_seconds) for question in quiz.questions]
    info.remaining_time = max(0, info.total_time - elapsed)
    info.is_expired = elapsed >= info.total_time
    return info


def validate_quiz_timing(quiz: QuizDefinition) -> list[str]:
    """Return human-readable timing problems; an empty list means the quiz is valid."""
    errors: list[str] = []
    if quiz.timing_mode is TimingMode.TOTAL:
        duration = quiz.duration_minutes
        if not duration or isinstance(duration, bool) or not isinstance(duration, (int, float)):
            errors.append("Duration is required for total timing mode")
        else:
            if duration < MIN_DURATION_MINUTES:
                errors.append(f"Duration must be at least {MIN_DURATION_MINUTES} minute")
            if duration > MAX_DURATION_MINUTES:
                errors.append(f"Duration cannot exceed {MAX_DURATION_MINUTES} minutes (5 hours)")
        return errors

    for number, question in enumerate(quiz.questions, start=1):
        limit = question.time_limit_seconds
        if limit < MIN_QUESTION_TIME_LIMIT_SECONDS:
            errors.append(f"Question {number}: Time limit must be at least {MIN_QUESTION_TIME_LIMIT_SECONDS} seconds")
        if limit > MAX_QUESTION_TIME_LIMIT_SECONDS:
            errors.append(f"Question {number}: Time limit cannot exceed {MAX_QUESTION_TIME_LIMIT_SECONDS} seconds (1 hour)")
    return errors
