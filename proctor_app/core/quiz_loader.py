"""Conversion between the engine's types and the camelCase JSON shapes at its boundary."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any
import uuid

from proctor_app.constants.timing_constants import (
    DEFAULT_FREE_TEXT_MAX_LENGTH,
    DEFAULT_TIME_LIMIT_SECONDS,
)
from proctor_app.core.models import (
    AttemptSnapshot,
    FormattedAnswer,
    FreeTextResponse,
    MultiSelectResponse,
    NegativeMarking,
    Option,
    Question,
    QuestionTiming,
    QuestionType,
    QuizDefinition,
    Response,
    SingleSelectResponse,
    SnapshotAnswer,
    SubmissionPayload,
    TimingMode,
    validate_question,
)
from proctor_app.core.services.resume_reconciler import response_from_snapshot_answer


def quiz_from_dict(data: Mapping[str, Any]) -> QuizDefinition:
    """Build a validated quiz definition. Raises ValueError on malformed input."""
    try:
        timing_mode = TimingMode(data.get("timingMode", TimingMode.TOTAL.value))
    except ValueError as exc:
        raise ValueError(f"Invalid timing mode: {data.get('timingMode')!r}") from exc

    raw_questions = data.get("questions") or []
    if not isinstance(raw_questions, list) or not raw_questions:
        raise ValueError("Quiz must contain at least one question.")
    questions = [question_from_dict(item, index) for index, item in enumerate(raw_questions)]
    if len({question.id for question in questions}) != len(questions):
        raise ValueError("Question ids must be unique.")

    duration = data.get("durationMinutes", data.get("duration"))
    if duration is not None:
        duration = _number(duration, "durationMinutes")

    marking = data.get("negativeMarking") or {}
    negative_marking = NegativeMarking(
        enabled=bool(marking.get("enabled", False)),
        penalty_value=_number(marking.get("penaltyValue", 0), "penaltyValue"),
    )
    if negative_marking.penalty_value < 0:
        raise ValueError("Penalty value must be positive.")

    return QuizDefinition(
        quiz_id=str(data.get("id") or data.get("_id") or uuid.uuid4().hex),
        timing_mode=timing_mode,
        questions=questions,
        duration_minutes=duration,
        title=str(data.get("title", "")),
        negative_marking=negative_marking,
    )


def question_from_dict(data: Mapping[str, Any], index: int = 0) -> Question:
    try:
        question_type = QuestionType(data.get("type"))
    except ValueError as exc:
        raise ValueError(f"Question {index + 1}: invalid type {data.get('type')!r}") from exc

    options = [
        Option(
            id=str(item.get("id") or item.get("_id") or item.get("text", "")),
            text=str(item.get("text", "")),
            is_correct=bool(item.get("isCorrect", False)),
            probability=_optional_number(item.get("probability"), "probability"),
        )
        for item in data.get("options") or []
    ]
    time_limit = data.get("timeLimitSeconds", data.get("timeLimit", DEFAULT_TIME_LIMIT_SECONDS))
    if isinstance(time_limit, float) and time_limit.is_integer():
        time_limit = int(time_limit)

    question = Question(
        id=str(data.get("id") or data.get("_id") or f"q{index + 1}"),
        type=question_type,
        text=str(data.get("text", "")),
        points=_number(data.get("points", 1), "points"),
        time_limit_seconds=time_limit,
        options=options,
        correct_answer=data.get("correctAnswer") or None,
        keywords=[str(keyword) for keyword in data.get("keywords") or []],
        max_length=int(data.get("maxLength", DEFAULT_FREE_TEXT_MAX_LENGTH)),
    )
    validate_question(question)
    return question


def snapshot_from_dict(data: Mapping[str, Any]) -> AttemptSnapshot:
    """Parse a persisted snapshot leniently; timing values are checked later by the reconciler."""
    return AttemptSnapshot(
        status=str(data.get("status", "in-progress")),
        start_time=_parse_datetime(data.get("startTime")),
        remaining_time=data.get("remainingTime"),
        answers=[
            SnapshotAnswer(
                question_id=str(item.get("questionId")),
                selected_options=tuple(str(option) for option in item.get("selectedOptions") or ()),
                text_answer=str(item.get("textAnswer") or ""),
            )
            for item in data.get("answers") or []
        ],
        question_time_remaining={
            str(key): value for key, value in (data.get("questionTimeRemaining") or {}).items()
        },
        question_time_limits=[
            QuestionTiming(question_id=str(item.get("questionId")), time_remaining=item.get("timeRemaining"))
            for item in data.get("questionTimeLimits") or []
        ],
    )


def response_from_answer(question: Question, answer: Mapping[str, Any]) -> Response | None:
    """Map an incoming ``{selectedOptions, textAnswer}`` payload to a response variant."""
    snapshot_answer = SnapshotAnswer(
        question_id=question.id,
        selected_options=tuple(str(option) for option in answer.get("selectedOptions") or ()),
        text_answer=str(answer.get("textAnswer") or ""),
    )
    return response_from_snapshot_answer(question, snapshot_answer)


def format_answer(question_id: str, response: Response | None) -> FormattedAnswer:
    if isinstance(response, SingleSelectResponse):
        return FormattedAnswer(question_id=question_id, selected_options=(response.option_id,))
    if isinstance(response, MultiSelectResponse):
        return FormattedAnswer(question_id=question_id, selected_options=tuple(sorted(response.option_ids)))
    if isinstance(response, FreeTextResponse):
        return FormattedAnswer(question_id=question_id, text_answer=response.text)
    return FormattedAnswer(question_id=question_id)


def formatted_answer_to_dict(answer: FormattedAnswer) -> dict[str, Any]:
    return {
        "questionId": answer.question_id,
        "selectedOptions": list(answer.selected_options),
        "textAnswer": answer.text_answer,
    }


def answers_to_dicts(answers: Iterable[FormattedAnswer]) -> list[dict[str, Any]]:
    return [formatted_answer_to_dict(answer) for answer in answers]


def snapshot_to_dict(snapshot: AttemptSnapshot) -> dict[str, Any]:
    return {
        "status": snapshot.status,
        "startTime": snapshot.start_time.isoformat() if snapshot.start_time else None,
        "remainingTime": snapshot.remaining_time,
        "answers": [
            {
                "questionId": answer.question_id,
                "selectedOptions": list(answer.selected_options),
                "textAnswer": answer.text_answer,
            }
            for answer in snapshot.answers
        ],
        "questionTimeRemaining": dict(snapshot.question_time_remaining),
        "questionTimeLimits": [
            {"questionId": timing.question_id, "timeRemaining": timing.time_remaining}
            for timing in snapshot.question_time_limits
        ],
    }


def submission_to_dict(payload: SubmissionPayload) -> dict[str, Any]:
    data: dict[str, Any] = {"answers": answers_to_dicts(payload.answers)}
    if payload.time_expired:
        data["timeExpired"] = True
    if payload.forced_refresh:
        data["forcedRefresh"] = True
    return data


def _number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    return value


def _optional_number(value: Any, field_name: str) -> float | None:
    return None if value is None else _number(value, field_name)


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
