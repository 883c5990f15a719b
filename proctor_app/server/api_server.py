"""FastAPI server that exposes quiz attempts to browser clients."""

from __future__ import annotations

from threading import Thread
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field
import uvicorn

from proctor_app.constants.about import APP_NAME, APP_VERSION
from proctor_app.constants.network_constants import API_LOG_LEVEL, DEFAULT_HOST, DEFAULT_PORT
from proctor_app.constants.timing_constants import DEFAULT_FREE_TEXT_MAX_LENGTH
from proctor_app.core.attempt_registry import AttemptRegistry
from proctor_app.core.attempt_session import AttemptSession
from proctor_app.core.markdown_renderer import renderer
from proctor_app.core.models import AnswerLedgerEntry, Question, QuizDefinition
from proctor_app.core.quiz_loader import (
    format_answer,
    formatted_answer_to_dict,
    quiz_from_dict,
    response_from_answer,
    snapshot_to_dict,
    submission_to_dict,
)
from proctor_app.core.services.navigation import NavigationResult
from proctor_app.core.services.scoring import AttemptResult
from proctor_app.core.timing_utils import calculate_timing_info, format_time


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OptionPayload(_CamelModel):
    id: str | None = None
    text: str
    is_correct: bool = Field(default=False, alias="isCorrect")
    probability: float | None = None


class QuestionPayload(_CamelModel):
    id: str | None = None
    type: str
    text: str
    points: float = 1
    time_limit_seconds: int = Field(default=60, alias="timeLimitSeconds")
    options: list[OptionPayload] = Field(default_factory=list)
    correct_answer: str | None = Field(default=None, alias="correctAnswer")
    keywords: list[str] = Field(default_factory=list)
    max_length: int = Field(default=DEFAULT_FREE_TEXT_MAX_LENGTH, alias="maxLength")


class NegativeMarkingPayload(_CamelModel):
    enabled: bool = False
    penalty_value: float = Field(default=0, alias="penaltyValue")


class QuizPayload(_CamelModel):
    """Payload schema for a quiz definition."""

    id: str | None = None
    title: str = ""
    timing_mode: str = Field(default="total", alias="timingMode")
    duration_minutes: float | None = Field(default=None, alias="durationMinutes")
    questions: list[QuestionPayload]
    negative_marking: NegativeMarkingPayload | None = Field(default=None, alias="negativeMarking")


class DraftPayload(_CamelModel):
    """Payload schema for the current question's draft answer."""

    question_id: str = Field(alias="questionId")
    selected_options: list[str] = Field(default_factory=list, alias="selectedOptions")
    text_answer: str = Field(default="", alias="textAnswer")


class NextPayload(_CamelModel):
    """Question the client was showing when the user pressed Next."""

    question_id: str | None = Field(default=None, alias="questionId")


def _get_registry_dependency(registry: AttemptRegistry):
    def dependency() -> AttemptRegistry:
        return registry

    return dependency


def _question_to_dict(question: Question) -> dict[str, Any]:
    return {
        "id": question.id,
        "type": question.type.value,
        "html": renderer.render_fragment(question.text),
        "points": question.points,
        "timeLimitSeconds": question.time_limit_seconds,
        "options": [
            {"id": option.id, "html": renderer.render_inline(option.text)} for option in question.options
        ],
    }


def _entry_to_dict(entry: AnswerLedgerEntry) -> dict[str, Any]:
    response = entry.locked_response if entry.locked else entry.draft_response
    data = formatted_answer_to_dict(format_answer(entry.question_id, response))
    data["locked"] = entry.locked
    return data


def _result_to_dict(result: AttemptResult) -> dict[str, Any]:
    return {
        "totalScore": result.total_score,
        "maxScore": result.max_score,
        "requiresManualReview": result.requires_manual_review,
        "positiveScore": result.positive_score,
        "negativeScore": result.negative_score,
        "netScore": result.net_score,
        "negativeMarkingApplied": result.negative_marking_applied,
        "autoGraded": result.auto_graded,
        "questions": [
            {
                "questionId": item.question_id,
                "score": item.score,
                "maxScore": item.max_score,
                "isCorrect": item.is_correct,
                "isFullyCorrect": item.is_fully_correct,
                "requiresManualReview": item.requires_manual_review,
                "negativeScore": item.negative_score,
                "feedback": item.feedback,
            }
            for item in result.question_scores
        ],
    }


def _quiz_summary(quiz: QuizDefinition) -> dict[str, Any]:
    return {
        "id": quiz.quiz_id,
        "title": quiz.title,
        "timingMode": quiz.timing_mode.value,
        "questionCount": len(quiz.questions),
    }


def _timing_to_dict(session: AttemptSession) -> dict[str, Any] | None:
    start_time = session.get_start_time()
    if start_time is None:
        return None
    info = calculate_timing_info(session.get_quiz(), start_time, session.get_status())
    return {
        "timingMode": info.timing_mode.value,
        "totalTime": info.total_time,
        "remainingTime": info.remaining_time,
        "isExpired": info.is_expired,
        "questionTimeLimits": [
            {"questionId": question_id, "timeLimitSeconds": limit}
            for question_id, limit in info.question_time_limits
        ],
    }


def _session_to_dict(session: AttemptSession) -> dict[str, Any]:
    quiz = session.get_quiz()
    timer = session.get_timer_state()
    result = session.get_result()
    payload = session.get_submission_payload()
    return {
        "attemptId": session.get_attempt_id(),
        "quizId": quiz.quiz_id,
        "title": quiz.title,
        "status": session.get_status().value,
        "timingMode": quiz.timing_mode.value,
        "currentIndex": session.get_current_index(),
        "questionCount": len(quiz.questions),
        "question": _question_to_dict(session.get_current_question()),
        "answers": [_entry_to_dict(entry) for entry in session.get_entries()],
        "timer": {
            "mode": timer.mode.value,
            "remainingSeconds": timer.remaining_seconds,
            "formatted": format_time(timer.remaining_seconds),
            "currentQuestionIndex": timer.current_question_index,
            "warningFired": timer.warning_fired,
            "criticalFired": timer.critical_fired,
            "running": timer.running,
            "paused": timer.paused,
        },
        "timing": _timing_to_dict(session),
        "result": _result_to_dict(result) if result is not None else None,
        "submission": submission_to_dict(payload) if payload is not None else None,
    }


def _navigation_to_dict(result: NavigationResult) -> dict[str, Any]:
    return {
        "lockedIndex": result.locked_index,
        "newlyLocked": result.newly_locked,
        "currentIndex": result.current_index,
        "readyToSubmit": result.ready_to_submit,
    }


def create_api_app(registry: AttemptRegistry) -> FastAPI:
    """Create a FastAPI application wired to the provided attempt registry."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    registry_dep = _get_registry_dependency(registry)

    def load_session(attempt_id: str, current: AttemptRegistry) -> AttemptSession:
        try:
            return current.get_session(attempt_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.post("/quizzes", status_code=201)
    def create_quiz(
        payload: QuizPayload,
        current: AttemptRegistry = Depends(registry_dep),
    ) -> dict[str, object]:
        try:
            quiz = current.add_quiz(quiz_from_dict(payload.model_dump(by_alias=True, exclude_none=True)))
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _quiz_summary(quiz)

    @app.get("/quizzes")
    def list_quizzes(current: AttemptRegistry = Depends(registry_dep)) -> list[dict[str, object]]:
        return [_quiz_summary(quiz) for quiz in current.get_quizzes()]

    @app.get("/quizzes/{quiz_id}")
    def get_quiz(quiz_id: str, current: AttemptRegistry = Depends(registry_dep)) -> dict[str, object]:
        try:
            quiz = current.get_quiz(quiz_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        summary = _quiz_summary(quiz)
        summary["durationMinutes"] = quiz.duration_minutes
        return summary

    @app.delete("/quizzes/{quiz_id}", status_code=204)
    def delete_quiz(quiz_id: str, current: AttemptRegistry = Depends(registry_dep)) -> None:
        try:
            current.delete_quiz(quiz_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.post("/quizzes/{quiz_id}/attempts", status_code=201)
    def start_attempt(quiz_id: str, current: AttemptRegistry = Depends(registry_dep)) -> dict[str, object]:
        try:
            session = current.start_attempt(quiz_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _session_to_dict(session)

    @app.get("/attempts/{attempt_id}")
    def get_attempt(attempt_id: str, current: AttemptRegistry = Depends(registry_dep)) -> dict[str, object]:
        return _session_to_dict(load_session(attempt_id, current))

    @app.put("/attempts/{attempt_id}/draft")
    def save_draft(
        attempt_id: str,
        payload: DraftPayload,
        current: AttemptRegistry = Depends(registry_dep),
    ) -> dict[str, object]:
        session = load_session(attempt_id, current)
        question = next((q for q in session.get_quiz().questions if q.id == payload.question_id), None)
        if question is None:
            raise HTTPException(status_code=404, detail=f"Unknown question id: {payload.question_id}")
        response = response_from_answer(
            question,
            {"selectedOptions": payload.selected_options, "textAnswer": payload.text_answer},
        )
        try:
            accepted = session.set_draft(question.id, response)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if not accepted:
            raise HTTPException(status_code=409, detail="Question is locked or not the current question.")
        return {"questionId": question.id, "accepted": True}

    @app.post("/attempts/{attempt_id}/next")
    def next_question(
        attempt_id: str,
        payload: NextPayload | None = None,
        current: AttemptRegistry = Depends(registry_dep),
    ) -> dict[str, object]:
        session = load_session(attempt_id, current)
        question_id = payload.question_id if payload is not None else None
        try:
            result = session.next_question(question_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=f"Unknown question id: {question_id}") from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"navigation": _navigation_to_dict(result), "attempt": _session_to_dict(session)}

    @app.post("/attempts/{attempt_id}/submit")
    def submit_attempt(attempt_id: str, current: AttemptRegistry = Depends(registry_dep)) -> dict[str, object]:
        session = load_session(attempt_id, current)
        try:
            result = session.submit()
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _result_to_dict(result)

    @app.post("/attempts/{attempt_id}/resume")
    def resume_attempt(attempt_id: str, current: AttemptRegistry = Depends(registry_dep)) -> dict[str, object]:
        load_session(attempt_id, current)
        try:
            session = current.resume_attempt(attempt_id)
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _session_to_dict(session)

    @app.get("/attempts/{attempt_id}/snapshot")
    def get_snapshot(attempt_id: str, current: AttemptRegistry = Depends(registry_dep)) -> dict[str, object]:
        load_session(attempt_id, current)
        return snapshot_to_dict(current.get_snapshot(attempt_id))

    return app


def start_api_server(
    registry: AttemptRegistry,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(registry)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=API_LOG_LEVEL)
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="ProctorApiServer", daemon=True)
    thread.start()
    return thread
