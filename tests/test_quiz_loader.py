"""Tests for the JSON boundary conversions."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from proctor_app.core.models import (
    AttemptSnapshot,
    FormattedAnswer,
    FreeTextResponse,
    MultiSelectResponse,
    QuestionType,
    SingleSelectResponse,
    SnapshotAnswer,
    SubmissionPayload,
    TimingMode,
)
from proctor_app.core.quiz_loader import (
    format_answer,
    quiz_from_dict,
    response_from_answer,
    snapshot_from_dict,
    snapshot_to_dict,
    submission_to_dict,
)


def _quiz_data(**overrides) -> dict:
    data = {
        "_id": "quiz-1",
        "title": "Loader",
        "timingMode": "per-question",
        "negativeMarking": {"enabled": True, "penaltyValue": 0.5},
        "questions": [
            {
                "_id": "q-single",
                "type": "single-select",
                "text": "Pick",
                "timeLimit": 30,
                "options": [{"text": "Yes", "isCorrect": True}, {"text": "No"}],
            },
            {
                "id": "q-free",
                "type": "free-text",
                "text": "Explain",
                "points": 2.5,
                "keywords": ["alpha"],
                "maxLength": 200,
            },
        ],
    }
    data.update(overrides)
    return data


class TestQuizFromDict:
    def test_parses_original_field_names(self) -> None:
        quiz = quiz_from_dict(_quiz_data())

        assert quiz.quiz_id == "quiz-1"
        assert quiz.timing_mode is TimingMode.PER_QUESTION
        assert quiz.negative_marking.enabled is True
        single, free = quiz.questions
        assert single.id == "q-single"
        assert single.time_limit_seconds == 30
        assert [option.id for option in single.options] == ["Yes", "No"]
        assert single.correct_option_ids() == {"Yes"}
        assert free.type is QuestionType.FREE_TEXT
        assert free.points == 2.5
        assert free.max_length == 200

    def test_duration_alias(self) -> None:
        quiz = quiz_from_dict(_quiz_data(timingMode="total", duration=20))
        assert quiz.duration_minutes == 20
        assert quiz.duration_seconds == 1200

    @pytest.mark.parametrize(
        "overrides",
        [
            {"timingMode": "stopwatch"},
            {"questions": []},
            {"durationMinutes": "ten"},
            {"negativeMarking": {"enabled": True, "penaltyValue": -1}},
        ],
    )
    def test_invalid_quiz_raises_value_error(self, overrides) -> None:
        with pytest.raises(ValueError):
            quiz_from_dict(_quiz_data(**overrides))

    def test_duplicate_question_ids_raise(self) -> None:
        data = _quiz_data()
        data["questions"][1]["id"] = "q-single"
        with pytest.raises(ValueError, match="unique"):
            quiz_from_dict(data)


class TestAnswers:
    def test_response_from_answer_per_type(self, capital_question, languages_question, essay_question) -> None:
        assert response_from_answer(capital_question, {"selectedOptions": ["Paris"]}) == SingleSelectResponse("Paris")
        assert response_from_answer(languages_question, {"selectedOptions": ["JS", "Python"]}) == MultiSelectResponse(
            frozenset({"JS", "Python"})
        )
        assert response_from_answer(essay_question, {"textAnswer": "text"}) == FreeTextResponse("text")

    def test_empty_answers_map_to_no_answer(self, languages_question, essay_question) -> None:
        assert response_from_answer(languages_question, {"selectedOptions": []}) is None
        assert response_from_answer(essay_question, {}) is None

    def test_format_answer(self) -> None:
        assert format_answer("m", MultiSelectResponse(frozenset({"b", "a"}))) == FormattedAnswer(
            question_id="m", selected_options=("a", "b")
        )
        assert format_answer("f", FreeTextResponse("x")) == FormattedAnswer(question_id="f", text_answer="x")
        assert format_answer("n", None) == FormattedAnswer(question_id="n")


class TestSnapshots:
    def test_snapshot_from_dict(self) -> None:
        snapshot = snapshot_from_dict(
            {
                "status": "in-progress",
                "startTime": "2024-05-01T12:00:00Z",
                "remainingTime": 300,
                "answers": [{"questionId": "q1", "selectedOptions": ["a"], "textAnswer": None}],
                "questionTimeRemaining": {"q2": 12},
                "questionTimeLimits": [{"questionId": "q2", "timeRemaining": 20}],
            }
        )

        assert snapshot.start_time == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert snapshot.remaining_time == 300
        assert snapshot.answers == [SnapshotAnswer(question_id="q1", selected_options=("a",))]
        assert snapshot.question_time_remaining == {"q2": 12}
        assert snapshot.question_time_limits[0].time_remaining == 20

    def test_unparseable_start_time_is_dropped(self) -> None:
        assert snapshot_from_dict({"startTime": "yesterday"}).start_time is None

    def test_snapshot_to_dict(self) -> None:
        snapshot = AttemptSnapshot(
            start_time=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            answers=[SnapshotAnswer(question_id="q1", text_answer="hi")],
        )
        data = snapshot_to_dict(snapshot)
        assert data["startTime"] == "2024-05-01T12:00:00+00:00"
        assert data["answers"] == [{"questionId": "q1", "selectedOptions": [], "textAnswer": "hi"}]
        assert data["remainingTime"] is None

    def test_submission_flags_only_when_set(self) -> None:
        answers = (FormattedAnswer(question_id="q1", selected_options=("a",)),)
        assert submission_to_dict(SubmissionPayload(answers=answers)) == {
            "answers": [{"questionId": "q1", "selectedOptions": ["a"], "textAnswer": ""}],
        }
        data = submission_to_dict(SubmissionPayload(answers=answers, time_expired=True))
        assert data["timeExpired"] is True
        assert "forcedRefresh" not in data
