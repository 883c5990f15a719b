"""Tests for timing helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from proctor_app.core.models import AttemptStatus, Question, QuestionType, QuizDefinition, TimingMode
from proctor_app.core.timing_utils import (
    calculate_remaining_time,
    calculate_timing_info,
    calculate_total_question_time,
    format_time,
    validate_quiz_timing,
)

START = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestFormatTime:
    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (0, "00:00"),
            (-5, "00:00"),
            (None, "00:00"),
            (59, "00:59"),
            (600, "10:00"),
            (3599, "59:59"),
            (3600, "01:00:00"),
            (3725, "01:02:05"),
        ],
    )
    def test_format_time(self, seconds, expected) -> None:
        assert format_time(seconds) == expected

    def test_show_hours(self) -> None:
        assert format_time(65, show_hours=True) == "00:01:05"
        assert format_time(0, show_hours=True) == "00:00:00"


class TestRemainingTime:
    def test_total_remaining(self) -> None:
        assert calculate_remaining_time(START, 10, START + timedelta(seconds=90)) == 510

    def test_total_remaining_never_negative(self) -> None:
        assert calculate_remaining_time(START, 1, START + timedelta(hours=1)) == 0

    def test_remaining_with_naive_times(self) -> None:
        start = datetime(2024, 5, 1, 12, 0, 0)
        assert calculate_remaining_time(start, 1, datetime(2024, 5, 1, 12, 0, 45)) == 15

    def test_total_question_time(self, capital_question, languages_question, essay_question) -> None:
        assert calculate_total_question_time([capital_question, languages_question, essay_question]) == 270


class TestTimingInfo:
    def test_total_mode(self, total_quiz) -> None:
        info = calculate_timing_info(total_quiz, START, now=START + timedelta(minutes=4))
        assert info.total_time == 600
        assert info.remaining_time == 360
        assert info.is_expired is False

    def test_per_question_mode_lists_limits(self, per_question_quiz) -> None:
        info = calculate_timing_info(per_question_quiz, START, now=START + timedelta(seconds=300))
        assert info.total_time == 270
        assert info.remaining_time == 0
        assert info.is_expired is True
        assert info.question_time_limits == [("capital", 60), ("languages", 90), ("essay", 120)]

    def test_finished_attempt_has_no_timing(self, total_quiz) -> None:
        info = calculate_timing_info(total_quiz, START, AttemptStatus.SUBMITTED, START)
        assert info.total_time == 0
        assert info.remaining_time == 0


class TestValidateQuizTiming:
    def test_valid_quizzes(self, total_quiz, per_question_quiz) -> None:
        assert validate_quiz_timing(total_quiz) == []
        assert validate_quiz_timing(per_question_quiz) == []

    @pytest.mark.parametrize("duration, fragment", [(None, "required"), (0.5, "at least"), (301, "exceed")])
    def test_total_duration_bounds(self, capital_question, duration, fragment) -> None:
        quiz = QuizDefinition(
            quiz_id="t",
            timing_mode=TimingMode.TOTAL,
            questions=[capital_question],
            duration_minutes=duration,
        )
        errors = validate_quiz_timing(quiz)
        assert len(errors) == 1
        assert fragment in errors[0]

    def test_question_limit_bounds(self) -> None:
        questions = [
            Question(id="short", type=QuestionType.FREE_TEXT, text="S", time_limit_seconds=5),
            Question(id="long", type=QuestionType.FREE_TEXT, text="L", time_limit_seconds=4000),
        ]
        quiz = QuizDefinition(quiz_id="p", timing_mode=TimingMode.PER_QUESTION, questions=questions)
        errors = validate_quiz_timing(quiz)
        assert errors == [
            "Question 1: Time limit must be at least 10 seconds",
            "Question 2: Time limit cannot exceed 3600 seconds (1 hour)",
        ]
