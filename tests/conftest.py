"""Shared fixtures: small quizzes and a manual clock."""

from __future__ import annotations

import pytest

from proctor_app.core.clock import ManualClock
from proctor_app.core.models import (
    Option,
    Question,
    QuestionType,
    QuizDefinition,
    TimingMode,
)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def capital_question() -> Question:
    return Question(
        id="capital",
        type=QuestionType.SINGLE_SELECT,
        text="What is the capital of France?",
        points=1,
        time_limit_seconds=60,
        options=[
            Option(id="London", text="London"),
            Option(id="Berlin", text="Berlin"),
            Option(id="Paris", text="Paris", is_correct=True),
            Option(id="Madrid", text="Madrid"),
        ],
    )


@pytest.fixture
def languages_question() -> Question:
    return Question(
        id="languages",
        type=QuestionType.MULTI_SELECT,
        text="Which of these are programming languages?",
        points=2,
        time_limit_seconds=90,
        options=[
            Option(id="JS", text="JavaScript", is_correct=True),
            Option(id="HTML", text="HTML"),
            Option(id="Python", text="Python", is_correct=True),
            Option(id="CSS", text="CSS"),
        ],
    )


@pytest.fixture
def essay_question() -> Question:
    return Question(
        id="essay",
        type=QuestionType.FREE_TEXT,
        text="Explain the idea.",
        points=3,
        time_limit_seconds=120,
        keywords=["important", "concept", "theory"],
    )


@pytest.fixture
def total_quiz(capital_question, languages_question, essay_question) -> QuizDefinition:
    return QuizDefinition(
        quiz_id="total-quiz",
        timing_mode=TimingMode.TOTAL,
        questions=[capital_question, languages_question, essay_question],
        duration_minutes=10,
        title="Total quiz",
    )


@pytest.fixture
def per_question_quiz(capital_question, languages_question, essay_question) -> QuizDefinition:
    return QuizDefinition(
        quiz_id="per-question-quiz",
        timing_mode=TimingMode.PER_QUESTION,
        questions=[capital_question, languages_question, essay_question],
        title="Per-question quiz",
    )


@pytest.fixture
def five_questions() -> list[Question]:
    return [
        Question(
            id=f"q{number}",
            type=QuestionType.SINGLE_SELECT,
            text=f"Question {number}",
            time_limit_seconds=60,
            options=[Option(id="a", text="A", is_correct=True), Option(id="b", text="B")],
        )
        for number in range(5)
    ]
