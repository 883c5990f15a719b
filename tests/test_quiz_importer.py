"""Tests for the plain-text quiz format."""

from __future__ import annotations

from pathlib import Path

import pytest

from proctor_app.core.models import QuestionType, TimingMode
from proctor_app.core.quiz_importer import QuizImportError, load_quiz_from_file, parse_quiz_text

SAMPLE_QUIZ = Path(__file__).resolve().parents[1] / "proctor_app" / "data" / "sample_quiz.txt"


class TestParseQuizText:
    def test_header_and_question_types(self) -> None:
        quiz = parse_quiz_text(
            """
TITLE: Mixed
TIMING: total
DURATION: 15
NEGATIVE: 0.5

Q: Pick one
A: First
B: Second
CORRECT: B

---
TYPE: multi
Q: Pick several
   across two lines
A: One
B: Two
C: Three
CORRECT: A, C
POINTS: 2

TYPE: free
Q: Explain
KEYWORDS: alpha, beta
ANSWER: alpha beta
""",
            quiz_id="mixed",
        )

        assert quiz.quiz_id == "mixed"
        assert quiz.title == "Mixed"
        assert quiz.timing_mode is TimingMode.TOTAL
        assert quiz.duration_minutes == 15
        assert quiz.negative_marking.enabled is True
        assert quiz.negative_marking.penalty_value == 0.5
        assert [question.id for question in quiz.questions] == ["q1", "q2", "q3"]

        single, multi, free = quiz.questions
        assert single.type is QuestionType.SINGLE_SELECT
        assert single.correct_option_ids() == {"B"}
        assert multi.type is QuestionType.MULTI_SELECT
        assert multi.text == "Pick several\nacross two lines"
        assert multi.correct_option_ids() == {"A", "C"}
        assert multi.points == 2
        assert free.type is QuestionType.FREE_TEXT
        assert free.keywords == ["alpha", "beta"]
        assert free.correct_answer == "alpha beta"

    def test_probabilities_and_time_limits(self) -> None:
        quiz = parse_quiz_text(
            """
TIMING: per-question

TYPE: multi
Q: Weighted
A: Yes
B: Maybe
C: No
CORRECT: A,B
PROB: A=80, B=60
TIMELIMIT: 45
"""
        )
        question = quiz.questions[0]
        assert quiz.timing_mode is TimingMode.PER_QUESTION
        assert question.time_limit_seconds == 45
        assert [option.probability for option in question.options] == [80.0, 60.0, None]

    def test_questions_without_header_default_to_total_and_need_duration(self) -> None:
        with pytest.raises(QuizImportError, match="DURATION"):
            parse_quiz_text("Q: Question\nA: One\nB: Two\nCORRECT: A")

    @pytest.mark.parametrize(
        "block, message",
        [
            ("A: One\nB: Two\nCORRECT: A", "question text missing"),
            ("Q: Q\nA: One\nC: Three\nCORRECT: A", "consecutively"),
            ("Q: Q\nA: One\nB: Two\nCORRECT: D", "unknown options"),
            ("Q: Q\nA: One\nB: Two", "exactly one correct"),
            ("TYPE: essay\nQ: Q", "TYPE must be"),
            ("TYPE: free\nQ: Q\nA: One", "cannot define options"),
            ("Q: Q\nA: One\nB: Two\nCORRECT: A\nTIMELIMIT: soon", "TIMELIMIT"),
        ],
    )
    def test_invalid_blocks(self, block: str, message: str) -> None:
        with pytest.raises(QuizImportError, match=message):
            parse_quiz_text(f"TIMING: per-question\n\n{block}")

    def test_empty_file_raises(self) -> None:
        with pytest.raises(QuizImportError):
            parse_quiz_text("TIMING: per-question")

    def test_unknown_timing_raises(self) -> None:
        with pytest.raises(QuizImportError, match="TIMING"):
            parse_quiz_text("TIMING: sometimes\n\nQ: Q\nA: One\nB: Two\nCORRECT: A")


class TestLoadQuizFromFile:
    def test_bundled_sample(self) -> None:
        imported = load_quiz_from_file(SAMPLE_QUIZ)
        quiz = imported.quiz
        assert imported.source_path == SAMPLE_QUIZ
        assert quiz.quiz_id == "sample_quiz"
        assert quiz.timing_mode is TimingMode.PER_QUESTION
        assert len(quiz.questions) == 4
        assert quiz.negative_marking.penalty_value == 0.25

    def test_quiz_id_comes_from_file_name(self, tmp_path) -> None:
        path = tmp_path / "week1.txt"
        path.write_text("TIMING: total\nDURATION: 5\n\nQ: Q\nA: One\nB: Two\nCORRECT: B\n", encoding="utf-8")
        assert load_quiz_from_file(path).quiz.quiz_id == "week1"
