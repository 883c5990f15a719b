"""Tests for per-question and per-attempt scoring."""

from __future__ import annotations

import pytest

from proctor_app.core.models import (
    FreeTextResponse,
    MultiSelectResponse,
    NegativeMarking,
    Option,
    Question,
    QuestionType,
    QuizDefinition,
    SingleSelectResponse,
    TimingMode,
)
from proctor_app.core.services.answer_ledger import AnswerLedger
from proctor_app.core.services.scoring import ScoringEngine, ScoringPolicy, score_attempt, score_question


def _probability_question() -> Question:
    return Question(
        id="prob",
        type=QuestionType.MULTI_SELECT,
        text="Pick languages",
        points=2,
        options=[
            Option(id="JS", text="JavaScript", is_correct=True, probability=80),
            Option(id="Python", text="Python", is_correct=True, probability=60),
            Option(id="HTML", text="HTML"),
        ],
    )


class TestSingleSelect:
    def test_correct_answer_scores_full_points(self, capital_question) -> None:
        result = score_question(capital_question, SingleSelectResponse("Paris"))
        assert result.score == 1
        assert result.is_correct is True
        assert result.requires_manual_review is False

    def test_incorrect_answer_scores_zero(self, capital_question) -> None:
        result = score_question(capital_question, SingleSelectResponse("Berlin"))
        assert result.score == 0
        assert result.is_correct is False

    def test_unanswered_scores_zero(self, capital_question) -> None:
        result = score_question(capital_question, None)
        assert result.score == 0
        assert result.answered is False


class TestMultiSelect:
    def test_partial_selection_scores_proportionally(self, languages_question) -> None:
        result = score_question(languages_question, MultiSelectResponse(frozenset({"JS"})))
        assert result.score == 1
        assert result.is_fully_correct is False

    def test_exact_selection_scores_full_points(self, languages_question) -> None:
        result = score_question(languages_question, MultiSelectResponse(frozenset({"JS", "Python"})))
        assert result.score == 2
        assert result.is_fully_correct is True

    def test_incorrect_selection_is_penalised(self, languages_question) -> None:
        result = score_question(languages_question, MultiSelectResponse(frozenset({"JS", "HTML"})))
        # 1 point for JS minus 2 / 4 options for HTML.
        assert result.score == pytest.approx(0.5)
        assert result.is_fully_correct is False

    def test_score_never_drops_below_zero(self, languages_question) -> None:
        result = score_question(languages_question, MultiSelectResponse(frozenset({"HTML", "CSS"})))
        assert result.score == 0

    def test_penalty_policy_parameter(self, languages_question) -> None:
        policy = ScoringPolicy(incorrect_selection_penalty=0.1)
        result = score_question(languages_question, MultiSelectResponse(frozenset({"JS", "HTML"})), policy)
        assert result.score == pytest.approx(0.8)

    def test_probability_scores_are_capped(self) -> None:
        result = score_question(_probability_question(), MultiSelectResponse(frozenset({"JS", "Python"})))
        assert result.score == 2

    def test_probability_scores_are_weighted(self) -> None:
        result = score_question(_probability_question(), MultiSelectResponse(frozenset({"Python"})))
        assert result.score == pytest.approx(1.2)

    def test_missing_probability_defaults_by_correctness(self) -> None:
        question = Question(
            id="mixed",
            type=QuestionType.MULTI_SELECT,
            text="Mixed",
            points=1,
            options=[
                Option(id="a", text="A", is_correct=True, probability=30),
                Option(id="b", text="B", is_correct=True),
                Option(id="c", text="C"),
            ],
        )
        assert score_question(question, MultiSelectResponse(frozenset({"c"}))).score == 0
        assert score_question(question, MultiSelectResponse(frozenset({"b"}))).score == 1


class TestFreeText:
    def test_keywords_score_partially_and_need_review(self, essay_question) -> None:
        result = score_question(essay_question, FreeTextResponse("The important concept is clear"))
        assert result.score == pytest.approx(2)
        assert result.requires_manual_review is True
        assert result.matched_keywords == ("important", "concept")

    def test_exact_answer_match_is_case_and_space_insensitive(self) -> None:
        question = Question(id="f", type=QuestionType.FREE_TEXT, text="Capital?", points=2, correct_answer="Paris")
        result = score_question(question, FreeTextResponse("  paris "))
        assert result.score == 2
        assert result.requires_manual_review is False

    def test_near_miss_needs_review(self) -> None:
        question = Question(id="f", type=QuestionType.FREE_TEXT, text="Capital?", points=2, correct_answer="Paris")
        result = score_question(question, FreeTextResponse("Pariss"))
        assert result.score == 0
        assert result.requires_manual_review is True

    def test_no_grading_data_needs_review(self) -> None:
        question = Question(id="f", type=QuestionType.FREE_TEXT, text="Thoughts?")
        result = score_question(question, FreeTextResponse("Anything"))
        assert result.score == 0
        assert result.requires_manual_review is True


class TestAttemptScoring:
    def _locked_ledger(self, quiz: QuizDefinition, responses: dict) -> AnswerLedger:
        ledger = AnswerLedger(quiz.questions)
        for question_id, response in responses.items():
            ledger.set_draft(question_id, response)
        ledger.lock_all_remaining()
        return ledger

    def test_totals_and_review_flag(self, total_quiz) -> None:
        ledger = self._locked_ledger(
            total_quiz,
            {
                "capital": SingleSelectResponse("Paris"),
                "languages": MultiSelectResponse(frozenset({"JS"})),
                "essay": FreeTextResponse("one important idea"),
            },
        )

        result = score_attempt(total_quiz, ledger)

        assert result.total_score == 3
        assert result.max_score == 6
        assert result.requires_manual_review is True
        assert result.auto_graded is False
        assert result.negative_marking_applied is False

    def test_rounding_happens_at_attempt_level(self) -> None:
        questions = [
            Question(id=f"f{index}", type=QuestionType.FREE_TEXT, text="T", points=1, keywords=["a", "b", "c"])
            for index in range(3)
        ]
        quiz = QuizDefinition(quiz_id="r", timing_mode=TimingMode.TOTAL, questions=questions, duration_minutes=5)
        ledger = self._locked_ledger(quiz, {question.id: FreeTextResponse("a") for question in questions})

        result = score_attempt(quiz, ledger)

        assert result.total_score == 1.0
        assert result.question_scores[0].score == pytest.approx(1 / 3)

    def test_unanswered_counts_toward_max_only(self, total_quiz) -> None:
        ledger = self._locked_ledger(total_quiz, {})
        result = score_attempt(total_quiz, ledger)
        assert result.total_score == 0
        assert result.max_score == 6

    def test_negative_marking(self, capital_question, languages_question, essay_question) -> None:
        quiz = QuizDefinition(
            quiz_id="neg",
            timing_mode=TimingMode.TOTAL,
            questions=[capital_question, languages_question, essay_question],
            duration_minutes=5,
            negative_marking=NegativeMarking(enabled=True, penalty_value=0.25),
        )
        ledger = self._locked_ledger(
            quiz,
            {
                "capital": SingleSelectResponse("Berlin"),
                "languages": MultiSelectResponse(frozenset({"JS"})),
                "essay": FreeTextResponse("wrong"),
            },
        )

        result = score_attempt(quiz, ledger)

        assert result.positive_score == 1
        assert result.negative_score == 0.5
        assert result.net_score == 0.5
        assert result.total_score == 1
        assert result.negative_marking_applied is True

    def test_unanswered_select_is_not_negatively_marked(self, capital_question) -> None:
        quiz = QuizDefinition(
            quiz_id="neg",
            timing_mode=TimingMode.TOTAL,
            questions=[capital_question],
            duration_minutes=5,
            negative_marking=NegativeMarking(enabled=True, penalty_value=1),
        )
        result = score_attempt(quiz, self._locked_ledger(quiz, {}))
        assert result.negative_score == 0

    def test_scoring_is_idempotent(self, total_quiz) -> None:
        ledger = self._locked_ledger(total_quiz, {"capital": SingleSelectResponse("Paris")})
        engine = ScoringEngine()
        assert engine.score_attempt(total_quiz, ledger) == engine.score_attempt(total_quiz, ledger)
