"""Deterministic scoring of locked answers."""

from __future__ import annotations

from dataclasses import dataclass, field

from proctor_app.core.models import (
    FreeTextResponse,
    MultiSelectResponse,
    NegativeMarking,
    Question,
    QuestionType,
    QuizDefinition,
    Response,
    SingleSelectResponse,
    validate_response,
)
from proctor_app.core.services.answer_ledger import AnswerLedger


@dataclass(slots=True, frozen=True)
class ScoringPolicy:
    """Tunable scoring rules.

    ``incorrect_selection_penalty`` is the fraction of a multi-select
    question's points deducted per incorrect selection. ``None`` deducts
    ``points / number_of_options`` per incorrect selection.
    """

    incorrect_selection_penalty: float | None = None
    negative_marking: NegativeMarking = field(default_factory=NegativeMarking)


@dataclass(slots=True, frozen=True)
class QuestionScore:
    question_id: str
    question_type: QuestionType
    score: float
    max_score: float
    answered: bool
    is_correct: bool | None
    is_fully_correct: bool
    requires_manual_review: bool
    negative_score: float = 0.0
    feedback: str = ""
    matched_keywords: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class AttemptResult:
    question_scores: tuple[QuestionScore, ...]
    total_score: float
    max_score: float
    requires_manual_review: bool
    positive_score: float
    negative_score: float
    net_score: float
    negative_marking_applied: bool
    auto_graded: bool


def score_question(
    question: Question,
    response: Response | None,
    policy: ScoringPolicy | None = None,
) -> QuestionScore:
    """Score one locked response. ``None`` means the question was left unanswered."""
    policy = policy or ScoringPolicy()
    effective = validate_response(question, response)

    if question.type is QuestionType.SINGLE_SELECT:
        return _score_single_select(question, effective)
    if question.type is QuestionType.MULTI_SELECT:
        return _score_multi_select(question, effective, policy)
    return _score_free_text(question, effective)


def score_attempt(
    quiz: QuizDefinition,
    ledger: AnswerLedger,
    policy: ScoringPolicy | None = None,
) -> AttemptResult:
    """Aggregate per-question scores for every question of the quiz.

    Unlocked entries count as unanswered; per-question scores are summed
    unrounded and only the attempt totals are rounded to two decimals.
    """
    policy = policy or ScoringPolicy(negative_marking=quiz.negative_marking)
    marking = policy.negative_marking

    scores: list[QuestionScore] = []
    for question in quiz.questions:
        response = ledger.get_locked(question.id) if ledger.is_locked(question.id) else None
        result = score_question(question, response, policy)
        if marking.enabled and _is_penalised(result):
            result = QuestionScore(
                question_id=result.question_id,
                question_type=result.question_type,
                score=result.score,
                max_score=result.max_score,
                answered=result.answered,
                is_correct=result.is_correct,
                is_fully_correct=result.is_fully_correct,
                requires_manual_review=result.requires_manual_review,
                negative_score=marking.penalty_value,
                feedback=result.feedback,
                matched_keywords=result.matched_keywords,
            )
        scores.append(result)

    positive = sum(item.score for item in scores)
    negative = sum(item.negative_score for item in scores)
    return AttemptResult(
        question_scores=tuple(scores),
        total_score=round(positive, 2),
        max_score=round(sum(question.points for question in quiz.questions), 2),
        requires_manual_review=any(item.requires_manual_review for item in scores),
        positive_score=round(positive, 2),
        negative_score=round(negative, 2),
        net_score=round(positive - negative, 2),
        negative_marking_applied=marking.enabled,
        auto_graded=not any(q.type is QuestionType.FREE_TEXT for q in quiz.questions),
    )


class ScoringEngine:
    """Stateless facade binding a scoring policy."""

    def __init__(self, policy: ScoringPolicy | None = None) -> None:
        self._policy = policy

    def score_question(self, question: Question, response: Response | None) -> QuestionScore:
        return score_question(question, response, self._policy)

    def score_attempt(self, quiz: QuizDefinition, ledger: AnswerLedger) -> AttemptResult:
        return score_attempt(quiz, ledger, self._policy)


def _is_penalised(result: QuestionScore) -> bool:
    if result.question_type is QuestionType.FREE_TEXT or not result.answered:
        return False
    return not result.is_fully_correct


def _score_single_select(question: Question, response: Response | None) -> QuestionScore:
    answered = isinstance(response, SingleSelectResponse)
    is_correct = answered and response.option_id in question.correct_option_ids()
    if not answered:
        feedback = "No answer given."
    else:
        feedback = "Correct answer!" if is_correct else "Incorrect answer."
    return QuestionScore(
        question_id=question.id,
        question_type=question.type,
        score=question.points if is_correct else 0.0,
        max_score=question.points,
        answered=answered,
        is_correct=is_correct,
        is_fully_correct=is_correct,
        requires_manual_review=False,
        feedback=feedback,
    )


def _normalized_probability(option_probability: float | None, is_correct: bool) -> float:
    if option_probability is None:
        return 100.0 if is_correct else 0.0
    return max(0.0, min(100.0, float(option_probability)))


def _score_multi_select(
    question: Question,
    response: Response | None,
    policy: ScoringPolicy,
) -> QuestionScore:
    selected = set(response.option_ids) if isinstance(response, MultiSelectResponse) else set()
    correct = question.correct_option_ids()
    correct_selected = len(selected & correct)
    incorrect_selected = len(selected - correct)
    is_fully_correct = bool(selected) and selected == correct

    if question.uses_probability_values():
        chosen = (question.get_option(option_id) for option_id in selected)
        total_probability = sum(
            _normalized_probability(option.probability, option.is_correct)
            for option in chosen
            if option is not None
        )
        score = question.points * min(100.0, total_probability) / 100
        feedback = f"Score based on probability values: {score:.2f} points"
    elif is_fully_correct:
        score = question.points
        feedback = "All correct options selected."
    else:
        if policy.incorrect_selection_penalty is None:
            penalty_per_incorrect = question.points / len(question.options)
        else:
            penalty_per_incorrect = question.points * policy.incorrect_selection_penalty
        score = correct_selected / len(correct) * question.points
        score -= incorrect_selected * penalty_per_incorrect
        feedback = f"You selected {correct_selected} out of {len(correct)} correct options"
        if incorrect_selected:
            feedback += f" and {incorrect_selected} incorrect options"

    return QuestionScore(
        question_id=question.id,
        question_type=question.type,
        score=max(0.0, min(question.points, score)),
        max_score=question.points,
        answered=bool(selected),
        is_correct=is_fully_correct,
        is_fully_correct=is_fully_correct,
        requires_manual_review=False,
        feedback=feedback,
    )


def _score_free_text(question: Question, response: Response | None) -> QuestionScore:
    answered = isinstance(response, FreeTextResponse)
    normalized = response.text.strip().lower() if answered else ""

    if question.correct_answer:
        is_correct = answered and normalized == question.correct_answer.strip().lower()
        return QuestionScore(
            question_id=question.id,
            question_type=question.type,
            score=question.points if is_correct else 0.0,
            max_score=question.points,
            answered=answered,
            is_correct=is_correct,
            is_fully_correct=is_correct,
            requires_manual_review=not is_correct,
            feedback="Exact match with the correct answer." if is_correct else "Your answer requires manual review.",
        )

    keywords = [keyword.strip().lower() for keyword in question.keywords if keyword.strip()]
    if keywords:
        matched = tuple(keyword for keyword in keywords if keyword in normalized) if answered else ()
        return QuestionScore(
            question_id=question.id,
            question_type=question.type,
            score=question.points * len(matched) / len(keywords),
            max_score=question.points,
            answered=answered,
            is_correct=False,
            is_fully_correct=False,
            requires_manual_review=True,
            feedback=f"Matched {len(matched)} out of {len(keywords)} keywords.",
            matched_keywords=matched,
        )

    return QuestionScore(
        question_id=question.id,
        question_type=question.type,
        score=0.0,
        max_score=question.points,
        answered=answered,
        is_correct=None,
        is_fully_correct=False,
        requires_manual_review=True,
        feedback="Your answer requires manual review.",
    )
