"""Service for storing the quizzes that attempts can be started from."""

from __future__ import annotations

from proctor_app.core.models import QuizDefinition, validate_question
from proctor_app.core.timing_utils import validate_quiz_timing


class QuizRepository:
    """Holds validated quiz definitions keyed by quiz id."""

    def __init__(self) -> None:
        self._quizzes: dict[str, QuizDefinition] = {}

    def add_quiz(self, quiz: QuizDefinition) -> QuizDefinition:
        """Validate and store a quiz, replacing any quiz with the same id."""
        self._prepare_quiz(quiz)
        self._quizzes[quiz.quiz_id] = quiz
        return quiz

    def get_quiz(self, quiz_id: str) -> QuizDefinition:
        try:
            return self._quizzes[quiz_id]
        except KeyError:
            raise KeyError(f"Unknown quiz id: {quiz_id}") from None

    def get_quizzes(self) -> list[QuizDefinition]:
        return list(self._quizzes.values())

    def delete_quiz(self, quiz_id: str) -> None:
        self.get_quiz(quiz_id)
        del self._quizzes[quiz_id]

    @staticmethod
    def _prepare_quiz(quiz: QuizDefinition) -> None:
        if not quiz.questions:
            raise ValueError("Quiz must contain at least one question.")
        for question in quiz.questions:
            validate_question(question)
        if len({question.id for question in quiz.questions}) != len(quiz.questions):
            raise ValueError("Question ids must be unique.")
        errors = validate_quiz_timing(quiz)
        if errors:
            raise ValueError("; ".join(errors))
