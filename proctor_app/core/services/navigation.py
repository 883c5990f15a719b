"""Forward-only navigation over the answer ledger."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import logging

from proctor_app.core.models import Question
from proctor_app.core.services.answer_ledger import AnswerLedger

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class NavigationResult:
    """Outcome of an advance or timeout."""

    locked_index: int
    newly_locked: bool
    current_index: int
    ready_to_submit: bool


class NavigationController:
    """Decides which question is current and moves forward by locking.

    The current question is always the first unlocked one in quiz order, so
    navigation can never return to a question that has been locked.
    """

    def __init__(self, questions: Sequence[Question], ledger: AnswerLedger) -> None:
        if not questions:
            raise ValueError("Navigation requires at least one question.")
        self._question_ids: list[str] = [question.id for question in questions]
        self._ledger = ledger

    def current_index(self) -> int:
        for index, question_id in enumerate(self._question_ids):
            if not self._ledger.is_locked(question_id):
                return index
        return len(self._question_ids) - 1

    def current_question_id(self) -> str:
        return self._question_ids[self.current_index()]

    def is_complete(self) -> bool:
        return self._ledger.all_locked()

    def advance(self, expected_index: int | None = None) -> NavigationResult:
        """Lock the current question (whatever its draft) and move to the next unlocked one.

        When ``expected_index`` names a question that is no longer current (a
        timeout locked it first) nothing is locked.
        """
        index = self.current_index()
        if expected_index is not None and expected_index != index:
            if not 0 <= expected_index < len(self._question_ids):
                raise IndexError(f"Question index {expected_index} out of range")
            logger.debug("Ignoring stale advance for question %s", expected_index)
            return self._result_after(expected_index, False)
        newly_locked = self._ledger.lock(self._question_ids[index])
        return self._result_after(index, newly_locked)

    def on_timeout(self, index: int) -> NavigationResult:
        """Same as ``advance`` but triggered by a question timeout.

        A timeout for a question that is no longer current (the user already
        advanced in the same tick) locks nothing.
        """
        if not 0 <= index < len(self._question_ids):
            raise IndexError(f"Question index {index} out of range")
        newly_locked = False
        if index == self.current_index():
            newly_locked = self._ledger.lock(self._question_ids[index])
        else:
            logger.debug("Ignoring stale timeout for question %s", index)
        return self._result_after(index, newly_locked)

    def _result_after(self, locked_index: int, newly_locked: bool) -> NavigationResult:
        last_index = len(self._question_ids) - 1
        next_index = next(
            (
                candidate
                for candidate in range(locked_index + 1, len(self._question_ids))
                if not self._ledger.is_locked(self._question_ids[candidate])
            ),
            None,
        )
        if next_index is None:
            next_index = self.current_index()
        ready = self._ledger.all_locked()
        if ready:
            next_index = last_index
            logger.info("All questions locked; attempt ready to submit")
        return NavigationResult(
            locked_index=locked_index,
            newly_locked=newly_locked,
            current_index=next_index,
            ready_to_submit=ready,
        )
