"""Per-question draft and locked answers for one attempt."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
import logging

from proctor_app.core.models import AnswerLedgerEntry, Question, Response, validate_response

logger = logging.getLogger(__name__)


class AnswerLedger:
    """Tracks drafts and enforces the one-way unlocked -> locked transition.

    Writes against a locked entry are rejected by returning ``False``; they are
    an expected race between user input and the timer, not an error.
    """

    def __init__(self, questions: Sequence[Question]) -> None:
        self._questions: dict[str, Question] = {question.id: question for question in questions}
        self._order: list[str] = [question.id for question in questions]
        self._entries: dict[str, AnswerLedgerEntry] = {
            question_id: AnswerLedgerEntry(question_id=question_id) for question_id in self._order
        }

    def set_draft(self, question_id: str, response: Response | None) -> bool:
        """Store a draft. Returns False (and changes nothing) if the entry is locked."""
        entry = self._get(question_id)
        if entry.locked:
            logger.debug("Rejected draft for locked question %s", question_id)
            return False
        entry.draft_response = response
        return True

    def lock(self, question_id: str) -> bool:
        """Lock the current draft. Returns True only for the unlocked -> locked transition."""
        entry = self._get(question_id)
        if entry.locked:
            return False
        question = self._questions[question_id]
        effective = validate_response(question, entry.draft_response)
        if effective is None and entry.draft_response is not None:
            logger.info("Locking question %s with no answer: draft did not fit its type", question_id)
        entry.locked = True
        entry.locked_response = effective
        logger.info("Locked question %s", question_id)
        return True

    def restore_locked(self, question_id: str, response: Response | None) -> bool:
        """Recreate a locked entry from persisted state (resume only)."""
        entry = self._get(question_id)
        if entry.locked:
            return False
        entry.draft_response = response
        return self.lock(question_id)

    def lock_all_remaining(self) -> list[str]:
        """Lock every unlocked entry with its current draft, in quiz order."""
        return [question_id for question_id in self._order if self.lock(question_id)]

    def get_draft(self, question_id: str) -> Response | None:
        return self._get(question_id).draft_response

    def get_locked(self, question_id: str) -> Response | None:
        return self._get(question_id).locked_response

    def is_locked(self, question_id: str) -> bool:
        return self._get(question_id).locked

    def get_entry(self, question_id: str) -> AnswerLedgerEntry:
        return replace(self._get(question_id))

    def get_entries(self) -> list[AnswerLedgerEntry]:
        return [replace(self._entries[question_id]) for question_id in self._order]

    def locked_count(self) -> int:
        return sum(1 for entry in self._entries.values() if entry.locked)

    def all_locked(self) -> bool:
        return all(entry.locked for entry in self._entries.values())

    def _get(self, question_id: str) -> AnswerLedgerEntry:
        try:
            return self._entries[question_id]
        except KeyError:
            raise KeyError(f"Unknown question id: {question_id}") from None
