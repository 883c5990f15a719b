"""Tests for forward-only navigation."""

from __future__ import annotations

from proctor_app.core.models import SingleSelectResponse
from proctor_app.core.services.answer_ledger import AnswerLedger
from proctor_app.core.services.navigation import NavigationController


class TestNavigationController:
    def test_current_index_is_first_unlocked(self, five_questions) -> None:
        ledger = AnswerLedger(five_questions)
        navigation = NavigationController(five_questions, ledger)
        ledger.lock("q0")
        ledger.lock("q1")
        assert navigation.current_index() == 2
        assert navigation.current_question_id() == "q2"

    def test_advance_locks_and_moves_forward(self, five_questions) -> None:
        ledger = AnswerLedger(five_questions)
        navigation = NavigationController(five_questions, ledger)
        ledger.set_draft("q0", SingleSelectResponse("a"))

        result = navigation.advance()

        assert result.locked_index == 0
        assert result.newly_locked is True
        assert result.current_index == 1
        assert result.ready_to_submit is False
        assert ledger.get_locked("q0") == SingleSelectResponse("a")

    def test_last_advance_signals_ready(self, five_questions) -> None:
        ledger = AnswerLedger(five_questions)
        navigation = NavigationController(five_questions, ledger)
        for _ in range(4):
            navigation.advance()

        result = navigation.advance()

        assert result.ready_to_submit is True
        assert result.current_index == 4
        assert navigation.current_index() == 4
        assert navigation.is_complete() is True

    def test_timeout_after_user_advance_does_not_double_lock(self, five_questions) -> None:
        ledger = AnswerLedger(five_questions)
        navigation = NavigationController(five_questions, ledger)
        navigation.advance()

        result = navigation.on_timeout(0)

        assert result.newly_locked is False
        assert result.current_index == 1
        assert ledger.is_locked("q1") is False

    def test_stale_advance_after_timeout_locks_nothing(self, five_questions) -> None:
        ledger = AnswerLedger(five_questions)
        navigation = NavigationController(five_questions, ledger)
        navigation.on_timeout(0)

        result = navigation.advance(expected_index=0)

        assert result.newly_locked is False
        assert result.locked_index == 0
        assert result.current_index == 1
        assert ledger.is_locked("q1") is False

    def test_advance_with_matching_index_locks(self, five_questions) -> None:
        ledger = AnswerLedger(five_questions)
        navigation = NavigationController(five_questions, ledger)

        result = navigation.advance(expected_index=0)

        assert result.newly_locked is True
        assert ledger.is_locked("q0") is True

    def test_timeout_locks_current_question(self, five_questions) -> None:
        ledger = AnswerLedger(five_questions)
        navigation = NavigationController(five_questions, ledger)

        result = navigation.on_timeout(0)

        assert result.newly_locked is True
        assert ledger.get_locked("q0") is None
        assert result.current_index == 1

    def test_never_regresses(self, five_questions) -> None:
        ledger = AnswerLedger(five_questions)
        navigation = NavigationController(five_questions, ledger)
        seen = []
        for _ in range(5):
            seen.append(navigation.current_index())
            navigation.advance()
        assert seen == sorted(seen)
        assert seen == [0, 1, 2, 3, 4]
