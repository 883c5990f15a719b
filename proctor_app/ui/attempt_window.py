"""Qt main window that lets a student take one timed attempt."""

from __future__ import annotations

from collections.abc import Callable

from PySide6.QtGui import QCloseEvent, QTextCursor
from PySide6.QtWidgets import (
    QAbstractButton,
    QButtonGroup,
    QCheckBox,
    QLabel,
    QMainWindow,
    QPlainTextEdit,
    QPushButton,
    QRadioButton,
    QTextBrowser,
    QVBoxLayout,
    QWidget,
)

from proctor_app.constants.ui_constants import (
    ANSWER_TOO_LONG_NOTICE,
    FREE_TEXT_PLACEHOLDER,
    LOCKED_NOTICE,
    MANUAL_REVIEW_NOTICE,
    NEXT_BUTTON,
    QUIZ_SUBMITTED_MESSAGE,
    SUBMIT_BUTTON,
    TIME_EXPIRED_MESSAGE,
    WINDOW_TITLE,
)
from proctor_app.core.attempt_session import AttemptSession
from proctor_app.core.errors import AttemptStateError
from proctor_app.core.markdown_renderer import renderer
from proctor_app.core.models import (
    AttemptStatus,
    CountdownKind,
    FreeTextResponse,
    MultiSelectResponse,
    Question,
    QuestionType,
    Response,
    SingleSelectResponse,
    TimingMode,
)
from proctor_app.ui.components.timer_display import TimerDisplay
from proctor_app.ui.dialog_helpers import confirm_next_question, show_error, show_info


class AttemptWindow(QMainWindow):
    """Renders the current question, forwards drafts and reacts to timer events."""

    def __init__(self, session: AttemptSession, student_url: str | None = None) -> None:
        super().__init__()
        self.setWindowTitle(WINDOW_TITLE)
        self.session = session
        self.student_url = student_url

        self._rendered_question_id: str | None = None
        self._option_buttons: list[QAbstractButton] = []
        self._button_group: QButtonGroup | None = None
        self._text_edit: QPlainTextEdit | None = None
        self._result_shown = False

        self._build_ui()
        events = session.events
        self._unsubscribers: list[Callable[[], None]] = [
            events.on_time_update(self._handle_time_update),
            events.on_warning(lambda kind, remaining: self.timer_display.show_warning()),
            events.on_critical(lambda kind, remaining: self.timer_display.show_critical()),
            events.on_question_timeout(self._handle_question_timeout),
            events.on_time_expired(self._handle_time_expired),
        ]
        self.refresh()

    def _build_ui(self) -> None:
        central = QWidget(self)
        layout = QVBoxLayout()
        central.setLayout(layout)
        self.setCentralWidget(central)

        quiz = self.session.get_quiz()
        self.title_label = QLabel(quiz.title or WINDOW_TITLE, self)
        self.title_label.setStyleSheet("font-size: 16pt; font-weight: bold;")
        layout.addWidget(self.title_label)

        if self.student_url:
            self.network_label = QLabel(f"Browser clients connect to: {self.student_url}", self)
            self.network_label.setWordWrap(True)
            layout.addWidget(self.network_label)

        self.progress_label = QLabel("", self)
        layout.addWidget(self.progress_label)

        self.timer_display = TimerDisplay(parent=self)
        layout.addWidget(self.timer_display)

        self.question_view = QTextBrowser(self)
        self.question_view.setOpenExternalLinks(True)
        layout.addWidget(self.question_view, stretch=1)

        self.answer_container = QWidget(self)
        self.answer_layout = QVBoxLayout()
        self.answer_container.setLayout(self.answer_layout)
        layout.addWidget(self.answer_container)

        self.status_label = QLabel("", self)
        self.status_label.setWordWrap(True)
        layout.addWidget(self.status_label)

        self.next_button = QPushButton(NEXT_BUTTON, self)
        self.next_button.clicked.connect(self._handle_next)
        layout.addWidget(self.next_button)

    # --- Rendering ---

    def refresh(self) -> None:
        if self.session.is_finished():
            self._show_result()
            return

        quiz = self.session.get_quiz()
        index = self.session.get_current_index()
        question = self.session.get_current_question()
        is_last = index == len(quiz.questions) - 1
        self.progress_label.setText(f"Question {index + 1} of {len(quiz.questions)}")
        self.next_button.setText(SUBMIT_BUTTON if is_last else NEXT_BUTTON)

        if question.id != self._rendered_question_id:
            self._render_question(question)
            if quiz.timing_mode is TimingMode.PER_QUESTION:
                self.timer_display.reset()
            self.status_label.setText("")

    def _render_question(self, question: Question) -> None:
        self._clear_answer_widgets()
        self._rendered_question_id = question.id
        self.question_view.setHtml(renderer.render_fragment(question.text))

        if question.type is QuestionType.FREE_TEXT:
            self._text_edit = QPlainTextEdit(self.answer_container)
            self._text_edit.setPlaceholderText(FREE_TEXT_PLACEHOLDER)
            self._text_edit.textChanged.connect(self._handle_answer_changed)
            self.answer_layout.addWidget(self._text_edit)
            return

        self._button_group = QButtonGroup(self.answer_container)
        self._button_group.setExclusive(question.type is QuestionType.SINGLE_SELECT)
        for option in question.options:
            if question.type is QuestionType.SINGLE_SELECT:
                button: QAbstractButton = QRadioButton(option.text, self.answer_container)
            else:
                button = QCheckBox(option.text, self.answer_container)
            button.setProperty("option_id", option.id)
            button.toggled.connect(self._handle_answer_changed)
            self._button_group.addButton(button)
            self._option_buttons.append(button)
            self.answer_layout.addWidget(button)

    def _clear_answer_widgets(self) -> None:
        for button in self._option_buttons:
            button.deleteLater()
        self._option_buttons = []
        if self._button_group is not None:
            self._button_group.deleteLater()
            self._button_group = None
        if self._text_edit is not None:
            self._text_edit.deleteLater()
            self._text_edit = None

    def _current_response(self, question: Question) -> Response | None:
        if question.type is QuestionType.FREE_TEXT:
            text = self._text_edit.toPlainText() if self._text_edit is not None else ""
            return FreeTextResponse(text) if text.strip() else None
        selected = [str(button.property("option_id")) for button in self._option_buttons if button.isChecked()]
        if not selected:
            return None
        if question.type is QuestionType.SINGLE_SELECT:
            return SingleSelectResponse(selected[0])
        return MultiSelectResponse(frozenset(selected))

    def _show_result(self) -> None:
        if self._result_shown:
            return
        self._result_shown = True
        self.next_button.setEnabled(False)
        for button in self._option_buttons:
            button.setEnabled(False)
        if self._text_edit is not None:
            self._text_edit.setReadOnly(True)

        result = self.session.get_result()
        if result is None:
            return
        expired = self.session.get_status() is AttemptStatus.TIME_UP
        lines = [TIME_EXPIRED_MESSAGE if expired else QUIZ_SUBMITTED_MESSAGE]
        lines.append(f"Score: {result.total_score} / {result.max_score}")
        if result.negative_marking_applied:
            lines.append(f"Net score after negative marking: {result.net_score}")
        if result.requires_manual_review:
            lines.append(MANUAL_REVIEW_NOTICE)
        message = "\n".join(lines)
        self.status_label.setText(message)
        show_info(self, "Quiz submitted", message)

    # --- User actions ---

    def _handle_answer_changed(self, *_args: object) -> None:
        if self.session.is_finished():
            return
        question = self.session.get_current_question()
        if question.id != self._rendered_question_id:
            return
        if self._truncate_free_text(question):
            return
        try:
            accepted = self.session.set_draft(question.id, self._current_response(question))
        except (AttemptStateError, ValueError) as exc:
            self.status_label.setText(str(exc))
            return
        if not accepted:
            self.status_label.setText(LOCKED_NOTICE)

    def _truncate_free_text(self, question: Question) -> bool:
        """Cut typed or pasted text back to the question's limit; the edit re-fires textChanged."""
        if self._text_edit is None or question.max_length <= 0:
            return False
        text = self._text_edit.toPlainText()
        if len(text) <= question.max_length:
            return False
        self._text_edit.setPlainText(text[: question.max_length])
        self._text_edit.moveCursor(QTextCursor.MoveOperation.End)
        self.status_label.setText(ANSWER_TOO_LONG_NOTICE.format(limit=question.max_length))
        return True

    def _handle_next(self) -> None:
        quiz = self.session.get_quiz()
        question_id = self._rendered_question_id
        is_last = self.session.get_current_index() == len(quiz.questions) - 1
        if not confirm_next_question(self, is_last):
            return
        try:
            self.session.next_question(question_id)
        except AttemptStateError as exc:
            show_error(self, "Cannot continue", str(exc))
            return
        self.refresh()

    # --- Timer events ---

    def _handle_time_update(self, kind: CountdownKind, remaining: int, question_index: int | None) -> None:
        quiz = self.session.get_quiz()
        if kind is CountdownKind.QUESTION and question_index is not None:
            length = quiz.questions[question_index].time_limit_seconds
        else:
            length = quiz.duration_seconds or 0
        self.timer_display.update_time(kind, remaining, length)

    def _handle_question_timeout(self, index: int) -> None:
        self.status_label.setText(f"Time is up for question {index + 1}; your answer was locked.")
        self.refresh()

    def _handle_time_expired(self, mode: TimingMode) -> None:
        self.refresh()

    def closeEvent(self, event: QCloseEvent) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        if not self.session.is_finished():
            self.session.abandon()
        super().closeEvent(event)
