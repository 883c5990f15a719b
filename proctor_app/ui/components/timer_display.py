"""Countdown label and progress bar with warning and critical emphasis."""

from __future__ import annotations

from PySide6.QtWidgets import QHBoxLayout, QLabel, QProgressBar, QWidget

from proctor_app.constants.ui_constants import (
    TIMER_CRITICAL_BLINK_COLOR,
    TIMER_CRITICAL_COLOR,
    TIMER_WARNING_COLOR,
)
from proctor_app.core.models import CountdownKind
from proctor_app.core.timing_utils import format_time


class TimerDisplay(QWidget):
    """Shows the remaining time of whichever countdown is active."""

    def __init__(self, font_size: int = 14, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._font_size = font_size
        self._level: str = "normal"

        layout = QHBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        self.setLayout(layout)

        self.time_label = QLabel("", self)
        layout.addWidget(self.time_label)

        self.progress = QProgressBar(self)
        self.progress.setRange(0, 1000)
        self.progress.setValue(1000)
        self.progress.setTextVisible(False)
        layout.addWidget(self.progress, stretch=1)

        self._apply_style(blink_state=False)

    def update_time(self, kind: CountdownKind, remaining: int, length: int) -> None:
        prefix = "Question time" if kind is CountdownKind.QUESTION else "Time remaining"
        self.time_label.setText(f"{prefix}: {format_time(remaining)}")
        fraction = 0.0 if length <= 0 else max(0.0, min(1.0, remaining / length))
        self.progress.setValue(int(fraction * 1000))
        self._apply_style(blink_state=(remaining % 2 == 0))

    def show_warning(self) -> None:
        self._level = "warning"
        self._apply_style(blink_state=False)

    def show_critical(self) -> None:
        self._level = "critical"
        self._apply_style(blink_state=False)

    def reset(self) -> None:
        """Back to normal emphasis, used when a new question countdown starts."""
        self._level = "normal"
        self._apply_style(blink_state=False)

    def _apply_style(self, blink_state: bool) -> None:
        base_style = f"padding: 2px 6px; border-radius: 4px; font-size: {self._font_size}pt;"
        if self._level == "warning":
            self.time_label.setStyleSheet(base_style + f" color: #000; background-color: {TIMER_WARNING_COLOR};")
        elif self._level == "critical":
            background = TIMER_CRITICAL_BLINK_COLOR if blink_state else TIMER_CRITICAL_COLOR
            self.time_label.setStyleSheet(base_style + f" color: #fff; background-color: {background};")
        else:
            self.time_label.setStyleSheet(base_style)
