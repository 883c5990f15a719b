"""Qt UI components for the attempt application."""

from .attempt_window import AttemptWindow
from .dialog_helpers import (
    confirm_next_question,
    show_error,
    show_info,
)

__all__ = [
    "AttemptWindow",
    "confirm_next_question",
    "show_error",
    "show_info",
]
