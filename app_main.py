"""Application entry point for the ProctorQt attempt client."""

from __future__ import annotations

from pathlib import Path
import socket
import sys

from PySide6.QtWidgets import QApplication

from proctor_app.constants.network_constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    LAN_PROBE_ADDRESS,
    LOOPBACK_ADDRESS,
)
from proctor_app.core.attempt_registry import AttemptRegistry
from proctor_app.core.clock import QtClockSource
from proctor_app.core.quiz_importer import QuizImportError, load_quiz_from_file
from proctor_app.server.api_server import start_api_server
from proctor_app.ui.attempt_window import AttemptWindow
from proctor_app.utils.logging_config import configure_logging

_SAMPLE_QUIZ = Path(__file__).resolve().parent / "proctor_app" / "data" / "sample_quiz.txt"


def _determine_student_url(port: int) -> str:
    """Best-effort determination of the local IP for the browser-facing URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(LAN_PROBE_ADDRESS)
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = LOOPBACK_ADDRESS
    return f"http://{ip_address}:{port}/"


def main() -> None:
    """Initialize logging, load the quiz, start the API server, and launch the Qt UI."""
    logger = configure_logging()
    logger.info("Starting ProctorQt...")

    quiz_path = Path(sys.argv[1]) if len(sys.argv) > 1 else _SAMPLE_QUIZ
    registry = AttemptRegistry()
    try:
        imported = load_quiz_from_file(quiz_path)
        registry.add_quiz(imported.quiz)
    except (OSError, QuizImportError, ValueError) as exc:
        logger.error("Could not load quiz %s: %s", quiz_path, exc)
        sys.exit(1)

    start_api_server(registry=registry, host=DEFAULT_HOST, port=DEFAULT_PORT)
    student_url = _determine_student_url(DEFAULT_PORT)
    logger.info("Attempt API available at %s", student_url)

    app = QApplication(sys.argv)
    session = registry.start_attempt(imported.quiz.quiz_id, clock=QtClockSource(app))
    window = AttemptWindow(session=session, student_url=student_url)
    window.show()
    exit_code = app.exec()
    registry.shutdown()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
