"""Utilities for importing quizzes from a human-friendly text file.

File format (blocks separated by blank lines or '---'). An optional header
block comes first:

    TITLE: Capitals and languages
    TIMING: total | per-question
    DURATION: minutes (total mode)
    NEGATIVE: 0.25   (optional, penalty per incorrect select answer)

Each following block is one question:

    TYPE: single | multi | free   (optional, defaults to single)
    Q: Question text (supports markdown). Additional lines until the next
       marker are treated as part of the question.
    A: First option text
    B: Second option text        (up to H)
    CORRECT: A            (single) or A,C (multi)
    PROB: A=80, C=60      (optional, probability-weighted multi-select)
    ANSWER: expected text (free, optional exact answer)
    KEYWORDS: one, two    (free, optional keyword grading)
    POINTS: 2             (optional, defaults to 1)
    TIMELIMIT: seconds    (optional, per-question mode, defaults to 60)

Example:

    TYPE: multi
    Q: Which of these are programming languages?
    A: JavaScript
    B: HTML
    C: Python
    CORRECT: A,C
    POINTS: 2
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import uuid

from proctor_app.constants.timing_constants import DEFAULT_TIME_LIMIT_SECONDS
from proctor_app.core.models import (
    NegativeMarking,
    Option,
    Question,
    QuestionType,
    QuizDefinition,
    TimingMode,
    validate_question,
)


class QuizImportError(Exception):
    """Raised when a quiz definition cannot be parsed."""


@dataclass(slots=True)
class ImportedQuiz:
    """Container for imported quiz metadata and questions."""

    source_path: Path
    quiz: QuizDefinition


_OPTION_ORDER = ["A", "B", "C", "D", "E", "F", "G", "H"]
_HEADER_KEYS = ("TITLE:", "TIMING:", "DURATION:", "NEGATIVE:")
_TYPE_ALIASES = {
    "SINGLE": QuestionType.SINGLE_SELECT,
    "SINGLE-SELECT": QuestionType.SINGLE_SELECT,
    "MULTI": QuestionType.MULTI_SELECT,
    "MULTI-SELECT": QuestionType.MULTI_SELECT,
    "FREE": QuestionType.FREE_TEXT,
    "FREE-TEXT": QuestionType.FREE_TEXT,
}


def load_quiz_from_file(file_path: Path) -> ImportedQuiz:
    text = file_path.read_text(encoding="utf-8")
    return ImportedQuiz(source_path=file_path, quiz=parse_quiz_text(text, quiz_id=file_path.stem))


def parse_quiz_text(text: str, quiz_id: str | None = None) -> QuizDefinition:
    blocks = _split_blocks(text)
    header: dict[str, str] = {}
    if blocks and blocks[0].upper().startswith(_HEADER_KEYS):
        header = _parse_header(blocks.pop(0))

    questions = [_parse_block(block, index) for index, block in enumerate(blocks)]
    if not questions:
        raise QuizImportError("Quiz file did not contain any questions.")

    try:
        timing_mode = TimingMode(header.get("TIMING", TimingMode.TOTAL.value).lower())
    except ValueError as exc:
        raise QuizImportError("TIMING must be 'total' or 'per-question'.") from exc

    duration = None
    if "DURATION" in header:
        duration = _parse_positive_number(header["DURATION"], "DURATION")
    elif timing_mode is TimingMode.TOTAL:
        raise QuizImportError("DURATION is required for total timing.")

    negative_marking = NegativeMarking()
    if "NEGATIVE" in header:
        negative_marking = NegativeMarking(
            enabled=True,
            penalty_value=_parse_positive_number(header["NEGATIVE"], "NEGATIVE"),
        )

    return QuizDefinition(
        quiz_id=quiz_id or uuid.uuid4().hex,
        timing_mode=timing_mode,
        questions=questions,
        duration_minutes=duration,
        title=header.get("TITLE", ""),
        negative_marking=negative_marking,
    )


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _parse_header(block: str) -> dict[str, str]:
    header: dict[str, str] = {}
    for raw_line in block.splitlines():
        line = raw_line.strip()
        key, separator, value = line.partition(":")
        if not separator or f"{key.upper()}:" not in _HEADER_KEYS:
            raise QuizImportError(f"Unknown header line: '{line}'.")
        header[key.upper()] = value.strip()
    return header


def _parse_block(block: str, index: int) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    fields: dict[str, str] = {}
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        key, separator, value = line.partition(":")
        if separator and key.upper() in ("TYPE", "CORRECT", "PROB", "ANSWER", "KEYWORDS", "POINTS", "TIMELIMIT"):
            fields[key.upper()] = value.strip()
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError(f"Question {index + 1}: question text missing (Q: ...)")

    question_type = _TYPE_ALIASES.get(fields.get("TYPE", "SINGLE").upper())
    if question_type is None:
        raise QuizImportError(f"Question {index + 1}: TYPE must be single, multi or free.")

    question = Question(
        id=f"q{index + 1}",
        type=question_type,
        text=question_text,
        points=_parse_positive_number(fields.get("POINTS", "1"), "POINTS"),
        time_limit_seconds=_parse_time_limit(fields.get("TIMELIMIT")),
        options=_build_options(options, fields, index) if question_type is not QuestionType.FREE_TEXT else [],
        correct_answer=fields.get("ANSWER") or None,
        keywords=[keyword.strip() for keyword in fields.get("KEYWORDS", "").split(",") if keyword.strip()],
    )
    if question_type is QuestionType.FREE_TEXT and options:
        raise QuizImportError(f"Question {index + 1}: free-text questions cannot define options.")

    try:
        validate_question(question)
    except ValueError as exc:
        raise QuizImportError(str(exc)) from exc
    return question


def _build_options(options: dict[str, str], fields: dict[str, str], index: int) -> list[Option]:
    letters = [letter for letter in _OPTION_ORDER if letter in options]
    if letters != _OPTION_ORDER[: len(letters)]:
        raise QuizImportError(f"Question {index + 1}: options must be lettered consecutively from A.")
    if any(not options[letter].strip() for letter in letters):
        raise QuizImportError("Option text cannot be empty.")

    correct = {letter.strip().upper() for letter in fields.get("CORRECT", "").split(",") if letter.strip()}
    unknown = correct - set(letters)
    if unknown:
        raise QuizImportError(f"Question {index + 1}: CORRECT refers to unknown options {sorted(unknown)}.")

    probabilities = _parse_probabilities(fields.get("PROB", ""), letters, index)
    return [
        Option(
            id=letter,
            text=options[letter].strip(),
            is_correct=letter in correct,
            probability=probabilities.get(letter),
        )
        for letter in letters
    ]


def _parse_probabilities(raw: str, letters: list[str], index: int) -> dict[str, float]:
    probabilities: dict[str, float] = {}
    for item in raw.split(","):
        if not item.strip():
            continue
        letter, separator, value = item.partition("=")
        letter = letter.strip().upper()
        if not separator or letter not in letters:
            raise QuizImportError(f"Question {index + 1}: PROB entries look like 'A=80'.")
        try:
            probabilities[letter] = float(value)
        except ValueError as exc:
            raise QuizImportError(f"Question {index + 1}: PROB values must be numbers.") from exc
    return probabilities


def _parse_time_limit(raw_value: str | None) -> int:
    if raw_value is None:
        return DEFAULT_TIME_LIMIT_SECONDS
    if not raw_value:
        raise QuizImportError("TIMELIMIT must include an integer value.")
    try:
        parsed_value = int(raw_value)
    except ValueError as exc:
        raise QuizImportError("TIMELIMIT must be an integer number of seconds.") from exc
    if parsed_value <= 0:
        raise QuizImportError("TIMELIMIT must be a positive integer.")
    return parsed_value


def _parse_positive_number(raw_value: str, name: str) -> float:
    try:
        value = float(raw_value)
    except ValueError as exc:
        raise QuizImportError(f"{name} must be a number.") from exc
    if value <= 0:
        raise QuizImportError(f"{name} must be positive.")
    return int(value) if value.is_integer() else value
