"""Qt UI constants used by the attempt window."""

WINDOW_TITLE: str = "ProctorQt Attempt"
NEXT_BUTTON: str = "Next Question"
SUBMIT_BUTTON: str = "Submit Quiz"
FREE_TEXT_PLACEHOLDER: str = "Type your answer here."
LOCKED_NOTICE: str = "This answer is locked and can no longer be changed."
ANSWER_TOO_LONG_NOTICE: str = "Answers are limited to {limit} characters."
TIME_EXPIRED_MESSAGE: str = "Time expired! Your quiz has been submitted automatically."
QUIZ_SUBMITTED_MESSAGE: str = "Your quiz has been submitted."
MANUAL_REVIEW_NOTICE: str = "Some answers require manual review before your result is final."

TIMER_WARNING_COLOR: str = "#f59e0b"
TIMER_CRITICAL_COLOR: str = "#ef4444"
TIMER_CRITICAL_BLINK_COLOR: str = "#b91c1c"
