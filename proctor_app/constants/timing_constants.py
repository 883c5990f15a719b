"""Timing-related constants shared across the attempt engine and UI layers."""

DEFAULT_TIME_LIMIT_SECONDS: int = 60
TICK_INTERVAL_MS: int = 1000
WARNING_THRESHOLD_PERCENT: float = 25.0
CRITICAL_THRESHOLD_PERCENT: float = 10.0
TIMING_SAVE_INTERVAL_SECONDS: int = 5

MIN_DURATION_MINUTES: int = 1
MAX_DURATION_MINUTES: int = 300
MIN_QUESTION_TIME_LIMIT_SECONDS: int = 10
MAX_QUESTION_TIME_LIMIT_SECONDS: int = 3600

DEFAULT_FREE_TEXT_MAX_LENGTH: int = 1000
