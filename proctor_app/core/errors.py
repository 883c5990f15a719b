"""Exception types raised by the attempt engine."""

from __future__ import annotations


class ProctorError(Exception):
    """Base class for attempt engine errors."""


class ConfigurationError(ProctorError):
    """Raised when an engine component is constructed with an unusable configuration."""


class AttemptStateError(ProctorError, RuntimeError):
    """Raised when an operation does not fit the attempt's lifecycle state."""
