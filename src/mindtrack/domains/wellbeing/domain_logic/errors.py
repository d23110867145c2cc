"""Error types shared by the scoring, analytics, and recurrence cores."""

from __future__ import annotations

from typing import Any


class ValidationError(ValueError):
    """Raised when caller-supplied input is malformed or out of range.

    Never retried and never silently corrected: the caller must fix the
    input. ``field`` and ``value`` identify the offending input so command
    layers can report it precisely.
    """

    def __init__(self, message: str, *, field: str = "", value: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class ConfigurationError(Exception):
    """Raised when seeded catalog data is inconsistent.

    Detected at catalog-load time; indicates a data error, not a runtime
    condition.
    """
