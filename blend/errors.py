"""
Blend - Scoring Core Errors

Only programmer/usage errors are raised by the core. Well-typed but incomplete
data never raises; it degrades to neutral scores instead.
"""


class ScoringError(Exception):
    pass


class InvalidEventError(ScoringError, ValueError):
    """A view event that cannot be recorded without corrupting aggregates."""

    def __init__(self, field: str, value, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid view event: {field}={value!r} ({reason})")


class ConfigurationError(ScoringError, ValueError):
    def __init__(self, setting: str, reason: str):
        self.setting = setting
        self.reason = reason
        super().__init__(f"Invalid configuration for {setting}: {reason}")
