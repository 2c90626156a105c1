"""Exceptions shared across the task board package."""


class BoardError(Exception):
    """Base class for task board errors."""
    pass


class ValidationError(BoardError):
    """Raised when an intent or task payload fails validation."""
    pass


class ConfigError(BoardError):
    """Raised when configuration is invalid or incomplete."""
    pass
