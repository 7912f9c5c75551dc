"""Exceptions for the moderation engine."""

from typing import Optional


class ModerationError(Exception):
    """Base exception for moderation errors."""
    pass


class ConfigurationError(ModerationError):
    """Required configuration is missing or invalid. Fatal at construction time."""
    pass


class InvalidInputError(ModerationError):
    """Caller input was rejected before reaching the classifier."""
    pass


class ProviderError(ModerationError):
    """The remote classification provider failed."""
    def __init__(self, message, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ClassifierOutputError(ModerationError):
    """Classifier output could not be parsed or failed schema validation."""
    pass
