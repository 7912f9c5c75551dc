"""LLM Moderation - fail-safe text moderation over a generative classifier."""

from .classifier import Classifier, FailureKind, ResilientClassifier, fallback_response
from .decision import apply_policy, compute_risk, decide_action, derive_labels
from .exceptions import (
    ClassifierOutputError,
    ConfigurationError,
    InvalidInputError,
    ModerationError,
    ProviderError,
)
from .models import ClassifierResponse, ModerationResult
from .moderate import Moderator, build_moderator, moderate_text

__version__ = "1.0.0"
__all__ = [
    "Classifier", "FailureKind", "ResilientClassifier", "fallback_response",
    "apply_policy", "compute_risk", "decide_action", "derive_labels",
    "ClassifierOutputError", "ConfigurationError", "InvalidInputError", "ModerationError", "ProviderError",
    "ClassifierResponse", "ModerationResult",
    "Moderator", "build_moderator", "moderate_text",
]
