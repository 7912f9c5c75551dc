"""
Fixed moderation category vocabulary and the zero score vector.
"""

from types import MappingProxyType
from typing import Dict, Mapping

# Iteration order is significant only for deterministic output and log order.
CATEGORIES = (
    "hate",
    "harassment",
    "self_harm",
    "sexual",
    "sexual_minors",
    "violence",
    "extremism",
    "politics",
    "spam",
    "scam",
    "csam_signal",
)

# Shared baseline; read-only so no consumer can corrupt it in place.
EMPTY_SCORES: Mapping[str, float] = MappingProxyType({c: 0.0 for c in CATEGORIES})


def empty_scores() -> Dict[str, float]:
    """Return a fresh, mutable all-zero score vector."""
    return dict(EMPTY_SCORES)


def is_category(name: str) -> bool:
    return name in EMPTY_SCORES
