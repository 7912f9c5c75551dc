"""
Decision engine: turns a score vector and thresholds into a moderation result.
All functions here are pure; they own no state and perform no I/O.
"""

import logging
from typing import List, Mapping, Optional, Sequence

from .categories import CATEGORIES
from .models import Action, ModerationResult, MAX_EVIDENCE_ITEMS
from .thresholds import DEFAULT_THRESHOLDS, Thresholds, widen_for_uncertainty

logger = logging.getLogger(__name__)


def compute_risk(scores: Mapping[str, float]) -> float:
    """Aggregate risk is the maximum category score."""
    return max(scores[c] for c in CATEGORIES)


def derive_labels(scores: Mapping[str, float], thresholds: Thresholds) -> List[str]:
    """Categories whose score reaches the review band floor (review or block range)."""
    return [c for c in CATEGORIES if scores[c] >= thresholds[c].review_low]


def _first_blocking(scores: Mapping[str, float], thresholds: Thresholds) -> Optional[str]:
    for c in CATEGORIES:
        if scores[c] >= thresholds[c].block:
            return c
    return None


def decide_action(scores: Mapping[str, float], thresholds: Thresholds) -> Action:
    """
    Block beats review beats allow.

    Any score at or above its category's block floor blocks. Otherwise any score at
    or above its review floor (and so below block) asks for review.
    """
    any_review = False
    for c in CATEGORIES:
        s = scores[c]
        thr = thresholds[c]
        if s >= thr.block:
            return "block"
        if s >= thr.review_low:
            any_review = True
    return "review" if any_review else "allow"


def apply_policy(
    scores: Mapping[str, float],
    uncertainty: float = 0.0,
    explanations: Optional[Sequence[str]] = None,
    thresholds: Optional[Thresholds] = None,
) -> ModerationResult:
    """
    Compose the policy: widen thresholds for uncertainty, decide the action,
    derive labels and risk, and assemble the result.

    Args:
        scores: Complete score vector
        uncertainty: Classifier-reported uncertainty in [0,1]
        explanations: Short non-PII reasons, truncated to three
        thresholds: Per-call thresholds; defaults to DEFAULT_THRESHOLDS

    Returns:
        ModerationResult with ``allowed`` true iff the action is allow
    """
    thr = widen_for_uncertainty(thresholds if thresholds is not None else DEFAULT_THRESHOLDS, uncertainty)

    action = decide_action(scores, thr)
    if action == "block":
        logger.debug(f"Blocking on category {_first_blocking(scores, thr)}")

    return ModerationResult(
        action=action,
        allowed=action == "allow",
        risk=compute_risk(scores),
        labels=derive_labels(scores, thr),
        scores={c: scores[c] for c in CATEGORIES},
        uncertainty=uncertainty,
        explanations=list(explanations or [])[:MAX_EVIDENCE_ITEMS],
    )
