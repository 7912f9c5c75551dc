import yaml
from types import MappingProxyType
from typing import Any, Dict, Mapping, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .categories import CATEGORIES, is_category

DEFAULT_REVIEW_LOW = 0.70
DEFAULT_BLOCK = 0.85

UNCERTAINTY_WIDEN_THRESHOLD = 0.5
UNCERTAINTY_WIDEN_DELTA = 0.05


class CategoryThreshold(BaseModel):
    """
    Per-category decision bands.

    Decisions read only review_low and block: a score in [review_low, block)
    reviews and a score >= block blocks. review_high is kept for configuration
    files and is widened together with block, but it gates nothing, so a score
    between review_high and block still reviews, never allows.
    """
    model_config = ConfigDict(frozen=True)

    review_low: float = Field(ge=0.0, le=1.0)
    review_high: float = Field(ge=0.0, le=1.0)
    block: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_order(self):
        if not (self.review_low <= self.review_high <= self.block):
            raise ValueError(
                f"thresholds must satisfy review_low <= review_high <= block, got "
                f"{self.review_low}, {self.review_high}, {self.block}"
            )
        return self


Thresholds = Mapping[str, CategoryThreshold]


def _make(review_low: float = DEFAULT_REVIEW_LOW, block: float = DEFAULT_BLOCK) -> CategoryThreshold:
    return CategoryThreshold(review_low=review_low, review_high=block, block=block)


def default_thresholds() -> Dict[str, CategoryThreshold]:
    """
    Default thresholds, one entry per category.

    The highest-harm categories get a lower block floor: a false negative there
    costs far more than a false positive.
    """
    thresholds = {}
    for c in CATEGORIES:
        if c in ("sexual_minors", "csam_signal"):
            thresholds[c] = _make(review_low=0.40, block=0.60)
        elif c == "extremism":
            thresholds[c] = _make(review_low=0.65, block=0.80)
        else:
            thresholds[c] = _make()
    return thresholds


DEFAULT_THRESHOLDS: Thresholds = MappingProxyType(default_thresholds())


def widen_for_uncertainty(
    thresholds: Thresholds,
    uncertainty: float,
    delta: float = UNCERTAINTY_WIDEN_DELTA,
) -> Thresholds:
    """
    Raise review_high and block by ``delta`` (capped at 1.0) when uncertainty is high.

    review_low never moves. Below the widening threshold the argument itself is
    returned; otherwise a new mapping is built and the argument is left untouched.
    """
    if uncertainty < UNCERTAINTY_WIDEN_THRESHOLD:
        return thresholds

    widened = {}
    for cat, thr in thresholds.items():
        widened[cat] = CategoryThreshold(
            review_low=thr.review_low,
            review_high=min(1.0, thr.review_high + delta),
            block=min(1.0, thr.block + delta),
        )
    return widened


def with_overrides(
    base: Thresholds,
    overrides: Mapping[str, Union[CategoryThreshold, Mapping[str, Any]]],
) -> Dict[str, CategoryThreshold]:
    """Return a copy of ``base`` with the named categories replaced."""
    merged = dict(base)
    for cat, value in overrides.items():
        if not is_category(cat):
            raise ValueError(f"Unknown category in threshold overrides: {cat}")
        if isinstance(value, CategoryThreshold):
            merged[cat] = value
        else:
            merged[cat] = CategoryThreshold(**value)
    return merged


def load_thresholds(path: str, base: Thresholds = DEFAULT_THRESHOLDS) -> Dict[str, CategoryThreshold]:
    """
    Load threshold overrides from a YAML document and apply them over ``base``.

    Expected shape::

        version: 1
        categories:
          hate: {review_low: 0.6, review_high: 0.8, block: 0.8}
    """
    with open(path, "r", encoding="utf-8") as f:
        doc = yaml.safe_load(f) or {}
    if not isinstance(doc, dict):
        raise ValueError(f"Threshold file {path} must contain a mapping")
    categories = doc.get("categories") or {}
    if not isinstance(categories, dict):
        raise ValueError(f"'categories' in {path} must be a mapping")
    return with_overrides(base, categories)
