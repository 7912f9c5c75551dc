from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Literal, Optional
import json, math

from .categories import CATEGORIES, is_category

Action = Literal["allow", "review", "block"]

MAX_EVIDENCE_ITEMS = 3
MAX_EVIDENCE_CHARS = 200


def _unit_number(value: Any, name: str) -> float:
    # bool is an int subclass; numeric strings must not be coerced either
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number")
    try:
        value = float(value)
    except OverflowError:
        raise ValueError(f"{name} out of range [0,1]: too large")
    if math.isnan(value) or value < 0.0 or value > 1.0:
        raise ValueError(f"{name} out of range [0,1]: {value}")
    return value


class ClassifierOutput(BaseModel):
    """Schema the remote classifier must satisfy."""
    model_config = ConfigDict(frozen=True)

    scores: Dict[str, float]
    labels: List[str] = []
    evidence: List[str] = []
    uncertainty: float = 0.0

    @field_validator("scores", mode="before")
    @classmethod
    def _check_scores(cls, value: Any) -> Dict[str, float]:
        if not isinstance(value, dict):
            raise ValueError("scores must be an object")
        missing = [c for c in CATEGORIES if c not in value]
        if missing:
            raise ValueError(f"scores missing categories: {', '.join(missing)}")
        unknown = [k for k in value if not is_category(k)]
        if unknown:
            raise ValueError(f"scores has unknown categories: {', '.join(map(str, unknown))}")
        return {c: _unit_number(value[c], f"scores.{c}") for c in CATEGORIES}

    @field_validator("labels", mode="before")
    @classmethod
    def _check_labels(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            raise ValueError("labels must be an array")
        labels: List[str] = []
        for item in value:
            if not isinstance(item, str) or not is_category(item):
                raise ValueError(f"unknown label: {item!r}")
            if item not in labels:
                labels.append(item)
        return labels

    @field_validator("evidence", mode="before")
    @classmethod
    def _check_evidence(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            raise ValueError("evidence must be an array")
        if len(value) > MAX_EVIDENCE_ITEMS:
            raise ValueError(f"at most {MAX_EVIDENCE_ITEMS} evidence items allowed")
        for item in value:
            if not isinstance(item, str) or not (1 <= len(item) <= MAX_EVIDENCE_CHARS):
                raise ValueError(f"evidence items must be strings of 1-{MAX_EVIDENCE_CHARS} characters")
        return value

    @field_validator("uncertainty", mode="before")
    @classmethod
    def _check_uncertainty(cls, value: Any) -> float:
        return _unit_number(value, "uncertainty")


class ClassifierResponse(ClassifierOutput):
    """
    Validated classifier output, real or synthesized.

    ``fallback_reason`` is set only on fallback objects built by the orchestrator;
    it is never read from model output.
    """
    fallback_reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.fallback_reason is not None

    def to_json(self) -> str:
        """Serialize the schema fields only, in the shape the classifier emits."""
        return json.dumps(
            self.model_dump(include={"scores", "labels", "evidence", "uncertainty"}),
            ensure_ascii=False,
        )


class ModerationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: Action
    allowed: bool
    risk: float
    labels: List[str] = []
    scores: Dict[str, float]
    uncertainty: float
    explanations: List[str] = []


class ModerateRequest(BaseModel):
    text: str = Field(min_length=1)
    lang: Optional[str] = Field(default=None, min_length=2, max_length=10)
