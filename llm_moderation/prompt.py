"""
Strict-JSON moderation prompt for a generative classifier.
"""

import json
from typing import Optional

from .categories import CATEGORIES

_SCHEMA = json.dumps(
    {
        "scores": {c: 0 for c in CATEGORIES},
        "labels": [],
        "evidence": [],
        "uncertainty": 0,
    },
    separators=(",", ":"),
)


def build_moderation_prompt(redacted_text: str, lang: Optional[str] = None) -> str:
    """Build a short, deterministic prompt. The text must already be redacted."""
    lines = [
        "You are a content-moderation classifier.",
        "Return ONLY valid minified JSON per this schema, no markdown or prose:",
        _SCHEMA,
        "Rules: every score in [0,1]; evidence max 3 short items; do not include PII; "
        "if unsure increase uncertainty.",
    ]
    if lang:
        lines.append(f"Language hint: {lang}")
    lines.append("Text:")
    lines.append(json.dumps(redacted_text, ensure_ascii=False))
    return "\n".join(lines)
