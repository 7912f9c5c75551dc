"""
Tolerant extraction and validation of JSON emitted by a generative classifier.
Model output may wrap the JSON object in prose despite instructions.
"""

import json
from typing import Optional
from pydantic import ValidationError

from .exceptions import ClassifierOutputError
from .models import ClassifierOutput, ClassifierResponse


def extract_first_json_object(source: str) -> Optional[str]:
    """
    Return the first balanced top-level ``{...}`` substring, or None.

    Braces inside double-quoted strings (including escaped quotes) do not count
    toward nesting depth. Structural validity is left to ``validate``.
    """
    start = source.find("{")
    if start < 0:
        return None

    depth = 0
    in_str = False
    escaped = False

    for idx in range(start, len(source)):
        ch = source[idx]

        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue

        if ch == '"':
            in_str = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return source[start:idx + 1]
    return None


def validate(candidate_json: str) -> ClassifierResponse:
    """
    Parse and schema-check a candidate JSON object.

    Raises:
        ClassifierOutputError: On decode errors, a non-object document, or any
            schema or range violation
    """
    try:
        obj = json.loads(candidate_json)
    except RecursionError:
        raise ClassifierOutputError("invalid JSON: nested too deeply")
    except ValueError as e:
        raise ClassifierOutputError(f"invalid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise ClassifierOutputError("classifier output must be a JSON object")
    try:
        output = ClassifierOutput.model_validate(obj)
    except ValidationError as e:
        raise ClassifierOutputError(f"schema violation: {e.error_count()} error(s)") from e
    return ClassifierResponse(**output.model_dump())


def parse_model_text(text: str) -> Optional[ClassifierResponse]:
    """Extract and validate; None on any failure."""
    candidate = extract_first_json_object(text)
    if candidate is None:
        return None
    try:
        return validate(candidate)
    except ClassifierOutputError:
        return None
