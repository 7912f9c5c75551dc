import regex
from dataclasses import dataclass, field
from typing import List, Tuple

# High-precision PII patterns, in priority order
PATTERNS = {
    "EMAIL": regex.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    "SSN": regex.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    "CARD": regex.compile(r"\b(?:\d[ -]?){12,18}\d\b"),
    "PHONE": regex.compile(r"(?<!\w)(?:\+?\d{1,3}[\s.-]?)?(?:\(?\d{2,4}\)?[\s.-]?)?\d{3,4}[\s.-]?\d{4}\b"),
    "ADDRESS": regex.compile(
        r"\b\d{1,5}\s+(?:[A-Za-z0-9]+\s){1,4}"
        r"(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Lane|Ln|Drive|Dr)\b\.?",
        regex.IGNORECASE,
    ),
}

PRIORITY = list(PATTERNS)


@dataclass
class RedactionEntry:
    token: str
    value: str


@dataclass
class RedactResult:
    redacted: str
    map: List[RedactionEntry] = field(default_factory=list)


def luhn_check(card_number: str) -> bool:
    """
    Validate credit card number using Luhn algorithm.
    Returns True if valid, False otherwise.
    """
    card_number = card_number.replace(" ", "").replace("-", "")
    if not card_number.isdigit() or not 13 <= len(card_number) <= 19:
        return False

    total = 0
    for i, digit in enumerate(reversed(card_number)):
        n = int(digit)
        if i % 2 == 1:  # Every second digit from right
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


def validate_ssn_format(ssn: str) -> bool:
    """
    Validate SSN area number: not 000, 666, or 900-999.
    """
    parts = ssn.split("-")
    if len(parts) != 3:
        return False
    area = int(parts[0])
    return not (area == 0 or area == 666 or area >= 900)


def find_spans(text: str) -> List[Tuple[str, Tuple[int, int]]]:
    """
    Find PII spans in text with validation.
    Returns list of (name, (start, end)) tuples, non-overlapping, in text order.
    """
    spans = []
    for name in PRIORITY:
        for m in PATTERNS[name].finditer(text):
            matched_text = m.group(0)
            if name == "CARD" and not luhn_check(matched_text):
                continue
            if name == "SSN" and not validate_ssn_format(matched_text):
                continue
            spans.append((name, (m.start(), m.end())))

    # Earliest start wins; on equal start, the higher-priority pattern wins
    spans.sort(key=lambda x: (x[1][0], PRIORITY.index(x[0])))
    merged = []
    for name, (s, e) in spans:
        if merged and s < merged[-1][1][1]:
            continue
        merged.append((name, (s, e)))
    return merged


def redact_pii(text: str) -> RedactResult:
    """
    Replace PII with stable ``[NAME]`` tokens.

    Pure and deterministic for identical input. The returned map is reversible
    but is never persisted or logged.
    """
    out = []
    entries = []
    last = 0
    for name, (s, e) in find_spans(text):
        token = f"[{name}]"
        out.append(text[last:s])
        out.append(token)
        entries.append(RedactionEntry(token=token, value=text[s:e]))
        last = e
    out.append(text[last:])
    return RedactResult(redacted="".join(out), map=entries)
