#!/usr/bin/env python3
"""
Command-line moderation.

    llm-moderate "some text"
    llm-moderate --file items.jsonl --json

Exit codes: 0 allow, 2 review, 3 block, 1 error. In batch mode the worst
action seen decides the exit code.
"""

import argparse, asyncio, json, logging, os, sys
from typing import List, Optional, Tuple

from .config import settings
from .exceptions import ModerationError
from .models import ModerationResult
from .moderate import Moderator, build_moderator

EXIT_CODES = {"allow": 0, "review": 2, "block": 3}
EXIT_ERROR = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llm-moderate",
        description="LLM-backed content moderation (allow / review / block)",
    )
    parser.add_argument("text", nargs="*", help="text to moderate (omit when using --file)")
    parser.add_argument("-f", "--file", help='JSONL file with {"text": "...", "lang": "en"} per line')
    parser.add_argument("--lang", help="language hint (IETF tag, e.g. en, es)")
    parser.add_argument("--json", action="store_true", help="print raw JSON result(s)")
    parser.add_argument("--timeout", type=int, default=settings.timeout_ms, help="classifier timeout per item (ms)")
    return parser


def format_result(res: ModerationResult, json_mode: bool) -> str:
    if json_mode:
        return res.model_dump_json()
    lines = [
        f"action: {res.action.upper()}",
        f"risk: {res.risk:.2f}",
        f"labels: {', '.join(res.labels) or '-'}",
        f"uncertainty: {res.uncertainty:.2f}",
    ]
    if res.explanations:
        lines.append(f"explanations: {' | '.join(res.explanations)}")
    return "\n".join(lines)


def read_jsonl(path: str) -> List[Tuple[str, Optional[str]]]:
    """Read (text, lang) items, skipping blank lines and warning on invalid ones."""
    items = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            trimmed = line.strip()
            if not trimmed:
                continue
            try:
                obj = json.loads(trimmed)
                text = obj.get("text") if isinstance(obj, dict) else None
                if not isinstance(text, str) or not text.strip():
                    raise ValueError("missing text")
            except ValueError:
                print(f"[warn] skipping invalid JSONL line: {trimmed[:120]}", file=sys.stderr)
                continue
            lang = obj.get("lang")
            items.append((text, lang if isinstance(lang, str) else None))
    return items


async def run_single(moderator: Moderator, text: str, args) -> int:
    res = await moderator.moderate(text, lang=args.lang, timeout_ms=args.timeout)
    print(format_result(res, args.json))
    return EXIT_CODES[res.action]


async def run_batch(moderator: Moderator, items: List[Tuple[str, Optional[str]]], args) -> int:
    results = await asyncio.gather(
        *(moderator.moderate(text, lang=lang or args.lang, timeout_ms=args.timeout) for text, lang in items),
        return_exceptions=True,
    )
    worst = 0
    for res in results:
        if isinstance(res, ModerationError):
            print(f"[error] {res}", file=sys.stderr)
            # treat per-item errors as review (fail-safe)
            worst = max(worst, EXIT_CODES["review"])
            continue
        if isinstance(res, BaseException):
            raise res
        print(format_result(res, args.json))
        worst = max(worst, EXIT_CODES[res.action])
    return worst


async def _run_and_close(moderator: Moderator, job, owned: bool) -> int:
    # The HTTP client belongs to this event loop; close it before asyncio.run returns
    try:
        return await job
    finally:
        if owned:
            await moderator.aclose()


def main(argv: Optional[List[str]] = None, moderator: Optional[Moderator] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    inline = " ".join(args.text)

    if args.file and inline:
        print("[error] Provide either TEXT args or --file, not both.", file=sys.stderr)
        return EXIT_ERROR
    if not args.file and not inline.strip():
        parser.print_usage(sys.stderr)
        return EXIT_ERROR

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if args.file:
        if not os.path.exists(args.file):
            print(f"[error] file not found: {args.file}", file=sys.stderr)
            return EXIT_ERROR
        items = read_jsonl(args.file)

    owned = moderator is None
    try:
        moderator = moderator or build_moderator(settings)
        if args.file:
            job = run_batch(moderator, items, args)
        else:
            job = run_single(moderator, inline, args)
        return asyncio.run(_run_and_close(moderator, job, owned))
    except ModerationError as e:
        print(f"[error] {e}", file=sys.stderr)
        return EXIT_ERROR


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
