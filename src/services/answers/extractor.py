"""Recover structured answers from an untrusted model reply.

Strategies run in a fixed order and the first one that yields a usable
candidate wins:

1. direct_json    - the whole reply is JSON
2. fenced_json    - the reply is a ```json fenced block
3. brace_json     - greedy first "{" to last "}" substring is JSON
4. numbered_lines - "<digits>. <text>" lines
5. raw_text       - the trimmed reply as one answer

A JSON strategy only counts when the decoded value has a usable shape
(`{"answers": [...]}`, `{"answer": ...}` or a bare list); anything else lets
the cascade continue. Every function here is pure and never raises on bad
input.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

from services.answers.models import (
    ExtractionCandidate,
    ExtractionFailure,
    NumberedAnswers,
    SingleAnswer,
    Strategy,
)


_FENCE = re.compile(r"^\s*```(?:json)?\s*([\s\S]*?)\s*```\s*$", re.IGNORECASE)
_BRACES = re.compile(r"\{[\s\S]*\}")
# "12. text" but not "1.5 apples"
_NUMBERED_LINE = re.compile(r"^\s*(\d{1,9})\.(?!\d)\s*(\S.*)$")


def _loads(text: str) -> Any | None:
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def _shape(parsed: Any, strategy: Strategy) -> ExtractionCandidate | None:
    """Map decoded JSON onto a candidate, or None if the shape is unusable."""
    if isinstance(parsed, list):
        return NumberedAnswers(items=tuple(parsed), strategy=strategy)
    if not isinstance(parsed, dict):
        return None
    answers = parsed.get("answers")
    if isinstance(answers, list):
        return NumberedAnswers(items=tuple(answers), strategy=strategy)
    answer = parsed.get("answer")
    if answer is not None and str(answer).strip():
        return SingleAnswer(value=answer, strategy=strategy)
    return None


def parse_direct(text: str) -> ExtractionCandidate | None:
    return _shape(_loads(text), "direct_json")


def parse_fenced(text: str) -> ExtractionCandidate | None:
    match = _FENCE.match(text)
    if not match:
        return None
    return _shape(_loads(match.group(1)), "fenced_json")


def parse_braces(text: str) -> ExtractionCandidate | None:
    match = _BRACES.search(text)
    if not match:
        return None
    return _shape(_loads(match.group(0)), "brace_json")


def parse_numbered_lines(text: str) -> ExtractionCandidate | None:
    items: list[dict[str, Any]] = []
    for line in text.splitlines():
        match = _NUMBERED_LINE.match(line)
        if match:
            items.append(
                {"number": int(match.group(1)), "answer": match.group(2).rstrip()}
            )
    if not items:
        return None
    return NumberedAnswers(items=tuple(items), strategy="numbered_lines")


def parse_raw_text(text: str) -> ExtractionCandidate | None:
    stripped = text.strip()
    if not stripped:
        return None
    return SingleAnswer(value=stripped, strategy="raw_text")


STRATEGIES: tuple[Callable[[str], ExtractionCandidate | None], ...] = (
    parse_direct,
    parse_fenced,
    parse_braces,
    parse_numbered_lines,
    parse_raw_text,
)


def extract(raw_reply: object) -> ExtractionCandidate:
    """Run the strategy cascade over a raw reply.

    Non-string input (a missing or malformed upstream payload) yields an
    `ExtractionFailure` rather than an exception.
    """
    if not isinstance(raw_reply, str):
        return ExtractionFailure(reason="model reply is not text")
    for strategy in STRATEGIES:
        candidate = strategy(raw_reply)
        if candidate is not None:
            return candidate
    return ExtractionFailure(reason="model reply is empty")
