"""Turn an extraction candidate into a clean, ordered answer set."""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from schemas.answers import Answer, AnswerMode
from services.answers.exceptions import FormatError, ParseError
from services.answers.models import (
    ExtractionCandidate,
    ExtractionFailure,
    NumberedAnswers,
    SingleAnswer,
)
from services.answers.reconcile import reconcile


logger = logging.getLogger(__name__)

_NUMBER_LABEL = re.compile(
    r"^\s*(?:q(?:uestion)?\s*|#\s*)?(\d{1,9})\s*[.):]?\s*$", re.IGNORECASE
)


def coerce_number(value: Any, position: int) -> int:
    """Best-effort positive question number; falls back to `position`."""
    if isinstance(value, bool) or value is None:
        return position
    if isinstance(value, int):
        return value if value >= 1 else position
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and value >= 1:
            return int(value)
        return position
    if isinstance(value, str):
        if match := _NUMBER_LABEL.match(value):
            number = int(match.group(1))
            return number if number >= 1 else position
        try:
            as_float = float(value)
        except ValueError:
            return position
        return coerce_number(as_float, position)
    return position


def answer_text(value: Any) -> str:
    """Render any JSON value the model produced as trimmed answer text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return ", ".join(t for t in (answer_text(v) for v in value) if t)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value).strip()


def _item_parts(item: Any) -> tuple[Any, Any, Any]:
    """(number, answer, options) from a list item of any shape."""
    if isinstance(item, dict):
        return item.get("number"), item.get("answer"), item.get("options")
    # A bare value in the answers list is the answer itself.
    return None, item, None


def _build_answer(number: int, text: str, options: Any, mode: AnswerMode) -> Answer:
    if mode == "multiple_choice" and isinstance(options, list) and options:
        return Answer(number=number, answer=text, reconciliation=reconcile(text, options))
    return Answer(number=number, answer=text)


def normalize(
    candidate: ExtractionCandidate,
    raw_reply: object = None,
    mode: AnswerMode = "direct",
) -> list[Answer]:
    """Build the answer list for one reply.

    Raises:
        ParseError: nothing was extracted and there is no raw text to pass on.
        FormatError: extraction succeeded but left no usable answer.
    """
    answers: list[Answer] = []

    if isinstance(candidate, NumberedAnswers):
        for position, item in enumerate(candidate.items, start=1):
            raw_number, raw_answer, options = _item_parts(item)
            text = answer_text(raw_answer)
            if not text:
                continue
            number = coerce_number(raw_number, position)
            answers.append(_build_answer(number, text, options, mode))
        # Stable: duplicate numbers keep their original relative order.
        answers.sort(key=lambda a: a.number)

    elif isinstance(candidate, SingleAnswer):
        text = answer_text(candidate.value)
        if text:
            answers.append(Answer(number=1, answer=text))

    elif isinstance(candidate, ExtractionFailure):
        if isinstance(raw_reply, str) and raw_reply.strip():
            answers.append(Answer(number=1, answer=raw_reply.strip()))
        else:
            logger.info("No usable model text: %s", candidate.reason)
            raise ParseError()

    if not answers or not isinstance(answers[0].answer, str):
        raise FormatError()
    return answers
