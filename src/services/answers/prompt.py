"""Prompt construction for screenshot question answering.

The wording of these prompts is load-bearing: the default question decides
whether the model answers every visible question (our policy) or only one,
and the schema block decides what the extractor's first strategy will see.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic_ai.messages import BinaryContent

from schemas.answers import AnswerMode


DEFAULT_QUESTION = (
    "Read the image. Identify the main question(s). If numbers like 1., 2., 3. "
    "exist, use them; otherwise infer numbering in reading order starting at 1 "
    "(a single visible question is number 1). Compute/derive the direct answer "
    "to each question from the content. Ignore option letters or choices; "
    "return the answer itself (e.g., 6, Jun 15, 2146, Unrelated). Provide "
    "concise answers only."
)

DEFAULT_MC_QUESTION = (
    "Read the image. Identify every visible question and, when present, its "
    "multiple-choice options. Use visible numbering or infer it in reading "
    "order starting at 1. Compute the answer to each question yourself, then "
    "list the options exactly as printed."
)

DIRECT_SCHEMA: dict[str, Any] = {
    "answers": [
        {"number": 1, "answer": "..."},
        {"number": 2, "answer": "..."},
    ]
}

MULTIPLE_CHOICE_SCHEMA: dict[str, Any] = {
    "answers": [
        {"number": 1, "answer": "...", "options": ["A. ...", "B. ..."]},
        {"number": 2, "answer": "...", "options": []},
    ]
}

_DIRECT_RULES = """Rules:
- Detect visible question(s). If numbered (1., 2., ...), use those numbers.
- If not visibly numbered, infer numbering in reading order (start at 1). If there is only one, return number 1.
- Compute/derive the direct answer to each question from the content. Do NOT select or echo multiple-choice letters; ignore options and output only the answer itself (text or number).
- Be decisive. Only return "unknown" if the text is illegible.
- No explanations, no letters, no extra fields, no markdown."""

_MULTIPLE_CHOICE_RULES = """Rules:
- Detect visible question(s). If numbered (1., 2., ...), use those numbers.
- If not visibly numbered, infer numbering in reading order (start at 1). If there is only one, return number 1.
- "answer" is the value you computed yourself (text or number), never an option letter.
- "options" lists every printed option verbatim with its letter ("A. 1.50"); use [] when there are none.
- Be decisive. Only return "unknown" if the text is illegible.
- No explanations, no extra fields, no markdown."""


@dataclass(frozen=True, slots=True)
class ImagePayload:
    """Decoded screenshot ready to be attached to the model request."""

    data: bytes
    media_type: str = "image/png"


@dataclass(frozen=True, slots=True)
class VisionPrompt:
    """Everything the gateway needs for one model call."""

    system_prompt: str
    user_text: str
    image: ImagePayload
    mode: AnswerMode
    questions: tuple[str, ...]
    output_schema: dict[str, Any] = field(default_factory=dict)

    def user_content(self) -> list[str | BinaryContent]:
        """Text and image as a single multi-part user message."""
        return [
            self.user_text,
            BinaryContent(data=self.image.data, media_type=self.image.media_type),
        ]


def clean_questions(questions: Sequence[Any] | None) -> list[str]:
    """Coerce caller questions to trimmed strings, dropping blanks."""
    cleaned: list[str] = []
    for q in questions or []:
        if q is None or isinstance(q, dict | list):
            continue
        text = str(q).strip()
        if text:
            cleaned.append(text)
    return cleaned


def render_questions(questions: Sequence[str]) -> str:
    return "\n".join(f"{i + 1}. {q}" for i, q in enumerate(questions))


def system_prompt_for(mode: AnswerMode) -> str:
    schema = MULTIPLE_CHOICE_SCHEMA if mode == "multiple_choice" else DIRECT_SCHEMA
    rules = _MULTIPLE_CHOICE_RULES if mode == "multiple_choice" else _DIRECT_RULES
    return (
        "You answer questions about images (OCR + reasoning).\n\n"
        "Return STRICT JSON ONLY in this exact schema:\n"
        f"{json.dumps(schema, indent=2)}\n\n"
        f"{rules}"
    )


def build_prompt(
    questions: Sequence[Any] | None,
    image: ImagePayload,
    mode: AnswerMode = "direct",
) -> VisionPrompt:
    """Build the instruction, schema and numbered question list for one call.

    With no usable questions a single default question is substituted that
    asks the model to answer every visible question in the image.
    """
    cleaned = clean_questions(questions)
    if not cleaned:
        cleaned = [DEFAULT_MC_QUESTION if mode == "multiple_choice" else DEFAULT_QUESTION]

    user_text = (
        f"Please answer the following:\n\n{render_questions(cleaned)}\n\n"
        "Return only the JSON object described above."
    )
    return VisionPrompt(
        system_prompt=system_prompt_for(mode),
        user_text=user_text,
        image=image,
        mode=mode,
        questions=tuple(cleaned),
        output_schema=MULTIPLE_CHOICE_SCHEMA if mode == "multiple_choice" else DIRECT_SCHEMA,
    )
