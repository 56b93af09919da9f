"""Schemas for the screenshot question-answering endpoint.

`AskResponse` is the envelope every `/ask` call returns, success or not.
Its shape is deliberately tiny (`{"answers": [{"number", "answer"}]}`) so a
browser client can render it without caring which failure, if any, occurred.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


AnswerMode = Literal["direct", "multiple_choice"]
Consistency = Literal["match", "no_match"]
MatchMethod = Literal["exact", "decimal_format", "ocr_substitution", "reformat"]


class AskRequest(BaseModel):
    """Inbound screenshot + questions payload.

    Every field is optional at the schema level: a missing image is reported
    inside the answer envelope rather than as a 422.
    """

    image_base64: str | None = Field(
        default=None,
        alias="imageBase64",
        description="Screenshot as raw base64 or a data:image/...;base64, URL",
    )
    questions: list[Any] | None = Field(
        default=None,
        description="Ordered question texts; omitted or empty means answer all",
    )
    mode: AnswerMode = Field(
        default="direct",
        description="'multiple_choice' asks the model for options and reconciles",
    )

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("questions", mode="before")
    @classmethod
    def _non_list_questions_mean_none(cls, v: object) -> object:
        # Older capture clients send a single string or null.
        return v if isinstance(v, list) else None

    @field_validator("image_base64", mode="before")
    @classmethod
    def _non_string_image_means_none(cls, v: object) -> object:
        return v if isinstance(v, str) else None

    @field_validator("mode", mode="before")
    @classmethod
    def _unknown_mode_is_direct(cls, v: object) -> object:
        return v if v in ("direct", "multiple_choice") else "direct"


class MultipleChoiceOption(BaseModel):
    """One lettered option as presented on screen."""

    letter: str = Field(..., min_length=1, max_length=4)
    text: str

    model_config = ConfigDict(extra="forbid", frozen=True)


class ReconciliationResult(BaseModel):
    """Outcome of matching a computed value against presented options."""

    computed_value: str
    matched_option: MultipleChoiceOption | None = None
    consistency: Consistency
    method: MatchMethod | None = None

    model_config = ConfigDict(extra="forbid")


class Answer(BaseModel):
    """One numbered answer in the envelope."""

    number: int = Field(..., ge=1)
    answer: str = Field(..., min_length=1)
    reconciliation: ReconciliationResult | None = None

    model_config = ConfigDict(extra="forbid")


class AskResponse(BaseModel):
    """Envelope returned by `/ask` for every terminal state."""

    answers: list[Answer] = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")

    def to_envelope(self) -> dict[str, Any]:
        """Wire form; optional members are omitted when unset."""
        return self.model_dump(mode="json", exclude_none=True)
