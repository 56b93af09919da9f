"""Value types passed between pipeline stages.

* ExtractionCandidate - tagged union produced by the extractor: exactly one
  of NumberedAnswers, SingleAnswer or ExtractionFailure. Each successful
  variant records the strategy that produced it.
* GatewayReply        - what the model gateway hands back when the provider
  was reachable (successful or not). Transport problems are raised instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


Strategy = Literal["direct_json", "fenced_json", "brace_json", "numbered_lines", "raw_text"]


@dataclass(frozen=True, slots=True)
class NumberedAnswers:
    """A list of loosely-typed answer items, as the model wrote them."""

    items: tuple[Any, ...]
    strategy: Strategy


@dataclass(frozen=True, slots=True)
class SingleAnswer:
    """One unnumbered answer value."""

    value: Any
    strategy: Strategy


@dataclass(frozen=True, slots=True)
class ExtractionFailure:
    """No strategy produced anything usable."""

    reason: str


ExtractionCandidate = NumberedAnswers | SingleAnswer | ExtractionFailure


@dataclass(slots=True)
class GatewayReply:
    """Result of a model call that reached the provider."""

    ok: bool
    text: str | None = None
    status_code: int | None = None
    message: str | None = None
    model_name: str | None = None
    attempts: int = 1
    payload: dict[str, Any] = field(default_factory=dict)
