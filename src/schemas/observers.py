"""Schemas for the observer console relay."""

from __future__ import annotations

import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


MAX_OBSERVER_EVENT_BYTES: int = 1_048_576

UP = "🟢"
DOWN = "🔴"


def _now_ms() -> int:
    return int(time.time() * 1000)


class ObserverEvent(BaseModel):
    """Tagged event mirrored to every connected observer.

    `log` events carry `event`/`meta`; `answer` and `error` events carry the
    upstream indicator in `internet` and the raw or error `payload`.
    """

    type: Literal["log", "answer", "error"]
    event: str | None = None
    meta: Any | None = None
    internet: Literal["🟢", "🔴"] | None = None
    payload: Any | None = None
    ts: int = Field(default_factory=_now_ms)

    model_config = ConfigDict(extra="forbid")

    def to_sse(self) -> str:
        """Serialize to one SSE `data:` frame."""
        payload = self.model_dump_json(exclude_none=True)
        if len(payload.encode("utf-8")) > MAX_OBSERVER_EVENT_BYTES:
            raise ValueError("Observer event exceeded MAX_OBSERVER_EVENT_BYTES")
        return f"data: {payload}\n\n"

    @classmethod
    def log(cls, event: str, meta: Any | None) -> ObserverEvent:
        return cls.model_validate({"type": "log", "event": event, "meta": meta or {}})

    @classmethod
    def answer(cls, *, up: bool, payload: Any) -> ObserverEvent:
        return cls.model_validate(
            {"type": "answer", "internet": UP if up else DOWN, "payload": payload}
        )

    @classmethod
    def failure(cls, message: str) -> ObserverEvent:
        return cls.model_validate(
            {"type": "error", "internet": DOWN, "payload": {"error": message}}
        )


class LogReport(BaseModel):
    """Status/override report from the capture client."""

    event: Any | None = None
    meta: Any | None = None

    model_config = ConfigDict(extra="ignore")


class LogAck(BaseModel):
    ok: bool
    error: str | None = None

    model_config = ConfigDict(extra="forbid")
