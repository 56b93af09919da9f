"""Model gateway: one screenshot + prompt in, raw model text out.

The gateway owns the only suspension point of an `/ask` call. Each attempt
is bounded by `UPSTREAM_TIMEOUT_SECONDS`; transient upstream statuses
(`UPSTREAM_RETRY_STATUSES`) are retried `UPSTREAM_RETRY_ATTEMPTS` more times
with linear backoff. Client errors and malformed payloads are never retried.

A provider that answered at all yields a `GatewayReply` (ok or not); a
provider that could not be reached raises `TransportFailure`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import openai
from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from core.config import Settings, get_settings
from core.observability import get_tracer
from schemas.answers import AnswerMode
from services.answers.exceptions import TransportFailure
from services.answers.model_factory import get_vision_model
from services.answers.models import GatewayReply
from services.answers.prompt import VisionPrompt


logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

_TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    TimeoutError,
    ConnectionError,
    httpx.TransportError,
    openai.APIConnectionError,
)


def _transport_cause(exc: BaseException) -> BaseException | None:
    """First transport-level error in the exception's cause chain, if any."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, _TRANSPORT_ERRORS):
            return current
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return None


def upstream_message(exc: ModelHTTPError) -> str:
    """Best human-readable message from a provider error body."""
    body = exc.body
    if isinstance(body, dict):
        nested = body.get("error")
        if isinstance(nested, dict) and nested.get("message"):
            return str(nested["message"])
        if body.get("message"):
            return str(body["message"])
        if isinstance(nested, str) and nested:
            return nested
    if isinstance(body, str) and body.strip():
        return body.strip()
    return "Upstream error"


class VisionGateway:
    """Runs a `VisionPrompt` against the configured vision model.

    Agents are created lazily, one per answer mode, so importing the gateway
    never requires provider credentials.
    """

    def __init__(
        self,
        model: Model | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._model = model
        self._settings = settings
        self._sleep = sleep
        self._agents: dict[AnswerMode, Agent[None, str]] = {}

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def _get_model(self) -> Model:
        if self._model is None:
            self._model = get_vision_model(settings=self.settings)
        return self._model

    def _get_agent(self, prompt: VisionPrompt) -> Agent[None, str]:
        agent = self._agents.get(prompt.mode)
        if agent is None:
            agent = Agent(
                self._get_model(),
                system_prompt=prompt.system_prompt,
                output_type=str,
            )
            self._agents[prompt.mode] = agent
        return agent

    def _should_retry(self, exc: BaseException) -> bool:
        return (
            isinstance(exc, ModelHTTPError)
            and exc.status_code in self.settings.UPSTREAM_RETRY_STATUSES
        )

    async def _run_once(self, agent: Agent[None, str], prompt: VisionPrompt) -> str:
        settings = self.settings
        model_settings = ModelSettings(
            temperature=settings.MODEL_TEMPERATURE,
            max_tokens=settings.MODEL_MAX_TOKENS,
        )
        async with asyncio.timeout(settings.UPSTREAM_TIMEOUT_SECONDS):
            result = await agent.run(
                prompt.user_content(), model_settings=model_settings
            )
        return result.output

    async def ask(self, prompt: VisionPrompt) -> GatewayReply:
        """Send the prompt and return the provider's reply.

        Raises:
            TransportFailure: The provider could not be reached or timed out.
        """
        settings = self.settings
        agent = self._get_agent(prompt)
        model_name = getattr(agent.model, "model_name", None)
        backoff = settings.UPSTREAM_RETRY_BACKOFF_SECONDS
        attempts = 0
        text: str | None = None

        retrying = AsyncRetrying(
            stop=stop_after_attempt(settings.UPSTREAM_RETRY_ATTEMPTS + 1),
            wait=wait_incrementing(start=backoff, increment=backoff),
            retry=retry_if_exception(self._should_retry),
            sleep=self._sleep,
            reraise=True,
        )

        with tracer.start_as_current_span("vision_gateway.ask") as span:
            span.set_attribute("answers.mode", prompt.mode)
            span.set_attribute("answers.question_count", len(prompt.questions))
            if model_name:
                span.set_attribute("llm.model", model_name)
            try:
                async for attempt in retrying:
                    with attempt:
                        attempts = attempt.retry_state.attempt_number
                        if attempts > 1:
                            logger.warning(
                                "Retrying vision model call (attempt %d)", attempts
                            )
                        text = await self._run_once(agent, prompt)
            except ModelHTTPError as e:
                message = upstream_message(e)
                span.set_attribute("upstream.status_code", e.status_code)
                span.set_attribute("upstream.attempts", attempts)
                logger.warning(
                    "Vision model returned %s after %d attempt(s): %s",
                    e.status_code,
                    attempts,
                    message,
                )
                return GatewayReply(
                    ok=False,
                    status_code=e.status_code,
                    message=message,
                    model_name=model_name,
                    attempts=attempts,
                    payload={
                        "error": {
                            "status": e.status_code,
                            "message": message,
                            "body": e.body,
                        }
                    },
                )
            except UnexpectedModelBehavior as e:
                # Reached the provider but got no usable text back.
                logger.warning("Vision model returned an unusable payload: %s", e)
                return GatewayReply(
                    ok=True,
                    text=None,
                    message=str(e),
                    model_name=model_name,
                    attempts=attempts,
                    payload={"error": {"message": str(e), "body": e.body}},
                )
            except Exception as e:
                cause = _transport_cause(e)
                if cause is None:
                    raise
                if isinstance(cause, TimeoutError):
                    detail = (
                        f"timed out after {settings.UPSTREAM_TIMEOUT_SECONDS:g}s"
                    )
                else:
                    detail = str(cause) or cause.__class__.__name__
                logger.warning("Vision model unreachable: %s", detail)
                raise TransportFailure(detail) from e

            span.set_attribute("upstream.attempts", attempts)

        payload: dict[str, Any] = {"model": model_name, "output": text}
        return GatewayReply(
            ok=True,
            text=text,
            status_code=200,
            model_name=model_name,
            attempts=attempts,
            payload=payload,
        )
