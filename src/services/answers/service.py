"""Orchestration of one `/ask` exchange.

decode image -> build prompt -> model gateway -> extract -> normalize ->
envelope, with the observer relay tapping the gateway result and every
failure. `AskService.answer` never raises: every terminal state becomes an
`AskResponse`.
"""

from __future__ import annotations

import logging
from typing import Any

from core.config import Settings, get_settings
from core.error_handler import StructuredLogger
from schemas.answers import AskRequest, AskResponse
from schemas.observers import ObserverEvent
from services.answers.envelope import (
    envelope_for_error,
    success_envelope,
    unexpected_error_envelope,
)
from services.answers.exceptions import (
    AskPipelineError,
    InvalidInput,
    MissingInput,
    TransportFailure,
    UpstreamFailure,
)
from services.answers.extractor import extract
from services.answers.gateway import VisionGateway
from services.answers.interfaces import VisionGatewayProtocol
from services.answers.models import NumberedAnswers, SingleAnswer
from services.answers.normalizer import normalize
from services.answers.prompt import build_prompt
from services.images.normalize import ImageValidationError, decode_image_base64
from services.observers import ObserverRegistry, get_observer_registry


logger = logging.getLogger(__name__)
structured_logger = StructuredLogger(__name__)


class AskService:
    """Answers screenshot questions through the configured vision model."""

    def __init__(
        self,
        gateway: VisionGatewayProtocol | None = None,
        registry: ObserverRegistry | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings
        self.gateway: VisionGatewayProtocol = gateway or VisionGateway(
            settings=settings
        )
        self.registry = registry or get_observer_registry()

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def _publish(self, event: ObserverEvent) -> None:
        try:
            self.registry.publish(event)
        except Exception:
            logger.exception("Failed to publish %s event to observers", event.type)

    def _publish_down(self, message: str) -> None:
        self._publish(
            ObserverEvent.answer(up=False, payload={"error": {"message": message}})
        )

    async def answer(self, request: AskRequest) -> AskResponse:
        provider = self.settings.provider_label
        try:
            return await self._answer(request)
        except AskPipelineError as e:
            structured_logger.warning(
                "Ask pipeline failed",
                error_code=e.error_code,
                error_message=e.message,
                mode=request.mode,
            )
            return envelope_for_error(e, provider)
        except Exception as e:
            structured_logger.exception(
                "Unexpected error while answering",
                error_type=e.__class__.__name__,
            )
            self._publish(ObserverEvent.failure(str(e) or e.__class__.__name__))
            return unexpected_error_envelope(e)

    async def _answer(self, request: AskRequest) -> AskResponse:
        raw_image = request.image_base64
        if raw_image is None or not raw_image.strip():
            error = MissingInput()
            self._publish_down(error.message)
            raise error

        try:
            image = decode_image_base64(
                raw_image, max_chars=self.settings.MAX_IMAGE_BASE64_CHARS
            )
        except ImageValidationError as e:
            self._publish_down(f"Invalid imageBase64: {e}")
            raise InvalidInput(str(e)) from e

        prompt = build_prompt(request.questions, image, request.mode)
        structured_logger.info(
            "Asking vision model",
            mode=prompt.mode,
            question_count=len(prompt.questions),
            image_size=len(image.data),
            media_type=image.media_type,
        )

        try:
            reply = await self.gateway.ask(prompt)
        except TransportFailure as e:
            self._publish_down(e.message)
            raise

        self._publish(ObserverEvent.answer(up=reply.ok, payload=reply.payload))
        if not reply.ok:
            raise UpstreamFailure(reply.status_code, reply.message or "Upstream error")

        candidate = extract(reply.text)
        answers = normalize(candidate, reply.text, prompt.mode)

        details: dict[str, Any] = {
            "answer_count": len(answers),
            "attempts": reply.attempts,
        }
        if isinstance(candidate, NumberedAnswers | SingleAnswer):
            details["strategy"] = candidate.strategy
        else:
            details["strategy"] = "passthrough"
        structured_logger.info("Answered screenshot", **details)
        return success_envelope(answers)
