"""Service interfaces for the question-answering pipeline.

These protocols let the API layer and tests inject alternative gateways
without patching module globals.
"""

from __future__ import annotations

from typing import Protocol

from schemas.answers import AskRequest, AskResponse
from services.answers.models import GatewayReply
from services.answers.prompt import VisionPrompt


class VisionGatewayProtocol(Protocol):
    """Protocol for the outbound vision model call."""

    async def ask(self, prompt: VisionPrompt) -> GatewayReply:
        """Send one prompt; raise TransportFailure when unreachable."""
        ...


class AskServiceProtocol(Protocol):
    """Protocol for the `/ask` orchestration."""

    async def answer(self, request: AskRequest) -> AskResponse:
        """Answer a request; never raises."""
        ...
