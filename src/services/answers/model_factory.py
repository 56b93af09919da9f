"""Vision model factory.

Single source of truth for creating the pydantic-ai model that reads
screenshots, for either OpenAI or Google Gemini depending on configuration.

Usage:
    from services.answers.model_factory import get_vision_model

    model = get_vision_model()  # Returns pydantic-ai Model
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, cast

from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider

from core.config import Settings, get_settings


if TYPE_CHECKING:
    from httpx import AsyncClient

logger = logging.getLogger(__name__)


def _create_openai_model(
    settings: Settings,
    http_client: AsyncClient | None = None,
) -> Model:
    """Create an OpenAI chat model with the SDK's own retries disabled.

    Transient-status retries are owned by the gateway so the attempt budget
    is exactly what `UPSTREAM_RETRY_ATTEMPTS` says.
    """
    if not settings.OPENAI_API_KEY:
        raise ValueError("OPENAI_API_KEY is not configured")

    from openai import AsyncOpenAI

    client = AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        max_retries=0,
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        http_client=http_client,
    )
    provider = OpenAIProvider(openai_client=client)
    return OpenAIChatModel(settings.VISION_MODEL, provider=provider)


def _create_gemini_model(
    settings: Settings,
    http_client: AsyncClient | None = None,
) -> Model:
    """Create a Google Gemini model with the configured model name."""
    if not settings.GEMINI_API_KEY:
        raise ValueError("GEMINI_API_KEY is not configured")

    provider = GoogleProvider(
        api_key=settings.GEMINI_API_KEY,
        http_client=http_client,
    )
    return cast(Model, GoogleModel(settings.VISION_MODEL, provider=provider))


def get_vision_model(
    http_client: AsyncClient | None = None,
    settings: Settings | None = None,
) -> Model:
    """Get the vision model based on configuration.

    Args:
        http_client: Optional HTTP client passed through to the provider.
        settings: Settings override; defaults to the cached application settings.

    Returns:
        A pydantic-ai Model configured for the selected provider.

    Raises:
        ValueError: If the selected provider has no API key.
    """
    settings = settings or get_settings()

    if settings.LLM_PROVIDER == "gemini":
        logger.info(f"Using Gemini vision model: {settings.VISION_MODEL}")
        return _create_gemini_model(settings, http_client)

    logger.info(f"Using OpenAI vision model: {settings.VISION_MODEL}")
    return _create_openai_model(settings, http_client)
