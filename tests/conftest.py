"""Shared test fixtures for pytest.

We force ENVIRONMENT=test early so importing modules that instantiate
settings (main, core.config) never reads a developer's .env file.
"""

import base64
import io
import os
from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from PIL import Image
from pydantic_ai import models


os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")  # pragma: allowlist secret

# Block any real model requests in tests
models.ALLOW_MODEL_REQUESTS = False

from api.v1.ask import get_ask_service  # noqa: E402
from core.config import Settings, get_settings  # noqa: E402
from main import app  # noqa: E402
from schemas.answers import AskRequest, AskResponse  # noqa: E402
from services.answers.models import GatewayReply  # noqa: E402
from services.answers.prompt import VisionPrompt  # noqa: E402
from services.answers.service import AskService  # noqa: E402
from services.observers import ObserverRegistry, get_observer_registry  # noqa: E402


def make_image_bytes(fmt: str = "PNG", size: tuple[int, int] = (4, 4)) -> bytes:
    """Create a tiny image in memory."""
    img = Image.new("RGB", size, color="white")
    output = io.BytesIO()
    img.save(output, format=fmt)
    return output.getvalue()


@pytest.fixture
def png_base64() -> str:
    return base64.b64encode(make_image_bytes("PNG")).decode("ascii")


@pytest.fixture
def png_data_url(png_base64: str) -> str:
    return f"data:image/png;base64,{png_base64}"


@pytest.fixture
def test_settings() -> Settings:
    """Settings with zero backoff so retry tests never sleep."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        ENVIRONMENT="test",
        OPENAI_API_KEY="test-openai-key",  # pragma: allowlist secret
        UPSTREAM_RETRY_BACKOFF_SECONDS=0,
        UPSTREAM_TIMEOUT_SECONDS=5,
    )


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    yield
    get_settings.cache_clear()


class FakeGateway:
    """Records prompts and replays canned replies or exceptions in order."""

    def __init__(self, *results: GatewayReply | BaseException) -> None:
        self.results = list(results)
        self.prompts: list[VisionPrompt] = []

    async def ask(self, prompt: VisionPrompt) -> GatewayReply:
        self.prompts.append(prompt)
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


def ok_reply(text: str | None) -> GatewayReply:
    return GatewayReply(
        ok=True,
        text=text,
        status_code=200,
        model_name="test",
        payload={"model": "test", "output": text},
    )


@pytest.fixture
def registry() -> ObserverRegistry:
    return ObserverRegistry(queue_size=8)


@pytest.fixture
def make_service(registry: ObserverRegistry, test_settings: Settings):
    def _make(*results: GatewayReply | BaseException) -> AskService:
        return AskService(
            gateway=FakeGateway(*results), registry=registry, settings=test_settings
        )

    return _make


class StaticAskService:
    """Ask service stand-in returning a fixed envelope."""

    def __init__(self, response: AskResponse) -> None:
        self.response = response
        self.requests: list[AskRequest] = []

    async def answer(self, request: AskRequest) -> AskResponse:
        self.requests.append(request)
        return self.response


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.
    """
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def async_client(
    registry: ObserverRegistry,
) -> AsyncGenerator[AsyncClient, None]:
    """Async client with the observer registry isolated per test."""
    app.dependency_overrides[get_observer_registry] = lambda: registry
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.pop(get_observer_registry, None)
    app.dependency_overrides.pop(get_ask_service, None)
