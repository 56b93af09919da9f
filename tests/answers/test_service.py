"""Tests for the ask orchestration service."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from conftest import FakeGateway, ok_reply

from schemas.answers import AskRequest
from services.answers.exceptions import TransportFailure
from services.answers.models import GatewayReply
from services.answers.service import AskService
from services.observers import ObserverRegistry


def _texts(response) -> list[tuple[int, str]]:
    return [(a.number, a.answer) for a in response.answers]


def _drain(queue) -> list[dict]:
    events = []
    while not queue.empty():
        frame = queue.get_nowait()
        assert frame.startswith("data: ") and frame.endswith("\n\n")
        events.append(json.loads(frame[len("data: ") :]))
    return events


@pytest.mark.asyncio
async def test_success_returns_sorted_answers_and_publishes(
    make_service, registry: ObserverRegistry, png_base64: str
) -> None:
    reply = '```json\n{"answers": [{"number": 2, "answer": "b"}, {"number": 1, "answer": "a"}]}\n```'
    service = make_service(ok_reply(reply))
    queue = registry.register()

    response = await service.answer(
        AskRequest(imageBase64=png_base64, questions=["first", "second"])
    )

    assert _texts(response) == [(1, "a"), (2, "b")]
    gateway: FakeGateway = service.gateway  # type: ignore[assignment]
    assert gateway.prompts[0].questions == ("first", "second")
    assert gateway.prompts[0].image.media_type == "image/png"

    (event,) = _drain(queue)
    assert event["type"] == "answer"
    assert event["internet"] == "🟢"
    assert event["payload"]["output"] == reply


@pytest.mark.asyncio
@pytest.mark.parametrize("image", [None, "", "   "])
async def test_missing_image(
    make_service, registry: ObserverRegistry, image: str | None
) -> None:
    service = make_service()
    queue = registry.register()

    response = await service.answer(AskRequest(imageBase64=image))

    assert _texts(response) == [(1, "(error) Missing imageBase64")]
    (event,) = _drain(queue)
    assert event["internet"] == "🔴"
    assert event["payload"] == {"error": {"message": "Missing imageBase64"}}


@pytest.mark.asyncio
async def test_invalid_image(make_service) -> None:
    service = make_service()

    response = await service.answer(AskRequest(imageBase64="!!!not-base64!!!"))

    (text,) = [a.answer for a in response.answers]
    assert text.startswith("(error) Invalid imageBase64: ")


@pytest.mark.asyncio
async def test_data_url_accepted(make_service, png_data_url: str) -> None:
    service = make_service(ok_reply("Paris"))

    response = await service.answer(AskRequest(imageBase64=png_data_url))

    assert _texts(response) == [(1, "Paris")]


@pytest.mark.asyncio
async def test_transport_failure(
    make_service, registry: ObserverRegistry, png_base64: str
) -> None:
    service = make_service(TransportFailure("connection refused"))
    queue = registry.register()

    response = await service.answer(AskRequest(imageBase64=png_base64))

    assert _texts(response) == [(1, "(error) OpenAI network: connection refused")]
    (event,) = _drain(queue)
    assert event["internet"] == "🔴"


@pytest.mark.asyncio
async def test_upstream_failure_uses_provider_label(
    registry: ObserverRegistry, test_settings, png_base64: str
) -> None:
    settings = test_settings.model_copy(update={"LLM_PROVIDER": "gemini"})
    failed = GatewayReply(
        ok=False,
        status_code=503,
        message="The model is overloaded",
        payload={"error": {"status": 503}},
    )
    service = AskService(
        gateway=FakeGateway(failed), registry=registry, settings=settings
    )
    queue = registry.register()

    response = await service.answer(AskRequest(imageBase64=png_base64))

    assert _texts(response) == [(1, "(error) Gemini 503: The model is overloaded")]
    (event,) = _drain(queue)
    assert event["type"] == "answer"
    assert event["internet"] == "🔴"


@pytest.mark.asyncio
@pytest.mark.parametrize("text", [None, "", "   "])
async def test_empty_reply_is_parse_error(make_service, png_base64: str, text) -> None:
    service = make_service(ok_reply(text))

    response = await service.answer(AskRequest(imageBase64=png_base64))

    assert _texts(response) == [
        (1, "(error) ParseError: could not extract JSON content from model")
    ]


@pytest.mark.asyncio
async def test_empty_answers_list_is_format_error(make_service, png_base64: str) -> None:
    service = make_service(ok_reply('{"answers": []}'))

    response = await service.answer(AskRequest(imageBase64=png_base64))

    assert _texts(response) == [(1, "(error) Invalid response format from AI")]


@pytest.mark.asyncio
async def test_unexpected_exception_is_enveloped_and_published(
    make_service, registry: ObserverRegistry, png_base64: str
) -> None:
    service = make_service(RuntimeError("kaboom"))
    queue = registry.register()

    response = await service.answer(AskRequest(imageBase64=png_base64))

    assert _texts(response) == [(1, "(error) Server exception: kaboom")]
    (event,) = _drain(queue)
    assert event["type"] == "error"
    assert event["payload"] == {"error": "kaboom"}


@pytest.mark.asyncio
async def test_relay_failure_does_not_affect_caller(
    make_service, registry: ObserverRegistry, png_base64: str
) -> None:
    service = make_service(ok_reply("42"))

    with patch.object(registry, "publish", side_effect=RuntimeError("relay down")):
        response = await service.answer(AskRequest(imageBase64=png_base64))

    assert _texts(response) == [(1, "42")]


@pytest.mark.asyncio
async def test_multiple_choice_mode_reconciles(make_service, png_base64: str) -> None:
    reply = json.dumps(
        {"answers": [{"number": 1, "answer": "1.0", "options": ["A. 1.00", "B. 2.00"]}]}
    )
    service = make_service(ok_reply(reply))

    response = await service.answer(
        AskRequest(imageBase64=png_base64, mode="multiple_choice")
    )

    envelope = response.to_envelope()
    answer = envelope["answers"][0]
    assert answer["answer"] == "1.0"
    assert answer["reconciliation"]["consistency"] == "match"
    assert answer["reconciliation"]["matched_option"] == {"letter": "A", "text": "1.00"}
