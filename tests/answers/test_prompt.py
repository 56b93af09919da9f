"""Tests for prompt construction."""

from __future__ import annotations

from pydantic_ai.messages import BinaryContent

from services.answers.prompt import (
    DEFAULT_MC_QUESTION,
    DEFAULT_QUESTION,
    ImagePayload,
    build_prompt,
    clean_questions,
)


IMAGE = ImagePayload(data=b"\x89PNG", media_type="image/png")


def test_questions_are_numbered_in_order() -> None:
    prompt = build_prompt(["What is 2+2?", "Capital of France?"], IMAGE)
    assert prompt.user_text == (
        "Please answer the following:\n\n"
        "1. What is 2+2?\n"
        "2. Capital of France?\n\n"
        "Return only the JSON object described above."
    )
    assert prompt.questions == ("What is 2+2?", "Capital of France?")


def test_no_questions_uses_answer_all_default() -> None:
    for questions in (None, [], ["   ", None]):
        prompt = build_prompt(questions, IMAGE)
        assert prompt.questions == (DEFAULT_QUESTION,)
        assert "1. " + DEFAULT_QUESTION in prompt.user_text


def test_multiple_choice_default_and_schema() -> None:
    prompt = build_prompt(None, IMAGE, mode="multiple_choice")
    assert prompt.questions == (DEFAULT_MC_QUESTION,)
    assert '"options"' in prompt.system_prompt
    assert prompt.output_schema["answers"][0]["options"] == ["A. ...", "B. ..."]


def test_direct_schema_in_system_prompt() -> None:
    prompt = build_prompt(["q"], IMAGE)
    assert "STRICT JSON ONLY" in prompt.system_prompt
    assert '"answers"' in prompt.system_prompt
    assert '"options"' not in prompt.system_prompt


def test_clean_questions_coerces_and_drops_blanks() -> None:
    assert clean_questions([" a ", "", None, 3, {"x": 1}, ["y"]]) == ["a", "3"]


def test_user_content_is_text_then_image() -> None:
    prompt = build_prompt(["q"], IMAGE)
    text, image = prompt.user_content()
    assert text == prompt.user_text
    assert isinstance(image, BinaryContent)
    assert image.data == b"\x89PNG"
    assert image.media_type == "image/png"
