"""Map every terminal pipeline state onto the `/ask` answer envelope.

Failures become a single answer numbered 1 whose text starts with
`ERROR_PREFIX`, so a browser client can style it without parsing further.
"""

from __future__ import annotations

from collections.abc import Sequence

from schemas.answers import Answer, AskResponse
from services.answers.exceptions import (
    AskPipelineError,
    FormatError,
    InvalidInput,
    MissingInput,
    ParseError,
    TransportFailure,
    UpstreamFailure,
)


ERROR_PREFIX = "(error)"


def error_envelope(message: str) -> AskResponse:
    """Single synthetic error answer."""
    return AskResponse(answers=[Answer(number=1, answer=f"{ERROR_PREFIX} {message}")])


def success_envelope(answers: Sequence[Answer]) -> AskResponse:
    return AskResponse(answers=list(answers))


def describe_error(exc: AskPipelineError, provider: str = "OpenAI") -> str:
    """Human-readable text for a pipeline error, without the prefix."""
    if isinstance(exc, MissingInput):
        return exc.message
    if isinstance(exc, InvalidInput):
        return f"Invalid imageBase64: {exc.message}"
    if isinstance(exc, TransportFailure):
        return f"{provider} network: {exc.message}"
    if isinstance(exc, UpstreamFailure):
        status = exc.status_code if exc.status_code is not None else "error"
        return f"{provider} {status}: {exc.message}"
    if isinstance(exc, ParseError):
        return f"ParseError: {exc.message}"
    if isinstance(exc, FormatError):
        return exc.message
    return exc.message


def envelope_for_error(exc: AskPipelineError, provider: str = "OpenAI") -> AskResponse:
    return error_envelope(describe_error(exc, provider))


def unexpected_error_envelope(exc: BaseException) -> AskResponse:
    return error_envelope(f"Server exception: {str(exc) or exc.__class__.__name__}")


def is_error_envelope(response: AskResponse) -> bool:
    return len(response.answers) == 1 and response.answers[0].answer.startswith(
        ERROR_PREFIX
    )
