"""Error taxonomy for the question-answering pipeline.

Each kind carries a stable `error_code` for log/metric tagging. The `/ask`
boundary converts every one of them into an answer envelope (see
`services.answers.envelope`); none is meant to reach the global handler.

"Could not parse" inside the extractor is not an exception: it is the
`ExtractionFailure` value. `ParseError` is raised only once the normalizer
has established there is no usable text at all.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class AskPipelineError(Exception):
    """Base class for pipeline errors."""

    message: str
    error_code: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


class InvalidInput(AskPipelineError):
    def __init__(self, message: str = "Invalid imageBase64") -> None:
        super().__init__(message=message, error_code="invalid_input")


class MissingInput(InvalidInput):
    def __init__(self, message: str = "Missing imageBase64") -> None:
        super(InvalidInput, self).__init__(message=message, error_code="missing_input")


class TransportFailure(AskPipelineError):
    """Provider unreachable, connection dropped, or timed out."""

    def __init__(self, message: str = "network error") -> None:
        super().__init__(message=message, error_code="transport_failure")


class UpstreamFailure(AskPipelineError):
    """Provider answered with a non-success status."""

    def __init__(self, status_code: int | None, message: str = "Upstream error") -> None:
        super().__init__(message=message, error_code="upstream_failure")
        self.status_code = status_code


class ParseError(AskPipelineError):
    def __init__(
        self, message: str = "could not extract JSON content from model"
    ) -> None:
        super().__init__(message=message, error_code="parse_error")


class FormatError(AskPipelineError):
    def __init__(self, message: str = "Invalid response format from AI") -> None:
        super().__init__(message=message, error_code="format_error")
