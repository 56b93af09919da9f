"""Screenshot question answering and capture-client status reports."""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from schemas.answers import AskRequest, AskResponse
from schemas.observers import LogAck, LogReport, ObserverEvent
from services.answers.interfaces import AskServiceProtocol
from services.answers.service import AskService
from services.observers import ObserverRegistry, get_observer_registry


logger = logging.getLogger(__name__)

router = APIRouter(tags=["answers"])


@lru_cache
def get_ask_service() -> AskServiceProtocol:
    """Process-wide service; agents inside it are created on first use."""
    return AskService()


@router.post(
    "/ask",
    response_model=AskResponse,
    response_model_exclude_none=True,
    summary="Answer the questions visible in a screenshot",
)
async def ask(
    service: Annotated[AskServiceProtocol, Depends(get_ask_service)],
    payload: Annotated[AskRequest | None, Body()] = None,
) -> AskResponse:
    """Forward a screenshot to the vision model and return numbered answers.

    Always responds 200. Failures are reported as a single answer numbered 1
    whose text starts with `(error)`.
    """
    # No body (or JSON null) is reported as a missing image.
    return await service.answer(payload if payload is not None else AskRequest())


@router.post(
    "/log",
    response_model=LogAck,
    response_model_exclude_none=True,
    responses={400: {"model": LogAck, "description": "Missing event"}},
    summary="Relay a capture-client status event to observers",
)
async def log_event(
    report: LogReport,
    registry: Annotated[ObserverRegistry, Depends(get_observer_registry)],
) -> LogAck | JSONResponse:
    event = "" if report.event is None else str(report.event).strip()
    if not event:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=LogAck(ok=False, error="missing event").model_dump(
                exclude_none=True
            ),
        )

    logger.info("Client event: %s", event)
    registry.publish(ObserverEvent.log(event, report.meta))
    return LogAck(ok=True)
