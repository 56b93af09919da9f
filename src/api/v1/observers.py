"""Server-Sent Events stream for observer consoles."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from services.observers import ObserverRegistry, get_observer_registry


logger = logging.getLogger(__name__)

router = APIRouter(tags=["observers"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def observer_stream(
    request: Request,
    registry: ObserverRegistry,
    queue: asyncio.Queue[str],
) -> AsyncGenerator[str, None]:
    """Yield published frames until the observer disconnects."""
    try:
        while True:
            frame = await queue.get()
            if await request.is_disconnected():
                break
            yield frame
    finally:
        registry.unregister(queue)


@router.get(
    "/events",
    summary="Stream every relayed event via Server-Sent Events",
)
async def events(
    request: Request,
    registry: Annotated[ObserverRegistry, Depends(get_observer_registry)],
) -> StreamingResponse:
    """Subscribe to live activity.

    Event JSON schema (sent in `data:` lines):
      type: log|answer|error
      event, meta: present on `log` events, relayed verbatim
      internet: 🟢 or 🔴 on `answer`/`error` events
      payload: raw model payload or error details
      ts: epoch milliseconds
    """
    queue = registry.register()
    return StreamingResponse(
        observer_stream(request, registry, queue),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
