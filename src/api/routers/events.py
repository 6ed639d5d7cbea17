"""Server-sent events telling the page to re-render."""
import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from api.dependencies import require_controller
from services.session_context import SessionContext
from services.session_controller import SessionController

KEEPALIVE_SECONDS = 15.0

router = APIRouter(tags=["events"])


async def state_events(
    context: SessionContext,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """
    Yield one SSE message per session-state change.

    Changes that land while a message is being sent collapse into one.
    """
    changed = asyncio.Event()
    remove = context.add_listener(changed.set)
    try:
        while not await is_disconnected():
            try:
                await asyncio.wait_for(changed.wait(), timeout=keepalive)
            except TimeoutError:
                yield ": keepalive\n\n"
                continue
            changed.clear()
            yield f"data: {len(context.bookmarks)}\n\n"
    finally:
        remove()


@router.get("/events")
async def events(
    request: Request,
    controller: SessionController = Depends(require_controller),
) -> StreamingResponse:
    """Stream re-render signals to the requesting browser's page."""
    return StreamingResponse(
        state_events(controller.context, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
