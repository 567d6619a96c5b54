"""Server-Sent Events stream of backend notifications."""
import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ghd_backend.api.dependencies import get_state
from ghd_backend.core.events import EventBus
from ghd_backend.core.state import AppState

router = APIRouter()

KEEPALIVE_SECONDS: float = 15.0


async def event_stream(
    events: EventBus,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    async with events.subscribe() as queue:
        yield ": connected\n\n"
        while not await is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield event.to_sse()


@router.get("")
async def stream_events(
    request: Request,
    state: AppState = Depends(get_state),
) -> StreamingResponse:
    return StreamingResponse(
        event_stream(state.events, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
