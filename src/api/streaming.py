"""Server-sent events transport for chat answers.

Each event from the QA service goes out as one ``data: <json>\\n\\n``
frame.  The transport guarantees the caller sees at most one terminal
event: it stops reading after the first one, and if the source breaks
or ends without one it sends a single generic ``error`` event.  When the
client goes away the source generator is closed, which stops the model
stream and skips persistence.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing

import structlog
from fastapi.responses import StreamingResponse

from src.models.events import ErrorEvent, StreamEvent, is_terminal

logger = structlog.get_logger(logger_name=__name__)

SSE_MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

STREAM_FAILED_MESSAGE = "Failed to process chat request."


def format_sse(event: StreamEvent) -> str:
    return f"data: {event.to_json()}\n\n"


async def sse_frames(
    events: AsyncIterator[StreamEvent],
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[str]:
    """Frame *events* for SSE.

    *is_disconnected* is polled before pulling each event and again before
    sending it, so a client that leaves between events never lets the
    source run its next step.
    """

    async def _gone(stage: str) -> bool:
        if is_disconnected is None or not await is_disconnected():
            return False
        logger.info("sse_client_disconnected", stage=stage)
        return True

    terminal_sent = False
    try:
        async with aclosing(events) as stream:
            while not await _gone("before_pull"):
                try:
                    event = await anext(stream)
                except StopAsyncIteration:
                    break
                if await _gone(event.type):
                    return
                yield format_sse(event)
                if is_terminal(event):
                    terminal_sent = True
                    break
            else:
                return
    except Exception:
        logger.exception("sse_source_failed", terminal_sent=terminal_sent)

    if not terminal_sent:
        yield format_sse(ErrorEvent(message=STREAM_FAILED_MESSAGE))


def sse_response(
    events: AsyncIterator[StreamEvent],
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> StreamingResponse:
    return StreamingResponse(
        sse_frames(events, is_disconnected),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )
