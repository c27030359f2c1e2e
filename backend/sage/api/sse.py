"""SSE Framing — turns SageEvents into text/event-stream frames.

Invariants:
    - One frame per event: `event: <type>\\ndata: <json>\\n\\n`
    - Frames are emitted in the order events were pushed
    - stream_end is always the last frame; a stream that ends without one
      (loop crashed before pushing it) gets a synthetic error stream_end
    - A finalize that raises is reported as error + stream_end{error: true}

Design Decisions:
    - Headers disable proxy/browser buffering so deltas render as they arrive
    - finalize hook sees the held-back stream_end and returns the closing events,
      so post-run work (persistence) can still report failure on the stream
"""

import json
import logging
from typing import AsyncIterator, Awaitable, Callable

from sage.core.sage_events import STREAM_END, stream_end_event, unexpected_error_event
from sage.services.event_channel import EventChannel

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}

Finalizer = Callable[[dict], Awaitable[list[dict]]]


def format_sse(event: dict) -> str:
    """Format one event as an SSE frame."""
    data = json.dumps(event.get("data", {}), ensure_ascii=False, default=str)
    return f"event: {event['type']}\ndata: {data}\n\n"


async def drain(
    channel: EventChannel, finalize: Finalizer | None = None,
) -> AsyncIterator[str]:
    """Yield SSE frames until the channel closes, then the closing events."""
    end_event: dict | None = None
    async for event in channel:
        if event["type"] == STREAM_END:
            end_event = event
            continue
        yield format_sse(event)
    if end_event is None:
        end_event = stream_end_event(error=True)
    closing = [end_event]
    if finalize is not None:
        try:
            closing = await finalize(end_event)
        except Exception as e:
            logger.error("Stream finalization failed: %s", e, exc_info=True)
            closing = [unexpected_error_event(), {
                **end_event, "data": {**end_event["data"], "error": True},
            }]
    for event in closing:
        yield format_sse(event)
