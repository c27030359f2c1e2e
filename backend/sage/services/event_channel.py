"""Event Channel — single-producer, single-consumer queue between loop and SSE route.

Invariants:
    - Events are delivered in push order
    - After close(), push() is a no-op and iteration ends once queued events drain
    - `closed` flips when either side gives up (loop done, or client disconnected);
      the loop polls it to stop streaming and dispatching

Design Decisions:
    - asyncio.Queue with a sentinel over a callback: the route drains at its own pace
      and disconnects surface as CancelledError in exactly one place
"""

import asyncio
from typing import AsyncIterator

_CLOSE = object()


class EventChannel:
    """Ordered SageEvent queue with cooperative close."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: dict) -> None:
        if self._closed:
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSE)

    async def __aiter__(self) -> AsyncIterator[dict]:
        while True:
            item = await self._queue.get()
            if item is _CLOSE:
                return
            yield item

    def drain_nowait(self) -> list[dict]:
        """Everything currently queued (tests, post-run inspection)."""
        items = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is not _CLOSE:
                items.append(item)
        return items
