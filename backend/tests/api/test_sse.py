"""Unit Tests: SSE framing + EventChannel ordering.

Invariants:
    - format_sse produces `event: <type>\\ndata: <json>\\n\\n`
    - drain preserves push order and always ends with exactly one stream_end
    - finalize replaces the held-back stream_end with its own closing events
    - A finalize that raises still closes with error + stream_end{error: true}
"""

import asyncio
import json

from sage.api.sse import drain, format_sse
from sage.core.sage_events import stream_end_event, text_delta_event
from sage.services.event_channel import EventChannel


def _parse(frames):
    out = []
    for frame in frames:
        head, data = frame.rstrip("\n").split("\n", 1)
        out.append((head.removeprefix("event: "), json.loads(data.removeprefix("data: "))))
    return out


async def _collect(channel, finalize=None):
    return [frame async for frame in drain(channel, finalize)]


def test_format_sse_frame_shape():
    frame = format_sse(text_delta_event("msg_1", "Olá"))
    assert frame == 'event: text_delta\ndata: {"messageId": "msg_1", "content": "Olá"}\n\n'


def test_format_sse_missing_data_is_empty_object():
    assert format_sse({"type": "ping"}) == "event: ping\ndata: {}\n\n"


def test_channel_ignores_push_after_close():
    channel = EventChannel()
    channel.push({"type": "a", "data": {}})
    channel.close()
    channel.push({"type": "b", "data": {}})
    channel.close()
    assert channel.closed
    assert channel.drain_nowait() == [{"type": "a", "data": {}}]


async def test_drain_orders_and_holds_back_stream_end():
    channel = EventChannel()
    channel.push({"type": "chat:start", "data": {}})
    channel.push(stream_end_event(turns=1))
    channel.push({"type": "chat:end", "data": {}})
    channel.close()

    events = _parse(await _collect(channel))

    assert [t for t, _ in events] == ["chat:start", "chat:end", "stream_end"]
    assert events[-1][1]["turns"] == 1


async def test_drain_synthesizes_error_stream_end():
    channel = EventChannel()
    channel.push({"type": "chat:start", "data": {}})
    channel.close()

    events = _parse(await _collect(channel))

    assert events[-1] == ("stream_end", {
        "error": True, "turns": 0, "inputTokens": 0, "outputTokens": 0,
    })


async def test_drain_finalize_sees_end_event_and_replaces_it():
    channel = EventChannel()
    channel.push(stream_end_event(turns=2))
    channel.close()
    seen = []

    async def finalize(end_event):
        seen.append(end_event)
        return [{"type": "error", "data": {"code": "X"}}, stream_end_event(error=True, turns=2)]

    events = _parse(await _collect(channel, finalize))

    assert seen[0]["data"]["turns"] == 2
    assert [t for t, _ in events] == ["error", "stream_end"]
    assert events[-1][1]["error"] is True


async def test_drain_survives_failing_finalize():
    channel = EventChannel()
    channel.push(stream_end_event(turns=3))
    channel.close()

    async def finalize(end_event):
        raise RuntimeError("connection lost")

    events = _parse(await _collect(channel, finalize))

    assert [t for t, _ in events] == ["error", "stream_end"]
    assert events[-1][1]["error"] is True
    assert events[-1][1]["turns"] == 3


async def test_drain_waits_for_producer():
    channel = EventChannel()

    async def produce():
        for i in range(3):
            await asyncio.sleep(0)
            channel.push({"type": "n", "data": {"i": i}})
        channel.push(stream_end_event())
        channel.close()

    task = asyncio.create_task(produce())
    events = _parse(await _collect(channel))
    await task

    assert [d.get("i") for t, d in events if t == "n"] == [0, 1, 2]
    assert events[-1][0] == "stream_end"
