"""Mock Anthropic Client — replays raw Messages API stream events.

Invariants:
    - MockAnthropicClient sequences turns (one per stream_message call)
    - A queued Exception is raised from stream_message instead of streaming
    - Recorded calls snapshot the messages list (the loop keeps appending to it)
    - Builders emit the same event shapes as messages.create(stream=True)

Design Decisions:
    - Flat mock classes (no inheritance): simple, explicit, easy to debug
    - Attribute objects, not dicts: the parser must work with SDK-like models
"""

import json
from contextlib import asynccontextmanager


class _Obj:
    """Attribute bag standing in for SDK event / block / delta models."""

    def __init__(self, **kwargs):
        self.__dict__.update(kwargs)

    def __repr__(self):
        return f"_Obj({self.__dict__})"


# -- Event builders ------------------------------------------------------------


def message_start(message_id="msg_test", input_tokens=100, model="claude-test"):
    return _Obj(
        type="message_start",
        message=_Obj(id=message_id, model=model, usage=_Obj(input_tokens=input_tokens)),
    )


def message_end(stop_reason="end_turn", output_tokens=50):
    return [
        _Obj(
            type="message_delta",
            delta=_Obj(stop_reason=stop_reason),
            usage=_Obj(output_tokens=output_tokens),
        ),
        _Obj(type="message_stop"),
    ]


def text_block(index, text, chunks=1):
    """content_block_start/delta*/stop for a text block split into `chunks` deltas."""
    size = max(1, -(-len(text) // chunks)) if text else 1
    parts = [text[i:i + size] for i in range(0, len(text), size)] or [""]
    return [
        _Obj(type="content_block_start", index=index,
             content_block=_Obj(type="text", text="")),
        *[
            _Obj(type="content_block_delta", index=index,
                 delta=_Obj(type="text_delta", text=p))
            for p in parts
        ],
        _Obj(type="content_block_stop", index=index),
    ]


def tool_block(index, tool_id, name, tool_input=None, chunk_size=None, raw_json=None):
    """A tool_use block whose JSON arrives as input_json_delta fragments."""
    payload = raw_json if raw_json is not None else json.dumps(tool_input or {})
    size = chunk_size or max(len(payload), 1)
    fragments = [payload[i:i + size] for i in range(0, len(payload), size)]
    return [
        _Obj(type="content_block_start", index=index,
             content_block=_Obj(type="tool_use", id=tool_id, name=name, input={})),
        *[
            _Obj(type="content_block_delta", index=index,
                 delta=_Obj(type="input_json_delta", partial_json=f))
            for f in fragments
        ],
        _Obj(type="content_block_stop", index=index),
    ]


def text_turn(text, tokens=(100, 50), chunks=1):
    """A complete text-only turn."""
    return [
        message_start(input_tokens=tokens[0]),
        *text_block(0, text, chunks),
        *message_end("end_turn", tokens[1]),
    ]


def tool_turn(tools, text=None, tokens=(150, 80)):
    """A complete turn with optional text then tool_use blocks.

    tools: list of (name, input) pairs; ids are toolu_<index>_<name>.
    """
    events = [message_start(input_tokens=tokens[0])]
    index = 0
    if text:
        events.extend(text_block(index, text))
        index += 1
    for name, tool_input in tools:
        events.extend(tool_block(index, f"toolu_{index}_{name}", name, tool_input))
        index += 1
    events.extend(message_end("tool_use", tokens[1]))
    return events


# -- Streams and client --------------------------------------------------------


async def stream_of(events):
    for event in events:
        yield event


class _RawStream:
    """Async iterable over a turn's events; records whether it was closed."""

    def __init__(self, events):
        self._events = list(events)
        self._idx = 0
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._idx >= len(self._events):
            raise StopAsyncIteration
        event = self._events[self._idx]
        self._idx += 1
        if isinstance(event, Exception):
            raise event
        return event

    async def close(self):
        self.closed = True


class MockAnthropicClient:
    """Replaces ResilientAnthropicClient. Sequences pre-configured turns."""

    def __init__(self, turns=None):
        self._turns = list(turns or [])
        self._idx = 0
        self.calls = []
        self.streams = []

    def queue(self, *turns):
        self._turns.extend(turns)

    @asynccontextmanager
    async def stream_message(self, **kwargs):
        self.calls.append({**kwargs, "messages": list(kwargs["messages"])})
        if self._idx >= len(self._turns):
            raise RuntimeError(
                f"MockAnthropicClient: no turn at index {self._idx} "
                f"(configured {len(self._turns)})",
            )
        turn = self._turns[self._idx]
        self._idx += 1
        if isinstance(turn, Exception):
            raise turn
        stream = _RawStream(turn)
        self.streams.append(stream)
        try:
            yield stream
        finally:
            await stream.close()
