"""Integration Tests: ConversationLoop — streaming turns, dispatch, termination.

Invariants:
    - Every run ends with exactly one stream_end, as the last event, and a closed channel
    - A turn with tool uses triggers another provider call carrying the tool results
    - The turn cap ends the run with AGENT_LOOP_EXCEEDED
    - A closed channel stops streaming and dispatch; mid-flight results are discarded

Design Decisions:
    - Mock at the Anthropic boundary (MockAnthropicClient), real handlers and registry
"""

from contextlib import asynccontextmanager

from sage.core.adventure_state import AdventureState
from sage.core.conversation_types import ToolOutcome
from sage.core.domain_types import Stage
from sage.core.errors import AnthropicAPIError
from sage.services.conversation_loop import ConversationLoop, ConversationRequest
from sage.services.event_channel import EventChannel
from sage.services.tool_registry import ToolRegistry

from tests.services.mock_anthropic import (
    MockAnthropicClient, _RawStream, text_turn, tool_turn,
)


def _request(references, message="Hello", stage=Stage.INVOKING, history=None):
    return ConversationRequest(
        session_id="sess-1",
        user_message=message,
        state=AdventureState(stage=stage),
        references=references,
        history=history or [],
    )


async def _run(loop, request):
    channel = EventChannel()
    outcome = await loop.run(request, channel)
    return outcome, channel.drain_nowait(), channel


def _types(events):
    return [e["type"] for e in events]


async def test_hello_turn_streams_text_and_ends_cleanly(references):
    llm = MockAnthropicClient([text_turn("Greetings, storyteller.", tokens=(100, 50), chunks=2)])
    loop = ConversationLoop(llm, model="claude-test", max_tokens=1024)

    outcome, events, channel = await _run(loop, _request(references))

    assert _types(events) == [
        "chat:start", "text_delta", "text_delta", "chat:end", "stream_end",
    ]
    assert "".join(e["data"]["content"] for e in events if e["type"] == "text_delta") == (
        "Greetings, storyteller."
    )
    assert events[-1]["data"] == {
        "error": False, "turns": 1, "inputTokens": 100, "outputTokens": 50,
    }
    assert channel.closed
    assert outcome.error is None
    assert outcome.folded_history == [
        {"role": "user", "content": "Hello"},
        {"role": "assistant", "content": "Greetings, storyteller."},
    ]
    call = llm.calls[0]
    assert call["model"] == "claude-test"
    assert {t["name"] for t in call["tools"]} == {
        "signal_ready", "suggest_adventure_name", "set_spark",
    }
    assert "Current stage: invoking" in call["system"]


async def test_unknown_tool_result_fed_back_on_second_call(references):
    llm = MockAnthropicClient([
        tool_turn([("foo", {"a": 1})], text="Let me try."),
        text_turn("That tool does not exist here."),
    ])
    loop = ConversationLoop(llm, model="claude-test", max_tokens=1024)

    outcome, events, _ = await _run(loop, _request(references))

    assert len(llm.calls) == 2
    second = llm.calls[1]["messages"]
    assert second[-2]["role"] == "assistant"
    assert second[-2]["content"][-1] == {
        "type": "tool_use", "id": "toolu_1_foo", "name": "foo", "input": {"a": 1},
    }
    assert second[-1] == {"role": "user", "content": [{
        "type": "tool_result",
        "tool_use_id": "toolu_1_foo",
        "content": 'Unknown tool: "foo". This tool is not available in the current stage.',
        "is_error": True,
    }]}
    assert _types(events).count("tool:start") == 1
    assert events[-1]["type"] == "stream_end"
    assert events[-1]["data"]["error"] is False
    assert outcome.turns == 2
    assert outcome.tool_calls[0]["isError"] is True


async def test_tool_mutates_state_and_emits_panel(references):
    spark = {"name": "Hollow Crown", "vision": "A drowned heist"}
    llm = MockAnthropicClient([
        tool_turn([("set_spark", spark)]),
        text_turn("Captured."),
    ])
    loop = ConversationLoop(llm, model="claude-test", max_tokens=1024)
    request = _request(references)

    outcome, events, _ = await _run(loop, request)

    assert request.state.spark == spark
    assert _types(events)[:4] == ["chat:start", "tool:start", "panel:spark", "tool:end"]
    assert outcome.input_tokens == 250
    assert outcome.folded_history[-1] == {"role": "assistant", "content": "Captured."}


async def test_turn_cap_emits_loop_exceeded(references):
    llm = MockAnthropicClient([tool_turn([("foo", {})]) for _ in range(3)])
    loop = ConversationLoop(llm, model="claude-test", max_tokens=1024, max_turns=3)

    outcome, events, channel = await _run(loop, _request(references))

    assert len(llm.calls) == 3
    errors = [e for e in events if e["type"] == "error"]
    assert errors[0]["data"]["code"] == "AGENT_LOOP_EXCEEDED"
    assert events[-1]["type"] == "stream_end"
    assert events[-1]["data"]["error"] is True
    assert outcome.error.code == "AGENT_LOOP_EXCEEDED"
    assert channel.closed


async def test_provider_failure_is_transport_fatal(references):
    llm = MockAnthropicClient([AnthropicAPIError("overloaded", "overloaded")])
    loop = ConversationLoop(llm, model="claude-test", max_tokens=1024)

    outcome, events, _ = await _run(loop, _request(references))

    assert _types(events) == ["chat:start", "error", "stream_end"]
    assert events[1]["data"]["code"] == "ANTHROPIC_API_ERROR"
    assert events[1]["data"]["retryable"] is True
    assert events[2]["data"]["error"] is True
    assert outcome.error is not None


async def test_malformed_stream_is_transport_fatal(references):
    turn = tool_turn([("set_spark", {"name": "x", "vision": "y"})])
    stop_index = max(i for i, e in enumerate(turn) if e.type == "content_block_stop")
    del turn[stop_index]
    llm = MockAnthropicClient([turn])
    loop = ConversationLoop(llm, model="claude-test", max_tokens=1024)

    _, events, _ = await _run(loop, _request(references))

    assert events[-2]["data"]["code"] == "STREAM_PROTOCOL_ERROR"
    assert events[-1] == {"type": "stream_end", "data": {
        "error": True, "turns": 1, "inputTokens": 0, "outputTokens": 0,
    }}


async def test_client_disconnect_mid_stream_stops_reading(references):
    channel = EventChannel()

    class _ClosingClient(MockAnthropicClient):
        @asynccontextmanager
        async def stream_message(self, **kwargs):
            async with super().stream_message(**kwargs) as stream:
                yield _CloseAfterFirstText(stream, channel)

    class _CloseAfterFirstText:
        def __init__(self, inner: _RawStream, ch):
            self._inner = inner
            self._ch = ch

        def __aiter__(self):
            return self

        async def __anext__(self):
            event = await self._inner.__anext__()
            if getattr(event, "type", None) == "content_block_delta":
                self._ch.close()
            return event

    llm = _ClosingClient([tool_turn([("set_spark", {"name": "a", "vision": "b"})], text="Hm")])
    loop = ConversationLoop(llm, model="claude-test", max_tokens=1024)
    request = _request(references)

    outcome = await loop.run(request, channel)

    assert outcome.cancelled
    assert len(llm.calls) == 1
    assert llm.streams[0].closed
    assert request.state.spark is None
    assert "stream_end" not in _types(channel.drain_nowait())


async def test_client_disconnect_during_dispatch_discards_results(references, monkeypatch):
    channel = EventChannel()
    ran = []

    async def closes_channel(data):
        ran.append("first")
        channel.close()
        return ToolOutcome.ok("done")

    async def never(data):
        ran.append("second")
        return ToolOutcome.ok("nope")

    def fake_build(state, stage, references, emit):
        reg = ToolRegistry()
        reg.register("first", closes_channel)
        reg.register("second", never)
        return reg

    monkeypatch.setattr("sage.services.conversation_loop.build_tool_dispatch", fake_build)
    llm = MockAnthropicClient([tool_turn([("first", {}), ("second", {})])])
    loop = ConversationLoop(llm, model="claude-test", max_tokens=1024)

    outcome = await loop.run(_request(references), channel)

    assert ran == ["first"]
    assert outcome.cancelled
    assert len(llm.calls) == 1
    assert outcome.tool_calls == []
    assert all(m["role"] != "user" or isinstance(m["content"], str) for m in outcome.messages)


async def test_history_is_sent_before_new_message(references):
    llm = MockAnthropicClient([text_turn("Welcome back.")])
    loop = ConversationLoop(llm, model="claude-test", max_tokens=1024)
    history = [
        {"role": "user", "content": "Earlier"},
        {"role": "assistant", "content": "Earlier reply"},
    ]

    outcome, _, _ = await _run(loop, _request(references, message="Again", history=history))

    assert llm.calls[0]["messages"] == [*history, {"role": "user", "content": "Again"}]
    assert len(outcome.folded_history) == 4
