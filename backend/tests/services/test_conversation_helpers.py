"""Unit Tests: history folding, system prompt assembly, rate-limit compaction task."""

import asyncio
import contextlib
import json

from sage.config import Settings
from sage.core.adventure_state import AdventureState
from sage.core.domain_types import Stage
from sage.core.rate_limit import RateLimitConfig, RateLimitStore
from sage.main import compact_rate_limits
from sage.services.conversation_helpers import fold_history, message_text
from sage.services.system_prompt import build_system_prompt


def test_message_text_handles_strings_and_blocks():
    assert message_text("hi") == "hi"
    assert message_text([
        {"type": "text", "text": "a"},
        {"type": "tool_use", "id": "t", "name": "x", "input": {}},
        {"type": "text", "text": "b"},
    ]) == "ab"
    assert message_text(None) == ""


def test_fold_history_drops_tool_traffic_and_merges_roles():
    messages = [
        {"role": "user", "content": "Hello"},
        {"role": "assistant", "content": [
            {"type": "text", "text": "Let me record that."},
            {"type": "tool_use", "id": "t1", "name": "set_spark", "input": {}},
        ]},
        {"role": "user", "content": [
            {"type": "tool_result", "tool_use_id": "t1", "content": "ok"},
        ]},
        {"role": "assistant", "content": [{"type": "text", "text": "Done."}]},
    ]

    assert fold_history(messages) == [
        {"role": "user", "content": "Hello"},
        {"role": "assistant", "content": "Let me record that.\n\nDone."},
    ]


def test_system_prompt_names_stage_tools_and_state():
    state = AdventureState(stage=Stage.BINDING, adventure_name="Hollow Crown")

    prompt = build_system_prompt(Stage.BINDING, state)

    assert "## Current stage: binding" in prompt
    tools_line = prompt.split("## Available tools\n", 1)[1].split("\n", 1)[0]
    assert tools_line.split(", ") == [
        "signal_ready", "suggest_adventure_name", "select_frame", "query_frames",
    ]
    snapshot = json.loads(prompt.split("## Adventure state\n", 1)[1])
    assert snapshot["adventureName"] == "Hollow Crown"


async def test_compaction_task_drops_idle_keys():
    now = [0]
    store = RateLimitStore(clock=lambda: now[0])
    store.check_rate_limit("ip:1", "general", RateLimitConfig(window_ms=10, max_requests=5))
    now[0] = 1_000_000
    settings = Settings(rate_limit_cleanup_interval_seconds=0)

    task = asyncio.create_task(compact_rate_limits(store, settings))
    for _ in range(5):
        await asyncio.sleep(0)
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task

    assert len(store) == 0
