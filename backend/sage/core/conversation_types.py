"""Conversation Types — value objects shared by the parser, dispatcher, and loop.

Invariants:
    - ToolDefinition and CollectedToolUse are immutable once constructed
    - CollectedToolUse.input is always a dict; a malformed payload is carried on
      input_error instead of being dropped
    - DispatchResult.tool_results order == dispatched tool-use order

Design Decisions:
    - Frozen dataclasses for values, plain dicts for anything that goes on the wire
      (Anthropic content blocks, SSE events) so they serialize without adapters
"""

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ToolDefinition:
    """A tool schema exposed to the model."""
    name: str
    description: str
    input_schema: dict

    def to_api(self) -> dict:
        """Anthropic Messages API tool shape."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass(frozen=True)
class CollectedToolUse:
    """One finalized tool invocation collected from a model turn."""
    id: str
    name: str
    input: dict = field(default_factory=dict)
    input_error: str | None = None

    def to_block(self) -> dict:
        return {
            "type": "tool_use", "id": self.id,
            "name": self.name, "input": self.input,
        }


@dataclass(frozen=True)
class ToolOutcome:
    """What a tool handler produced: a result payload and an error flag."""
    result: Any
    is_error: bool = False

    @classmethod
    def ok(cls, result: Any) -> "ToolOutcome":
        return cls(result, False)

    @classmethod
    def error(cls, message: str) -> "ToolOutcome":
        return cls(message, True)


def tool_result_block(tool_use_id: str, outcome: ToolOutcome) -> dict:
    """Anthropic tool_result block answering one tool_use id."""
    content = (
        outcome.result if isinstance(outcome.result, str)
        else json.dumps(outcome.result, ensure_ascii=False, default=str)
    )
    block = {
        "type": "tool_result",
        "tool_use_id": tool_use_id,
        "content": content,
    }
    if outcome.is_error:
        block["is_error"] = True
    return block


@dataclass
class DispatchResult:
    """Dispatcher output for one batch of tool-use blocks."""
    events: list[dict] = field(default_factory=list)
    tool_results: list[dict] = field(default_factory=list)
    cancelled: bool = False
