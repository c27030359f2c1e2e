"""Stream Parser — reduces one model turn's raw provider events to text + tool uses.

Invariants:
    - Tool input JSON is accumulated per content-block index and parsed once, at block stop
    - A malformed tool payload is reported on CollectedToolUse.input_error, never dropped
    - tool_uses are returned in the order their blocks started
    - Text fragments are forwarded to on_text as they arrive; tool fragments never are
    - Deltas or stops for an index that never started raise StreamProtocolError

Design Decisions:
    - Raw Messages API events (message_start, content_block_*, message_delta):
      the SDK's accumulated final message is not used, so partial JSON handling
      and ordering are explicit and testable
    - Attribute access via getattr: works with SDK models and test doubles alike
    - Unknown event and block types are ignored (thinking, server tools, pings)
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, Callable

from sage.core.conversation_types import CollectedToolUse
from sage.core.errors import StreamProtocolError

logger = logging.getLogger(__name__)


@dataclass
class _TextBlock:
    parts: list[str] = field(default_factory=list)


@dataclass
class _ToolUseBlock:
    id: str
    name: str
    initial_input: dict
    fragments: list[str] = field(default_factory=list)
    collected: CollectedToolUse | None = None

    @property
    def closed(self) -> bool:
        return self.collected is not None


@dataclass
class _OtherBlock:
    kind: str


@dataclass
class ParsedStream:
    """Finalized result of one model turn."""
    message_id: str = ""
    model: str = ""
    text: str = ""
    tool_uses: list[CollectedToolUse] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str | None = None
    interrupted: bool = False

    def assistant_content(self) -> list[dict]:
        """Assistant message content for history: text first, then tool_use blocks."""
        content: list[dict] = []
        if self.text:
            content.append({"type": "text", "text": self.text})
        content.extend(t.to_block() for t in self.tool_uses)
        return content


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def finalize_tool_input(raw_json: str, initial_input: dict) -> tuple[dict, str | None]:
    """Parse accumulated JSON fragments. Returns (input, error_or_None)."""
    if not raw_json.strip():
        return dict(initial_input or {}), None
    try:
        parsed = json.loads(raw_json)
    except json.JSONDecodeError as e:
        return {}, f"invalid JSON ({e.msg} at position {e.pos})"
    if not isinstance(parsed, dict):
        return {}, f"expected a JSON object, got {type(parsed).__name__}"
    return parsed, None


class _TurnAccumulator:
    """Per-turn mutable parse state. One instance per provider call."""

    def __init__(self, on_text: Callable[[str], None] | None):
        self.result = ParsedStream()
        self.blocks: dict[int, _TextBlock | _ToolUseBlock | _OtherBlock] = {}
        self.order: list[int] = []
        self._on_text = on_text

    def feed(self, event: Any) -> None:
        etype = _get(event, "type")
        if etype == "message_start":
            self._message_start(_get(event, "message"))
        elif etype == "content_block_start":
            self._block_start(_get(event, "index"), _get(event, "content_block"))
        elif etype == "content_block_delta":
            self._block_delta(_get(event, "index"), _get(event, "delta"))
        elif etype == "content_block_stop":
            self._block_stop(_get(event, "index"))
        elif etype == "message_delta":
            self._message_delta(event)

    def _message_start(self, message: Any) -> None:
        self.result.message_id = _get(message, "id", "") or ""
        self.result.model = _get(message, "model", "") or ""
        usage = _get(message, "usage")
        if usage is not None:
            self.result.input_tokens = _get(usage, "input_tokens", 0) or 0

    def _block_start(self, index: int, block: Any) -> None:
        if index in self.blocks:
            raise StreamProtocolError(f"content block {index} started twice")
        btype = _get(block, "type")
        if btype == "text":
            state: Any = _TextBlock()
            initial = _get(block, "text", "")
            if initial:
                self._append_text(state, initial)
        elif btype == "tool_use":
            state = _ToolUseBlock(
                id=_get(block, "id"), name=_get(block, "name"),
                initial_input=_get(block, "input") or {},
            )
        else:
            state = _OtherBlock(kind=str(btype))
        self.blocks[index] = state
        self.order.append(index)

    def _block_delta(self, index: int, delta: Any) -> None:
        block = self._require(index, "delta")
        dtype = _get(delta, "type")
        if dtype == "text_delta" and isinstance(block, _TextBlock):
            self._append_text(block, _get(delta, "text", "") or "")
        elif dtype == "input_json_delta" and isinstance(block, _ToolUseBlock):
            if block.closed:
                raise StreamProtocolError(f"input delta after stop on block {index}")
            block.fragments.append(_get(delta, "partial_json", "") or "")

    def _block_stop(self, index: int) -> None:
        block = self._require(index, "stop")
        if not isinstance(block, _ToolUseBlock) or block.closed:
            return
        tool_input, error = finalize_tool_input(
            "".join(block.fragments), block.initial_input,
        )
        if error:
            logger.warning(
                "Malformed tool input for '%s': %s", block.name, error,
                extra={"tool_name": block.name},
            )
        block.collected = CollectedToolUse(
            id=block.id, name=block.name, input=tool_input, input_error=error,
        )

    def _message_delta(self, event: Any) -> None:
        delta = _get(event, "delta")
        stop_reason = _get(delta, "stop_reason") if delta is not None else None
        if stop_reason:
            self.result.stop_reason = stop_reason
        usage = _get(event, "usage")
        if usage is not None:
            out = _get(usage, "output_tokens")
            if out is not None:
                self.result.output_tokens = out

    def _append_text(self, block: _TextBlock, text: str) -> None:
        if not text:
            return
        block.parts.append(text)
        if self._on_text is not None:
            self._on_text(text)

    def _require(self, index: int, what: str) -> Any:
        block = self.blocks.get(index)
        if block is None:
            raise StreamProtocolError(f"{what} for unknown content block {index}")
        return block

    def finish(self) -> ParsedStream:
        texts: list[str] = []
        for index in self.order:
            block = self.blocks[index]
            if isinstance(block, _TextBlock):
                texts.append("".join(block.parts))
            elif isinstance(block, _ToolUseBlock):
                if block.collected is None:
                    if self.result.interrupted:
                        continue
                    raise StreamProtocolError(
                        f"stream ended inside tool_use block {index} ({block.name})",
                    )
                self.result.tool_uses.append(block.collected)
        self.result.text = "".join(texts)
        return self.result


async def parse_stream(
    events: AsyncIterable[Any],
    on_text: Callable[[str], None] | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> ParsedStream:
    """Consume one turn's provider events and return the finalized turn.

    should_stop is polled after every event; when it returns True the stream is
    abandoned and the result is marked interrupted (unterminated tool blocks are
    discarded rather than reported).
    """
    acc = _TurnAccumulator(on_text)
    async for event in events:
        acc.feed(event)
        if should_stop is not None and should_stop():
            acc.result.interrupted = True
            break
    return acc.finish()
