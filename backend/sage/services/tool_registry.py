"""Tool Registry — name -> handler lookup and strictly sequential dispatch.

Invariants:
    - Registering a name twice raises DuplicateToolError
    - lookup() is total: an unregistered name yields NotFound, never an exception
    - dispatch() runs tool uses one at a time, in array order (never concurrently)
    - dispatch() of N tool uses returns N tool_result blocks with matching ids, in order
      (unless cancelled, in which case the partial result is discarded by the caller)
    - Handler failures never propagate: invoke_handler is the single boundary that
      converts exceptions into ToolOutcome(is_error=True)

Design Decisions:
    - Sequential dispatch: handlers mutate one shared adventure document, so
      concurrent execution would race on it; turns rarely carry more than a few calls
    - Every tool_use must be answered by a tool_result before the next provider call,
      so unknown tools and malformed inputs become error results, not exceptions
    - emit callback receives each event as it is produced (tool:start reaches the
      client before the handler runs); events are also returned for tests/replay
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Union

from sage.core.conversation_types import (
    CollectedToolUse, DispatchResult, ToolOutcome, tool_result_block,
)
from sage.core.errors import DuplicateToolError, SageError
from sage.core.sage_events import tool_end_event, tool_start_event

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict], Awaitable[ToolOutcome]]
EventSink = Callable[[dict], None]


@dataclass(frozen=True)
class Found:
    name: str
    handler: ToolHandler


@dataclass(frozen=True)
class NotFound:
    name: str


LookupResult = Union[Found, NotFound]


def unknown_tool_outcome(name: str) -> ToolOutcome:
    return ToolOutcome.error(
        f'Unknown tool: "{name}". This tool is not available in the current stage.',
    )


async def invoke_handler(tool_use: CollectedToolUse, handler: ToolHandler) -> ToolOutcome:
    """Run one handler with an error boundary. Never raises."""
    try:
        outcome = await handler(tool_use.input)
    except SageError as e:
        logger.warning("Tool error: %s", e.message,
            extra={"tool_name": tool_use.name, "error_code": e.code})
        return ToolOutcome.error(f'Tool "{tool_use.name}" failed: {e.message}')
    except Exception as e:
        logger.error("Unexpected error in tool '%s': %s",
            tool_use.name, e, exc_info=True, extra={"tool_name": tool_use.name})
        return ToolOutcome.error(f'Tool "{tool_use.name}" failed: {e}')
    if not isinstance(outcome, ToolOutcome):
        return ToolOutcome.ok(outcome)
    return outcome


class ToolRegistry:
    """Maps tool names to async handlers and dispatches collected tool uses."""

    def __init__(self) -> None:
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, name: str, handler: ToolHandler) -> None:
        if name in self._handlers:
            raise DuplicateToolError(name)
        self._handlers[name] = handler

    def lookup(self, name: str) -> LookupResult:
        handler = self._handlers.get(name)
        if handler is None:
            return NotFound(name)
        return Found(name, handler)

    def names(self) -> list[str]:
        return list(self._handlers)

    def reset(self) -> None:
        self._handlers.clear()

    async def execute(self, tool_use: CollectedToolUse) -> ToolOutcome:
        """Resolve and run a single tool use. Total: always returns an outcome."""
        if tool_use.input_error:
            return ToolOutcome.error(
                f'Tool "{tool_use.name}" received malformed input: {tool_use.input_error}',
            )
        match self.lookup(tool_use.name):
            case Found(handler=handler):
                return await invoke_handler(tool_use, handler)
            case NotFound(name=name):
                logger.warning("Unknown tool requested: %s", name,
                    extra={"tool_name": name})
                return unknown_tool_outcome(name)

    async def dispatch(
        self,
        tool_uses: list[CollectedToolUse],
        emit: EventSink | None = None,
        cancelled: Callable[[], bool] | None = None,
    ) -> DispatchResult:
        """Execute tool uses sequentially. Returns events + tool_result blocks."""
        out = DispatchResult()

        def _push(event: dict) -> None:
            out.events.append(event)
            if emit is not None:
                emit(event)

        for tool_use in tool_uses:
            if cancelled is not None and cancelled():
                out.cancelled = True
                break
            _push(tool_start_event(tool_use.id, tool_use.name, tool_use.input))
            outcome = await self.execute(tool_use)
            _push(tool_end_event(
                tool_use.id, tool_use.name, outcome.result, outcome.is_error,
            ))
            out.tool_results.append(tool_result_block(tool_use.id, outcome))
        return out

