"""Conversation Loop — one chat request: stream, dispatch tools, repeat, finish.

Invariants:
    - At most one provider call in flight; turns are strictly sequential
    - Every tool_use of a turn is answered by one tool_result message before the next call
    - Hard cap of max_turns provider calls per request (AGENT_LOOP_EXCEEDED past it)
    - stream_end is the last event pushed, exactly once, then the channel is closed
    - Once channel.closed (client gone): no further reads, calls, or dispatches,
      and results of a tool that was mid-flight are discarded

Design Decisions:
    - Events go to an EventChannel, not yielded: the SSE route is the single consumer
      and cancellation is observed through channel.closed
    - Provider and stream-framing failures are transport-fatal (error + stream_end);
      tool failures are not (they become error results the model can react to)
    - The adventure stage is fixed for the whole request: signal_ready marks readiness,
      the user advances through a separate route
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

from sage.core.adventure_state import AdventureState
from sage.core.errors import (
    ConversationLoopExceededError, ErrorCategory, ErrorContext, ErrorSeverity, SageError,
)
from sage.core.repository_protocols import ReferenceRepository
from sage.core.sage_events import (
    TOOL_END, chat_end_event, chat_start_event, stream_end_event,
    text_delta_event, unexpected_error_event,
)
from sage.services.conversation_helpers import fold_history, tool_call_record
from sage.services.event_channel import EventChannel
from sage.services.stream_parser import ParsedStream, parse_stream
from sage.services.system_prompt import build_system_prompt
from sage.services.tool_catalog import get_api_tools_for_stage
from sage.services.tool_dispatch import build_tool_dispatch
from sage.services.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 10


@dataclass
class ConversationRequest:
    """Everything one chat request needs. history is plain-text prior conversation."""
    session_id: str
    user_message: str
    state: AdventureState
    references: ReferenceRepository
    history: list[dict] = field(default_factory=list)


@dataclass
class ConversationOutcome:
    """What the request produced, for persistence and token accounting."""
    messages: list[dict] = field(default_factory=list)
    assistant_text: str = ""
    turns: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    tool_calls: list[dict] = field(default_factory=list)
    error: SageError | None = None
    cancelled: bool = False

    @property
    def folded_history(self) -> list[dict]:
        return fold_history(self.messages)


class ConversationLoop:
    """Drives provider turns and tool dispatch for one request at a time."""

    def __init__(
        self, client, model: str, max_tokens: int, max_turns: int = DEFAULT_MAX_TURNS,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.max_turns = max_turns

    async def run(
        self, request: ConversationRequest, channel: EventChannel,
    ) -> ConversationOutcome:
        """Run the request to completion, pushing SageEvents into channel."""
        outcome = ConversationOutcome(messages=[
            *request.history, {"role": "user", "content": request.user_message},
        ])
        message_id = f"msg_{uuid.uuid4().hex}"
        ctx = ErrorContext(session_id=request.session_id, stage=request.state.stage.value)
        try:
            channel.push(chat_start_event(message_id))
            await self._turn_loop(request, channel, outcome, message_id, ctx)
        except asyncio.CancelledError:
            logger.info("Conversation cancelled (client disconnect)",
                extra={"session_id": request.session_id})
            outcome.cancelled = True
            raise
        except SageError as e:
            logger.error("Conversation failed: %s", e.message,
                extra={"session_id": request.session_id, "error_code": e.code,
                       "turn": outcome.turns})
            outcome.error = e
            channel.push(e.to_sse_event())
            channel.push(self._stream_end(outcome, error=True))
        except Exception as e:
            logger.error("Unexpected error in conversation loop: %s", e,
                extra={"session_id": request.session_id}, exc_info=True)
            outcome.error = SageError(
                str(e), "INTERNAL_ERROR", ErrorCategory.INTERNAL,
                ErrorSeverity.CRITICAL, ctx,
            )
            channel.push(unexpected_error_event())
            channel.push(self._stream_end(outcome, error=True))
        finally:
            channel.close()
        return outcome

    async def _turn_loop(
        self,
        request: ConversationRequest,
        channel: EventChannel,
        outcome: ConversationOutcome,
        message_id: str,
        ctx: ErrorContext,
    ) -> None:
        stage = request.state.stage
        registry = build_tool_dispatch(
            request.state, stage, request.references, channel.push,
        )
        system = build_system_prompt(stage, request.state)
        tools = get_api_tools_for_stage(stage)
        texts: list[str] = []

        while outcome.turns < self.max_turns:
            if channel.closed:
                outcome.cancelled = True
                return
            outcome.turns += 1
            ctx.turn = outcome.turns

            parsed = await self._stream_turn(
                system, tools, outcome.messages, channel, message_id, ctx,
            )
            outcome.input_tokens += parsed.input_tokens
            outcome.output_tokens += parsed.output_tokens
            if parsed.text:
                texts.append(parsed.text)
                outcome.assistant_text = "".join(texts)
            if parsed.interrupted or channel.closed:
                outcome.cancelled = True
                return

            content = parsed.assistant_content()
            if content:
                outcome.messages.append({"role": "assistant", "content": content})
            if not parsed.tool_uses:
                channel.push(chat_end_event(
                    message_id, outcome.input_tokens, outcome.output_tokens,
                ))
                channel.push(self._stream_end(outcome, error=False))
                logger.info("Conversation complete", extra={
                    "session_id": request.session_id, "turn": outcome.turns,
                    "input_tokens": outcome.input_tokens,
                    "output_tokens": outcome.output_tokens,
                })
                return

            if not await self._dispatch(registry, parsed, channel, outcome):
                outcome.cancelled = True
                return

        raise ConversationLoopExceededError(self.max_turns, ctx)

    async def _stream_turn(
        self, system, tools, messages, channel, message_id, ctx,
    ) -> ParsedStream:
        async with self.client.stream_message(
            model=self.model, max_tokens=self.max_tokens,
            system=system, tools=tools, messages=messages, context=ctx,
        ) as stream:
            return await parse_stream(
                stream,
                on_text=lambda t: channel.push(text_delta_event(message_id, t)),
                should_stop=lambda: channel.closed,
            )

    async def _dispatch(
        self,
        registry: ToolRegistry,
        parsed: ParsedStream,
        channel: EventChannel,
        outcome: ConversationOutcome,
    ) -> bool:
        """Run the turn's tools. False when cancelled (results are discarded)."""
        result = await registry.dispatch(
            parsed.tool_uses, emit=channel.push, cancelled=lambda: channel.closed,
        )
        if result.cancelled or channel.closed:
            return False
        ends = [e for e in result.events if e["type"] == TOOL_END]
        outcome.tool_calls.extend(
            tool_call_record(tool_use, end, outcome.turns)
            for tool_use, end in zip(parsed.tool_uses, ends)
        )
        outcome.messages.append({"role": "user", "content": result.tool_results})
        return True

    @staticmethod
    def _stream_end(outcome: ConversationOutcome, error: bool) -> dict:
        return stream_end_event(
            error=error, turns=outcome.turns,
            input_tokens=outcome.input_tokens, output_tokens=outcome.output_tokens,
        )
