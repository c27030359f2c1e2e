"""Chat Route — one user message in, one SSE stream of SageEvents out.

Invariants:
    - Guarded by the general and chat tiers; the chat tier's headers win
    - Exactly one conversation loop per request, feeding one EventChannel
    - stream_end is the last frame; it is held back until the session is persisted
      so a persistence failure can still be reported on the stream
    - A client disconnect closes the channel (the loop winds down) and nothing is persisted

Design Decisions:
    - Loop runs as its own task; the response generator is the channel's only consumer
    - Persist after the loop: folded history + state + token totals + tool-call log in
      one transaction guarded by the row version loaded at request start
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sage.api.dependencies import get_conversation_loop, get_reference_repository
from sage.api.rate_limit import rate_limit
from sage.api.sse import SSE_HEADERS, drain
from sage.core.adventure_state import AdventureState
from sage.core.domain_types import RateLimitTier
from sage.core.errors import SageError
from sage.core.repository_protocols import ReferenceRepository
from sage.core.sage_events import session_stage_event, stream_end_event
from sage.infrastructure.database import get_db, to_database_error
from sage.schemas.session import ChatRequest
from sage.services.conversation_loop import (
    ConversationLoop, ConversationOutcome, ConversationRequest,
)
from sage.services.event_channel import EventChannel
from sage.services.session_repository import (
    load_session, record_tool_calls, save_session,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/v1", tags=["chat"],
    dependencies=[Depends(rate_limit(RateLimitTier.GENERAL))],
)

# Strong references to running loops (the event loop only keeps weak ones)
_running: set[asyncio.Task] = set()


@router.post("/chat", dependencies=[Depends(rate_limit(RateLimitTier.CHAT))])
async def chat(
    body: ChatRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    loop: ConversationLoop = Depends(get_conversation_loop),
    references: ReferenceRepository = Depends(get_reference_repository),
):
    row = await load_session(db, body.session_id)
    session_id = row.id
    expected_version = row.version
    state = AdventureState.from_snapshot(row.adventure_state)
    conversation = ConversationRequest(
        session_id=str(session_id),
        user_message=body.message,
        state=state,
        references=references,
        history=list(row.message_history or []),
    )
    channel = EventChannel()
    channel.push(session_stage_event(str(session_id), state.stage.value))

    async def persist(end_event: dict, outcome: ConversationOutcome) -> list[dict]:
        try:
            await save_session(
                db, session_id, expected_version, state,
                message_history=outcome.folded_history,
                input_tokens=outcome.input_tokens,
                output_tokens=outcome.output_tokens,
            )
            record_tool_calls(db, session_id, state.stage.value, outcome.tool_calls)
            await db.commit()
        except (SageError, SQLAlchemyError) as raw:
            await db.rollback()
            e = raw if isinstance(raw, SageError) else to_database_error(raw)
            logger.error("Failed to persist chat outcome: %s", e.message,
                extra={"session_id": str(session_id), "error_code": e.code})
            return [e.to_sse_event(), stream_end_event(
                error=True, turns=outcome.turns,
                input_tokens=outcome.input_tokens, output_tokens=outcome.output_tokens,
            )]
        return [end_event]

    async def event_generator():
        task = asyncio.create_task(loop.run(conversation, channel))
        _running.add(task)
        task.add_done_callback(_running.discard)

        async def finalize(end_event: dict) -> list[dict]:
            outcome = await task
            if outcome.cancelled:
                return [end_event]
            return await persist(end_event, outcome)

        try:
            async for frame in drain(channel, finalize):
                yield frame
        except asyncio.CancelledError:
            channel.close()
            logger.info("Client disconnected from chat stream",
                extra={"session_id": str(session_id)})
            raise

    headers = {**SSE_HEADERS, **getattr(request.state, "rate_limit_headers", {})}
    return StreamingResponse(
        event_generator(), media_type="text/event-stream", headers=headers,
    )
