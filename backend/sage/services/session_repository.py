"""Session Repository — load and save adventure sessions with optimistic concurrency.

Invariants:
    - save() writes only if the row still has the version that was loaded;
      otherwise ConcurrencyError (409) and nothing is written
    - A successful save bumps version by exactly 1
    - Tool-call log rows are added in the same transaction as the state update

Design Decisions:
    - Explicit UPDATE ... WHERE version = :expected over mapper version_id_col:
      the conflict check is visible at the call site
    - Caller owns the transaction boundary (commit), like the rest of the services
"""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sage.core.adventure_state import AdventureState
from sage.core.errors import ConcurrencyError, ErrorContext, ResourceNotFoundError
from sage.models.adventure_session import AdventureSession
from sage.models.tool_call import ToolCall

logger = logging.getLogger(__name__)


async def load_session(db: AsyncSession, session_id: uuid.UUID) -> AdventureSession:
    result = await db.execute(
        select(AdventureSession).where(AdventureSession.id == session_id),
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise ResourceNotFoundError("Session", str(session_id))
    return row


async def create_session(db: AsyncSession, user_id: str | None) -> AdventureSession:
    state = AdventureState()
    row = AdventureSession(
        user_id=user_id,
        stage=state.stage.value,
        adventure_state=state.to_snapshot(),
        version=1,
        message_history=[],
        total_input_tokens=0,
        total_output_tokens=0,
    )
    db.add(row)
    await db.flush()
    return row


async def save_session(
    db: AsyncSession,
    session_id: uuid.UUID,
    expected_version: int,
    state: AdventureState,
    message_history: list | None = None,
    input_tokens: int = 0,
    output_tokens: int = 0,
) -> int:
    """Persist state (and optionally history + token deltas). Returns the new version."""
    values: dict = {
        "stage": state.stage.value,
        "adventure_state": state.to_snapshot(),
        "version": expected_version + 1,
        "total_input_tokens": AdventureSession.total_input_tokens + input_tokens,
        "total_output_tokens": AdventureSession.total_output_tokens + output_tokens,
    }
    if message_history is not None:
        values["message_history"] = message_history

    result = await db.execute(
        update(AdventureSession)
        .where(
            AdventureSession.id == session_id,
            AdventureSession.version == expected_version,
        )
        .values(**values)
        .execution_options(synchronize_session=False),
    )
    if result.rowcount != 1:
        logger.warning("Optimistic concurrency conflict",
            extra={"session_id": str(session_id)})
        raise ConcurrencyError(
            "The adventure was modified by another request; reload and retry",
            ErrorContext(session_id=str(session_id), stage=state.stage.value),
        )
    return expected_version + 1


def record_tool_calls(
    db: AsyncSession, session_id: uuid.UUID, stage: str, tool_calls: list[dict],
) -> None:
    """Queue tool-call log rows. No flush: persisted with the surrounding commit."""
    for call in tool_calls:
        db.add(ToolCall(
            session_id=session_id,
            tool_use_id=call["toolUseId"],
            tool_name=call["toolName"],
            stage=stage,
            turn=call.get("turn", 1),
            tool_input=call.get("input"),
            tool_result=call.get("result"),
            is_error=bool(call.get("isError")),
        ))
