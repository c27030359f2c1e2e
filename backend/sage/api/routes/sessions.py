"""Session Routes — create, read, advance, and undo adventure sessions.

Invariants:
    - POST /sessions is guarded by the auth tier (session issuance)
    - Advance only moves forward one stage, and only after signal_ready for the current stage
    - Undo reverts one section to its previous value; nothing is written if the
      section has no history
    - Every write goes through the optimistic version check (409 on conflict)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from sage.api.rate_limit import USER_ID_HEADER, rate_limit
from sage.core.adventure_state import AdventureState
from sage.core.domain_types import RateLimitTier
from sage.core.errors import ErrorContext, StageTransitionError
from sage.core.version_history import apply_undo
from sage.infrastructure.database import get_db
from sage.models.adventure_session import AdventureSession
from sage.schemas.session import (
    AdvanceResponse, SessionResponse, UndoRequest, UndoResponse,
)
from sage.services.session_repository import create_session, load_session, save_session

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/v1/sessions", tags=["sessions"],
    dependencies=[Depends(rate_limit(RateLimitTier.GENERAL))],
)


def _to_response(row: AdventureSession) -> SessionResponse:
    state = AdventureState.from_snapshot(row.adventure_state)
    return SessionResponse(
        id=row.id,
        stage=state.stage.value,
        version=row.version,
        ready_to_advance=state.ready_to_advance,
        adventure=state.to_snapshot(),
        history=list(row.message_history or []),
        total_input_tokens=row.total_input_tokens,
        total_output_tokens=row.total_output_tokens,
    )


@router.post(
    "", status_code=status.HTTP_201_CREATED, response_model=SessionResponse,
    dependencies=[Depends(rate_limit(RateLimitTier.AUTH))],
)
async def create_adventure_session(request: Request, db: AsyncSession = Depends(get_db)):
    row = await create_session(db, request.headers.get(USER_ID_HEADER))
    await db.commit()
    logger.info("Session created", extra={"session_id": str(row.id)})
    return _to_response(row)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_adventure_session(session_id: UUID, db: AsyncSession = Depends(get_db)):
    return _to_response(await load_session(db, session_id))


@router.post("/{session_id}/advance", response_model=AdvanceResponse)
async def advance_stage(session_id: UUID, db: AsyncSession = Depends(get_db)):
    row = await load_session(db, session_id)
    state = AdventureState.from_snapshot(row.adventure_state)
    previous = state.stage
    ctx = ErrorContext(session_id=str(session_id), stage=previous.value)
    if not state.ready_to_advance:
        raise StageTransitionError(
            f"Stage '{previous.value}' has not been signalled ready", ctx,
        )
    if state.advance() is None:
        raise StageTransitionError("Delivering is the final stage", ctx)

    version = await save_session(db, session_id, row.version, state)
    await db.commit()
    logger.info("Stage advanced", extra={"session_id": str(session_id), "stage": state.stage.value})
    return AdvanceResponse(
        id=session_id, previous_stage=previous.value,
        stage=state.stage.value, version=version,
    )


@router.post("/{session_id}/undo", response_model=UndoResponse)
async def undo_section(
    session_id: UUID, body: UndoRequest, db: AsyncSession = Depends(get_db),
):
    row = await load_session(db, session_id)
    state = AdventureState.from_snapshot(row.adventure_state)
    result = apply_undo(state, body.section_path)

    version = await save_session(db, session_id, row.version, state)
    await db.commit()
    logger.info("Section reverted", extra={"session_id": str(session_id), "stage": state.stage.value})
    return UndoResponse(
        id=session_id, section_path=result.section_path,
        restored_value=result.restored_value,
        remaining_entries=result.remaining_entries, version=version,
    )
