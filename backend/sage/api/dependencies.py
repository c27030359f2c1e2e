"""Shared Route Dependencies — app-owned singletons resolved per request.

Design Decisions:
    - Objects live on app.state (built in lifespan); routes reach them through
      these functions so tests swap them with app.dependency_overrides
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from sage.core.repository_protocols import ReferenceRepository
from sage.infrastructure.database import get_db
from sage.services.conversation_loop import ConversationLoop
from sage.services.reference_queries import SqlReferenceRepository


def get_conversation_loop(request: Request) -> ConversationLoop:
    return request.app.state.conversation_loop


def get_reference_repository(db: AsyncSession = Depends(get_db)) -> ReferenceRepository:
    return SqlReferenceRepository(db)
