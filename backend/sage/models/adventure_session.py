"""AdventureSession ORM — persists one user's adventure document between requests.

Invariants:
    - id is UUID primary key
    - adventure_state holds AdventureState.to_snapshot() (stage mirrored in `stage`)
    - version increases by exactly 1 on every successful save (optimistic concurrency)
    - message_history stores folded, plain-text conversation only

Design Decisions:
    - JSON columns for state and history: the document is read and written whole
    - stage denormalized out of adventure_state: listable without decoding JSON
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sage.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AdventureSession(Base):
    """Adventure session aggregate root."""
    __tablename__ = "adventure_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    stage: Mapped[str] = mapped_column(String(20), nullable=False, default="invoking")
    adventure_state: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    message_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    total_input_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_output_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    tool_calls: Mapped[list["ToolCall"]] = relationship(  # noqa: F821
        "ToolCall", back_populates="session",
        cascade="all, delete-orphan", lazy="raise",
    )
