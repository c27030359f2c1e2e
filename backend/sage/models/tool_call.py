"""ToolCall ORM — logging table for tool invocations within chat requests.

Invariants:
    - Every dispatched tool call (success or error) is logged
    - session_id links to the owning adventure session

Design Decisions:
    - Logging table, not enforcement: no business logic reads it back
    - JSON columns for input/result: tool signatures vary by stage
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sage.db.base import Base


class ToolCall(Base):
    """ToolCall log entry."""
    __tablename__ = "tool_calls"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("adventure_sessions.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    tool_use_id: Mapped[str] = mapped_column(String(100), nullable=False)
    tool_name: Mapped[str] = mapped_column(String(50), nullable=False)
    stage: Mapped[str] = mapped_column(String(20), nullable=False)
    turn: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    tool_input: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    tool_result: Mapped[object | None] = mapped_column(JSON, nullable=True)
    is_error: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    session: Mapped["AdventureSession"] = relationship(  # noqa: F821
        "AdventureSession", back_populates="tool_calls",
    )
