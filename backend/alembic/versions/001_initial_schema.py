"""Initial schema — adventure_sessions, tool_calls, reference tables.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "adventure_sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("stage", sa.String(20), nullable=False, server_default="invoking"),
        sa.Column("adventure_state", sa.JSON, nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("message_history", sa.JSON, nullable=False),
        sa.Column("total_input_tokens", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_output_tokens", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_adventure_sessions_user_id", "adventure_sessions", ["user_id"])

    op.create_table(
        "tool_calls",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id", UUID(as_uuid=True),
            sa.ForeignKey("adventure_sessions.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("tool_use_id", sa.String(100), nullable=False),
        sa.Column("tool_name", sa.String(50), nullable=False),
        sa.Column("stage", sa.String(20), nullable=False),
        sa.Column("turn", sa.Integer, nullable=False, server_default="1"),
        sa.Column("tool_input", sa.JSON, nullable=True),
        sa.Column("tool_result", sa.JSON, nullable=True),
        sa.Column("is_error", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_tool_calls_session_id", "tool_calls", ["session_id"])

    op.create_table(
        "reference_frames",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("themes", sa.JSON, nullable=False),
        sa.Column("typical_adversaries", sa.JSON, nullable=False),
        sa.Column("lore", sa.Text, nullable=False, server_default=""),
    )

    op.create_table(
        "reference_adversaries",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("tier", sa.Integer, nullable=False),
        sa.Column("adversary_type", sa.String(50), nullable=False),
        sa.Column("difficulty", sa.Integer, nullable=True),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("stat_block", sa.JSON, nullable=False),
    )
    op.create_index("ix_reference_adversaries_tier", "reference_adversaries", ["tier"])
    op.create_index(
        "ix_reference_adversaries_adversary_type", "reference_adversaries", ["adversary_type"],
    )

    op.create_table(
        "reference_items",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("tier", sa.Integer, nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
    )
    op.create_index("ix_reference_items_tier", "reference_items", ["tier"])
    op.create_index("ix_reference_items_category", "reference_items", ["category"])


def downgrade() -> None:
    op.drop_table("reference_items")
    op.drop_table("reference_adversaries")
    op.drop_table("reference_frames")
    op.drop_table("tool_calls")
    op.drop_table("adventure_sessions")
