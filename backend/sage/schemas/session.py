"""Session Schemas — Pydantic models for the session and chat API boundaries.

Invariants:
    - ChatRequest.message: 1-20000 chars, stripped, non-empty
    - SessionResponse exposes the adventure document as its camelCase snapshot

Design Decisions:
    - field_validator for side-effect-free transforms (strip): keeps models pure
"""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from sage.core.version_history import is_valid_section_path


class ChatRequest(BaseModel):
    """One user chat message for an existing session."""
    session_id: UUID
    message: str = Field(min_length=1, max_length=20_000)

    @field_validator("message")
    @classmethod
    def strip_message(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("message cannot be empty or whitespace")
        return v


class SessionResponse(BaseModel):
    """Public-facing session data."""
    id: UUID
    stage: str
    version: int
    ready_to_advance: bool
    adventure: dict
    history: list[dict] = []
    total_input_tokens: int = 0
    total_output_tokens: int = 0


class AdvanceResponse(BaseModel):
    id: UUID
    previous_stage: str
    stage: str
    version: int


class UndoRequest(BaseModel):
    """Revert one section: "spark", "components", "frame", "sceneArcs",
    or "scene:<arcId>:<section>"."""
    section_path: str = Field(min_length=1, max_length=200)

    @field_validator("section_path")
    @classmethod
    def known_section(cls, v: str) -> str:
        if not is_valid_section_path(v):
            raise ValueError(f'invalid section path "{v}"')
        return v


class UndoResponse(BaseModel):
    id: UUID
    section_path: str
    restored_value: Any = None
    remaining_entries: int
    version: int
