"""Boundary Protocols — contracts between handlers and persistence.

Invariants:
    - Handlers depend on these Protocols, never on the ORM directly
    - Reference data is read-only from the conversation's point of view

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
"""

from typing import Protocol


class ReferenceRepository(Protocol):
    """Read-only Daggerheart reference data (frames, adversaries, items)."""

    async def list_frames(self, themes: list[str], limit: int) -> list[dict]: ...

    async def get_frame(self, frame_id: str) -> dict | None: ...

    async def list_adversaries(
        self, tier: int | None, adversary_type: str | None, limit: int,
    ) -> list[dict]: ...

    async def list_items(
        self, tier: int | None, category: str | None, limit: int,
    ) -> list[dict]: ...
