"""Reference Queries — SQLAlchemy implementation of ReferenceRepository.

Invariants:
    - Read-only: never adds, flushes, or commits
    - Results are plain camelCase dicts (to_card), safe to embed in tool results
    - Frames matching more requested themes rank first; ties keep name order
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sage.models.reference import ReferenceAdversary, ReferenceFrame, ReferenceItem


def _theme_score(frame: ReferenceFrame, wanted: set[str]) -> int:
    themes = {t.lower() for t in (frame.themes or [])}
    return sum(
        1 for w in wanted
        if any(w in theme for theme in themes) or w in frame.name.lower()
    )


class SqlReferenceRepository:
    """ReferenceRepository over the reference_* tables."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def list_frames(self, themes: list[str], limit: int) -> list[dict]:
        result = await self._db.execute(
            select(ReferenceFrame).order_by(ReferenceFrame.name),
        )
        frames = list(result.scalars().all())
        wanted = {t.lower() for t in themes if t}
        if wanted:
            scored = [(f, _theme_score(f, wanted)) for f in frames]
            matching = [(f, s) for f, s in scored if s > 0]
            # fall back to the full gallery when nothing matches
            if matching:
                matching.sort(key=lambda fs: -fs[1])
                frames = [f for f, _ in matching]
        return [f.to_card() for f in frames[:limit]]

    async def get_frame(self, frame_id: str) -> dict | None:
        frame = await self._db.get(ReferenceFrame, frame_id)
        return frame.to_card() if frame else None

    async def list_adversaries(
        self, tier: int | None, adversary_type: str | None, limit: int,
    ) -> list[dict]:
        stmt = select(ReferenceAdversary).order_by(
            ReferenceAdversary.tier, ReferenceAdversary.name,
        )
        if tier is not None:
            stmt = stmt.where(ReferenceAdversary.tier == tier)
        if adversary_type:
            stmt = stmt.where(ReferenceAdversary.adversary_type == adversary_type.lower())
        result = await self._db.execute(stmt.limit(limit))
        return [a.to_card() for a in result.scalars().all()]

    async def list_items(
        self, tier: int | None, category: str | None, limit: int,
    ) -> list[dict]:
        stmt = select(ReferenceItem).order_by(ReferenceItem.tier, ReferenceItem.name)
        if tier is not None:
            stmt = stmt.where(ReferenceItem.tier == tier)
        if category:
            stmt = stmt.where(ReferenceItem.category == category.lower())
        result = await self._db.execute(stmt.limit(limit))
        return [i.to_card() for i in result.scalars().all()]
