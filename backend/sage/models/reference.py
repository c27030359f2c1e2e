"""Reference ORM — read-only Daggerheart reference data (frames, adversaries, items).

Invariants:
    - Rows are seeded out of band; the application never writes them
    - Natural string ids (e.g. "the-witherwild") so tools can reference them verbatim

Design Decisions:
    - themes / tags as JSON lists: filtered in Python, portable across Postgres and SQLite
    - to_card() returns the camelCase shape the panels and tool results use
"""

from sqlalchemy import JSON, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sage.db.base import Base


class ReferenceFrame(Base):
    __tablename__ = "reference_frames"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    themes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    typical_adversaries: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    lore: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def to_card(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "themes": list(self.themes or []),
            "typicalAdversaries": list(self.typical_adversaries or []),
            "lore": self.lore,
        }


class ReferenceAdversary(Base):
    __tablename__ = "reference_adversaries"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    tier: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    adversary_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    difficulty: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    stat_block: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    def to_card(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "tier": self.tier,
            "type": self.adversary_type,
            "difficulty": self.difficulty,
            "description": self.description,
            "statBlock": dict(self.stat_block or {}),
        }


class ReferenceItem(Base):
    __tablename__ = "reference_items"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    tier: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def to_card(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "tier": self.tier,
            "category": self.category,
            "description": self.description,
        }
