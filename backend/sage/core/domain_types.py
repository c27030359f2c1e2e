"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - Stage is a closed, ordered set of six values (declaration order == workflow order)
    - All valid states encoded as Enums, no raw string matching

Design Decisions:
    - str Enums: serialize to JSON without custom encoders (tool_result content is JSON)
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

SessionId = NewType("SessionId", UUID)
ToolUseId = NewType("ToolUseId", str)


# ─── Enums ───────────────────────────────────────────────────────

class Stage(str, Enum):
    """The six stages of the adventure-authoring workflow, in order."""
    INVOKING = "invoking"
    ATTUNING = "attuning"
    BINDING = "binding"
    WEAVING = "weaving"
    INSCRIBING = "inscribing"
    DELIVERING = "delivering"

    def next(self) -> "Stage | None":
        """Following stage, or None after DELIVERING."""
        order = list(Stage)
        idx = order.index(self)
        return order[idx + 1] if idx + 1 < len(order) else None


class ComponentId(str, Enum):
    """The eight Attuning components."""
    SPAN = "span"
    SCENES = "scenes"
    MEMBERS = "members"
    TIER = "tier"
    TENOR = "tenor"
    PILLARS = "pillars"
    CHORUS = "chorus"
    THREADS = "threads"


class SceneType(str, Enum):
    EXPLORATION = "exploration"
    SOCIAL = "social"
    COMBAT = "combat"
    PUZZLE = "puzzle"
    MIXED = "mixed"


class SceneSection(str, Enum):
    """The nine sections of an inscribed scene."""
    INTRODUCTION = "introduction"
    KEY_MOMENTS = "keyMoments"
    RESOLUTION = "resolution"
    NPCS = "npcs"
    ADVERSARIES = "adversaries"
    ITEMS = "items"
    PORTENTS = "portents"
    TIER_GUIDANCE = "tierGuidance"
    TONE_NOTES = "toneNotes"


class SceneStatus(str, Enum):
    DRAFT = "draft"
    REVISED = "revised"
    CONFIRMED = "confirmed"


class RateLimitTier(str, Enum):
    """Admission-control tiers, each keyed and counted independently."""
    GENERAL = "general"
    CHAT = "chat"
    AUTH = "auth"


# ─── Constants ───────────────────────────────────────────────────

# Attuning option sets (validated by set_component)
COMPONENT_OPTIONS: dict[ComponentId, tuple] = {
    ComponentId.SPAN: ("2-3 hours", "3-4 hours", "4-5 hours"),
    ComponentId.SCENES: (3, 4, 5, 6),
    ComponentId.MEMBERS: (2, 3, 4, 5),
    ComponentId.TIER: (1, 2, 3, 4),
    ComponentId.TENOR: ("grim", "serious", "balanced", "lighthearted", "whimsical"),
    ComponentId.PILLARS: ("interwoven", "battle-led", "discovery-led", "intrigue-led"),
    ComponentId.CHORUS: ("sparse", "moderate", "rich"),
    ComponentId.THREADS: (
        "redemption-sacrifice", "identity-legacy", "found-family",
        "power-corruption", "trust-betrayal", "survival-justice",
    ),
}
MAX_THREADS = 3
