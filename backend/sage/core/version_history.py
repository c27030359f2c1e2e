"""Version History — per-section undo stacks on the adventure document.

Invariants:
    - push_version is called BEFORE a section changes and stores a deep copy
    - Each section path keeps at most MAX_VERSION_ENTRIES entries (oldest dropped)
    - apply_undo pops exactly one entry and restores it; nothing changes on failure
    - Section paths: "spark", "components", "frame", "sceneArcs",
      or "scene:<arcId>:<section>" for one inscribed scene section

Design Decisions:
    - Stacks live on AdventureState (persisted with the snapshot), so undo needs
      no extra table and rides the same optimistic version check
    - Pure functions over the state, no IO: the undo route loads, applies, saves
"""

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sage.core.adventure_state import AdventureState
from sage.core.domain_types import SceneSection
from sage.core.errors import NothingToUndoError

MAX_VERSION_ENTRIES = 10

TOP_LEVEL_SECTIONS = ("spark", "components", "frame", "sceneArcs")
_SCENE_PREFIX = "scene:"


@dataclass(frozen=True)
class UndoResult:
    section_path: str
    restored_value: Any
    remaining_entries: int


def scene_section_path(arc_id: str, section: SceneSection) -> str:
    return f"{_SCENE_PREFIX}{arc_id}:{section.value}"


def parse_section_path(path: str) -> tuple[str, SceneSection] | str | None:
    """(arcId, section) for scene paths, the key for top-level paths, else None."""
    if path in TOP_LEVEL_SECTIONS:
        return path
    if not path.startswith(_SCENE_PREFIX):
        return None
    parts = path.split(":")
    if len(parts) != 3 or not parts[1]:
        return None
    try:
        return parts[1], SceneSection(parts[2])
    except ValueError:
        return None


def is_valid_section_path(path: str) -> bool:
    return parse_section_path(path) is not None


def push_version(
    state: AdventureState, path: str, previous: Any, description: str | None = None,
) -> None:
    stack = state.version_history.setdefault(path, [])
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "value": copy.deepcopy(previous),
    }
    if description:
        entry["description"] = description
    stack.append(entry)
    del stack[:-MAX_VERSION_ENTRIES]


def version_count(state: AdventureState, path: str) -> int:
    return len(state.version_history.get(path) or [])


def apply_undo(state: AdventureState, path: str) -> UndoResult:
    """Restore the most recent previous value of a section. Raises NothingToUndoError."""
    target = parse_section_path(path)
    if target is None:
        raise NothingToUndoError(path, f'Invalid section path "{path}"')
    stack = state.version_history.get(path)
    if not stack:
        raise NothingToUndoError(path, f'No version history for section "{path}"')

    if isinstance(target, tuple):
        arc_id, section = target
        scene = state.find_inscribed_scene(arc_id)
        if scene is None:
            raise NothingToUndoError(path, f"Scene '{arc_id}' no longer exists")
        value = stack.pop()["value"]
        scene[section.value] = value
    else:
        value = stack.pop()["value"]
        _restore_top_level(state, target, value)

    return UndoResult(path, value, len(stack))


def _restore_top_level(state: AdventureState, key: str, value: Any) -> None:
    match key:
        case "spark":
            state.spark = value
        case "components":
            state.components.clear()
            state.components.update(value or {})
        case "frame":
            state.frame = value
        case "sceneArcs":
            state.scene_arcs = list(value or [])
