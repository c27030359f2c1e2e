"""Weaving Handlers — scene arc outline (3 methods).

Invariants:
    - Scene arc ids are unique; sceneNumber always equals position + 1
    - reorder_scenes requires an exact permutation of the current ids
    - Replacing the arc list drops inscribed scenes whose arc no longer exists
"""

from sage.core.adventure_state import AdventureState
from sage.core.conversation_types import ToolOutcome
from sage.core.domain_types import SceneType
from sage.core.errors import ToolInputError
from sage.core.sage_events import panel_event
from sage.core.version_history import push_version
from sage.services.tool_registry import EventSink

_REQUIRED_ARC_FIELDS = ("id", "title", "description")


def normalize_scene_arc(raw: object, position: int) -> dict:
    """Validate one arc and stamp its sceneNumber. Raises ToolInputError."""
    if not isinstance(raw, dict):
        raise ToolInputError(f"scene arc {position + 1} must be an object", "sceneArcs")
    missing = [f for f in _REQUIRED_ARC_FIELDS if not raw.get(f)]
    if missing:
        raise ToolInputError(
            f"scene arc {position + 1} is missing: {', '.join(missing)}", "sceneArcs",
        )
    scene_type = raw.get("sceneType")
    if scene_type is not None and scene_type not in {t.value for t in SceneType}:
        raise ToolInputError(f"unknown sceneType '{scene_type}'", "sceneType")
    return {
        **raw,
        "id": str(raw["id"]),
        "sceneNumber": position + 1,
        "keyElements": list(raw.get("keyElements") or []),
    }


class WeavingHandlers:
    """set_all_scene_arcs, set_scene_arc, reorder_scenes."""

    def __init__(self, state: AdventureState, emit: EventSink):
        self.state = state
        self.emit = emit

    def _emit_arcs(self) -> None:
        self.emit(panel_event("scene_arcs", {"sceneArcs": list(self.state.scene_arcs)}))

    async def set_all_scene_arcs(self, input_data: dict) -> ToolOutcome:
        raw_arcs = input_data.get("sceneArcs")
        if not isinstance(raw_arcs, list) or not raw_arcs:
            return ToolOutcome.error("sceneArcs must be a non-empty array")

        arcs = [normalize_scene_arc(a, i) for i, a in enumerate(raw_arcs)]
        ids = [a["id"] for a in arcs]
        if len(set(ids)) != len(ids):
            return ToolOutcome.error("scene arc ids must be unique")

        push_version(self.state, "sceneArcs", self.state.scene_arcs, "set_all_scene_arcs")
        self.state.scene_arcs = arcs
        kept = set(ids)
        self.state.inscribed_scenes = [
            s for s in self.state.inscribed_scenes if s.get("arcId") in kept
        ]
        self._emit_arcs()

        result = {"status": "scene_arcs_set", "count": len(arcs)}
        expected = self.state.components.get("scenes")
        if isinstance(expected, int) and expected != len(arcs):
            result["warning"] = f"the scenes component is {expected}, got {len(arcs)} arcs"
        return ToolOutcome.ok(result)

    async def set_scene_arc(self, input_data: dict) -> ToolOutcome:
        try:
            index = int(input_data.get("sceneIndex"))
        except (TypeError, ValueError):
            return ToolOutcome.error("sceneIndex must be a number")
        if not 0 <= index < len(self.state.scene_arcs):
            return ToolOutcome.error(
                f"sceneIndex {index} out of range (0..{len(self.state.scene_arcs) - 1})",
            )

        arc = normalize_scene_arc(input_data.get("sceneArc"), index)
        clash = next(
            (i for i, a in enumerate(self.state.scene_arcs)
             if a["id"] == arc["id"] and i != index),
            None,
        )
        if clash is not None:
            return ToolOutcome.error(f"scene arc id '{arc['id']}' is already used")

        push_version(self.state, "sceneArcs", self.state.scene_arcs, "set_scene_arc")
        self.state.scene_arcs[index] = arc
        self.emit(panel_event("scene_arc", {"sceneIndex": index, "sceneArc": arc}))
        return ToolOutcome.ok({"status": "scene_arc_updated", "sceneIndex": index})

    async def reorder_scenes(self, input_data: dict) -> ToolOutcome:
        order = input_data.get("order")
        current = {a["id"]: a for a in self.state.scene_arcs}
        if not isinstance(order, list) or sorted(map(str, order)) != sorted(current):
            return ToolOutcome.error(
                "order must list every scene id exactly once: "
                + ", ".join(current),
            )

        push_version(self.state, "sceneArcs", self.state.scene_arcs, "reorder_scenes")
        self.state.scene_arcs = [
            {**current[str(arc_id)], "sceneNumber": i + 1}
            for i, arc_id in enumerate(order)
        ]
        numbers = {a["id"]: a["sceneNumber"] for a in self.state.scene_arcs}
        for scene in self.state.inscribed_scenes:
            scene["sceneNumber"] = numbers.get(scene["arcId"], scene.get("sceneNumber"))
        self.state.inscribed_scenes.sort(key=lambda s: s.get("sceneNumber", 0))
        self._emit_arcs()
        return ToolOutcome.ok({"status": "scenes_reordered", "order": list(numbers)})
