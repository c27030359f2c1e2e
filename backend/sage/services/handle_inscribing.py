"""Inscribing Handlers — scene sections and reference lookups (4 methods).

Invariants:
    - A scene can only be inscribed for an existing scene arc
    - List-shaped sections (keyMoments, npcs, adversaries, items, portents) take arrays
    - Editing a confirmed scene moves it back to "revised"
    - query_adversaries / query_items never change the adventure document
"""

from sage.core.adventure_state import LIST_SECTIONS, AdventureState
from sage.core.conversation_types import ToolOutcome
from sage.core.domain_types import SceneSection, SceneStatus
from sage.core.repository_protocols import ReferenceRepository
from sage.core.sage_events import panel_event
from sage.core.version_history import push_version, scene_section_path
from sage.services.handle_binding import clamp_limit
from sage.services.tool_registry import EventSink


class InscribingHandlers:
    """update_scene_section, confirm_scene, query_adversaries, query_items."""

    def __init__(
        self, state: AdventureState, emit: EventSink, references: ReferenceRepository,
    ):
        self.state = state
        self.emit = emit
        self.references = references

    def _default_tier(self, input_data: dict) -> int | None:
        tier = input_data.get("tier", self.state.components.get("tier"))
        return int(tier) if isinstance(tier, (int, float)) else None

    async def update_scene_section(self, input_data: dict) -> ToolOutcome:
        arc_id = str(input_data.get("sceneArcId", ""))
        arc = self.state.find_scene_arc(arc_id)
        if arc is None:
            return ToolOutcome.error(f"Scene arc '{arc_id}' not found")
        try:
            section = SceneSection(input_data.get("section"))
        except ValueError:
            return ToolOutcome.error(f"Unknown section: '{input_data.get('section')}'")

        value = input_data.get("value")
        if section in LIST_SECTIONS:
            if isinstance(value, str):
                value = [value]
            if not isinstance(value, list):
                return ToolOutcome.error(f"section '{section.value}' expects an array")
        elif not isinstance(value, str):
            return ToolOutcome.error(f"section '{section.value}' expects a string")

        scene = self.state.ensure_inscribed_scene(arc)
        push_version(
            self.state, scene_section_path(arc_id, section), scene[section.value],
            "update_scene_section",
        )
        scene[section.value] = value
        if scene["status"] == SceneStatus.CONFIRMED.value:
            scene["status"] = SceneStatus.REVISED.value
        self.emit(panel_event("scene", dict(scene)))
        return ToolOutcome.ok({
            "status": "section_updated", "sceneArcId": arc_id, "section": section.value,
        })

    async def confirm_scene(self, input_data: dict) -> ToolOutcome:
        arc_id = str(input_data.get("sceneArcId", ""))
        arc = self.state.find_scene_arc(arc_id)
        if arc is None:
            return ToolOutcome.error(f"Scene arc '{arc_id}' not found")
        scene = self.state.find_inscribed_scene(arc_id)
        if scene is None or not scene.get(SceneSection.INTRODUCTION.value):
            return ToolOutcome.error(
                f"Scene '{arc_id}' has no introduction yet; inscribe it before confirming",
            )

        scene["status"] = SceneStatus.CONFIRMED.value
        self.emit(panel_event("scene", dict(scene)))
        return ToolOutcome.ok({
            "status": "scene_confirmed",
            "sceneArcId": arc_id,
            "allConfirmed": self.state.all_scenes_confirmed,
        })

    async def query_adversaries(self, input_data: dict) -> ToolOutcome:
        rows = await self.references.list_adversaries(
            self._default_tier(input_data),
            input_data.get("type"),
            clamp_limit(input_data.get("limit")),
        )
        return ToolOutcome.ok({"count": len(rows), "adversaries": rows})

    async def query_items(self, input_data: dict) -> ToolOutcome:
        rows = await self.references.list_items(
            self._default_tier(input_data),
            input_data.get("category"),
            clamp_limit(input_data.get("limit")),
        )
        return ToolOutcome.ok({"count": len(rows), "items": rows})
