"""Universal Handlers — tools available in every stage (2 methods).

Invariants:
    - signal_ready only marks the CURRENT stage ready; the stage itself is advanced
      by the user through the /advance route, never by the model
    - Each stage's readiness precondition is checked before marking ready
"""

from sage.core.adventure_state import AdventureState
from sage.core.conversation_types import ToolOutcome
from sage.core.domain_types import Stage
from sage.core.sage_events import panel_event, ui_ready_event
from sage.services.tool_registry import EventSink


def _readiness_gap(state: AdventureState) -> str | None:
    """What is still missing before the current stage can complete, if anything."""
    match state.stage:
        case Stage.INVOKING if state.spark is None:
            return "Capture the spark with set_spark first."
        case Stage.ATTUNING if not state.all_components_confirmed:
            missing = sorted(set(state.components) - state.confirmed_components)
            return f"Components not yet confirmed: {', '.join(missing)}."
        case Stage.BINDING if state.frame is None:
            return "Select a frame with select_frame first."
        case Stage.WEAVING if not state.scene_arcs:
            return "Populate scene arcs with set_all_scene_arcs first."
        case Stage.INSCRIBING if not state.all_scenes_confirmed:
            return "Every scene must be confirmed with confirm_scene first."
        case Stage.DELIVERING:
            return "Delivering is the final stage; use finalize_adventure."
    return None


class UniversalHandlers:
    """signal_ready and suggest_adventure_name."""

    def __init__(self, state: AdventureState, emit: EventSink):
        self.state = state
        self.emit = emit

    async def signal_ready(self, input_data: dict) -> ToolOutcome:
        stage = input_data.get("stage", "")
        summary = input_data.get("summary", "")
        if stage != self.state.stage.value:
            return ToolOutcome.error(
                f"Cannot signal ready for '{stage}': "
                f"the current stage is '{self.state.stage.value}'.",
            )
        gap = _readiness_gap(self.state)
        if gap:
            return ToolOutcome.error(gap)

        self.state.mark_ready(summary)
        self.emit(ui_ready_event(stage, summary))
        nxt = self.state.stage.next()
        return ToolOutcome.ok({
            "status": "ready",
            "stage": stage,
            "nextStage": nxt.value if nxt else None,
        })

    async def suggest_adventure_name(self, input_data: dict) -> ToolOutcome:
        name = (input_data.get("name") or "").strip()
        if not name:
            return ToolOutcome.error("name is required for suggest_adventure_name")
        reason = input_data.get("reason")

        self.state.adventure_name = name
        data = {"name": name}
        if reason:
            data["reason"] = reason
        self.emit(panel_event("name", data))
        return ToolOutcome.ok({"status": "name_suggested", "name": name})
