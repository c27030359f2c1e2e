"""Delivering Handlers — finalize the adventure for export (1 method)."""

from datetime import datetime, timezone

from sage.core.adventure_state import AdventureState
from sage.core.conversation_types import ToolOutcome
from sage.core.domain_types import SceneStatus
from sage.core.sage_events import panel_event
from sage.services.tool_registry import EventSink


class DeliveringHandlers:
    """finalize_adventure."""

    def __init__(self, state: AdventureState, emit: EventSink):
        self.state = state
        self.emit = emit

    async def finalize_adventure(self, input_data: dict) -> ToolOutcome:
        if not self.state.all_scenes_confirmed:
            pending = [
                a["id"] for a in self.state.scene_arcs
                if (self.state.find_inscribed_scene(a["id"]) or {}).get("status")
                != SceneStatus.CONFIRMED.value
            ]
            return ToolOutcome.error(
                "All scenes must be confirmed before finalizing"
                + (f" (pending: {', '.join(pending)})" if pending else ""),
            )
        title = (input_data.get("title") or self.state.adventure_name or "").strip()
        if not title:
            return ToolOutcome.error("title is required for finalize_adventure")

        self.state.adventure_name = title
        self.state.finalized = {
            "title": title,
            "summary": input_data.get("summary", ""),
            "sceneCount": len(self.state.scene_arcs),
            "finalizedAt": datetime.now(timezone.utc).isoformat(),
        }
        self.emit(panel_event("delivered", dict(self.state.finalized)))
        return ToolOutcome.ok({"status": "finalized", "title": title})
