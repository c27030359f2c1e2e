"""Binding Handlers — frame gallery and selection (2 methods).

Invariants:
    - query_frames is read-only: it never changes the adventure document
    - select_frame with a frameId must resolve against reference data
"""

import logging

from sage.core.adventure_state import AdventureState
from sage.core.conversation_types import ToolOutcome
from sage.core.errors import ToolInputError
from sage.core.repository_protocols import ReferenceRepository
from sage.core.sage_events import panel_event
from sage.core.version_history import push_version
from sage.services.tool_registry import EventSink

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 5
MAX_QUERY_LIMIT = 20


def clamp_limit(raw: object) -> int:
    """Tool-supplied limit, clamped to 1..MAX_QUERY_LIMIT."""
    try:
        limit = int(raw) if raw is not None else DEFAULT_QUERY_LIMIT
    except (TypeError, ValueError):
        raise ToolInputError(f"limit must be a number, got {raw!r}", "limit")
    return max(1, min(limit, MAX_QUERY_LIMIT))


class BindingHandlers:
    """query_frames, select_frame."""

    def __init__(
        self, state: AdventureState, emit: EventSink, references: ReferenceRepository,
    ):
        self.state = state
        self.emit = emit
        self.references = references

    async def query_frames(self, input_data: dict) -> ToolOutcome:
        themes = [t for t in (input_data.get("themes") or []) if isinstance(t, str)]
        limit = clamp_limit(input_data.get("limit"))

        frames = await self.references.list_frames(themes, limit)
        self.emit(panel_event("frames", {
            "frames": frames,
            "activeFrameId": (self.state.frame or {}).get("id"),
        }))
        return ToolOutcome.ok({"count": len(frames), "frames": frames})

    async def select_frame(self, input_data: dict) -> ToolOutcome:
        frame_id = input_data.get("frameId")
        is_custom = bool(input_data.get("isCustom", not frame_id))

        if frame_id and not is_custom:
            stored = await self.references.get_frame(frame_id)
            if stored is None:
                return ToolOutcome.error(
                    f"Frame '{frame_id}' not found. Use query_frames to list frames.",
                )
            frame = {**stored, **{k: v for k, v in input_data.items() if v is not None}}
        else:
            name = (input_data.get("name") or "").strip()
            if not name:
                raise ToolInputError("name is required for a custom frame", "name")
            frame = {
                "id": frame_id or f"custom-{name.lower().replace(' ', '-')}",
                "name": name,
                "description": input_data.get("description", ""),
                "themes": list(input_data.get("themes") or []),
                "typicalAdversaries": list(input_data.get("typicalAdversaries") or []),
                "lore": input_data.get("lore", ""),
            }
        frame.pop("frameId", None)
        frame["isCustom"] = is_custom

        push_version(self.state, "frame", self.state.frame, "select_frame")
        self.state.frame = frame
        logger.info("Frame selected", extra={"stage": self.state.stage.value})
        self.emit(panel_event("frame", frame))
        return ToolOutcome.ok({
            "status": "frame_selected", "frameId": frame["id"], "name": frame["name"],
        })
