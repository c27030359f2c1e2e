"""Tool Dispatch — explicit routing from tool name to stage handler, per request.

Invariants:
    - Every tool->handler mapping is visible in one dict: no getattr magic, no auto-discovery
    - Only names in the stage's catalog are registered, so out-of-stage tools
      resolve to NotFound ("Unknown tool") exactly like hallucinated ones
    - Handlers are instantiated per request around that request's AdventureState

Design Decisions:
    - Split handlers by stage: at most 4 methods per class
    - A fresh ToolRegistry per request: registry state never leaks between sessions
"""

import logging

from sage.core.adventure_state import AdventureState
from sage.core.domain_types import Stage
from sage.core.repository_protocols import ReferenceRepository
from sage.services.handle_attuning import AttuningHandlers
from sage.services.handle_binding import BindingHandlers
from sage.services.handle_delivering import DeliveringHandlers
from sage.services.handle_inscribing import InscribingHandlers
from sage.services.handle_invoking import InvokingHandlers
from sage.services.handle_universal import UniversalHandlers
from sage.services.handle_weaving import WeavingHandlers
from sage.services.tool_catalog import get_tool_names_for_stage
from sage.services.tool_registry import EventSink, ToolHandler, ToolRegistry

logger = logging.getLogger(__name__)


def all_handlers(
    state: AdventureState, references: ReferenceRepository, emit: EventSink,
) -> dict[str, ToolHandler]:
    universal = UniversalHandlers(state, emit)
    invoking = InvokingHandlers(state, emit)
    attuning = AttuningHandlers(state, emit)
    binding = BindingHandlers(state, emit, references)
    weaving = WeavingHandlers(state, emit)
    inscribing = InscribingHandlers(state, emit, references)
    delivering = DeliveringHandlers(state, emit)

    # every mapping explicit: adding a tool requires editing this dict
    return {
        # Universal (2 tools)
        "signal_ready": universal.signal_ready,
        "suggest_adventure_name": universal.suggest_adventure_name,

        # Invoking (1 tool)
        "set_spark": invoking.set_spark,

        # Attuning (1 tool)
        "set_component": attuning.set_component,

        # Binding (2 tools)
        "select_frame": binding.select_frame,
        "query_frames": binding.query_frames,

        # Weaving (3 tools)
        "set_all_scene_arcs": weaving.set_all_scene_arcs,
        "set_scene_arc": weaving.set_scene_arc,
        "reorder_scenes": weaving.reorder_scenes,

        # Inscribing (4 tools)
        "update_scene_section": inscribing.update_scene_section,
        "confirm_scene": inscribing.confirm_scene,
        "query_adversaries": inscribing.query_adversaries,
        "query_items": inscribing.query_items,

        # Delivering (1 tool)
        "finalize_adventure": delivering.finalize_adventure,
    }


def build_tool_dispatch(
    state: AdventureState,
    stage: Stage,
    references: ReferenceRepository,
    emit: EventSink,
) -> ToolRegistry:
    """Registry holding exactly the stage's legal tools, bound to this request."""
    handlers = all_handlers(state, references, emit)
    registry = ToolRegistry()
    for name in get_tool_names_for_stage(stage):
        handler = handlers.get(name)
        if handler is None:
            logger.error("Catalog tool without handler: %s", name,
                extra={"tool_name": name, "stage": stage.value})
            continue
        registry.register(name, handler)
    return registry
