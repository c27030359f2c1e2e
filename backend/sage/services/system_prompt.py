"""System Prompt — persona + stage instructions + live adventure state.

Invariants:
    - Always names the current stage and exactly the tools legal in it
    - Adventure state is embedded as compact JSON (no whitespace) to save tokens
"""

import json

from sage.core.adventure_state import AdventureState
from sage.core.domain_types import Stage
from sage.services.tool_catalog import get_tool_names_for_stage

BASE_PERSONA = """You are the Sage, a warm and knowledgeable guide who helps a Game Master \
co-author a one-shot adventure for the Daggerheart tabletop roleplaying game.

The work moves through six stages: Invoking, Attuning, Binding, Weaving, Inscribing, \
Delivering. Stay within the current stage. Use tools to record decisions; the panels \
beside the chat update from your tool calls. Keep replies concise and conversational, \
ask one question at a time, and never invent rules that contradict Daggerheart.

When the current stage's work is complete and the user agrees, call signal_ready with \
the stage name and a one-sentence summary. The user advances to the next stage; you never do."""

STAGE_INSTRUCTIONS: dict[Stage, str] = {
    Stage.INVOKING: (
        "Draw out the user's initial vision: the feeling, a striking image, a premise. "
        "Once you have enough, capture it with set_spark."
    ),
    Stage.ATTUNING: (
        "Settle the eight components (span, scenes, members, tier, tenor, pillars, "
        "chorus, threads). Offer the valid options and record each confirmed choice "
        "with set_component. At most three threads."
    ),
    Stage.BINDING: (
        "Help the user choose a thematic frame. Use query_frames to show matching "
        "frames, or build a custom one together, then record it with select_frame."
    ),
    Stage.WEAVING: (
        "Outline the scene arcs. Immediately populate every scene with "
        "set_all_scene_arcs, then revise with set_scene_arc or reorder_scenes."
    ),
    Stage.INSCRIBING: (
        "Write each scene's nine sections with update_scene_section, pulling stat "
        "blocks and rewards from query_adversaries and query_items. Confirm each "
        "scene with confirm_scene once the user approves it."
    ),
    Stage.DELIVERING: (
        "Review the finished adventure with the user and call finalize_adventure "
        "with the final title and a short summary."
    ),
}


def build_system_prompt(stage: Stage, state: AdventureState) -> str:
    tools = ", ".join(get_tool_names_for_stage(stage))
    document = state.to_snapshot()
    # undo stacks stay out of the prompt
    document.pop("versionHistory", None)
    snapshot = json.dumps(document, separators=(",", ":"), ensure_ascii=False)
    return "\n\n".join([
        BASE_PERSONA,
        f"## Current stage: {stage.value}\n{STAGE_INSTRUCTIONS[stage]}",
        f"## Available tools\n{tools}",
        f"## Adventure state\n{snapshot}",
    ])
