"""Define Weaving Tools — scene arc outline for the adventure.

Invariants:
    - Scene arc item schema shared by set_all_scene_arcs and set_scene_arc
"""

from sage.core.conversation_types import ToolDefinition
from sage.core.domain_types import SceneType

_SCENE_ARC_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "sceneNumber": {"type": "number"},
        "title": {"type": "string"},
        "subtitle": {"type": "string"},
        "description": {"type": "string"},
        "keyElements": {"type": "array", "items": {"type": "string"}},
        "location": {"type": "string"},
        "sceneType": {"type": "string", "enum": [t.value for t in SceneType]},
    },
    "required": ["id", "sceneNumber", "title", "description"],
}

TOOLS_WEAVING = [
    ToolDefinition(
        name="set_all_scene_arcs",
        description=(
            "Populate all scene arcs at once when entering the Weaving stage. "
            "Call this immediately upon entering Weaving to fill every scene tab "
            "in the panel with initial arc content."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "sceneArcs": {
                    "type": "array",
                    "items": _SCENE_ARC_SCHEMA,
                    "description": "The scene arc briefs (one per scene)",
                },
            },
            "required": ["sceneArcs"],
        },
    ),
    ToolDefinition(
        name="set_scene_arc",
        description=(
            "Update a single scene arc during revision. Call this when the user "
            "requests changes to a specific scene and you have revised the arc."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "sceneIndex": {
                    "type": "number",
                    "description": "Zero-based index of the scene to update",
                },
                "sceneArc": {**_SCENE_ARC_SCHEMA, "description": "The updated scene arc"},
            },
            "required": ["sceneIndex", "sceneArc"],
        },
    ),
    ToolDefinition(
        name="reorder_scenes",
        description=(
            "Reorder the scene arcs. Call this when the user wants to change "
            "the sequence of scenes in the adventure outline."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "order": {
                    "type": "array", "items": {"type": "string"},
                    "description": "Scene IDs in the desired order",
                },
            },
            "required": ["order"],
        },
    ),
]
