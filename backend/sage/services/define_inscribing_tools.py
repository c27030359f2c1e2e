"""Define Inscribing Tools — writing the nine sections of each scene.

Invariants:
    - section enum mirrors SceneSection exactly
    - Reference queries (adversaries, items) are read-only
"""

from sage.core.conversation_types import ToolDefinition
from sage.core.domain_types import SceneSection

TOOLS_INSCRIBING = [
    ToolDefinition(
        name="update_scene_section",
        description=(
            "Update a single section of an inscribed scene. Sections: "
            "introduction, keyMoments, resolution, npcs, adversaries, "
            "items, portents, tierGuidance, toneNotes."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "sceneArcId": {"type": "string", "description": "The scene arc ID to update"},
                "section": {
                    "type": "string",
                    "description": "Which section to update",
                    "enum": [s.value for s in SceneSection],
                },
                "value": {"description": "The new section content (shape depends on section)"},
            },
            "required": ["sceneArcId", "section", "value"],
        },
    ),
    ToolDefinition(
        name="confirm_scene",
        description=(
            "Mark an inscribed scene as confirmed after user approval. "
            "All 9 sections should be reviewed before confirming."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "sceneArcId": {"type": "string", "description": "The scene arc ID to confirm"},
            },
            "required": ["sceneArcId"],
        },
    ),
    ToolDefinition(
        name="query_adversaries",
        description=(
            "Query the Daggerheart adversaries database for stat blocks "
            "matching the scene requirements."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "tier": {"type": "number", "description": "Character tier for difficulty matching"},
                "type": {
                    "type": "string",
                    "description": "Adversary type filter (e.g., undead, beast)",
                },
                "limit": {"type": "number", "description": "Maximum number of results (default 5)"},
            },
        },
    ),
    ToolDefinition(
        name="query_items",
        description="Query the Daggerheart items database for tier-appropriate rewards.",
        input_schema={
            "type": "object",
            "properties": {
                "tier": {
                    "type": "number",
                    "description": "Character tier for appropriateness matching",
                },
                "category": {
                    "type": "string",
                    "description": "Item category filter (weapon, armor, consumable)",
                },
                "limit": {"type": "number", "description": "Maximum number of results (default 5)"},
            },
        },
    ),
]
