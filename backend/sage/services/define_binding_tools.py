"""Define Binding Tools — choosing the thematic frame.

Design Decisions:
    - query_frames before select_frame: the gallery panel is populated from
      reference data, then the model confirms one frame (or a custom one)
"""

from sage.core.conversation_types import ToolDefinition

SELECT_FRAME = ToolDefinition(
    name="select_frame",
    description=(
        "Select an existing frame from the database or set a custom frame. "
        "Call this when the user has chosen their thematic framework."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "frameId": {"type": "string", "description": "Database frame ID (for existing frames)"},
            "name": {"type": "string", "description": "Frame name"},
            "description": {"type": "string", "description": "Frame description"},
            "themes": {
                "type": "array", "items": {"type": "string"},
                "description": "Thematic elements",
            },
            "typicalAdversaries": {
                "type": "array", "items": {"type": "string"},
                "description": "Typical adversary types",
            },
            "lore": {"type": "string", "description": "Background lore"},
            "isCustom": {"type": "boolean", "description": "Whether this is a user-created frame"},
        },
        "required": ["name", "description"],
    },
)

QUERY_FRAMES = ToolDefinition(
    name="query_frames",
    description=(
        "Query the Daggerheart frames database to find frames matching "
        "the adventure's themes and components."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "themes": {
                "type": "array", "items": {"type": "string"},
                "description": "Theme keywords to search for",
            },
            "limit": {"type": "number", "description": "Maximum number of results (default 5)"},
        },
    },
)

TOOLS_BINDING = [SELECT_FRAME, QUERY_FRAMES]
