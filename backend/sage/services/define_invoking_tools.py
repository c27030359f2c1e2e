"""Define Invoking Tools — capturing the storyteller's initial vision."""

from sage.core.conversation_types import ToolDefinition

TOOLS_INVOKING = [
    ToolDefinition(
        name="set_spark",
        description=(
            "Capture the user's initial adventure vision (the \"spark\"). "
            "Call this once the user has shared enough context about what "
            "kind of adventure they want to create."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Working name for the adventure"},
                "vision": {
                    "type": "string",
                    "description": "Summary of the user's vision for the adventure",
                },
            },
            "required": ["name", "vision"],
        },
    ),
]
