"""Define Delivering Tools — closing out the adventure for export."""

from sage.core.conversation_types import ToolDefinition

TOOLS_DELIVERING = [
    ToolDefinition(
        name="finalize_adventure",
        description=(
            "Mark the adventure as complete and ready for export. "
            "All scenes must be confirmed before finalizing."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Final adventure title"},
                "summary": {
                    "type": "string",
                    "description": "Final adventure summary for the export header",
                },
            },
            "required": ["title", "summary"],
        },
    ),
]
