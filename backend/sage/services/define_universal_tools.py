"""Define Universal Tools — schemas visible to the model in every stage.

Invariants:
    - Universal tools never duplicate a stage-specific tool name
    - signal_ready lists every stage that can be completed (delivering is terminal)
"""

from sage.core.conversation_types import ToolDefinition

SIGNAL_READY = ToolDefinition(
    name="signal_ready",
    description=(
        "Signal that the current stage is complete and the adventure is ready "
        "to advance to the next stage. Only call this when all required work "
        "for the current stage has been confirmed by the user."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "stage": {
                "type": "string",
                "description": "The current stage being completed",
                "enum": ["invoking", "attuning", "binding", "weaving", "inscribing"],
            },
            "summary": {
                "type": "string",
                "description": "Brief summary of what was accomplished in this stage",
            },
        },
        "required": ["stage", "summary"],
    },
)

SUGGEST_ADVENTURE_NAME = ToolDefinition(
    name="suggest_adventure_name",
    description=(
        "Suggest or update the adventure name based on the current state of "
        "the conversation. Can be called at any stage when a fitting name emerges."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "The suggested adventure name"},
            "reason": {"type": "string", "description": "Why this name fits the adventure"},
        },
        "required": ["name"],
    },
)

TOOLS_UNIVERSAL = [SIGNAL_READY, SUGGEST_ADVENTURE_NAME]
