"""Define Attuning Tools — the eight adventure components.

Invariants:
    - componentId enum mirrors ComponentId exactly
"""

from sage.core.conversation_types import ToolDefinition
from sage.core.domain_types import ComponentId

TOOLS_ATTUNING = [
    ToolDefinition(
        name="set_component",
        description=(
            "Set a single adventure component value during the Attuning stage. "
            "Components: span, scenes, members, tier, tenor, pillars, chorus, threads. "
            "Call this each time the user confirms a component selection."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "componentId": {
                    "type": "string",
                    "description": "The component identifier",
                    "enum": [c.value for c in ComponentId],
                },
                "value": {
                    "description": "The selected value (type depends on component)",
                },
                "confirmed": {
                    "type": "boolean",
                    "description": "Whether the user has confirmed this selection",
                },
            },
            "required": ["componentId", "value"],
        },
    ),
]
