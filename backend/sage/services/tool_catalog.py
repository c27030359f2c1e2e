"""Tool Catalog — per-stage filtering of the tool schemas the model may see.

Invariants:
    - get_tools_for_stage() = universal tools + that stage's tools, nothing else
    - A stage-specific tool never appears in another stage's list
    - Tool names are unique within any stage's list
    - Returned lists are fresh copies: callers may append without affecting the catalog

Design Decisions:
    - Stage-scoped tools reduce model confusion: 3-6 tools per stage instead of 16
    - Prompt caching works within a stage (tool list identical across turns)
    - Explicit imports from each define_*_tools.py: no auto-discovery
"""

from sage.core.conversation_types import ToolDefinition
from sage.core.domain_types import Stage
from sage.services.define_universal_tools import TOOLS_UNIVERSAL
from sage.services.define_invoking_tools import TOOLS_INVOKING
from sage.services.define_attuning_tools import TOOLS_ATTUNING
from sage.services.define_binding_tools import TOOLS_BINDING
from sage.services.define_weaving_tools import TOOLS_WEAVING
from sage.services.define_inscribing_tools import TOOLS_INSCRIBING
from sage.services.define_delivering_tools import TOOLS_DELIVERING

_STAGE_TOOLS: dict[Stage, list[ToolDefinition]] = {
    Stage.INVOKING: TOOLS_INVOKING,
    Stage.ATTUNING: TOOLS_ATTUNING,
    Stage.BINDING: TOOLS_BINDING,
    Stage.WEAVING: TOOLS_WEAVING,
    Stage.INSCRIBING: TOOLS_INSCRIBING,
    Stage.DELIVERING: TOOLS_DELIVERING,
}


def get_tools_for_stage(stage: Stage) -> list[ToolDefinition]:
    """Universal tools followed by the stage's own tools."""
    return [*TOOLS_UNIVERSAL, *_STAGE_TOOLS[stage]]


def get_universal_tools() -> list[ToolDefinition]:
    return list(TOOLS_UNIVERSAL)


def get_tool_names_for_stage(stage: Stage) -> list[str]:
    """Tool names for a stage (system prompt context, registry filtering)."""
    return [t.name for t in get_tools_for_stage(stage)]


def get_api_tools_for_stage(stage: Stage) -> list[dict]:
    """Stage tools rendered in the Anthropic request shape."""
    return [t.to_api() for t in get_tools_for_stage(stage)]


ALL_TOOLS: list[ToolDefinition] = [
    *TOOLS_UNIVERSAL,        # 2 tools
    *TOOLS_INVOKING,         # 1 tool
    *TOOLS_ATTUNING,         # 1 tool
    *TOOLS_BINDING,          # 2 tools
    *TOOLS_WEAVING,          # 3 tools
    *TOOLS_INSCRIBING,       # 4 tools
    *TOOLS_DELIVERING,       # 1 tool
]
# Total: 14
