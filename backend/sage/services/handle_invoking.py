"""Invoking Handlers — capture the spark (1 method)."""

from sage.core.adventure_state import AdventureState
from sage.core.conversation_types import ToolOutcome
from sage.core.errors import ToolInputError
from sage.core.sage_events import panel_event
from sage.core.version_history import push_version
from sage.services.tool_registry import EventSink


class InvokingHandlers:
    """set_spark."""

    def __init__(self, state: AdventureState, emit: EventSink):
        self.state = state
        self.emit = emit

    async def set_spark(self, input_data: dict) -> ToolOutcome:
        name = (input_data.get("name") or "").strip()
        vision = (input_data.get("vision") or "").strip()
        if not name:
            raise ToolInputError("name must be a non-empty string", "name")
        if not vision:
            raise ToolInputError("vision must be a non-empty string", "vision")

        push_version(self.state, "spark", self.state.spark, "set_spark")
        self.state.spark = {"name": name, "vision": vision}
        if self.state.adventure_name is None:
            self.state.adventure_name = name
        self.emit(panel_event("spark", dict(self.state.spark)))
        return ToolOutcome.ok({"status": "spark_set", "name": name})
