"""Attuning Handlers — the eight adventure components (1 method).

Invariants:
    - Values are validated against COMPONENT_OPTIONS before the document changes
    - threads holds 1..MAX_THREADS distinct options
    - confirmed=false un-confirms a component (the user may revisit a choice)
"""

from sage.core.adventure_state import AdventureState
from sage.core.conversation_types import ToolOutcome
from sage.core.domain_types import COMPONENT_OPTIONS, MAX_THREADS, ComponentId
from sage.core.sage_events import panel_event
from sage.core.version_history import push_version
from sage.services.tool_registry import EventSink


def _coerce_number(value: object) -> object:
    # Models often send numeric components as floats or strings ("4")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


def validate_component(component: ComponentId, value: object) -> tuple[object, str | None]:
    """Returns (normalized_value, error_or_None)."""
    options = COMPONENT_OPTIONS[component]
    if component is ComponentId.THREADS:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not value:
            return value, "threads must be a non-empty list"
        if len(value) > MAX_THREADS:
            return value, f"at most {MAX_THREADS} threads may be selected"
        invalid = [v for v in value if v not in options]
        if invalid:
            return value, f"unknown threads: {', '.join(map(str, invalid))}"
        return list(dict.fromkeys(value)), None

    value = _coerce_number(value)
    if value not in options:
        allowed = ", ".join(str(o) for o in options)
        return value, f"invalid value {value!r} for {component.value} (allowed: {allowed})"
    return value, None


class AttuningHandlers:
    """set_component."""

    def __init__(self, state: AdventureState, emit: EventSink):
        self.state = state
        self.emit = emit

    async def set_component(self, input_data: dict) -> ToolOutcome:
        raw_id = input_data.get("componentId", "")
        try:
            component = ComponentId(raw_id)
        except ValueError:
            return ToolOutcome.error(f"Unknown component: '{raw_id}'")

        value, error = validate_component(component, input_data.get("value"))
        if error:
            return ToolOutcome.error(error)

        confirmed = bool(input_data.get("confirmed", True))
        push_version(
            self.state, "components", self.state.components, f"set_component {component.value}",
        )
        self.state.components[component.value] = value
        if confirmed:
            self.state.confirmed_components.add(component.value)
        else:
            self.state.confirmed_components.discard(component.value)

        self.emit(panel_event("component", {
            "componentId": component.value,
            "value": value,
            "confirmed": confirmed,
        }))
        return ToolOutcome.ok({
            "status": "component_set",
            "componentId": component.value,
            "confirmedCount": len(self.state.confirmed_components),
            "allConfirmed": self.state.all_components_confirmed,
        })
