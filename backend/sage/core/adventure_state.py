"""Adventure State — the shared adventure document mutated by tool handlers.

Invariants:
    - Stage advances are user-initiated (never by a tool) and require signal_ready first
    - Inscribed scenes always link back to an existing scene arc (arcId)
    - to_snapshot produces a JSON-safe dict (no sets, no Enums)
    - from_snapshot tolerates missing keys (falls back to defaults)

Design Decisions:
    - Pure dataclass, no IO: handlers mutate it in memory, the route persists it once
      per request with an optimistic version check
    - Dict-based sub-documents mirror the JSON the frontend panels render
"""

from dataclasses import dataclass, field

from sage.core.domain_types import ComponentId, SceneSection, SceneStatus, Stage

_EMPTY_COMPONENTS: dict[str, object] = {
    ComponentId.SPAN.value: None,
    ComponentId.SCENES.value: None,
    ComponentId.MEMBERS.value: None,
    ComponentId.TIER.value: None,
    ComponentId.TENOR.value: None,
    ComponentId.PILLARS.value: None,
    ComponentId.CHORUS.value: None,
    ComponentId.THREADS.value: [],
}

# Empty value per inscribed section (list-shaped sections vs prose sections)
_SECTION_DEFAULTS: dict[SceneSection, object] = {
    SceneSection.INTRODUCTION: "",
    SceneSection.KEY_MOMENTS: [],
    SceneSection.RESOLUTION: "",
    SceneSection.NPCS: [],
    SceneSection.ADVERSARIES: [],
    SceneSection.ITEMS: [],
    SceneSection.PORTENTS: [],
    SceneSection.TIER_GUIDANCE: "",
    SceneSection.TONE_NOTES: "",
}

LIST_SECTIONS = frozenset(
    s for s, default in _SECTION_DEFAULTS.items() if isinstance(default, list)
)


@dataclass
class AdventureState:
    """Per-session adventure document. Pure dataclass, no IO."""

    stage: Stage = Stage.INVOKING

    # === Invoking ===
    spark: dict | None = None

    # === Attuning ===
    components: dict[str, object] = field(
        default_factory=lambda: {k: (list(v) if isinstance(v, list) else v)
                                 for k, v in _EMPTY_COMPONENTS.items()},
    )
    confirmed_components: set[str] = field(default_factory=set)

    # === Binding ===
    frame: dict | None = None

    # === Weaving ===
    scene_arcs: list[dict] = field(default_factory=list)

    # === Inscribing ===
    inscribed_scenes: list[dict] = field(default_factory=list)

    # === Delivering ===
    finalized: dict | None = None

    # === Cross-stage ===
    adventure_name: str | None = None
    stage_summaries: dict[str, str] = field(default_factory=dict)
    ready_stages: set[str] = field(default_factory=set)
    # section path -> stack of previous values (see core/version_history.py)
    version_history: dict[str, list[dict]] = field(default_factory=dict)

    # --- Computed properties ---------------------------------------------------

    @property
    def ready_to_advance(self) -> bool:
        return self.stage.value in self.ready_stages

    @property
    def all_components_confirmed(self) -> bool:
        return self.confirmed_components >= set(_EMPTY_COMPONENTS)

    @property
    def all_scenes_confirmed(self) -> bool:
        if not self.scene_arcs:
            return False
        confirmed = {
            s["arcId"] for s in self.inscribed_scenes
            if s.get("status") == SceneStatus.CONFIRMED.value
        }
        return all(arc["id"] in confirmed for arc in self.scene_arcs)

    # --- Lookups ---------------------------------------------------------------

    def find_scene_arc(self, arc_id: str) -> dict | None:
        return next((a for a in self.scene_arcs if a.get("id") == arc_id), None)

    def find_inscribed_scene(self, arc_id: str) -> dict | None:
        return next(
            (s for s in self.inscribed_scenes if s.get("arcId") == arc_id), None,
        )

    def ensure_inscribed_scene(self, arc: dict) -> dict:
        """Return the inscribed scene for an arc, creating an empty draft if absent."""
        scene = self.find_inscribed_scene(arc["id"])
        if scene is None:
            scene = {
                "arcId": arc["id"],
                "sceneNumber": arc.get("sceneNumber", len(self.inscribed_scenes) + 1),
                "title": arc.get("title", ""),
                **{s.value: (list(d) if isinstance(d, list) else d)
                   for s, d in _SECTION_DEFAULTS.items()},
                "status": SceneStatus.DRAFT.value,
            }
            self.inscribed_scenes.append(scene)
        return scene

    # --- Transitions -----------------------------------------------------------

    def mark_ready(self, summary: str) -> None:
        self.ready_stages.add(self.stage.value)
        self.stage_summaries[self.stage.value] = summary

    def advance(self) -> Stage | None:
        """Move to the next stage. Caller checks ready_to_advance first."""
        nxt = self.stage.next()
        if nxt is not None:
            self.stage = nxt
        return nxt

    # --- Serialization ---------------------------------------------------------

    def to_snapshot(self) -> dict:
        return {
            "stage": self.stage.value,
            "spark": self.spark,
            "components": dict(self.components),
            "confirmedComponents": sorted(self.confirmed_components),
            "frame": self.frame,
            "sceneArcs": self.scene_arcs,
            "inscribedScenes": self.inscribed_scenes,
            "finalized": self.finalized,
            "adventureName": self.adventure_name,
            "stageSummaries": dict(self.stage_summaries),
            "readyStages": sorted(self.ready_stages),
            "versionHistory": {k: list(v) for k, v in self.version_history.items()},
        }

    @classmethod
    def from_snapshot(cls, data: dict | None) -> "AdventureState":
        data = data or {}
        state = cls(
            stage=Stage(data.get("stage", Stage.INVOKING.value)),
            spark=data.get("spark"),
            frame=data.get("frame"),
            scene_arcs=list(data.get("sceneArcs") or []),
            inscribed_scenes=list(data.get("inscribedScenes") or []),
            finalized=data.get("finalized"),
            adventure_name=data.get("adventureName"),
            stage_summaries=dict(data.get("stageSummaries") or {}),
            ready_stages=set(data.get("readyStages") or []),
            confirmed_components=set(data.get("confirmedComponents") or []),
            version_history={
                k: list(v) for k, v in (data.get("versionHistory") or {}).items()
            },
        )
        state.components.update(data.get("components") or {})
        return state
