"""Tour and workflow-guide definitions.

Two families share one model:

 - legacy feature tours (``kind == "tour"``): linear walkthroughs organised as
   a tree rooted at ``basics``;
 - workflow guides (``kind == "guide"``): steps carry context requirements so
   the guide follows the user through page -> modal -> form and can
   auto-advance.

Definitions are immutable and live for the whole process. ``TourCatalog`` is
the read-only registry consulted by the progress store and the sequencer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..services.errors import CatalogValidationError, UnknownTourError

__all__ = [
    "LocalizedText",
    "Popover",
    "StepContext",
    "StepDefinition",
    "TourDefinition",
    "TourCatalog",
    "LocalizedStep",
    "localize_step",
    "DEFAULT_LANGUAGE",
    "GUIDE_CATEGORIES",
]

DEFAULT_LANGUAGE = "en"
GUIDE_CATEGORIES: Tuple[str, ...] = ("purchase", "sales", "admin")


@dataclass(frozen=True)
class LocalizedText:
    values: Mapping[str, str]

    def get(self, language: str) -> str:
        text = self.values.get(language)
        if text:
            return text
        return self.values.get(DEFAULT_LANGUAGE, "")

    @classmethod
    def of(cls, value: Any) -> "LocalizedText":
        if isinstance(value, LocalizedText):
            return value
        if isinstance(value, str):
            return cls(MappingProxyType({DEFAULT_LANGUAGE: value}))
        if isinstance(value, Mapping):
            return cls(MappingProxyType({str(k): str(v) for k, v in value.items()}))
        return cls(MappingProxyType({}))


@dataclass(frozen=True)
class Popover:
    title: LocalizedText
    description: LocalizedText
    side: str = "bottom"
    align: str = "center"


@dataclass(frozen=True)
class StepContext:
    """Live-context requirements; every field present must hold."""

    require_page: Optional[str] = None
    require_modal: Optional[str] = None
    require_form_state: Optional[Mapping[str, Any]] = None

    def is_empty(self) -> bool:
        return not (self.require_page or self.require_modal or self.require_form_state)


@dataclass(frozen=True)
class StepDefinition:
    element: str
    popover: Popover
    context: Optional[StepContext] = None
    wait_for_action: Optional[str] = None
    route: Optional[str] = None

    @property
    def waits_for_click(self) -> bool:
        return self.wait_for_action == "click"


@dataclass(frozen=True)
class TourDefinition:
    id: str
    kind: str
    name: LocalizedText
    description: LocalizedText
    steps: Sequence[StepDefinition] = field(default_factory=tuple)
    category: Optional[str] = None
    prerequisite: Optional[str] = None
    roles: Tuple[str, ...] = ()
    estimated_time: Optional[str] = None
    icon: Optional[str] = None

    @property
    def is_workflow_guide(self) -> bool:
        return self.kind == "guide"

    @property
    def step_count(self) -> int:
        return len(self.steps)

    def first_route(self) -> Optional[str]:
        for step in self.steps:
            if step.route:
                return step.route
        return None


@dataclass(frozen=True)
class LocalizedStep:
    """A step with popover text resolved for one language."""

    definition: StepDefinition
    title: str
    description: str

    @property
    def element(self) -> str:
        return self.definition.element

    @property
    def context(self) -> Optional[StepContext]:
        return self.definition.context

    @property
    def route(self) -> Optional[str]:
        return self.definition.route

    @property
    def waits_for_click(self) -> bool:
        return self.definition.waits_for_click


def localize_step(step: StepDefinition, language: str) -> LocalizedStep:
    return LocalizedStep(step, step.popover.title.get(language), step.popover.description.get(language))


class TourCatalog:
    """Registry of tour definitions keyed by id (insertion ordered)."""

    def __init__(self, tours: Iterable[TourDefinition] = (), *, root_tour_id: str = "basics") -> None:
        self._tours: Dict[str, TourDefinition] = {}
        self.root_tour_id = root_tour_id
        for tour in tours:
            self.register(tour)

    def register(self, tour: TourDefinition) -> None:
        if tour.id in self._tours:
            raise CatalogValidationError(f"Tour already registered: {tour.id}")
        if tour.kind not in ("tour", "guide"):
            raise CatalogValidationError(f"Tour {tour.id} has unknown kind {tour.kind!r}")
        for i, step in enumerate(tour.steps):
            if not step.element:
                raise CatalogValidationError(f"Step {i} of tour {tour.id} has no target element")
        self._tours[tour.id] = tour

    def get(self, tour_id: str) -> TourDefinition:
        try:
            return self._tours[tour_id]
        except KeyError:
            raise UnknownTourError(tour_id) from None

    def find(self, tour_id: str) -> Optional[TourDefinition]:
        return self._tours.get(tour_id)

    def __contains__(self, tour_id: object) -> bool:
        return tour_id in self._tours

    def __len__(self) -> int:
        return len(self._tours)

    def all(self) -> List[TourDefinition]:
        return list(self._tours.values())

    def legacy_tours(self) -> List[TourDefinition]:
        return [t for t in self._tours.values() if not t.is_workflow_guide]

    def workflow_guides(self) -> List[TourDefinition]:
        return [t for t in self._tours.values() if t.is_workflow_guide]

    def guides_for_role(self, role: Optional[str]) -> List[TourDefinition]:
        return [g for g in self.workflow_guides() if role in g.roles]

    def guides_by_category(self, role: Optional[str]) -> Dict[str, List[TourDefinition]]:
        guides = self.guides_for_role(role)
        return {cat: [g for g in guides if g.category == cat] for cat in GUIDE_CATEGORIES}

    def localized_steps(self, tour_id: str, language: str) -> List[LocalizedStep]:
        return [localize_step(s, language) for s in self.get(tour_id).steps]
