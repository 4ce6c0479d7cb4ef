"""Load the tour catalog from JSON.

The bundled ``catalog.json`` sits next to this module; deployments can point
``load_catalog`` at their own file. Keys use the same camelCase names as the
web front end's tour configuration (``waitForAction``, ``requireFormState``)
so content can be shared between the two.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from ..services.errors import CatalogValidationError
from .models import LocalizedText, Popover, StepContext, StepDefinition, TourCatalog, TourDefinition

__all__ = ["load_catalog", "parse_catalog", "CATALOG_FILE", "CATALOG_VERSION"]

CATALOG_FILE = Path(__file__).parent / "catalog.json"
CATALOG_VERSION = 1


def _require(obj: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in obj:
        raise CatalogValidationError(f"{where}: missing '{key}'")
    return obj[key]


def _parse_context(raw: Any, where: str) -> StepContext | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise CatalogValidationError(f"{where}: context must be an object")
    form_state = raw.get("requireFormState")
    if form_state is not None and not isinstance(form_state, Mapping):
        raise CatalogValidationError(f"{where}: requireFormState must be an object")
    ctx = StepContext(
        require_page=raw.get("requirePage"),
        require_modal=raw.get("requireModal"),
        require_form_state=dict(form_state) if form_state else None,
    )
    return None if ctx.is_empty() else ctx


def _parse_step(raw: Mapping[str, Any], where: str) -> StepDefinition:
    popover = _require(raw, "popover", where)
    wait = raw.get("waitForAction")
    if wait not in (None, "click"):
        raise CatalogValidationError(f"{where}: unsupported waitForAction {wait!r}")
    return StepDefinition(
        element=_require(raw, "element", where),
        popover=Popover(
            title=LocalizedText.of(_require(popover, "title", where)),
            description=LocalizedText.of(popover.get("description", "")),
            side=popover.get("side", "bottom"),
            align=popover.get("align", "center"),
        ),
        context=_parse_context(raw.get("context"), where),
        wait_for_action=wait,
        route=raw.get("route"),
    )


def _parse_tour(raw: Mapping[str, Any]) -> TourDefinition:
    tour_id = _require(raw, "id", "tour")
    where = f"tour {tour_id}"
    steps = tuple(
        _parse_step(s, f"{where} step {i}") for i, s in enumerate(_require(raw, "steps", where))
    )
    return TourDefinition(
        id=tour_id,
        kind=raw.get("kind", "tour"),
        name=LocalizedText.of(_require(raw, "name", where)),
        description=LocalizedText.of(raw.get("description", "")),
        steps=steps,
        category=raw.get("category"),
        prerequisite=raw.get("prerequisite"),
        roles=tuple(raw.get("roles", ())),
        estimated_time=raw.get("estimatedTime"),
        icon=raw.get("icon"),
    )


def parse_catalog(data: Mapping[str, Any]) -> TourCatalog:
    if data.get("version") != CATALOG_VERSION:
        raise CatalogValidationError(f"Unsupported catalog version {data.get('version')!r}")
    catalog = TourCatalog(root_tour_id=data.get("root", "basics"))
    for raw in _require(data, "tours", "catalog"):
        catalog.register(_parse_tour(raw))
    for tour in catalog.all():
        if tour.prerequisite and tour.prerequisite not in catalog:
            raise CatalogValidationError(
                f"tour {tour.id}: prerequisite {tour.prerequisite!r} is not in the catalog"
            )
    return catalog


def load_catalog(path: str | Path | None = None) -> TourCatalog:
    file = Path(path) if path else CATALOG_FILE
    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise CatalogValidationError(f"Cannot read tour catalog {file}: {exc}") from exc
    return parse_catalog(data)
