"""Tour catalog: immutable definitions plus the JSON loader."""

from __future__ import annotations

from .loader import load_catalog, parse_catalog  # noqa: F401
from .models import (  # noqa: F401
    LocalizedStep,
    LocalizedText,
    Popover,
    StepContext,
    StepDefinition,
    TourCatalog,
    TourDefinition,
    localize_step,
)
