"""Error taxonomy for the tour engine.

None of these are meant to reach the end user. Public entry points catch them
and degrade to "tour does not start / does not advance"; they exist so that
collaborators (storage backends, catalog loader) can signal failure precisely
and so tests can assert on the recovered path.
"""

from __future__ import annotations

__all__ = [
    "TourError",
    "TourNotAvailableError",
    "UnknownTourError",
    "TargetNotFoundError",
    "StorageUnavailableError",
    "StaleCallbackError",
    "CatalogValidationError",
]


class TourError(RuntimeError):
    """Base class for tour engine failures."""


class TourNotAvailableError(TourError):
    """Tour prerequisites unmet or tours globally disabled."""

    def __init__(self, tour_id: str, reason: str) -> None:
        super().__init__(f"Tour '{tour_id}' not available: {reason}")
        self.tour_id = tour_id
        self.reason = reason


class UnknownTourError(TourError, KeyError):
    """Requested tour id is not present in the catalog."""


class TargetNotFoundError(TourError):
    """A step selector matched no live element."""

    def __init__(self, selector: str) -> None:
        super().__init__(f"No element matches selector {selector!r}")
        self.selector = selector


class StorageUnavailableError(TourError):
    """Persistent key/value storage could not be read or written."""


class StaleCallbackError(TourError):
    """A detection/resume callback outlived the session that registered it."""


class CatalogValidationError(TourError):
    """Raised when a tour catalog file is missing fields or malformed."""
