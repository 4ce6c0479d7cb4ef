"""Runtime knobs for the tour engine.

All timing constants live here instead of being sprinkled through the
sequencer and detector, so tests can shrink them and a settings dialog could
expose them later. Values are milliseconds unless noted.

Attributes:
    click_settle_ms: Delay between a click on the target and reporting the
        detection, letting the resulting UI change (modal opening) finish.
    change_settle_ms: Same for a native dropdown ``change``.
    select_settle_ms: Same for custom dropdowns and text inputs.
    scroll_delay_ms: Delay before scrolling a freshly highlighted target.
    listener_attach_delay_ms: Delay before attaching interaction listeners.
    dismiss_arm_delay_ms: Extra delay before the click-outside listener is
        armed, so the click that advanced to this step cannot pause it.
    init_delay_ms: Settle delay before the overlay is created for a tour
        (after any navigation).
    resume_delay_ms: Settle delay before re-creating the overlay on resume.
    resume_fallback_ms: Bounded wait after which a pause whose target
        element is missing resumes anyway.
    redispatch_delay_ms: Delay before re-sending a swallowed click to the
        highlighted element after a pause.
    warning_duration_ms: How long the "click the highlighted element" warning
        stays visible.
    auto_start_delay_ms: Delay before the first-run basics tour starts.
    progress_save_every: Persist step progress on every N-th step index.
    storage_dir: Directory for the JSON file storage backend (None = cwd).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import ClassVar, Mapping

__all__ = ["TourSettings"]

_ENV_PREFIX = "PBM_TOUR_"


@dataclass(frozen=True)
class TourSettings:
    instance: ClassVar["TourSettings"]

    click_settle_ms: int = 300
    change_settle_ms: int = 200
    select_settle_ms: int = 300
    scroll_delay_ms: int = 100
    listener_attach_delay_ms: int = 200
    dismiss_arm_delay_ms: int = 500
    init_delay_ms: int = 500
    resume_delay_ms: int = 200
    resume_fallback_ms: int = 3000
    redispatch_delay_ms: int = 100
    warning_duration_ms: int = 4000
    auto_start_delay_ms: int = 2000
    progress_save_every: int = 3
    storage_dir: str | None = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "TourSettings":
        """Build settings from ``PBM_TOUR_<FIELD>`` variables.

        Integer fields accept decimal strings; unparsable or negative values are
        ignored. ``PBM_TOUR_STORAGE_DIR`` sets the storage directory.
        """
        if env is None:
            env = os.environ
        overrides: dict[str, object] = {}
        for f in fields(cls):
            raw = env.get(_ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.name == "storage_dir":
                overrides[f.name] = raw or None
                continue
            try:
                value = int(raw.strip())
            except ValueError:
                continue
            if value >= 0:
                overrides[f.name] = value
        settings = cls(**overrides)  # type: ignore[arg-type]
        if settings.progress_save_every < 1:
            settings = replace(settings, progress_save_every=1)
        return settings


TourSettings.instance = TourSettings()
