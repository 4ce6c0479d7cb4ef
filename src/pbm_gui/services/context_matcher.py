"""Predicates deciding whether a step's context requirements hold.

Pure functions over ``StepContext`` and ``LiveContext``; no state, no side
effects. Rules:

 - no context: always valid;
 - ``require_page``: the current page starts with the requirement's pathname
   (``/purchase`` matches ``/purchase`` while on ``/purchase?tab=collections``);
 - ``require_modal``: exact match on the open modal;
 - ``require_form_state``: every key must be present; boolean requirements
   compare by truthiness, anything else by strict equality (``1`` does not
   equal ``"1"`` or ``True``).

All present requirements are ANDed.
"""

from __future__ import annotations

from numbers import Number
from typing import Any, Mapping, Optional, Sequence

from ..tours.models import StepContext
from .live_context import LiveContext
from .routing import split_path

__all__ = ["is_valid", "context_matches", "form_state_matches", "first_valid_index"]

_MISSING = object()


def _strict_equal(expected: Any, actual: Any) -> bool:
    if isinstance(expected, bool) or isinstance(actual, bool):
        return type(expected) is type(actual) and expected == actual
    if isinstance(expected, Number) and isinstance(actual, Number):
        return expected == actual
    return type(expected) is type(actual) and expected == actual


def form_state_matches(required: Mapping[str, Any], form_state: Mapping[str, Any]) -> bool:
    for key, expected in required.items():
        actual = form_state.get(key, _MISSING)
        if actual is _MISSING:
            return False
        if isinstance(expected, bool):
            if bool(actual) != expected:
                return False
        elif not _strict_equal(expected, actual):
            return False
    return True


def context_matches(context: Optional[StepContext], ctx: LiveContext) -> bool:
    if context is None:
        return True
    if context.require_page:
        if not (ctx.current_page or "").startswith(split_path(context.require_page)[0]):
            return False
    if context.require_modal and ctx.current_modal != context.require_modal:
        return False
    if context.require_form_state and not form_state_matches(context.require_form_state, ctx.form_state):
        return False
    return True


def is_valid(step: Any, ctx: LiveContext) -> bool:
    """``step`` is anything with a ``context`` attribute (definition or localized step)."""
    return context_matches(getattr(step, "context", None), ctx)


def first_valid_index(steps: Sequence[Any], ctx: LiveContext, start: int = 0) -> int:
    """Index of the first step at or after ``start`` whose context holds, else -1."""
    for i in range(max(0, start), len(steps)):
        if is_valid(steps[i], ctx):
            return i
    return -1
