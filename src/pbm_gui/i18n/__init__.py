"""Translation registry for the tour chrome.

Tour step copy lives in the catalog (``LocalizedText``); this registry only
holds the strings the engine itself renders: button captions, the progress
counter, the waiting-step hint and the blocked-Next warning.

 - ``en`` is the default locale and the fallback for every lookup.
 - A key missing after fallback resolves to the caller's ``fallback`` or, when
   none is given, to the key itself so gaps are easy to spot.
 - Placeholders use ``str.format`` named fields (``{current} of {total}``).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

__all__ = [
    "DEFAULT_LOCALE",
    "SUPPORTED_LOCALES",
    "register_catalog",
    "available_locales",
    "translate",
    "t",
]

DEFAULT_LOCALE = "en"
SUPPORTED_LOCALES = ("en", "ar")

_catalogs: Dict[str, Dict[str, str]] = {}


def register_catalog(locale: str, catalog: Dict[str, str]) -> None:
    """Register or extend a catalog for a locale (last registration wins)."""
    _catalogs.setdefault(locale, {}).update(catalog)


def available_locales() -> List[str]:
    return sorted(_catalogs)


def _lookup(locale: str, key: str) -> Optional[str]:
    catalog = _catalogs.get(locale)
    if not catalog:
        return None
    return catalog.get(key)


def translate(key: str, locale: str = DEFAULT_LOCALE, fallback: Optional[str] = None, **variables: Any) -> str:
    """Translate ``key`` for ``locale``, falling back to English then ``fallback``.

    Missing interpolation variables raise ``KeyError`` naming the key.
    """
    text = _lookup(locale, key)
    if text is None and locale != DEFAULT_LOCALE:
        text = _lookup(DEFAULT_LOCALE, key)
    if text is None:
        text = fallback if fallback is not None else key
    if not variables or "{" not in text:
        return text
    try:
        return text.format(**variables)
    except KeyError as e:
        raise KeyError(f"Missing interpolation variable {e.args[0]!r} for key '{key}'") from e


t = translate


register_catalog(
    "en",
    {
        "tour.next": "Next",
        "tour.previous": "Previous",
        "tour.done": "Done",
        "tour.close": "Close",
        "tour.skip": "Skip Tour",
        "tour.got_it": "Got it, I'll do it",
        "tour.progress": "{current} of {total}",
        "tour.action_hint": "Click the highlighted element to continue",
        "tour.action_required": "Please click the highlighted element to continue",
        "tour.status.completed": "Completed",
        "tour.status.locked": "Locked",
        "tour.status.available": "Available",
        "tour.category.purchase": "Purchase",
        "tour.category.sales": "Sales",
        "tour.category.admin": "Administration",
    },
)

register_catalog(
    "ar",
    {
        "tour.next": "التالي",
        "tour.previous": "السابق",
        "tour.done": "تم",
        "tour.close": "إغلاق",
        "tour.skip": "تخطي الجولة",
        "tour.got_it": "فهمت، سأقوم بذلك",
        "tour.progress": "{current} من {total}",
        "tour.action_hint": "انقر على العنصر المحدد للمتابعة",
        "tour.action_required": "يرجى النقر على العنصر المحدد للمتابعة",
        "tour.status.completed": "مكتمل",
        "tour.status.locked": "مقفل",
        "tour.status.available": "متاح",
        "tour.category.purchase": "المشتريات",
        "tour.category.sales": "المبيعات",
        "tour.category.admin": "الإدارة",
    },
)
