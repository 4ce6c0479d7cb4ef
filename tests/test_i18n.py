import pytest

from pbm_gui.i18n import available_locales, register_catalog, t, translate
from pbm_gui.i18n.direction import Localization, direction_for


def test_translate_with_variables_and_fallbacks():
    assert translate("tour.progress", current=2, total=5) == "2 of 5"
    assert translate("tour.progress", "ar", current=2, total=5) == "2 من 5"
    assert translate("missing.key") == "missing.key"
    assert translate("missing.key", fallback="Fallback") == "Fallback"
    assert set(available_locales()) >= {"en", "ar"}


def test_arabic_falls_back_to_english():
    register_catalog("en", {"tour.test_only": "Only English"})
    assert t("tour.test_only", "ar") == "Only English"


def test_missing_variable_names_the_key():
    with pytest.raises(KeyError) as exc:
        translate("tour.progress", current=1)
    assert "tour.progress" in str(exc.value)


def test_direction():
    assert direction_for("ar") == "rtl"
    assert direction_for("en") == "ltr"
    assert Localization("en", force_rtl=True).is_rtl
    assert Localization.from_env({"PBM_RTL": "yes"}).direction == "rtl"
    assert Localization.from_env({}).direction == "ltr"


def test_set_language_notifies_once():
    l10n = Localization()
    seen = []
    unsub = l10n.subscribe(seen.append)
    assert l10n.set_language("ar")
    assert not l10n.set_language("ar")
    assert l10n.translate("tour.next") == "التالي"
    unsub()
    l10n.set_language("en")
    assert seen == ["ar"]
    with pytest.raises(ValueError):
        l10n.set_language("fr")
