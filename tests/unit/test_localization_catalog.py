"""Tests for the label catalogue helpers."""

from __future__ import annotations

import json
from pathlib import Path

from thaitax.localization import available_locales, get_translator, normalise_locale

_TRANSLATIONS = Path(__file__).resolve().parents[2] / "src" / "thaitax" / "translations"


def _read_value(locale: str, key: str) -> str:
    payload = json.loads(_TRANSLATIONS.joinpath(f"{locale}.json").read_text(encoding="utf-8"))
    return str(payload["messages"][key])


def test_available_locales() -> None:
    assert available_locales() == ("en", "th")


def test_get_translator_loads_shared_catalogue() -> None:
    translator = get_translator("en")

    assert translator.locale == "en"
    assert translator("summary.tax") == _read_value("en", "summary.tax")


def test_default_locale_is_thai() -> None:
    translator = get_translator()

    assert translator.locale == "th"
    assert translator("summary.tax") == "ภาษีที่ต้องชำระ"


def test_unknown_locales_fall_back_to_thai() -> None:
    translator = get_translator("fr")

    assert translator.locale == "th"
    assert translator("section.income") == _read_value("th", "section.income")


def test_regional_variants_are_normalised() -> None:
    assert normalise_locale("en_US") == "en"
    assert normalise_locale("TH-th") == "th"
    assert normalise_locale(None) == "th"


def test_translator_formats_placeholders_and_echoes_unknown_keys() -> None:
    translator = get_translator("th")

    assert translator("installment.label", index=2) == "งวดที่ 2"
    assert translator("missing.key") == "missing.key"


def test_catalogues_define_the_same_keys() -> None:
    th = json.loads(_TRANSLATIONS.joinpath("th.json").read_text(encoding="utf-8"))
    en = json.loads(_TRANSLATIONS.joinpath("en.json").read_text(encoding="utf-8"))

    assert set(th["messages"]) == set(en["messages"])


def test_english_catalogue_is_latin1_encodable() -> None:
    """English labels feed the core PDF font."""

    en = json.loads(_TRANSLATIONS.joinpath("en.json").read_text(encoding="utf-8"))

    for value in en["messages"].values():
        value.encode("latin-1")
