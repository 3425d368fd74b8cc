"""Shared label helpers for report and export rendering."""

from .catalog import Translator, available_locales, get_translator, normalise_locale

__all__ = ["Translator", "available_locales", "get_translator", "normalise_locale"]
