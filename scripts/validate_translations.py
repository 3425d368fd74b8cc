#!/usr/bin/env python3
"""Validate label catalogues for missing, unused and inconsistent keys."""

from __future__ import annotations

import argparse
import ast
import json
import re
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
PACKAGE_DIR = REPO_ROOT / "src" / "thaitax"
TRANSLATIONS_DIR = PACKAGE_DIR / "translations"
BASE_LOCALE = "th"

PLACEHOLDER_PATTERN = re.compile(r"{\s*([a-zA-Z0-9_]+)\s*}")
_CALLABLES = {"t", "translator"}


class ValidationError(Exception):
    """Raised when validation detects unrecoverable issues."""


def load_catalogues(directory: Path = TRANSLATIONS_DIR) -> dict[str, dict[str, str]]:
    catalogues: dict[str, dict[str, str]] = {}

    if not directory.is_dir():
        raise ValidationError(f"Missing translations directory: {directory}")

    for path in sorted(directory.glob("*.json")):
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)

        messages = payload.get("messages") if isinstance(payload, dict) else None
        if not isinstance(messages, dict):
            raise ValidationError(f"Translation payload must define a messages mapping: {path}")

        catalogues[path.stem] = {str(key): str(value) for key, value in messages.items()}

    if not catalogues:
        raise ValidationError("No translation catalogues discovered")

    return catalogues


def missing_keys(catalogues: dict[str, dict[str, str]], base_locale: str = BASE_LOCALE) -> list[str]:
    issues: list[str] = []
    expected = set(catalogues.get(base_locale, {}))

    for locale, messages in sorted(catalogues.items()):
        missing = expected - set(messages)
        extra = set(messages) - expected
        if missing:
            issues.append(
                f"Locale '{locale}' missing {len(missing)} keys: {', '.join(sorted(missing))}"
            )
        if extra:
            issues.append(
                f"Locale '{locale}' defines {len(extra)} keys absent from '{base_locale}': "
                f"{', '.join(sorted(extra))}"
            )
    return issues


def placeholder_inconsistencies(catalogues: dict[str, dict[str, str]]) -> list[str]:
    by_key: dict[str, dict[str, frozenset[str]]] = {}
    for locale, messages in catalogues.items():
        for key, message in messages.items():
            by_key.setdefault(key, {})[locale] = frozenset(PLACEHOLDER_PATTERN.findall(message))

    issues: list[str] = []
    for key, locale_map in sorted(by_key.items()):
        if len(set(locale_map.values())) <= 1:
            continue
        details = ", ".join(
            f"{locale}={{{', '.join(sorted(values))}}}"
            for locale, values in sorted(locale_map.items())
        )
        issues.append(f"{key} placeholders differ: {details}")
    return issues


def used_keys(package_dir: Path = PACKAGE_DIR) -> set[str]:
    """Collect literal keys passed to ``t`` or ``translator`` callables."""

    keys: set[str] = set()

    for path in package_dir.rglob("*.py"):
        tree = ast.parse(path.read_text(encoding="utf-8"))
        for node in ast.walk(tree):
            if not isinstance(node, ast.Call) or not node.args:
                continue
            func = node.func
            is_translator = (isinstance(func, ast.Name) and func.id in _CALLABLES) or (
                isinstance(func, ast.Attribute) and func.attr in _CALLABLES
            )
            first = node.args[0]
            if is_translator and isinstance(first, ast.Constant) and isinstance(first.value, str):
                keys.add(first.value)

    return keys


def unused_keys(
    catalogues: dict[str, dict[str, str]],
    used: set[str],
    base_locale: str = BASE_LOCALE,
) -> list[str]:
    return sorted(set(catalogues.get(base_locale, {})) - used)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--allow-unused",
        action="store_true",
        help="Report unused keys without failing",
    )
    args = parser.parse_args(argv)

    try:
        catalogues = load_catalogues()
    except ValidationError as error:
        print(f"error: {error}", file=sys.stderr)
        return 1

    issues = missing_keys(catalogues) + placeholder_inconsistencies(catalogues)
    unused = unused_keys(catalogues, used_keys())

    for issue in issues:
        print(f"error: {issue}", file=sys.stderr)
    for key in unused:
        print(f"warning: unused key {key}", file=sys.stderr)

    if issues or (unused and not args.allow_unused):
        return 1

    print(f"Validated {len(catalogues)} catalogues: {', '.join(sorted(catalogues))}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
