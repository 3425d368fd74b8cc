"""Persist calculation history, named calculations and user preferences."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from collections.abc import Callable, Iterator, Mapping
from datetime import datetime, timezone
from importlib import metadata
from pathlib import Path
from threading import Lock
from typing import Any
from uuid import uuid4

from thaitax.config.year_config import YearConfiguration
from thaitax.models import CalculationRequest, TaxSummary, coerce_amount

HISTORY_KEY = "tax_calculation_history"
LAST_CALCULATION_KEY = "tax_last_calculation"
PREFERENCES_KEY = "tax_user_preferences"
SAVED_CALCULATIONS_KEY = "tax_saved_calculations"

PACKAGE_NAME = "thaitax"
UNKNOWN_VERSION = "0+unknown"

HISTORY_DB_ENVIRONMENT_VARIABLE = "THAITAX_HISTORY_DB"
HISTORY_CAPACITY_ENVIRONMENT_VARIABLE = "THAITAX_HISTORY_CAPACITY"

_LOGGER = logging.getLogger(__name__)


class InMemoryStorage:
    """Thread-safe key/value storage held in process memory."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._lock = Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._values)


class SQLiteStorage:
    """SQLite-backed key/value storage surviving process restarts."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = str(path)
        self._lock = Lock()
        self._initialise()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._path, check_same_thread=False)
        connection.execute("PRAGMA journal_mode=WAL")
        connection.execute("PRAGMA synchronous=NORMAL")
        return connection

    def _initialise(self) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS storage (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def get(self, key: str) -> str | None:
        with self._lock:
            with self._connect() as connection:
                row = connection.execute(
                    "SELECT value FROM storage WHERE key = ?", (key,)
                ).fetchone()
        return None if row is None else row[0]

    def set(self, key: str, value: str) -> None:
        with self._lock:
            with self._connect() as connection:
                connection.execute(
                    "INSERT INTO storage (key, value) VALUES (?, ?)"
                    " ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )

    def remove(self, key: str) -> None:
        with self._lock:
            with self._connect() as connection:
                connection.execute("DELETE FROM storage WHERE key = ?", (key,))

    def clear(self) -> None:
        with self._lock:
            with self._connect() as connection:
                connection.execute("DELETE FROM storage")

    def keys(self) -> list[str]:
        with self._lock:
            with self._connect() as connection:
                rows = connection.execute(
                    "SELECT key FROM storage ORDER BY key"
                ).fetchall()
        return [row[0] for row in rows]


Storage = InMemoryStorage | SQLiteStorage


def _package_version() -> str:
    """Return the installed ``thaitax`` version stamped on exported data."""

    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        _LOGGER.warning(
            "%s is not installed; exporting version %s", PACKAGE_NAME, UNKNOWN_VERSION
        )
        return UNKNOWN_VERSION


def _merge_preferences(
    current: Mapping[str, Any], updates: Mapping[str, Any]
) -> dict[str, Any]:
    merged = dict(current)
    for key, value in updates.items():
        existing = merged.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            merged[key] = _merge_preferences(existing, value)
        else:
            merged[key] = value
    return merged


def _as_entry(summary: TaxSummary | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(summary, TaxSummary):
        return summary.to_payload()
    if isinstance(summary, Mapping):
        return dict(summary)
    raise ValueError("Summary must be a TaxSummary or a mapping")


class CalculationHistory:
    """Newest-first calculation history with named saves and preferences.

    Every section is stored as a JSON document under its own storage key, so
    the same layout works for both storage backends. Read-modify-write
    sequences hold the history lock for their whole duration.
    """

    def __init__(
        self,
        storage: Storage,
        *,
        max_items: int = 50,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if max_items <= 0:
            raise ValueError("max_items must be positive")

        self._storage = storage
        self._max_items = max_items
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = Lock()

    @property
    def max_items(self) -> int:
        return self._max_items

    def _read(self, key: str, default: Any) -> Any:
        raw = self._storage.get(key)
        if raw is None:
            return default
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            _LOGGER.warning("Discarding undecodable value stored under %s", key)
            return default
        if not isinstance(value, type(default)):
            _LOGGER.warning("Discarding value of unexpected type stored under %s", key)
            return default
        return value

    def _write(self, key: str, value: Any) -> None:
        self._storage.set(key, json.dumps(value, ensure_ascii=False))

    def _now(self) -> str:
        return self._clock().isoformat()

    def save(self, summary: TaxSummary | Mapping[str, Any]) -> dict[str, Any]:
        """Prepend ``summary`` to the history and mark it as the last calculation."""

        entry = _as_entry(summary)
        entry.setdefault("id", uuid4().hex)
        if not entry.get("timestamp"):
            entry["timestamp"] = self._now()

        with self._lock:
            history = self.entries()
            history.insert(0, entry)
            self._write(HISTORY_KEY, history[: self._max_items])
            self._write(LAST_CALCULATION_KEY, entry)
        return entry

    def entries(self) -> list[dict[str, Any]]:
        return self._read(HISTORY_KEY, [])

    def last(self) -> dict[str, Any] | None:
        entry = self._read(LAST_CALCULATION_KEY, {})
        return entry or None

    def get(self, entry_id: str) -> dict[str, Any]:
        for entry in self.entries():
            if entry.get("id") == entry_id:
                return entry
        raise KeyError(entry_id)

    def delete(self, entry_id: str) -> bool:
        with self._lock:
            history = self.entries()
            remaining = [entry for entry in history if entry.get("id") != entry_id]
            if len(remaining) == len(history):
                return False
            self._write(HISTORY_KEY, remaining)
        return True

    def clear(self) -> None:
        """Forget the history and the last calculation; named saves stay."""

        with self._lock:
            self._storage.remove(HISTORY_KEY)
            self._storage.remove(LAST_CALCULATION_KEY)

    def save_named(
        self, name: str, summary: TaxSummary | Mapping[str, Any]
    ) -> dict[str, Any]:
        record = {
            "id": uuid4().hex,
            "name": name,
            "calculation": _as_entry(summary),
            "timestamp": self._now(),
        }
        with self._lock:
            saved = self.saved()
            saved.append(record)
            self._write(SAVED_CALCULATIONS_KEY, saved)
        return record

    def saved(self) -> list[dict[str, Any]]:
        return self._read(SAVED_CALCULATIONS_KEY, [])

    def delete_saved(self, record_id: str) -> bool:
        with self._lock:
            saved = self.saved()
            remaining = [record for record in saved if record.get("id") != record_id]
            if len(remaining) == len(saved):
                return False
            self._write(SAVED_CALCULATIONS_KEY, remaining)
        return True

    def save_preferences(self, preferences: Mapping[str, Any]) -> dict[str, Any]:
        with self._lock:
            merged = _merge_preferences(self.preferences(), preferences)
            self._write(PREFERENCES_KEY, merged)
        return merged

    def preferences(self) -> dict[str, Any]:
        return self._read(PREFERENCES_KEY, {})

    def export_data(self) -> dict[str, Any]:
        with self._lock:
            return {
                "version": _package_version(),
                "exportDate": self._now(),
                "calculationHistory": self.entries(),
                "savedCalculations": self.saved(),
                "preferences": self.preferences(),
            }

    def import_data(self, data: Mapping[str, Any]) -> None:
        """Replace each stored section present in ``data``.

        An empty list or mapping clears its section; a missing or ``None``
        section leaves the stored value alone.
        """

        if not isinstance(data, Mapping):
            raise ValueError("Imported data must be a mapping")

        sections = (
            ("calculationHistory", HISTORY_KEY),
            ("savedCalculations", SAVED_CALCULATIONS_KEY),
            ("preferences", PREFERENCES_KEY),
        )
        with self._lock:
            for field, key in sections:
                value = data.get(field)
                if value is not None:
                    self._write(key, value)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.entries())

    def __len__(self) -> int:
        return len(self.entries())


def _nested(entry: Mapping[str, Any], *path: str) -> Any:
    value: Any = entry
    for key in path:
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def _nested_amount(entry: Mapping[str, Any], group: str, camel: str, snake: str) -> float:
    value = _nested(entry, "allowanceBreakdown", group, camel)
    if value is None:
        value = _nested(entry, "allowanceBreakdown", group, snake)
    return coerce_amount(value)


def _count(amount: float, unit: float) -> float:
    if not amount or not unit:
        return 0.0
    return amount / unit


def restore_request(
    entry: Mapping[str, Any], config: YearConfiguration
) -> CalculationRequest:
    """Rebuild the form input that produced a stored summary.

    Dependant counts are recovered by dividing each allowance by its per-person
    amount; insurance, fund and housing amounts are the capped values that
    were granted.
    """

    allowances = config.allowances

    def personal(camel: str, snake: str) -> float:
        return _nested_amount(entry, "personal", camel, snake)

    def insurance(camel: str, snake: str) -> float:
        return _nested_amount(entry, "insurance", camel, snake)

    return CalculationRequest.model_validate(
        {
            "salary": entry.get("salary"),
            "freelance": entry.get("freelance"),
            "merchant": entry.get("merchant"),
            "allowances": {
                "spouse": personal("spouse", "spouse") > 0,
                "child_count": _count(
                    personal("childOld", "child_old"), allowances.child_old
                ),
                "child_born_2018_count": _count(
                    personal("childNew", "child_new"), allowances.child_new
                ),
                "parent_count": _count(personal("parent", "parent"), allowances.parent),
                "life_insurance": insurance("lifeInsurance", "life_insurance"),
                "health_insurance": insurance("healthInsurance", "health_insurance"),
                "social_security": insurance("socialSecurity", "social_security"),
                "pvd": insurance("pvd", "pvd"),
                "rmf": insurance("rmf", "rmf"),
                "ssf": insurance("ssf", "ssf"),
                "home_loan_interest": _nested_amount(
                    entry, "housing", "homeLoanInterest", "home_loan_interest"
                ),
            },
            "year": config.year,
        }
    )


def _parse_positive_int(value: str | None, *, env: str) -> int | None:
    if value is None or not value.strip():
        return None
    try:
        parsed = int(value)
    except ValueError:
        _LOGGER.warning("Ignoring invalid value for %s: %s", env, value)
        return None
    if parsed <= 0:
        _LOGGER.warning("Ignoring non-positive value for %s: %s", env, value)
        return None
    return parsed


def build_history_from_env(
    config: YearConfiguration, *, clock: Callable[[], datetime] | None = None
) -> CalculationHistory:
    """Create the history store described by the ``THAITAX_HISTORY_*`` variables."""

    capacity = _parse_positive_int(
        os.getenv(HISTORY_CAPACITY_ENVIRONMENT_VARIABLE),
        env=HISTORY_CAPACITY_ENVIRONMENT_VARIABLE,
    )
    max_items = capacity if capacity is not None else config.history.max_items

    db_path = os.getenv(HISTORY_DB_ENVIRONMENT_VARIABLE)
    storage: Storage
    if db_path:
        storage = SQLiteStorage(Path(db_path).expanduser())
    else:
        storage = InMemoryStorage()

    return CalculationHistory(storage, max_items=max_items, clock=clock)


__all__ = [
    "CalculationHistory",
    "HISTORY_CAPACITY_ENVIRONMENT_VARIABLE",
    "HISTORY_DB_ENVIRONMENT_VARIABLE",
    "HISTORY_KEY",
    "InMemoryStorage",
    "LAST_CALCULATION_KEY",
    "PACKAGE_NAME",
    "PREFERENCES_KEY",
    "SAVED_CALCULATIONS_KEY",
    "SQLiteStorage",
    "Storage",
    "UNKNOWN_VERSION",
    "build_history_from_env",
    "restore_request",
]
