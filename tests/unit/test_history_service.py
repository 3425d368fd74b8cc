"""Unit coverage for the local calculation history store."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from importlib import metadata
from pathlib import Path

import pytest

from thaitax.engine import compute_tax_summary
from thaitax.services.history_service import (
    HISTORY_CAPACITY_ENVIRONMENT_VARIABLE,
    HISTORY_DB_ENVIRONMENT_VARIABLE,
    HISTORY_KEY,
    LAST_CALCULATION_KEY,
    PREFERENCES_KEY,
    UNKNOWN_VERSION,
    CalculationHistory,
    InMemoryStorage,
    SQLiteStorage,
    build_history_from_env,
    restore_request,
)


@pytest.fixture()
def history(clock) -> CalculationHistory:
    return CalculationHistory(InMemoryStorage(), max_items=3, clock=clock)


def _summary(config, clock, salary: float):
    return compute_tax_summary({"salary": salary}, config, clock=clock)


def test_save_assigns_id_and_marks_last(history, config, clock) -> None:
    entry = history.save(_summary(config, clock, 600_000))

    assert len(entry["id"]) == 32
    assert entry["tax"] == pytest.approx(21_500)
    assert history.last() == entry
    assert history.get(entry["id"]) == entry


def test_save_keeps_existing_id_and_fills_timestamp(history, clock) -> None:
    entry = history.save({"id": "custom", "tax": 10})

    assert entry["id"] == "custom"
    assert entry["timestamp"] == clock.current.isoformat()


def test_history_is_newest_first_and_capped(history, config, clock) -> None:
    saved = []
    for salary in (100_000, 200_000, 300_000, 400_000):
        clock.current += timedelta(minutes=1)
        saved.append(history.save(_summary(config, clock, salary)))

    entries = history.entries()
    assert [entry["salary"] for entry in entries] == [400_000, 300_000, 200_000]
    assert len(history) == 3
    with pytest.raises(KeyError):
        history.get(saved[0]["id"])


def test_delete_reports_whether_an_entry_was_removed(history) -> None:
    first = history.save({"tax": 1})
    history.save({"tax": 2})

    assert history.delete(first["id"]) is True
    assert history.delete(first["id"]) is False
    assert [entry["tax"] for entry in history] == [2]


def test_clear_keeps_named_calculations(history) -> None:
    history.save({"tax": 1})
    record = history.save_named("Bonus year", {"tax": 5})

    history.clear()

    assert history.entries() == []
    assert history.last() is None
    assert history.saved() == [record]


def test_named_calculations(history, clock) -> None:
    first = history.save_named("Plan A", {"tax": 1})
    second = history.save_named("Plan B", {"tax": 2})

    assert first["name"] == "Plan A"
    assert first["calculation"] == {"tax": 1}
    assert first["timestamp"] == clock.current.isoformat()
    assert [record["name"] for record in history.saved()] == ["Plan A", "Plan B"]

    assert history.delete_saved(first["id"]) is True
    assert history.delete_saved("missing") is False
    assert history.saved() == [second]


def test_preferences_are_deep_merged(history) -> None:
    history.save_preferences({"theme": "dark", "export": {"format": "pdf", "locale": "th"}})
    merged = history.save_preferences({"export": {"locale": "en"}})

    assert merged == {"theme": "dark", "export": {"format": "pdf", "locale": "en"}}
    assert history.preferences() == merged


def test_export_and_import_round_trip(
    history, clock, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(metadata, "version", lambda name: "1.2.3")
    history.save({"tax": 1})
    history.save_named("Plan", {"tax": 2})
    history.save_preferences({"theme": "light"})

    exported = history.export_data()

    assert exported["version"] == "1.2.3"
    assert exported["exportDate"] == clock.current.isoformat()
    assert set(exported) == {
        "version",
        "exportDate",
        "calculationHistory",
        "savedCalculations",
        "preferences",
    }

    target = CalculationHistory(InMemoryStorage(), clock=clock)
    target.import_data(exported)

    assert target.entries() == history.entries()
    assert target.saved() == history.saved()
    assert target.preferences() == {"theme": "light"}


def test_import_only_replaces_present_sections(history) -> None:
    history.save({"tax": 1})
    history.save_preferences({"theme": "dark"})

    history.import_data({"preferences": {"theme": "light"}})

    assert [entry["tax"] for entry in history.entries()] == [1]
    assert history.preferences() == {"theme": "light"}


def test_import_with_empty_sections_clears_them(history) -> None:
    history.save({"tax": 1})
    history.save_named("Plan", {"tax": 2})
    history.save_preferences({"theme": "dark"})

    history.import_data(
        {"calculationHistory": [], "savedCalculations": None, "preferences": {}}
    )

    assert history.entries() == []
    assert [record["name"] for record in history.saved()] == ["Plan"]
    assert history.preferences() == {}


def test_export_version_without_installed_metadata(
    history, monkeypatch: pytest.MonkeyPatch, caplog
) -> None:
    def raise_package_not_found(name: str) -> str:
        raise metadata.PackageNotFoundError(name)

    monkeypatch.setattr(metadata, "version", raise_package_not_found)

    with caplog.at_level(logging.WARNING):
        exported = history.export_data()

    assert exported["version"] == UNKNOWN_VERSION
    assert "not installed" in caplog.text


def test_import_rejects_non_mapping(history) -> None:
    with pytest.raises(ValueError):
        history.import_data(["not", "a", "mapping"])  # type: ignore[arg-type]


def test_undecodable_values_read_as_empty(caplog) -> None:
    storage = InMemoryStorage()
    storage.set(HISTORY_KEY, "{not json")
    storage.set(LAST_CALCULATION_KEY, "[]")
    storage.set(PREFERENCES_KEY, '"text"')
    history = CalculationHistory(storage)

    with caplog.at_level(logging.WARNING):
        assert history.entries() == []
        assert history.last() is None
        assert history.preferences() == {}

    assert "tax_calculation_history" in caplog.text


def test_max_items_must_be_positive() -> None:
    with pytest.raises(ValueError):
        CalculationHistory(InMemoryStorage(), max_items=0)


def test_save_rejects_unsupported_summary(history) -> None:
    with pytest.raises(ValueError):
        history.save("summary")  # type: ignore[arg-type]


def test_in_memory_storage_contract() -> None:
    storage = InMemoryStorage()
    storage.set("b", "2")
    storage.set("a", "1")

    assert storage.keys() == ["a", "b"]
    assert storage.get("a") == "1"

    storage.remove("a")
    storage.remove("missing")
    assert storage.get("a") is None

    storage.clear()
    assert storage.keys() == []


def test_sqlite_storage_persists_between_instances(tmp_path: Path, config, clock) -> None:
    db_path = tmp_path / "history.db"
    history = CalculationHistory(SQLiteStorage(db_path), clock=clock)
    entry = history.save(_summary(config, clock, 600_000))
    history.save_preferences({"locale": "th"})

    fresh = CalculationHistory(SQLiteStorage(db_path), clock=clock)

    assert fresh.get(entry["id"]) == entry
    assert fresh.last() == entry
    assert fresh.preferences() == {"locale": "th"}


def test_sqlite_storage_contract(tmp_path: Path) -> None:
    storage = SQLiteStorage(tmp_path / "kv.db")
    storage.set("key", "one")
    storage.set("key", "two")

    assert storage.get("key") == "two"
    assert storage.keys() == ["key"]

    storage.remove("key")
    assert storage.get("key") is None

    storage.set("other", "value")
    storage.clear()
    assert storage.keys() == []


def test_sqlite_storage_handles_concurrent_writers(tmp_path: Path) -> None:
    storage = SQLiteStorage(tmp_path / "concurrent.db")

    def write(index: int) -> None:
        storage.set(f"key-{index}", str(index))

    with ThreadPoolExecutor(max_workers=4) as executor:
        list(executor.map(write, range(20)))

    assert len(storage.keys()) == 20


@pytest.mark.parametrize("backend", ["memory", "sqlite"])
def test_concurrent_saves_keep_every_entry(tmp_path: Path, backend: str) -> None:
    storage = (
        InMemoryStorage() if backend == "memory" else SQLiteStorage(tmp_path / "saves.db")
    )
    history = CalculationHistory(storage, max_items=1000)

    def save_batch(worker: int) -> None:
        for index in range(25):
            history.save({"salary": worker * 100 + index})

    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(save_batch, range(8)))

    entries = history.entries()
    assert len(entries) == 200
    assert len({entry["id"] for entry in entries}) == 200


def test_concurrent_named_saves_and_preferences(tmp_path: Path) -> None:
    history = CalculationHistory(SQLiteStorage(tmp_path / "named.db"))

    def work(index: int) -> None:
        history.save_named(f"Plan {index}", {"tax": index})
        history.save_preferences({"seen": {str(index): True}})

    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(work, range(40)))

    assert len(history.saved()) == 40
    assert len(history.preferences()["seen"]) == 40


def test_restore_request_round_trips_inputs(config, clock) -> None:
    payload = {
        "salary": 720_000,
        "freelance": 60_000,
        "merchant": 15_000,
        "allowances": {
            "spouse": True,
            "childCount": 2,
            "childBorn2018Count": 1,
            "parentCount": 3,
            "lifeInsurance": 20_000,
            "healthInsurance": 12_000,
            "socialSecurity": 9_000,
            "pvd": 40_000,
            "rmf": 25_000,
            "ssf": 10_000,
            "homeLoanInterest": 45_000,
        },
    }
    summary = compute_tax_summary(payload, config, clock=clock)
    history = CalculationHistory(InMemoryStorage(), clock=clock)
    entry = history.save(summary)

    request = restore_request(entry, config)

    assert request.salary == 720_000
    assert request.freelance == 60_000
    assert request.merchant == 15_000
    allowances = request.allowances
    assert allowances.spouse is True
    assert allowances.child_count == pytest.approx(2)
    assert allowances.child_born_2018_count == pytest.approx(1)
    assert allowances.parent_count == pytest.approx(3)
    assert allowances.life_insurance == 20_000
    assert allowances.home_loan_interest == 45_000
    assert request.year == config.year

    recomputed = compute_tax_summary(request, config, clock=clock)
    assert recomputed.tax == pytest.approx(summary.tax)


def test_restore_request_reads_capped_amounts(config, clock) -> None:
    summary = compute_tax_summary(
        {"salary": 100_000, "allowances": {"lifeInsurance": 250_000}}, config, clock=clock
    )

    request = restore_request(summary.to_payload(), config)

    assert request.allowances.life_insurance == 100_000


def test_restore_request_accepts_snake_case_and_missing_sections(config) -> None:
    request = restore_request(
        {"salary": 50_000, "allowanceBreakdown": {"personal": {"child_old": 90_000}}},
        config,
    )

    assert request.salary == 50_000
    assert request.allowances.child_count == pytest.approx(3)
    assert request.allowances.spouse is False
    assert request.allowances.pvd == 0


def test_build_history_defaults_to_memory(monkeypatch: pytest.MonkeyPatch, config) -> None:
    monkeypatch.delenv(HISTORY_DB_ENVIRONMENT_VARIABLE, raising=False)
    monkeypatch.delenv(HISTORY_CAPACITY_ENVIRONMENT_VARIABLE, raising=False)

    history = build_history_from_env(config)

    assert history.max_items == config.history.max_items == 50


def test_build_history_uses_sqlite_and_capacity(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, config, clock
) -> None:
    db_path = tmp_path / "env.db"
    monkeypatch.setenv(HISTORY_DB_ENVIRONMENT_VARIABLE, str(db_path))
    monkeypatch.setenv(HISTORY_CAPACITY_ENVIRONMENT_VARIABLE, "2")

    history = build_history_from_env(config, clock=clock)
    for tax in (1, 2, 3):
        history.save({"tax": tax})

    assert history.max_items == 2
    assert db_path.exists()
    assert [entry["tax"] for entry in history.entries()] == [3, 2]


@pytest.mark.parametrize("value", ["lots", "0", "-4"])
def test_build_history_ignores_invalid_capacity(
    monkeypatch: pytest.MonkeyPatch, caplog, config, value
) -> None:
    monkeypatch.delenv(HISTORY_DB_ENVIRONMENT_VARIABLE, raising=False)
    monkeypatch.setenv(HISTORY_CAPACITY_ENVIRONMENT_VARIABLE, value)

    with caplog.at_level(logging.WARNING):
        history = build_history_from_env(config)

    assert history.max_items == 50
    assert HISTORY_CAPACITY_ENVIRONMENT_VARIABLE in caplog.text
