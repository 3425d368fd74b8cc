"""Unit coverage for year configuration discovery and parsing utilities."""

from __future__ import annotations

import logging
from pathlib import Path
from shutil import copy2

import pytest
import yaml

from thaitax.config import year_config
from thaitax.config.schema import ConfigurationError, TaxBracket, YearConfiguration


@pytest.fixture()
def isolated_config_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Return a temporary configuration directory patched into ``year_config``."""

    original_directory = year_config.CONFIG_DIRECTORY
    for filename in ("2023.yaml", "2024.yaml", "manifest.yaml"):
        copy2(original_directory / filename, tmp_path / filename)

    monkeypatch.setattr(year_config, "CONFIG_DIRECTORY", tmp_path)
    monkeypatch.setattr(year_config, "MANIFEST_FILE", tmp_path / "manifest.yaml")
    year_config.load_year_configuration.cache_clear()
    year_config.load_manifest.cache_clear()

    yield tmp_path

    year_config.load_year_configuration.cache_clear()
    year_config.load_manifest.cache_clear()


def _declare_year(directory: Path, year: int, **entry: object) -> None:
    manifest_path = directory / "manifest.yaml"
    manifest = yaml.safe_load(manifest_path.read_text(encoding="utf-8"))
    manifest.setdefault("years", []).append({"year": year, **entry})
    manifest_path.write_text(
        yaml.safe_dump(manifest, sort_keys=False, allow_unicode=True), encoding="utf-8"
    )
    year_config.load_manifest.cache_clear()


def _write_year(directory: Path, year: int, mutate=None) -> None:
    data = yaml.safe_load((directory / "2024.yaml").read_text(encoding="utf-8"))
    data["year"] = year
    if mutate is not None:
        mutate(data)
    (directory / f"{year}.yaml").write_text(
        yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8"
    )


def test_available_years_reflect_manifest() -> None:
    assert year_config.available_years() == (2023, 2024)


def test_load_year_configuration_parses_constants() -> None:
    config = year_config.load_year_configuration(2024)

    assert isinstance(config, YearConfiguration)
    assert config.expenses.salary_rate == 0.5
    assert config.expenses.salary_cap == 100_000
    assert config.allowances.child_new == 60_000
    assert config.allowances.caps.health_insurance == 25_000
    assert config.installments.count == 3
    assert config.withholding.rate == 0.05
    assert config.filing.online_deadline.month == 4
    assert config.history.max_items == 50
    assert isinstance(config.brackets, tuple)
    assert len(config.brackets) == 8
    assert config.brackets[-1].is_unbounded


def test_configuration_is_cached_and_frozen() -> None:
    first = year_config.load_year_configuration(2024)

    assert year_config.load_year_configuration(2024) is first
    with pytest.raises(Exception):
        first.year = 2030  # type: ignore[misc]


def test_new_year_is_discovered_from_manifest(isolated_config_directory: Path) -> None:
    _write_year(isolated_config_directory, 2030)
    _declare_year(isolated_config_directory, 2030)

    assert year_config.available_years() == (2023, 2024, 2030)
    assert year_config.load_year_configuration(2030).year == 2030


def test_manifest_filename_override(isolated_config_directory: Path) -> None:
    _write_year(isolated_config_directory, 2025)
    (isolated_config_directory / "2025.yaml").rename(isolated_config_directory / "draft.yaml")
    _declare_year(isolated_config_directory, 2025, filename="draft.yaml", status="draft")

    assert year_config.load_year_configuration(2025).year == 2025


def test_undeclared_year_raises(isolated_config_directory: Path) -> None:
    with pytest.raises(FileNotFoundError, match="not declared"):
        year_config.load_year_configuration(1999)


def test_missing_year_file_raises(isolated_config_directory: Path) -> None:
    _declare_year(isolated_config_directory, 2031)

    with pytest.raises(FileNotFoundError, match="missing"):
        year_config.load_year_configuration(2031)


def test_year_mismatch_is_rejected(isolated_config_directory: Path) -> None:
    _write_year(isolated_config_directory, 2032)
    _declare_year(isolated_config_directory, 2033, filename="2032.yaml")

    with pytest.raises(ConfigurationError, match="year mismatch"):
        year_config.load_year_configuration(2033)


def test_duplicate_manifest_years_are_rejected(isolated_config_directory: Path) -> None:
    _declare_year(isolated_config_directory, 2024)

    with pytest.raises(ConfigurationError, match="Manifest validation failed"):
        year_config.available_years()


@pytest.mark.parametrize(
    "mutate",
    [
        lambda data: data["tax_brackets"].pop(1),
        lambda data: data["tax_brackets"][0].update(min_net_income=1),
        lambda data: data["tax_brackets"][-1].update(max_net_income=9_000_000),
        lambda data: data["tax_brackets"][3].pop("max_net_income"),
        lambda data: data["tax_brackets"][2].update(tax_rate=1.5),
        lambda data: data["expenses"].update(salary_rate=-0.1),
        lambda data: data["allowances"]["caps"].update(pvd=-1),
        lambda data: data["installments"].update(count=0),
        lambda data: data.update(unexpected=True),
        lambda data: data.pop("expenses"),
    ],
)
def test_invalid_configuration_is_rejected(isolated_config_directory: Path, mutate) -> None:
    _write_year(isolated_config_directory, 2040, mutate)
    _declare_year(isolated_config_directory, 2040)

    with pytest.raises(ConfigurationError):
        year_config.load_year_configuration(2040)


def test_non_mapping_file_is_rejected(isolated_config_directory: Path) -> None:
    (isolated_config_directory / "2041.yaml").write_text("- just\n- a list\n", encoding="utf-8")
    _declare_year(isolated_config_directory, 2041)

    with pytest.raises(ConfigurationError):
        year_config.load_year_configuration(2041)


def test_default_year_prefers_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    assert year_config.default_year() == 2024

    monkeypatch.setenv(year_config.YEAR_ENVIRONMENT_VARIABLE, "2023")
    assert year_config.default_year() == 2023


def test_default_year_ignores_invalid_environment(
    monkeypatch: pytest.MonkeyPatch, caplog
) -> None:
    monkeypatch.setenv(year_config.YEAR_ENVIRONMENT_VARIABLE, "next")

    with caplog.at_level(logging.WARNING):
        assert year_config.default_year() == 2024

    assert "Ignoring invalid value" in caplog.text


def test_tax_bracket_validation() -> None:
    bracket = TaxBracket(min_net_income=0, max_net_income=150_000, tax_rate=0)

    assert bracket.width == 150_000
    assert TaxBracket(min_net_income=10, tax_rate=0.1).width == float("inf")
    with pytest.raises(ValueError):
        TaxBracket(min_net_income=100, max_net_income=50, tax_rate=0.1)
    with pytest.raises(ValueError):
        TaxBracket(minNetIncome=0, taxRate=1.2)
