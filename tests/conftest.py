"""Test configuration utilities and shared fixtures."""

import sys
from datetime import datetime, timezone
from pathlib import Path

# Ensure the ``src`` directory is importable when tests are executed without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402

from thaitax.config.year_config import (  # noqa: E402
    YEAR_ENVIRONMENT_VARIABLE,
    YearConfiguration,
    load_year_configuration,
)

FIXED_TIMESTAMP = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock returning a settable instant."""

    def __init__(self, start: datetime = FIXED_TIMESTAMP) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current


@pytest.fixture(autouse=True)
def _clear_year_override(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment overrides out of the test run."""

    monkeypatch.delenv(YEAR_ENVIRONMENT_VARIABLE, raising=False)


@pytest.fixture()
def config() -> YearConfiguration:
    """Return the 2024 tax year configuration."""

    return load_year_configuration(2024)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
