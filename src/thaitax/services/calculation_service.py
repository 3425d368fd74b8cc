"""Orchestrate payload normalisation, year resolution and tax calculations.

The calculation service is the single entry point callers use to turn a raw
form payload into the JSON summary. It resolves the tax-year configuration,
clamps dependant counts to the published maximums and delegates the arithmetic
to :mod:`thaitax.engine`. Profiling hooks live here so the engine stays free
of side effects.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from contextlib import contextmanager
from time import perf_counter
from typing import Any

from thaitax.config.year_config import (
    YearConfiguration,
    default_year,
    load_year_configuration,
)
from thaitax.engine import Clock, compute_tax_summary
from thaitax.models import CalculationRequest

PROFILE_ENVIRONMENT_VARIABLE = "THAITAX_PROFILE_CALCULATIONS"

_LOGGER = logging.getLogger(__name__)


def _profiling_enabled() -> bool:
    """Return ``True`` when calculation profiling should be captured."""

    flag = os.getenv(PROFILE_ENVIRONMENT_VARIABLE, "")
    return flag.strip().lower() in {"1", "true", "yes", "on"}


@contextmanager
def _profile_section(name: str, store: dict[str, float] | None):
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


def _parse_request(payload: Any) -> CalculationRequest:
    if isinstance(payload, CalculationRequest):
        return payload
    if not isinstance(payload, Mapping):
        raise ValueError("Payload must be a mapping")
    return CalculationRequest.model_validate(dict(payload))


def _resolve_year(request: CalculationRequest, year: int | None) -> int:
    if year is not None:
        return int(year)
    if request.year is not None:
        return request.year
    return default_year()


def _clamp_count(value: float, maximum: int, field_name: str) -> float:
    if value > maximum:
        _LOGGER.debug("Clamping %s from %s to %s", field_name, value, maximum)
        return float(maximum)
    return value


def _normalise_payload(
    request: CalculationRequest, config: YearConfiguration
) -> CalculationRequest:
    allowances = request.allowances
    limits = config.allowances

    clamped = allowances.model_copy(
        update={
            "child_count": _clamp_count(
                allowances.child_count, limits.max_child_count, "child_count"
            ),
            "child_born_2018_count": _clamp_count(
                allowances.child_born_2018_count,
                limits.max_child_count,
                "child_born_2018_count",
            ),
            "parent_count": _clamp_count(
                allowances.parent_count, limits.max_parent_count, "parent_count"
            ),
        }
    )

    return request.model_copy(update={"allowances": clamped, "year": config.year})


def calculate_tax(
    payload: Mapping[str, Any] | CalculationRequest,
    *,
    year: int | None = None,
    clock: Clock | None = None,
) -> dict[str, Any]:
    """Calculate the tax summary for ``payload`` and return its JSON form.

    Args:
        payload: Raw form data (camelCase or snake_case keys) or a parsed
            :class:`CalculationRequest`.
        year: Tax year overriding ``payload["year"]`` and the configured
            default.
        clock: Optional callable returning the timestamp stored on the
            summary.

    Raises:
        ValueError: If ``payload`` is not a mapping.
        FileNotFoundError: If the resolved year has no configuration.
    """

    timings: dict[str, float] | None = {} if _profiling_enabled() else None
    overall_start = perf_counter() if timings is not None else None

    with _profile_section("parse", timings):
        request = _parse_request(payload)

    with _profile_section("config", timings):
        config = load_year_configuration(_resolve_year(request, year))

    normalised = _normalise_payload(request, config)

    with _profile_section("summary", timings):
        summary = compute_tax_summary(normalised, config, clock=clock)

    if timings is not None and overall_start is not None:
        timings["total"] = perf_counter() - overall_start
        _LOGGER.debug(
            "calculate_tax timings (ms): %s",
            {name: round(duration * 1000, 3) for name, duration in timings.items()},
        )

    return summary.to_payload()


__all__ = ["PROFILE_ENVIRONMENT_VARIABLE", "calculate_tax"]
