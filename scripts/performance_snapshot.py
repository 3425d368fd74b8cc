#!/usr/bin/env python3
"""Collect baseline calculation and export timings for ThaiTax."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from time import perf_counter
from typing import Any, Callable

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from thaitax.services import (  # noqa: E402
    calculate_tax,
    render_csv,
    render_pdf,
    render_text_report,
)

SAMPLE_PAYLOAD = {
    "year": 2024,
    "salary": 600000,
    "freelance": 120000,
    "merchant": 50000,
    "allowances": {
        "spouse": True,
        "childCount": 1,
        "childBorn2018Count": 1,
        "parentCount": 2,
        "lifeInsurance": 40000,
        "healthInsurance": 15000,
        "socialSecurity": 9000,
        "pvd": 36000,
        "rmf": 50000,
        "ssf": 30000,
        "homeLoanInterest": 60000,
    },
}


def _time(action: Callable[[], Any], iterations: int) -> dict[str, float]:
    action()  # Warm caches
    start = perf_counter()
    for _ in range(iterations):
        action()
    elapsed = perf_counter() - start
    return {
        "iterations": iterations,
        "total_ms": elapsed * 1000,
        "average_ms": (elapsed / iterations) * 1000,
    }


def measure_backend(iterations: int) -> dict[str, float]:
    """Return timing statistics for repeated calculations."""

    return _time(lambda: calculate_tax(dict(SAMPLE_PAYLOAD)), iterations)


def measure_exports(iterations: int) -> dict[str, dict[str, float]]:
    """Return timing statistics for each export renderer."""

    summary = calculate_tax(dict(SAMPLE_PAYLOAD))
    return {
        "text": _time(lambda: render_text_report(summary, "th"), iterations),
        "csv": _time(lambda: render_csv(summary, "th"), iterations),
        "pdf": _time(lambda: render_pdf(summary, "en"), max(1, iterations // 10)),
    }


def main() -> None:
    iterations = int(os.getenv("THAITAX_PROFILE_ITERATIONS", "75"))
    report = {
        "backend": measure_backend(iterations),
        "exports": measure_exports(iterations),
    }
    print(json.dumps(report, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
