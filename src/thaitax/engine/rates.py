"""Net income, effective rate, net salary and withholding helpers."""

from __future__ import annotations

from typing import Any

from thaitax.models import coerce_amount

DEFAULT_WITHHOLDING_RATE = 0.05


def compute_net_income(total_income: Any, expense: Any, allowance: Any) -> float:
    """Return taxable income after expenses and allowances, floored at zero."""

    return max(
        0.0,
        coerce_amount(total_income) - coerce_amount(expense) - coerce_amount(allowance),
    )


def compute_effective_tax_rate(net_income: Any, tax: Any) -> float:
    """Return ``tax / net_income``, or zero when there is no net income."""

    income = coerce_amount(net_income)
    if income <= 0:
        return 0.0
    return coerce_amount(tax) / income


def compute_net_salary(total_income: Any, tax: Any) -> float:
    return max(0.0, coerce_amount(total_income) - coerce_amount(tax))


def compute_withholding_tax(salary: Any, rate: float = DEFAULT_WITHHOLDING_RATE) -> float:
    """Estimate tax withheld from salary; advisory only."""

    return coerce_amount(salary) * rate


__all__ = [
    "DEFAULT_WITHHOLDING_RATE",
    "compute_effective_tax_rate",
    "compute_net_income",
    "compute_net_salary",
    "compute_withholding_tax",
]
