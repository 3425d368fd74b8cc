"""Compose the individual calculators into a complete tax summary."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from thaitax.config.schema import YearConfiguration
from thaitax.models import CalculationRequest, TaxSummary

from .allowance import compute_allowance
from .expense import compute_expense
from .installments import compute_installments
from .progressive import compute_tax
from .rates import (
    compute_effective_tax_rate,
    compute_net_income,
    compute_net_salary,
    compute_withholding_tax,
)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_request(payload: Mapping[str, Any] | CalculationRequest | None) -> CalculationRequest:
    if isinstance(payload, CalculationRequest):
        return payload
    if payload is None:
        return CalculationRequest()
    return CalculationRequest.model_validate(dict(payload))


def compute_tax_summary(
    payload: Mapping[str, Any] | CalculationRequest | None,
    config: YearConfiguration,
    *,
    clock: Clock | None = None,
) -> TaxSummary:
    """Return the itemised summary for one input snapshot.

    The result depends only on ``payload`` and ``config``; ``clock`` supplies
    the generation timestamp and defaults to the current UTC time.
    """

    request = _as_request(payload)

    salary = request.salary
    freelance = request.freelance
    merchant = request.merchant
    total_income = salary + freelance + merchant

    expense = compute_expense(salary, freelance, merchant, config.expenses)
    allowance = compute_allowance(request.allowances, config.allowances)

    net_income = compute_net_income(total_income, expense.total, allowance.total)

    tax_breakdown = compute_tax(net_income, config.brackets)
    tax = tax_breakdown.total_tax

    return TaxSummary(
        salary=salary,
        freelance=freelance,
        merchant=merchant,
        total_income=total_income,
        expense=expense.total,
        expense_breakdown=expense,
        allowance=allowance.total,
        allowance_breakdown=allowance,
        net_income=net_income,
        tax=tax,
        tax_breakdown=tax_breakdown,
        effective_tax_rate=compute_effective_tax_rate(net_income, tax),
        net_salary=compute_net_salary(total_income, tax),
        withholding_tax=compute_withholding_tax(salary, config.withholding.rate),
        installments=compute_installments(tax, config.installments),
        timestamp=(clock or _utc_now)(),
    )


__all__ = ["Clock", "compute_tax_summary"]
