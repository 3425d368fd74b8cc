"""Standard expense deduction calculator."""

from __future__ import annotations

from typing import Any

from thaitax.config.schema import ExpenseConfig
from thaitax.models import ExpenseBreakdown, coerce_amount


def compute_expense(
    salary: Any, freelance: Any, merchant: Any, config: ExpenseConfig
) -> ExpenseBreakdown:
    """Return the expense deduction for each income category.

    Salary and freelance income (sections 40(1) and 40(2)) share a single
    capped deduction; merchant income (section 40(8)) is uncapped.
    """

    salary_amount = coerce_amount(salary)
    freelance_amount = coerce_amount(freelance)
    merchant_amount = coerce_amount(merchant)

    salary_expense = min(
        (salary_amount + freelance_amount) * config.salary_rate, config.salary_cap
    )
    merchant_expense = merchant_amount * config.merchant_rate

    return ExpenseBreakdown(
        salary_expense=salary_expense,
        merchant_expense=merchant_expense,
        total=salary_expense + merchant_expense,
    )


__all__ = ["compute_expense"]
