"""Progressive bracket tax calculator."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from thaitax.config.schema import TaxBracket
from thaitax.models import BracketTax, TaxBreakdown, coerce_amount


def compute_tax(net_income: Any, brackets: Sequence[TaxBracket]) -> TaxBreakdown:
    """Calculate progressive tax for ``net_income`` using ``brackets``.

    Each bracket taxes the slice of income falling inside it at its marginal
    rate. Brackets that receive no income are left out of the breakdown.
    """

    remaining = coerce_amount(net_income)
    total_tax = 0.0
    bracket_taxes: list[BracketTax] = []

    for bracket in brackets:
        if remaining <= 0:
            break

        width = bracket.width
        income_in_bracket = min(remaining, width)
        tax = income_in_bracket * bracket.tax_rate

        if income_in_bracket > 0:
            bracket_taxes.append(
                BracketTax(bracket=bracket, income_in_bracket=income_in_bracket, tax=tax)
            )

        total_tax += tax
        remaining -= width

    return TaxBreakdown(total_tax=total_tax, bracket_taxes=tuple(bracket_taxes))


def bracket_rows(
    breakdown: TaxBreakdown, brackets: Sequence[TaxBracket]
) -> list[BracketTax]:
    """Pair every configured bracket with its income and tax for display.

    Brackets without a breakdown entry are reported with zero income and tax.
    """

    populated = {entry.bracket: entry for entry in breakdown.bracket_taxes}
    rows: list[BracketTax] = []
    for bracket in brackets:
        entry = populated.get(bracket)
        if entry is None:
            entry = BracketTax(bracket=bracket, income_in_bracket=0.0, tax=0.0)
        rows.append(entry)
    return rows


__all__ = ["bracket_rows", "compute_tax"]
