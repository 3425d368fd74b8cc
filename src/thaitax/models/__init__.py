"""Typed inputs and results shared by the engine and services."""

from .api import (
    AllowanceBreakdown,
    AllowanceInput,
    BracketTax,
    CalculationRequest,
    ExpenseBreakdown,
    HousingAllowances,
    InsuranceAllowances,
    PersonalAllowances,
    TaxBreakdown,
    TaxSummary,
    coerce_amount,
    coerce_flag,
)

__all__ = [
    "AllowanceBreakdown",
    "AllowanceInput",
    "BracketTax",
    "CalculationRequest",
    "ExpenseBreakdown",
    "HousingAllowances",
    "InsuranceAllowances",
    "PersonalAllowances",
    "TaxBreakdown",
    "TaxSummary",
    "coerce_amount",
    "coerce_flag",
]
