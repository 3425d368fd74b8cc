"""Pydantic models describing calculation inputs and the summary payload."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from thaitax.config.schema import TaxBracket

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

_LOGGER = logging.getLogger(__name__)

_TRUTHY_STRINGS = {"1", "true", "yes", "on"}


def coerce_amount(value: Any) -> float:
    """Return ``value`` as a finite float, treating anything unusable as zero."""

    if value is None:
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        _LOGGER.debug("Coercing malformed amount %r to zero", value)
        return 0.0
    if not math.isfinite(amount):
        _LOGGER.debug("Coercing non-finite amount %r to zero", value)
        return 0.0
    return amount


def coerce_flag(value: Any) -> bool:
    """Interpret checkbox-style values, accepting common string spellings."""

    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STRINGS
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


class _InputModel(BaseModel):
    """Lenient input base: camelCase or snake_case keys, unknown keys ignored."""

    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, alias_generator=to_camel, frozen=True
    )


class _ResultModel(BaseModel):
    """Immutable result base serialising with camelCase keys."""

    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, alias_generator=to_camel, frozen=True
    )


class AllowanceInput(_InputModel):
    """Raw deduction quantities declared by the user.

    Counts are not capped here; currency caps are applied by the allowance
    calculator.
    """

    spouse: bool = False
    child_count: float = 0.0
    child_born_2018_count: float = Field(default=0.0, alias="childBorn2018Count")
    parent_count: float = 0.0
    life_insurance: float = 0.0
    health_insurance: float = 0.0
    social_security: float = 0.0
    pvd: float = 0.0
    rmf: float = 0.0
    ssf: float = 0.0
    home_loan_interest: float = 0.0

    @field_validator("spouse", mode="before")
    @classmethod
    def _coerce_spouse(cls, value: Any) -> bool:
        return coerce_flag(value)

    @field_validator(
        "child_count",
        "child_born_2018_count",
        "parent_count",
        "life_insurance",
        "health_insurance",
        "social_security",
        "pvd",
        "rmf",
        "ssf",
        "home_loan_interest",
        mode="before",
    )
    @classmethod
    def _coerce_amounts(cls, value: Any) -> float:
        return coerce_amount(value)

    @classmethod
    def from_raw(cls, value: Any) -> AllowanceInput:
        """Build an instance from a model, mapping or ``None``."""

        if isinstance(value, AllowanceInput):
            return value
        if isinstance(value, Mapping):
            return cls.model_validate(dict(value))
        if value is not None:
            _LOGGER.debug("Ignoring non-mapping allowance input of type %s", type(value))
        return cls()


class CalculationRequest(_InputModel):
    """Complete input snapshot: three income figures plus allowances."""

    salary: float = 0.0
    freelance: float = 0.0
    merchant: float = 0.0
    allowances: AllowanceInput = Field(default_factory=AllowanceInput)
    year: int | None = None

    @field_validator("salary", "freelance", "merchant", mode="before")
    @classmethod
    def _coerce_income(cls, value: Any) -> float:
        return coerce_amount(value)

    @field_validator("allowances", mode="before")
    @classmethod
    def _coerce_allowances(cls, value: Any) -> AllowanceInput:
        return AllowanceInput.from_raw(value)

    @field_validator("year", mode="before")
    @classmethod
    def _coerce_year(cls, value: Any) -> int | None:
        if value is None or value == "":
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            _LOGGER.debug("Ignoring malformed tax year %r", value)
            return None

    @property
    def total_income(self) -> float:
        return self.salary + self.freelance + self.merchant


class ExpenseBreakdown(_ResultModel):
    """Expense deduction per income category."""

    salary_expense: float
    merchant_expense: float
    total: float


class PersonalAllowances(_ResultModel):
    personal_allowance: float
    spouse: float
    child_old: float
    child_new: float
    parent: float


class InsuranceAllowances(_ResultModel):
    life_insurance: float
    health_insurance: float
    social_security: float
    pvd: float
    rmf: float
    ssf: float


class HousingAllowances(_ResultModel):
    home_loan_interest: float


class AllowanceBreakdown(_ResultModel):
    """Allowance totals by category group with per-item detail."""

    personal: PersonalAllowances
    personal_total: float
    insurance: InsuranceAllowances
    insurance_total: float
    housing: HousingAllowances
    housing_total: float
    total: float


class BracketTax(_ResultModel):
    """Portion of net income taxed inside one bracket."""

    bracket: TaxBracket
    income_in_bracket: float
    tax: float


class TaxBreakdown(_ResultModel):
    total_tax: float
    bracket_taxes: tuple[BracketTax, ...] = ()


class TaxSummary(_ResultModel):
    """Fully itemised result of one calculation.

    ``to_payload`` produces the JSON shape that history entries persist and
    that the restore path reads back by exact key path.
    """

    salary: float
    freelance: float
    merchant: float
    total_income: float
    expense: float
    expense_breakdown: ExpenseBreakdown
    allowance: float
    allowance_breakdown: AllowanceBreakdown
    net_income: float
    tax: float
    tax_breakdown: TaxBreakdown
    effective_tax_rate: float
    net_salary: float
    withholding_tax: float
    installments: tuple[float, ...]
    timestamp: datetime

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
