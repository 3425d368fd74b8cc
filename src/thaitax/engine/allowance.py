"""Personal, family, insurance and housing allowance calculator."""

from __future__ import annotations

from typing import Any

from thaitax.config.schema import AllowanceConfig
from thaitax.models import (
    AllowanceBreakdown,
    AllowanceInput,
    HousingAllowances,
    InsuranceAllowances,
    PersonalAllowances,
)


def _personal_allowances(
    allowances: AllowanceInput, config: AllowanceConfig
) -> PersonalAllowances:
    return PersonalAllowances(
        personal_allowance=config.personal,
        spouse=config.spouse if allowances.spouse else 0.0,
        child_old=allowances.child_count * config.child_old,
        child_new=allowances.child_born_2018_count * config.child_new,
        parent=allowances.parent_count * config.parent,
    )


def _insurance_allowances(
    allowances: AllowanceInput, config: AllowanceConfig
) -> InsuranceAllowances:
    caps = config.caps
    # Each fund is capped on its own; combined_retirement_funds_cap is not applied.
    return InsuranceAllowances(
        life_insurance=min(allowances.life_insurance, caps.life_insurance),
        health_insurance=min(allowances.health_insurance, caps.health_insurance),
        social_security=min(allowances.social_security, caps.social_security),
        pvd=min(allowances.pvd, caps.pvd),
        rmf=min(allowances.rmf, caps.rmf),
        ssf=min(allowances.ssf, caps.ssf),
    )


def _housing_allowances(
    allowances: AllowanceInput, config: AllowanceConfig
) -> HousingAllowances:
    return HousingAllowances(
        home_loan_interest=min(
            allowances.home_loan_interest, config.caps.home_loan_interest
        )
    )


def _group_total(group: PersonalAllowances | InsuranceAllowances | HousingAllowances) -> float:
    total = 0.0
    for value in group.model_dump().values():
        total += value
    return total


def compute_allowance(allowances: Any, config: AllowanceConfig) -> AllowanceBreakdown:
    """Return the allowance breakdown for ``allowances``.

    ``allowances`` may be an :class:`AllowanceInput`, a mapping using camelCase
    or snake_case keys, or ``None``. Missing amounts count as zero and the
    personal allowance is always granted.
    """

    declared = AllowanceInput.from_raw(allowances)

    personal = _personal_allowances(declared, config)
    insurance = _insurance_allowances(declared, config)
    housing = _housing_allowances(declared, config)

    personal_total = _group_total(personal)
    insurance_total = _group_total(insurance)
    housing_total = _group_total(housing)

    return AllowanceBreakdown(
        personal=personal,
        personal_total=personal_total,
        insurance=insurance,
        insurance_total=insurance_total,
        housing=housing,
        housing_total=housing_total,
        total=personal_total + insurance_total + housing_total,
    )


__all__ = ["compute_allowance"]
