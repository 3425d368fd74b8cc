"""Utilities for validating year configuration data and surfacing issues."""

from __future__ import annotations

import argparse
from datetime import date
from typing import Sequence

from .year_config import (
    AllowanceConfig,
    ExpenseConfig,
    FilingConfig,
    FilingDeadline,
    InstallmentConfig,
    TaxBracket,
    YearConfiguration,
    available_years,
    load_year_configuration,
)


def _format_scope(scope: str, message: str) -> str:
    return f"{scope}: {message}"


def _validate_rate(scope: str, label: str, value: float) -> list[str]:
    if value < 0 or value > 1:
        return [_format_scope(scope, f"{label} {value} must be between 0 and 1")]
    return []


def _validate_expenses(expenses: ExpenseConfig) -> list[str]:
    errors: list[str] = []

    errors.extend(_validate_rate("expenses", "salary rate", expenses.salary_rate))
    errors.extend(_validate_rate("expenses", "merchant rate", expenses.merchant_rate))
    if expenses.salary_cap < 0:
        errors.append(_format_scope("expenses", "salary cap must be non-negative"))

    return errors


def _validate_allowances(allowances: AllowanceConfig) -> list[str]:
    errors: list[str] = []

    for label in ("personal", "spouse", "child_old", "child_new", "parent"):
        if getattr(allowances, label) < 0:
            errors.append(
                _format_scope("allowances", f"'{label}' amount must be non-negative")
            )

    for label, cap in allowances.caps.model_dump().items():
        if cap < 0:
            errors.append(
                _format_scope("allowances.caps", f"'{label}' cap must be non-negative")
            )

    combined = allowances.combined_retirement_funds_cap
    if combined is not None:
        largest_fund_cap = max(
            allowances.caps.pvd, allowances.caps.rmf, allowances.caps.ssf
        )
        if combined < largest_fund_cap:
            errors.append(
                _format_scope(
                    "allowances",
                    (
                        "combined retirement funds cap "
                        f"{combined} is below the largest single fund cap {largest_fund_cap}"
                    ),
                )
            )

    for label, rate in allowances.income_rate_limits.model_dump().items():
        errors.extend(
            _validate_rate("allowances.income_rate_limits", f"'{label}' limit", rate)
        )

    if allowances.monthly_social_security * 12 > allowances.caps.social_security:
        errors.append(
            _format_scope(
                "allowances",
                "twelve monthly social security contributions exceed the annual cap",
            )
        )

    return errors


def _validate_installments(installments: InstallmentConfig) -> list[str]:
    errors: list[str] = []

    if installments.count < 1:
        errors.append(_format_scope("installments", "count must be a positive integer"))
    if installments.min_tax < 0:
        errors.append(_format_scope("installments", "minimum tax must be non-negative"))

    return errors


def _validate_deadline(scope: str, deadline: FilingDeadline, year: int) -> list[str]:
    try:
        date(year + 1, deadline.month, deadline.day)
    except ValueError:
        return [
            _format_scope(
                scope, f"month {deadline.month} / day {deadline.day} is not a valid date"
            )
        ]
    return []


def _validate_filing(filing: FilingConfig, year: int) -> list[str]:
    errors: list[str] = []

    errors.extend(_validate_deadline("filing.paper_deadline", filing.paper_deadline, year))
    errors.extend(
        _validate_deadline("filing.online_deadline", filing.online_deadline, year)
    )
    if filing.exemption_threshold < 0 or filing.min_income < 0:
        errors.append(_format_scope("filing", "thresholds must be non-negative"))

    return errors


def _validate_brackets(brackets: Sequence[TaxBracket]) -> list[str]:
    errors: list[str] = []

    if not brackets:
        return [_format_scope("tax_brackets", "no brackets defined")]

    if brackets[0].min_net_income != 0:
        errors.append(_format_scope("tax_brackets", "first bracket must start at zero"))

    unbounded = [index for index, bracket in enumerate(brackets) if bracket.is_unbounded]
    if unbounded != [len(brackets) - 1]:
        errors.append(
            _format_scope(
                "tax_brackets", "exactly one unbounded bracket is required and it must be last"
            )
        )

    for index, (previous, current) in enumerate(zip(brackets, brackets[1:]), start=1):
        if previous.max_net_income != current.min_net_income:
            errors.append(
                _format_scope(
                    f"tax_brackets[{index}]",
                    "lower bound does not match the previous upper bound",
                )
            )
        if current.tax_rate < previous.tax_rate:
            errors.append(
                _format_scope(f"tax_brackets[{index}]", "rates should not decrease")
            )

    for index, bracket in enumerate(brackets):
        errors.extend(
            _validate_rate(f"tax_brackets[{index}]", "rate", bracket.tax_rate)
        )

    return errors


def validate_year_configuration(config: YearConfiguration) -> list[str]:
    """Return a list of validation issues for the provided configuration."""

    errors: list[str] = []

    errors.extend(_validate_expenses(config.expenses))
    errors.extend(_validate_allowances(config.allowances))
    errors.extend(_validate_installments(config.installments))
    errors.extend(_validate_rate("withholding", "rate", config.withholding.rate))
    errors.extend(_validate_filing(config.filing, config.year))
    errors.extend(_validate_brackets(config.brackets))

    if config.history.max_items <= 0:
        errors.append(_format_scope("history", "max items must be a positive integer"))

    return errors


def validate_all_years(years: Sequence[int] | None = None) -> dict[int, list[str]]:
    """Validate all configured years and return issues keyed by year."""

    targets = years or available_years()
    results: dict[int, list[str]] = {}

    for year in targets:
        config = load_year_configuration(year)
        results[int(year)] = validate_year_configuration(config)

    return results


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate configured tax years and report issues helpful to contributors."
    )
    parser.add_argument(
        "years",
        nargs="*",
        type=int,
        help="Specific years to validate (defaults to all configured years)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    years = args.years or available_years()

    if not years:
        parser.print_help()
        return 1

    exit_code = 0

    for year in years:
        try:
            config = load_year_configuration(year)
        except (FileNotFoundError, ValueError) as error:
            print(f"[{year}] failed to load configuration: {error}")
            exit_code = 1
            continue

        issues = validate_year_configuration(config)
        if issues:
            exit_code = 1
            print(f"[{year}] {len(issues)} issue(s) detected:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print(f"[{year}] OK")

    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
