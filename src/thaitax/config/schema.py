"""Pydantic models describing the tax year configuration schema."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class ConfigurationError(ValueError):
    """Raised when configuration values violate schema expectations."""


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class TaxBracket(ImmutableModel):
    """Represents a single progressive tax bracket.

    Brackets serialise with camelCase keys (``minNetIncome``, ``maxNetIncome``,
    ``taxRate``) because the summary payload embeds them verbatim. An
    unbounded top bracket stores ``None`` as its upper edge.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", populate_by_name=True, alias_generator=to_camel
    )

    min_net_income: float
    max_net_income: float | None = None
    tax_rate: float

    @model_validator(mode="after")
    def _validate_values(self) -> TaxBracket:
        if self.min_net_income < 0:
            raise ConfigurationError("Bracket lower bounds must be non-negative")
        if self.tax_rate < 0 or self.tax_rate > 1:
            raise ConfigurationError("Tax rates must be between 0 and 1")
        if self.max_net_income is not None and self.max_net_income <= self.min_net_income:
            raise ConfigurationError("Bracket upper bounds must exceed their lower bounds")
        return self

    @property
    def is_unbounded(self) -> bool:
        return self.max_net_income is None

    @property
    def width(self) -> float:
        """Return the bracket width, infinite for the open top bracket."""

        if self.max_net_income is None:
            return float("inf")
        return self.max_net_income - self.min_net_income


class ExpenseConfig(ImmutableModel):
    """Standard expense deduction rates for each income category."""

    salary_rate: float
    salary_cap: float
    merchant_rate: float

    @model_validator(mode="after")
    def _validate_rates(self) -> ExpenseConfig:
        for label, rate in (
            ("salary_rate", self.salary_rate),
            ("merchant_rate", self.merchant_rate),
        ):
            if rate < 0 or rate > 1:
                raise ConfigurationError(f"Expense '{label}' must be between 0 and 1")
        if self.salary_cap < 0:
            raise ConfigurationError("Expense 'salary_cap' must be non-negative")
        return self


class AllowanceCaps(ImmutableModel):
    """Independent caps applied to each insurance, fund and housing item."""

    life_insurance: float
    health_insurance: float
    social_security: float
    pvd: float
    rmf: float
    ssf: float
    home_loan_interest: float

    @model_validator(mode="after")
    def _validate_caps(self) -> AllowanceCaps:
        for name, value in self.model_dump().items():
            if value < 0:
                raise ConfigurationError(f"Allowance cap '{name}' must be non-negative")
        return self


class IncomeRateLimits(ImmutableModel):
    """Share-of-income limits published for the retirement funds."""

    pvd: float = 0.15
    rmf: float = 0.30
    ssf: float = 0.30


class AllowanceConfig(ImmutableModel):
    """Personal, family, insurance and housing allowance settings."""

    personal: float
    spouse: float
    child_old: float
    child_new: float
    parent: float
    max_child_count: int = 10
    max_parent_count: int = 4
    monthly_social_security: float = 750.0
    caps: AllowanceCaps
    combined_retirement_funds_cap: float | None = None
    income_rate_limits: IncomeRateLimits = Field(default_factory=IncomeRateLimits)

    @model_validator(mode="after")
    def _validate_amounts(self) -> AllowanceConfig:
        for label in ("personal", "spouse", "child_old", "child_new", "parent"):
            if getattr(self, label) < 0:
                raise ConfigurationError(f"Allowance '{label}' must be non-negative")
        if self.max_child_count < 0 or self.max_parent_count < 0:
            raise ConfigurationError("Maximum dependant counts must be non-negative")
        if (
            self.combined_retirement_funds_cap is not None
            and self.combined_retirement_funds_cap < 0
        ):
            raise ConfigurationError(
                "'combined_retirement_funds_cap' must be non-negative when provided"
            )
        return self


class InstallmentConfig(ImmutableModel):
    """Rules for splitting the annual tax into installments."""

    count: int = 3
    min_tax: float = 3_000.0

    @model_validator(mode="after")
    def _validate_installments(self) -> InstallmentConfig:
        if self.count < 1:
            raise ConfigurationError("Installment 'count' must be a positive integer")
        if self.min_tax < 0:
            raise ConfigurationError("Installment 'min_tax' must be non-negative")
        return self


class WithholdingConfig(ImmutableModel):
    """Advisory withholding estimate applied to salary income."""

    rate: float = 0.05

    @model_validator(mode="after")
    def _validate_rate(self) -> WithholdingConfig:
        if self.rate < 0 or self.rate > 1:
            raise ConfigurationError("Withholding 'rate' must be between 0 and 1")
        return self


class FilingDeadline(ImmutableModel):
    """Month/day pair describing a filing deadline in the following year."""

    month: int
    day: int


class FilingConfig(ImmutableModel):
    """Filing thresholds and deadlines surfaced to users."""

    exemption_threshold: float = 150_000.0
    min_income: float = 60_000.0
    paper_deadline: FilingDeadline = Field(
        default_factory=lambda: FilingDeadline(month=3, day=31)
    )
    online_deadline: FilingDeadline = Field(
        default_factory=lambda: FilingDeadline(month=4, day=8)
    )


class HistoryConfig(ImmutableModel):
    """Limits applied to locally stored calculation history."""

    max_items: int = 50

    @model_validator(mode="after")
    def _validate_capacity(self) -> HistoryConfig:
        if self.max_items <= 0:
            raise ConfigurationError("History 'max_items' must be a positive integer")
        return self


class YearConfiguration(ImmutableModel):
    """Structured representation of a tax year configuration."""

    year: int
    meta: Mapping[str, Any] = Field(default_factory=dict)
    expenses: ExpenseConfig
    allowances: AllowanceConfig
    installments: InstallmentConfig = Field(default_factory=InstallmentConfig)
    withholding: WithholdingConfig = Field(default_factory=WithholdingConfig)
    filing: FilingConfig = Field(default_factory=FilingConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    brackets: Sequence[TaxBracket] = Field(alias="tax_brackets")

    @model_validator(mode="before")
    @classmethod
    def _prepare_sections(cls, data: Any) -> Mapping[str, Any]:
        if not isinstance(data, Mapping):
            raise ConfigurationError("Configuration file must define a mapping at the top level")

        prepared = dict(data)
        meta = prepared.get("meta")
        if meta is None:
            prepared["meta"] = {}
        elif not isinstance(meta, Mapping):
            raise ConfigurationError("'meta' section must be a mapping if provided")

        for section in ("expenses", "allowances"):
            if not isinstance(prepared.get(section), Mapping):
                raise ConfigurationError(f"Configuration requires an '{section}' section")

        return prepared

    @field_validator("brackets", mode="after")
    @classmethod
    def _freeze_brackets(cls, value: Sequence[TaxBracket]) -> Sequence[TaxBracket]:
        return tuple(value)

    @model_validator(mode="after")
    def _validate_year(self) -> YearConfiguration:
        self._validate_bracket_sequence(self.brackets)
        return self

    @staticmethod
    def _validate_bracket_sequence(brackets: Sequence[TaxBracket]) -> None:
        if not brackets:
            raise ConfigurationError("At least one tax bracket must be defined")
        if brackets[0].min_net_income != 0:
            raise ConfigurationError("The first tax bracket must start at zero")
        for previous, current in zip(brackets, brackets[1:]):
            if previous.max_net_income is None:
                raise ConfigurationError("Only the final tax bracket may be unbounded")
            if current.min_net_income != previous.max_net_income:
                raise ConfigurationError(
                    "Tax brackets must be contiguous: "
                    f"{previous.max_net_income} does not meet {current.min_net_income}"
                )
        if brackets[-1].max_net_income is not None:
            raise ConfigurationError("Final tax bracket must have an open upper bound")


class TaxYearManifestEntry(ImmutableModel):
    """Entry describing a supported tax year in the manifest."""

    year: int
    filename: str | None = None
    status: str = "active"
    notes_url: str | None = None

    @computed_field
    @property
    def resolved_filename(self) -> str:
        return self.filename or f"{self.year}.yaml"


class TaxYearManifest(ImmutableModel):
    """Manifest describing the available tax year configuration files."""

    years: Sequence[TaxYearManifestEntry]

    @model_validator(mode="after")
    def _validate_years(self) -> TaxYearManifest:
        seen: set[int] = set()
        for entry in self.years:
            if entry.year in seen:
                raise ConfigurationError(
                    f"Duplicate year {entry.year} declared in the configuration manifest"
                )
            seen.add(entry.year)
        return self

    def get_entry(self, year: int) -> TaxYearManifestEntry:
        for entry in self.years:
            if entry.year == year:
                return entry
        raise KeyError(year)

    @computed_field
    @property
    def supported_years(self) -> tuple[int, ...]:
        return tuple(sorted(entry.year for entry in self.years))


__all__ = [
    "AllowanceCaps",
    "AllowanceConfig",
    "ConfigurationError",
    "ExpenseConfig",
    "FilingConfig",
    "FilingDeadline",
    "HistoryConfig",
    "ImmutableModel",
    "IncomeRateLimits",
    "InstallmentConfig",
    "TaxBracket",
    "TaxYearManifest",
    "TaxYearManifestEntry",
    "ValidationError",
    "WithholdingConfig",
    "YearConfiguration",
]
