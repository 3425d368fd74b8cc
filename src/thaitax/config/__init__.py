"""Tax year configuration schema, loader and validator."""

from .year_config import (
    ConfigurationError,
    TaxBracket,
    YearConfiguration,
    available_years,
    default_year,
    load_year_configuration,
)

__all__ = [
    "ConfigurationError",
    "TaxBracket",
    "YearConfiguration",
    "available_years",
    "default_year",
    "load_year_configuration",
]
