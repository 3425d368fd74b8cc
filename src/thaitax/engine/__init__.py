"""Pure tax computation functions.

Every calculator takes its inputs plus an injected configuration section and
returns an immutable result model. None of them keep state or perform I/O.
"""

from .allowance import compute_allowance
from .expense import compute_expense
from .installments import compute_installments
from .progressive import bracket_rows, compute_tax
from .rates import (
    DEFAULT_WITHHOLDING_RATE,
    compute_effective_tax_rate,
    compute_net_income,
    compute_net_salary,
    compute_withholding_tax,
)
from .summary import Clock, compute_tax_summary

__all__ = [
    "Clock",
    "DEFAULT_WITHHOLDING_RATE",
    "bracket_rows",
    "compute_allowance",
    "compute_effective_tax_rate",
    "compute_expense",
    "compute_installments",
    "compute_net_income",
    "compute_net_salary",
    "compute_tax",
    "compute_tax_summary",
    "compute_withholding_tax",
]
