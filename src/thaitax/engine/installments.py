"""Split the annual tax into installment payments."""

from __future__ import annotations

import math
from typing import Any

from thaitax.config.schema import InstallmentConfig
from thaitax.models import coerce_amount


def compute_installments(
    tax: Any, config: InstallmentConfig, installment_count: int | None = None
) -> tuple[float, ...]:
    """Return the installment amounts for ``tax``.

    Below ``config.min_tax`` the tax is paid in one amount. Otherwise every
    installment but the last is ``floor(tax / count)`` and the last absorbs the
    remainder, so the amounts always sum to ``tax``.
    """

    amount = coerce_amount(tax)
    count = config.count if installment_count is None else int(installment_count)

    if amount < config.min_tax or count <= 1:
        return (amount,)

    per_installment = float(math.floor(amount / count))
    remainder = amount - per_installment * (count - 1)

    return (per_installment,) * (count - 1) + (remainder,)


__all__ = ["compute_installments"]
