"""
Exchange-rate selection -- pure half of the FX resolver.

The applicable rate for a pair on a date is the row with the latest
effective_date on or before that date.  Same-currency lookups are the
identity and never touch the rows.  A cross-currency miss raises; it never
defaults to 1.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from distribution_kernel.exceptions import ExchangeRateNotFoundError

IDENTITY_RATE = Decimal("1")


@dataclass(frozen=True)
class RateRow:
    """One stored rate: from_amount * rate = to_amount."""

    from_currency: str
    to_currency: str
    effective_date: date
    rate: Decimal


def select_applicable_rate(
    rows: Iterable[RateRow],
    from_currency: str,
    to_currency: str,
    as_of: date,
) -> RateRow | None:
    """Latest row for the pair with effective_date <= as_of, or None."""
    best: RateRow | None = None
    for row in rows:
        if row.from_currency != from_currency or row.to_currency != to_currency:
            continue
        if row.effective_date > as_of:
            continue
        if best is None or row.effective_date > best.effective_date:
            best = row
    return best


def resolve_rate(
    rows: Iterable[RateRow],
    from_currency: str,
    to_currency: str,
    as_of: date,
) -> Decimal:
    """
    Raises:
        ExchangeRateNotFoundError: no row applies and the currencies differ.
    """
    if from_currency == to_currency:
        return IDENTITY_RATE
    row = select_applicable_rate(rows, from_currency, to_currency, as_of)
    if row is None:
        raise ExchangeRateNotFoundError(from_currency, to_currency, as_of.isoformat())
    return row.rate
