"""
Module: distribution_kernel.models.exchange_rate
Responsibility: ORM persistence for time-versioned exchange rates.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(from_currency, to_currency, effective_date).
    - rate > 0 (check constraint; also validated by ExchangeRateService).
    - The applicable rate on a date is the row with the latest
      effective_date <= that date (ExchangeRateService.resolve).

Audit relevance:
    Pricing configs copy the rate value at creation, so later rows never
    alter a previously computed price.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from distribution_kernel.db.base import TrackedBase


class ExchangeRateModel(TrackedBase):
    """
    One directional conversion factor effective from a date.

    from_amount * rate = to_amount.
    """

    __tablename__ = "exchange_rates"

    __table_args__ = (
        UniqueConstraint(
            "from_currency",
            "to_currency",
            "effective_date",
            name="uq_exchange_rates_pair_date",
        ),
        CheckConstraint("rate > 0", name="ck_exchange_rates_positive"),
        Index("idx_rate_lookup", "from_currency", "to_currency", "effective_date"),
    )

    from_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    to_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    rate: Mapped[Decimal] = mapped_column(Numeric(38, 12), nullable=False)

    effective_date: Mapped[date] = mapped_column(Date, nullable=False)

    notes: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ExchangeRate {self.from_currency}/{self.to_currency} = {self.rate} "
            f"from {self.effective_date}>"
        )
