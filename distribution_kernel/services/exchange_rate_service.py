"""
ExchangeRateService -- time-versioned FX rates.

Responsibility:
    Records rates and resolves the applicable rate for a pair on a date.
    The selection rule itself lives in ``domain/fx.py``.

Invariants enforced:
    - rate > 0, both codes registered ISO 4217, from != to.
    - At most one row per (from, to, effective_date).
    - Cross-currency misses raise ExchangeRateNotFoundError; never 1.

Failure modes:
    - InvalidExchangeRateError, InvalidCurrencyError, DuplicateExchangeRateError
      on record_rate.
    - ExchangeRateNotFoundError on resolve.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from distribution_kernel.domain.currency import normalize_currency
from distribution_kernel.domain.fx import (
    IDENTITY_RATE,
    RateRow,
    resolve_rate,
    select_applicable_rate,
)
from distribution_kernel.exceptions import (
    DuplicateExchangeRateError,
    InvalidExchangeRateError,
)
from distribution_kernel.logging_config import get_logger
from distribution_kernel.models.exchange_rate import ExchangeRateModel
from distribution_kernel.services.base import BaseService

logger = get_logger("services.exchange_rate")


def _to_row(model: ExchangeRateModel) -> RateRow:
    return RateRow(
        from_currency=model.from_currency,
        to_currency=model.to_currency,
        effective_date=model.effective_date,
        rate=model.rate,
    )


class ExchangeRateService(BaseService[ExchangeRateModel]):
    """Exchange rate recording and resolution."""

    def record_rate(
        self,
        from_currency: str,
        to_currency: str,
        rate: Decimal,
        effective_date: date,
        actor_id: UUID,
        notes: str | None = None,
    ) -> RateRow:
        from_currency = normalize_currency(from_currency)
        to_currency = normalize_currency(to_currency)
        rate = Decimal(rate)
        if from_currency == to_currency:
            raise InvalidExchangeRateError(rate, "from and to currency must differ")
        if rate <= 0:
            raise InvalidExchangeRateError(rate, "rate must be positive")

        existing = self.session.scalars(
            select(ExchangeRateModel).where(
                ExchangeRateModel.from_currency == from_currency,
                ExchangeRateModel.to_currency == to_currency,
                ExchangeRateModel.effective_date == effective_date,
            )
        ).first()
        if existing is not None:
            raise DuplicateExchangeRateError(from_currency, to_currency, effective_date)

        model = ExchangeRateModel(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=rate,
            effective_date=effective_date,
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(model)
        self.session.flush()
        logger.info(
            "exchange_rate_recorded",
            extra={
                "from_currency": from_currency,
                "to_currency": to_currency,
                "rate": rate,
                "effective_date": effective_date,
            },
        )
        return _to_row(model)

    def resolve(
        self,
        from_currency: str,
        to_currency: str,
        as_of: date | None = None,
    ) -> Decimal:
        """
        Rate applicable on ``as_of`` (today by default).

        Raises:
            InvalidCurrencyError: either code is not a registered currency.
            ExchangeRateNotFoundError: currencies differ and no row is
                effective on or before ``as_of``.
        """
        from_currency = normalize_currency(from_currency)
        to_currency = normalize_currency(to_currency)
        as_of = as_of or self.clock.today()
        if from_currency == to_currency:
            return IDENTITY_RATE
        latest = self.session.scalars(
            select(ExchangeRateModel)
            .where(
                ExchangeRateModel.from_currency == from_currency,
                ExchangeRateModel.to_currency == to_currency,
                ExchangeRateModel.effective_date <= as_of,
            )
            .order_by(ExchangeRateModel.effective_date.desc())
            .limit(1)
        ).all()
        return resolve_rate((_to_row(m) for m in latest), from_currency, to_currency, as_of)

    def latest_rates(self, as_of: date | None = None) -> list[RateRow]:
        """The applicable rate of every known pair, ordered by pair."""
        as_of = as_of or self.clock.today()
        rows = [
            _to_row(m)
            for m in self.session.scalars(
                select(ExchangeRateModel).where(ExchangeRateModel.effective_date <= as_of)
            ).all()
        ]
        pairs = sorted({(r.from_currency, r.to_currency) for r in rows})
        return [
            select_applicable_rate(rows, from_currency, to_currency, as_of)
            for from_currency, to_currency in pairs
        ]
