"""
SalesService -- record a sale against available stock.

A sale consumes stock FIFO (``StockLedger.consume_for_sale``), writes a
sale row, and snapshots the HQ / Branch profit split when the location
has a Branch-level pricing config.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from distribution_kernel.domain.clock import Clock
from distribution_kernel.domain.currency import normalize_currency
from distribution_kernel.domain.pricing import ProfitSplit, split_margin_profit
from distribution_kernel.domain.stock import validate_quantity
from distribution_kernel.exceptions import ValidationError
from distribution_kernel.logging_config import get_logger
from distribution_kernel.models.pricing import PricingConfigModel
from distribution_kernel.models.sale import SaleModel
from distribution_kernel.services.base import BaseService
from distribution_kernel.services.pricing_service import LEVEL_BRANCH
from distribution_kernel.services.stock_ledger import AllocationResult, StockLedger

logger = get_logger("services.sales")


@dataclass(frozen=True)
class SaleResult:
    sale_id: UUID
    total_amount: Decimal
    consumed: tuple[AllocationResult, ...]
    profit_split: ProfitSplit | None


class SalesService(BaseService[SaleModel]):
    """Sale recording."""

    def __init__(
        self,
        session: Session,
        ledger: StockLedger | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self.ledger = ledger or StockLedger(session, self.clock)

    def record_sale(
        self,
        location_id: UUID,
        product_id: UUID,
        qty: int,
        unit_price: Decimal,
        currency: str,
        actor_id: UUID,
        sale_date: date | None = None,
        channel: str | None = None,
    ) -> SaleResult:
        """
        Raises:
            InvalidQuantityError, ValidationError: bad input.
            InsufficientStockError: not enough OK stock; nothing recorded.
        """
        validate_quantity(qty)
        if unit_price < 0:
            raise ValidationError(f"unit_price must be >= 0, got {unit_price}")
        currency = normalize_currency(currency)

        consumed = self.ledger.consume_for_sale(location_id, product_id, qty)

        config = self.session.scalars(
            select(PricingConfigModel).where(
                PricingConfigModel.product_id == product_id,
                PricingConfigModel.to_location_id == location_id,
                PricingConfigModel.level == LEVEL_BRANCH,
            )
        ).first()
        split = None
        if config is not None:
            split = split_margin_profit(
                qty,
                unit_price,
                config.local_cost,
                config.hq_margin_percent,
                config.branch_margin_percent,
            )

        sale = SaleModel(
            location_id=location_id,
            product_id=product_id,
            sale_date=sale_date or self.clock.today(),
            qty=qty,
            unit_price=unit_price,
            total_amount=unit_price * qty,
            currency=currency,
            channel=channel,
            unit_cost=config.local_cost if config is not None else None,
            hq_profit=split.hq_profit if split is not None else None,
            branch_profit=split.branch_profit if split is not None else None,
            created_by_id=actor_id,
            created_at=self.clock.now(),
        )
        self.session.add(sale)
        self.session.flush()

        logger.info(
            "sale_recorded",
            extra={
                "sale_id": str(sale.id),
                "location_id": str(location_id),
                "product_id": str(product_id),
                "qty": qty,
                "total_amount": sale.total_amount,
                "currency": currency,
            },
        )
        return SaleResult(
            sale_id=sale.id,
            total_amount=sale.total_amount,
            consumed=tuple(consumed),
            profit_split=split,
        )
