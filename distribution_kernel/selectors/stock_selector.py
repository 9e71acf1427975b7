"""
Stock queries.

Read-only inventory views for screens and reports: batches of a product in
FIFO order, per-product totals at a location, and batches nearing expiry.
The ledger's own reads go through StockLedger, which locks rows.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from distribution_kernel.domain.stock import BatchSnapshot, QualityStatus, fifo_key
from distribution_kernel.models.stock_batch import StockBatchModel
from distribution_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class StockBatchDTO:
    """Data transfer object for a stock batch."""

    id: UUID
    product_id: UUID
    location_id: UUID
    batch_no: str
    unit_cost: Decimal
    manufactured_date: date | None
    expiry_date: date
    quality_status: QualityStatus
    qty_on_hand: int
    qty_reserved: int

    @property
    def qty_available(self) -> int:
        return self.qty_on_hand - self.qty_reserved


@dataclass(frozen=True)
class StockSummaryDTO:
    """Totals for one product at one location."""

    location_id: UUID
    product_id: UUID
    qty_on_hand: int
    qty_reserved: int
    qty_available: int
    batch_count: int
    next_expiry: date | None


def to_snapshot(model: StockBatchModel) -> BatchSnapshot:
    return BatchSnapshot(
        id=model.id,
        batch_no=model.batch_no,
        expiry_date=model.expiry_date,
        created_at=model.created_at,
        qty_on_hand=model.qty_on_hand,
        qty_reserved=model.qty_reserved,
        quality_status=QualityStatus(model.quality_status),
    )


class StockSelector(BaseSelector[StockBatchModel]):
    """Selector for stock batch queries."""

    def _to_dto(self, model: StockBatchModel) -> StockBatchDTO:
        return StockBatchDTO(
            id=model.id,
            product_id=model.product_id,
            location_id=model.location_id,
            batch_no=model.batch_no,
            unit_cost=model.unit_cost,
            manufactured_date=model.manufactured_date,
            expiry_date=model.expiry_date,
            quality_status=QualityStatus(model.quality_status),
            qty_on_hand=model.qty_on_hand,
            qty_reserved=model.qty_reserved,
        )

    def _fifo_sorted(self, rows: Iterable[StockBatchModel]) -> list[StockBatchModel]:
        return sorted(rows, key=lambda row: fifo_key(to_snapshot(row)))

    def batches(
        self,
        location_id: UUID,
        product_id: UUID,
        include_retired: bool = False,
    ) -> list[StockBatchDTO]:
        """All batches of a product at a location in FIFO order."""
        stmt = select(StockBatchModel).where(
            StockBatchModel.location_id == location_id,
            StockBatchModel.product_id == product_id,
        )
        if not include_retired:
            stmt = stmt.where(StockBatchModel.qty_on_hand > 0)
        rows = self.session.scalars(stmt).all()
        return [self._to_dto(row) for row in self._fifo_sorted(rows)]

    def available_qty(self, location_id: UUID, product_id: UUID) -> int:
        """Sum of qty_available over OK batches."""
        return sum(
            b.qty_available
            for b in self.batches(location_id, product_id)
            if b.quality_status == QualityStatus.OK
        )

    def total_on_hand(self, product_id: UUID) -> int:
        """qty_on_hand of a product summed over every location."""
        rows = self.session.scalars(
            select(StockBatchModel).where(StockBatchModel.product_id == product_id)
        ).all()
        return sum(row.qty_on_hand for row in rows)

    def summary(self, location_id: UUID) -> list[StockSummaryDTO]:
        """Per-product totals at a location, ordered by product id."""
        rows = self.session.scalars(
            select(StockBatchModel).where(
                StockBatchModel.location_id == location_id,
                StockBatchModel.qty_on_hand > 0,
            )
        ).all()

        grouped: dict[UUID, list[StockBatchModel]] = {}
        for row in rows:
            grouped.setdefault(row.product_id, []).append(row)

        result = []
        for product_id in sorted(grouped, key=str):
            group = grouped[product_id]
            ok_rows = [r for r in group if r.quality_status == QualityStatus.OK.value]
            result.append(
                StockSummaryDTO(
                    location_id=location_id,
                    product_id=product_id,
                    qty_on_hand=sum(r.qty_on_hand for r in group),
                    qty_reserved=sum(r.qty_reserved for r in group),
                    qty_available=sum(r.qty_available for r in ok_rows),
                    batch_count=len(group),
                    next_expiry=min(
                        (r.expiry_date for r in ok_rows), default=None
                    ),
                )
            )
        return result

    def expiring(
        self,
        location_ids: Iterable[UUID],
        as_of: date,
        warning_days: int,
    ) -> list[StockBatchDTO]:
        """
        Non-empty batches expiring on or before ``as_of + warning_days``
        (already-expired ones included), soonest first.
        """
        location_ids = list(location_ids)
        if not location_ids:
            return []
        horizon = as_of + timedelta(days=warning_days)
        rows = self.session.scalars(
            select(StockBatchModel).where(
                StockBatchModel.location_id.in_(location_ids),
                StockBatchModel.qty_on_hand > 0,
                StockBatchModel.expiry_date <= horizon,
            )
        ).all()
        return [self._to_dto(row) for row in self._fifo_sorted(rows)]
