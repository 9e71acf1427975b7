"""
StockLedger -- batch-level stock mutations.

Responsibility:
    Every change to qty_on_hand / qty_reserved goes through this service:
    allocation (reservation), release, sale consumption, inter-location
    transfer, receipt, and quality flags.  Planning is delegated to the pure
    FIFO functions in ``domain/stock.py``.

Architecture position:
    Kernel > Services.  May import from domain/, models/, selectors/, db/.

Concurrency:
    Each mutation is one read-lock-compute-write unit inside a SAVEPOINT.
    Batch rows are read ``FOR UPDATE`` (PostgreSQL) with populate_existing,
    and StockBatchModel.version is the mapper's version_id_col, so a
    concurrent writer surfaces as StaleDataError at flush.  The savepoint
    is rolled back and the unit retried up to ``max_lock_retries`` times;
    then OptimisticLockError is raised.  Business failures
    (InsufficientStockError, validation) are never retried.

Invariants enforced:
    - qty_reserved <= qty_on_hand and both >= 0 on every batch.
    - No partial allocation, transfer or consumption is ever visible.
    - transfer conserves total qty_on_hand of the product.

Failure modes:
    - InvalidQuantityError, InsufficientStockError, ReleaseExceedsReservedError.
    - LocationNotFoundError, ProductNotFoundError, StockBatchNotFoundError.
    - InvalidTransferRouteError when source and destination coincide.
    - OptimisticLockError after bounded retries.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from distribution_kernel.config.schema import StockSettings
from distribution_kernel.domain.clock import Clock
from distribution_kernel.domain.stock import (
    AllocationLine,
    QualityStatus,
    available_qty,
    plan_allocation,
    plan_release,
    validate_quantity,
)
from distribution_kernel.exceptions import (
    InvalidTransferRouteError,
    LocationNotFoundError,
    OptimisticLockError,
    ProductNotFoundError,
    StockBatchNotFoundError,
    ValidationError,
)
from distribution_kernel.logging_config import get_logger
from distribution_kernel.models.location import LocationModel
from distribution_kernel.models.product import ProductModel
from distribution_kernel.models.stock_batch import StockBatchModel
from distribution_kernel.selectors.stock_selector import to_snapshot
from distribution_kernel.services.base import BaseService

logger = get_logger("services.stock_ledger")

T = TypeVar("T")


@dataclass(frozen=True)
class AllocationResult:
    """``qty`` units taken from batch ``batch_id``."""

    batch_id: UUID
    batch_no: str
    qty: int


@dataclass(frozen=True)
class TransferLine:
    source_batch_id: UUID
    destination_batch_id: UUID
    batch_no: str
    qty: int


@dataclass(frozen=True)
class TransferResult:
    from_location_id: UUID
    to_location_id: UUID
    product_id: UUID
    qty: int
    lines: tuple[TransferLine, ...]


@dataclass(frozen=True)
class ReceiptItem:
    """
    One received lot.  ``expiry_date`` defaults to manufactured_date plus
    the product's shelf life.
    """

    batch_no: str
    qty: int
    unit_cost: Decimal = Decimal("0")
    manufactured_date: date | None = None
    expiry_date: date | None = None
    quality_status: QualityStatus = QualityStatus.OK


class StockLedger(BaseService[StockBatchModel]):
    """
    Stock batch ledger.

    Contract:
        Quantities are positive integers.  Results list batches in the
        FIFO order they were touched.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: StockSettings | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or StockSettings()

    # ------------------------------------------------------------------
    # Infrastructure
    # ------------------------------------------------------------------

    def _run_atomic(self, operation: str, entity_id: str, unit: Callable[[], T]) -> T:
        """Run ``unit`` in a SAVEPOINT, retrying on version conflicts."""
        attempts = self.settings.max_lock_retries
        for attempt in range(1, attempts + 1):
            try:
                with self.session.begin_nested():
                    result = unit()
                    self.session.flush()
                return result
            except StaleDataError:
                logger.warning(
                    "stock_lock_conflict",
                    extra={
                        "operation": operation,
                        "entity_id": entity_id,
                        "attempt": attempt,
                        "max_attempts": attempts,
                    },
                )
        raise OptimisticLockError("StockBatch", entity_id, attempts)

    def _lock_batches(self, location_id: UUID, product_id: UUID) -> list[StockBatchModel]:
        stmt = (
            select(StockBatchModel)
            .where(
                StockBatchModel.location_id == location_id,
                StockBatchModel.product_id == product_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(self.session.scalars(stmt).all())

    def _require_location(self, location_id: UUID) -> LocationModel:
        location = self.session.get(LocationModel, location_id)
        if location is None:
            raise LocationNotFoundError(str(location_id))
        return location

    def _require_product(self, product_id: UUID) -> ProductModel:
        product = self.session.get(ProductModel, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def _plan(
        self, batches: list[StockBatchModel], qty: int, location_id: UUID, product_id: UUID
    ) -> list[tuple[StockBatchModel, AllocationLine]]:
        by_id = {b.id: b for b in batches}
        lines = plan_allocation(
            (to_snapshot(b) for b in batches),
            qty,
            location_id=str(location_id),
            product_id=str(product_id),
        )
        return [(by_id[line.batch_id], line) for line in lines]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def available_qty(self, location_id: UUID, product_id: UUID) -> int:
        rows = self.session.scalars(
            select(StockBatchModel).where(
                StockBatchModel.location_id == location_id,
                StockBatchModel.product_id == product_id,
            )
        ).all()
        return available_qty(to_snapshot(row) for row in rows)

    # ------------------------------------------------------------------
    # Reservation
    # ------------------------------------------------------------------

    def _reserve(
        self, event: str, location_id: UUID, product_id: UUID, qty: int
    ) -> list[AllocationResult]:
        validate_quantity(qty)

        def unit() -> list[AllocationResult]:
            picks = self._plan(
                self._lock_batches(location_id, product_id), qty, location_id, product_id
            )
            for batch, line in picks:
                batch.qty_reserved += line.qty
            return [AllocationResult(b.id, b.batch_no, line.qty) for b, line in picks]

        results = self._run_atomic(event, f"{location_id}/{product_id}", unit)
        logger.info(
            event,
            extra={
                "location_id": str(location_id),
                "product_id": str(product_id),
                "qty": qty,
                "batch_count": len(results),
            },
        )
        return results

    def allocate(
        self, location_id: UUID, product_id: UUID, qty: int
    ) -> list[AllocationResult]:
        """
        FIFO allocation.  The picks are committed as reservations, so
        qty_available drops by ``qty`` and qty_on_hand is unchanged.

        Raises:
            InsufficientStockError: nothing is changed.
        """
        return self._reserve("stock_allocated", location_id, product_id, qty)

    def reserve(
        self, location_id: UUID, product_id: UUID, qty: int
    ) -> list[AllocationResult]:
        """Increase qty_reserved on the batches ``allocate`` would pick."""
        return self._reserve("stock_reserved", location_id, product_id, qty)

    def release(
        self, location_id: UUID, product_id: UUID, qty: int
    ) -> list[AllocationResult]:
        """
        Decrease qty_reserved, FIFO over reserved batches.

        Raises:
            ReleaseExceedsReservedError: less than ``qty`` is reserved.
        """
        validate_quantity(qty)

        def unit() -> list[AllocationResult]:
            batches = self._lock_batches(location_id, product_id)
            by_id = {b.id: b for b in batches}
            results = []
            for line in plan_release((to_snapshot(b) for b in batches), qty):
                batch = by_id[line.batch_id]
                batch.qty_reserved -= line.qty
                results.append(AllocationResult(batch.id, batch.batch_no, line.qty))
            return results

        results = self._run_atomic("stock_released", f"{location_id}/{product_id}", unit)
        logger.info(
            "stock_released",
            extra={"location_id": str(location_id), "product_id": str(product_id), "qty": qty},
        )
        return results

    # ------------------------------------------------------------------
    # Consumption and movement
    # ------------------------------------------------------------------

    def consume_for_sale(
        self, location_id: UUID, product_id: UUID, qty: int
    ) -> list[AllocationResult]:
        """Same selection as allocate, but decrements qty_on_hand directly."""
        validate_quantity(qty)

        def unit() -> list[AllocationResult]:
            picks = self._plan(
                self._lock_batches(location_id, product_id), qty, location_id, product_id
            )
            for batch, line in picks:
                batch.qty_on_hand -= line.qty
            return [AllocationResult(b.id, b.batch_no, line.qty) for b, line in picks]

        results = self._run_atomic("stock_consumed", f"{location_id}/{product_id}", unit)
        logger.info(
            "stock_consumed",
            extra={
                "location_id": str(location_id),
                "product_id": str(product_id),
                "qty": qty,
                "batch_count": len(results),
            },
        )
        return results

    def transfer(
        self,
        from_location_id: UUID,
        to_location_id: UUID,
        product_id: UUID,
        qty: int,
    ) -> TransferResult:
        """
        Move ``qty`` units FIFO from one location to another.

        Each source pick decrements that batch's qty_on_hand and lands in a
        destination batch with the same batch_no, expiry_date and quality
        status, which is created (carrying cost, dates and quality) when absent.

        Raises:
            InsufficientStockError: source is short; nothing moves.
        """
        validate_quantity(qty)
        if from_location_id == to_location_id:
            raise InvalidTransferRouteError(
                str(from_location_id), str(to_location_id), "source equals destination"
            )
        self._require_location(from_location_id)
        self._require_location(to_location_id)
        self._require_product(product_id)

        def unit() -> tuple[TransferLine, ...]:
            picks = self._plan(
                self._lock_batches(from_location_id, product_id),
                qty,
                from_location_id,
                product_id,
            )
            destination = {
                (b.batch_no, b.expiry_date, b.quality_status): b
                for b in self._lock_batches(to_location_id, product_id)
            }
            lines = []
            for source, line in picks:
                source.qty_on_hand -= line.qty
                key = (source.batch_no, source.expiry_date, source.quality_status)
                target = destination.get(key)
                if target is None:
                    target = StockBatchModel(
                        product_id=product_id,
                        location_id=to_location_id,
                        batch_no=source.batch_no,
                        unit_cost=source.unit_cost,
                        manufactured_date=source.manufactured_date,
                        expiry_date=source.expiry_date,
                        quality_status=source.quality_status,
                        qty_on_hand=0,
                        qty_reserved=0,
                        created_at=self.clock.now(),
                    )
                    self.session.add(target)
                    destination[key] = target
                target.qty_on_hand += line.qty
                self.session.flush()
                lines.append(TransferLine(source.id, target.id, source.batch_no, line.qty))
            return tuple(lines)

        lines = self._run_atomic(
            "stock_transferred", f"{from_location_id}->{to_location_id}/{product_id}", unit
        )
        logger.info(
            "stock_transferred",
            extra={
                "from_location_id": str(from_location_id),
                "to_location_id": str(to_location_id),
                "product_id": str(product_id),
                "qty": qty,
                "batch_count": len(lines),
            },
        )
        return TransferResult(from_location_id, to_location_id, product_id, qty, lines)

    # ------------------------------------------------------------------
    # Receipt and quality
    # ------------------------------------------------------------------

    def receive(
        self,
        location_id: UUID,
        product_id: UUID,
        items: Iterable[ReceiptItem],
    ) -> list[StockBatchModel]:
        """Insert one new batch per item, qty_reserved = 0."""
        items = list(items)
        if not items:
            raise ValidationError("at least one receipt item is required")
        location = self._require_location(location_id)
        if not location.is_active:
            raise ValidationError(f"location {location_id} is inactive")
        product = self._require_product(product_id)

        batches = []
        for item in items:
            validate_quantity(item.qty, "receipt qty")
            if not item.batch_no:
                raise ValidationError("batch_no is required")
            if item.unit_cost < 0:
                raise ValidationError(f"unit_cost must be >= 0, got {item.unit_cost}")
            expiry = item.expiry_date
            if expiry is None:
                if item.manufactured_date is None:
                    raise ValidationError(
                        f"batch {item.batch_no}: expiry_date or manufactured_date required"
                    )
                expiry = item.manufactured_date + timedelta(days=product.shelf_life_days)
            batch = StockBatchModel(
                product_id=product_id,
                location_id=location_id,
                batch_no=item.batch_no,
                unit_cost=item.unit_cost,
                manufactured_date=item.manufactured_date,
                expiry_date=expiry,
                quality_status=QualityStatus(item.quality_status).value,
                qty_on_hand=item.qty,
                qty_reserved=0,
                created_at=self.clock.now(),
            )
            self.session.add(batch)
            batches.append(batch)
        self.session.flush()

        logger.info(
            "stock_received",
            extra={
                "location_id": str(location_id),
                "product_id": str(product_id),
                "batch_count": len(batches),
                "qty": sum(item.qty for item in items),
            },
        )
        return batches

    def set_quality_status(
        self, batch_id: UUID, status: QualityStatus | str
    ) -> StockBatchModel:
        """Flag a batch OK, Quarantine or Damaged.  Only OK batches allocate."""
        status = QualityStatus(status)

        def unit() -> StockBatchModel:
            batch = self.session.scalars(
                select(StockBatchModel)
                .where(StockBatchModel.id == batch_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).first()
            if batch is None:
                raise StockBatchNotFoundError(str(batch_id))
            batch.quality_status = status.value
            return batch

        batch = self._run_atomic("batch_quality_changed", str(batch_id), unit)
        logger.info(
            "batch_quality_changed",
            extra={"batch_id": str(batch_id), "quality_status": status.value},
        )
        return batch
