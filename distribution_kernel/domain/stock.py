"""
Stock allocation planning (``distribution_kernel.domain.stock``).

Responsibility
--------------
Pure FIFO planning over batch snapshots.  ``StockLedger`` loads and locks
the rows, asks this module which batches to touch and by how much, then
writes the result.  Planning either covers the full quantity or raises;
there is no partial plan.

Ordering
--------
``expiry_date`` ascending, then ``created_at``, then id.  Only batches with
quality status OK and positive availability are eligible.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from uuid import UUID

from distribution_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    ReleaseExceedsReservedError,
)


class QualityStatus(str, Enum):
    OK = "OK"
    QUARANTINE = "Quarantine"
    DAMAGED = "Damaged"


@dataclass(frozen=True)
class BatchSnapshot:
    """The fields of a stock batch that planning depends on."""

    id: UUID
    batch_no: str
    expiry_date: date
    created_at: datetime
    qty_on_hand: int
    qty_reserved: int
    quality_status: QualityStatus = QualityStatus.OK

    @property
    def qty_available(self) -> int:
        return self.qty_on_hand - self.qty_reserved

    @property
    def is_eligible(self) -> bool:
        return self.quality_status == QualityStatus.OK and self.qty_available > 0


@dataclass(frozen=True)
class AllocationLine:
    """Take ``qty`` units from batch ``batch_id``."""

    batch_id: UUID
    qty: int


def validate_quantity(qty: object, field: str = "qty") -> int:
    """
    Raises:
        InvalidQuantityError: qty is not a positive integer.
    """
    if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
        raise InvalidQuantityError(qty, field)
    return qty


def fifo_key(batch: BatchSnapshot) -> tuple[date, datetime, str]:
    created_at = batch.created_at
    # SQLite hands back naive timestamps; they are stored as UTC
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return (batch.expiry_date, created_at, str(batch.id))


def available_qty(batches: Iterable[BatchSnapshot]) -> int:
    """Sum of qty_available over eligible batches."""
    return sum(b.qty_available for b in batches if b.is_eligible)


def plan_allocation(
    batches: Iterable[BatchSnapshot],
    qty: int,
    location_id: str | None = None,
    product_id: str | None = None,
) -> list[AllocationLine]:
    """
    Walk eligible batches in FIFO order taking min(remaining, available).

    Raises:
        InvalidQuantityError: qty <= 0.
        InsufficientStockError: eligible availability < qty.
    """
    validate_quantity(qty)
    eligible = sorted((b for b in batches if b.is_eligible), key=fifo_key)
    total = sum(b.qty_available for b in eligible)
    if total < qty:
        raise InsufficientStockError(
            available=total,
            requested=qty,
            location_id=location_id,
            product_id=product_id,
        )

    lines: list[AllocationLine] = []
    remaining = qty
    for batch in eligible:
        if remaining == 0:
            break
        taken = min(remaining, batch.qty_available)
        lines.append(AllocationLine(batch_id=batch.id, qty=taken))
        remaining -= taken
    return lines


def plan_release(
    batches: Iterable[BatchSnapshot],
    qty: int,
) -> list[AllocationLine]:
    """
    Give back reservations in the same FIFO order they were taken.

    Raises:
        InvalidQuantityError: qty <= 0.
        ReleaseExceedsReservedError: less than qty is reserved in total.
    """
    validate_quantity(qty)
    reserved = sorted((b for b in batches if b.qty_reserved > 0), key=fifo_key)
    total = sum(b.qty_reserved for b in reserved)
    if total < qty:
        raise ReleaseExceedsReservedError(reserved=total, requested=qty)

    lines: list[AllocationLine] = []
    remaining = qty
    for batch in reserved:
        if remaining == 0:
            break
        released = min(remaining, batch.qty_reserved)
        lines.append(AllocationLine(batch_id=batch.id, qty=released))
        remaining -= released
    return lines
