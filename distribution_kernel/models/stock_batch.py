"""
Module: distribution_kernel.models.stock_batch
Responsibility: ORM persistence for physical stock lots held at a location.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - qty_on_hand >= 0, qty_reserved >= 0, qty_reserved <= qty_on_hand
      (check constraints; qty_available can never go negative).
    - quality_status is one of OK, Quarantine, Damaged.
    - version is the mapper's version_id_col: every UPDATE is a
      compare-and-swap on it and raises StaleDataError when another
      transaction got there first.
    - (location_id, product_id, expiry_date, created_at) index backs FIFO
      selection.

Audit relevance:
    Batches are never deleted.  A batch with qty_on_hand = 0 is retired
    but stays for the audit trail.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from distribution_kernel.db.base import Base, UUIDString


class StockBatchModel(Base):
    """
    One lot of one product at one location.

    Contract:
        Quantities are whole units.  Only StockLedger mutates them.

    Guarantees:
        - created_at is set from the ledger's injected Clock, so FIFO
          tie-breaks are deterministic.
        - qty_available is derived, never stored.
    """

    __tablename__ = "stock_batches"

    __table_args__ = (
        CheckConstraint("qty_on_hand >= 0", name="ck_stock_on_hand_non_negative"),
        CheckConstraint("qty_reserved >= 0", name="ck_stock_reserved_non_negative"),
        CheckConstraint(
            "qty_reserved <= qty_on_hand", name="ck_stock_reserved_within_on_hand"
        ),
        CheckConstraint(
            "quality_status IN ('OK', 'Quarantine', 'Damaged')",
            name="ck_stock_quality_status",
        ),
        Index(
            "idx_stock_fifo",
            "location_id",
            "product_id",
            "expiry_date",
            "created_at",
        ),
        Index("idx_stock_batch_no", "location_id", "product_id", "batch_no"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False
    )

    batch_no: Mapped[str] = mapped_column(String(100), nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    manufactured_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)

    quality_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="OK"
    )

    qty_on_hand: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    qty_reserved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def qty_available(self) -> int:
        return self.qty_on_hand - self.qty_reserved

    def __repr__(self) -> str:
        return (
            f"<StockBatch {self.batch_no} exp={self.expiry_date} "
            f"on_hand={self.qty_on_hand} reserved={self.qty_reserved}>"
        )
