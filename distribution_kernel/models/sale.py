"""
Module: distribution_kernel.models.sale
Responsibility: ORM persistence for recorded sales and their profit split.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - qty > 0, unit_price >= 0.
    - total_amount = qty * unit_price (computed by SalesService).
    - hq_profit / branch_profit are a snapshot taken at sale time from the
      location's Branch pricing config; null when no config exists.
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


class SaleModel(Base):
    """One sale of one product at one location."""

    __tablename__ = "sales"

    __table_args__ = (
        CheckConstraint("qty > 0", name="ck_sales_qty_positive"),
        CheckConstraint("unit_price >= 0", name="ck_sales_price_non_negative"),
        Index("idx_sales_location_date", "location_id", "sale_date"),
    )

    location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    sale_date: Mapped[date] = mapped_column(Date, nullable=False)

    qty: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    channel: Mapped[str | None] = mapped_column(String(50), nullable=True)

    unit_cost: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    hq_profit: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    branch_profit: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True
    )

    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Sale {self.qty} x {self.unit_price} {self.currency} on {self.sale_date}>"
