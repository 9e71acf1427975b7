"""
Module: distribution_kernel.models.purchase_order
Responsibility: ORM persistence for supplier purchase orders and their lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - status is one of Draft, Approved, Received.
    - po_number is unique.
    - One line per product per order; quantity > 0, unit_price >= 0.
    - total_amount is the sum of line totals (computed by PurchaseOrderService).
    - Transitions are validated by domain/purchase_order.py before any write.
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
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from distribution_kernel.db.base import Base, UUIDString


class PurchaseOrderModel(Base):
    """An order placed with a supplier, received into one location."""

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_order_number"),
        CheckConstraint(
            "status IN ('Draft', 'Approved', 'Received')",
            name="ck_purchase_order_status",
        ),
        CheckConstraint("total_amount >= 0", name="ck_purchase_order_total"),
        Index("idx_purchase_order_location", "location_id", "status"),
    )

    po_number: Mapped[str] = mapped_column(String(40), nullable=False)

    supplier_name: Mapped[str] = mapped_column(String(200), nullable=False)

    location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False
    )

    order_date: Mapped[date] = mapped_column(Date, nullable=False)

    expected_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Draft")

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    received_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    received_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    items: Mapped[list[PurchaseOrderItemModel]] = relationship(
        "PurchaseOrderItemModel",
        back_populates="purchase_order",
        order_by="PurchaseOrderItemModel.line_no",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrder {self.po_number} {self.status}: {self.total_amount} {self.currency}>"


class PurchaseOrderItemModel(Base):
    """One ordered product on a purchase order."""

    __tablename__ = "purchase_order_items"

    __table_args__ = (
        UniqueConstraint(
            "purchase_order_id", "product_id", name="uq_purchase_order_item_product"
        ),
        CheckConstraint("quantity > 0", name="ck_purchase_order_item_qty"),
        CheckConstraint("unit_price >= 0", name="ck_purchase_order_item_price"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("purchase_orders.id"), nullable=False
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    total_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    purchase_order: Mapped[PurchaseOrderModel] = relationship(
        "PurchaseOrderModel", back_populates="items"
    )
