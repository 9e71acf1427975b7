"""
Module: distribution_kernel.models.product
Responsibility: ORM persistence for the product catalogue.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - sku is unique and immutable; the [A-Z0-9-]+ pattern is validated by
      ProductService before insert.
    - unit and shelf_life_days freeze once stock or pricing references the
      product (ProductService); name and metadata stay editable.
    - base_cost is the HQ-currency purchase price that roots every price chain.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from distribution_kernel.db.base import TrackedBase


class ProductModel(TrackedBase):
    """A sellable product."""

    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint("shelf_life_days >= 0", name="ck_products_shelf_life"),
        CheckConstraint(
            "base_cost IS NULL OR base_cost >= 0", name="ck_products_base_cost"
        ),
    )

    sku: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="EA")

    shelf_life_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    base_cost: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Product {self.sku} {self.name}>"
