"""
ProductService -- product catalogue maintenance.

Responsibility:
    Registers products and applies edits.  Once stock or pricing refers to
    a product, only its name and descriptive metadata (and base cost) may
    change.

Invariants enforced:
    - SKU matches ``[A-Z0-9-]+``, is unique and never changes.
    - unit and shelf_life_days freeze once the product is referenced.

Failure modes:
    - InvalidSkuError, DuplicateSkuError on registration.
    - ProductReferencedError when a frozen field is edited.
    - ProductNotFoundError on unknown ids.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import exists, select

from distribution_kernel.exceptions import (
    DuplicateSkuError,
    InvalidSkuError,
    ProductNotFoundError,
    ProductReferencedError,
    ValidationError,
)
from distribution_kernel.logging_config import get_logger
from distribution_kernel.models.pricing import PricingConfigModel
from distribution_kernel.models.product import ProductModel
from distribution_kernel.models.stock_batch import StockBatchModel
from distribution_kernel.services.base import BaseService

logger = get_logger("services.product")

SKU_PATTERN = re.compile(r"[A-Z0-9-]+")

_EDITABLE_FIELDS = frozenset({"name", "category", "description", "base_cost", "is_active"})
_FROZEN_WHEN_REFERENCED = frozenset({"unit", "shelf_life_days"})


class ProductService(BaseService[ProductModel]):
    """Product catalogue maintenance."""

    def get(self, product_id: UUID) -> ProductModel:
        product = self.session.get(ProductModel, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def create_product(
        self,
        sku: str,
        name: str,
        actor_id: UUID,
        unit: str = "EA",
        shelf_life_days: int = 0,
        base_cost: Decimal | None = None,
        category: str | None = None,
        description: str | None = None,
    ) -> ProductModel:
        if not sku or not SKU_PATTERN.fullmatch(sku):
            raise InvalidSkuError(sku)
        if self.session.scalar(select(exists().where(ProductModel.sku == sku))):
            raise DuplicateSkuError(sku)
        if shelf_life_days < 0:
            raise ValidationError(f"shelf_life_days must be >= 0, got {shelf_life_days}")
        if base_cost is not None and base_cost < 0:
            raise ValidationError(f"base_cost must be >= 0, got {base_cost}")

        product = ProductModel(
            sku=sku,
            name=name,
            unit=unit,
            shelf_life_days=shelf_life_days,
            base_cost=base_cost,
            category=category,
            description=description,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(product)
        self.session.flush()
        logger.info("product_created", extra={"product_id": str(product.id), "sku": sku})
        return product

    def is_referenced(self, product_id: UUID) -> bool:
        """True once any stock batch or pricing config refers to the product."""
        in_stock = self.session.scalar(
            select(exists().where(StockBatchModel.product_id == product_id))
        )
        if in_stock:
            return True
        return bool(
            self.session.scalar(
                select(exists().where(PricingConfigModel.product_id == product_id))
            )
        )

    def update_product(
        self,
        product_id: UUID,
        actor_id: UUID,
        **changes: Any,
    ) -> ProductModel:
        """
        Apply field edits.

        Raises:
            ValidationError: unknown field, or an attempt to change the SKU.
            ProductReferencedError: unit/shelf_life_days edit on a
                referenced product.
        """
        product = self.get(product_id)
        if "sku" in changes and changes["sku"] != product.sku:
            raise ValidationError("sku is immutable")
        changes.pop("sku", None)

        unknown = set(changes) - _EDITABLE_FIELDS - _FROZEN_WHEN_REFERENCED
        if unknown:
            raise ValidationError(f"unknown product fields: {sorted(unknown)}")

        frozen_edits = [
            field for field in sorted(_FROZEN_WHEN_REFERENCED & set(changes))
            if changes[field] != getattr(product, field)
        ]
        if frozen_edits and self.is_referenced(product_id):
            raise ProductReferencedError(str(product_id), frozen_edits[0])

        for field, value in changes.items():
            setattr(product, field, value)
        product.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "product_updated",
            extra={"product_id": str(product_id), "fields": sorted(changes)},
        )
        return product
