"""
Module: distribution_kernel.models.pricing
Responsibility: ORM persistence for per-location price configurations,
    reusable pricing templates, and the audit record of each template
    application.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(product_id, to_location_id): one config per destination.
    - Margins are percents in [0, 100); discount in [0, 100] (check constraints,
      validated earlier by domain/pricing.py).
    - hq_margin_percent + branch_margin_percent < 100 on templates.
    - final_price and discounted_price are always recomputed by
      PricingService from the stored inputs; nothing writes them directly.
    - exchange_rate is a frozen copy taken at computation time.

Audit relevance:
    PricingTemplateApplicationModel rows are append-only; one row per
    successful bulk application.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
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
from sqlalchemy.orm import Mapped, mapped_column

from distribution_kernel.db.base import Base, TrackedBase, UUIDString


class PricingConfigModel(TrackedBase):
    """
    Price of one product at one non-HQ location.

    Contract:
        level = 'branch' rows hop HQ -> Branch and carry hq/branch margins.
        level = 'sub_branch' rows hop Branch -> SubBranch and carry the
        sub-branch margin; their purchase_price is the Branch's
        discounted_price.

    Guarantees:
        - calculated_price is the unrounded markup result.
        - final_price is calculated_price rounded to the currency increment.
        - discounted_price = final_price * (1 - discount_percent / 100).
    """

    __tablename__ = "pricing_configs"

    __table_args__ = (
        UniqueConstraint(
            "product_id", "to_location_id", name="uq_pricing_product_location"
        ),
        CheckConstraint(
            "level IN ('branch', 'sub_branch')", name="ck_pricing_level"
        ),
        CheckConstraint(
            "hq_margin_percent >= 0 AND hq_margin_percent < 100",
            name="ck_pricing_hq_margin",
        ),
        CheckConstraint(
            "branch_margin_percent >= 0 AND branch_margin_percent < 100",
            name="ck_pricing_branch_margin",
        ),
        CheckConstraint(
            "sub_branch_margin_percent >= 0 AND sub_branch_margin_percent < 100",
            name="ck_pricing_sub_branch_margin",
        ),
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="ck_pricing_discount",
        ),
        Index("idx_pricing_location", "to_location_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    from_location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False
    )

    to_location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False
    )

    level: Mapped[str] = mapped_column(String(20), nullable=False)

    purchase_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    transfer_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(38, 12), nullable=False)

    hq_margin_percent: Mapped[Decimal] = mapped_column(
        Numeric(9, 4), nullable=False, default=Decimal("0")
    )

    branch_margin_percent: Mapped[Decimal] = mapped_column(
        Numeric(9, 4), nullable=False, default=Decimal("0")
    )

    sub_branch_margin_percent: Mapped[Decimal] = mapped_column(
        Numeric(9, 4), nullable=False, default=Decimal("0")
    )

    local_cost: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    calculated_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    final_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(9, 4), nullable=False, default=Decimal("0")
    )

    discounted_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    effective_date: Mapped[date] = mapped_column(Date, nullable=False)

    template_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("pricing_templates.id"), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<PricingConfig {self.product_id} @ {self.to_location_id}: "
            f"{self.final_price} {self.currency}>"
        )


class PricingTemplateModel(TrackedBase):
    """Reusable margin/currency preset for bulk Branch pricing."""

    __tablename__ = "pricing_templates"

    __table_args__ = (
        CheckConstraint(
            "hq_margin_percent >= 0 AND branch_margin_percent >= 0 AND "
            "hq_margin_percent + branch_margin_percent < 100",
            name="ck_pricing_templates_margins",
        ),
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="ck_pricing_templates_discount",
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    hq_margin_percent: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)

    branch_margin_percent: Mapped[Decimal] = mapped_column(
        Numeric(9, 4), nullable=False
    )

    discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(9, 4), nullable=False, default=Decimal("0")
    )

    target_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    default_transfer_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<PricingTemplate {self.name} -> {self.target_currency}>"


class PricingTemplateApplicationModel(Base):
    """Append-only record of one successful template bulk-apply."""

    __tablename__ = "pricing_template_applications"

    __table_args__ = (
        Index("idx_template_application_template", "template_id", "applied_at"),
    )

    template_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("pricing_templates.id"), nullable=False
    )

    applied_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    products_affected: Mapped[int] = mapped_column(Integer, nullable=False)

    configs_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    configs_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(38, 12), nullable=False)

    # Stringified UUIDs, in request order
    target_location_ids: Mapped[list] = mapped_column(JSON, nullable=False)

    product_ids: Mapped[list] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<PricingTemplateApplication {self.template_id}: "
            f"{self.configs_created} created, {self.configs_updated} updated>"
        )
