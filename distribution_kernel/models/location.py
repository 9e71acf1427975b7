"""
Module: distribution_kernel.models.location
Responsibility: ORM persistence for the location tree (HQ -> Branch -> SubBranch).
    The tree is stored flat with a nullable parent_id; the in-memory arena in
    domain/hierarchy.py is built from these rows.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - location_type is one of HQ, Branch, SubBranch (check constraint).
    - Only HQ may have a null parent_id (check constraint).
    - Parent/type pairing and acyclicity are enforced by LocationService
      before any write; CorruptHierarchyError is raised on load if they
      are ever violated.
    - Rows are never hard-deleted; is_active=False retires a location.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from distribution_kernel.db.base import TrackedBase, UUIDString


class LocationModel(TrackedBase):
    """
    One node of the location tree.

    Guarantees:
        - currency is a 3-character ISO 4217 code.
        - display_order orders siblings for presentation.
    """

    __tablename__ = "locations"

    __table_args__ = (
        CheckConstraint(
            "location_type IN ('HQ', 'Branch', 'SubBranch')",
            name="ck_locations_valid_type",
        ),
        CheckConstraint(
            "(location_type = 'HQ' AND parent_id IS NULL) OR "
            "(location_type <> 'HQ' AND parent_id IS NOT NULL)",
            name="ck_locations_parent_matches_type",
        ),
        Index("idx_location_parent", "parent_id", "display_order"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    location_type: Mapped[str] = mapped_column(String(20), nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("locations.id"),
        nullable=True,
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    country_code: Mapped[str | None] = mapped_column(String(2), nullable=True)

    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Location {self.name} ({self.location_type}) {self.currency}>"
