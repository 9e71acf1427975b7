"""
Module: distribution_kernel.models.transfer_request
Responsibility: ORM persistence for inter-location stock transfer requests.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - status is one of Pending, Approved, Rejected, Completed.
    - requested_qty > 0.
    - Transitions are validated by domain/transfer.py before any write.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from distribution_kernel.db.base import Base, UUIDString


class TransferRequestModel(Base):
    """A request to move stock of one product between two locations."""

    __tablename__ = "stock_transfer_requests"

    __table_args__ = (
        CheckConstraint("requested_qty > 0", name="ck_transfer_qty_positive"),
        CheckConstraint(
            "status IN ('Pending', 'Approved', 'Rejected', 'Completed')",
            name="ck_transfer_status",
        ),
        Index("idx_transfer_status", "status", "created_at"),
        Index("idx_transfer_from", "from_location_id"),
        Index("idx_transfer_to", "to_location_id"),
    )

    requested_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    from_location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False
    )

    to_location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    requested_qty: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending")

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    rejected_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    rejected_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<TransferRequest {self.id} {self.status}: "
            f"{self.requested_qty} {self.from_location_id} -> {self.to_location_id}>"
        )
