"""Transfer request queries, filtered to a caller's location scope."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select

from distribution_kernel.domain.transfer import TransferStatus
from distribution_kernel.exceptions import TransferRequestNotFoundError
from distribution_kernel.models.transfer_request import TransferRequestModel
from distribution_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TransferRequestDTO:
    id: UUID
    requested_by_id: UUID
    from_location_id: UUID
    to_location_id: UUID
    product_id: UUID
    requested_qty: int
    status: TransferStatus
    notes: str | None
    approved_by_id: UUID | None
    approved_at: datetime | None
    rejected_by_id: UUID | None
    rejected_at: datetime | None
    rejection_reason: str | None
    completed_at: datetime | None
    created_at: datetime


def to_transfer_request_dto(model: TransferRequestModel) -> TransferRequestDTO:
    return TransferRequestDTO(
        id=model.id,
        requested_by_id=model.requested_by_id,
        from_location_id=model.from_location_id,
        to_location_id=model.to_location_id,
        product_id=model.product_id,
        requested_qty=model.requested_qty,
        status=TransferStatus(model.status),
        notes=model.notes,
        approved_by_id=model.approved_by_id,
        approved_at=model.approved_at,
        rejected_by_id=model.rejected_by_id,
        rejected_at=model.rejected_at,
        rejection_reason=model.rejection_reason,
        completed_at=model.completed_at,
        created_at=model.created_at,
    )


class TransferRequestSelector(BaseSelector[TransferRequestModel]):
    """Selector for stock transfer requests."""

    def get(self, request_id: UUID) -> TransferRequestDTO:
        model = self.session.get(TransferRequestModel, request_id)
        if model is None:
            raise TransferRequestNotFoundError(str(request_id))
        return to_transfer_request_dto(model)

    def list_requests(
        self,
        location_ids: Iterable[UUID] | None = None,
        status: TransferStatus | None = None,
    ) -> list[TransferRequestDTO]:
        """
        Requests touching any of ``location_ids`` (as source or destination),
        newest first.  ``None`` means no location filter.
        """
        stmt = select(TransferRequestModel)
        if location_ids is not None:
            ids = list(location_ids)
            stmt = stmt.where(
                or_(
                    TransferRequestModel.from_location_id.in_(ids),
                    TransferRequestModel.to_location_id.in_(ids),
                )
            )
        if status is not None:
            stmt = stmt.where(TransferRequestModel.status == TransferStatus(status).value)
        stmt = stmt.order_by(
            TransferRequestModel.created_at.desc(), TransferRequestModel.id
        )
        return [to_transfer_request_dto(m) for m in self.session.scalars(stmt).all()]

    def pending(self, location_ids: Iterable[UUID] | None = None) -> list[TransferRequestDTO]:
        return self.list_requests(location_ids, TransferStatus.PENDING)
