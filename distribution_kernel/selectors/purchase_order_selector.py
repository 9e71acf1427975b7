"""Purchase order queries, filtered to a caller's location scope."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from distribution_kernel.domain.purchase_order import PurchaseOrderStatus
from distribution_kernel.exceptions import PurchaseOrderNotFoundError
from distribution_kernel.models.purchase_order import PurchaseOrderModel
from distribution_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PurchaseOrderItemDTO:
    product_id: UUID
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@dataclass(frozen=True)
class PurchaseOrderDTO:
    id: UUID
    po_number: str
    supplier_name: str
    location_id: UUID
    order_date: date
    expected_delivery_date: date | None
    status: PurchaseOrderStatus
    currency: str
    total_amount: Decimal
    notes: str | None
    items: tuple[PurchaseOrderItemDTO, ...]
    created_by_id: UUID
    created_at: datetime
    approved_by_id: UUID | None
    approved_at: datetime | None
    received_by_id: UUID | None
    received_at: datetime | None


def to_purchase_order_dto(model: PurchaseOrderModel) -> PurchaseOrderDTO:
    return PurchaseOrderDTO(
        id=model.id,
        po_number=model.po_number,
        supplier_name=model.supplier_name,
        location_id=model.location_id,
        order_date=model.order_date,
        expected_delivery_date=model.expected_delivery_date,
        status=PurchaseOrderStatus(model.status),
        currency=model.currency,
        total_amount=model.total_amount,
        notes=model.notes,
        items=tuple(
            PurchaseOrderItemDTO(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
            )
            for item in model.items
        ),
        created_by_id=model.created_by_id,
        created_at=model.created_at,
        approved_by_id=model.approved_by_id,
        approved_at=model.approved_at,
        received_by_id=model.received_by_id,
        received_at=model.received_at,
    )


class PurchaseOrderSelector(BaseSelector[PurchaseOrderModel]):

    def get(self, order_id: UUID) -> PurchaseOrderDTO:
        model = self.session.get(PurchaseOrderModel, order_id)
        if model is None:
            raise PurchaseOrderNotFoundError(str(order_id))
        return to_purchase_order_dto(model)

    def list_orders(
        self,
        location_ids: Iterable[UUID] | None = None,
        status: PurchaseOrderStatus | None = None,
    ) -> list[PurchaseOrderDTO]:
        """Orders received into any of ``location_ids``, newest first."""
        stmt = select(PurchaseOrderModel)
        if location_ids is not None:
            stmt = stmt.where(PurchaseOrderModel.location_id.in_(list(location_ids)))
        if status is not None:
            stmt = stmt.where(
                PurchaseOrderModel.status == PurchaseOrderStatus(status).value
            )
        stmt = stmt.order_by(PurchaseOrderModel.created_at.desc(), PurchaseOrderModel.po_number)
        return [to_purchase_order_dto(m) for m in self.session.scalars(stmt).all()]
