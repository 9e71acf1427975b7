"""
PurchaseOrderService -- the create -> approve -> receive workflow.

Responsibility:
    Records supplier orders for one location and drives them through the
    lifecycle in ``domain/purchase_order.py``.  Receiving books every
    ordered line into the stock ledger as new batches and marks the order
    Received in the same unit of work.

Architecture position:
    Kernel > Services.  Orchestrates StockLedger.

Invariants enforced:
    - Only PURCHASE_ORDER_TRANSITIONS edges are taken.
    - An order is received in full: every line, and only its lines, with
      receipt quantities summing to the ordered quantity.
    - Batches and the Received status land together or not at all.

Failure modes:
    - ValidationError, InvalidQuantityError, LocationNotFoundError,
      ProductNotFoundError on create.
    - PurchaseOrderNotFoundError on unknown ids.
    - InvalidTransitionError when approving a non-Draft order or receiving
      a non-Approved one.
    - Any ledger error from receive (the order stays Approved).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from distribution_kernel.domain.clock import Clock
from distribution_kernel.domain.purchase_order import (
    OrderLine,
    PurchaseOrderStatus,
    ensure_order_transition,
    order_total,
    validate_order_lines,
)
from distribution_kernel.exceptions import PurchaseOrderNotFoundError, ValidationError
from distribution_kernel.logging_config import LogContext, get_logger
from distribution_kernel.models.purchase_order import (
    PurchaseOrderItemModel,
    PurchaseOrderModel,
)
from distribution_kernel.selectors.location_selector import LocationSelector
from distribution_kernel.selectors.purchase_order_selector import (
    PurchaseOrderDTO,
    to_purchase_order_dto,
)
from distribution_kernel.services.base import BaseService
from distribution_kernel.services.product_service import ProductService
from distribution_kernel.services.stock_ledger import ReceiptItem, StockLedger

logger = get_logger("services.purchase_order")


class PurchaseOrderService(BaseService[PurchaseOrderModel]):
    """Purchase order state machine."""

    def __init__(
        self,
        session: Session,
        ledger: StockLedger | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self.ledger = ledger or StockLedger(session, self.clock)

    def _lock(self, order_id: UUID) -> PurchaseOrderModel:
        model = self.session.scalars(
            select(PurchaseOrderModel)
            .where(PurchaseOrderModel.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if model is None:
            raise PurchaseOrderNotFoundError(str(order_id))
        return model

    def _next_po_number(self, order_date: date) -> str:
        prefix = f"PO-{order_date:%Y%m%d}-"
        taken = self.session.scalar(
            select(func.count())
            .select_from(PurchaseOrderModel)
            .where(PurchaseOrderModel.po_number.like(f"{prefix}%"))
        )
        return f"{prefix}{taken + 1:04d}"

    def create(
        self,
        created_by_id: UUID,
        location_id: UUID,
        supplier_name: str,
        lines: Sequence[OrderLine],
        order_date: date | None = None,
        expected_delivery_date: date | None = None,
        notes: str | None = None,
        po_number: str | None = None,
    ) -> PurchaseOrderDTO:
        """Record a Draft order priced in the location's currency."""
        if not supplier_name or not supplier_name.strip():
            raise ValidationError("supplier_name is required")
        lines = validate_order_lines(lines)
        location = LocationSelector(self.session).get(location_id)
        if not location.is_active:
            raise ValidationError(f"location {location_id} is inactive")
        products = ProductService(self.session, self.clock)
        for line in lines:
            products.get(line.product_id)

        order_date = order_date or self.clock.today()
        if expected_delivery_date is not None and expected_delivery_date < order_date:
            raise ValidationError("expected_delivery_date is before order_date")
        if po_number is None:
            po_number = self._next_po_number(order_date)
        elif self.session.scalar(
            select(PurchaseOrderModel.id).where(PurchaseOrderModel.po_number == po_number)
        ):
            raise ValidationError(f"po_number {po_number} already exists")

        model = PurchaseOrderModel(
            po_number=po_number,
            supplier_name=supplier_name.strip(),
            location_id=location_id,
            order_date=order_date,
            expected_delivery_date=expected_delivery_date,
            status=PurchaseOrderStatus.DRAFT.value,
            currency=location.currency,
            total_amount=order_total(lines),
            notes=notes,
            created_by_id=created_by_id,
            created_at=self.clock.now(),
            items=[
                PurchaseOrderItemModel(
                    line_no=n,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_price=line.total_price,
                )
                for n, line in enumerate(lines, start=1)
            ],
        )
        self.session.add(model)
        self.session.flush()
        logger.info(
            "purchase_order_created",
            extra={
                "order_id": str(model.id),
                "po_number": po_number,
                "location_id": str(location_id),
                "line_count": len(lines),
                "total_amount": model.total_amount,
            },
        )
        return to_purchase_order_dto(model)

    def approve(self, order_id: UUID, approver_id: UUID) -> PurchaseOrderDTO:
        """Draft -> Approved."""
        model = self._lock(order_id)
        ensure_order_transition(model.status, PurchaseOrderStatus.APPROVED, str(order_id))
        model.status = PurchaseOrderStatus.APPROVED.value
        model.approved_by_id = approver_id
        model.approved_at = self.clock.now()
        self.session.flush()
        logger.info(
            "purchase_order_approved",
            extra={"order_id": str(order_id), "approver_id": str(approver_id)},
        )
        return to_purchase_order_dto(model)

    def receive(
        self,
        order_id: UUID,
        receiver_id: UUID,
        receipts: Mapping[UUID, Sequence[ReceiptItem]],
    ) -> PurchaseOrderDTO:
        """
        Approved -> Received, booking ``receipts`` (lots per product) as
        new batches at the order's location.

        Raises:
            ValidationError: receipts miss a line, add an unordered product,
                or do not add up to the ordered quantity.
        """
        model = self._lock(order_id)
        ensure_order_transition(model.status, PurchaseOrderStatus.RECEIVED, str(order_id))

        ordered = {item.product_id: item.quantity for item in model.items}
        unknown = set(receipts) - set(ordered)
        if unknown:
            raise ValidationError(
                f"products not on order {model.po_number}: {sorted(map(str, unknown))}"
            )
        for product_id, quantity in ordered.items():
            received = sum(item.qty for item in receipts.get(product_id, ()))
            if received != quantity:
                raise ValidationError(
                    f"product {product_id}: received {received}, ordered {quantity}"
                )

        batch_count = 0
        with LogContext.bind(location_id=model.location_id):
            with self.session.begin_nested():
                for item in model.items:
                    batches = self.ledger.receive(
                        model.location_id, item.product_id, receipts[item.product_id]
                    )
                    batch_count += len(batches)
                model.status = PurchaseOrderStatus.RECEIVED.value
                model.received_by_id = receiver_id
                model.received_at = self.clock.now()
                self.session.flush()
            logger.info(
                "purchase_order_received",
                extra={"order_id": str(order_id), "batch_count": batch_count},
            )
        return to_purchase_order_dto(model)
