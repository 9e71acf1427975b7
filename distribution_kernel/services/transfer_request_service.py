"""
TransferRequestService -- the request -> approve -> execute workflow.

Responsibility:
    Creates stock transfer requests and drives them through the lifecycle
    in ``domain/transfer.py``.  Approval calls the ledger in-process; the
    ledger's outcome alone decides whether the request completes or is
    compensated back to Pending.

Architecture position:
    Kernel > Services.  Orchestrates StockLedger.

Invariants enforced:
    - Only TRANSFER_TRANSITIONS edges are taken.
    - A failed ledger transfer never leaves a request Approved: it returns
      to Pending with approver and timestamp cleared, and the ledger error
      reaches the caller.  Approving again from Pending is always safe.
    - Requests only move stock between a location and its direct parent or
      child, between two active locations.
    - No stock check at creation; availability is checked at approval.

Failure modes:
    - InvalidQuantityError, InvalidTransferRouteError on create.
    - TransferRequestNotFoundError on unknown ids.
    - InvalidTransitionError from any non-Pending state.
    - Any ledger error from approve (after compensation).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from distribution_kernel.domain.clock import Clock
from distribution_kernel.domain.stock import validate_quantity
from distribution_kernel.domain.transfer import TransferStatus, ensure_transition
from distribution_kernel.exceptions import (
    DistributionKernelError,
    InvalidTransferRouteError,
    TransferRequestNotFoundError,
    ValidationError,
)
from distribution_kernel.logging_config import LogContext, get_logger
from distribution_kernel.models.transfer_request import TransferRequestModel
from distribution_kernel.selectors.location_selector import LocationSelector
from distribution_kernel.selectors.transfer_selector import (
    TransferRequestDTO,
    to_transfer_request_dto,
)
from distribution_kernel.services.base import BaseService
from distribution_kernel.services.product_service import ProductService
from distribution_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.transfer_request")


class TransferRequestService(BaseService[TransferRequestModel]):
    """Transfer request state machine."""

    def __init__(
        self,
        session: Session,
        ledger: StockLedger | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self.ledger = ledger or StockLedger(session, self.clock)

    def _lock(self, request_id: UUID) -> TransferRequestModel:
        model = self.session.scalars(
            select(TransferRequestModel)
            .where(TransferRequestModel.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if model is None:
            raise TransferRequestNotFoundError(str(request_id))
        return model

    def create(
        self,
        requested_by_id: UUID,
        from_location_id: UUID,
        to_location_id: UUID,
        product_id: UUID,
        qty: int,
        notes: str | None = None,
    ) -> TransferRequestDTO:
        validate_quantity(qty, "requested_qty")
        if from_location_id == to_location_id:
            raise InvalidTransferRouteError(
                str(from_location_id), str(to_location_id), "source equals destination"
            )
        hierarchy = LocationSelector(self.session).load_hierarchy()
        for location_id in (from_location_id, to_location_id):
            if not hierarchy.get(location_id).is_active:
                raise InvalidTransferRouteError(
                    str(from_location_id),
                    str(to_location_id),
                    f"location {location_id} is inactive",
                )
        if not hierarchy.can_transfer_between(from_location_id, to_location_id):
            raise InvalidTransferRouteError(
                str(from_location_id),
                str(to_location_id),
                "only moves between a location and its direct parent or child",
            )
        ProductService(self.session, self.clock).get(product_id)

        model = TransferRequestModel(
            requested_by_id=requested_by_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            product_id=product_id,
            requested_qty=qty,
            status=TransferStatus.PENDING.value,
            notes=notes,
            created_at=self.clock.now(),
        )
        self.session.add(model)
        self.session.flush()
        logger.info(
            "transfer_request_created",
            extra={
                "request_id": str(model.id),
                "from_location_id": str(from_location_id),
                "to_location_id": str(to_location_id),
                "product_id": str(product_id),
                "qty": qty,
            },
        )
        return to_transfer_request_dto(model)

    def approve(self, request_id: UUID, approver_id: UUID) -> TransferRequestDTO:
        """
        Pending -> Approved -> transfer -> Completed.

        On any ledger error the request is reverted to Pending, approver
        fields are cleared, and the error is re-raised.
        """
        with LogContext.bind(request_id=request_id):
            model = self._lock(request_id)
            ensure_transition(model.status, TransferStatus.APPROVED, str(request_id))
            model.status = TransferStatus.APPROVED.value
            model.approved_by_id = approver_id
            model.approved_at = self.clock.now()
            self.session.flush()
            logger.info(
                "transfer_request_approved",
                extra={"approver_id": str(approver_id)},
            )

            try:
                self.ledger.transfer(
                    model.from_location_id,
                    model.to_location_id,
                    model.product_id,
                    model.requested_qty,
                )
            except DistributionKernelError as exc:
                ensure_transition(
                    TransferStatus.APPROVED, TransferStatus.PENDING, str(request_id)
                )
                model.status = TransferStatus.PENDING.value
                model.approved_by_id = None
                model.approved_at = None
                self.session.flush()
                logger.warning(
                    "transfer_request_reverted",
                    extra={"cause_code": exc.code, "cause": str(exc)},
                )
                raise

            ensure_transition(
                TransferStatus.APPROVED, TransferStatus.COMPLETED, str(request_id)
            )
            model.status = TransferStatus.COMPLETED.value
            model.completed_at = self.clock.now()
            self.session.flush()
            logger.info("transfer_request_completed", extra={"qty": model.requested_qty})
            return to_transfer_request_dto(model)

    def reject(
        self,
        request_id: UUID,
        approver_id: UUID,
        reason: str,
    ) -> TransferRequestDTO:
        """Pending -> Rejected.  Terminal."""
        if not reason or not reason.strip():
            raise ValidationError("rejection reason is required")
        model = self._lock(request_id)
        ensure_transition(model.status, TransferStatus.REJECTED, str(request_id))
        model.status = TransferStatus.REJECTED.value
        model.rejected_by_id = approver_id
        model.rejected_at = self.clock.now()
        model.rejection_reason = reason.strip()
        self.session.flush()
        logger.info(
            "transfer_request_rejected",
            extra={"request_id": str(request_id), "approver_id": str(approver_id)},
        )
        return to_transfer_request_dto(model)
