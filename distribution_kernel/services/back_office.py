"""
BackOffice -- the boundary operations the web/auth layer calls.

Responsibility:
    One method per external operation.  Each call opens its own
    transaction (``session_scope``), builds the services it needs on that
    session, binds the caller into the log context, and commits on
    success.  Typed kernel errors propagate unchanged; the scope rolls
    back first.

Architecture position:
    Outermost kernel layer.  Authentication happens before this; callers
    pass the resolved ``Caller``.  The kernel computes scopes but does not
    enforce who may call what.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from distribution_kernel.config import get_active_config
from distribution_kernel.config.schema import KernelConfig
from distribution_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from distribution_kernel.domain.clock import Clock, SystemClock
from distribution_kernel.domain.hierarchy import LocationNode, Role
from distribution_kernel.domain.pricing import (
    ZERO,
    PriceComputation,
    RoundingPolicy,
    compute_derived_price,
)
from distribution_kernel.domain.purchase_order import OrderLine, PurchaseOrderStatus
from distribution_kernel.domain.transfer import TransferStatus
from distribution_kernel.logging_config import LogContext, configure_logging
from distribution_kernel.selectors.location_selector import LocationSelector
from distribution_kernel.selectors.purchase_order_selector import (
    PurchaseOrderDTO,
    PurchaseOrderSelector,
)
from distribution_kernel.selectors.stock_selector import (
    StockBatchDTO,
    StockSelector,
    StockSummaryDTO,
)
from distribution_kernel.selectors.transfer_selector import (
    TransferRequestDTO,
    TransferRequestSelector,
)
from distribution_kernel.services.exchange_rate_service import ExchangeRateService
from distribution_kernel.services.pricing_service import (
    PriceChain,
    PricingService,
    TemplateApplicationResult,
)
from distribution_kernel.services.purchase_order_service import PurchaseOrderService
from distribution_kernel.services.stock_ledger import (
    AllocationResult,
    ReceiptItem,
    StockLedger,
    TransferResult,
)
from distribution_kernel.services.transfer_request_service import (
    TransferRequestService,
)


@dataclass(frozen=True)
class Caller:
    """Identity resolved by the external auth layer."""

    user_id: UUID
    role: Role
    home_location_id: UUID | None = None


class BackOffice:
    """
    Transactional facade over the kernel services.

    Contract:
        Every public method runs in exactly one transaction.  Return values
        are DTOs or frozen dataclasses that stay valid after the session
        closes.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        config: KernelConfig | None = None,
    ):
        self._factory = session_factory
        self.clock = clock or SystemClock()
        self.config = config or KernelConfig()

    @classmethod
    def from_config(
        cls,
        config: KernelConfig | None = None,
        clock: Clock | None = None,
        create_schema: bool = False,
    ) -> BackOffice:
        """
        Wire logging and the module-level engine from configuration.

        ``config`` defaults to ``get_active_config()``.  ``create_schema``
        creates missing tables, for SQLite and local tooling.
        """
        config = config or get_active_config()
        configure_logging(level=config.logging.level)
        db = config.database
        init_engine_from_url(
            db.url, echo=db.echo, pool_size=db.pool_size, max_overflow=db.max_overflow
        )
        if create_schema:
            create_tables()
        return cls(get_session_factory(), clock, config)

    @contextmanager
    def _unit(self, caller: Caller | None = None) -> Iterator[Session]:
        with session_scope(self._factory) as session:
            if caller is None:
                yield session
            else:
                with LogContext.bind(actor_id=caller.user_id):
                    yield session

    def _pricing(self, session: Session) -> PricingService:
        return PricingService(session, self.clock, self.config.pricing)

    def _ledger(self, session: Session) -> StockLedger:
        return StockLedger(session, self.clock, self.config.stock)

    def _transfers(self, session: Session) -> TransferRequestService:
        return TransferRequestService(session, self._ledger(session), self.clock)

    def _purchase_orders(self, session: Session) -> PurchaseOrderService:
        return PurchaseOrderService(session, self._ledger(session), self.clock)

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def get_accessible_locations(self, caller: Caller) -> list[LocationNode]:
        with self._unit(caller) as session:
            hierarchy = LocationSelector(session).load_hierarchy()
            return hierarchy.accessible_locations(caller.role, caller.home_location_id)

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def get_price_chain(
        self, caller: Caller, product_id: UUID, location_id: UUID
    ) -> PriceChain:
        with self._unit(caller) as session:
            return self._pricing(session).resolve_chain(product_id, location_id)

    def compute_price(
        self,
        parent_price: Decimal,
        transfer_cost: Decimal,
        exchange_rate: Decimal,
        margins: Sequence[Decimal],
        currency: str,
        discount_percent: Decimal = ZERO,
    ) -> PriceComputation:
        """Pure; touches no storage."""
        return compute_derived_price(
            parent_price,
            transfer_cost,
            exchange_rate,
            margins,
            currency,
            rounding=RoundingPolicy(dict(self.config.pricing.rounding_increments)),
            discount_percent=discount_percent,
        )

    def apply_template(
        self,
        caller: Caller,
        template_id: UUID,
        location_ids: Sequence[UUID],
        product_ids: Sequence[UUID],
        as_of: date | None = None,
    ) -> TemplateApplicationResult:
        with self._unit(caller) as session:
            return self._pricing(session).apply_template(
                template_id, location_ids, product_ids, caller.user_id, as_of
            )

    def resolve_exchange_rate(
        self, from_currency: str, to_currency: str, as_of: date | None = None
    ) -> Decimal:
        with self._unit() as session:
            return ExchangeRateService(session, self.clock).resolve(
                from_currency, to_currency, as_of
            )

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    def allocate_stock(
        self, caller: Caller, location_id: UUID, product_id: UUID, qty: int
    ) -> list[AllocationResult]:
        with self._unit(caller) as session:
            return self._ledger(session).allocate(location_id, product_id, qty)

    def execute_transfer(
        self,
        caller: Caller,
        from_location_id: UUID,
        to_location_id: UUID,
        product_id: UUID,
        qty: int,
    ) -> TransferResult:
        with self._unit(caller) as session:
            return self._ledger(session).transfer(
                from_location_id, to_location_id, product_id, qty
            )

    # ------------------------------------------------------------------
    # Transfer requests
    # ------------------------------------------------------------------

    def create_transfer_request(
        self,
        caller: Caller,
        from_location_id: UUID,
        to_location_id: UUID,
        product_id: UUID,
        qty: int,
        notes: str | None = None,
    ) -> TransferRequestDTO:
        with self._unit(caller) as session:
            return self._transfers(session).create(
                caller.user_id, from_location_id, to_location_id, product_id, qty, notes
            )

    def approve_transfer_request(
        self, caller: Caller, request_id: UUID
    ) -> TransferRequestDTO:
        with self._unit(caller) as session:
            return self._transfers(session).approve(request_id, caller.user_id)

    def reject_transfer_request(
        self, caller: Caller, request_id: UUID, reason: str
    ) -> TransferRequestDTO:
        with self._unit(caller) as session:
            return self._transfers(session).reject(request_id, caller.user_id, reason)

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def create_purchase_order(
        self,
        caller: Caller,
        location_id: UUID,
        supplier_name: str,
        lines: Sequence[OrderLine],
        expected_delivery_date: date | None = None,
        notes: str | None = None,
    ) -> PurchaseOrderDTO:
        with self._unit(caller) as session:
            return self._purchase_orders(session).create(
                caller.user_id,
                location_id,
                supplier_name,
                lines,
                expected_delivery_date=expected_delivery_date,
                notes=notes,
            )

    def approve_purchase_order(self, caller: Caller, order_id: UUID) -> PurchaseOrderDTO:
        with self._unit(caller) as session:
            return self._purchase_orders(session).approve(order_id, caller.user_id)

    def receive_purchase_order(
        self,
        caller: Caller,
        order_id: UUID,
        receipts: Mapping[UUID, Sequence[ReceiptItem]],
    ) -> PurchaseOrderDTO:
        with self._unit(caller) as session:
            return self._purchase_orders(session).receive(order_id, caller.user_id, receipts)

    # ------------------------------------------------------------------
    # Read views, limited to the caller's scope
    # ------------------------------------------------------------------

    def _scope_ids(self, session: Session, caller: Caller) -> list[UUID]:
        hierarchy = LocationSelector(session).load_hierarchy()
        return [
            node.id
            for node in hierarchy.accessible_locations(caller.role, caller.home_location_id)
        ]

    def get_stock_summary(
        self, caller: Caller, location_id: UUID
    ) -> list[StockSummaryDTO]:
        """Per-product totals at one location; empty outside the caller's scope."""
        with self._unit(caller) as session:
            if location_id not in self._scope_ids(session, caller):
                return []
            return StockSelector(session).summary(location_id)

    def get_expiring_stock(
        self, caller: Caller, warning_days: int | None = None
    ) -> list[StockBatchDTO]:
        if warning_days is None:
            warning_days = self.config.stock.expiry_warning_days
        with self._unit(caller) as session:
            return StockSelector(session).expiring(
                self._scope_ids(session, caller), self.clock.today(), warning_days
            )

    def list_transfer_requests(
        self, caller: Caller, status: TransferStatus | None = None
    ) -> list[TransferRequestDTO]:
        with self._unit(caller) as session:
            return TransferRequestSelector(session).list_requests(
                self._scope_ids(session, caller), status
            )

    def list_purchase_orders(
        self, caller: Caller, status: PurchaseOrderStatus | None = None
    ) -> list[PurchaseOrderDTO]:
        with self._unit(caller) as session:
            return PurchaseOrderSelector(session).list_orders(
                self._scope_ids(session, caller), status
            )
