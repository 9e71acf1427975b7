"""
Pytest fixtures for the distribution kernel test suite.

Provides:
- An in-memory SQLite database per test (fresh schema, no cleanup needed)
- A seeded location network: Seoul HQ (KRW) with a Vietnamese branch and
  sub-branch (VND), a Chinese branch (CNY) and a Korean branch (KRW)
- Product, rate and stock factories
- Structured log capture

PostgreSQL is the production backend; nothing here depends on it.  Row
locks (FOR UPDATE) are no-ops on SQLite, and version conflicts are
exercised directly through ``StockLedger._run_atomic``.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from distribution_kernel.db.engine import build_engine, create_tables
from distribution_kernel.domain.clock import DeterministicClock
from distribution_kernel.domain.hierarchy import LocationNode, LocationType
from distribution_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from distribution_kernel.models.product import ProductModel
from distribution_kernel.models.stock_batch import StockBatchModel
from distribution_kernel.services.exchange_rate_service import ExchangeRateService
from distribution_kernel.services.location_service import LocationService
from distribution_kernel.services.pricing_service import PricingService
from distribution_kernel.services.product_service import ProductService
from distribution_kernel.services.purchase_order_service import PurchaseOrderService
from distribution_kernel.services.sales_service import SalesService
from distribution_kernel.services.stock_ledger import ReceiptItem, StockLedger
from distribution_kernel.services.transfer_request_service import (
    TransferRequestService,
)

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

SQLITE_URL = "sqlite+pysqlite:///:memory:"

# Effective date of the seeded exchange rates, before the clock's "today"
RATE_DATE = date(2024, 12, 1)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture distribution_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, stock_ledger):
            stock_ledger.allocate(...)
            logs = captured_logs()
            assert any(r["message"] == "stock_allocated" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("distribution_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(scope="function")
def engine():
    """A private in-memory database with every table created."""
    db_engine = build_engine(SQLITE_URL)
    create_tables(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture(scope="function")
def session(session_factory) -> Generator[Session, None, None]:
    """A session whose work is discarded at teardown."""
    sess = session_factory()
    yield sess
    try:
        sess.rollback()
    finally:
        sess.close()


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


# Clock fixtures


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock fixed at 2025-01-01 09:00 UTC."""
    return DeterministicClock(datetime(2025, 1, 1, 9, 0, 0, tzinfo=timezone.utc))


# Service fixtures


@pytest.fixture
def location_service(session: Session, deterministic_clock) -> LocationService:
    return LocationService(session, deterministic_clock)


@pytest.fixture
def product_service(session: Session, deterministic_clock) -> ProductService:
    return ProductService(session, deterministic_clock)


@pytest.fixture
def rate_service(session: Session, deterministic_clock) -> ExchangeRateService:
    return ExchangeRateService(session, deterministic_clock)


@pytest.fixture
def pricing_service(session: Session, deterministic_clock, rate_service) -> PricingService:
    return PricingService(session, deterministic_clock, rates=rate_service)


@pytest.fixture
def stock_ledger(session: Session, deterministic_clock) -> StockLedger:
    return StockLedger(session, deterministic_clock)


@pytest.fixture
def transfer_service(session: Session, stock_ledger, deterministic_clock):
    return TransferRequestService(session, stock_ledger, deterministic_clock)


@pytest.fixture
def purchase_order_service(session: Session, stock_ledger, deterministic_clock):
    return PurchaseOrderService(session, stock_ledger, deterministic_clock)


@pytest.fixture
def sales_service(session: Session, stock_ledger, deterministic_clock) -> SalesService:
    return SalesService(session, stock_ledger, deterministic_clock)


# =============================================================================
# Data fixtures
# =============================================================================


@dataclass(frozen=True)
class Network:
    """The seeded location tree."""

    hq: LocationNode
    vn_branch: LocationNode
    vn_sub: LocationNode
    cn_branch: LocationNode
    kr_branch: LocationNode


def seed_network(location_service: LocationService, actor_id: UUID) -> Network:
    hq = location_service.create_location(
        "Seoul HQ", LocationType.HQ, actor_id, currency="KRW", country_code="KR"
    )
    vn_branch = location_service.create_location(
        "Hanoi Branch", LocationType.BRANCH, actor_id,
        parent_id=hq.id, currency="VND", country_code="VN",
    )
    vn_sub = location_service.create_location(
        "Hanoi District 1", LocationType.SUB_BRANCH, actor_id,
        parent_id=vn_branch.id, currency="VND", country_code="VN",
    )
    cn_branch = location_service.create_location(
        "Shanghai Branch", LocationType.BRANCH, actor_id,
        parent_id=hq.id, currency="CNY", country_code="CN",
    )
    kr_branch = location_service.create_location(
        "Busan Branch", LocationType.BRANCH, actor_id,
        parent_id=hq.id, currency="KRW", country_code="KR",
    )
    return Network(hq, vn_branch, vn_sub, cn_branch, kr_branch)


@pytest.fixture
def network(location_service, test_actor_id) -> Network:
    return seed_network(location_service, test_actor_id)


@pytest.fixture
def standard_rates(rate_service, test_actor_id):
    """KRW -> VND 18.5 and KRW -> CNY 0.0053, effective 2024-12-01."""
    rate_service.record_rate("KRW", "VND", Decimal("18.5"), RATE_DATE, test_actor_id)
    rate_service.record_rate("KRW", "CNY", Decimal("0.0053"), RATE_DATE, test_actor_id)
    return {"VND": Decimal("18.5"), "CNY": Decimal("0.0053")}


@pytest.fixture
def create_product(product_service: ProductService, test_actor_id: UUID):
    """Factory fixture to create test products."""
    counter = iter(range(1, 10_000))

    def _create_product(
        sku: str | None = None,
        base_cost: Decimal | None = Decimal("10000"),
        shelf_life_days: int = 365,
        name: str | None = None,
    ) -> ProductModel:
        sku = sku or f"SKU-{next(counter):04d}"
        return product_service.create_product(
            sku,
            name or f"Product {sku}",
            test_actor_id,
            shelf_life_days=shelf_life_days,
            base_cost=base_cost,
        )

    return _create_product


@pytest.fixture
def product(create_product) -> ProductModel:
    return create_product("GINSENG-500", base_cost=Decimal("10000"))


@pytest.fixture
def receive_stock(stock_ledger: StockLedger, deterministic_clock):
    """
    Factory fixture: receive one batch and advance the clock a second, so
    batches received later have a later created_at.
    """

    def _receive(
        location_id: UUID,
        product_id: UUID,
        batch_no: str,
        qty: int,
        expiry_date: date,
        unit_cost: Decimal = Decimal("6000"),
        quality_status: str = "OK",
    ) -> StockBatchModel:
        (batch,) = stock_ledger.receive(
            location_id,
            product_id,
            [
                ReceiptItem(
                    batch_no=batch_no,
                    qty=qty,
                    unit_cost=unit_cost,
                    expiry_date=expiry_date,
                    quality_status=quality_status,
                )
            ],
        )
        deterministic_clock.advance(1)
        return batch

    return _receive
