"""
Tests for StockLedger.

These tests verify:
- FIFO allocation reserves exactly the requested quantity, or nothing
- Reserve / release keep 0 <= qty_reserved <= qty_on_hand
- Sales consumption decrements qty_on_hand
- Transfers conserve the product's total on-hand quantity and merge into
  matching destination batches
- Receipts default their expiry from the product's shelf life
- Quality flags take batches out of allocation
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from distribution_kernel.domain.stock import QualityStatus
from distribution_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    InvalidTransferRouteError,
    LocationNotFoundError,
    ReleaseExceedsReservedError,
    StockBatchNotFoundError,
    ValidationError,
)
from distribution_kernel.selectors.stock_selector import StockSelector
from distribution_kernel.services.stock_ledger import ReceiptItem

JAN = date(2025, 1, 1)
FEB = date(2025, 2, 1)
MAR = date(2025, 3, 1)


@pytest.fixture
def two_batches(network, product, receive_stock):
    """HQ holds 5 units expiring Jan 1 and 10 units expiring Feb 1."""
    b1 = receive_stock(network.hq.id, product.id, "LOT-JAN", 5, JAN)
    b2 = receive_stock(network.hq.id, product.id, "LOT-FEB", 10, FEB)
    return b1, b2


class TestAllocate:

    def test_allocation_is_fifo_and_exact(self, stock_ledger, network, product, two_batches):
        b1, b2 = two_batches
        results = stock_ledger.allocate(network.hq.id, product.id, 7)
        assert [(r.batch_id, r.qty) for r in results] == [(b1.id, 5), (b2.id, 2)]
        assert [r.batch_no for r in results] == ["LOT-JAN", "LOT-FEB"]
        assert b1.qty_available == 0
        assert b2.qty_available == 8
        assert b2.qty_on_hand == 10
        assert stock_ledger.available_qty(network.hq.id, product.id) == 8

    def test_shortfall_changes_nothing(self, stock_ledger, network, product, two_batches):
        b1, b2 = two_batches
        with pytest.raises(InsufficientStockError) as exc_info:
            stock_ledger.allocate(network.hq.id, product.id, 20)
        err = exc_info.value
        assert err.available == 15
        assert err.requested == 20
        assert err.location_id == str(network.hq.id)
        assert err.product_id == str(product.id)
        assert (b1.qty_reserved, b2.qty_reserved) == (0, 0)
        assert stock_ledger.available_qty(network.hq.id, product.id) == 15

    def test_successive_allocations_drain_in_order(
        self, stock_ledger, network, product, two_batches
    ):
        b1, b2 = two_batches
        stock_ledger.allocate(network.hq.id, product.id, 3)
        results = stock_ledger.allocate(network.hq.id, product.id, 3)
        assert [(r.batch_id, r.qty) for r in results] == [(b1.id, 2), (b2.id, 1)]

    def test_no_stock_at_location(self, stock_ledger, network, product, two_batches):
        with pytest.raises(InsufficientStockError) as exc_info:
            stock_ledger.allocate(network.kr_branch.id, product.id, 1)
        assert exc_info.value.available == 0

    @pytest.mark.parametrize("qty", [0, -3])
    def test_quantity_must_be_positive(self, stock_ledger, network, product, two_batches, qty):
        with pytest.raises(InvalidQuantityError):
            stock_ledger.allocate(network.hq.id, product.id, qty)

    def test_allocation_is_logged(
        self, stock_ledger, network, product, two_batches, captured_logs
    ):
        stock_ledger.allocate(network.hq.id, product.id, 7)
        record = next(r for r in captured_logs() if r["message"] == "stock_allocated")
        assert record["qty"] == 7
        assert record["batch_count"] == 2


class TestReserveRelease:

    def test_reserve_then_release(self, stock_ledger, network, product, two_batches):
        b1, b2 = two_batches
        stock_ledger.reserve(network.hq.id, product.id, 6)
        assert (b1.qty_reserved, b2.qty_reserved) == (5, 1)
        released = stock_ledger.release(network.hq.id, product.id, 6)
        assert [(r.batch_id, r.qty) for r in released] == [(b1.id, 5), (b2.id, 1)]
        assert (b1.qty_reserved, b2.qty_reserved) == (0, 0)

    def test_partial_release_is_fifo(self, stock_ledger, network, product, two_batches):
        b1, b2 = two_batches
        stock_ledger.reserve(network.hq.id, product.id, 8)
        stock_ledger.release(network.hq.id, product.id, 6)
        assert (b1.qty_reserved, b2.qty_reserved) == (0, 2)

    def test_release_more_than_reserved(self, stock_ledger, network, product, two_batches):
        stock_ledger.reserve(network.hq.id, product.id, 2)
        with pytest.raises(ReleaseExceedsReservedError):
            stock_ledger.release(network.hq.id, product.id, 3)


class TestConsumeForSale:

    def test_consume_reduces_on_hand(self, stock_ledger, network, product, two_batches):
        b1, b2 = two_batches
        results = stock_ledger.consume_for_sale(network.hq.id, product.id, 6)
        assert [(r.batch_id, r.qty) for r in results] == [(b1.id, 5), (b2.id, 1)]
        assert (b1.qty_on_hand, b2.qty_on_hand) == (0, 9)
        assert (b1.qty_reserved, b2.qty_reserved) == (0, 0)

    def test_reserved_units_are_not_sold(self, stock_ledger, network, product, two_batches):
        stock_ledger.reserve(network.hq.id, product.id, 12)
        with pytest.raises(InsufficientStockError) as exc_info:
            stock_ledger.consume_for_sale(network.hq.id, product.id, 4)
        assert exc_info.value.available == 3


class TestTransfer:

    def test_transfer_conserves_total(
        self, session, stock_ledger, network, product, two_batches
    ):
        selector = StockSelector(session)
        before = selector.total_on_hand(product.id)
        result = stock_ledger.transfer(network.hq.id, network.vn_branch.id, product.id, 7)
        assert selector.total_on_hand(product.id) == before == 15
        assert result.qty == 7
        assert [(line.batch_no, line.qty) for line in result.lines] == [
            ("LOT-JAN", 5), ("LOT-FEB", 2)
        ]
        assert stock_ledger.available_qty(network.hq.id, product.id) == 8
        assert stock_ledger.available_qty(network.vn_branch.id, product.id) == 7

    def test_destination_batches_keep_lot_identity(
        self, session, stock_ledger, network, product, two_batches
    ):
        stock_ledger.transfer(network.hq.id, network.vn_branch.id, product.id, 7)
        batches = StockSelector(session).batches(network.vn_branch.id, product.id)
        assert [(b.batch_no, b.expiry_date, b.qty_on_hand) for b in batches] == [
            ("LOT-JAN", JAN, 5), ("LOT-FEB", FEB, 2)
        ]
        assert all(b.unit_cost == Decimal("6000") for b in batches)

    def test_second_transfer_merges_into_existing_batch(
        self, session, stock_ledger, network, product, two_batches
    ):
        first = stock_ledger.transfer(network.hq.id, network.vn_branch.id, product.id, 6)
        second = stock_ledger.transfer(network.hq.id, network.vn_branch.id, product.id, 3)
        assert second.lines[0].destination_batch_id == first.lines[1].destination_batch_id
        batches = StockSelector(session).batches(network.vn_branch.id, product.id)
        assert [(b.batch_no, b.qty_on_hand) for b in batches] == [
            ("LOT-JAN", 5), ("LOT-FEB", 4)
        ]

    def test_quarantined_destination_lot_is_not_merged(
        self, session, stock_ledger, network, product, receive_stock
    ):
        receive_stock(network.hq.id, product.id, "LOT-A", 10, MAR)
        held = receive_stock(network.kr_branch.id, product.id, "LOT-A", 2, MAR)
        stock_ledger.set_quality_status(held.id, QualityStatus.QUARANTINE)

        result = stock_ledger.transfer(network.hq.id, network.kr_branch.id, product.id, 4)

        assert result.lines[0].destination_batch_id != held.id
        assert held.qty_on_hand == 2
        assert stock_ledger.available_qty(network.hq.id, product.id) == 6
        assert stock_ledger.available_qty(network.kr_branch.id, product.id) == 4
        statuses = {
            b.quality_status: b.qty_on_hand
            for b in StockSelector(session).batches(network.kr_branch.id, product.id)
        }
        assert statuses == {QualityStatus.OK: 4, QualityStatus.QUARANTINE: 2}

    def test_transfer_back_up_the_tree(
        self, stock_ledger, network, product, two_batches
    ):
        stock_ledger.transfer(network.hq.id, network.vn_branch.id, product.id, 7)
        stock_ledger.transfer(network.vn_branch.id, network.hq.id, product.id, 7)
        assert stock_ledger.available_qty(network.hq.id, product.id) == 15
        assert stock_ledger.available_qty(network.vn_branch.id, product.id) == 0

    def test_shortfall_moves_nothing(
        self, session, stock_ledger, network, product, two_batches
    ):
        with pytest.raises(InsufficientStockError):
            stock_ledger.transfer(network.hq.id, network.vn_branch.id, product.id, 16)
        assert stock_ledger.available_qty(network.hq.id, product.id) == 15
        assert StockSelector(session).batches(network.vn_branch.id, product.id) == []

    def test_same_location_is_rejected(self, stock_ledger, network, product, two_batches):
        with pytest.raises(InvalidTransferRouteError):
            stock_ledger.transfer(network.hq.id, network.hq.id, product.id, 1)

    def test_unknown_destination(self, stock_ledger, network, product, two_batches):
        with pytest.raises(LocationNotFoundError):
            stock_ledger.transfer(network.hq.id, uuid4(), product.id, 1)


class TestReceive:

    def test_expiry_defaults_from_shelf_life(self, stock_ledger, network, product):
        (batch,) = stock_ledger.receive(
            network.hq.id,
            product.id,
            [ReceiptItem("LOT-X", 12, Decimal("6100"), manufactured_date=date(2025, 1, 1))],
        )
        # product shelf life is 365 days
        assert batch.expiry_date == date(2026, 1, 1)
        assert batch.qty_on_hand == 12
        assert batch.qty_reserved == 0
        assert batch.created_at == datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)

    def test_explicit_expiry_wins(self, stock_ledger, network, product):
        (batch,) = stock_ledger.receive(
            network.hq.id,
            product.id,
            [ReceiptItem("LOT-Y", 1, manufactured_date=JAN, expiry_date=MAR)],
        )
        assert batch.expiry_date == MAR

    def test_missing_dates(self, stock_ledger, network, product):
        with pytest.raises(ValidationError):
            stock_ledger.receive(network.hq.id, product.id, [ReceiptItem("LOT-Z", 1)])

    def test_empty_receipt(self, stock_ledger, network, product):
        with pytest.raises(ValidationError):
            stock_ledger.receive(network.hq.id, product.id, [])

    def test_bad_quantity(self, stock_ledger, network, product):
        with pytest.raises(InvalidQuantityError):
            stock_ledger.receive(
                network.hq.id, product.id, [ReceiptItem("LOT-Q", 0, expiry_date=MAR)]
            )

    def test_inactive_location(
        self, stock_ledger, location_service, network, product, test_actor_id
    ):
        location_service.deactivate_location(network.vn_sub.id, test_actor_id)
        with pytest.raises(ValidationError, match="inactive"):
            stock_ledger.receive(
                network.vn_sub.id, product.id, [ReceiptItem("LOT-I", 1, expiry_date=MAR)]
            )


class TestQualityStatus:

    def test_quarantined_batch_is_skipped(self, stock_ledger, network, product, two_batches):
        b1, b2 = two_batches
        stock_ledger.set_quality_status(b1.id, QualityStatus.QUARANTINE)
        assert stock_ledger.available_qty(network.hq.id, product.id) == 10
        results = stock_ledger.allocate(network.hq.id, product.id, 4)
        assert [r.batch_id for r in results] == [b2.id]

    def test_restoring_ok_makes_batch_eligible_again(
        self, stock_ledger, network, product, two_batches
    ):
        b1, _ = two_batches
        stock_ledger.set_quality_status(b1.id, "Damaged")
        stock_ledger.set_quality_status(b1.id, "OK")
        results = stock_ledger.allocate(network.hq.id, product.id, 1)
        assert results[0].batch_id == b1.id

    def test_unknown_batch(self, stock_ledger):
        with pytest.raises(StockBatchNotFoundError):
            stock_ledger.set_quality_status(uuid4(), QualityStatus.DAMAGED)

    def test_unknown_status(self, stock_ledger, two_batches):
        with pytest.raises(ValueError):
            stock_ledger.set_quality_status(two_batches[0].id, "Lost")
