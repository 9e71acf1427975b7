"""
Optimistic-lock retry behaviour of StockLedger.

SQLite has no row locks, so conflicts are simulated by units of work that
raise StaleDataError the way a version_id_col mismatch does at flush.
"""

from datetime import date

import pytest
from sqlalchemy import update
from sqlalchemy.orm.exc import StaleDataError

from distribution_kernel.config.schema import StockSettings
from distribution_kernel.exceptions import OptimisticLockError
from distribution_kernel.models.stock_batch import StockBatchModel
from distribution_kernel.services.stock_ledger import StockLedger


class TestRunAtomic:

    def test_conflict_is_retried_then_succeeds(self, stock_ledger, captured_logs):
        calls = []

        def unit():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("version mismatch")
            return "done"

        assert stock_ledger._run_atomic("test_op", "entity-1", unit) == "done"
        assert len(calls) == 2
        conflicts = [r for r in captured_logs() if r["message"] == "stock_lock_conflict"]
        assert len(conflicts) == 1
        assert conflicts[0]["attempt"] == 1
        assert conflicts[0]["operation"] == "test_op"

    def test_persistent_conflict_raises_after_max_retries(self, stock_ledger):
        calls = []

        def unit():
            calls.append(1)
            raise StaleDataError("version mismatch")

        with pytest.raises(OptimisticLockError) as exc_info:
            stock_ledger._run_atomic("test_op", "entity-1", unit)
        err = exc_info.value
        assert err.attempts == 3
        assert err.entity_type == "StockBatch"
        assert err.entity_id == "entity-1"
        assert err.code == "OPTIMISTIC_LOCK_CONFLICT"
        assert len(calls) == 3

    def test_retry_limit_comes_from_settings(self, session, deterministic_clock):
        ledger = StockLedger(session, deterministic_clock, StockSettings(max_lock_retries=1))
        calls = []

        def unit():
            calls.append(1)
            raise StaleDataError("version mismatch")

        with pytest.raises(OptimisticLockError):
            ledger._run_atomic("test_op", "entity-1", unit)
        assert len(calls) == 1

    def test_business_errors_are_not_retried(self, stock_ledger):
        calls = []

        def unit():
            calls.append(1)
            raise ValueError("not a conflict")

        with pytest.raises(ValueError):
            stock_ledger._run_atomic("test_op", "entity-1", unit)
        assert len(calls) == 1


class TestVersionColumn:

    def test_each_write_bumps_version(self, stock_ledger, network, product, receive_stock):
        batch = receive_stock(network.hq.id, product.id, "LOT-V", 10, date(2025, 6, 1))
        assert batch.version == 1
        stock_ledger.allocate(network.hq.id, product.id, 2)
        assert batch.version == 2

    def test_stale_in_memory_row_is_detected(
        self, session, network, product, receive_stock
    ):
        batch = receive_stock(network.hq.id, product.id, "LOT-V", 10, date(2025, 6, 1))
        # a concurrent writer bumps the version behind the ORM's back
        session.execute(
            update(StockBatchModel)
            .where(StockBatchModel.id == batch.id)
            .values(version=StockBatchModel.version + 1)
            .execution_options(synchronize_session=False)
        )
        batch.qty_reserved = 1
        with pytest.raises(StaleDataError):
            session.flush()

    def test_ledger_reads_fresh_rows_after_concurrent_write(
        self, session, stock_ledger, network, product, receive_stock
    ):
        batch = receive_stock(network.hq.id, product.id, "LOT-V", 10, date(2025, 6, 1))
        session.execute(
            update(StockBatchModel)
            .where(StockBatchModel.id == batch.id)
            .values(qty_reserved=4, version=StockBatchModel.version + 1)
            .execution_options(synchronize_session=False)
        )
        results = stock_ledger.allocate(network.hq.id, product.id, 6)
        assert results[0].qty == 6
        assert batch.qty_reserved == 10
        assert batch.version == 3
