"""Tests for the structured logging system (distribution_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from distribution_kernel.exceptions import InsufficientStockError, InvalidTransitionError
from distribution_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)

MAR = date(2025, 3, 1)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Kernel payloads rendered as JSON lines."""

    def test_kernel_exception_code_extracted(self):
        """Kernel exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        try:
            raise InsufficientStockError(available=15, requested=20)
        except InsufficientStockError:
            logger.error("allocation_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_available"] == 15
        assert record["exc_requested"] == 20

    def test_transition_error_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InvalidTransitionError("Completed", "Approved", request_id="r-9")
        except InvalidTransitionError:
            get_logger("test").warning("transition_refused", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INVALID_TRANSITION"
        assert record["exc_current"] == "Completed"
        assert "traceback" in record

    def test_uuid_decimal_and_date_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info(
            "typed_values",
            extra={
                "batch_id": uid,
                "final_price": Decimal("14600"),
                "effective_date": date(2025, 1, 1),
            },
        )

        record = _parse_log(stream)
        assert record["batch_id"] == str(uid)
        assert record["final_price"] == "14600"
        assert record["effective_date"] == "2025-01-01"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", location_id="loc-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["location_id"] == "loc-1"
        assert "actor_id" not in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Context fields carried by kernel operations."""

    def test_bind_restores_outer_actor(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner"):
            assert LogContext.get_all()["actor_id"] == "inner"
        assert LogContext.get_all()["actor_id"] == "outer"

    def test_bind_stringifies_values(self):
        uid = uuid4()
        with LogContext.bind(actor_id=uid):
            assert LogContext.get_all()["actor_id"] == str(uid)

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(tenant="acme"):
            assert LogContext.get_all() == {}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            location_id="l",
            product_id="p",
            request_id="r",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["request_id"] == "r"


# ---------------------------------------------------------------------------
# Kernel events
# ---------------------------------------------------------------------------


class TestKernelEvents:
    """Stock movements emit one structured line each."""

    def test_allocation_event_payload(self, captured_logs, stock_ledger, network, product, receive_stock):
        receive_stock(network.hq.id, product.id, "LOT-A", 5, MAR)
        receive_stock(network.hq.id, product.id, "LOT-B", 5, MAR)
        actor = uuid4()

        with LogContext.bind(actor_id=actor):
            stock_ledger.allocate(network.hq.id, product.id, 7)

        (record,) = [r for r in captured_logs() if r["message"] == "stock_allocated"]
        assert record["actor_id"] == str(actor)
        assert record["location_id"] == str(network.hq.id)
        assert record["qty"] == 7
        assert record["batch_count"] == 2
        assert record["logger"] == "distribution_kernel.services.stock_ledger"

    def test_rejected_allocation_emits_no_event(self, captured_logs, stock_ledger, network, product, receive_stock):
        receive_stock(network.hq.id, product.id, "LOT-A", 3, MAR)

        with pytest.raises(InsufficientStockError):
            stock_ledger.allocate(network.hq.id, product.id, 4)

        assert not [r for r in captured_logs() if r["message"] == "stock_allocated"]


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("distribution_kernel")
        assert h1 in root.handlers
        assert h2 not in root.handlers

    def test_kernel_tree_does_not_propagate(self):
        configure_logging(level=logging.DEBUG, stream=StringIO())
        root = logging.getLogger("distribution_kernel")
        assert root.propagate is False
        assert root.level == logging.DEBUG
