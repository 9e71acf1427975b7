"""
Tests for ExchangeRateService.

These tests verify:
- Rates are validated and unique per (from, to, effective_date)
- resolve() picks the latest row on or before the as-of date
- Same-currency lookups are the identity; cross-currency misses raise
"""

from datetime import date
from decimal import Decimal

import pytest

from distribution_kernel.exceptions import (
    DuplicateExchangeRateError,
    ExchangeRateNotFoundError,
    InvalidCurrencyError,
    InvalidExchangeRateError,
)


class TestRecordRate:

    def test_record_normalises_codes(self, rate_service, test_actor_id):
        row = rate_service.record_rate(
            "krw", "vnd", Decimal("18.5"), date(2025, 1, 1), test_actor_id
        )
        assert (row.from_currency, row.to_currency) == ("KRW", "VND")
        assert row.rate == Decimal("18.5")

    @pytest.mark.parametrize("rate", [Decimal("0"), Decimal("-2")])
    def test_non_positive_rate(self, rate_service, test_actor_id, rate):
        with pytest.raises(InvalidExchangeRateError):
            rate_service.record_rate("KRW", "VND", rate, date(2025, 1, 1), test_actor_id)

    def test_same_currency_pair(self, rate_service, test_actor_id):
        with pytest.raises(InvalidExchangeRateError):
            rate_service.record_rate("KRW", "KRW", Decimal("1"), date(2025, 1, 1), test_actor_id)

    def test_unknown_currency(self, rate_service, test_actor_id):
        with pytest.raises(InvalidCurrencyError):
            rate_service.record_rate("KRW", "ABC", Decimal("1"), date(2025, 1, 1), test_actor_id)

    def test_duplicate_effective_date(self, rate_service, test_actor_id):
        rate_service.record_rate("KRW", "VND", Decimal("18.5"), date(2025, 1, 1), test_actor_id)
        with pytest.raises(DuplicateExchangeRateError):
            rate_service.record_rate(
                "KRW", "VND", Decimal("19"), date(2025, 1, 1), test_actor_id
            )

    def test_inverse_pair_is_a_separate_row(self, rate_service, test_actor_id):
        rate_service.record_rate("KRW", "VND", Decimal("18.5"), date(2025, 1, 1), test_actor_id)
        rate_service.record_rate("VND", "KRW", Decimal("0.054"), date(2025, 1, 1), test_actor_id)
        assert rate_service.resolve("VND", "KRW", date(2025, 1, 1)) == Decimal("0.054")


class TestResolve:

    @pytest.fixture
    def history(self, rate_service, test_actor_id):
        rate_service.record_rate("KRW", "VND", Decimal("18.0"), date(2024, 6, 1), test_actor_id)
        rate_service.record_rate("KRW", "VND", Decimal("18.5"), date(2024, 12, 1), test_actor_id)
        rate_service.record_rate("KRW", "VND", Decimal("19.25"), date(2025, 3, 1), test_actor_id)

    def test_latest_on_or_before(self, rate_service, history):
        assert rate_service.resolve("KRW", "VND", date(2025, 2, 28)) == Decimal("18.5")
        assert rate_service.resolve("KRW", "VND", date(2025, 3, 1)) == Decimal("19.25")
        assert rate_service.resolve("KRW", "VND", date(2024, 6, 1)) == Decimal("18.0")

    def test_defaults_to_clock_today(self, rate_service, history):
        # deterministic clock: 2025-01-01
        assert rate_service.resolve("KRW", "VND") == Decimal("18.5")

    def test_before_first_row_raises(self, rate_service, history):
        with pytest.raises(ExchangeRateNotFoundError) as exc_info:
            rate_service.resolve("KRW", "VND", date(2024, 5, 31))
        assert exc_info.value.as_of == "2024-05-31"

    def test_missing_pair_raises(self, rate_service, history):
        with pytest.raises(ExchangeRateNotFoundError):
            rate_service.resolve("KRW", "CNY", date(2025, 1, 1))

    def test_same_currency_needs_no_row(self, rate_service):
        assert rate_service.resolve("KRW", "KRW", date(2025, 1, 1)) == Decimal("1")

    def test_codes_are_normalised_before_lookup(self, rate_service, history):
        assert rate_service.resolve("krw", " VND ", date(2025, 1, 1)) == Decimal("18.5")
        assert rate_service.resolve("KRW", "krw") == Decimal("1")

    def test_unknown_code_is_rejected(self, rate_service):
        with pytest.raises(InvalidCurrencyError):
            rate_service.resolve("KRW", "XXZ")

    def test_latest_rates_per_pair(self, rate_service, history, test_actor_id):
        rate_service.record_rate("KRW", "CNY", Decimal("0.0053"), date(2024, 12, 1), test_actor_id)
        rows = rate_service.latest_rates(date(2025, 1, 15))
        assert [(r.from_currency, r.to_currency, r.rate) for r in rows] == [
            ("KRW", "CNY", Decimal("0.0053")),
            ("KRW", "VND", Decimal("18.5")),
        ]
