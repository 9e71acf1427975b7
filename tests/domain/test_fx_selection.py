"""
Tests for exchange-rate selection.

The applicable rate is the latest row on or before the as-of date; the
same currency is always the identity; a cross-currency miss raises.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from distribution_kernel.domain.currency import (
    CurrencyRegistry,
    normalize_currency,
)
from distribution_kernel.domain.fx import (
    IDENTITY_RATE,
    RateRow,
    resolve_rate,
    select_applicable_rate,
)
from distribution_kernel.exceptions import (
    ExchangeRateNotFoundError,
    InvalidCurrencyError,
)

BASE = date(2024, 1, 1)


def _row(days, rate, pair=("KRW", "VND")):
    return RateRow(pair[0], pair[1], BASE + timedelta(days=days), Decimal(rate))


class TestSelectApplicableRate:

    def test_latest_row_on_or_before_as_of(self):
        rows = [_row(0, "18.0"), _row(10, "18.5"), _row(20, "19.0")]
        assert resolve_rate(rows, "KRW", "VND", BASE + timedelta(days=15)) == Decimal("18.5")

    def test_row_effective_on_as_of_applies(self):
        rows = [_row(0, "18.0"), _row(10, "18.5")]
        assert resolve_rate(rows, "KRW", "VND", BASE + timedelta(days=10)) == Decimal("18.5")

    def test_future_rows_are_ignored(self):
        rows = [_row(5, "18.0")]
        assert select_applicable_rate(rows, "KRW", "VND", BASE) is None

    def test_other_pairs_are_ignored(self):
        rows = [_row(0, "0.0053", ("KRW", "CNY")), _row(0, "0.054", ("VND", "KRW"))]
        assert select_applicable_rate(rows, "KRW", "VND", BASE) is None

    def test_same_currency_is_identity_without_rows(self):
        assert resolve_rate([], "KRW", "KRW", BASE) == IDENTITY_RATE

    def test_cross_currency_miss_raises(self):
        with pytest.raises(ExchangeRateNotFoundError) as exc_info:
            resolve_rate([_row(5, "18.0")], "KRW", "VND", BASE)
        err = exc_info.value
        assert err.from_currency == "KRW"
        assert err.to_currency == "VND"
        assert err.as_of == BASE.isoformat()
        assert err.code == "EXCHANGE_RATE_NOT_FOUND"

    @given(
        offsets=st.lists(
            st.integers(min_value=0, max_value=365), min_size=1, max_size=20, unique=True
        ),
        as_of_offset=st.integers(min_value=0, max_value=400),
    )
    def test_selected_row_is_the_latest_eligible(self, offsets, as_of_offset):
        rows = [_row(o, str(o + 1)) for o in offsets]
        as_of = BASE + timedelta(days=as_of_offset)
        selected = select_applicable_rate(rows, "KRW", "VND", as_of)
        eligible = [o for o in offsets if o <= as_of_offset]
        if not eligible:
            assert selected is None
        else:
            assert selected.effective_date == BASE + timedelta(days=max(eligible))


class TestCurrencyRegistry:

    def test_zero_decimal_currencies(self):
        assert CurrencyRegistry.get("KRW").decimal_places == 0
        assert CurrencyRegistry.get("VND").minor_unit == Decimal("1")

    def test_two_decimal_currency(self):
        assert CurrencyRegistry.get("CNY").minor_unit == Decimal("0.01")

    def test_normalize_upper_cases_and_strips(self):
        assert normalize_currency(" vnd ") == "VND"

    @pytest.mark.parametrize("code", ["", "XXX", "KR", None])
    def test_unknown_codes_are_rejected(self, code):
        with pytest.raises(InvalidCurrencyError):
            normalize_currency(code)
