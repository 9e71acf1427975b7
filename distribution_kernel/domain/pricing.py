"""
Pricing cascade arithmetic (``distribution_kernel.domain.pricing``).

Responsibility
--------------
Pure price derivation for one hop of the location tree:

1. ``local_cost = (parent_price + transfer_cost) * exchange_rate``
2. ``price = local_cost / prod(1 - m / 100)`` over the margins, in order
3. ``final_price`` = price rounded half-up to the currency's increment
4. ``discounted_price = final_price * (1 - discount / 100)``, not re-rounded

Margins are percents: each one is the share of the final price kept as
profit by that level.  Only the two observed derivations are exposed by
name (``derive_branch_price``, ``derive_sub_branch_price``); longer chains
are not generalised.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  Rates and upstream prices are
supplied by ``PricingService``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from distribution_kernel.domain.currency import CurrencyRegistry
from distribution_kernel.exceptions import (
    InvalidExchangeRateError,
    InvalidMarginError,
    ValidationError,
)

HUNDRED = Decimal("100")
ZERO = Decimal("0")

DEFAULT_INCREMENTS: dict[str, Decimal] = {
    "KRW": Decimal("100"),
    "VND": Decimal("1000"),
    "CNY": Decimal("0.01"),
}


# =========================================================================
# Rounding
# =========================================================================


@dataclass(frozen=True)
class RoundingPolicy:
    """
    Per-currency rounding increments for final prices.

    Currencies without a configured increment round to their ISO minor
    unit (1 for KRW-like currencies, 0.01 for two-decimal ones); unknown
    codes fall back to 0.01.
    """

    increments: Mapping[str, Decimal] = field(
        default_factory=lambda: dict(DEFAULT_INCREMENTS)
    )

    def increment_for(self, currency: str) -> Decimal:
        configured = self.increments.get(currency)
        if configured is not None:
            return configured
        if CurrencyRegistry.is_valid(currency):
            return CurrencyRegistry.get(currency).minor_unit
        return Decimal("0.01")

    def round(self, amount: Decimal, currency: str) -> Decimal:
        increment = self.increment_for(currency)
        units = (amount / increment).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return units * increment


DEFAULT_ROUNDING = RoundingPolicy()


# =========================================================================
# Validation
# =========================================================================


def validate_margin(field_name: str, value: Decimal) -> Decimal:
    """
    Raises:
        InvalidMarginError: value outside [0, 100).
    """
    value = Decimal(value)
    if value < ZERO or value >= HUNDRED:
        raise InvalidMarginError(field_name, value, "must be >= 0 and < 100")
    return value


def validate_discount(value: Decimal) -> Decimal:
    value = Decimal(value)
    if value < ZERO or value > HUNDRED:
        raise InvalidMarginError("discount_percent", value, "must be between 0 and 100")
    return value


def validate_template_margins(hq_margin: Decimal, branch_margin: Decimal) -> None:
    """Both margins valid and their sum below 100."""
    hq = validate_margin("hq_margin_percent", hq_margin)
    branch = validate_margin("branch_margin_percent", branch_margin)
    if hq + branch >= HUNDRED:
        raise InvalidMarginError(
            "hq_margin_percent + branch_margin_percent",
            hq + branch,
            "combined margin must be < 100",
        )


# =========================================================================
# Derivation
# =========================================================================


@dataclass(frozen=True)
class PriceComputation:
    """Every intermediate of one hop, as stored on a PricingConfig row."""

    currency: str
    local_cost: Decimal
    calculated_price: Decimal
    final_price: Decimal
    discount_percent: Decimal
    discounted_price: Decimal
    margins: tuple[Decimal, ...]
    rounding_increment: Decimal


def apply_discount(final_price: Decimal, discount_percent: Decimal) -> Decimal:
    return final_price * (1 - validate_discount(discount_percent) / HUNDRED)


def compute_derived_price(
    parent_price: Decimal,
    transfer_cost: Decimal,
    exchange_rate: Decimal,
    margins: Sequence[Decimal],
    currency: str,
    rounding: RoundingPolicy = DEFAULT_ROUNDING,
    discount_percent: Decimal = ZERO,
) -> PriceComputation:
    """
    Derive a hop's price from the upstream price.

    Raises:
        ValidationError: negative price or transfer cost.
        InvalidExchangeRateError: rate <= 0.
        InvalidMarginError: any margin outside [0, 100), or discount
            outside [0, 100].
    """
    if parent_price < ZERO:
        raise ValidationError(f"parent_price must be >= 0, got {parent_price}")
    if transfer_cost < ZERO:
        raise ValidationError(f"transfer_cost must be >= 0, got {transfer_cost}")
    if exchange_rate <= ZERO:
        raise InvalidExchangeRateError(exchange_rate, "rate must be positive")

    local_cost = (parent_price + transfer_cost) * exchange_rate
    price = local_cost
    checked: list[Decimal] = []
    for position, margin in enumerate(margins):
        margin = validate_margin(f"margins[{position}]", margin)
        checked.append(margin)
        price = price / (1 - margin / HUNDRED)

    final_price = rounding.round(price, currency)
    discount = validate_discount(discount_percent)
    return PriceComputation(
        currency=currency,
        local_cost=local_cost,
        calculated_price=price,
        final_price=final_price,
        discount_percent=discount,
        discounted_price=apply_discount(final_price, discount),
        margins=tuple(checked),
        rounding_increment=rounding.increment_for(currency),
    )


def derive_branch_price(
    hq_price: Decimal,
    transfer_cost: Decimal,
    exchange_rate: Decimal,
    hq_margin_percent: Decimal,
    branch_margin_percent: Decimal,
    currency: str,
    rounding: RoundingPolicy = DEFAULT_ROUNDING,
    discount_percent: Decimal = ZERO,
) -> PriceComputation:
    """HQ -> Branch: HQ margin, then Branch margin, on the product's base cost."""
    return compute_derived_price(
        hq_price,
        transfer_cost,
        exchange_rate,
        (hq_margin_percent, branch_margin_percent),
        currency,
        rounding=rounding,
        discount_percent=discount_percent,
    )


def derive_sub_branch_price(
    branch_discounted_price: Decimal,
    transfer_cost: Decimal,
    exchange_rate: Decimal,
    sub_branch_margin_percent: Decimal,
    currency: str,
    rounding: RoundingPolicy = DEFAULT_ROUNDING,
    discount_percent: Decimal = ZERO,
) -> PriceComputation:
    """Branch -> SubBranch: one margin on the Branch's discounted price."""
    return compute_derived_price(
        branch_discounted_price,
        transfer_cost,
        exchange_rate,
        (sub_branch_margin_percent,),
        currency,
        rounding=rounding,
        discount_percent=discount_percent,
    )


# =========================================================================
# Profit split
# =========================================================================


@dataclass(frozen=True)
class ProfitSplit:
    total_amount: Decimal
    total_cost: Decimal
    total_margin: Decimal
    hq_profit: Decimal
    branch_profit: Decimal


def split_margin_profit(
    qty: int,
    unit_price: Decimal,
    unit_cost: Decimal,
    hq_margin_percent: Decimal,
    branch_margin_percent: Decimal,
) -> ProfitSplit:
    """
    Share a sale's margin between HQ and the Branch in proportion to their
    configured margin percents.  With both margins at zero neither side is
    credited.

    >>> split_margin_profit(1, Decimal("10000"), Decimal("6000"),
    ...                     Decimal("10"), Decimal("30")).hq_profit
    Decimal('1000')
    """
    total_amount = unit_price * qty
    total_cost = unit_cost * qty
    total_margin = total_amount - total_cost
    combined = hq_margin_percent + branch_margin_percent
    if combined == ZERO:
        return ProfitSplit(total_amount, total_cost, total_margin, ZERO, ZERO)
    hq_profit = total_margin * hq_margin_percent / combined
    return ProfitSplit(
        total_amount=total_amount,
        total_cost=total_cost,
        total_margin=total_margin,
        hq_profit=hq_profit,
        branch_profit=total_margin - hq_profit,
    )
