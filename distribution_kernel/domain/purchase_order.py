"""
Purchase order lifecycle (``distribution_kernel.domain.purchase_order``).

    Draft --> Approved --> Received

Only a Draft order can be approved and only an Approved order can be
received.  Received is terminal.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from distribution_kernel.domain.stock import validate_quantity
from distribution_kernel.exceptions import InvalidTransitionError, ValidationError


class PurchaseOrderStatus(str, Enum):
    DRAFT = "Draft"
    APPROVED = "Approved"
    RECEIVED = "Received"


PURCHASE_ORDER_TRANSITIONS: dict[PurchaseOrderStatus, frozenset[PurchaseOrderStatus]] = {
    PurchaseOrderStatus.DRAFT: frozenset({PurchaseOrderStatus.APPROVED}),
    PurchaseOrderStatus.APPROVED: frozenset({PurchaseOrderStatus.RECEIVED}),
    PurchaseOrderStatus.RECEIVED: frozenset(),
}


def ensure_order_transition(
    current: PurchaseOrderStatus | str,
    attempted: PurchaseOrderStatus | str,
    order_id: str | None = None,
) -> PurchaseOrderStatus:
    """
    Return ``attempted`` as a PurchaseOrderStatus if the edge exists.

    Raises:
        InvalidTransitionError: the edge is not in PURCHASE_ORDER_TRANSITIONS.
    """
    current = PurchaseOrderStatus(current)
    attempted = PurchaseOrderStatus(attempted)
    if attempted not in PURCHASE_ORDER_TRANSITIONS[current]:
        raise InvalidTransitionError(
            current.value, attempted.value, order_id, entity="purchase order"
        )
    return attempted


@dataclass(frozen=True)
class OrderLine:
    """One ordered product.  ``unit_price`` is in the ordering location's currency."""

    product_id: UUID
    quantity: int
    unit_price: Decimal

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity


def validate_order_lines(lines: Iterable[OrderLine]) -> list[OrderLine]:
    """At least one line, positive quantities, non-negative prices, one line per product."""
    lines = list(lines)
    if not lines:
        raise ValidationError("at least one order line is required")
    seen: set[UUID] = set()
    for line in lines:
        validate_quantity(line.quantity, "order quantity")
        if line.unit_price < 0:
            raise ValidationError(f"unit_price must be >= 0, got {line.unit_price}")
        if line.product_id in seen:
            raise ValidationError(f"product {line.product_id} appears on more than one line")
        seen.add(line.product_id)
    return lines


def order_total(lines: Iterable[OrderLine]) -> Decimal:
    return sum((line.total_price for line in lines), Decimal("0"))
