"""
Typed Exception Hierarchy for the Distribution Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the web layer, batch tools, tests) must be able to react to a
failure without parsing message strings:

    try:
        ledger.transfer(from_id, to_id, product_id, qty)
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

Every exception carries:
  1. A CODE class attribute (machine-readable, API-safe)
  2. Structured DATA attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    DistributionKernelError (base)
    |
    +-- NotFoundError
    |   +-- LocationNotFoundError
    |   +-- ProductNotFoundError
    |   +-- PricingConfigNotFoundError
    |   +-- PricingTemplateNotFoundError
    |   +-- StockBatchNotFoundError
    |   +-- TransferRequestNotFoundError
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- InvalidMarginError
    |   +-- InvalidSkuError
    |   +-- InvalidCurrencyError
    |   +-- InvalidExchangeRateError
    |   +-- DuplicateExchangeRateError
    |   +-- DuplicateSkuError
    |   +-- InvalidHierarchyError
    |   +-- InvalidTransferRouteError
    |   +-- ProductReferencedError
    |   +-- MissingBaseCostError
    |   +-- ReleaseExceedsReservedError
    |
    +-- InsufficientStockError
    +-- ExchangeRateNotFoundError
    +-- ChainIncompleteError
    +-- InvalidTransitionError
    +-- CorruptHierarchyError
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    +-- TemplateApplicationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | LOCATION_NOT_FOUND          | Location id unknown
                | PRODUCT_NOT_FOUND           | Product id unknown
                | PRICING_CONFIG_NOT_FOUND    | No config for (product, location)
                | PRICING_TEMPLATE_NOT_FOUND  | Template id unknown or inactive
                | STOCK_BATCH_NOT_FOUND       | Batch id unknown
                | TRANSFER_REQUEST_NOT_FOUND  | Transfer request id unknown
                | PURCHASE_ORDER_NOT_FOUND    | Purchase order id unknown
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_QUANTITY            | qty <= 0 or not an integer
                | INVALID_MARGIN              | margin outside [0, 100)
                | INVALID_SKU                 | SKU does not match [A-Z0-9-]+
                | INVALID_CURRENCY            | Not a 3-letter ISO 4217 code
                | INVALID_EXCHANGE_RATE       | Rate is zero or negative
                | DUPLICATE_EXCHANGE_RATE     | (from, to, effective_date) exists
                | DUPLICATE_SKU               | SKU already registered
                | INVALID_HIERARCHY           | Parent/type rule or reparent rule broken
                | INVALID_TRANSFER_ROUTE      | Not a direct parent <-> child move
                | PRODUCT_REFERENCED          | Immutable product field edited
                | MISSING_BASE_COST           | Product has no HQ base cost
                | RELEASE_EXCEEDS_RESERVED    | Releasing more than is reserved
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Allocation/transfer/reserve shortfall
FX              | EXCHANGE_RATE_NOT_FOUND     | No rate for pair on or before date
Pricing         | CHAIN_INCOMPLETE            | Price chain has a gap (non-fatal)
                | TEMPLATE_APPLICATION_FAILED | Bulk apply rejected as a whole
Workflow        | INVALID_TRANSITION          | State machine misuse
Integrity       | CORRUPT_HIERARCHY           | Cycle or orphan in location tree
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Lock conflict after bounded retries

===============================================================================
PROPAGATION
===============================================================================

- ValidationError / NotFoundError: rejected at the boundary, never retried.
- OptimisticLockError: raised only after the ledger's own bounded retries.
- InsufficientStockError: business-rule failure, reported and never retried.
- CorruptHierarchyError: data integrity failure, never retried.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal


class DistributionKernelError(Exception):
    """
    Base exception for all distribution kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "DISTRIBUTION_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(DistributionKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class LocationNotFoundError(NotFoundError):
    """Location with given ID was not found."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Location not found: {location_id}")


class ProductNotFoundError(NotFoundError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class PricingConfigNotFoundError(NotFoundError):
    """No pricing config exists for the (product, location) pair."""

    code: str = "PRICING_CONFIG_NOT_FOUND"

    def __init__(self, product_id: str, location_id: str):
        self.product_id = product_id
        self.location_id = location_id
        super().__init__(
            f"No pricing config for product {product_id} at location {location_id}"
        )


class PricingTemplateNotFoundError(NotFoundError):
    """Pricing template with given ID was not found or is inactive."""

    code: str = "PRICING_TEMPLATE_NOT_FOUND"

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Pricing template not found or inactive: {template_id}")


class StockBatchNotFoundError(NotFoundError):
    """Stock batch with given ID was not found."""

    code: str = "STOCK_BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Stock batch not found: {batch_id}")


class TransferRequestNotFoundError(NotFoundError):
    """Transfer request with given ID was not found."""

    code: str = "TRANSFER_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Transfer request not found: {request_id}")


class PurchaseOrderNotFoundError(NotFoundError):
    """Purchase order with given ID was not found."""

    code: str = "PURCHASE_ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Purchase order not found: {order_id}")


# Validation exceptions


class ValidationError(DistributionKernelError):
    """Base exception for malformed input."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity must be a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object, field: str = "qty"):
        self.quantity = quantity
        self.field = field
        super().__init__(f"{field} must be a positive integer, got {quantity!r}")


class InvalidMarginError(ValidationError):
    """Margin or discount percent is outside its permitted range."""

    code: str = "INVALID_MARGIN"

    def __init__(self, field: str, value: Decimal, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value}: {reason}")


class InvalidSkuError(ValidationError):
    """SKU does not match the [A-Z0-9-]+ pattern."""

    code: str = "INVALID_SKU"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Invalid SKU {sku!r}: must match [A-Z0-9-]+")


class DuplicateSkuError(ValidationError):
    """SKU is already registered to another product."""

    code: str = "DUPLICATE_SKU"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU already exists: {sku}")


class InvalidCurrencyError(ValidationError):
    """Currency code is not a valid ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: object):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: {currency!r}")


class InvalidExchangeRateError(ValidationError):
    """Exchange rate value is invalid (zero, negative or same-currency)."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, rate: object, reason: str):
        self.rate = rate
        self.reason = reason
        super().__init__(f"Invalid exchange rate {rate}: {reason}")


class DuplicateExchangeRateError(ValidationError):
    """A rate already exists for (from, to, effective_date)."""

    code: str = "DUPLICATE_EXCHANGE_RATE"

    def __init__(self, from_currency: str, to_currency: str, effective_date: date):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.effective_date = effective_date
        super().__init__(
            f"Exchange rate {from_currency}/{to_currency} already exists "
            f"for {effective_date.isoformat()}"
        )


class InvalidHierarchyError(ValidationError):
    """A location operation would break the HQ -> Branch -> SubBranch rules."""

    code: str = "INVALID_HIERARCHY"

    def __init__(self, location_id: str | None, reason: str):
        self.location_id = location_id
        self.reason = reason
        super().__init__(f"Invalid hierarchy change for {location_id}: {reason}")


class InvalidTransferRouteError(ValidationError):
    """Stock may only move between a location and its direct parent or child."""

    code: str = "INVALID_TRANSFER_ROUTE"

    def __init__(self, from_location_id: str, to_location_id: str, reason: str):
        self.from_location_id = from_location_id
        self.to_location_id = to_location_id
        self.reason = reason
        super().__init__(
            f"Cannot transfer {from_location_id} -> {to_location_id}: {reason}"
        )


class ProductReferencedError(ValidationError):
    """Product field is frozen because stock or pricing references it."""

    code: str = "PRODUCT_REFERENCED"

    def __init__(self, product_id: str, field: str):
        self.product_id = product_id
        self.field = field
        super().__init__(
            f"Product {product_id} is referenced by stock or pricing; "
            f"{field} cannot change"
        )


class MissingBaseCostError(ValidationError):
    """Product has no HQ base cost, so no price can be derived from it."""

    code: str = "MISSING_BASE_COST"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} has no base cost")


class ReleaseExceedsReservedError(ValidationError):
    """Attempted to release more than is currently reserved."""

    code: str = "RELEASE_EXCEEDS_RESERVED"

    def __init__(self, reserved: int, requested: int):
        self.reserved = reserved
        self.requested = requested
        super().__init__(
            f"Cannot release {requested} units: only {reserved} reserved"
        )


# Stock exceptions


class InsufficientStockError(DistributionKernelError):
    """Eligible batches hold less than the requested quantity."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        available: int,
        requested: int,
        location_id: str | None = None,
        product_id: str | None = None,
    ):
        self.available = available
        self.requested = requested
        self.location_id = location_id
        self.product_id = product_id
        super().__init__(
            f"Insufficient stock. Requested: {requested}, Available: {available}"
        )


# FX exceptions


class ExchangeRateNotFoundError(DistributionKernelError):
    """No exchange rate found for the currency pair on or before the date."""

    code: str = "EXCHANGE_RATE_NOT_FOUND"

    def __init__(self, from_currency: str, to_currency: str, as_of: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.as_of = as_of
        super().__init__(
            f"No exchange rate found for {from_currency}/{to_currency} as of {as_of}"
        )


# Pricing exceptions


class ChainIncompleteError(DistributionKernelError):
    """
    A pricing chain has no config at some hop.

    Non-fatal: resolve_chain reports it through PriceChain.error and keeps
    the partial hops.  Raised only when a caller asks for a complete chain.
    """

    code: str = "CHAIN_INCOMPLETE"

    def __init__(self, product_id: str, broken_at_location_id: str):
        self.product_id = product_id
        self.broken_at_location_id = broken_at_location_id
        super().__init__(
            f"Pricing chain for product {product_id} is incomplete "
            f"at location {broken_at_location_id}"
        )


class TemplateApplicationError(DistributionKernelError):
    """A bulk template apply was rejected; no rows were written."""

    code: str = "TEMPLATE_APPLICATION_FAILED"

    def __init__(
        self,
        template_id: str,
        product_id: str,
        location_id: str,
        cause_code: str,
        reason: str,
    ):
        self.template_id = template_id
        self.product_id = product_id
        self.location_id = location_id
        self.cause_code = cause_code
        self.reason = reason
        super().__init__(
            f"Template {template_id} rejected at product {product_id} / "
            f"location {location_id} ({cause_code}): {reason}"
        )


# Workflow exceptions


class InvalidTransitionError(DistributionKernelError):
    """State machine transition is not permitted from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        current: str,
        attempted: str,
        request_id: str | None = None,
        entity: str = "transfer request",
    ):
        self.current = current
        self.attempted = attempted
        self.request_id = request_id
        self.entity = entity
        super().__init__(
            f"Invalid transition from {current} to {attempted}"
            + (f" for {entity} {request_id}" if request_id else "")
        )


# Integrity exceptions


class CorruptHierarchyError(DistributionKernelError):
    """
    The location tree contains a cycle or an orphan.

    Should never happen; treated as a fatal integrity error.
    """

    code: str = "CORRUPT_HIERARCHY"

    def __init__(self, location_id: str, reason: str):
        self.location_id = location_id
        self.reason = reason
        super().__init__(f"Corrupt location hierarchy at {location_id}: {reason}")


# Concurrency exceptions


class ConcurrencyError(DistributionKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict persisted through every retry."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, attempts: int = 1):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.attempts = attempts
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"entity was modified by another transaction ({attempts} attempts)"
        )
