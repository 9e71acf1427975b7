"""Read-only query selectors."""

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

__all__ = [
    "LocationSelector",
    "PurchaseOrderDTO",
    "PurchaseOrderSelector",
    "StockBatchDTO",
    "StockSelector",
    "StockSummaryDTO",
    "TransferRequestDTO",
    "TransferRequestSelector",
]
