"""Kernel services: every write path into the distribution kernel."""

from distribution_kernel.services.back_office import BackOffice, Caller
from distribution_kernel.services.exchange_rate_service import ExchangeRateService
from distribution_kernel.services.location_service import LocationService
from distribution_kernel.services.pricing_service import (
    PriceChain,
    PriceHop,
    PricingService,
    TemplateApplicationResult,
    TemplatePreviewRow,
)
from distribution_kernel.services.product_service import ProductService
from distribution_kernel.services.purchase_order_service import PurchaseOrderService
from distribution_kernel.services.sales_service import SaleResult, SalesService
from distribution_kernel.services.stock_ledger import (
    AllocationResult,
    ReceiptItem,
    StockLedger,
    TransferLine,
    TransferResult,
)
from distribution_kernel.services.transfer_request_service import (
    TransferRequestService,
)

__all__ = [
    "AllocationResult",
    "BackOffice",
    "Caller",
    "ExchangeRateService",
    "LocationService",
    "PriceChain",
    "PriceHop",
    "PricingService",
    "ProductService",
    "PurchaseOrderService",
    "ReceiptItem",
    "SaleResult",
    "SalesService",
    "StockLedger",
    "TemplateApplicationResult",
    "TemplatePreviewRow",
    "TransferLine",
    "TransferRequestService",
    "TransferResult",
]
