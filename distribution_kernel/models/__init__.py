"""ORM models for the distribution kernel."""

from distribution_kernel.models.exchange_rate import ExchangeRateModel
from distribution_kernel.models.location import LocationModel
from distribution_kernel.models.pricing import (
    PricingConfigModel,
    PricingTemplateApplicationModel,
    PricingTemplateModel,
)
from distribution_kernel.models.product import ProductModel
from distribution_kernel.models.purchase_order import (
    PurchaseOrderItemModel,
    PurchaseOrderModel,
)
from distribution_kernel.models.sale import SaleModel
from distribution_kernel.models.stock_batch import StockBatchModel
from distribution_kernel.models.transfer_request import TransferRequestModel

__all__ = [
    "ExchangeRateModel",
    "LocationModel",
    "PricingConfigModel",
    "PricingTemplateApplicationModel",
    "PricingTemplateModel",
    "ProductModel",
    "PurchaseOrderItemModel",
    "PurchaseOrderModel",
    "SaleModel",
    "StockBatchModel",
    "TransferRequestModel",
]
