"""Back-office engine for a digital print shop.

This package provides the data model, tier pricing, payment settlement,
production tracking and reporting used by the shop's order desk, cashier
and production floor.
"""

from .domain import (
    Customer,
    CustomerTier,
    ItemDraft,
    Material,
    Order,
    OrderItem,
    Payment,
    PaymentStatus,
    ProductionStatus,
    ValidationError,
    InvalidTransitionError,
    WorkflowStatus,
)
from .services import OrderSummary, PrintShopService

__all__ = [
    "Customer",
    "CustomerTier",
    "ItemDraft",
    "Material",
    "Order",
    "OrderItem",
    "Payment",
    "PaymentStatus",
    "ProductionStatus",
    "ValidationError",
    "InvalidTransitionError",
    "WorkflowStatus",
    "OrderSummary",
    "PrintShopService",
]
