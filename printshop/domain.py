"""Core data structures for the print-shop back office."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class ValidationError(ValueError):
    """Raised for user-correctable input problems before anything is stored."""


class InvalidTransitionError(ValidationError):
    """Raised when a state machine refuses the requested move."""


class CustomerTier(str, Enum):
    """Pricing category of a customer; selects one of the material prices."""

    END_CUSTOMER = "End Customer"
    RETAIL = "Retail"
    WHOLESALE = "Wholesale"
    RESELLER = "Reseller"
    CORPORATE = "Corporate"


class PaymentStatus(str, Enum):
    """Settlement state derived from the order total and the payments."""

    UNPAID = "Unpaid"
    PAID = "Paid"


class WorkflowStatus(str, Enum):
    """Order lifecycle from intake to active production."""

    PENDING = "Pending"
    IN_PROGRESS = "In Progress"


class ProductionStatus(str, Enum):
    """Fabrication progress of a single order item."""

    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    DONE = "Done"

    @property
    def rank(self) -> int:
        return {
            ProductionStatus.NOT_STARTED: 0,
            ProductionStatus.IN_PROGRESS: 1,
            ProductionStatus.DONE: 2,
        }[self]


class EmployeePosition(str, Enum):
    CASHIER = "Cashier"
    DESIGNER = "Designer"
    SALES = "Sales"
    OFFICE = "Office"
    PRODUCTION = "Production"
    ADMIN = "Admin"


@dataclass(slots=True)
class Customer:
    """Customer master data."""

    id: str
    name: str
    tier: CustomerTier
    email: str = ""
    phone: str = ""
    address: str = ""


@dataclass(slots=True)
class Material:
    """Printable material ("bahan") with one unit price per customer tier."""

    id: str
    name: str
    price_end_customer: int
    price_retail: int
    price_wholesale: int
    price_reseller: int
    price_corporate: int

    def __post_init__(self) -> None:
        for tier_field in (
            "price_end_customer",
            "price_retail",
            "price_wholesale",
            "price_reseller",
            "price_corporate",
        ):
            value = getattr(self, tier_field)
            if value is None:
                raise ValidationError(f"Material price {tier_field} is required")
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"Material price {tier_field} must be a whole amount")
            if value < 0:
                raise ValidationError(f"Material price {tier_field} must not be negative")


@dataclass(slots=True)
class OrderItem:
    """A single printed product on an order."""

    id: str
    material_id: Optional[str]
    description: str = ""
    length: Decimal = Decimal("0")
    width: Decimal = Decimal("0")
    quantity: int = 1
    production_status: ProductionStatus = ProductionStatus.NOT_STARTED
    finishing: str = ""


@dataclass(slots=True)
class Payment:
    """A single installment paid against an order."""

    id: str
    order_id: str
    amount: int
    payment_date: date
    cashier_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(slots=True)
class Order:
    """A customer order with its items and the payments made against it.

    ``payment_status`` is a stored projection of the items and payments; the
    service layer rewrites it after every mutation that can change either.
    """

    id: str
    invoice_number: str
    order_date: date
    customer_id: str
    items: List[OrderItem] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)
    assigned_worker_id: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    workflow_status: WorkflowStatus = WorkflowStatus.PENDING
    created_at: datetime = field(default_factory=datetime.utcnow)

    def find_item(self, item_id: str) -> Optional[OrderItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


@dataclass(slots=True)
class ItemDraft:
    """Input for a new or replacement order item."""

    material_id: Optional[str]
    description: str = ""
    length: Decimal = Decimal("0")
    width: Decimal = Decimal("0")
    quantity: int = 1
    finishing: str = ""
    production_status: ProductionStatus = ProductionStatus.NOT_STARTED


@dataclass(slots=True)
class Expense:
    """Operating expense line used by the finance reports."""

    id: str
    expense_date: date
    kind: str
    quantity: int
    unit_price: int

    @property
    def line_total(self) -> int:
        return self.quantity * self.unit_price


@dataclass(slots=True)
class Employee:
    """Staff member; referenced as worker on orders and cashier on payments."""

    id: str
    name: str
    position: EmployeePosition
    email: str = ""
    phone: str = ""


__all__ = [
    "ValidationError",
    "InvalidTransitionError",
    "CustomerTier",
    "PaymentStatus",
    "WorkflowStatus",
    "ProductionStatus",
    "EmployeePosition",
    "Customer",
    "Material",
    "OrderItem",
    "Payment",
    "Order",
    "ItemDraft",
    "Expense",
    "Employee",
]
