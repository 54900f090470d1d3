"""Tier pricing and order totals.

Every money figure in the application (order detail, invoices, reports)
goes through :func:`item_subtotal`, so the amounts always agree.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Optional

from .domain import Customer, CustomerTier, Material, Order, OrderItem

_PRICE_FIELDS = {
    CustomerTier.END_CUSTOMER: "price_end_customer",
    CustomerTier.RETAIL: "price_retail",
    CustomerTier.WHOLESALE: "price_wholesale",
    CustomerTier.RESELLER: "price_reseller",
    CustomerTier.CORPORATE: "price_corporate",
}

_ONE = Decimal("1")


def price_for(material: Material, tier: object) -> int:
    """Return the unit price of ``material`` for ``tier`` (0 for an unknown tier)."""

    try:
        resolved = CustomerTier(tier)
    except ValueError:
        return 0
    return getattr(material, _PRICE_FIELDS[resolved])


def item_area(item: OrderItem) -> Decimal:
    """Billable area of an item; items without two positive dimensions count as 1."""

    length = Decimal(item.length or 0)
    width = Decimal(item.width or 0)
    if length > 0 and width > 0:
        return length * width
    return _ONE


def item_subtotal(item: OrderItem, material: Optional[Material], tier: object) -> int:
    """Price one item, rounded to a whole currency unit.

    A missing material contributes nothing.
    """

    if material is None:
        return 0
    unit_price = price_for(material, tier)
    amount = Decimal(unit_price) * item_area(item) * item.quantity
    return int(amount.quantize(_ONE, rounding=ROUND_HALF_UP))


def order_total(
    order: Order,
    customers: Mapping[str, Customer],
    materials: Mapping[str, Material],
) -> int:
    """Billable total of ``order``; unresolved references contribute 0."""

    customer = customers.get(order.customer_id) if order.customer_id else None
    if customer is None:
        return 0
    total = 0
    for item in order.items:
        material = materials.get(item.material_id) if item.material_id else None
        total += item_subtotal(item, material, customer.tier)
    return total


__all__ = ["price_for", "item_area", "item_subtotal", "order_total"]
