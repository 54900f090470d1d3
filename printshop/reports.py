"""Read-only aggregations over orders, payments and expenses.

Every monetary figure is computed with :mod:`printshop.pricing` and
:mod:`printshop.ledger`, the same functions the order detail and the
invoice use.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .domain import (
    Customer,
    Expense,
    Material,
    Order,
    PaymentStatus,
    ProductionStatus,
)
from .ledger import amount_paid, balance_remaining
from .pricing import item_area, item_subtotal, order_total
from .workflow import items_requiring_processing, production_status_counts

UNKNOWN_NAME = "N/A"


@dataclass(slots=True)
class SalesRow:
    order_id: str
    invoice_number: str
    order_date: date
    customer_name: str
    total: int
    payment_status: PaymentStatus


@dataclass(slots=True)
class SalesReport:
    rows: List[SalesRow]
    transaction_count: int
    total_sales: int


@dataclass(slots=True)
class ExpenseRow:
    expense_date: date
    kind: str
    quantity: int
    unit_price: int
    line_total: int


@dataclass(slots=True)
class ExpenseReport:
    rows: List[ExpenseRow]
    expense_count: int
    total_expenses: int


@dataclass(slots=True)
class CustomerSpending:
    customer_id: str
    customer_name: str
    total_spent: int
    order_count: int


@dataclass(slots=True)
class MaterialSales:
    material_id: str
    name: str
    quantity_sold: Decimal = Decimal("0")
    revenue: int = 0


@dataclass(slots=True)
class CashflowPoint:
    day: date
    revenue: int = 0
    expense: int = 0


@dataclass(slots=True)
class FinanceSummary:
    total_revenue: int
    total_expenses: int
    net_profit: int
    total_receivables: int
    cashflow: List[CashflowPoint] = field(default_factory=list)


@dataclass(slots=True)
class DashboardStats:
    total_orders: int
    active_orders: int
    items_to_process: int
    total_customers: int
    production_counts: Mapping[ProductionStatus, int]


@dataclass(slots=True)
class DailyStats:
    day: date
    revenue: int
    unpaid: int
    order_count: int


def in_range(day: date, start: Optional[date], end: Optional[date]) -> bool:
    """Inclusive date filter; a missing bound is open."""

    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True


def orders_in_range(
    orders: Iterable[Order], start: Optional[date] = None, end: Optional[date] = None
) -> List[Order]:
    return [order for order in orders if in_range(order.order_date, start, end)]


def _customer_name(customers: Mapping[str, Customer], customer_id: Optional[str]) -> str:
    customer = customers.get(customer_id) if customer_id else None
    return customer.name if customer else UNKNOWN_NAME


def sales_report(
    orders: Iterable[Order],
    customers: Mapping[str, Customer],
    materials: Mapping[str, Material],
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
    customer_id: Optional[str] = None,
    status: Optional[PaymentStatus] = None,
) -> SalesReport:
    selected = [
        order
        for order in orders_in_range(orders, start, end)
        if (customer_id is None or order.customer_id == customer_id)
        and (status is None or order.payment_status == status)
    ]
    rows = [
        SalesRow(
            order_id=order.id,
            invoice_number=order.invoice_number,
            order_date=order.order_date,
            customer_name=_customer_name(customers, order.customer_id),
            total=order_total(order, customers, materials),
            payment_status=order.payment_status,
        )
        for order in selected
    ]
    return SalesReport(
        rows=rows,
        transaction_count=len(rows),
        total_sales=sum(row.total for row in rows),
    )


def expense_report(
    expenses: Iterable[Expense],
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> ExpenseReport:
    rows = [
        ExpenseRow(
            expense_date=expense.expense_date,
            kind=expense.kind,
            quantity=expense.quantity,
            unit_price=expense.unit_price,
            line_total=expense.line_total,
        )
        for expense in expenses
        if in_range(expense.expense_date, start, end)
    ]
    return ExpenseReport(
        rows=rows,
        expense_count=len(rows),
        total_expenses=sum(row.line_total for row in rows),
    )


def top_customers(
    orders: Iterable[Order],
    customers: Mapping[str, Customer],
    materials: Mapping[str, Material],
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[CustomerSpending]:
    """Customers ranked by total spend over the orders in range."""

    spending: Dict[str, CustomerSpending] = {}
    for order in orders_in_range(orders, start, end):
        if not order.customer_id:
            continue
        entry = spending.get(order.customer_id)
        if entry is None:
            entry = CustomerSpending(
                customer_id=order.customer_id,
                customer_name=_customer_name(customers, order.customer_id),
                total_spent=0,
                order_count=0,
            )
            spending[order.customer_id] = entry
        entry.total_spent += order_total(order, customers, materials)
        entry.order_count += 1
    return sorted(spending.values(), key=lambda entry: entry.total_spent, reverse=True)


def best_materials(
    orders: Iterable[Order],
    customers: Mapping[str, Customer],
    materials: Mapping[str, Material],
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[MaterialSales]:
    """Materials ranked by revenue; quantity is billed area times item quantity."""

    sales: Dict[str, MaterialSales] = {}
    for order in orders_in_range(orders, start, end):
        customer = customers.get(order.customer_id) if order.customer_id else None
        if customer is None:
            continue
        for item in order.items:
            material = materials.get(item.material_id) if item.material_id else None
            if material is None:
                continue
            entry = sales.setdefault(
                material.id, MaterialSales(material_id=material.id, name=material.name)
            )
            entry.quantity_sold += item_area(item) * item.quantity
            entry.revenue += item_subtotal(item, material, customer.tier)
    return sorted(sales.values(), key=lambda entry: entry.revenue, reverse=True)


def finance_summary(
    orders: Sequence[Order],
    expenses: Sequence[Expense],
    customers: Mapping[str, Customer],
    materials: Mapping[str, Material],
    *,
    cashflow_days: int = 30,
) -> FinanceSummary:
    total_revenue = sum(amount_paid(order) for order in orders)
    total_expenses = sum(expense.line_total for expense in expenses)
    total_receivables = sum(
        balance_remaining(order, order_total(order, customers, materials))
        for order in orders
        if order.payment_status != PaymentStatus.PAID
    )

    by_day: Dict[date, CashflowPoint] = {}
    for order in orders:
        for payment in order.payments:
            point = by_day.setdefault(payment.payment_date, CashflowPoint(day=payment.payment_date))
            point.revenue += payment.amount
    for expense in expenses:
        point = by_day.setdefault(expense.expense_date, CashflowPoint(day=expense.expense_date))
        point.expense += expense.line_total
    cashflow = [by_day[day] for day in sorted(by_day)]
    if cashflow_days > 0:
        cashflow = cashflow[-cashflow_days:]

    return FinanceSummary(
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        net_profit=total_revenue - total_expenses,
        total_receivables=total_receivables,
        cashflow=cashflow,
    )


def dashboard_stats(orders: Sequence[Order], customer_count: int) -> DashboardStats:
    return DashboardStats(
        total_orders=len(orders),
        active_orders=sum(1 for order in orders if order.payment_status != PaymentStatus.PAID),
        items_to_process=items_requiring_processing(orders),
        total_customers=customer_count,
        production_counts=production_status_counts(orders),
    )


def daily_stats(
    orders: Sequence[Order],
    customers: Mapping[str, Customer],
    materials: Mapping[str, Material],
    day: date,
) -> DailyStats:
    revenue = sum(
        payment.amount
        for order in orders
        for payment in order.payments
        if payment.payment_date == day
    )
    todays_orders = [order for order in orders if order.order_date == day]
    unpaid = sum(
        balance_remaining(order, order_total(order, customers, materials))
        for order in todays_orders
        if order.payment_status != PaymentStatus.PAID
    )
    return DailyStats(day=day, revenue=revenue, unpaid=unpaid, order_count=len(todays_orders))


__all__ = [
    "SalesRow",
    "SalesReport",
    "ExpenseRow",
    "ExpenseReport",
    "CustomerSpending",
    "MaterialSales",
    "CashflowPoint",
    "FinanceSummary",
    "DashboardStats",
    "DailyStats",
    "in_range",
    "orders_in_range",
    "sales_report",
    "expense_report",
    "top_customers",
    "best_materials",
    "finance_summary",
    "dashboard_stats",
    "daily_stats",
]
