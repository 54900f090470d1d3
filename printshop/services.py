"""Service layer that implements the print-shop use-cases."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Sequence, Tuple, TypeVar
from uuid import uuid4

from .domain import (
    Customer,
    CustomerTier,
    Employee,
    EmployeePosition,
    Expense,
    ItemDraft,
    Material,
    Order,
    OrderItem,
    Payment,
    PaymentStatus,
    ProductionStatus,
    ValidationError,
    WorkflowStatus,
)
from .ledger import amount_paid, balance_remaining, settlement_status
from .pricing import order_total
from .repository import InMemoryRepository, RecordNotFoundError, Repository, RepositoryError
from . import reports, workflow

logger = logging.getLogger(__name__)

R = TypeVar("R", Customer, Material)


def _require_text(value: Optional[str], label: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{label} is required")
    return text


def _to_decimal(value: object, label: str) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"{label} must be a number") from exc
    if not number.is_finite():
        raise ValidationError(f"{label} must be a number")
    if number < 0:
        raise ValidationError(f"{label} must not be negative")
    return number


def _to_whole(value: object, label: str, *, minimum: int) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a whole number")
    if isinstance(value, int):
        number = value
    else:
        try:
            parsed = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValidationError(f"{label} must be a whole number") from exc
        if not parsed.is_finite() or parsed != parsed.to_integral_value():
            raise ValidationError(f"{label} must be a whole number")
        number = int(parsed)
    if number < minimum:
        raise ValidationError(f"{label} must be at least {minimum}")
    return number


@dataclass(slots=True)
class OrderSummary:
    """Derived money and progress figures for one order."""

    order: Order
    customer: Optional[Customer]
    total: int
    amount_paid: int
    balance: int
    payment_status: PaymentStatus
    item_count: int
    items_done: int

    @property
    def all_items_done(self) -> bool:
        return self.items_done == self.item_count


class PrintShopService:
    """Facade that exposes the print-shop use-cases to clients.

    Orders are loaded as private copies, changed, re-settled and written back
    in a single upsert. A failed write leaves the stored order untouched.
    """

    def __init__(
        self,
        customer_repo: Optional[Repository[Customer]] = None,
        material_repo: Optional[Repository[Material]] = None,
        order_repo: Optional[Repository[Order]] = None,
        expense_repo: Optional[Repository[Expense]] = None,
        employee_repo: Optional[Repository[Employee]] = None,
    ) -> None:
        self.customers = customer_repo if customer_repo is not None else InMemoryRepository()
        self.materials = material_repo if material_repo is not None else InMemoryRepository()
        self.orders = order_repo if order_repo is not None else InMemoryRepository()
        self.expenses = expense_repo if expense_repo is not None else InMemoryRepository()
        self.employees = employee_repo if employee_repo is not None else InMemoryRepository()

    # ------------------------------------------------------------------
    # Master data
    # ------------------------------------------------------------------
    def create_customer(
        self,
        name: str,
        tier: CustomerTier,
        *,
        email: str = "",
        phone: str = "",
        address: str = "",
    ) -> Customer:
        customer = Customer(
            id=str(uuid4()),
            name=_require_text(name, "Customer name"),
            tier=self._parse_tier(tier),
            email=email,
            phone=phone,
            address=address,
        )
        self.customers.add(customer.id, customer)
        logger.info(f"[Customers] Created {customer.name!r} ({customer.tier.value})")
        return customer

    def update_customer(
        self,
        customer_id: str,
        *,
        name: Optional[str] = None,
        tier: Optional[CustomerTier] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Customer:
        """Edit a customer; a tier change re-settles all of the customer's orders."""

        previous = self.customers.get(customer_id)
        customer = self.customers.get(customer_id)
        if name is not None:
            customer.name = _require_text(name, "Customer name")
        if tier is not None:
            customer.tier = self._parse_tier(tier)
        if email is not None:
            customer.email = email
        if phone is not None:
            customer.phone = phone
        if address is not None:
            customer.address = address
        if customer.tier == previous.tier:
            self.customers.upsert(customer.id, customer)
            return customer
        self._commit_repricing(
            self.customers,
            previous,
            customer,
            self.orders.find(lambda order: order.customer_id == customer.id),
        )
        logger.info(
            f"[Customers] Tier of {customer.name!r} changed "
            f"{previous.tier.value} -> {customer.tier.value}"
        )
        return customer

    def register_material(
        self,
        name: str,
        *,
        price_end_customer: int,
        price_retail: int,
        price_wholesale: int,
        price_reseller: int,
        price_corporate: int,
    ) -> Material:
        material = Material(
            id=str(uuid4()),
            name=_require_text(name, "Material name"),
            price_end_customer=price_end_customer,
            price_retail=price_retail,
            price_wholesale=price_wholesale,
            price_reseller=price_reseller,
            price_corporate=price_corporate,
        )
        self.materials.add(material.id, material)
        logger.info(f"[Materials] Registered {material.name!r}")
        return material

    def update_material_prices(self, material_id: str, **prices: int) -> Material:
        """Change one or more tier prices and re-settle every order that uses the material."""

        unknown = set(prices) - {
            "price_end_customer",
            "price_retail",
            "price_wholesale",
            "price_reseller",
            "price_corporate",
        }
        if unknown:
            raise ValidationError(f"Unknown price fields: {', '.join(sorted(unknown))}")
        previous = self.materials.get(material_id)
        material = replace(previous, **prices)
        self._commit_repricing(
            self.materials,
            previous,
            material,
            self.orders.find(
                lambda order: any(item.material_id == material.id for item in order.items)
            ),
        )
        logger.info(f"[Materials] Updated prices of {material.name!r}")
        return material

    def register_employee(
        self,
        name: str,
        position: EmployeePosition,
        *,
        email: str = "",
        phone: str = "",
    ) -> Employee:
        try:
            resolved_position = EmployeePosition(position)
        except ValueError as exc:
            raise ValidationError(f"Unknown position {position!r}") from exc
        employee = Employee(
            id=str(uuid4()),
            name=_require_text(name, "Employee name"),
            position=resolved_position,
            email=email,
            phone=phone,
        )
        self.employees.add(employee.id, employee)
        return employee

    def worker_name(self, employee_id: Optional[str]) -> str:
        """Display name for a worker or cashier reference."""

        if not employee_id:
            return "-"
        try:
            return self.employees.get(employee_id).name
        except RecordNotFoundError:
            return employee_id

    def record_expense(
        self,
        kind: str,
        *,
        quantity: int,
        unit_price: int,
        expense_date: Optional[date] = None,
    ) -> Expense:
        expense = Expense(
            id=str(uuid4()),
            expense_date=expense_date or date.today(),
            kind=_require_text(kind, "Expense type"),
            quantity=_to_whole(quantity, "Expense quantity", minimum=1),
            unit_price=_to_whole(unit_price, "Expense price", minimum=0),
        )
        self.expenses.add(expense.id, expense)
        logger.info(f"[Expenses] Recorded {expense.kind!r} for {expense.line_total}")
        return expense

    @staticmethod
    def _parse_tier(tier: object) -> CustomerTier:
        try:
            return CustomerTier(tier)
        except ValueError as exc:
            raise ValidationError(f"Unknown customer tier {tier!r}") from exc

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------
    @staticmethod
    def build_item(draft: ItemDraft, *, item_id: Optional[str] = None) -> OrderItem:
        return OrderItem(
            id=item_id or str(uuid4()),
            material_id=draft.material_id or None,
            description=(draft.description or "").strip(),
            length=_to_decimal(draft.length, "Length"),
            width=_to_decimal(draft.width, "Width"),
            quantity=_to_whole(draft.quantity, "Quantity", minimum=1),
            production_status=ProductionStatus(draft.production_status),
            finishing=(draft.finishing or "").strip(),
        )

    def _check_invoice_number(self, invoice_number: str, *, exclude_order_id: Optional[str] = None) -> str:
        number = _require_text(invoice_number, "Invoice number")
        if self.orders.find(
            lambda order: order.id != exclude_order_id and order.invoice_number == number
        ):
            raise ValidationError(f"Invoice number {number!r} is already used")
        return number

    def _check_customer(self, customer_id: Optional[str]) -> str:
        customer_id = _require_text(customer_id, "Customer")
        if customer_id not in self.customers:
            raise RecordNotFoundError(f"Customer {customer_id!r} does not exist")
        return customer_id

    def _build_items(self, drafts: Sequence[ItemDraft]) -> List[OrderItem]:
        if not drafts:
            raise ValidationError("An order must contain at least one item")
        return [self.build_item(draft) for draft in drafts]

    def _settle(self, order: Order) -> Order:
        total = order_total(order, self.customers.mapping(), self.materials.mapping())
        order.payment_status = settlement_status(amount_paid(order), total)
        return order

    def _save(self, order: Order) -> None:
        self._settle(order)
        self.orders.upsert(order.id, order)

    def _commit_repricing(
        self, repo: Repository[R], previous: R, updated: R, orders: List[Order]
    ) -> None:
        """Store a tier or price change together with the affected order statuses.

        If any order write fails, the orders already rewritten and the master
        record are put back before the error propagates.
        """

        repo.upsert(updated.id, updated)
        rewritten: List[Tuple[Order, PaymentStatus]] = []
        try:
            customers = self.customers.mapping()
            materials = self.materials.mapping()
            for order in orders:
                total = order_total(order, customers, materials)
                status = settlement_status(amount_paid(order), total)
                if status == order.payment_status:
                    continue
                old_status = order.payment_status
                order.payment_status = status
                self.orders.upsert(order.id, order)
                rewritten.append((order, old_status))
                logger.info(
                    f"[Payments] {order.invoice_number}: status now {status.value} "
                    f"(total {total})"
                )
        except RepositoryError:
            logger.warning(
                f"[Payments] Repricing aborted, restoring {len(rewritten)} order(s)"
            )
            repo.upsert(previous.id, previous)
            for order, old_status in reversed(rewritten):
                order.payment_status = old_status
                self.orders.upsert(order.id, order)
            raise

    def create_order(
        self,
        invoice_number: str,
        customer_id: str,
        items: Sequence[ItemDraft],
        *,
        order_date: Optional[date] = None,
    ) -> Order:
        """Take in a new order; it starts Pending, Unpaid and without a worker."""

        number = self._check_invoice_number(invoice_number)
        customer_id = self._check_customer(customer_id)
        order = Order(
            id=str(uuid4()),
            invoice_number=number,
            order_date=order_date or date.today(),
            customer_id=customer_id,
            items=self._build_items(items),
        )
        self.orders.add(order.id, order)
        logger.info(f"[Orders] Created {order.invoice_number} with {len(order.items)} item(s)")
        return order

    def update_order(
        self,
        order_id: str,
        *,
        invoice_number: str,
        customer_id: str,
        order_date: date,
        items: Sequence[ItemDraft],
    ) -> Order:
        """Replace the order header and all of its items."""

        order = self.orders.get(order_id)
        order.invoice_number = self._check_invoice_number(
            invoice_number, exclude_order_id=order.id
        )
        order.customer_id = self._check_customer(customer_id)
        order.order_date = order_date
        order.items = self._build_items(items)
        self._save(order)
        logger.info(f"[Orders] Updated {order.invoice_number}")
        return order

    def add_item(self, order_id: str, draft: ItemDraft) -> Order:
        order = self.orders.get(order_id)
        order.items.append(self.build_item(draft))
        self._save(order)
        logger.info(f"[Orders] Added item to {order.invoice_number}")
        return order

    def update_item(self, order_id: str, item_id: str, draft: ItemDraft) -> Order:
        """Edit an item's details; its production status is kept."""

        order = self.orders.get(order_id)
        for index, item in enumerate(order.items):
            if item.id == item_id:
                edited = self.build_item(draft, item_id=item.id)
                edited.production_status = item.production_status
                order.items[index] = edited
                break
        else:
            raise RecordNotFoundError(f"Item {item_id!r} not found on order {order_id!r}")
        self._save(order)
        logger.info(f"[Orders] Edited item on {order.invoice_number}")
        return order

    def remove_item(self, order_id: str, item_id: str) -> Order:
        order = self.orders.get(order_id)
        remaining = [item for item in order.items if item.id != item_id]
        if len(remaining) == len(order.items):
            raise RecordNotFoundError(f"Item {item_id!r} not found on order {order_id!r}")
        if not remaining:
            logger.warning(f"[Orders] Refused to remove last item of {order.invoice_number}")
            raise ValidationError("An order must contain at least one item")
        order.items = remaining
        self._save(order)
        logger.info(f"[Orders] Removed item from {order.invoice_number}")
        return order

    def delete_order(self, order_id: str) -> None:
        order = self.orders.get(order_id)
        self.orders.remove(order_id)
        logger.info(f"[Orders] Deleted {order.invoice_number}")

    def list_orders(
        self,
        *,
        customer_id: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        payment_status: Optional[PaymentStatus] = None,
        workflow_status: Optional[WorkflowStatus] = None,
    ) -> List[Order]:
        """Filtered orders, newest first."""

        orders = [
            order
            for order in reports.orders_in_range(self.orders, start, end)
            if (customer_id is None or order.customer_id == customer_id)
            and (payment_status is None or order.payment_status == payment_status)
            and (workflow_status is None or order.workflow_status == workflow_status)
        ]
        orders.sort(key=lambda order: order.created_at, reverse=True)
        return orders

    def summarize(self, order: Order) -> OrderSummary:
        customers = self.customers.mapping()
        total = order_total(order, customers, self.materials.mapping())
        return OrderSummary(
            order=order,
            customer=customers.get(order.customer_id),
            total=total,
            amount_paid=amount_paid(order),
            balance=balance_remaining(order, total),
            payment_status=order.payment_status,
            item_count=len(order.items),
            items_done=sum(
                1 for item in order.items if item.production_status == ProductionStatus.DONE
            ),
        )

    def order_summary(self, order_id: str) -> OrderSummary:
        return self.summarize(self.orders.get(order_id))

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------
    def record_payment(
        self,
        order_id: str,
        amount: int,
        *,
        payment_date: Optional[date] = None,
        cashier_id: Optional[str] = None,
    ) -> OrderSummary:
        """Append a payment and re-settle the order."""

        try:
            value = _to_whole(amount, "Payment amount", minimum=1)
        except ValidationError:
            logger.warning(f"[Payments] Rejected amount {amount!r} for order {order_id}")
            raise
        order = self.orders.get(order_id)
        order.payments.append(
            Payment(
                id=str(uuid4()),
                order_id=order.id,
                amount=value,
                payment_date=payment_date or date.today(),
                cashier_id=cashier_id or None,
            )
        )
        self._save(order)
        summary = self.summarize(order)
        logger.info(
            f"[Payments] {order.invoice_number}: received {value}, "
            f"paid {summary.amount_paid}/{summary.total} -> {summary.payment_status.value}"
        )
        return summary

    # ------------------------------------------------------------------
    # Workflow and production
    # ------------------------------------------------------------------
    def claim_order(self, order_id: str, worker_id: str) -> Order:
        order = self.orders.get(order_id)
        workflow.claim_order(order, worker_id)
        self.orders.upsert(order.id, order)
        logger.info(f"[Production] {order.invoice_number} claimed by {worker_id}")
        return order

    def release_order(self, order_id: str, worker_id: Optional[str] = None) -> Order:
        order = self.orders.get(order_id)
        workflow.release_order(order, worker_id)
        self.orders.upsert(order.id, order)
        logger.info(f"[Production] {order.invoice_number} released")
        return order

    def update_item_production(
        self, order_id: str, item_id: str, status: ProductionStatus
    ) -> Order:
        order = self.orders.get(order_id)
        item = order.find_item(item_id)
        if item is None:
            raise RecordNotFoundError(f"Item {item_id!r} not found on order {order_id!r}")
        workflow.advance_production(item, status)
        self.orders.upsert(order.id, order)
        logger.info(
            f"[Production] {order.invoice_number}: item {item.id} -> {item.production_status.value}"
        )
        return order

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def sales_report(
        self,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
        customer_id: Optional[str] = None,
        status: Optional[PaymentStatus] = None,
    ) -> reports.SalesReport:
        return reports.sales_report(
            self.orders.list(),
            self.customers.mapping(),
            self.materials.mapping(),
            start=start,
            end=end,
            customer_id=customer_id,
            status=status,
        )

    def expense_report(
        self, *, start: Optional[date] = None, end: Optional[date] = None
    ) -> reports.ExpenseReport:
        return reports.expense_report(self.expenses.list(), start=start, end=end)

    def top_customers(
        self, *, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[reports.CustomerSpending]:
        return reports.top_customers(
            self.orders.list(),
            self.customers.mapping(),
            self.materials.mapping(),
            start=start,
            end=end,
        )

    def best_materials(
        self, *, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[reports.MaterialSales]:
        return reports.best_materials(
            self.orders.list(),
            self.customers.mapping(),
            self.materials.mapping(),
            start=start,
            end=end,
        )

    def finance_summary(self) -> reports.FinanceSummary:
        return reports.finance_summary(
            self.orders.list(),
            self.expenses.list(),
            self.customers.mapping(),
            self.materials.mapping(),
        )

    def dashboard_stats(self) -> reports.DashboardStats:
        return reports.dashboard_stats(self.orders.list(), len(self.customers))

    def daily_stats(self, day: Optional[date] = None) -> reports.DailyStats:
        return reports.daily_stats(
            self.orders.list(),
            self.customers.mapping(),
            self.materials.mapping(),
            day or date.today(),
        )

    def production_overview(self) -> Dict[str, List[Order]]:
        """Orders grouped by whether every item is done."""

        open_orders: List[Order] = []
        finished: List[Order] = []
        for order in self.orders:
            (finished if workflow.all_items_done(order) else open_orders).append(order)
        return {"open": open_orders, "finished": finished}


__all__ = [
    "PrintShopService",
    "OrderSummary",
]
