"""Demonstration script for the print-shop back office."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from pprint import pprint

from . import CustomerTier, ItemDraft, PrintShopService, ProductionStatus
from .domain import EmployeePosition


def main() -> PrintShopService:
    shop = PrintShopService()

    # Master data
    cashier = shop.register_employee("Dewi Lestari", EmployeePosition.CASHIER)
    operator = shop.register_employee("Budi Santoso", EmployeePosition.PRODUCTION)

    reseller = shop.create_customer(
        name="CV Kreasi Media",
        tier=CustomerTier.RESELLER,
        email="order@kreasimedia.example",
    )
    walk_in = shop.create_customer(name="Andi Wijaya", tier=CustomerTier.END_CUSTOMER)

    flexi = shop.register_material(
        "Flexi 280gr",
        price_end_customer=25000,
        price_retail=23000,
        price_wholesale=20000,
        price_reseller=18000,
        price_corporate=22000,
    )
    cards = shop.register_material(
        "Kartu Nama Art Carton 260",
        price_end_customer=35000,
        price_retail=32000,
        price_wholesale=30000,
        price_reseller=27000,
        price_corporate=31000,
    )

    # Intake: one area-priced banner and one box of business cards
    today = date.today()
    order = shop.create_order(
        "NL-0101",
        reseller.id,
        [
            ItemDraft(
                material_id=flexi.id,
                description="Spanduk 3x1",
                length=Decimal("3"),
                width=Decimal("1"),
                quantity=2,
                finishing="Mata ayam",
            ),
            ItemDraft(material_id=cards.id, description="Kartu nama", quantity=1),
        ],
        order_date=today - timedelta(days=1),
    )
    print("Order total:", shop.order_summary(order.id).total)

    # Down payment, then settlement
    summary = shop.record_payment(order.id, 50000, cashier_id=cashier.id)
    print("After down payment:", summary.payment_status.value, "balance", summary.balance)
    summary = shop.record_payment(order.id, summary.balance, cashier_id=cashier.id)
    print("After settlement:", summary.payment_status.value)

    # Production floor
    shop.claim_order(order.id, operator.id)
    for item in shop.orders.get(order.id).items:
        shop.update_item_production(order.id, item.id, ProductionStatus.IN_PROGRESS)
        shop.update_item_production(order.id, item.id, ProductionStatus.DONE)
    shop.release_order(order.id, operator.id)

    shop.create_order(
        "NL-0102",
        walk_in.id,
        [ItemDraft(material_id=cards.id, description="Kartu nama", quantity=3)],
        order_date=today,
    )
    shop.record_expense("Tinta eco solvent", quantity=2, unit_price=150000, expense_date=today)

    print("\nDashboard")
    pprint(shop.dashboard_stats())
    print("\nBest materials")
    pprint(shop.best_materials())
    print("\nFinance")
    pprint(shop.finance_summary())
    return shop


if __name__ == "__main__":
    main()
