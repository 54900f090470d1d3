"""
Tests for the sales, expense and finance aggregations.

Three orders are used throughout:

    A  retail    10 May  banner + cards   303000  paid 100000 on 10 May
    B  reseller  12 May  banner           162000  paid in full on 12 May
    C  retail     1 Jun  cards             96000  unpaid
"""
from datetime import date
from decimal import Decimal

import pytest

from printshop import ItemDraft, PaymentStatus, ProductionStatus
from printshop.pricing import item_subtotal, order_total
from printshop.reports import finance_summary, in_range


@pytest.fixture
def book(service, make_order, reseller_customer, banner_draft, cards_draft):
    a = make_order(order_date=date(2024, 5, 10))
    b = make_order(customer=reseller_customer, items=[banner_draft], order_date=date(2024, 5, 12))
    c = make_order(items=[cards_draft], order_date=date(2024, 6, 1))
    service.record_payment(a.id, 100000, payment_date=date(2024, 5, 10))
    service.record_payment(b.id, 162000, payment_date=date(2024, 5, 12))
    service.record_expense("Tinta", quantity=2, unit_price=150000, expense_date=date(2024, 5, 10))
    service.record_expense("Listrik", quantity=1, unit_price=50000, expense_date=date(2024, 6, 1))
    return {"a": a, "b": b, "c": c}


class TestInRange:
    @pytest.mark.parametrize(
        "day, expected",
        [
            (date(2024, 5, 1), True),
            (date(2024, 5, 31), True),
            (date(2024, 4, 30), False),
            (date(2024, 6, 1), False),
        ],
    )
    def test_bounds_are_inclusive(self, day, expected):
        assert in_range(day, date(2024, 5, 1), date(2024, 5, 31)) is expected

    def test_open_bounds(self):
        assert in_range(date(1999, 1, 1), None, None)
        assert in_range(date(2030, 1, 1), date(2024, 1, 1), None)


class TestSalesReport:
    def test_date_range(self, service, book):
        report = service.sales_report(start=date(2024, 5, 1), end=date(2024, 5, 31))

        assert report.transaction_count == 2
        assert report.total_sales == 303000 + 162000
        assert {row.invoice_number for row in report.rows} == {
            book["a"].invoice_number,
            book["b"].invoice_number,
        }

    def test_status_filter(self, service, book):
        report = service.sales_report(status=PaymentStatus.PAID)
        assert [row.order_id for row in report.rows] == [book["b"].id]
        assert report.total_sales == 162000

    def test_customer_filter(self, service, book, retail_customer):
        report = service.sales_report(customer_id=retail_customer.id)
        assert report.transaction_count == 2
        assert all(row.customer_name == "Toko Sumber Rejeki" for row in report.rows)

    def test_rows_use_order_total(self, service, book):
        customers = service.customers.mapping()
        materials = service.materials.mapping()
        for row in service.sales_report().rows:
            order = service.orders.get(row.order_id)
            assert row.total == order_total(order, customers, materials)


class TestExpenseReport:
    def test_all_expenses(self, service, book):
        report = service.expense_report()
        assert report.expense_count == 2
        assert report.total_expenses == 350000

    def test_range(self, service, book):
        report = service.expense_report(start=date(2024, 6, 1))
        assert [row.kind for row in report.rows] == ["Listrik"]
        assert report.total_expenses == 50000


class TestRankings:
    def test_top_customers(self, service, book, retail_customer, reseller_customer):
        ranking = service.top_customers()

        assert [entry.customer_id for entry in ranking] == [retail_customer.id, reseller_customer.id]
        assert ranking[0].total_spent == 303000 + 96000
        assert ranking[0].order_count == 2
        assert ranking[1].total_spent == 162000

    def test_top_customers_in_range(self, service, book, retail_customer):
        ranking = service.top_customers(start=date(2024, 6, 1))
        assert len(ranking) == 1
        assert ranking[0].customer_id == retail_customer.id
        assert ranking[0].total_spent == 96000

    def test_best_materials(self, service, book, flexi, cards):
        ranking = service.best_materials()

        assert [entry.material_id for entry in ranking] == [flexi.id, cards.id]
        assert ranking[0].revenue == 207000 + 162000
        assert ranking[0].quantity_sold == Decimal("18")
        assert ranking[1].revenue == 96000 + 96000
        assert ranking[1].quantity_sold == 6

    def test_best_materials_revenue_per_material_in_range(self, service, book, flexi, cards):
        start, end = date(2024, 5, 1), date(2024, 5, 31)
        customers = service.customers.mapping()
        materials = service.materials.mapping()
        expected = {}
        for order in service.orders:
            if not in_range(order.order_date, start, end):
                continue
            tier = customers[order.customer_id].tier
            for item in order.items:
                expected[item.material_id] = expected.get(item.material_id, 0) + item_subtotal(
                    item, materials[item.material_id], tier
                )

        ranking = service.best_materials(start=start, end=end)

        assert {entry.material_id: entry.revenue for entry in ranking} == expected
        # order C (June, cards) stays out of the May figures
        assert expected == {flexi.id: 207000 + 162000, cards.id: 96000}
        assert sum(expected.values()) == service.sales_report(start=start, end=end).total_sales

    def test_best_materials_skips_missing_material(self, service, make_order, retail_customer):
        order = make_order(items=[ItemDraft(material_id="m-gone", quantity=4)])
        assert service.order_summary(order.id).total == 0
        assert service.best_materials() == []


class TestFinanceSummary:
    def test_totals(self, service, book):
        summary = service.finance_summary()

        assert summary.total_revenue == 262000
        assert summary.total_expenses == 350000
        assert summary.net_profit == -88000
        assert summary.total_receivables == 203000 + 96000

    def test_cashflow_by_day(self, service, book):
        cashflow = service.finance_summary().cashflow

        assert [(point.day, point.revenue, point.expense) for point in cashflow] == [
            (date(2024, 5, 10), 100000, 300000),
            (date(2024, 5, 12), 162000, 0),
            (date(2024, 6, 1), 0, 50000),
        ]

    def test_cashflow_window(self, service, book):
        summary = finance_summary(
            service.orders.list(),
            service.expenses.list(),
            service.customers.mapping(),
            service.materials.mapping(),
            cashflow_days=2,
        )
        assert [point.day for point in summary.cashflow] == [date(2024, 5, 12), date(2024, 6, 1)]


class TestDashboard:
    def test_dashboard_stats(self, service, book):
        stats = service.dashboard_stats()

        assert stats.total_orders == 3
        assert stats.active_orders == 2
        assert stats.items_to_process == 4
        assert stats.total_customers == 2
        assert stats.production_counts[ProductionStatus.NOT_STARTED] == 4
        assert stats.production_counts[ProductionStatus.DONE] == 0

    def test_done_items_leave_the_queue(self, service, book):
        order = book["c"]
        service.update_item_production(order.id, order.items[0].id, ProductionStatus.DONE)

        stats = service.dashboard_stats()

        assert stats.items_to_process == 3
        assert stats.production_counts[ProductionStatus.DONE] == 1

    def test_daily_stats(self, service, book):
        stats = service.daily_stats(date(2024, 5, 10))

        assert stats.revenue == 100000
        assert stats.unpaid == 203000
        assert stats.order_count == 1

    def test_daily_stats_for_quiet_day(self, service, book):
        stats = service.daily_stats(date(2024, 7, 1))
        assert (stats.revenue, stats.unpaid, stats.order_count) == (0, 0, 0)
