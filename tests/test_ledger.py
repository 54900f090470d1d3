"""
Tests for the payment ledger and the derived settlement status.
"""
from datetime import date
from decimal import Decimal
from itertools import permutations

import pytest

from printshop import CustomerTier, ItemDraft, PaymentStatus, ValidationError
from printshop.domain import Order, Payment
from printshop.ledger import amount_paid, balance_remaining, settlement_status
from printshop.repository import RepositoryError


def _order_with_payments(amounts):
    order = Order(id="o-1", invoice_number="INV-1", order_date=date(2024, 5, 10), customer_id="c-1")
    order.payments = [
        Payment(id=f"p-{index}", order_id="o-1", amount=amount, payment_date=date(2024, 5, 10))
        for index, amount in enumerate(amounts)
    ]
    return order


class TestLedgerFunctions:
    def test_no_payments_means_nothing_paid(self):
        assert amount_paid(_order_with_payments([])) == 0

    def test_sum_is_independent_of_insertion_order(self):
        amounts = [150000, 250000, 600000]
        for ordering in permutations(amounts):
            assert amount_paid(_order_with_payments(ordering)) == 1000000

    def test_balance_is_total_minus_paid(self):
        assert balance_remaining(_order_with_payments([400000]), 1000000) == 600000

    def test_balance_never_negative_after_overpayment(self):
        assert balance_remaining(_order_with_payments([700000, 500000]), 1000000) == 0

    @pytest.mark.parametrize(
        "paid, total, expected",
        [
            (0, 1000000, PaymentStatus.UNPAID),
            (999999, 1000000, PaymentStatus.UNPAID),
            (1000000, 1000000, PaymentStatus.PAID),
            (1200000, 1000000, PaymentStatus.PAID),
        ],
    )
    def test_settlement_status(self, paid, total, expected):
        assert settlement_status(paid, total) == expected


@pytest.fixture
def million_order(service):
    """An order whose total is exactly 1,000,000 for a retail customer."""
    neon = service.register_material(
        "Neon box",
        price_end_customer=550000,
        price_retail=500000,
        price_wholesale=450000,
        price_reseller=400000,
        price_corporate=480000,
    )
    customer = service.create_customer("Toko Sumber Rejeki", CustomerTier.RETAIL)
    order = service.create_order(
        "NB-001",
        customer.id,
        [ItemDraft(material_id=neon.id, length=Decimal("2"), width=Decimal("1"), quantity=1)],
        order_date=date(2024, 6, 1),
    )
    assert service.order_summary(order.id).total == 1000000
    return order


class TestSettlementThroughService:
    def test_new_order_starts_unpaid(self, million_order):
        assert million_order.payment_status == PaymentStatus.UNPAID

    def test_single_full_payment_settles(self, service, million_order):
        summary = service.record_payment(million_order.id, 1000000)

        assert summary.payment_status == PaymentStatus.PAID
        assert service.orders.get(million_order.id).payment_status == PaymentStatus.PAID
        assert summary.balance == 0

    def test_installments_settle_only_after_the_last_one(self, service, million_order):
        first = service.record_payment(million_order.id, 400000)
        assert first.payment_status == PaymentStatus.UNPAID
        assert first.balance == 600000

        second = service.record_payment(million_order.id, 600000)
        assert second.payment_status == PaymentStatus.PAID
        assert second.amount_paid == 1000000

    def test_payment_increases_amount_paid_by_exactly_its_amount(self, service, million_order):
        before = service.order_summary(million_order.id).amount_paid
        after = service.record_payment(million_order.id, 123456).amount_paid
        assert after - before == 123456

    def test_payments_keep_insertion_order(self, service, million_order):
        service.record_payment(million_order.id, 100, payment_date=date(2024, 6, 2))
        service.record_payment(million_order.id, 200, payment_date=date(2024, 6, 1))
        stored = service.orders.get(million_order.id)
        assert [payment.amount for payment in stored.payments] == [100, 200]

    def test_adding_an_item_reopens_a_paid_order(self, service, million_order, flexi):
        service.record_payment(million_order.id, 1000000)

        order = service.add_item(million_order.id, ItemDraft(material_id=flexi.id, quantity=1))

        assert order.payment_status == PaymentStatus.UNPAID
        summary = service.order_summary(million_order.id)
        assert summary.total == 1023000
        assert summary.balance == 23000

    def test_removing_the_extra_item_settles_again(self, service, million_order, flexi):
        service.record_payment(million_order.id, 1000000)
        order = service.add_item(million_order.id, ItemDraft(material_id=flexi.id, quantity=1))
        extra = order.items[-1]

        order = service.remove_item(million_order.id, extra.id)

        assert order.payment_status == PaymentStatus.PAID

    def test_editing_an_item_re_settles(self, service, million_order):
        service.record_payment(million_order.id, 1000000)
        item = service.orders.get(million_order.id).items[0]
        draft = ItemDraft(material_id=item.material_id, length=Decimal("2"), width=Decimal("1"), quantity=2)

        order = service.update_item(million_order.id, item.id, draft)

        assert order.payment_status == PaymentStatus.UNPAID

    def test_overpayment_is_paid_with_zero_balance(self, service, million_order):
        summary = service.record_payment(million_order.id, 1500000)
        assert summary.payment_status == PaymentStatus.PAID
        assert summary.balance == 0
        assert summary.amount_paid == 1500000

    def test_tier_change_re_settles_customer_orders(self, service, million_order):
        service.record_payment(million_order.id, 1000000)

        service.update_customer(million_order.customer_id, tier=CustomerTier.END_CUSTOMER)

        stored = service.orders.get(million_order.id)
        assert stored.payment_status == PaymentStatus.UNPAID
        assert service.order_summary(million_order.id).total == 1100000

    def test_price_change_re_settles_orders_using_the_material(self, service, million_order):
        service.record_payment(million_order.id, 900000)
        material_id = million_order.items[0].material_id

        service.update_material_prices(material_id, price_retail=450000)

        assert service.orders.get(million_order.id).payment_status == PaymentStatus.PAID


class TestPaymentValidation:
    @pytest.mark.parametrize("amount", [0, -5000, "", "abc", 1.5, True])
    def test_invalid_amounts_are_rejected_before_writing(self, service, million_order, amount):
        with pytest.raises(ValidationError):
            service.record_payment(million_order.id, amount)

        stored = service.orders.get(million_order.id)
        assert stored.payments == []
        assert stored.payment_status == PaymentStatus.UNPAID

    def test_numeric_strings_are_accepted(self, service, million_order):
        summary = service.record_payment(million_order.id, "250000")
        assert summary.amount_paid == 250000

    def test_payment_records_cashier_and_date(self, service, million_order):
        service.record_payment(
            million_order.id, 1000, payment_date=date(2024, 6, 3), cashier_id="emp-1"
        )
        payment = service.orders.get(million_order.id).payments[0]
        assert payment.cashier_id == "emp-1"
        assert payment.payment_date == date(2024, 6, 3)
        assert payment.order_id == million_order.id


class TestRepricingFailures:
    @pytest.fixture
    def paid_order(self, flaky_service):
        poster = flaky_service.register_material(
            "Poster A3",
            price_end_customer=12000,
            price_retail=10000,
            price_wholesale=9000,
            price_reseller=8000,
            price_corporate=50000,
        )
        customer = flaky_service.create_customer("Toko Sumber Rejeki", CustomerTier.RETAIL)
        order = flaky_service.create_order(
            "PS-001", customer.id, [ItemDraft(material_id=poster.id, quantity=1)]
        )
        assert flaky_service.record_payment(order.id, 10000).payment_status == PaymentStatus.PAID
        return order

    def test_failed_tier_change_restores_the_customer(self, flaky_service, paid_order):
        flaky_service.orders.fail_writes = True

        with pytest.raises(RepositoryError):
            flaky_service.update_customer(paid_order.customer_id, tier=CustomerTier.CORPORATE)

        flaky_service.orders.fail_writes = False
        assert flaky_service.customers.get(paid_order.customer_id).tier == CustomerTier.RETAIL
        summary = flaky_service.order_summary(paid_order.id)
        assert summary.total == 10000
        assert summary.payment_status == PaymentStatus.PAID

    def test_failed_price_change_restores_the_material(self, flaky_service, paid_order):
        material_id = paid_order.items[0].material_id
        flaky_service.orders.fail_writes = True

        with pytest.raises(RepositoryError):
            flaky_service.update_material_prices(material_id, price_retail=15000)

        assert flaky_service.materials.get(material_id).price_retail == 10000
        assert flaky_service.orders.get(paid_order.id).payment_status == PaymentStatus.PAID

    def test_tier_change_succeeds_once_writes_recover(self, flaky_service, paid_order):
        flaky_service.orders.fail_writes = True
        with pytest.raises(RepositoryError):
            flaky_service.update_customer(paid_order.customer_id, tier=CustomerTier.CORPORATE)

        flaky_service.orders.fail_writes = False
        flaky_service.update_customer(paid_order.customer_id, tier=CustomerTier.CORPORATE)

        assert flaky_service.orders.get(paid_order.id).payment_status == PaymentStatus.UNPAID

    def test_orders_rewritten_before_the_failure_are_restored(self, flaky_service, paid_order):
        second = flaky_service.create_order(
            "PS-002",
            paid_order.customer_id,
            [ItemDraft(material_id=paid_order.items[0].material_id)],
        )
        flaky_service.record_payment(second.id, 10000)
        flaky_service.orders.writes_before_failure = 1

        with pytest.raises(RepositoryError):
            flaky_service.update_customer(paid_order.customer_id, tier=CustomerTier.CORPORATE)

        assert flaky_service.customers.get(paid_order.customer_id).tier == CustomerTier.RETAIL
        for order_id in (paid_order.id, second.id):
            assert flaky_service.orders.get(order_id).payment_status == PaymentStatus.PAID
