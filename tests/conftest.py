"""
Pytest fixtures for the print-shop engine tests.

Provides an in-memory service with a small price list so that expected
totals can be worked out by hand:

    Flexi 280gr   end 25000  retail 23000  wholesale 20000  reseller 18000  corporate 22000
    Kartu Nama    end 35000  retail 32000  wholesale 30000  reseller 27000  corporate 31000
"""
from datetime import date
from decimal import Decimal

import pytest

from printshop import CustomerTier, ItemDraft, PrintShopService
from printshop.domain import EmployeePosition
from printshop.repository import InMemoryRepository, RepositoryError


class FlakyRepository(InMemoryRepository):
    """In-memory repository whose writes can be switched to fail.

    ``fail_writes`` breaks every write; ``writes_before_failure`` lets that
    many writes through and then fails the next one only.
    """

    def __init__(self):
        super().__init__()
        self.fail_writes = False
        self.writes_before_failure = None

    def _check_write(self):
        if self.writes_before_failure is not None:
            if self.writes_before_failure == 0:
                self.writes_before_failure = None
                raise RepositoryError("connection reset by peer")
            self.writes_before_failure -= 1
        if self.fail_writes:
            raise RepositoryError("connection reset by peer")

    def upsert(self, item_id, item):
        self._check_write()
        super().upsert(item_id, item)

    def remove(self, item_id):
        self._check_write()
        super().remove(item_id)


@pytest.fixture
def service():
    return PrintShopService()


@pytest.fixture
def flaky_service():
    """Service whose order writes can be made to fail via ``orders.fail_writes``."""
    return PrintShopService(order_repo=FlakyRepository())


@pytest.fixture
def flexi(service):
    return service.register_material(
        "Flexi 280gr",
        price_end_customer=25000,
        price_retail=23000,
        price_wholesale=20000,
        price_reseller=18000,
        price_corporate=22000,
    )


@pytest.fixture
def cards(service):
    return service.register_material(
        "Kartu Nama",
        price_end_customer=35000,
        price_retail=32000,
        price_wholesale=30000,
        price_reseller=27000,
        price_corporate=31000,
    )


@pytest.fixture
def retail_customer(service):
    return service.create_customer("Toko Sumber Rejeki", CustomerTier.RETAIL)


@pytest.fixture
def reseller_customer(service):
    return service.create_customer("CV Kreasi Media", CustomerTier.RESELLER)


@pytest.fixture
def operator(service):
    return service.register_employee("Budi Santoso", EmployeePosition.PRODUCTION)


@pytest.fixture
def banner_draft(flexi):
    """3 x 1.5 banner, two pieces: area 4.5 each."""
    return ItemDraft(
        material_id=flexi.id,
        description="Spanduk",
        length=Decimal("3"),
        width=Decimal("1.5"),
        quantity=2,
        finishing="Mata ayam",
    )


@pytest.fixture
def cards_draft(cards):
    """Three boxes of business cards, priced per piece."""
    return ItemDraft(material_id=cards.id, description="Kartu nama", quantity=3)


@pytest.fixture
def make_order(service, retail_customer, banner_draft, cards_draft):
    """Factory for orders; defaults to the retail banner + cards order (total 303000)."""
    counter = {"value": 0}

    def _make(customer=None, items=None, order_date=None, invoice_number=None):
        counter["value"] += 1
        return service.create_order(
            invoice_number or f"INV-{counter['value']:04d}",
            (customer or retail_customer).id,
            items if items is not None else [banner_draft, cards_draft],
            order_date=order_date or date(2024, 5, 10),
        )

    return _make
