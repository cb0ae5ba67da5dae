"""
Pytest fixtures for TeknoRoma backend tests.

Provides an in-memory database, a stubbed TCMB feed, master-data fixtures
and the Flask test client.
"""

import httpx
import pytest

from teknoroma import create_app
from teknoroma.extensions import db
from teknoroma.services import (
    customers_service,
    employees_service,
    products_service,
    stores_service,
    suppliers_service,
)
from teknoroma.services.exchange_rate_service import exchange_rates
from teknoroma.services.notification_service import notifications


TCMB_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Tarih_Date Tarih="15.01.2026" Date="01/15/2026" Bulten_No="2026/10">
  <Currency CrossOrder="0" Kod="USD" CurrencyCode="USD">
    <Unit>1</Unit>
    <Isim>ABD DOLARI</Isim>
    <CurrencyName>US DOLLAR</CurrencyName>
    <ForexBuying>34.5000</ForexBuying>
    <ForexSelling>34.5600</ForexSelling>
  </Currency>
  <Currency CrossOrder="9" Kod="EUR" CurrencyCode="EUR">
    <Unit>1</Unit>
    <Isim>EURO</Isim>
    <CurrencyName>EURO</CurrencyName>
    <ForexBuying>37.2000</ForexBuying>
    <ForexSelling>37.2700</ForexSelling>
  </Currency>
  <Currency CrossOrder="10" Kod="GBP" CurrencyCode="GBP">
    <Unit>1</Unit>
    <Isim>INGILIZ STERLINI</Isim>
    <CurrencyName>POUND STERLING</CurrencyName>
    <ForexBuying>43.1000</ForexBuying>
    <ForexSelling>43.3000</ForexSelling>
  </Currency>
  <Currency CrossOrder="12" Kod="JPY" CurrencyCode="JPY">
    <Unit>100</Unit>
    <Isim>JAPON YENI</Isim>
    <CurrencyName>JAPENESE YEN</CurrencyName>
    <ForexBuying>22,1500</ForexBuying>
    <ForexSelling>22,3000</ForexSelling>
  </Currency>
</Tarih_Date>
"""


class FeedStub:
    """Controls what the mocked TCMB endpoint returns."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.status_code = 200
        self.body = TCMB_XML
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        return httpx.Response(self.status_code, text=self.body)


FEED = FeedStub()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
        'EXCHANGE_RATE_TRANSPORT': httpx.MockTransport(FEED.handler),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh data, notifications and rate cache for each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        notifications.reset()
        exchange_rates.clear_cache()
        FEED.reset()

        yield db.session

        db.session.rollback()


@pytest.fixture
def rate_feed():
    return FEED


@pytest.fixture
def store(db_session):
    return stores_service.create_store({"name": "Kadikoy", "city": "Istanbul"})


@pytest.fixture
def other_store(db_session):
    return stores_service.create_store({"name": "Cankaya", "city": "Ankara"})


def _employee(store, identity, role, **extra):
    payload = {
        "identity_number": identity,
        "first_name": extra.pop("first_name", "Test"),
        "last_name": extra.pop("last_name", role.title()),
        "role": role,
        "store_id": store.id,
    }
    payload.update(extra)
    return employees_service.create_employee(payload)


@pytest.fixture
def cashier(store):
    return _employee(store, "11111111111", "CASHIER", first_name="Gul", last_name="Satar")


@pytest.fixture
def second_cashier(store):
    return _employee(store, "11111111112", "CASHIER", first_name="Kerem", last_name="Kasa")


@pytest.fixture
def manager(store):
    return _employee(store, "11111111113", "BRANCH_MANAGER", first_name="Haluk", last_name="Bey")


@pytest.fixture
def technician(store):
    return _employee(store, "11111111114", "TECHNICAL_SERVICE", first_name="Ozgun", last_name="Teknik")


@pytest.fixture
def make_employee(store):
    def _make(identity, role="CASHIER", **extra):
        return _employee(store, identity, role, **extra)
    return _make


@pytest.fixture
def customer(db_session):
    return customers_service.create_customer({
        "identity_number": "22222222221",
        "first_name": "Ayse",
        "last_name": "Yilmaz",
        "birth_date": "1990-04-12",
        "gender": "FEMALE",
        "city": "Istanbul",
    })


@pytest.fixture
def category(db_session):
    return products_service.create_category({"name": "Laptops"})


@pytest.fixture
def supplier(db_session):
    return suppliers_service.create_supplier({
        "company_name": "Anadolu Elektronik",
        "tax_number": "1234567890",
    })


@pytest.fixture
def make_product(category, supplier):
    counter = {"n": 0}

    def _make(name=None, price_cents=10_000, units=50, critical=10, **extra):
        counter["n"] += 1
        payload = {
            "name": name or f"Product {counter['n']}",
            "barcode": extra.pop("barcode", f"869000000{counter['n']:04d}"),
            "unit_price_cents": price_cents,
            "units_in_stock": units,
            "critical_stock_level": critical,
            "category_id": category.id,
            "supplier_id": supplier.id,
        }
        payload.update(extra)
        return products_service.create_product(payload)

    return _make


@pytest.fixture
def product(make_product):
    return make_product(name="Notebook Pro 14", price_cents=100_000, units=20, critical=5)
