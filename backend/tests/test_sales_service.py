"""
Sale workflow tests.

Verifies:
- Totals: line discounts, 20% tax on the discounted subtotal, sale discount
- Stock is decremented atomically with the sale and restored on cancel
- Failed sales persist nothing and consume no sale number
- Status transitions follow PENDING -> PREPARING -> COMPLETED
- Commission above the monthly quota
"""

from datetime import datetime
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import create_engine, text

from conftest import FEED
from teknoroma import create_app
from teknoroma.errors import (
    InsufficientStockError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from teknoroma.extensions import db
from teknoroma.models import DocumentSequence, Product, Sale, SaleDetail
from teknoroma.services import (
    customers_service,
    employees_service,
    products_service,
    sales_service,
    stock_service,
    stores_service,
    suppliers_service,
)
from teknoroma.services.notification_service import notifications
from teknoroma.time_utils import utcnow


def _sale(customer, cashier, store, items, **kwargs):
    return sales_service.create_sale(
        customer.id, cashier.id, store.id, kwargs.pop("payment_type", "CASH"), items, **kwargs
    )


# =============================================================================
# MONEY ARITHMETIC
# =============================================================================


class TestMoneyArithmetic:

    def test_calculate_line(self):
        assert sales_service.calculate_line(100_000, 2, Decimal("10")) == (200_000, 20_000, 180_000)

    def test_line_discount_rounds_half_up(self):
        # 333 * 1.5% = 4.995 -> 5
        assert sales_service.calculate_line(333, 1, Decimal("1.5")) == (333, 5, 328)

    def test_calculate_tax(self):
        assert sales_service.calculate_tax(180_000, 2000) == 36_000
        assert sales_service.calculate_tax(5, 2000) == 1

    @pytest.mark.parametrize(
        "sales,expected",
        [
            (0, 0),
            (999_999, 0),
            (1_000_000, 0),
            (1_500_000, 50_000),
            (1_000_005, 1),
        ],
    )
    def test_commission_above_quota(self, sales, expected):
        assert sales_service.calculate_commission(sales, 1_000_000, 1000) == expected


# =============================================================================
# CREATE
# =============================================================================


class TestCreateSale:

    def test_totals_and_stock(self, customer, cashier, store, product):
        sale = _sale(
            customer, cashier, store,
            [{"product_id": product.id, "quantity": 2, "discount_percent": 10}],
            cash_register_number="K-01",
        )

        assert sale.status == "PENDING"
        assert sale.subtotal_cents == 180_000
        assert sale.tax_cents == 36_000
        assert sale.total_cents == 216_000
        assert sale.sale_number == f"S-{sale.sale_date.year}-00001"

        details = sales_service.get_sale_details(sale.id)
        assert len(details) == 1
        assert details[0].product_name == "Notebook Pro 14"
        assert details[0].unit_price_cents == 100_000
        assert details[0].discount_cents == 20_000

        db.session.expire_all()
        assert db.session.get(Product, product.id).units_in_stock == 18

    def test_tuple_line_items_and_sale_discount(self, customer, cashier, store, make_product):
        mouse = make_product(price_cents=25_000, units=10, critical=2)
        sale = _sale(customer, cashier, store, [(mouse.id, 2)], discount_cents=1_000)
        assert sale.subtotal_cents == 50_000
        assert sale.tax_cents == 10_000
        assert sale.total_cents == 59_000

    def test_sequential_numbers(self, customer, cashier, store, product):
        first = _sale(customer, cashier, store, [(product.id, 1)])
        second = _sale(customer, cashier, store, [(product.id, 1)])
        year = first.sale_date.year
        assert first.sale_number == f"S-{year}-00001"
        assert second.sale_number == f"S-{year}-00002"

    def test_sale_date_drives_number_year(self, customer, cashier, store, product):
        sale = _sale(customer, cashier, store, [(product.id, 1)], sale_date=datetime(2024, 12, 31, 23, 0))
        assert sale.sale_number == "S-2024-00001"

    def test_numbers_stay_sequential_across_cancellations(self, customer, cashier, store, product):
        sale_date = datetime(2024, 6, 1, 10, 0)
        first = _sale(customer, cashier, store, [(product.id, 1)], sale_date=sale_date)
        sales_service.cancel_sale(first.id, "wrong customer")
        second = _sale(customer, cashier, store, [(product.id, 1)], sale_date=sale_date)
        sales_service.cancel_sale(second.id, "duplicate")
        third = _sale(customer, cashier, store, [(product.id, 1)], sale_date=sale_date)

        assert [first.sale_number, second.sale_number, third.sale_number] == [
            "S-2024-00001",
            "S-2024-00002",
            "S-2024-00003",
        ]

    def test_insufficient_stock_persists_nothing(self, customer, cashier, store, make_product):
        plenty = make_product(units=10, critical=1)
        scarce = make_product(name="Phone Lite", units=1, critical=1)

        with pytest.raises(InsufficientStockError) as excinfo:
            _sale(customer, cashier, store, [(plenty.id, 2), (scarce.id, 3)])

        items = excinfo.value.details["items"]
        assert items == [{
            "product_id": scarce.id,
            "product_name": "Phone Lite",
            "requested_quantity": 3,
            "units_in_stock": 1,
        }]

        db.session.expire_all()
        assert db.session.query(Sale).count() == 0
        assert db.session.query(SaleDetail).count() == 0
        assert db.session.get(Product, plenty.id).units_in_stock == 10

        sale = _sale(customer, cashier, store, [(plenty.id, 1)])
        assert sale.sale_number.endswith("-00001")

    def test_failure_after_header_flush_rolls_everything_back(
        self, customer, cashier, store, make_product, monkeypatch
    ):
        first = make_product(units=10, critical=1)
        second = make_product(units=10, critical=1)
        real_decrease = sales_service.apply_decrease

        def _failing_decrease(product, quantity):
            if product.id == second.id:
                raise RuntimeError("write failed")
            return real_decrease(product, quantity)

        monkeypatch.setattr(sales_service, "apply_decrease", _failing_decrease)

        with pytest.raises(RuntimeError):
            _sale(customer, cashier, store, [(first.id, 2), (second.id, 1)])

        db.session.expire_all()
        assert db.session.query(Sale).count() == 0
        assert db.session.query(SaleDetail).count() == 0
        assert db.session.query(DocumentSequence).count() == 0
        assert db.session.get(Product, first.id).units_in_stock == 10
        assert db.session.get(Product, second.id).units_in_stock == 10

    def test_repeated_product_lines_are_summed_for_stock(self, customer, cashier, store, make_product):
        product = make_product(units=3, critical=1)
        with pytest.raises(InsufficientStockError):
            _sale(customer, cashier, store, [(product.id, 2), (product.id, 2)])

    def test_empty_items_rejected(self, customer, cashier, store):
        with pytest.raises(ValidationError):
            _sale(customer, cashier, store, [])

    @pytest.mark.parametrize("discount", [-1, 101, "abc"])
    def test_discount_percent_bounds(self, customer, cashier, store, product, discount):
        with pytest.raises(ValidationError):
            _sale(customer, cashier, store, [{"product_id": product.id, "quantity": 1, "discount_percent": discount}])

    def test_discount_cannot_exceed_total(self, customer, cashier, store, product):
        with pytest.raises(ValidationError):
            _sale(customer, cashier, store, [(product.id, 1)], discount_cents=120_001)

    def test_unknown_payment_type(self, customer, cashier, store, product):
        with pytest.raises(ValidationError):
            _sale(customer, cashier, store, [(product.id, 1)], payment_type="BITCOIN")

    def test_missing_customer(self, cashier, store, product):
        with pytest.raises(NotFoundError):
            sales_service.create_sale(9999, cashier.id, store.id, "CASH", [(product.id, 1)])

    def test_deleted_employee_is_rejected(self, customer, cashier, store, product):
        employees_service.delete_employee(cashier.id)
        with pytest.raises(NotFoundError):
            _sale(customer, cashier, store, [(product.id, 1)])

    def test_inactive_product_is_rejected(self, customer, cashier, store, make_product):
        product = make_product(units=5, is_active=False)
        with pytest.raises(ValidationError):
            _sale(customer, cashier, store, [(product.id, 1)])

    def test_deleted_product_is_not_found(self, customer, cashier, store, product):
        products_service.delete_product(product.id)
        with pytest.raises(NotFoundError):
            _sale(customer, cashier, store, [(product.id, 1)])

    def test_notifies_warehouse_and_cashiers(self, customer, cashier, store, product):
        sale = _sale(customer, cashier, store, [(product.id, 1)])
        for topic in ("role:WAREHOUSE", "role:CASHIER"):
            events = notifications.recent(topic)
            assert [e.event_type for e in events] == ["sale.created"]
            assert events[0].payload["sale_number"] == sale.sale_number
            assert "1x Notebook Pro 14" in events[0].payload["product_summary"]

    def test_critical_notification_after_sale(self, customer, cashier, store, product):
        # product: 20 units, critical level 5
        _sale(customer, cashier, store, [(product.id, 15)])
        events = notifications.recent("role:BRANCH_MANAGER")
        assert [e.event_type for e in events] == ["stock.critical"]


# =============================================================================
# TRANSITIONS
# =============================================================================


class TestTransitions:

    def test_happy_path(self, customer, cashier, store, product):
        sale = _sale(customer, cashier, store, [(product.id, 1)])

        sale = sales_service.confirm_payment(sale.id)
        assert sale.status == "PREPARING"
        assert sale.paid_at is not None
        assert notifications.recent("role:WAREHOUSE")[-1].event_type == "sale.payment_confirmed"

        sale = sales_service.complete_sale(sale.id)
        assert sale.status == "COMPLETED"
        assert sale.completed_at is not None

    def test_cannot_complete_pending_sale(self, customer, cashier, store, product):
        sale = _sale(customer, cashier, store, [(product.id, 1)])
        with pytest.raises(InvalidStateTransitionError):
            sales_service.complete_sale(sale.id)

    def test_cancel_restores_stock(self, customer, cashier, store, product):
        sale = _sale(customer, cashier, store, [(product.id, 16)])
        db.session.expire_all()
        assert db.session.get(Product, product.id).stock_status == "CRITICAL"

        cancelled = sales_service.cancel_sale(sale.id, "customer changed mind")
        assert cancelled.status == "CANCELLED"
        assert cancelled.cancel_reason == "customer changed mind"

        db.session.expire_all()
        restored = db.session.get(Product, product.id)
        assert restored.units_in_stock == 20
        assert restored.stock_status == "SUFFICIENT"

    def test_cancel_restores_soft_deleted_product(self, customer, cashier, store, product):
        sale = _sale(customer, cashier, store, [(product.id, 4)])
        products_service.delete_product(product.id)

        sales_service.cancel_sale(sale.id, "wrong item")

        db.session.expire_all()
        assert db.session.get(Product, product.id).units_in_stock == 20

    def test_cancel_requires_reason(self, customer, cashier, store, product):
        sale = _sale(customer, cashier, store, [(product.id, 1)])
        with pytest.raises(ValidationError):
            sales_service.cancel_sale(sale.id, "")

    def test_completed_sale_cannot_be_cancelled(self, customer, cashier, store, product):
        sale = _sale(customer, cashier, store, [(product.id, 1)])
        sales_service.confirm_payment(sale.id)
        sales_service.complete_sale(sale.id)

        with pytest.raises(InvalidStateTransitionError):
            sales_service.cancel_sale(sale.id, "too late")

        db.session.expire_all()
        assert db.session.get(Product, product.id).units_in_stock == 19

    def test_cancelled_sale_cannot_be_cancelled_twice(self, customer, cashier, store, product):
        sale = _sale(customer, cashier, store, [(product.id, 1)])
        sales_service.cancel_sale(sale.id, "first")
        with pytest.raises(InvalidStateTransitionError):
            sales_service.cancel_sale(sale.id, "second")

    def test_update_sale_status_dispatch(self, customer, cashier, store, product):
        sale = _sale(customer, cashier, store, [(product.id, 1)])
        assert sales_service.update_sale_status(sale.id, "preparing").status == "PREPARING"
        assert sales_service.update_sale_status(sale.id, "COMPLETED").status == "COMPLETED"

    def test_update_sale_status_back_to_pending_rejected(self, customer, cashier, store, product):
        sale = _sale(customer, cashier, store, [(product.id, 1)])
        with pytest.raises(InvalidStateTransitionError):
            sales_service.update_sale_status(sale.id, "PENDING")

    def test_unknown_sale(self):
        with pytest.raises(NotFoundError):
            sales_service.confirm_payment(12345)


# =============================================================================
# QUERIES & COMMISSION
# =============================================================================


class TestQueriesAndCommission:

    def test_get_by_number_and_list(self, customer, cashier, store, product):
        sale = _sale(customer, cashier, store, [(product.id, 1)])
        assert sales_service.get_sale_by_number(sale.sale_number).id == sale.id
        assert [s.id for s in sales_service.list_sales(store_id=store.id)] == [sale.id]
        assert sales_service.list_sales(status="CANCELLED") == []

    def test_employee_commission(self, customer, cashier, store, make_product):
        laptop = make_product(price_cents=500_000, units=10, critical=1)
        now = utcnow()

        # 3 x 5000.00 TL + 20% tax = 18000.00 TL completed
        sale = _sale(customer, cashier, store, [(laptop.id, 3)])
        sales_service.confirm_payment(sale.id)
        sales_service.complete_sale(sale.id)
        # Pending and cancelled sales do not count
        _sale(customer, cashier, store, [(laptop.id, 1)])
        cancelled = _sale(customer, cashier, store, [(laptop.id, 1)])
        sales_service.cancel_sale(cancelled.id, "duplicate")

        report = sales_service.employee_commission(cashier.id, now.year, now.month)
        assert report["sales_cents"] == 1_800_000
        assert report["quota_cents"] == 1_000_000
        assert report["above_quota_cents"] == 800_000
        assert report["commission_cents"] == 80_000
        assert report["quota_achieved"] is True

    def test_employee_quota_override(self, customer, make_employee, store, make_product):
        seller = make_employee("33333333331", sales_quota_cents=5_000_000)
        laptop = make_product(price_cents=500_000, units=10, critical=1)
        now = utcnow()
        sale = _sale(customer, seller, store, [(laptop.id, 1)])
        sales_service.confirm_payment(sale.id)
        sales_service.complete_sale(sale.id)

        report = sales_service.employee_commission(seller.id, now.year, now.month)
        assert report["quota_cents"] == 5_000_000
        assert report["commission_cents"] == 0
        assert report["quota_achieved"] is False

    def test_invalid_month(self, cashier):
        with pytest.raises(ValidationError):
            sales_service.employee_commission(cashier.id, 2026, 13)


# =============================================================================
# CONCURRENT WRITERS
# =============================================================================


@pytest.fixture
def file_app(tmp_path):
    """A second app on a file database so another engine can write to it."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrent.db'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
        'EXCHANGE_RATE_TRANSPORT': httpx.MockTransport(FEED.handler),
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


class TestConcurrentWriters:

    def test_concurrent_writer_is_retried_against_fresh_stock(self, file_app, monkeypatch):
        store = stores_service.create_store({"name": "Besiktas", "city": "Istanbul"})
        cashier = employees_service.create_employee({
            "identity_number": "44444444441",
            "first_name": "Selin",
            "last_name": "Kasa",
            "role": "CASHIER",
            "store_id": store.id,
        })
        customer = customers_service.create_customer({
            "identity_number": "44444444442",
            "first_name": "Mert",
            "last_name": "Alici",
        })
        category = products_service.create_category({"name": "Tablets"})
        supplier = suppliers_service.create_supplier({"company_name": "Marmara Dagitim", "tax_number": "9876543210"})
        product = products_service.create_product({
            "name": "Tablet 10",
            "barcode": "8690000099991",
            "unit_price_cents": 50_000,
            "units_in_stock": 5,
            "critical_stock_level": 1,
            "category_id": category.id,
            "supplier_id": supplier.id,
        })
        product_id = product.id

        other_engine = create_engine(file_app.config["SQLALCHEMY_DATABASE_URI"])
        real_read = stock_service.get_product_for_update
        reads = []

        def _read_then_interleave(pid):
            loaded = real_read(pid)
            reads.append(loaded.units_in_stock)
            if len(reads) == 1:
                # Another register sells 4 units between our read and our flush
                with other_engine.begin() as conn:
                    conn.execute(
                        text(
                            "UPDATE products SET units_in_stock = 1, version_id = version_id + 1 "
                            "WHERE id = :id"
                        ),
                        {"id": pid},
                    )
            return loaded

        monkeypatch.setattr(sales_service, "get_product_for_update", _read_then_interleave)

        try:
            with pytest.raises(InsufficientStockError) as excinfo:
                sales_service.create_sale(customer.id, cashier.id, store.id, "CASH", [(product_id, 2)])
        finally:
            other_engine.dispose()

        assert reads == [5, 1]
        assert excinfo.value.details["items"][0]["units_in_stock"] == 1

        db.session.expire_all()
        assert db.session.get(Product, product_id).units_in_stock == 1
        assert db.session.query(Sale).count() == 0
