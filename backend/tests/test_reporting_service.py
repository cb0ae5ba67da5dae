"""
Reporting queries.

Sales are placed with explicit sale_date values so every window is
deterministic. Cancelled and soft-deleted rows must never count.
"""

from datetime import datetime

import pytest

from teknoroma.errors import NotFoundError, ValidationError
from teknoroma.extensions import db
from teknoroma.models import TechnicalService
from teknoroma.services import (
    customers_service,
    employees_service,
    expense_service,
    reporting_service,
    sales_service,
    service_ticket_service,
    suppliers_service,
)
from teknoroma.time_utils import age_on, utcnow


@pytest.fixture
def sell(customer, cashier, store):
    def _sell(items, *, when=None, employee=None, buyer=None, status="PENDING"):
        sale = sales_service.create_sale(
            (buyer or customer).id,
            (employee or cashier).id,
            store.id,
            "CREDIT_CARD",
            items,
            sale_date=when,
        )
        if status in ("PREPARING", "COMPLETED"):
            sales_service.confirm_payment(sale.id)
        if status == "COMPLETED":
            sales_service.complete_sale(sale.id)
        if status == "CANCELLED":
            sales_service.cancel_sale(sale.id, "test")
        return sale
    return _sell


# =============================================================================
# STOCK
# =============================================================================


class TestStockReports:

    def test_stock_report_counts_and_value(self, make_product):
        make_product(name="A", price_cents=1_000, units=50, critical=10)
        make_product(name="B", price_cents=2_000, units=5, critical=10)
        make_product(name="C", price_cents=3_000, units=0, critical=10)

        report = reporting_service.stock_report()
        assert report["total_products"] == 3
        assert report["sufficient_count"] == 1
        assert report["critical_count"] == 1
        assert report["out_of_stock_count"] == 1
        assert report["total_units"] == 55
        assert report["total_stock_value_cents"] == 60_000
        assert [i["product_name"] for i in report["items"]] == ["A", "B", "C"]
        assert report["items"][0]["category_name"] == "Laptops"

    def test_critical_report_shortage_and_last_sale(self, make_product, sell):
        low = make_product(name="Low", units=12, critical=10)
        make_product(name="Shelved", units=3, critical=10, is_active=False)
        sell([(low.id, 4)], when=datetime(2025, 2, 3, 10, 0))

        report = reporting_service.critical_stock_report()
        assert report["count"] == 1
        row = report["items"][0]
        assert row["product_id"] == low.id
        assert row["units_in_stock"] == 8
        assert row["shortage"] == 3
        assert row["last_sale_date"] == "2025-02-03T10:00:00Z"

    def test_out_of_stock_report(self, make_product):
        empty = make_product(name="Empty", units=0, critical=4)
        report = reporting_service.out_of_stock_report()
        assert [i["product_id"] for i in report["items"]] == [empty.id]
        assert report["items"][0]["shortage"] == 5
        assert report["items"][0]["last_sale_date"] is None


# =============================================================================
# SALES
# =============================================================================


class TestTopSelling:

    def test_ranking_and_tie_break(self, make_product, sell):
        cheap = make_product(name="Cheap", price_cents=1_000)
        pricey = make_product(name="Pricey", price_cents=5_000)
        rare = make_product(name="Rare", price_cents=9_000)

        sell([(cheap.id, 3)])
        sell([(pricey.id, 3), (rare.id, 1)])
        sell([(rare.id, 10)], status="CANCELLED")

        report = reporting_service.top_selling_products(top_n=10)
        items = report["items"]
        assert [i["product_id"] for i in items] == [pricey.id, cheap.id, rare.id]
        assert [i["rank"] for i in items] == [1, 2, 3]
        assert items[0]["quantity_sold"] == 3
        assert items[0]["revenue_cents"] == 15_000
        assert items[2]["quantity_sold"] == 1

    def test_top_n_and_window(self, make_product, sell):
        a = make_product(name="A")
        b = make_product(name="B")
        sell([(a.id, 5)], when=datetime(2025, 1, 10))
        sell([(b.id, 2)], when=datetime(2025, 2, 10))

        january = reporting_service.top_selling_products(
            top_n=5, start=datetime(2025, 1, 1), end=datetime(2025, 2, 1),
        )
        assert [i["product_id"] for i in january["items"]] == [a.id]
        assert len(reporting_service.top_selling_products(top_n=1)["items"]) == 1

    def test_invalid_top_n(self):
        with pytest.raises(ValidationError):
            reporting_service.top_selling_products(top_n=0)

    def test_unknown_store(self):
        with pytest.raises(NotFoundError):
            reporting_service.top_selling_products(store_id=404)


class TestEmployeePerformance:

    def test_month_totals(self, make_product, sell, cashier, second_cashier, manager):
        laptop = make_product(price_cents=500_000, units=20, critical=1)
        march = datetime(2025, 3, 12, 14, 0)

        sell([(laptop.id, 2)], when=march, status="COMPLETED")  # 12000.00 TL with tax
        sell([(laptop.id, 1)], when=march, status="PENDING")
        sell([(laptop.id, 1)], when=datetime(2025, 4, 1), status="COMPLETED")

        report = reporting_service.employee_sales_performance(2025, 3)
        by_id = {row["employee_id"]: row for row in report["items"]}

        assert set(by_id) == {cashier.id, second_cashier.id}
        top = report["items"][0]
        assert top["employee_id"] == cashier.id
        assert top["sales_cents"] == 1_200_000
        assert top["sale_count"] == 1
        assert top["achievement_pct"] == 120.0
        assert top["commission_cents"] == 20_000
        assert top["quota_achieved"] is True
        assert by_id[second_cashier.id]["sales_cents"] == 0
        assert report["total_commission_cents"] == 20_000

    def test_invalid_month(self):
        with pytest.raises(ValidationError):
            reporting_service.employee_sales_performance(2025, 0)


class TestCrossSelling:

    def test_partners(self, make_product, sell):
        a = make_product(name="Phone")
        b = make_product(name="Case")
        c = make_product(name="Charger")

        sell([(a.id, 1), (b.id, 1)])
        sell([(a.id, 1), (c.id, 1)])
        sell([(a.id, 1), (b.id, 1)])

        report = reporting_service.cross_selling_report(top_n=1)
        assert len(report["items"]) == 1
        phone = report["items"][0]
        assert phone["product_id"] == a.id
        assert phone["sale_count"] == 3
        assert phone["partners"] == [
            {"product_id": b.id, "product_name": "Case", "together_count": 2, "percentage": 66.67},
            {"product_id": c.id, "product_name": "Charger", "together_count": 1, "percentage": 33.33},
        ]

    def test_empty(self):
        assert reporting_service.cross_selling_report()["items"] == []


class TestUnsoldProducts:

    def test_recommendations(self, make_product, sell):
        now = datetime(2025, 12, 1, 12, 0)
        stale = make_product(name="Stale")
        never = make_product(name="Never")
        fresh = make_product(name="Fresh")
        make_product(name="Empty", units=0)

        sell([(stale.id, 1)], when=datetime(2025, 5, 1, 12, 0))
        sell([(fresh.id, 1)], when=datetime(2025, 11, 25, 12, 0))

        report = reporting_service.unsold_products(days=90, now=now)
        assert [i["product_id"] for i in report["items"]] == [never.id, stale.id]

        never_row, stale_row = report["items"]
        assert never_row["days_since_last_sale"] is None
        assert never_row["recommended_action"].startswith("Never sold")
        assert stale_row["days_since_last_sale"] == 214
        assert stale_row["recommended_action"] == "Apply 30% discount"
        assert report["count"] == 2

    @pytest.mark.parametrize(
        "days,expected",
        [(95, "Apply 10% discount"), (120, "Apply 20% discount"), (180, "Apply 30% discount")],
    )
    def test_action_thresholds(self, days, expected):
        assert reporting_service._recommended_action(days) == expected


class TestCustomerDemographics:

    def test_all_customers(self, customer):
        customers_service.create_customer({
            "identity_number": "22222222222", "first_name": "Can", "last_name": "Demir",
            "gender": "MALE", "city": "Ankara",
        })

        report = reporting_service.customer_demographics()
        assert report["total_customers"] == 2
        assert report["average_age"] == float(age_on(customer.birth_date, utcnow().date()))
        groups = {g["age_range"]: g["count"] for g in report["age_groups"]}
        assert groups["Unknown"] == 1
        assert sum(groups.values()) == 2
        genders = {g["gender"]: g["percentage"] for g in report["gender_distribution"]}
        assert genders == {"FEMALE": 50.0, "MALE": 50.0}

    def test_store_filter_uses_buyers(self, customer, store, product, sell):
        customers_service.create_customer({
            "identity_number": "22222222223", "first_name": "Nobuy", "last_name": "Yet",
        })
        sell([(product.id, 1)])

        filtered = reporting_service.customer_demographics(store_id=store.id)
        assert filtered["total_customers"] == 1
        assert filtered["city_distribution"] == [{"city": "Istanbul", "count": 1, "percentage": 100.0}]
        assert reporting_service.customer_demographics()["total_customers"] == 2


# =============================================================================
# STORES & CUSTOMERS
# =============================================================================


class TestStoreSalesComparison:

    def test_side_by_side(self, customer, store, other_store, product, sell):
        ankara_cashier = employees_service.create_employee({
            "identity_number": "55555555551", "first_name": "Deniz", "last_name": "Kasa",
            "role": "CASHIER", "store_id": other_store.id,
        })
        sell([(product.id, 2)], when=datetime(2025, 5, 10, 10, 0), status="COMPLETED")
        sell([(product.id, 1)], when=datetime(2025, 5, 11, 10, 0))
        sell([(product.id, 1)], when=datetime(2025, 5, 11, 11, 0), status="CANCELLED")
        sell([(product.id, 1)], when=datetime(2025, 7, 1, 10, 0))
        sales_service.create_sale(
            customer.id, ankara_cashier.id, other_store.id, "CASH", [(product.id, 1)],
            sale_date=datetime(2025, 5, 12, 10, 0),
        )
        expense_service.create_expense({
            "expense_type": "BILL", "store_id": store.id, "amount_cents": 100_000,
            "expense_date": "2025-05-01T09:00:00Z",
        })

        report = reporting_service.store_sales_comparison(
            start=datetime(2025, 5, 1), end=datetime(2025, 6, 1),
        )

        assert report["total_sales_cents"] == 480_000
        assert report["total_expenses_try_cents"] == 100_000
        kadikoy, cankaya = report["items"]
        assert kadikoy["store_id"] == store.id
        assert kadikoy["rank"] == 1
        assert kadikoy["sale_count"] == 2
        assert kadikoy["sales_cents"] == 360_000
        assert kadikoy["average_sale_cents"] == 180_000
        assert kadikoy["net_cents"] == 260_000
        assert kadikoy["employee_count"] == 1
        assert kadikoy["sales_per_employee_cents"] == 360_000
        assert kadikoy["share_pct"] == 75.0
        assert cankaya["store_name"] == "Cankaya"
        assert cankaya["sales_cents"] == 120_000
        assert cankaya["share_pct"] == 25.0

    def test_store_without_sales_is_listed(self, store):
        report = reporting_service.store_sales_comparison()
        assert report["items"] == [{
            "store_id": store.id,
            "store_name": "Kadikoy",
            "city": "Istanbul",
            "sale_count": 0,
            "sales_cents": 0,
            "average_sale_cents": 0,
            "expenses_try_cents": 0,
            "net_cents": 0,
            "employee_count": 0,
            "sales_per_employee_cents": 0,
            "share_pct": 0.0,
            "rank": 1,
        }]


class TestTopCustomers:

    def test_spend_ranking_and_tie_break(self, customer, product, sell):
        other = customers_service.create_customer({
            "identity_number": "22222222224", "first_name": "Can", "last_name": "Demir", "city": "Ankara",
        })
        sell([(product.id, 1)], when=datetime(2025, 3, 1, 10, 0))
        sell([(product.id, 1)], when=datetime(2025, 3, 5, 10, 0))
        sell([(product.id, 5)], when=datetime(2025, 3, 6, 10, 0), status="CANCELLED")
        sell([(product.id, 2)], when=datetime(2025, 3, 2, 10, 0), buyer=other)

        report = reporting_service.top_customers()
        # Equal spend: more purchases ranks first
        assert [r["customer_id"] for r in report["items"]] == [customer.id, other.id]
        first = report["items"][0]
        assert first["customer_name"] == "Ayse Yilmaz"
        assert first["sale_count"] == 2
        assert first["total_spent_cents"] == 240_000
        assert first["average_sale_cents"] == 120_000
        assert first["last_purchase_date"] == "2025-03-05T10:00:00Z"
        assert report["items"][1]["average_sale_cents"] == 240_000

        assert len(reporting_service.top_customers(top_n=1)["items"]) == 1

        window = reporting_service.top_customers(start=datetime(2025, 3, 4))
        assert [(r["customer_id"], r["sale_count"]) for r in window["items"]] == [(customer.id, 1)]

    def test_invalid_top_n(self):
        with pytest.raises(ValidationError):
            reporting_service.top_customers(top_n=0)


# =============================================================================
# EXPENSES & PURCHASING
# =============================================================================


class TestExpenseReport:

    def test_year_and_month(self, store):
        expense_service.create_expense({
            "expense_type": "BILL", "store_id": store.id, "amount_cents": 100_000,
            "expense_date": "2025-03-05T09:00:00Z", "is_paid": True,
        })
        expense_service.create_expense({
            "expense_type": "OTHER", "store_id": store.id, "amount_cents": 10_000,
            "currency": "USD", "exchange_rate": "30", "expense_date": "2025-04-05T09:00:00Z",
        })
        expense_service.create_expense({
            "expense_type": "BILL", "store_id": store.id, "amount_cents": 999,
            "expense_date": "2024-12-31T09:00:00Z",
        })

        year = reporting_service.expense_report(2025)
        assert year["total_try_cents"] == 400_000
        assert year["paid_try_cents"] == 100_000
        assert year["unpaid_try_cents"] == 300_000
        assert year["totals_by_type"] == {
            "EMPLOYEE_PAYMENT": 0,
            "TECHNICAL_INFRASTRUCTURE": 0,
            "BILL": 100_000,
            "OTHER": 300_000,
        }
        assert [(m["month"], m["expense_type"]) for m in year["monthly"]] == [(3, "BILL"), (4, "OTHER")]

        march = reporting_service.expense_report(2025, 3)
        assert march["total_try_cents"] == 100_000
        assert len(march["details"]) == 1


class TestSupplierTransactionReport:

    def test_grouped_by_supplier(self, supplier, product):
        for quantity, paid in ((2, True), (3, False)):
            suppliers_service.create_supplier_transaction({
                "supplier_id": supplier.id, "product_id": product.id, "quantity": quantity,
                "unit_price_cents": 1_000, "transaction_date": "2025-06-10T10:00:00Z", "is_paid": paid,
            })

        report = reporting_service.supplier_transaction_report(2025)
        assert report["total_cents"] == 5_000
        row = report["suppliers"][0]
        assert row["supplier_name"] == "Anadolu Elektronik"
        assert row["transaction_count"] == 2
        assert row["paid_cents"] == 2_000
        assert row["unpaid_cents"] == 3_000
        assert row["transactions"][0]["product_name"] == "Notebook Pro 14"

        assert reporting_service.supplier_transaction_report(2025, 7)["suppliers"] == []


# =============================================================================
# TECHNICAL SERVICE
# =============================================================================


class TestTechnicalServicePerformance:

    @staticmethod
    def _ticket(store, reporter, reported_at, **extra):
        payload = {
            "title": "Register issue",
            "description": "Details",
            "store_id": store.id,
            "reported_by_employee_id": reporter.id,
            "reported_at": reported_at,
        }
        payload.update(extra)
        return service_ticket_service.create_ticket(payload)

    @staticmethod
    def _set_resolved_at(ticket_id, resolved_at):
        ticket = db.session.get(TechnicalService, ticket_id)
        ticket.resolved_at = resolved_at
        db.session.commit()

    def test_period_totals_and_per_technician(self, store, cashier, technician, customer):
        fast = self._ticket(store, cashier, "2025-04-01T08:00:00Z", priority=4)
        service_ticket_service.assign_ticket(fast.id, technician.id)
        service_ticket_service.resolve_ticket(fast.id, "Replaced cable")
        self._set_resolved_at(fast.id, datetime(2025, 4, 1, 11, 0))

        slow = self._ticket(store, cashier, "2025-04-02T08:00:00Z", priority=3)
        service_ticket_service.assign_ticket(slow.id, technician.id)
        service_ticket_service.resolve_ticket(slow.id, "Board is dead", status="UNRESOLVABLE")
        self._set_resolved_at(slow.id, datetime(2025, 4, 3, 8, 0))

        self._ticket(
            store, cashier, "2025-04-03T08:00:00Z",
            is_customer_issue=True, customer_id=customer.id,
        )
        self._ticket(store, cashier, "2025-05-10T08:00:00Z")

        report = reporting_service.technical_service_performance(
            start=datetime(2025, 4, 1), end=datetime(2025, 5, 1),
        )

        assert report["total_tickets"] == 3
        assert report["open_count"] == 1
        assert report["resolved_count"] == 1
        assert report["unresolvable_count"] == 1
        assert report["customer_issue_count"] == 1
        assert report["system_issue_count"] == 2
        # (3h + 24h) / 2; only the 3h ticket met its SLA
        assert report["average_resolution_hours"] == 13.5
        assert report["sla_success_pct"] == 50.0
        assert report["by_priority"] == [
            {"priority": 2, "count": 1},
            {"priority": 3, "count": 1},
            {"priority": 4, "count": 1},
        ]
        assert report["by_employee"] == [{
            "employee_id": technician.id,
            "employee_name": technician.full_name,
            "assigned_count": 2,
            "resolved_count": 1,
            "unresolvable_count": 1,
            "open_count": 0,
            "average_resolution_hours": 13.5,
        }]

    def test_store_filter_and_empty_period(self, store, other_store, cashier):
        self._ticket(store, cashier, "2025-04-01T08:00:00Z")

        assert reporting_service.technical_service_performance(store_id=store.id)["total_tickets"] == 1
        empty = reporting_service.technical_service_performance(store_id=other_store.id)
        assert empty["total_tickets"] == 0
        assert empty["average_resolution_hours"] is None
        assert empty["sla_success_pct"] == 0.0

    def test_unknown_store(self):
        with pytest.raises(NotFoundError):
            reporting_service.technical_service_performance(store_id=999)


class TestCatalogAndDashboard:

    def test_products_by_category(self, category, make_product):
        make_product(name="A", price_cents=100, units=2)
        make_product(name="B", price_cents=300, units=1)

        report = reporting_service.product_list_by_category()
        assert report["category_count"] == 1
        laptops = report["items"][0]
        assert laptops["category_name"] == "Laptops"
        assert laptops["product_count"] == 2
        assert laptops["total_units"] == 3
        assert laptops["total_stock_value_cents"] == 500

    def test_dashboard(self, store, cashier, product, sell):
        sell([(product.id, 1)])
        sell([(product.id, 1)], status="CANCELLED")
        service_ticket_service.create_ticket({
            "title": "POS down", "description": "Register 1", "store_id": store.id,
            "reported_by_employee_id": cashier.id, "priority": 4,
        })
        expense_service.create_expense({"expense_type": "BILL", "store_id": store.id, "amount_cents": 5_000})

        summary = reporting_service.dashboard_summary(store.id)
        assert summary["today_sales_count"] == 1
        assert summary["today_sales_cents"] == 120_000
        assert summary["month_sales_count"] == 1
        assert summary["pending_sales_count"] == 1
        assert summary["sufficient_stock_count"] == 1
        assert summary["active_employee_count"] == 1
        assert summary["open_ticket_count"] == 1
        assert summary["critical_ticket_count"] == 1
        assert summary["month_expenses_try_cents"] == 5_000
        assert summary["unpaid_expense_count"] == 1
