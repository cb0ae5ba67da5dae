# Overview: Read-only reporting queries behind the role dashboards.

"""
Reporting aggregator.

Every report is read-only and returns plain dicts ready for jsonify.

Shared rules:
- Soft-deleted rows never count.
- Cancelled sales never count; "completed" reports (employee performance,
  commission) count COMPLETED sales only.
- Date ranges: start inclusive, end exclusive.
- Money is reported in cents; percentages are rounded to 2 places.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Category,
    Customer,
    Employee,
    Expense,
    Product,
    Sale,
    SaleDetail,
    Store,
    Supplier,
    SupplierTransaction,
    TechnicalService,
)
from ..models.enums import (
    CLOSED_TICKET_STATUSES,
    EmployeeRole,
    ExpenseType,
    Gender,
    SaleStatus,
    StockStatus,
    TicketStatus,
)
from ..errors import NotFoundError
from ..time_utils import age_on, day_bounds, month_bounds, to_iso_date, to_utc_z, utcnow
from ..validation import require_date_range, require_month, require_positive_int
from .sales_service import calculate_commission, quota_for, round_half_up, DEFAULT_COMMISSION_RATE_BPS
from .service_ticket_service import sla_deadline

DEFAULT_TOP_N = 10
CROSS_SELL_PARTNERS = 5

AGE_GROUPS = (
    ("0-17", 0, 17),
    ("18-25", 18, 25),
    ("26-35", 26, 35),
    ("36-45", 36, 45),
    ("46-55", 46, 55),
    ("56+", 56, None),
)


def _pct(part, whole) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100.0, 2)


def _require_store(store_id: int | None) -> None:
    if store_id is None:
        return
    if Store.visible().filter(Store.id == store_id).first() is None:
        raise NotFoundError("Store not found", details={"store_id": store_id})


def _counted_sales_filters(*, store_id=None, start=None, end=None, completed_only: bool = False) -> list:
    filters = [Sale.is_deleted.is_(False)]
    if completed_only:
        filters.append(Sale.status == SaleStatus.COMPLETED.value)
    else:
        filters.append(Sale.status != SaleStatus.CANCELLED.value)
    if store_id is not None:
        filters.append(Sale.store_id == store_id)
    if start is not None:
        filters.append(Sale.sale_date >= start)
    if end is not None:
        filters.append(Sale.sale_date < end)
    return filters


def _detail_query(*columns, store_id=None, start=None, end=None):
    return (
        db.session.query(*columns)
        .join(Sale, SaleDetail.sale_id == Sale.id)
        .filter(SaleDetail.is_deleted.is_(False))
        .filter(*_counted_sales_filters(store_id=store_id, start=start, end=end))
    )


def _last_sale_dates(product_ids, *, store_id=None) -> dict[int, datetime]:
    if not product_ids:
        return {}
    rows = (
        _detail_query(SaleDetail.product_id, func.max(Sale.sale_date), store_id=store_id)
        .filter(SaleDetail.product_id.in_(list(product_ids)))
        .group_by(SaleDetail.product_id)
        .all()
    )
    return {product_id: last for product_id, last in rows}


def _product_row(product: Product, category_names: dict, supplier_names: dict) -> dict:
    return {
        "product_id": product.id,
        "product_name": product.name,
        "barcode": product.barcode,
        "category_id": product.category_id,
        "category_name": category_names.get(product.category_id),
        "supplier_id": product.supplier_id,
        "supplier_name": supplier_names.get(product.supplier_id),
        "unit_price_cents": product.unit_price_cents,
        "units_in_stock": product.units_in_stock,
        "critical_stock_level": product.critical_stock_level,
        "stock_status": product.stock_status,
        "stock_value_cents": product.unit_price_cents * product.units_in_stock,
        "is_active": product.is_active,
    }


def _name_maps() -> tuple[dict, dict]:
    categories = dict(db.session.query(Category.id, Category.name).all())
    suppliers = dict(db.session.query(Supplier.id, Supplier.company_name).all())
    return categories, suppliers


# =============================================================================
# Stock
# =============================================================================

def stock_report() -> dict:
    products = Product.visible().order_by(Product.name.asc(), Product.id.asc()).all()
    categories, suppliers = _name_maps()
    counts = Counter(p.stock_status for p in products)
    return {
        "generated_at": to_utc_z(utcnow()),
        "total_products": len(products),
        "sufficient_count": counts.get(StockStatus.SUFFICIENT.value, 0),
        "critical_count": counts.get(StockStatus.CRITICAL.value, 0),
        "out_of_stock_count": counts.get(StockStatus.OUT_OF_STOCK.value, 0),
        "total_units": sum(p.units_in_stock for p in products),
        "total_stock_value_cents": sum(p.unit_price_cents * p.units_in_stock for p in products),
        "items": [_product_row(p, categories, suppliers) for p in products],
    }


def _status_report(status: StockStatus) -> dict:
    products = (
        Product.visible()
        .filter(Product.stock_status == status.value, Product.is_active.is_(True))
        .order_by(Product.units_in_stock.asc(), Product.name.asc(), Product.id.asc())
        .all()
    )
    categories, suppliers = _name_maps()
    last_sales = _last_sale_dates([p.id for p in products])
    items = []
    for product in products:
        row = _product_row(product, categories, suppliers)
        # Units needed to climb back above the critical level
        row["shortage"] = max(0, product.critical_stock_level - product.units_in_stock + 1)
        row["last_sale_date"] = to_utc_z(last_sales.get(product.id))
        items.append(row)
    return {"generated_at": to_utc_z(utcnow()), "count": len(items), "items": items}


def critical_stock_report() -> dict:
    return _status_report(StockStatus.CRITICAL)


def out_of_stock_report() -> dict:
    return _status_report(StockStatus.OUT_OF_STOCK)


# =============================================================================
# Sales
# =============================================================================

def _top_selling_rows(top_n: int, start, end, store_id) -> list[dict]:
    quantity = func.sum(SaleDetail.quantity).label("quantity")
    revenue = func.sum(SaleDetail.total_cents).label("revenue")
    sale_count = func.count(func.distinct(SaleDetail.sale_id)).label("sale_count")
    rows = (
        _detail_query(SaleDetail.product_id, quantity, revenue, sale_count, store_id=store_id, start=start, end=end)
        .group_by(SaleDetail.product_id)
        .order_by(quantity.desc(), revenue.desc(), SaleDetail.product_id.asc())
        .limit(top_n)
        .all()
    )
    names = dict(
        db.session.query(Product.id, Product.name)
        .filter(Product.id.in_([r.product_id for r in rows] or [-1]))
        .all()
    )
    return [
        {
            "rank": index + 1,
            "product_id": row.product_id,
            "product_name": names.get(row.product_id),
            "quantity_sold": int(row.quantity or 0),
            "revenue_cents": int(row.revenue or 0),
            "sale_count": int(row.sale_count or 0),
        }
        for index, row in enumerate(rows)
    ]


def top_selling_products(
    top_n: int = DEFAULT_TOP_N,
    start=None,
    end=None,
    store_id: int | None = None,
) -> dict:
    """Best sellers by quantity; ties by revenue desc, then product id asc."""
    top_n = require_positive_int(top_n, "top_n")
    start, end = require_date_range(start, end)
    _require_store(store_id)
    return {
        "store_id": store_id,
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "top_n": top_n,
        "items": _top_selling_rows(top_n, start, end, store_id),
    }


def employee_sales_performance(year: int, month: int, store_id: int | None = None) -> dict:
    """
    Per-employee COMPLETED sales for a month against quota.

    Lists every cashier plus anyone else who closed a sale in the month.
    """
    start, end = require_month(year, month)
    _require_store(store_id)
    rate_bps = int(current_app.config.get("COMMISSION_RATE_BPS", DEFAULT_COMMISSION_RATE_BPS))

    totals = dict(
        (employee_id, (int(total or 0), int(count or 0)))
        for employee_id, total, count in (
            db.session.query(Sale.employee_id, func.sum(Sale.total_cents), func.count(Sale.id))
            .filter(*_counted_sales_filters(store_id=store_id, start=start, end=end, completed_only=True))
            .group_by(Sale.employee_id)
            .all()
        )
    )

    query = Employee.visible()
    if store_id is not None:
        query = query.filter(Employee.store_id == store_id)
    employees = [
        e for e in query.all()
        if e.id in totals or e.role == EmployeeRole.CASHIER.value
    ]

    items = []
    for employee in employees:
        sales_cents, sale_count = totals.get(employee.id, (0, 0))
        quota = quota_for(employee)
        items.append({
            "employee_id": employee.id,
            "employee_name": employee.full_name,
            "store_id": employee.store_id,
            "role": employee.role,
            "sale_count": sale_count,
            "sales_cents": sales_cents,
            "quota_cents": quota,
            "achievement_pct": _pct(sales_cents, quota),
            "above_quota_cents": max(0, sales_cents - quota),
            "commission_cents": calculate_commission(sales_cents, quota, rate_bps),
            "quota_achieved": sales_cents >= quota,
        })
    items.sort(key=lambda r: (-r["sales_cents"], r["employee_id"]))

    return {
        "year": start.year,
        "month": start.month,
        "store_id": store_id,
        "total_sales_cents": sum(r["sales_cents"] for r in items),
        "total_commission_cents": sum(r["commission_cents"] for r in items),
        "items": items,
    }


def cross_selling_report(
    top_n: int = DEFAULT_TOP_N,
    start=None,
    end=None,
    store_id: int | None = None,
) -> dict:
    """
    For each best seller: how often other products appear in the same sale.

    percentage = sales containing both / sales containing the best seller.
    """
    top_n = require_positive_int(top_n, "top_n")
    start, end = require_date_range(start, end)
    _require_store(store_id)

    top_rows = _top_selling_rows(top_n, start, end, store_id)
    if not top_rows:
        return {"store_id": store_id, "start": to_utc_z(start), "end": to_utc_z(end), "items": []}

    pairs = (
        _detail_query(SaleDetail.sale_id, SaleDetail.product_id, store_id=store_id, start=start, end=end)
        .distinct()
        .all()
    )
    products_by_sale: dict[int, set[int]] = defaultdict(set)
    for sale_id, product_id in pairs:
        products_by_sale[sale_id].add(product_id)

    names = dict(db.session.query(Product.id, Product.name).all())

    items = []
    for top in top_rows:
        product_id = top["product_id"]
        sales_with_product = [s for s, prods in products_by_sale.items() if product_id in prods]
        partner_counts: Counter = Counter()
        for sale_id in sales_with_product:
            for other in products_by_sale[sale_id]:
                if other != product_id:
                    partner_counts[other] += 1

        partners = sorted(partner_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:CROSS_SELL_PARTNERS]
        items.append({
            "product_id": product_id,
            "product_name": top["product_name"],
            "sale_count": len(sales_with_product),
            "partners": [
                {
                    "product_id": other,
                    "product_name": names.get(other),
                    "together_count": count,
                    "percentage": _pct(count, len(sales_with_product)),
                }
                for other, count in partners
            ],
        })

    return {"store_id": store_id, "start": to_utc_z(start), "end": to_utc_z(end), "items": items}


def _recommended_action(days_since_last_sale: int | None) -> str:
    if days_since_last_sale is None:
        return "Never sold: consider returning to supplier"
    if days_since_last_sale >= 180:
        return "Apply 30% discount"
    if days_since_last_sale >= 120:
        return "Apply 20% discount"
    return "Apply 10% discount"


def unsold_products(days: int | None = None, store_id: int | None = None, *, now: datetime | None = None) -> dict:
    """Active in-stock products with no counted sale line in the last `days` days."""
    if days is None:
        days = int(current_app.config.get("UNSOLD_PRODUCT_DAYS", 90))
    days = require_positive_int(days, "days")
    _require_store(store_id)
    now = now or utcnow()
    cutoff = now - timedelta(days=days)

    recently_sold = {
        product_id
        for (product_id,) in _detail_query(SaleDetail.product_id, store_id=store_id, start=cutoff).distinct().all()
    }
    products = (
        Product.visible()
        .filter(Product.is_active.is_(True), Product.units_in_stock > 0)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    candidates = [p for p in products if p.id not in recently_sold]
    last_sales = _last_sale_dates([p.id for p in candidates], store_id=store_id)
    categories, suppliers = _name_maps()

    items = []
    for product in candidates:
        last = last_sales.get(product.id)
        days_since = (now - last).days if last else None
        row = _product_row(product, categories, suppliers)
        row.update({
            "last_sale_date": to_utc_z(last),
            "days_since_last_sale": days_since,
            "recommended_action": _recommended_action(days_since),
        })
        items.append(row)
    items.sort(key=lambda r: (r["last_sale_date"] is not None, r["last_sale_date"] or "", r["product_id"]))

    return {
        "days": days,
        "store_id": store_id,
        "cutoff": to_utc_z(cutoff),
        "count": len(items),
        "total_stock_value_cents": sum(r["stock_value_cents"] for r in items),
        "items": items,
    }


def customer_demographics(start=None, end=None, store_id: int | None = None) -> dict:
    """
    Age, gender and city distribution.

    With a date range or store, the population is customers who bought in
    that window/store; otherwise all customers.
    """
    start, end = require_date_range(start, end)
    _require_store(store_id)

    query = Customer.visible()
    if start is not None or end is not None or store_id is not None:
        buyer_ids = (
            db.session.query(Sale.customer_id)
            .filter(*_counted_sales_filters(store_id=store_id, start=start, end=end))
            .distinct()
        )
        query = query.filter(Customer.id.in_(buyer_ids))
    customers = query.all()
    total = len(customers)

    today = utcnow().date()
    ages = [age_on(c.birth_date, today) for c in customers]
    known_ages = [a for a in ages if a is not None]

    age_counts = Counter()
    for age in ages:
        if age is None:
            age_counts["Unknown"] += 1
            continue
        for label, low, high in AGE_GROUPS:
            if age >= low and (high is None or age <= high):
                age_counts[label] += 1
                break
    age_labels = [label for label, _, _ in AGE_GROUPS] + ["Unknown"]

    genders = Counter(c.gender or Gender.UNSPECIFIED.value for c in customers)
    cities = Counter(c.city or "Unknown" for c in customers)

    return {
        "store_id": store_id,
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "total_customers": total,
        "active_customers": sum(1 for c in customers if c.is_active),
        "average_age": round(sum(known_ages) / len(known_ages), 1) if known_ages else None,
        "age_groups": [
            {"age_range": label, "count": age_counts.get(label, 0), "percentage": _pct(age_counts.get(label, 0), total)}
            for label in age_labels
        ],
        "gender_distribution": [
            {"gender": gender, "count": count, "percentage": _pct(count, total)}
            for gender, count in sorted(genders.items(), key=lambda kv: (-kv[1], kv[0]))
        ],
        "city_distribution": [
            {"city": city, "count": count, "percentage": _pct(count, total)}
            for city, count in sorted(cities.items(), key=lambda kv: (-kv[1], kv[0]))
        ],
    }


# =============================================================================
# Stores and customers
# =============================================================================

def _average_cents(total: int, count: int) -> int:
    return round_half_up(Decimal(total) / Decimal(count)) if count else 0


def store_sales_comparison(start=None, end=None) -> dict:
    """
    Side-by-side store figures for the period: sales, expenses (TRY), net,
    average sale, sales per active employee and share of all sales.
    """
    start, end = require_date_range(start, end)

    sales = {
        store_id: (int(count or 0), int(total or 0))
        for store_id, count, total in (
            db.session.query(Sale.store_id, func.count(Sale.id), func.sum(Sale.total_cents))
            .filter(*_counted_sales_filters(start=start, end=end))
            .group_by(Sale.store_id)
            .all()
        )
    }

    expense_query = db.session.query(Expense.store_id, func.sum(Expense.amount_in_try_cents)).filter(
        Expense.is_deleted.is_(False)
    )
    if start is not None:
        expense_query = expense_query.filter(Expense.expense_date >= start)
    if end is not None:
        expense_query = expense_query.filter(Expense.expense_date < end)
    expenses = {store_id: int(total or 0) for store_id, total in expense_query.group_by(Expense.store_id).all()}

    headcount = dict(
        db.session.query(Employee.store_id, func.count(Employee.id))
        .filter(Employee.is_deleted.is_(False), Employee.is_active.is_(True))
        .group_by(Employee.store_id)
        .all()
    )

    stores = Store.visible().order_by(Store.id.asc()).all()
    grand_total = sum(total for _, total in sales.values())

    items = []
    for store in stores:
        sale_count, sales_cents = sales.get(store.id, (0, 0))
        expense_cents = expenses.get(store.id, 0)
        employee_count = int(headcount.get(store.id, 0))
        items.append({
            "store_id": store.id,
            "store_name": store.name,
            "city": store.city,
            "sale_count": sale_count,
            "sales_cents": sales_cents,
            "average_sale_cents": _average_cents(sales_cents, sale_count),
            "expenses_try_cents": expense_cents,
            "net_cents": sales_cents - expense_cents,
            "employee_count": employee_count,
            "sales_per_employee_cents": _average_cents(sales_cents, employee_count),
            "share_pct": _pct(sales_cents, grand_total),
        })
    items.sort(key=lambda r: (-r["sales_cents"], r["store_id"]))
    for index, row in enumerate(items):
        row["rank"] = index + 1

    return {
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "total_sales_cents": grand_total,
        "total_expenses_try_cents": sum(r["expenses_try_cents"] for r in items),
        "items": items,
    }


def top_customers(
    top_n: int = DEFAULT_TOP_N,
    start=None,
    end=None,
    store_id: int | None = None,
) -> dict:
    """Customers by spend; ties by sale count desc, then customer id asc."""
    top_n = require_positive_int(top_n, "top_n")
    start, end = require_date_range(start, end)
    _require_store(store_id)

    spent = func.sum(Sale.total_cents).label("spent")
    sale_count = func.count(Sale.id).label("sale_count")
    rows = (
        db.session.query(Sale.customer_id, spent, sale_count, func.max(Sale.sale_date).label("last_purchase"))
        .filter(*_counted_sales_filters(store_id=store_id, start=start, end=end))
        .group_by(Sale.customer_id)
        .order_by(spent.desc(), sale_count.desc(), Sale.customer_id.asc())
        .limit(top_n)
        .all()
    )
    customer_ids = [r.customer_id for r in rows] or [-1]
    customers = {
        c.id: c
        for c in Customer.visible(include_deleted=True).filter(Customer.id.in_(customer_ids)).all()
    }

    items = []
    for index, row in enumerate(rows):
        customer = customers.get(row.customer_id)
        total = int(row.spent or 0)
        count = int(row.sale_count or 0)
        items.append({
            "rank": index + 1,
            "customer_id": row.customer_id,
            "customer_name": customer.full_name if customer else None,
            "city": customer.city if customer else None,
            "sale_count": count,
            "total_spent_cents": total,
            "average_sale_cents": _average_cents(total, count),
            "last_purchase_date": to_utc_z(row.last_purchase),
        })

    return {
        "store_id": store_id,
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "top_n": top_n,
        "items": items,
    }


# =============================================================================
# Expenses and purchasing
# =============================================================================

def _period(year, month) -> tuple[datetime, datetime]:
    if month is None:
        start, _ = require_month(year, 1)
        _, end = month_bounds(start.year, 12)
        return start, end
    return require_month(year, month)


def expense_report(year: int, month: int | None = None, store_id: int | None = None) -> dict:
    """Expense totals in TRY (amount_in_try) by type, by month and per expense."""
    start, end = _period(year, month)
    _require_store(store_id)

    query = Expense.visible().filter(Expense.expense_date >= start, Expense.expense_date < end)
    if store_id is not None:
        query = query.filter(Expense.store_id == store_id)
    expenses = query.order_by(Expense.expense_date.asc(), Expense.id.asc()).all()

    by_type = {t.value: 0 for t in ExpenseType}
    by_month: dict[tuple[int, str], int] = defaultdict(int)
    for expense in expenses:
        by_type[expense.expense_type] = by_type.get(expense.expense_type, 0) + expense.amount_in_try_cents
        by_month[(expense.expense_date.month, expense.expense_type)] += expense.amount_in_try_cents

    total = sum(e.amount_in_try_cents for e in expenses)
    paid = sum(e.amount_in_try_cents for e in expenses if e.is_paid)
    return {
        "year": start.year,
        "month": month,
        "store_id": store_id,
        "total_try_cents": total,
        "paid_try_cents": paid,
        "unpaid_try_cents": total - paid,
        "totals_by_type": by_type,
        "monthly": [
            {"month": m, "expense_type": t, "total_try_cents": amount}
            for (m, t), amount in sorted(by_month.items())
        ],
        "details": [
            {
                "expense_id": e.id,
                "expense_number": e.expense_number,
                "expense_date": to_utc_z(e.expense_date),
                "expense_type": e.expense_type,
                "store_id": e.store_id,
                "description": e.description,
                "amount_cents": e.amount_cents,
                "currency": e.currency,
                "exchange_rate": str(e.exchange_rate) if e.exchange_rate is not None else None,
                "amount_in_try_cents": e.amount_in_try_cents,
                "is_paid": e.is_paid,
            }
            for e in expenses
        ],
    }


def supplier_transaction_report(year: int, month: int | None = None, supplier_id: int | None = None) -> dict:
    start, end = _period(year, month)
    if supplier_id is not None and Supplier.visible().filter(Supplier.id == supplier_id).first() is None:
        raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})

    query = SupplierTransaction.visible().filter(
        SupplierTransaction.transaction_date >= start,
        SupplierTransaction.transaction_date < end,
    )
    if supplier_id is not None:
        query = query.filter(SupplierTransaction.supplier_id == supplier_id)
    transactions = query.order_by(SupplierTransaction.transaction_date.asc(), SupplierTransaction.id.asc()).all()

    _, supplier_names = _name_maps()
    product_names = dict(db.session.query(Product.id, Product.name).all())

    grouped: dict[int, dict] = {}
    for txn in transactions:
        row = grouped.setdefault(txn.supplier_id, {
            "supplier_id": txn.supplier_id,
            "supplier_name": supplier_names.get(txn.supplier_id),
            "transaction_count": 0,
            "total_quantity": 0,
            "total_cents": 0,
            "paid_cents": 0,
            "unpaid_cents": 0,
            "transactions": [],
        })
        row["transaction_count"] += 1
        row["total_quantity"] += txn.quantity
        row["total_cents"] += txn.total_cents
        if txn.is_paid:
            row["paid_cents"] += txn.total_cents
        else:
            row["unpaid_cents"] += txn.total_cents
        row["transactions"].append({
            **txn.to_dict(),
            "product_name": product_names.get(txn.product_id),
        })

    suppliers = sorted(grouped.values(), key=lambda r: (-r["total_cents"], r["supplier_id"]))
    return {
        "year": start.year,
        "month": month,
        "supplier_id": supplier_id,
        "total_cents": sum(r["total_cents"] for r in suppliers),
        "suppliers": suppliers,
    }


def product_list_by_category() -> dict:
    categories = Category.visible().order_by(Category.name.asc(), Category.id.asc()).all()
    products = Product.visible().order_by(Product.name.asc(), Product.id.asc()).all()
    by_category: dict[int, list[Product]] = defaultdict(list)
    for product in products:
        by_category[product.category_id].append(product)

    items = []
    for category in categories:
        members = by_category.get(category.id, [])
        items.append({
            "category_id": category.id,
            "category_name": category.name,
            "product_count": len(members),
            "total_units": sum(p.units_in_stock for p in members),
            "total_stock_value_cents": sum(p.unit_price_cents * p.units_in_stock for p in members),
            "products": [
                {
                    "product_id": p.id,
                    "product_name": p.name,
                    "barcode": p.barcode,
                    "unit_price_cents": p.unit_price_cents,
                    "units_in_stock": p.units_in_stock,
                    "stock_status": p.stock_status,
                    "is_active": p.is_active,
                }
                for p in members
            ],
        })
    return {"category_count": len(items), "items": items}


# =============================================================================
# Technical service
# =============================================================================

def _resolution_hours(ticket: TechnicalService) -> float:
    return (ticket.resolved_at - ticket.reported_at).total_seconds() / 3600


def _average_hours(tickets) -> float | None:
    if not tickets:
        return None
    return round(sum(_resolution_hours(t) for t in tickets) / len(tickets), 2)


def technical_service_performance(start=None, end=None, store_id: int | None = None) -> dict:
    """
    Ticket throughput for tickets reported in the period.

    Closed tickets (RESOLVED or UNRESOLVABLE) with a resolved_at feed the
    average resolution time and the SLA success rate. by_employee groups
    tickets by assignee; unassigned tickets only count in the totals.
    """
    start, end = require_date_range(start, end)
    _require_store(store_id)

    query = TechnicalService.visible()
    if store_id is not None:
        query = query.filter(TechnicalService.store_id == store_id)
    if start is not None:
        query = query.filter(TechnicalService.reported_at >= start)
    if end is not None:
        query = query.filter(TechnicalService.reported_at < end)
    tickets = query.order_by(TechnicalService.reported_at.asc(), TechnicalService.id.asc()).all()

    closed = [t for t in tickets if t.status in CLOSED_TICKET_STATUSES and t.resolved_at is not None]
    within_sla = [t for t in closed if t.resolved_at <= sla_deadline(t)]
    statuses = Counter(t.status for t in tickets)
    priorities = Counter(t.priority for t in tickets)

    assigned: dict[int, list[TechnicalService]] = defaultdict(list)
    for ticket in tickets:
        if ticket.assigned_to_employee_id is not None:
            assigned[ticket.assigned_to_employee_id].append(ticket)
    names = {
        e.id: e.full_name
        for e in Employee.visible(include_deleted=True).filter(Employee.id.in_(list(assigned) or [-1])).all()
    }

    by_employee = []
    for employee_id, group in assigned.items():
        group_closed = [t for t in group if t.status in CLOSED_TICKET_STATUSES and t.resolved_at is not None]
        by_employee.append({
            "employee_id": employee_id,
            "employee_name": names.get(employee_id),
            "assigned_count": len(group),
            "resolved_count": sum(1 for t in group if t.status == TicketStatus.RESOLVED.value),
            "unresolvable_count": sum(1 for t in group if t.status == TicketStatus.UNRESOLVABLE.value),
            "open_count": sum(1 for t in group if t.status not in CLOSED_TICKET_STATUSES),
            "average_resolution_hours": _average_hours(group_closed),
        })
    by_employee.sort(key=lambda r: (-r["resolved_count"], -r["assigned_count"], r["employee_id"]))

    return {
        "store_id": store_id,
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "total_tickets": len(tickets),
        "open_count": statuses.get(TicketStatus.OPEN.value, 0) + statuses.get(TicketStatus.IN_PROGRESS.value, 0),
        "resolved_count": statuses.get(TicketStatus.RESOLVED.value, 0),
        "unresolvable_count": statuses.get(TicketStatus.UNRESOLVABLE.value, 0),
        "customer_issue_count": sum(1 for t in tickets if t.is_customer_issue),
        "system_issue_count": sum(1 for t in tickets if not t.is_customer_issue),
        "average_resolution_hours": _average_hours(closed),
        "sla_success_pct": _pct(len(within_sla), len(closed)),
        "by_priority": [
            {"priority": priority, "count": priorities[priority]}
            for priority in sorted(priorities)
        ],
        "by_employee": by_employee,
    }


# =============================================================================
# Dashboard
# =============================================================================

def _sales_totals(start, end, store_id) -> tuple[int, int]:
    count, total = (
        db.session.query(func.count(Sale.id), func.coalesce(func.sum(Sale.total_cents), 0))
        .filter(*_counted_sales_filters(store_id=store_id, start=start, end=end))
        .one()
    )
    return int(count or 0), int(total or 0)


def dashboard_summary(store_id: int | None = None, *, now: datetime | None = None) -> dict:
    _require_store(store_id)
    now = now or utcnow()
    today_start, today_end = day_bounds(now.date())
    month_start, month_end = month_bounds(now.year, now.month)

    today_count, today_total = _sales_totals(today_start, today_end, store_id)
    month_count, month_total = _sales_totals(month_start, month_end, store_id)

    pending_count = (
        db.session.query(func.count(Sale.id))
        .filter(
            *_counted_sales_filters(store_id=store_id),
            Sale.status.in_([SaleStatus.PENDING.value, SaleStatus.PREPARING.value]),
        )
        .scalar()
    )

    stock_counts = dict(
        db.session.query(Product.stock_status, func.count(Product.id))
        .filter(Product.is_deleted.is_(False), Product.is_active.is_(True))
        .group_by(Product.stock_status)
        .all()
    )

    employees = Employee.visible().filter(Employee.is_active.is_(True))
    tickets = TechnicalService.visible().filter(TechnicalService.status.notin_(CLOSED_TICKET_STATUSES))
    expenses = Expense.visible()
    if store_id is not None:
        employees = employees.filter(Employee.store_id == store_id)
        tickets = tickets.filter(TechnicalService.store_id == store_id)
        expenses = expenses.filter(Expense.store_id == store_id)

    month_expenses = (
        expenses.filter(Expense.expense_date >= month_start, Expense.expense_date < month_end)
        .with_entities(func.coalesce(func.sum(Expense.amount_in_try_cents), 0))
        .scalar()
    )
    unpaid = expenses.filter(Expense.is_paid.is_(False))
    unpaid_count = unpaid.count()
    unpaid_total = unpaid.with_entities(func.coalesce(func.sum(Expense.amount_in_try_cents), 0)).scalar()

    return {
        "report_date": to_iso_date(now.date()),
        "store_id": store_id,
        "today_sales_count": today_count,
        "today_sales_cents": today_total,
        "month_sales_count": month_count,
        "month_sales_cents": month_total,
        "pending_sales_count": int(pending_count or 0),
        "sufficient_stock_count": stock_counts.get(StockStatus.SUFFICIENT.value, 0),
        "critical_stock_count": stock_counts.get(StockStatus.CRITICAL.value, 0),
        "out_of_stock_count": stock_counts.get(StockStatus.OUT_OF_STOCK.value, 0),
        "active_employee_count": employees.count(),
        "open_ticket_count": tickets.count(),
        "critical_ticket_count": tickets.filter(TechnicalService.priority == 4).count(),
        "month_expenses_try_cents": int(month_expenses or 0),
        "unpaid_expense_count": unpaid_count,
        "unpaid_expenses_try_cents": int(unpaid_total or 0),
    }
