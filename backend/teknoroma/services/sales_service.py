"""
Sales Service - sale workflow, status transitions and commission.

Sale lifecycle:
    PENDING --confirm_payment--> PREPARING --complete_sale--> COMPLETED
    PENDING|PREPARING --cancel_sale--> CANCELLED (stock restored)

create_sale is one unit of work: number allocation, Sale + SaleDetail
inserts, stock decrements and status reclassification commit together or
not at all. Notifications go out only after the commit.

Money is integer kuruş throughout; fractional results round half-up.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy import func

from ..errors import InvalidStateTransitionError, NotFoundError, InsufficientStockError, ValidationError
from ..extensions import db
from ..models import Customer, Employee, Product, Sale, SaleDetail, Store
from ..models.enums import PaymentType, SaleStatus, parse_enum
from ..time_utils import utcnow
from ..validation import coerce_decimal, require_date_range, require_month, require_non_negative_int, require_positive_int
from . import document_service
from .concurrency import lock_for_update, run_with_retry
from .notification_service import notifications, safe_notify
from .stock_service import apply_decrease, apply_increase, get_product_for_update, notify_low_stock

logger = logging.getLogger(__name__)

DEFAULT_TAX_RATE_BPS = 2000
DEFAULT_SALES_QUOTA_CENTS = 1_000_000
DEFAULT_COMMISSION_RATE_BPS = 1000

HUNDRED = Decimal("100")
BPS = Decimal("10000")


# =============================================================================
# Money arithmetic
# =============================================================================

def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_line(unit_price_cents: int, quantity: int, discount_percent: Decimal) -> tuple[int, int, int]:
    """(subtotal, discount, total) for one line, all in cents."""
    subtotal = unit_price_cents * quantity
    discount = round_half_up(Decimal(subtotal) * Decimal(discount_percent) / HUNDRED)
    return subtotal, discount, subtotal - discount


def calculate_tax(subtotal_cents: int, tax_rate_bps: int) -> int:
    return round_half_up(Decimal(subtotal_cents) * Decimal(tax_rate_bps) / BPS)


def calculate_commission(
    monthly_sales_cents: int,
    quota_cents: int = DEFAULT_SALES_QUOTA_CENTS,
    rate_bps: int = DEFAULT_COMMISSION_RATE_BPS,
) -> int:
    """Commission = rate * (sales above quota); zero at or below quota."""
    above = max(0, monthly_sales_cents - quota_cents)
    return round_half_up(Decimal(above) * Decimal(rate_bps) / BPS)


def _config_int(key: str, default: int) -> int:
    return int(current_app.config.get(key, default))


# =============================================================================
# Input normalization
# =============================================================================

def _normalize_line_items(line_items) -> list[tuple[int, int, Decimal]]:
    """
    Accepts (product_id, quantity[, discount_percent]) tuples or dicts with
    the same keys. Returns [(product_id, quantity, discount_percent)].
    """
    if not line_items:
        raise ValidationError("A sale needs at least one line item")
    if isinstance(line_items, (str, bytes, dict)):
        raise ValidationError("line_items must be a list")

    normalized = []
    for index, item in enumerate(line_items):
        if isinstance(item, dict):
            product_id = item.get("product_id")
            quantity = item.get("quantity")
            discount = item.get("discount_percent", 0)
        elif isinstance(item, (list, tuple)) and len(item) in (2, 3):
            product_id, quantity = item[0], item[1]
            discount = item[2] if len(item) == 3 else 0
        else:
            raise ValidationError("Invalid line item", details={"index": index})

        if product_id is None:
            raise ValidationError("product_id is required", details={"index": index})
        product_id = require_positive_int(product_id, "product_id")
        quantity = require_positive_int(quantity, "quantity")
        discount = coerce_decimal("discount_percent", 0 if discount is None else discount)
        if discount < 0 or discount > HUNDRED:
            raise ValidationError(
                "discount_percent must be between 0 and 100",
                details={"index": index, "discount_percent": str(discount)},
            )
        normalized.append((product_id, quantity, discount))
    return normalized


def _require_visible(model, entity_id, label: str):
    if entity_id is None:
        raise ValidationError(f"{label.lower()}_id is required")
    entity = model.visible().filter(model.id == entity_id).first()
    if entity is None:
        raise NotFoundError(f"{label} not found", details={f"{label.lower()}_id": entity_id})
    return entity


# =============================================================================
# Create
# =============================================================================

def create_sale(
    customer_id: int,
    employee_id: int,
    store_id: int,
    payment_type,
    line_items,
    *,
    discount_cents=0,
    sale_date: datetime | None = None,
    cash_register_number: str | None = None,
    notes: str | None = None,
    is_mobile: bool = False,
) -> Sale:
    """
    Create a PENDING sale and decrement stock atomically.

    is_mobile marks a sale taken on the shop floor; cashiers get a
    sale.mobile notification so they can prepare the invoice.

    Raises ValidationError, NotFoundError or InsufficientStockError; on any
    failure nothing is persisted (including the sale number).
    """
    payment = parse_enum(PaymentType, payment_type, "payment_type")
    items = _normalize_line_items(line_items)
    discount_cents = require_non_negative_int(discount_cents, "discount_cents")
    if not isinstance(is_mobile, bool):
        raise ValidationError("is_mobile must be true or false")
    sale_date = sale_date or utcnow()
    tax_rate_bps = _config_int("TAX_RATE_BPS", DEFAULT_TAX_RATE_BPS)

    requested: dict[int, int] = {}
    for product_id, quantity, _ in items:
        requested[product_id] = requested.get(product_id, 0) + quantity

    def _op():
        _require_visible(Customer, customer_id, "Customer")
        _require_visible(Employee, employee_id, "Employee")
        _require_visible(Store, store_id, "Store")

        products: dict[int, Product] = {}
        for product_id in requested:
            product = get_product_for_update(product_id)
            if not product.is_active:
                raise ValidationError(
                    "Product is not active",
                    details={"product_id": product_id, "product_name": product.name},
                )
            products[product_id] = product

        insufficient = [
            {
                "product_id": pid,
                "product_name": products[pid].name,
                "requested_quantity": qty,
                "units_in_stock": products[pid].units_in_stock,
            }
            for pid, qty in requested.items()
            if qty > products[pid].units_in_stock
        ]
        if insufficient:
            raise InsufficientStockError("Insufficient stock", details={"items": insufficient})

        lines = []
        for product_id, quantity, discount_percent in items:
            product = products[product_id]
            subtotal, discount, total = calculate_line(product.unit_price_cents, quantity, discount_percent)
            lines.append((product, quantity, discount_percent, subtotal, discount, total))

        sale_subtotal = sum(line[5] for line in lines)
        tax = calculate_tax(sale_subtotal, tax_rate_bps)
        if discount_cents > sale_subtotal + tax:
            raise ValidationError(
                "discount_cents cannot exceed subtotal plus tax",
                details={"discount_cents": discount_cents, "maximum": sale_subtotal + tax},
            )

        document_type, prefix = document_service.SALE
        sale = Sale(
            sale_number=document_service.next_document_number(
                document_type=document_type, prefix=prefix, year=sale_date.year,
            ),
            sale_date=sale_date,
            customer_id=customer_id,
            employee_id=employee_id,
            store_id=store_id,
            status=SaleStatus.PENDING.value,
            payment_type=payment.value,
            subtotal_cents=sale_subtotal,
            tax_cents=tax,
            discount_cents=discount_cents,
            total_cents=sale_subtotal + tax - discount_cents,
            cash_register_number=cash_register_number,
            notes=notes,
        )
        db.session.add(sale)
        db.session.flush()

        for product, quantity, discount_percent, subtotal, discount, total in lines:
            db.session.add(SaleDetail(
                sale_id=sale.id,
                product_id=product.id,
                product_name=product.name,
                unit_price_cents=product.unit_price_cents,
                quantity=quantity,
                discount_percent=discount_percent,
                subtotal_cents=subtotal,
                discount_cents=discount,
                total_cents=total,
            ))

        became_low = [products[pid] for pid in requested if apply_decrease(products[pid], requested[pid])]

        db.session.commit()
        return sale, became_low

    sale, became_low = run_with_retry(_op)
    logger.info("Sale %s created: total=%s lines=%d", sale.sale_number, sale.total_cents, len(items))

    safe_notify(lambda: notifications.sale_created(sale), "sale.created")
    if is_mobile:
        safe_notify(lambda: notifications.mobile_sale(sale), "sale.mobile")
    notify_low_stock(became_low)
    return sale


# =============================================================================
# Status transitions
# =============================================================================

def _get_sale_for_update(sale_id: int) -> Sale:
    sale = lock_for_update(Sale.visible().filter(Sale.id == sale_id)).first()
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def _reject_transition(sale: Sale, target: SaleStatus) -> None:
    raise InvalidStateTransitionError(
        f"Cannot change sale from {sale.status} to {target.value}",
        details={"sale_id": sale.id, "status": sale.status, "target": target.value},
    )


def confirm_payment(sale_id: int) -> Sale:
    """PENDING -> PREPARING."""
    def _op():
        sale = _get_sale_for_update(sale_id)
        if sale.status != SaleStatus.PENDING.value:
            _reject_transition(sale, SaleStatus.PREPARING)
        sale.status = SaleStatus.PREPARING.value
        sale.paid_at = utcnow()
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    logger.info("Sale %s payment confirmed", sale.sale_number)
    safe_notify(lambda: notifications.payment_confirmed(sale), "sale.payment_confirmed")
    return sale


def complete_sale(sale_id: int) -> Sale:
    """PREPARING -> COMPLETED. The sale is immutable afterwards."""
    def _op():
        sale = _get_sale_for_update(sale_id)
        if sale.status != SaleStatus.PREPARING.value:
            _reject_transition(sale, SaleStatus.COMPLETED)
        sale.status = SaleStatus.COMPLETED.value
        sale.completed_at = utcnow()
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    logger.info("Sale %s completed", sale.sale_number)
    return sale


def cancel_sale(sale_id: int, reason: str | None) -> Sale:
    """PENDING|PREPARING -> CANCELLED, restoring every line's quantity to stock."""
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A cancellation reason is required")
    if len(reason) > 255:
        raise ValidationError("reason exceeds max length 255")

    def _op():
        sale = _get_sale_for_update(sale_id)
        if sale.status not in (SaleStatus.PENDING.value, SaleStatus.PREPARING.value):
            _reject_transition(sale, SaleStatus.CANCELLED)

        details = (
            db.session.query(SaleDetail)
            .filter(SaleDetail.sale_id == sale.id, SaleDetail.is_deleted.is_(False))
            .all()
        )
        for detail in details:
            # Soft-deleted products still get their units back
            product = lock_for_update(
                db.session.query(Product).filter(Product.id == detail.product_id)
            ).first()
            if product is not None:
                apply_increase(product, detail.quantity)

        sale.status = SaleStatus.CANCELLED.value
        sale.cancelled_at = utcnow()
        sale.cancel_reason = reason
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    logger.info("Sale %s cancelled: %s", sale.sale_number, reason)
    return sale


def update_sale_status(sale_id: int, new_status, *, reason: str | None = None) -> Sale:
    """Generic transition entry point; only the three lifecycle edges are allowed."""
    target = parse_enum(SaleStatus, new_status, "status")
    if target == SaleStatus.PREPARING:
        return confirm_payment(sale_id)
    if target == SaleStatus.COMPLETED:
        return complete_sale(sale_id)
    if target == SaleStatus.CANCELLED:
        return cancel_sale(sale_id, reason)
    sale = get_sale(sale_id)
    _reject_transition(sale, target)


# =============================================================================
# Queries
# =============================================================================

def get_sale(sale_id: int, *, include_deleted: bool = False) -> Sale:
    sale = Sale.visible(include_deleted).filter(Sale.id == sale_id).first()
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def get_sale_by_number(sale_number: str, *, include_deleted: bool = False) -> Sale:
    sale = Sale.visible(include_deleted).filter(Sale.sale_number == (sale_number or "").strip()).first()
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_number": sale_number})
    return sale


def get_sale_details(sale_id: int) -> list[SaleDetail]:
    get_sale(sale_id)
    return (
        SaleDetail.visible()
        .filter(SaleDetail.sale_id == sale_id)
        .order_by(SaleDetail.id.asc())
        .all()
    )


def list_sales(
    *,
    store_id: int | None = None,
    customer_id: int | None = None,
    employee_id: int | None = None,
    status=None,
    start=None,
    end=None,
    include_deleted: bool = False,
    limit: int | None = None,
) -> list[Sale]:
    """Sales newest first. start is inclusive, end exclusive."""
    start, end = require_date_range(start, end)
    query = Sale.visible(include_deleted)
    if store_id is not None:
        query = query.filter(Sale.store_id == store_id)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if employee_id is not None:
        query = query.filter(Sale.employee_id == employee_id)
    if status:
        query = query.filter(Sale.status == parse_enum(SaleStatus, status, "status").value)
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date < end)
    query = query.order_by(Sale.sale_date.desc(), Sale.id.desc())
    if limit is not None:
        query = query.limit(require_positive_int(limit, "limit"))
    return query.all()


# =============================================================================
# Monthly totals and commission
# =============================================================================

def _completed_total(start: datetime, end: datetime, *filters) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(Sale.total_cents), 0))
        .filter(
            Sale.is_deleted.is_(False),
            Sale.status == SaleStatus.COMPLETED.value,
            Sale.sale_date >= start,
            Sale.sale_date < end,
            *filters,
        )
        .scalar()
    )
    return int(total or 0)


def employee_monthly_sales(employee_id: int, year: int, month: int) -> int:
    """Sum of COMPLETED sale totals for the employee in the month (cents)."""
    start, end = require_month(year, month)
    _require_visible(Employee, employee_id, "Employee")
    return _completed_total(start, end, Sale.employee_id == employee_id)


def store_monthly_sales(store_id: int, year: int, month: int) -> int:
    start, end = require_month(year, month)
    _require_visible(Store, store_id, "Store")
    return _completed_total(start, end, Sale.store_id == store_id)


def quota_for(employee: Employee) -> int:
    if employee.sales_quota_cents is not None:
        return employee.sales_quota_cents
    return _config_int("SALES_QUOTA_CENTS", DEFAULT_SALES_QUOTA_CENTS)


def employee_commission(employee_id: int, year: int, month: int) -> dict:
    start, end = require_month(year, month)
    employee = _require_visible(Employee, employee_id, "Employee")
    sales_cents = _completed_total(start, end, Sale.employee_id == employee_id)
    quota = quota_for(employee)
    rate_bps = _config_int("COMMISSION_RATE_BPS", DEFAULT_COMMISSION_RATE_BPS)
    return {
        "employee_id": employee.id,
        "employee_name": employee.full_name,
        "year": start.year,
        "month": start.month,
        "sales_cents": sales_cents,
        "quota_cents": quota,
        "above_quota_cents": max(0, sales_cents - quota),
        "commission_rate_bps": rate_bps,
        "commission_cents": calculate_commission(sales_cents, quota, rate_bps),
        "quota_achieved": sales_cents >= quota,
    }
