# Overview: Stock level mutations and the stock status classifier.

"""
Stock invariants:
- units_in_stock never goes negative.
- stock_status always equals classify_stock_status(units_in_stock,
  critical_stock_level) after a mutation commits.
- Product rows carry version_id: two writers that read the same version
  collide with StaleDataError, and run_with_retry re-runs the loser against
  fresh stock, so a sale can never oversell.

Mutations are not idempotent: calling decrease_stock twice decrements twice.

Functions taking commit=False join the caller's transaction (used by the
sale workflow); the caller is responsible for commit/rollback and for
publishing low-stock notifications after its commit.
"""

from __future__ import annotations

import logging

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from ..models.enums import StockStatus
from ..validation import require_non_negative_int, require_positive_int
from .concurrency import lock_for_update, run_with_retry
from .notification_service import notifications, safe_notify

logger = logging.getLogger(__name__)

LOW_STOCK_STATUSES = {StockStatus.CRITICAL.value, StockStatus.OUT_OF_STOCK.value}


def classify_stock_status(units_in_stock: int, critical_level: int) -> StockStatus:
    """<= 0 is OUT_OF_STOCK, <= critical is CRITICAL, otherwise SUFFICIENT."""
    if units_in_stock <= 0:
        return StockStatus.OUT_OF_STOCK
    if units_in_stock <= critical_level:
        return StockStatus.CRITICAL
    return StockStatus.SUFFICIENT


def refresh_stock_status(product: Product) -> bool:
    """
    Recompute product.stock_status.

    Returns True when the product just moved into a low status (CRITICAL or
    OUT_OF_STOCK) from a different one.
    """
    previous = product.stock_status
    current = classify_stock_status(product.units_in_stock or 0, product.critical_stock_level or 0).value
    product.stock_status = current
    return current in LOW_STOCK_STATUSES and current != previous


def get_product_for_update(product_id: int) -> Product:
    product = lock_for_update(Product.visible().filter(Product.id == product_id)).first()
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def apply_decrease(product: Product, quantity: int) -> bool:
    """Decrement a loaded product; returns True if it became low on stock."""
    if product.units_in_stock < quantity:
        raise InsufficientStockError(
            "Insufficient stock",
            details={
                "product_id": product.id,
                "product_name": product.name,
                "requested_quantity": quantity,
                "units_in_stock": product.units_in_stock,
            },
        )
    product.units_in_stock -= quantity
    return refresh_stock_status(product)


def apply_increase(product: Product, quantity: int) -> bool:
    product.units_in_stock += quantity
    return refresh_stock_status(product)


def notify_low_stock(products) -> None:
    for product in products:
        safe_notify(lambda p=product: notifications.critical_stock(p), "stock.critical")


def decrease_stock(product_id: int, quantity, *, commit: bool = True) -> Product:
    quantity = require_positive_int(quantity, "quantity")

    if not commit:
        product = get_product_for_update(product_id)
        apply_decrease(product, quantity)
        db.session.flush()
        return product

    def _op():
        product = get_product_for_update(product_id)
        became_low = apply_decrease(product, quantity)
        db.session.commit()
        return product, became_low

    product, became_low = run_with_retry(_op)
    logger.info("Stock decreased: product=%s qty=%s now=%s", product.id, quantity, product.units_in_stock)
    if became_low:
        notify_low_stock([product])
    return product


def increase_stock(product_id: int, quantity, *, commit: bool = True) -> Product:
    quantity = require_positive_int(quantity, "quantity")

    if not commit:
        product = get_product_for_update(product_id)
        apply_increase(product, quantity)
        db.session.flush()
        return product

    def _op():
        product = get_product_for_update(product_id)
        apply_increase(product, quantity)
        db.session.commit()
        return product

    product = run_with_retry(_op)
    logger.info("Stock increased: product=%s qty=%s now=%s", product.id, quantity, product.units_in_stock)
    return product


def set_stock(product_id: int, units, reason: str | None) -> Product:
    """Manual stock correction (e.g. after a physical count)."""
    units = require_non_negative_int(units, "units")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("reason is required for a manual stock correction")

    def _op():
        product = get_product_for_update(product_id)
        previous = product.units_in_stock
        product.units_in_stock = units
        became_low = refresh_stock_status(product)
        db.session.commit()
        return product, previous, became_low

    product, previous, became_low = run_with_retry(_op)
    logger.info(
        "Stock set: product=%s %s -> %s reason=%r",
        product.id, previous, product.units_in_stock, reason,
    )
    if became_low:
        notify_low_stock([product])
    return product


def is_stock_available(product_id: int, quantity) -> bool:
    quantity = require_positive_int(quantity, "quantity")
    product = Product.visible().filter(Product.id == product_id).first()
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return bool(product.is_active) and product.units_in_stock >= quantity
