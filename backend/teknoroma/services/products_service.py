# backend/teknoroma/services/products_service.py
"""
Catalog service: categories and products.

Stock quantities are not writable through product updates; they change only
through stock_service (sales, goods received, manual corrections), which
keeps stock_status consistent.
"""
from __future__ import annotations

import logging

from sqlalchemy import func, or_

from ..errors import DuplicateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Product, Supplier
from ..models.enums import StockStatus, parse_enum
from ..validation import (
    ModelValidationPolicy,
    enforce_non_negative,
    enforce_price,
    validate_payload,
)
from .concurrency import run_with_retry
from .stock_service import refresh_stock_status

logger = logging.getLogger(__name__)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "is_active"},
    required_on_create={"name"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "barcode", "unit_price_cents", "units_in_stock",
        "critical_stock_level", "category_id", "supplier_id", "is_active", "image_url",
    },
    required_on_create={"name", "barcode", "unit_price_cents", "category_id", "supplier_id"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"units_in_stock"},
)


# =============================================================================
# Categories
# =============================================================================

def _ensure_category_name_free(name: str, exclude_id: int | None = None) -> None:
    query = Category.visible().filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first() is not None:
        raise DuplicateError("Category name already exists", details={"name": name})


def get_category(category_id: int, *, include_deleted: bool = False) -> Category:
    category = Category.visible(include_deleted).filter(Category.id == category_id).first()
    if category is None:
        raise NotFoundError("Category not found", details={"category_id": category_id})
    return category


def list_categories(*, include_deleted: bool = False, active_only: bool = False) -> list[Category]:
    query = Category.visible(include_deleted)
    if active_only:
        query = query.filter(Category.is_active.is_(True))
    return query.order_by(Category.name.asc(), Category.id.asc()).all()


def create_category(payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)

    def _op():
        _ensure_category_name_free(patch["name"])
        category = Category(**patch)
        db.session.add(category)
        db.session.commit()
        return category

    category = run_with_retry(_op)
    logger.info("Category created: id=%s name=%r", category.id, category.name)
    return category


def update_category(category_id: int, payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)

    def _op():
        category = get_category(category_id)
        if "name" in patch:
            _ensure_category_name_free(patch["name"], exclude_id=category.id)
        for key, value in patch.items():
            setattr(category, key, value)
        db.session.commit()
        return category

    return run_with_retry(_op)


def delete_category(category_id: int) -> Category:
    def _op():
        category = get_category(category_id)
        in_use = Product.visible().filter(Product.category_id == category.id).count()
        if in_use:
            raise ValidationError(
                "Category still has products",
                details={"category_id": category.id, "product_count": in_use},
            )
        category.soft_delete()
        db.session.commit()
        return category

    category = run_with_retry(_op)
    logger.info("Category soft-deleted: id=%s", category.id)
    return category


# =============================================================================
# Products
# =============================================================================

def _ensure_barcode_free(barcode: str, exclude_id: int | None = None) -> None:
    # Barcodes stay reserved by soft-deleted products too (table-level unique)
    query = db.session.query(Product).filter(Product.barcode == barcode)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise DuplicateError("Barcode already exists", details={"barcode": barcode})


def _ensure_references(patch: dict) -> None:
    if patch.get("category_id") is not None:
        get_category(patch["category_id"])
    if patch.get("supplier_id") is not None:
        supplier = Supplier.visible().filter(Supplier.id == patch["supplier_id"]).first()
        if supplier is None:
            raise NotFoundError("Supplier not found", details={"supplier_id": patch["supplier_id"]})


def get_product(product_id: int, *, include_deleted: bool = False) -> Product:
    product = Product.visible(include_deleted).filter(Product.id == product_id).first()
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def get_product_by_barcode(barcode: str) -> Product:
    product = Product.visible().filter(Product.barcode == (barcode or "").strip()).first()
    if product is None:
        raise NotFoundError("Product not found", details={"barcode": barcode})
    return product


def list_products(
    *,
    category_id: int | None = None,
    supplier_id: int | None = None,
    stock_status=None,
    is_active: bool | None = None,
    search: str | None = None,
    include_deleted: bool = False,
) -> list[Product]:
    query = Product.visible(include_deleted)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)
    if stock_status:
        query = query.filter(Product.stock_status == parse_enum(StockStatus, stock_status, "stock_status").value)
    if is_active is not None:
        query = query.filter(Product.is_active.is_(is_active))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(like), Product.barcode.ilike(like)))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def list_products_by_category(category_id: int) -> list[Product]:
    get_category(category_id)
    return list_products(category_id=category_id, is_active=True)


def critical_products() -> list[Product]:
    return list_products(stock_status=StockStatus.CRITICAL, is_active=True)


def out_of_stock_products() -> list[Product]:
    return list_products(stock_status=StockStatus.OUT_OF_STOCK, is_active=True)


def inactive_products() -> list[Product]:
    return list_products(is_active=False)


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_price(patch)
    enforce_non_negative(patch, "units_in_stock", "critical_stock_level")

    def _op():
        _ensure_references(patch)
        _ensure_barcode_free(patch["barcode"])
        product = Product(**patch)
        if product.units_in_stock is None:
            product.units_in_stock = 0
        if product.critical_stock_level is None:
            product.critical_stock_level = 10
        refresh_stock_status(product)
        db.session.add(product)
        db.session.commit()
        return product

    product = run_with_retry(_op)
    logger.info("Product created: id=%s barcode=%s", product.id, product.barcode)
    return product


def update_product(product_id: int, payload: dict) -> Product:
    if isinstance(payload, dict) and "units_in_stock" in payload:
        raise ValidationError("units_in_stock cannot be updated directly; use the stock endpoints")
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_price(patch)
    enforce_non_negative(patch, "critical_stock_level")

    def _op():
        product = get_product(product_id)
        _ensure_references(patch)
        if "barcode" in patch and patch["barcode"] != product.barcode:
            _ensure_barcode_free(patch["barcode"], exclude_id=product.id)
        for key, value in patch.items():
            setattr(product, key, value)
        refresh_stock_status(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int) -> Product:
    def _op():
        product = get_product(product_id)
        product.soft_delete()
        db.session.commit()
        return product

    product = run_with_retry(_op)
    logger.info("Product soft-deleted: id=%s", product.id)
    return product
