# backend/teknoroma/services/suppliers_service.py
"""
Suppliers and supplier transactions (goods received).

Posting a supplier transaction allocates a TH-YYYY-NNNNN number, records the
purchase and increases the product's stock in one commit.
"""
from __future__ import annotations

import logging

from sqlalchemy import func

from ..errors import DuplicateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Supplier, SupplierTransaction
from ..time_utils import utcnow
from ..validation import (
    ModelValidationPolicy,
    enforce_price,
    require_date_range,
    validate_payload,
)
from . import document_service
from .concurrency import run_with_retry
from .stock_service import apply_increase, get_product_for_update

logger = logging.getLogger(__name__)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={
        "company_name", "contact_name", "phone", "email", "address",
        "city", "country", "tax_number", "is_active",
    },
    required_on_create={"company_name"},
)

TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields={
        "transaction_date", "supplier_id", "product_id", "quantity",
        "unit_price_cents", "invoice_number", "notes", "is_paid", "payment_date",
    },
    required_on_create={"supplier_id", "product_id", "quantity", "unit_price_cents"},
)


def _ensure_tax_number_free(tax_number: str | None, exclude_id: int | None = None) -> None:
    if not tax_number:
        return
    query = Supplier.visible().filter(Supplier.tax_number == tax_number)
    if exclude_id is not None:
        query = query.filter(Supplier.id != exclude_id)
    if query.first() is not None:
        raise DuplicateError("Supplier tax number already exists", details={"tax_number": tax_number})


def get_supplier(supplier_id: int, *, include_deleted: bool = False) -> Supplier:
    supplier = Supplier.visible(include_deleted).filter(Supplier.id == supplier_id).first()
    if supplier is None:
        raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})
    return supplier


def list_suppliers(*, include_deleted: bool = False, active_only: bool = False) -> list[Supplier]:
    query = Supplier.visible(include_deleted)
    if active_only:
        query = query.filter(Supplier.is_active.is_(True))
    return query.order_by(Supplier.company_name.asc(), Supplier.id.asc()).all()


def create_supplier(payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)

    def _op():
        _ensure_tax_number_free(patch.get("tax_number"))
        supplier = Supplier(**patch)
        db.session.add(supplier)
        db.session.commit()
        return supplier

    supplier = run_with_retry(_op)
    logger.info("Supplier created: id=%s name=%r", supplier.id, supplier.company_name)
    return supplier


def update_supplier(supplier_id: int, payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)

    def _op():
        supplier = get_supplier(supplier_id)
        if patch.get("tax_number"):
            _ensure_tax_number_free(patch["tax_number"], exclude_id=supplier.id)
        for key, value in patch.items():
            setattr(supplier, key, value)
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def delete_supplier(supplier_id: int) -> Supplier:
    def _op():
        supplier = get_supplier(supplier_id)
        supplier.soft_delete()
        db.session.commit()
        return supplier

    return run_with_retry(_op)


# =============================================================================
# Supplier transactions
# =============================================================================

def get_supplier_transaction(transaction_id: int) -> SupplierTransaction:
    txn = SupplierTransaction.visible().filter(SupplierTransaction.id == transaction_id).first()
    if txn is None:
        raise NotFoundError("Supplier transaction not found", details={"transaction_id": transaction_id})
    return txn


def list_supplier_transactions(
    *,
    supplier_id: int | None = None,
    product_id: int | None = None,
    start=None,
    end=None,
    is_paid: bool | None = None,
    include_deleted: bool = False,
) -> list[SupplierTransaction]:
    start, end = require_date_range(start, end)
    query = SupplierTransaction.visible(include_deleted)
    if supplier_id is not None:
        query = query.filter(SupplierTransaction.supplier_id == supplier_id)
    if product_id is not None:
        query = query.filter(SupplierTransaction.product_id == product_id)
    if start is not None:
        query = query.filter(SupplierTransaction.transaction_date >= start)
    if end is not None:
        query = query.filter(SupplierTransaction.transaction_date < end)
    if is_paid is not None:
        query = query.filter(SupplierTransaction.is_paid.is_(is_paid))
    return query.order_by(SupplierTransaction.transaction_date.desc(), SupplierTransaction.id.desc()).all()


def create_supplier_transaction(payload: dict) -> SupplierTransaction:
    """Record goods received and increase the product's stock."""
    patch = validate_payload(model=SupplierTransaction, payload=payload, policy=TRANSACTION_POLICY, partial=False)
    if patch["quantity"] <= 0:
        raise ValidationError("quantity must be > 0")
    enforce_price(patch)
    transaction_date = patch.pop("transaction_date", None) or utcnow()

    def _op():
        get_supplier(patch["supplier_id"])
        product = get_product_for_update(patch["product_id"])

        document_type, prefix = document_service.SUPPLIER_TRANSACTION
        txn = SupplierTransaction(
            transaction_number=document_service.next_document_number(
                document_type=document_type, prefix=prefix, year=transaction_date.year,
            ),
            transaction_date=transaction_date,
            total_cents=patch["quantity"] * patch["unit_price_cents"],
            **patch,
        )
        if txn.is_paid and txn.payment_date is None:
            txn.payment_date = utcnow()
        db.session.add(txn)
        apply_increase(product, patch["quantity"])
        db.session.commit()
        return txn

    txn = run_with_retry(_op)
    logger.info(
        "Supplier transaction %s: product=%s qty=%s",
        txn.transaction_number, txn.product_id, txn.quantity,
    )
    return txn


def mark_supplier_transaction_paid(transaction_id: int) -> SupplierTransaction:
    def _op():
        txn = get_supplier_transaction(transaction_id)
        if txn.is_paid:
            raise ValidationError("Supplier transaction is already paid")
        txn.is_paid = True
        txn.payment_date = utcnow()
        db.session.commit()
        return txn

    return run_with_retry(_op)


def supplier_totals(supplier_id: int) -> dict:
    get_supplier(supplier_id)
    count, quantity, total = (
        db.session.query(
            func.count(SupplierTransaction.id),
            func.coalesce(func.sum(SupplierTransaction.quantity), 0),
            func.coalesce(func.sum(SupplierTransaction.total_cents), 0),
        )
        .filter(
            SupplierTransaction.supplier_id == supplier_id,
            SupplierTransaction.is_deleted.is_(False),
        )
        .one()
    )
    product_count = (
        db.session.query(func.count(Product.id))
        .filter(Product.supplier_id == supplier_id, Product.is_deleted.is_(False))
        .scalar()
    )
    return {
        "supplier_id": supplier_id,
        "transaction_count": int(count),
        "total_quantity": int(quantity),
        "total_cents": int(total),
        "product_count": int(product_count or 0),
    }
