# backend/teknoroma/services/customers_service.py
from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import DuplicateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer
from ..models.enums import Gender, parse_enum
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "identity_number", "first_name", "last_name", "birth_date", "gender",
        "email", "phone", "address", "city", "is_active",
    },
    required_on_create={"identity_number", "first_name", "last_name"},
)


def _normalize(patch: dict) -> dict:
    if patch.get("identity_number") is not None:
        identity = patch["identity_number"]
        if not identity.isdigit() or len(identity) != 11:
            raise ValidationError("identity_number must be 11 digits")
    if patch.get("gender") is not None:
        patch["gender"] = parse_enum(Gender, patch["gender"], "gender").value
    return patch


def _ensure_identity_free(identity_number: str, exclude_id: int | None = None) -> None:
    # Table-level unique: soft-deleted customers keep their identity number
    query = db.session.query(Customer).filter(Customer.identity_number == identity_number)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first() is not None:
        raise DuplicateError("Customer identity number already exists", details={"identity_number": identity_number})


def get_customer(customer_id: int, *, include_deleted: bool = False) -> Customer:
    customer = Customer.visible(include_deleted).filter(Customer.id == customer_id).first()
    if customer is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def get_customer_by_identity(identity_number: str) -> Customer:
    customer = Customer.visible().filter(Customer.identity_number == (identity_number or "").strip()).first()
    if customer is None:
        raise NotFoundError("Customer not found", details={"identity_number": identity_number})
    return customer


def list_customers(
    *,
    city: str | None = None,
    search: str | None = None,
    active_only: bool = False,
    include_deleted: bool = False,
) -> list[Customer]:
    query = Customer.visible(include_deleted)
    if city:
        query = query.filter(Customer.city == city)
    if active_only:
        query = query.filter(Customer.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Customer.first_name.ilike(like),
            Customer.last_name.ilike(like),
            Customer.identity_number.ilike(like),
            Customer.phone.ilike(like),
        ))
    return query.order_by(Customer.last_name.asc(), Customer.first_name.asc(), Customer.id.asc()).all()


def create_customer(payload: dict) -> Customer:
    patch = _normalize(validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False))

    def _op():
        _ensure_identity_free(patch["identity_number"])
        customer = Customer(**patch)
        db.session.add(customer)
        db.session.commit()
        return customer

    customer = run_with_retry(_op)
    logger.info("Customer created: id=%s", customer.id)
    return customer


def update_customer(customer_id: int, payload: dict) -> Customer:
    patch = _normalize(validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True))

    def _op():
        customer = get_customer(customer_id)
        if "identity_number" in patch and patch["identity_number"] != customer.identity_number:
            _ensure_identity_free(patch["identity_number"], exclude_id=customer.id)
        for key, value in patch.items():
            setattr(customer, key, value)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def delete_customer(customer_id: int) -> Customer:
    def _op():
        customer = get_customer(customer_id)
        customer.soft_delete()
        db.session.commit()
        return customer

    customer = run_with_retry(_op)
    logger.info("Customer soft-deleted: id=%s", customer.id)
    return customer
