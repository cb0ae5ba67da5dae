# backend/teknoroma/services/stores_service.py
from __future__ import annotations

import logging

from sqlalchemy import func

from ..errors import DuplicateError, NotFoundError
from ..extensions import db
from ..models import Department, Store
from ..models.enums import EmployeeRole, parse_enum
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)

STORE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "city", "district", "address", "phone", "email", "is_active"},
    required_on_create={"name"},
)

DEPARTMENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "department_type"},
    required_on_create={"name", "department_type"},
)


def _ensure_store_name_free(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Store).filter(func.lower(Store.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Store.id != exclude_id)
    if query.first() is not None:
        raise DuplicateError("Store name already exists", details={"name": name})


def get_store(store_id: int, *, include_deleted: bool = False) -> Store:
    store = Store.visible(include_deleted).filter(Store.id == store_id).first()
    if store is None:
        raise NotFoundError("Store not found", details={"store_id": store_id})
    return store


def list_stores(*, include_deleted: bool = False, active_only: bool = False) -> list[Store]:
    query = Store.visible(include_deleted)
    if active_only:
        query = query.filter(Store.is_active.is_(True))
    return query.order_by(Store.name.asc(), Store.id.asc()).all()


def create_store(payload: dict) -> Store:
    patch = validate_payload(model=Store, payload=payload, policy=STORE_POLICY, partial=False)

    def _op():
        _ensure_store_name_free(patch["name"])
        store = Store(**patch)
        db.session.add(store)
        db.session.commit()
        return store

    store = run_with_retry(_op)
    logger.info("Store created: id=%s name=%r", store.id, store.name)
    return store


def update_store(store_id: int, payload: dict) -> Store:
    patch = validate_payload(model=Store, payload=payload, policy=STORE_POLICY, partial=True)

    def _op():
        store = get_store(store_id)
        if "name" in patch:
            _ensure_store_name_free(patch["name"], exclude_id=store.id)
        for key, value in patch.items():
            setattr(store, key, value)
        db.session.commit()
        return store

    return run_with_retry(_op)


def delete_store(store_id: int) -> Store:
    def _op():
        store = get_store(store_id)
        store.soft_delete()
        db.session.commit()
        return store

    return run_with_retry(_op)


# =============================================================================
# Departments
# =============================================================================

def get_department(department_id: int, *, include_deleted: bool = False) -> Department:
    department = Department.visible(include_deleted).filter(Department.id == department_id).first()
    if department is None:
        raise NotFoundError("Department not found", details={"department_id": department_id})
    return department


def list_departments(store_id: int, *, include_deleted: bool = False) -> list[Department]:
    get_store(store_id)
    return (
        Department.visible(include_deleted)
        .filter(Department.store_id == store_id)
        .order_by(Department.name.asc(), Department.id.asc())
        .all()
    )


def create_department(store_id: int, payload: dict) -> Department:
    patch = validate_payload(model=Department, payload=payload, policy=DEPARTMENT_POLICY, partial=False)
    patch["department_type"] = parse_enum(EmployeeRole, patch["department_type"], "department_type").value

    def _op():
        get_store(store_id)
        existing = (
            db.session.query(Department)
            .filter(Department.store_id == store_id, func.lower(Department.name) == patch["name"].lower())
            .first()
        )
        if existing is not None:
            raise DuplicateError("Department already exists in this store", details={"name": patch["name"]})
        department = Department(store_id=store_id, **patch)
        db.session.add(department)
        db.session.commit()
        return department

    return run_with_retry(_op)


def delete_department(department_id: int) -> Department:
    def _op():
        department = get_department(department_id)
        department.soft_delete()
        db.session.commit()
        return department

    return run_with_retry(_op)
