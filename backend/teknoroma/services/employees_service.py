# backend/teknoroma/services/employees_service.py
from __future__ import annotations

import logging

from ..errors import DuplicateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Department, Employee, Store
from ..models.enums import EmployeeRole, parse_enum
from ..validation import ModelValidationPolicy, enforce_non_negative, validate_payload
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)

EMPLOYEE_POLICY = ModelValidationPolicy(
    writable_fields={
        "identity_number", "first_name", "last_name", "email", "phone", "birth_date",
        "hire_date", "salary_cents", "store_id", "department_id", "role",
        "sales_quota_cents", "is_active",
    },
    required_on_create={"identity_number", "first_name", "last_name", "store_id", "role"},
)


def _normalize(patch: dict) -> dict:
    if patch.get("identity_number") is not None:
        identity = patch["identity_number"]
        if not identity.isdigit() or len(identity) != 11:
            raise ValidationError("identity_number must be 11 digits")
    if patch.get("role") is not None:
        patch["role"] = parse_enum(EmployeeRole, patch["role"], "role").value
    enforce_non_negative(patch, "salary_cents", "sales_quota_cents")
    return patch


def _ensure_identity_free(identity_number: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Employee).filter(Employee.identity_number == identity_number)
    if exclude_id is not None:
        query = query.filter(Employee.id != exclude_id)
    if query.first() is not None:
        raise DuplicateError("Employee identity number already exists", details={"identity_number": identity_number})


def _ensure_references(patch: dict, store_id: int | None) -> None:
    if patch.get("store_id") is not None:
        if Store.visible().filter(Store.id == patch["store_id"]).first() is None:
            raise NotFoundError("Store not found", details={"store_id": patch["store_id"]})
    if patch.get("department_id") is not None:
        department = Department.visible().filter(Department.id == patch["department_id"]).first()
        if department is None:
            raise NotFoundError("Department not found", details={"department_id": patch["department_id"]})
        if store_id is not None and department.store_id != store_id:
            raise ValidationError("Department belongs to a different store")


def get_employee(employee_id: int, *, include_deleted: bool = False) -> Employee:
    employee = Employee.visible(include_deleted).filter(Employee.id == employee_id).first()
    if employee is None:
        raise NotFoundError("Employee not found", details={"employee_id": employee_id})
    return employee


def list_employees(
    *,
    store_id: int | None = None,
    role=None,
    active_only: bool = False,
    include_deleted: bool = False,
) -> list[Employee]:
    query = Employee.visible(include_deleted)
    if store_id is not None:
        query = query.filter(Employee.store_id == store_id)
    if role:
        query = query.filter(Employee.role == parse_enum(EmployeeRole, role, "role").value)
    if active_only:
        query = query.filter(Employee.is_active.is_(True))
    return query.order_by(Employee.last_name.asc(), Employee.first_name.asc(), Employee.id.asc()).all()


def create_employee(payload: dict) -> Employee:
    patch = _normalize(validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=False))

    def _op():
        _ensure_references(patch, patch["store_id"])
        _ensure_identity_free(patch["identity_number"])
        employee = Employee(**patch)
        db.session.add(employee)
        db.session.commit()
        return employee

    employee = run_with_retry(_op)
    logger.info("Employee created: id=%s role=%s store=%s", employee.id, employee.role, employee.store_id)
    return employee


def update_employee(employee_id: int, payload: dict) -> Employee:
    patch = _normalize(validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=True))

    def _op():
        employee = get_employee(employee_id)
        _ensure_references(patch, patch.get("store_id", employee.store_id))
        if "identity_number" in patch and patch["identity_number"] != employee.identity_number:
            _ensure_identity_free(patch["identity_number"], exclude_id=employee.id)
        for key, value in patch.items():
            setattr(employee, key, value)
        db.session.commit()
        return employee

    return run_with_retry(_op)


def delete_employee(employee_id: int) -> Employee:
    def _op():
        employee = get_employee(employee_id)
        employee.soft_delete()
        db.session.commit()
        return employee

    employee = run_with_retry(_op)
    logger.info("Employee soft-deleted: id=%s", employee.id)
    return employee
