from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date
from .base import AuditMixin


class Store(AuditMixin, db.Model):
    """A physical TeknoRoma branch."""
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_stores_name"),
        {"sqlite_autoincrement": True},
    )

    name = db.Column(db.String(120), nullable=False)
    city = db.Column(db.String(64), nullable=True)
    district = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "city": self.city,
            "district": self.district,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "is_active": self.is_active,
            **self.audit_dict(),
        }


class Department(AuditMixin, db.Model):
    __tablename__ = "departments"
    __table_args__ = (
        db.UniqueConstraint("store_id", "name", name="uq_departments_store_name"),
        {"sqlite_autoincrement": True},
    )

    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    department_type = db.Column(db.String(32), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "store_id": self.store_id,
            "department_type": self.department_type,
            **self.audit_dict(),
        }


class Employee(AuditMixin, db.Model):
    """
    Store staff. role drives which dashboard and notification topic the
    employee belongs to; sales_quota_cents overrides the configured monthly
    quota when set.
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.UniqueConstraint("identity_number", name="uq_employees_identity_number"),
        db.Index("ix_employees_store_role", "store_id", "role"),
        {"sqlite_autoincrement": True},
    )

    identity_number = db.Column(db.String(11), nullable=False)
    first_name = db.Column(db.String(64), nullable=False)
    last_name = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    birth_date = db.Column(db.Date, nullable=True)
    hire_date = db.Column(db.Date, nullable=True)
    salary_cents = db.Column(db.Integer, nullable=False, default=0)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=True, index=True)
    role = db.Column(db.String(32), nullable=False)

    sales_quota_cents = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "identity_number": self.identity_number,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "birth_date": to_iso_date(self.birth_date),
            "hire_date": to_iso_date(self.hire_date),
            "salary_cents": self.salary_cents,
            "store_id": self.store_id,
            "department_id": self.department_id,
            "role": self.role,
            "sales_quota_cents": self.sales_quota_cents,
            "is_active": self.is_active,
            **self.audit_dict(),
        }
