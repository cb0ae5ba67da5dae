from __future__ import annotations

from ..extensions import db
from ..time_utils import age_on, to_iso_date, utcnow
from .base import AuditMixin


class Customer(AuditMixin, db.Model):
    """
    Customer master data. Demographic fields (birth_date, gender, city)
    feed the demographics report.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("identity_number", name="uq_customers_identity_number"),
        db.Index("ix_customers_city", "city"),
        {"sqlite_autoincrement": True},
    )

    identity_number = db.Column(db.String(11), nullable=False)
    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    birth_date = db.Column(db.Date, nullable=True)
    gender = db.Column(db.String(16), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(64), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def age(self) -> int | None:
        return age_on(self.birth_date, utcnow().date())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "identity_number": self.identity_number,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "birth_date": to_iso_date(self.birth_date),
            "age": self.age,
            "gender": self.gender,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "is_active": self.is_active,
            **self.audit_dict(),
        }
