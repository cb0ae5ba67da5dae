from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .base import AuditMixin
from .enums import TicketStatus


class TechnicalService(AuditMixin, db.Model):
    """
    Technical-service ticket, either an internal infrastructure issue or a
    customer device problem (customer_id is required for the latter).

    priority: 1 = low .. 4 = urgent.
    """
    __tablename__ = "technical_services"
    __table_args__ = (
        db.UniqueConstraint("service_number", name="uq_technical_services_number"),
        db.Index("ix_technical_services_store_status", "store_id", "status"),
        db.CheckConstraint("priority BETWEEN 1 AND 4", name="ck_technical_services_priority"),
        {"sqlite_autoincrement": True},
    )

    service_number = db.Column(db.String(32), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    reported_by_employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)
    assigned_to_employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True, index=True)

    is_customer_issue = db.Column(db.Boolean, nullable=False, default=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=TicketStatus.OPEN.value, index=True)
    priority = db.Column(db.Integer, nullable=False, default=2)

    reported_at = db.Column(db.DateTime(timezone=True), nullable=False)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolution = db.Column(db.Text, nullable=True)

    reported_by = db.relationship("Employee", foreign_keys=[reported_by_employee_id])
    assigned_to = db.relationship("Employee", foreign_keys=[assigned_to_employee_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_number": self.service_number,
            "title": self.title,
            "description": self.description,
            "store_id": self.store_id,
            "reported_by_employee_id": self.reported_by_employee_id,
            "assigned_to_employee_id": self.assigned_to_employee_id,
            "is_customer_issue": self.is_customer_issue,
            "customer_id": self.customer_id,
            "status": self.status,
            "priority": self.priority,
            "reported_at": to_utc_z(self.reported_at),
            "resolved_at": to_utc_z(self.resolved_at),
            "resolution": self.resolution,
            **self.audit_dict(),
        }
