from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .base import AuditMixin
from .enums import SaleStatus


class Sale(AuditMixin, db.Model):
    """
    Sale document.

    LIFECYCLE:
    1. PENDING: created at the register, stock already decremented
    2. PREPARING: payment confirmed, warehouse is preparing the goods
    3. COMPLETED: handed over; the document is immutable from here on
    4. CANCELLED: stock restored, cancel_reason recorded

    Totals are stored, not derived: total = subtotal + tax - discount.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("sale_number", name="uq_sales_sale_number"),
        # Store-scoped queries by status and date
        db.Index("ix_sales_store_status_date", "store_id", "status", "sale_date"),
        db.Index("ix_sales_employee_date", "employee_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    # Human-readable number (e.g., "S-2025-00042")
    sale_number = db.Column(db.String(32), nullable=False)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SaleStatus.PENDING.value, index=True)
    payment_type = db.Column(db.String(16), nullable=False)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    cash_register_number = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    employee = db.relationship("Employee", backref=db.backref("sales", lazy=True))
    store = db.relationship("Store", backref=db.backref("sales", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Sale id={self.id} number={self.sale_number!r} status={self.status}>"

    def to_dict(self, include_details: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_number": self.sale_number,
            "sale_date": to_utc_z(self.sale_date),
            "customer_id": self.customer_id,
            "employee_id": self.employee_id,
            "store_id": self.store_id,
            "status": self.status,
            "payment_type": self.payment_type,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "cash_register_number": self.cash_register_number,
            "notes": self.notes,
            "paid_at": to_utc_z(self.paid_at),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
            "version_id": self.version_id,
            **self.audit_dict(),
        }
        if include_details:
            data["details"] = [d.to_dict() for d in self.details if not d.is_deleted]
        return data


class SaleDetail(AuditMixin, db.Model):
    """
    One product line on a sale.

    product_name and unit_price_cents are snapshots taken when the sale was
    created and are never refreshed from Product.
    """
    __tablename__ = "sale_details"
    __table_args__ = (
        db.Index("ix_sale_details_product_sale", "product_id", "sale_id"),
        {"sqlite_autoincrement": True},
    )

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", backref=db.backref("details", lazy=True, order_by="SaleDetail.id"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "discount_percent": str(self.discount_percent) if self.discount_percent is not None else "0",
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            **self.audit_dict(),
        }
