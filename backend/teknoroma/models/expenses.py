from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .base import AuditMixin
from .enums import Currency


class Expense(AuditMixin, db.Model):
    """
    Store expense, optionally in foreign currency.

    amount_in_try_cents is fixed at creation time from the exchange rate in
    effect then; exchange_rate is NULL for TRY expenses.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.UniqueConstraint("expense_number", name="uq_expenses_expense_number"),
        db.Index("ix_expenses_store_date", "store_id", "expense_date"),
        db.Index("ix_expenses_type", "expense_type"),
        {"sqlite_autoincrement": True},
    )

    expense_number = db.Column(db.String(32), nullable=False)
    expense_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    expense_type = db.Column(db.String(32), nullable=False)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default=Currency.TRY.value)
    exchange_rate = db.Column(db.Numeric(10, 4), nullable=True)
    amount_in_try_cents = db.Column(db.Integer, nullable=False)

    description = db.Column(db.Text, nullable=True)
    document_number = db.Column(db.String(64), nullable=True)

    is_paid = db.Column(db.Boolean, nullable=False, default=False, index=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)

    store = db.relationship("Store", backref=db.backref("expenses", lazy=True))
    employee = db.relationship("Employee")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_number": self.expense_number,
            "expense_date": to_utc_z(self.expense_date),
            "expense_type": self.expense_type,
            "store_id": self.store_id,
            "employee_id": self.employee_id,
            "amount_cents": self.amount_cents,
            "currency": self.currency,
            "exchange_rate": str(self.exchange_rate) if self.exchange_rate is not None else None,
            "amount_in_try_cents": self.amount_in_try_cents,
            "description": self.description,
            "document_number": self.document_number,
            "is_paid": self.is_paid,
            "payment_date": to_utc_z(self.payment_date),
            **self.audit_dict(),
        }
