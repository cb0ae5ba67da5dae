from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .base import AuditMixin
from .enums import StockStatus


class Category(AuditMixin, db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    name = db.Column(db.String(120), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            **self.audit_dict(),
        }


class Supplier(AuditMixin, db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    company_name = db.Column(db.String(200), nullable=False, index=True)
    contact_name = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(64), nullable=True)
    country = db.Column(db.String(64), nullable=True)
    tax_number = db.Column(db.String(32), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "contact_name": self.contact_name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "city": self.city,
            "country": self.country,
            "tax_number": self.tax_number,
            "is_active": self.is_active,
            **self.audit_dict(),
        }


class Product(AuditMixin, db.Model):
    """
    Product master data with a denormalized stock level.

    stock_status is cached for query performance and must be recomputed by
    stock_service after every change to units_in_stock or
    critical_stock_level. version_id makes concurrent stock writers collide
    (StaleDataError) instead of overselling.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("barcode", name="uq_products_barcode"),
        db.Index("ix_products_category_active", "category_id", "is_active"),
        db.Index("ix_products_stock_status", "stock_status"),
        {"sqlite_autoincrement": True},
    )

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    barcode = db.Column(db.String(64), nullable=False)

    # Authoritative storage in kuruş
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)

    units_in_stock = db.Column(db.Integer, nullable=False, default=0)
    critical_stock_level = db.Column(db.Integer, nullable=False, default=10)
    stock_status = db.Column(db.String(16), nullable=False, default=StockStatus.OUT_OF_STOCK.value)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    image_url = db.Column(db.String(512), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} barcode={self.barcode!r} name={self.name!r}>"

    @property
    def is_available(self) -> bool:
        return self.is_active and not self.is_deleted and self.units_in_stock > 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "barcode": self.barcode,
            "unit_price_cents": self.unit_price_cents,
            "units_in_stock": self.units_in_stock,
            "critical_stock_level": self.critical_stock_level,
            "stock_status": self.stock_status,
            "category_id": self.category_id,
            "supplier_id": self.supplier_id,
            "is_active": self.is_active,
            "is_available": self.is_available,
            "image_url": self.image_url,
            "version_id": self.version_id,
            **self.audit_dict(),
        }


class SupplierTransaction(AuditMixin, db.Model):
    """Goods received from a supplier; posting one increases product stock."""
    __tablename__ = "supplier_transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_number", name="uq_supplier_txn_number"),
        db.Index("ix_supplier_txn_supplier_date", "supplier_id", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    transaction_number = db.Column(db.String(32), nullable=False)
    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    invoice_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    is_paid = db.Column(db.Boolean, nullable=False, default=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "transaction_date": to_utc_z(self.transaction_date),
            "supplier_id": self.supplier_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_cents": self.total_cents,
            "invoice_number": self.invoice_number,
            "notes": self.notes,
            "is_paid": self.is_paid,
            "payment_date": to_utc_z(self.payment_date),
            **self.audit_dict(),
        }
