"""Initial TeknoRoma schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns():
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    op.create_table(
        "stores",
        *_audit_columns(),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("city", sa.String(64), nullable=True),
        sa.Column("district", sa.String(64), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_stores_name"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "departments",
        *_audit_columns(),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("department_type", sa.String(32), nullable=False),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("store_id", "name", name="uq_departments_store_name"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "employees",
        *_audit_columns(),
        sa.Column("identity_number", sa.String(11), nullable=False),
        sa.Column("first_name", sa.String(64), nullable=False),
        sa.Column("last_name", sa.String(64), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("hire_date", sa.Date(), nullable=True),
        sa.Column("salary_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("department_id", sa.Integer(), nullable=True),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("sales_quota_cents", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("identity_number", name="uq_employees_identity_number"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "customers",
        *_audit_columns(),
        sa.Column("identity_number", sa.String(11), nullable=False),
        sa.Column("first_name", sa.String(128), nullable=False),
        sa.Column("last_name", sa.String(128), nullable=False),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(16), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("city", sa.String(64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("identity_number", name="uq_customers_identity_number"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "categories",
        *_audit_columns(),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "suppliers",
        *_audit_columns(),
        sa.Column("company_name", sa.String(200), nullable=False),
        sa.Column("contact_name", sa.String(120), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("city", sa.String(64), nullable=True),
        sa.Column("country", sa.String(64), nullable=True),
        sa.Column("tax_number", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "products",
        *_audit_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("barcode", sa.String(64), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("units_in_stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("critical_stock_level", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("stock_status", sa.String(16), nullable=False, server_default="OUT_OF_STOCK"),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("image_url", sa.String(512), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("barcode", name="uq_products_barcode"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "supplier_transactions",
        *_audit_columns(),
        sa.Column("transaction_number", sa.String(32), nullable=False),
        sa.Column("transaction_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_number", name="uq_supplier_txn_number"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "sales",
        *_audit_columns(),
        sa.Column("sale_number", sa.String(32), nullable=False),
        sa.Column("sale_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
        sa.Column("payment_type", sa.String(16), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cash_register_number", sa.String(32), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.String(255), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sale_number", name="uq_sales_sale_number"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "sale_details",
        *_audit_columns(),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "expenses",
        *_audit_columns(),
        sa.Column("expense_number", sa.String(32), nullable=False),
        sa.Column("expense_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expense_type", sa.String(32), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=True),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="TRY"),
        sa.Column("exchange_rate", sa.Numeric(10, 4), nullable=True),
        sa.Column("amount_in_try_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("document_number", sa.String(64), nullable=True),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("expense_number", name="uq_expenses_expense_number"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "technical_services",
        *_audit_columns(),
        sa.Column("service_number", sa.String(32), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("reported_by_employee_id", sa.Integer(), nullable=False),
        sa.Column("assigned_to_employee_id", sa.Integer(), nullable=True),
        sa.Column("is_customer_issue", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="OPEN"),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("2")),
        sa.Column("reported_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["reported_by_employee_id"], ["employees.id"]),
        sa.ForeignKeyConstraint(["assigned_to_employee_id"], ["employees.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("service_number", name="uq_technical_services_number"),
        sa.CheckConstraint("priority BETWEEN 1 AND 4", name="ck_technical_services_priority"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(32), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("document_type", "year", name="uq_doc_sequences_type_year"),
        sqlite_autoincrement=True,
    )

    for table in (
        "stores", "departments", "employees", "customers", "categories", "suppliers",
        "products", "supplier_transactions", "sales", "sale_details", "expenses", "technical_services",
    ):
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.create_index(f"ix_{table}_is_deleted", ["is_deleted"], unique=False)

    with op.batch_alter_table("departments", schema=None) as batch_op:
        batch_op.create_index("ix_departments_store_id", ["store_id"], unique=False)

    with op.batch_alter_table("employees", schema=None) as batch_op:
        batch_op.create_index("ix_employees_store_id", ["store_id"], unique=False)
        batch_op.create_index("ix_employees_department_id", ["department_id"], unique=False)
        batch_op.create_index("ix_employees_store_role", ["store_id", "role"], unique=False)

    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_city", ["city"], unique=False)
        batch_op.create_index("ix_customers_is_active", ["is_active"], unique=False)

    with op.batch_alter_table("categories", schema=None) as batch_op:
        batch_op.create_index("ix_categories_name", ["name"], unique=False)

    with op.batch_alter_table("suppliers", schema=None) as batch_op:
        batch_op.create_index("ix_suppliers_company_name", ["company_name"], unique=False)

    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_category_id", ["category_id"], unique=False)
        batch_op.create_index("ix_products_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_products_category_active", ["category_id", "is_active"], unique=False)
        batch_op.create_index("ix_products_stock_status", ["stock_status"], unique=False)

    with op.batch_alter_table("supplier_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_supplier_transactions_transaction_date", ["transaction_date"], unique=False)
        batch_op.create_index("ix_supplier_transactions_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_supplier_transactions_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_supplier_txn_supplier_date", ["supplier_id", "transaction_date"], unique=False)

    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_sale_date", ["sale_date"], unique=False)
        batch_op.create_index("ix_sales_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sales_employee_id", ["employee_id"], unique=False)
        batch_op.create_index("ix_sales_store_id", ["store_id"], unique=False)
        batch_op.create_index("ix_sales_status", ["status"], unique=False)
        batch_op.create_index("ix_sales_store_status_date", ["store_id", "status", "sale_date"], unique=False)
        batch_op.create_index("ix_sales_employee_date", ["employee_id", "sale_date"], unique=False)

    with op.batch_alter_table("sale_details", schema=None) as batch_op:
        batch_op.create_index("ix_sale_details_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_sale_details_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_sale_details_product_sale", ["product_id", "sale_id"], unique=False)

    with op.batch_alter_table("expenses", schema=None) as batch_op:
        batch_op.create_index("ix_expenses_expense_date", ["expense_date"], unique=False)
        batch_op.create_index("ix_expenses_store_id", ["store_id"], unique=False)
        batch_op.create_index("ix_expenses_employee_id", ["employee_id"], unique=False)
        batch_op.create_index("ix_expenses_is_paid", ["is_paid"], unique=False)
        batch_op.create_index("ix_expenses_store_date", ["store_id", "expense_date"], unique=False)
        batch_op.create_index("ix_expenses_type", ["expense_type"], unique=False)

    with op.batch_alter_table("technical_services", schema=None) as batch_op:
        batch_op.create_index("ix_technical_services_store_id", ["store_id"], unique=False)
        batch_op.create_index("ix_technical_services_assigned_to_employee_id", ["assigned_to_employee_id"], unique=False)
        batch_op.create_index("ix_technical_services_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_technical_services_status", ["status"], unique=False)
        batch_op.create_index("ix_technical_services_store_status", ["store_id", "status"], unique=False)

    with op.batch_alter_table("document_sequences", schema=None) as batch_op:
        batch_op.create_index("ix_document_sequences_document_type", ["document_type"], unique=False)


def downgrade():
    for table in (
        "document_sequences",
        "technical_services",
        "expenses",
        "sale_details",
        "sales",
        "supplier_transactions",
        "products",
        "suppliers",
        "categories",
        "customers",
        "employees",
        "departments",
        "stores",
    ):
        op.drop_table(table)
