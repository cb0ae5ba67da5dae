# Overview: Flask CLI command groups for bootstrap, demo data, and inspection.

# backend/teknoroma/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables (idempotent) and report row counts.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Load a demo store, staff, catalog and customers through the services.
#
# Reports:
# - python -m flask reports stock [--critical-only]
#   Print the stock report as a table.
#
# Exchange rates:
# - python -m flask rates show [--date 2026-01-15]
#   Print TCMB rates (or the fallback table when the feed is unreachable).

from datetime import date

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import Category, Customer, Employee, Product, Store, Supplier
from .models.enums import EmployeeRole
from .services import (
    customers_service,
    employees_service,
    products_service,
    reporting_service,
    stores_service,
    suppliers_service,
)
from .services.exchange_rate_service import exchange_rates


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create the schema if missing and print a summary."""
    click.echo("START Initializing TeknoRoma database...")
    db.create_all()
    for label, model in (
        ("stores", Store),
        ("employees", Employee),
        ("categories", Category),
        ("suppliers", Supplier),
        ("products", Product),
        ("customers", Customer),
    ):
        count = model.visible().count()
        click.echo(f"PASS {label:<11} {count}")
    click.echo("DONE Database ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' to load demo data.")


DEMO_STORE = {
    "name": "TeknoRoma Kadikoy",
    "city": "Istanbul",
    "district": "Kadikoy",
    "address": "Bagdat Cad. No:1",
    "phone": "+90 216 000 00 00",
}

DEMO_DEPARTMENTS = [
    ("Management", EmployeeRole.BRANCH_MANAGER),
    ("Sales", EmployeeRole.CASHIER),
    ("Warehouse", EmployeeRole.WAREHOUSE),
    ("Accounting", EmployeeRole.ACCOUNTING),
    ("Technical Service", EmployeeRole.TECHNICAL_SERVICE),
]

DEMO_EMPLOYEES = [
    ("10000000001", "Haluk", "Bey", EmployeeRole.BRANCH_MANAGER, "Management"),
    ("10000000002", "Gul", "Satar", EmployeeRole.CASHIER, "Sales"),
    ("10000000003", "Kerem", "Kasa", EmployeeRole.CASHIER, "Sales"),
    ("10000000004", "Mahmut", "Depo", EmployeeRole.WAREHOUSE, "Warehouse"),
    ("10000000005", "Feyza", "Muhasebe", EmployeeRole.ACCOUNTING, "Accounting"),
    ("10000000006", "Ozgun", "Teknik", EmployeeRole.TECHNICAL_SERVICE, "Technical Service"),
]

DEMO_CATALOG = {
    "Laptops": [
        ("Notebook Pro 14", "8690000000011", 4_599_900, 12),
        ("Notebook Air 13", "8690000000028", 3_299_900, 4),
    ],
    "Phones": [
        ("Phone X 128GB", "8690000000035", 2_899_900, 25),
        ("Phone Lite 64GB", "8690000000042", 999_900, 0),
    ],
    "Accessories": [
        ("USB-C Charger 65W", "8690000000059", 79_900, 60),
        ("Wireless Mouse", "8690000000066", 34_900, 8),
    ],
}

DEMO_CUSTOMERS = [
    ("20000000001", "Ayse", "Yilmaz", "1990-04-12", "FEMALE", "Istanbul"),
    ("20000000002", "Mehmet", "Demir", "1978-09-30", "MALE", "Ankara"),
    ("20000000003", "Zeynep", "Kaya", "2001-01-05", "FEMALE", "Istanbul"),
]


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Load demo master data. Safe to re-run: existing rows are skipped."""
    db.create_all()

    store = Store.visible().filter(Store.name == DEMO_STORE["name"]).first()
    if store is None:
        store = stores_service.create_store(DEMO_STORE)
        click.echo(f"PASS Created store: {store.name} (ID: {store.id})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    departments = {d.name: d for d in stores_service.list_departments(store.id)}
    for name, role in DEMO_DEPARTMENTS:
        if name not in departments:
            departments[name] = stores_service.create_department(
                store.id, {"name": name, "department_type": role.value}
            )
    click.echo(f"PASS Departments: {', '.join(sorted(departments))}")

    for identity, first, last, role, department in DEMO_EMPLOYEES:
        try:
            employees_service.create_employee({
                "identity_number": identity,
                "first_name": first,
                "last_name": last,
                "role": role.value,
                "store_id": store.id,
                "department_id": departments[department].id,
                "salary_cents": 4_500_000,
            })
            click.echo(f"PASS Created employee: {first} {last} ({role.value})")
        except DomainError as exc:
            click.echo(f"WARN  Skipping employee {identity}: {exc.message}")

    supplier = Supplier.visible().filter(Supplier.tax_number == "1234567890").first()
    if supplier is None:
        supplier = suppliers_service.create_supplier({
            "company_name": "Anadolu Elektronik A.S.",
            "contact_name": "Selim Tedarik",
            "city": "Istanbul",
            "country": "Turkey",
            "tax_number": "1234567890",
        })
        click.echo(f"PASS Created supplier: {supplier.company_name}")

    for category_name, products in DEMO_CATALOG.items():
        category = Category.visible().filter(Category.name == category_name).first()
        if category is None:
            category = products_service.create_category({"name": category_name})
        for name, barcode, price_cents, units in products:
            try:
                products_service.create_product({
                    "name": name,
                    "barcode": barcode,
                    "unit_price_cents": price_cents,
                    "units_in_stock": units,
                    "critical_stock_level": 5,
                    "category_id": category.id,
                    "supplier_id": supplier.id,
                })
            except DomainError as exc:
                click.echo(f"WARN  Skipping product {barcode}: {exc.message}")
    click.echo(f"PASS Catalog: {Product.visible().count()} products")

    for identity, first, last, birth_date, gender, city in DEMO_CUSTOMERS:
        try:
            customers_service.create_customer({
                "identity_number": identity,
                "first_name": first,
                "last_name": last,
                "birth_date": birth_date,
                "gender": gender,
                "city": city,
            })
        except DomainError as exc:
            click.echo(f"WARN  Skipping customer {identity}: {exc.message}")
    click.echo(f"PASS Customers: {Customer.visible().count()}")
    click.echo("DONE Demo data loaded.")


@click.group('reports')
def reports_group():
    """Reporting commands."""


@reports_group.command('stock')
@click.option('--critical-only', is_flag=True, help='Only CRITICAL and OUT_OF_STOCK products')
@with_appcontext
def stock_report_command(critical_only):
    """Print the stock report."""
    report = reporting_service.stock_report()
    click.echo(
        f"Products: {report['total_products']}  "
        f"sufficient={report['sufficient_count']} "
        f"critical={report['critical_count']} "
        f"out_of_stock={report['out_of_stock_count']}  "
        f"value={_money(report['total_stock_value_cents'])} TRY"
    )
    click.echo("-" * 78)
    for item in report["items"]:
        if critical_only and item["stock_status"] == "SUFFICIENT":
            continue
        click.echo(
            f"{item['product_id']:>5}  {item['barcode']:<14} {item['product_name'][:28]:<28} "
            f"{item['units_in_stock']:>5}  {item['stock_status']:<12} {_money(item['stock_value_cents']):>14}"
        )


@click.group('rates')
def rates_group():
    """Exchange-rate commands."""


@rates_group.command('show')
@click.option('--date', 'on_date', default=None, help='Historical date (YYYY-MM-DD)')
@with_appcontext
def show_rates(on_date):
    """Print TCMB rates, TRY per unit."""
    day = None
    if on_date:
        try:
            day = date.fromisoformat(on_date)
        except ValueError:
            raise click.BadParameter("date must be YYYY-MM-DD", param_hint="--date")
    try:
        table = exchange_rates.get_rate_table(day)
    except DomainError as exc:
        raise click.ClickException(exc.message)

    click.echo(f"Source: {table.source}  Date: {table.rate_date}")
    for code, rate in sorted(table.rates.items()):
        click.echo(f"  {code}  {rate}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(reports_group)
    app.cli.add_command(rates_group)
