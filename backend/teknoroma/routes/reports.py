from flask import Blueprint, jsonify, request

from ..services import reporting_service
from ..time_utils import utcnow
from .params import arg_int, require_arg_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/stock")
def stock_report():
    return jsonify(reporting_service.stock_report()), 200


@reports_bp.get("/stock/critical")
def critical_stock_report():
    return jsonify(reporting_service.critical_stock_report()), 200


@reports_bp.get("/stock/out-of-stock")
def out_of_stock_report():
    return jsonify(reporting_service.out_of_stock_report()), 200


@reports_bp.get("/top-selling")
def top_selling_products():
    report = reporting_service.top_selling_products(
        top_n=arg_int("top_n", reporting_service.DEFAULT_TOP_N),
        start=request.args.get("start"),
        end=request.args.get("end"),
        store_id=arg_int("store_id"),
    )
    return jsonify(report), 200


@reports_bp.get("/employee-performance")
def employee_sales_performance():
    now = utcnow()
    report = reporting_service.employee_sales_performance(
        arg_int("year", now.year),
        arg_int("month", now.month),
        store_id=arg_int("store_id"),
    )
    return jsonify(report), 200


@reports_bp.get("/cross-selling")
def cross_selling_report():
    report = reporting_service.cross_selling_report(
        top_n=arg_int("top_n", reporting_service.DEFAULT_TOP_N),
        start=request.args.get("start"),
        end=request.args.get("end"),
        store_id=arg_int("store_id"),
    )
    return jsonify(report), 200


@reports_bp.get("/unsold-products")
def unsold_products():
    report = reporting_service.unsold_products(
        days=arg_int("days"),
        store_id=arg_int("store_id"),
    )
    return jsonify(report), 200


@reports_bp.get("/expenses")
def expense_report():
    report = reporting_service.expense_report(
        require_arg_int("year"),
        month=arg_int("month"),
        store_id=arg_int("store_id"),
    )
    return jsonify(report), 200


@reports_bp.get("/customer-demographics")
def customer_demographics():
    report = reporting_service.customer_demographics(
        start=request.args.get("start"),
        end=request.args.get("end"),
        store_id=arg_int("store_id"),
    )
    return jsonify(report), 200


@reports_bp.get("/supplier-transactions")
def supplier_transaction_report():
    report = reporting_service.supplier_transaction_report(
        require_arg_int("year"),
        month=arg_int("month"),
        supplier_id=arg_int("supplier_id"),
    )
    return jsonify(report), 200


@reports_bp.get("/products-by-category")
def product_list_by_category():
    return jsonify(reporting_service.product_list_by_category()), 200


@reports_bp.get("/dashboard")
def dashboard_summary():
    return jsonify(reporting_service.dashboard_summary(store_id=arg_int("store_id"))), 200


@reports_bp.get("/store-comparison")
def store_sales_comparison():
    report = reporting_service.store_sales_comparison(
        start=request.args.get("start"),
        end=request.args.get("end"),
    )
    return jsonify(report), 200


@reports_bp.get("/top-customers")
def top_customers():
    report = reporting_service.top_customers(
        top_n=arg_int("top_n", reporting_service.DEFAULT_TOP_N),
        start=request.args.get("start"),
        end=request.args.get("end"),
        store_id=arg_int("store_id"),
    )
    return jsonify(report), 200


@reports_bp.get("/technical-service-performance")
def technical_service_performance():
    report = reporting_service.technical_service_performance(
        start=request.args.get("start"),
        end=request.args.get("end"),
        store_id=arg_int("store_id"),
    )
    return jsonify(report), 200
