# Overview: Flask API routes for the sale workflow; parses input and returns JSON responses.

# backend/teknoroma/routes/sales.py
"""
Sale workflow routes.

LIFECYCLE:
    PENDING --confirm-payment--> PREPARING --complete--> COMPLETED
    PENDING | PREPARING --cancel--> CANCELLED (stock restored)

Creating a sale decrements stock in the same transaction; a sale that
cannot be fully served is rejected with 400 and nothing is persisted.
"""
from flask import Blueprint, current_app, jsonify, request

from ..services import sales_service
from .params import arg_int, body_datetime, include_deleted, json_body

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale():
    """
    Body:
    {
        "customer_id": int, "employee_id": int, "store_id": int,
        "payment_type": "CASH" | "CREDIT_CARD" | "BANK_TRANSFER" | "CHEQUE",
        "items": [{"product_id": int, "quantity": int, "discount_percent": number}],
        "discount_cents": int (optional),
        "sale_date": ISO datetime (optional),
        "cash_register_number": str (optional),
        "notes": str (optional),
        "is_mobile": bool (optional, notifies cashiers)
    }
    """
    payload = json_body()
    sale = sales_service.create_sale(
        payload.get("customer_id"),
        payload.get("employee_id"),
        payload.get("store_id"),
        payload.get("payment_type"),
        payload.get("items"),
        discount_cents=payload.get("discount_cents", 0),
        sale_date=body_datetime(payload, "sale_date"),
        cash_register_number=payload.get("cash_register_number"),
        notes=payload.get("notes"),
        is_mobile=payload.get("is_mobile", False),
    )
    current_app.logger.info("Sale %s created via API", sale.sale_number)
    return jsonify(sale.to_dict(include_details=True)), 201


@sales_bp.get("")
def list_sales():
    """
    Query params:
    - store_id, customer_id, employee_id: int (optional)
    - status: PENDING | PREPARING | COMPLETED | CANCELLED (optional)
    - start, end: ISO datetimes, start inclusive, end exclusive (optional)
    - limit: int (optional)
    - include_deleted: bool
    """
    sales = sales_service.list_sales(
        store_id=arg_int("store_id"),
        customer_id=arg_int("customer_id"),
        employee_id=arg_int("employee_id"),
        status=request.args.get("status"),
        start=request.args.get("start"),
        end=request.args.get("end"),
        include_deleted=include_deleted(),
        limit=arg_int("limit"),
    )
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200


@sales_bp.get("/<int:sale_id>")
def get_sale(sale_id: int):
    sale = sales_service.get_sale(sale_id, include_deleted=include_deleted())
    return jsonify(sale.to_dict(include_details=True)), 200


@sales_bp.get("/number/<string:sale_number>")
def get_sale_by_number(sale_number: str):
    sale = sales_service.get_sale_by_number(sale_number, include_deleted=include_deleted())
    return jsonify(sale.to_dict(include_details=True)), 200


@sales_bp.get("/<int:sale_id>/details")
def get_sale_details(sale_id: int):
    details = sales_service.get_sale_details(sale_id)
    return jsonify({"items": [d.to_dict() for d in details], "count": len(details)}), 200


@sales_bp.post("/<int:sale_id>/confirm-payment")
def confirm_payment(sale_id: int):
    return jsonify(sales_service.confirm_payment(sale_id).to_dict()), 200


@sales_bp.post("/<int:sale_id>/complete")
def complete_sale(sale_id: int):
    return jsonify(sales_service.complete_sale(sale_id).to_dict()), 200


@sales_bp.post("/<int:sale_id>/cancel")
def cancel_sale(sale_id: int):
    """Body: {"reason": str}"""
    payload = json_body()
    return jsonify(sales_service.cancel_sale(sale_id, payload.get("reason")).to_dict(include_details=True)), 200


@sales_bp.post("/<int:sale_id>/status")
def update_sale_status(sale_id: int):
    """Body: {"status": str, "reason": str (required for CANCELLED)}"""
    payload = json_body()
    sale = sales_service.update_sale_status(sale_id, payload.get("status"), reason=payload.get("reason"))
    return jsonify(sale.to_dict()), 200
