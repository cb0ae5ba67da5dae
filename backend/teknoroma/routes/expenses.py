# backend/teknoroma/routes/expenses.py
from flask import Blueprint, jsonify, request

from ..services import expense_service
from .params import arg_int, arg_optional_bool, body_datetime, include_deleted, json_body

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
def list_expenses():
    expenses = expense_service.list_expenses(
        store_id=arg_int("store_id"),
        expense_type=request.args.get("expense_type"),
        start=request.args.get("start"),
        end=request.args.get("end"),
        is_paid=arg_optional_bool("is_paid"),
        include_deleted=include_deleted(),
    )
    return jsonify({"items": [e.to_dict() for e in expenses], "count": len(expenses)}), 200


@expenses_bp.get("/<int:expense_id>")
def get_expense(expense_id: int):
    expense = expense_service.get_expense(expense_id, include_deleted=include_deleted())
    return jsonify(expense.to_dict()), 200


@expenses_bp.post("")
def create_expense():
    """
    Body: expense_type, store_id, amount_cents, currency (TRY | USD | EUR),
    optional exchange_rate (defaults to today's rate), employee_id
    (required for EMPLOYEE_PAYMENT), expense_date, description, document_number.
    """
    return jsonify(expense_service.create_expense(json_body()).to_dict()), 201


@expenses_bp.put("/<int:expense_id>")
def update_expense(expense_id: int):
    return jsonify(expense_service.update_expense(expense_id, json_body()).to_dict()), 200


@expenses_bp.post("/<int:expense_id>/pay")
def pay_expense(expense_id: int):
    payload = json_body()
    expense = expense_service.mark_expense_paid(expense_id, body_datetime(payload, "payment_date"))
    return jsonify(expense.to_dict()), 200


@expenses_bp.delete("/<int:expense_id>")
def delete_expense(expense_id: int):
    return jsonify(expense_service.delete_expense(expense_id).to_dict()), 200
