# backend/teknoroma/routes/suppliers.py
"""
Supplier master data and goods-received transactions.

POST /api/suppliers/transactions records a delivery and raises the
product's stock in the same commit.
"""
from flask import Blueprint, jsonify, request

from ..services import suppliers_service
from .params import arg_bool, arg_int, arg_optional_bool, include_deleted, json_body

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
def list_suppliers():
    suppliers = suppliers_service.list_suppliers(
        include_deleted=include_deleted(),
        active_only=arg_bool("active_only"),
    )
    return jsonify({"items": [s.to_dict() for s in suppliers], "count": len(suppliers)}), 200


@suppliers_bp.get("/<int:supplier_id>")
def get_supplier(supplier_id: int):
    supplier = suppliers_service.get_supplier(supplier_id, include_deleted=include_deleted())
    return jsonify(supplier.to_dict()), 200


@suppliers_bp.get("/<int:supplier_id>/totals")
def supplier_totals(supplier_id: int):
    return jsonify(suppliers_service.supplier_totals(supplier_id)), 200


@suppliers_bp.post("")
def create_supplier():
    return jsonify(suppliers_service.create_supplier(json_body()).to_dict()), 201


@suppliers_bp.put("/<int:supplier_id>")
def update_supplier(supplier_id: int):
    return jsonify(suppliers_service.update_supplier(supplier_id, json_body()).to_dict()), 200


@suppliers_bp.delete("/<int:supplier_id>")
def delete_supplier(supplier_id: int):
    return jsonify(suppliers_service.delete_supplier(supplier_id).to_dict()), 200


# =============================================================================
# Transactions
# =============================================================================

@suppliers_bp.get("/transactions")
def list_transactions():
    transactions = suppliers_service.list_supplier_transactions(
        supplier_id=arg_int("supplier_id"),
        product_id=arg_int("product_id"),
        start=request.args.get("start"),
        end=request.args.get("end"),
        is_paid=arg_optional_bool("is_paid"),
        include_deleted=include_deleted(),
    )
    return jsonify({"items": [t.to_dict() for t in transactions], "count": len(transactions)}), 200


@suppliers_bp.get("/transactions/<int:transaction_id>")
def get_transaction(transaction_id: int):
    return jsonify(suppliers_service.get_supplier_transaction(transaction_id).to_dict()), 200


@suppliers_bp.post("/transactions")
def create_transaction():
    txn = suppliers_service.create_supplier_transaction(json_body())
    return jsonify(txn.to_dict()), 201


@suppliers_bp.post("/transactions/<int:transaction_id>/pay")
def pay_transaction(transaction_id: int):
    txn = suppliers_service.mark_supplier_transaction_paid(transaction_id)
    return jsonify(txn.to_dict()), 200
