# backend/teknoroma/routes/customers.py
from flask import Blueprint, jsonify, request

from ..services import customers_service
from .params import arg_bool, include_deleted, json_body

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
def list_customers():
    customers = customers_service.list_customers(
        city=request.args.get("city"),
        search=request.args.get("q"),
        active_only=arg_bool("active_only"),
        include_deleted=include_deleted(),
    )
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.get("/<int:customer_id>")
def get_customer(customer_id: int):
    customer = customers_service.get_customer(customer_id, include_deleted=include_deleted())
    return jsonify(customer.to_dict()), 200


@customers_bp.get("/identity/<string:identity_number>")
def get_customer_by_identity(identity_number: str):
    return jsonify(customers_service.get_customer_by_identity(identity_number).to_dict()), 200


@customers_bp.post("")
def create_customer():
    return jsonify(customers_service.create_customer(json_body()).to_dict()), 201


@customers_bp.put("/<int:customer_id>")
def update_customer(customer_id: int):
    return jsonify(customers_service.update_customer(customer_id, json_body()).to_dict()), 200


@customers_bp.delete("/<int:customer_id>")
def delete_customer(customer_id: int):
    return jsonify(customers_service.delete_customer(customer_id).to_dict()), 200
