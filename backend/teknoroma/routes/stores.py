# backend/teknoroma/routes/stores.py
from flask import Blueprint, jsonify

from ..services import sales_service, stores_service
from ..time_utils import utcnow
from .params import arg_bool, arg_int, include_deleted, json_body

stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


@stores_bp.get("")
def list_stores():
    stores = stores_service.list_stores(
        include_deleted=include_deleted(),
        active_only=arg_bool("active_only"),
    )
    return jsonify({"items": [s.to_dict() for s in stores], "count": len(stores)}), 200


@stores_bp.get("/<int:store_id>")
def get_store(store_id: int):
    store = stores_service.get_store(store_id, include_deleted=include_deleted())
    return jsonify(store.to_dict()), 200


@stores_bp.get("/<int:store_id>/monthly-sales")
def store_monthly_sales(store_id: int):
    now = utcnow()
    year = arg_int("year", now.year)
    month = arg_int("month", now.month)
    total = sales_service.store_monthly_sales(store_id, year, month)
    return jsonify({"store_id": store_id, "year": year, "month": month, "sales_cents": total}), 200


@stores_bp.post("")
def create_store():
    return jsonify(stores_service.create_store(json_body()).to_dict()), 201


@stores_bp.put("/<int:store_id>")
def update_store(store_id: int):
    return jsonify(stores_service.update_store(store_id, json_body()).to_dict()), 200


@stores_bp.delete("/<int:store_id>")
def delete_store(store_id: int):
    return jsonify(stores_service.delete_store(store_id).to_dict()), 200


@stores_bp.get("/<int:store_id>/departments")
def list_departments(store_id: int):
    departments = stores_service.list_departments(store_id, include_deleted=include_deleted())
    return jsonify({"items": [d.to_dict() for d in departments], "count": len(departments)}), 200


@stores_bp.post("/<int:store_id>/departments")
def create_department(store_id: int):
    department = stores_service.create_department(store_id, json_body())
    return jsonify(department.to_dict()), 201


@stores_bp.delete("/departments/<int:department_id>")
def delete_department(department_id: int):
    return jsonify(stores_service.delete_department(department_id).to_dict()), 200
