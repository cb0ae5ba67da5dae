# backend/teknoroma/routes/employees.py
from flask import Blueprint, jsonify, request

from ..services import employees_service, sales_service
from ..time_utils import utcnow
from .params import arg_bool, arg_int, include_deleted, json_body

employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.get("")
def list_employees():
    employees = employees_service.list_employees(
        store_id=arg_int("store_id"),
        role=request.args.get("role"),
        active_only=arg_bool("active_only"),
        include_deleted=include_deleted(),
    )
    return jsonify({"items": [e.to_dict() for e in employees], "count": len(employees)}), 200


@employees_bp.get("/<int:employee_id>")
def get_employee(employee_id: int):
    employee = employees_service.get_employee(employee_id, include_deleted=include_deleted())
    return jsonify(employee.to_dict()), 200


@employees_bp.get("/<int:employee_id>/commission")
def employee_commission(employee_id: int):
    """
    Monthly commission for one employee.

    Query params:
    - year, month: int (optional, default current month)
    """
    now = utcnow()
    report = sales_service.employee_commission(
        employee_id,
        arg_int("year", now.year),
        arg_int("month", now.month),
    )
    return jsonify(report), 200


@employees_bp.post("")
def create_employee():
    return jsonify(employees_service.create_employee(json_body()).to_dict()), 201


@employees_bp.put("/<int:employee_id>")
def update_employee(employee_id: int):
    return jsonify(employees_service.update_employee(employee_id, json_body()).to_dict()), 200


@employees_bp.delete("/<int:employee_id>")
def delete_employee(employee_id: int):
    return jsonify(employees_service.delete_employee(employee_id).to_dict()), 200
