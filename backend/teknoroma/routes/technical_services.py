# backend/teknoroma/routes/technical_services.py
from flask import Blueprint, jsonify, request

from ..services import service_ticket_service
from ..models.enums import TicketStatus
from .params import arg_bool, arg_int, include_deleted, json_body

technical_services_bp = Blueprint("technical_services", __name__, url_prefix="/api/technical-services")


@technical_services_bp.get("")
def list_tickets():
    tickets = service_ticket_service.list_tickets(
        store_id=arg_int("store_id"),
        status=request.args.get("status"),
        assigned_to_employee_id=arg_int("assigned_to"),
        open_only=arg_bool("open_only"),
        include_deleted=include_deleted(),
    )
    return jsonify({"items": [t.to_dict() for t in tickets], "count": len(tickets)}), 200


@technical_services_bp.get("/sla-violations")
def sla_violations():
    rows = service_ticket_service.sla_violations(store_id=arg_int("store_id"))
    return jsonify({"items": rows, "count": len(rows)}), 200


@technical_services_bp.get("/<int:ticket_id>")
def get_ticket(ticket_id: int):
    ticket = service_ticket_service.get_ticket(ticket_id, include_deleted=include_deleted())
    return jsonify(ticket.to_dict()), 200


@technical_services_bp.post("")
def create_ticket():
    return jsonify(service_ticket_service.create_ticket(json_body()).to_dict()), 201


@technical_services_bp.put("/<int:ticket_id>")
def update_ticket(ticket_id: int):
    return jsonify(service_ticket_service.update_ticket(ticket_id, json_body()).to_dict()), 200


@technical_services_bp.post("/<int:ticket_id>/assign")
def assign_ticket(ticket_id: int):
    """Body: {"employee_id": int}"""
    payload = json_body()
    ticket = service_ticket_service.assign_ticket(ticket_id, payload.get("employee_id"))
    return jsonify(ticket.to_dict()), 200


@technical_services_bp.post("/<int:ticket_id>/resolve")
def resolve_ticket(ticket_id: int):
    """Body: {"resolution": str, "status": "RESOLVED" | "UNRESOLVABLE" (default RESOLVED)}"""
    payload = json_body()
    ticket = service_ticket_service.resolve_ticket(
        ticket_id,
        payload.get("resolution"),
        status=payload.get("status") or TicketStatus.RESOLVED,
    )
    return jsonify(ticket.to_dict()), 200


@technical_services_bp.delete("/<int:ticket_id>")
def delete_ticket(ticket_id: int):
    return jsonify(service_ticket_service.delete_ticket(ticket_id).to_dict()), 200
