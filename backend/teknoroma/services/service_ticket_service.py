# backend/teknoroma/services/service_ticket_service.py
"""
Technical-service tickets.

LIFECYCLE:
    OPEN --assign--> IN_PROGRESS --resolve--> RESOLVED | UNRESOLVABLE

Resolution SLA by priority (hours from reported_at): 1=72, 2=24, 3=12, 4=4.
A ticket violates its SLA when it is still open past the target, or was
closed after it.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..errors import InvalidStateTransitionError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, Employee, Store, TechnicalService
from ..models.enums import CLOSED_TICKET_STATUSES, TicketStatus, parse_enum
from ..time_utils import to_utc_z, utcnow
from ..validation import ModelValidationPolicy, validate_payload
from . import document_service
from .concurrency import lock_for_update, run_with_retry
from .notification_service import notifications, safe_notify

logger = logging.getLogger(__name__)

SLA_HOURS = {1: 72, 2: 24, 3: 12, 4: 4}

TICKET_POLICY = ModelValidationPolicy(
    writable_fields={
        "title", "description", "store_id", "reported_by_employee_id",
        "is_customer_issue", "customer_id", "priority", "reported_at",
    },
    required_on_create={"title", "description", "store_id", "reported_by_employee_id"},
)

TICKET_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"title", "description", "priority", "is_customer_issue", "customer_id"},
)


def _require(model, entity_id, label: str):
    entity = model.visible().filter(model.id == entity_id).first()
    if entity is None:
        raise NotFoundError(f"{label} not found", details={f"{label.lower()}_id": entity_id})
    return entity


def _validate_priority(priority) -> int:
    if priority not in SLA_HOURS:
        raise ValidationError("priority must be between 1 and 4")
    return priority


def _validate_customer_issue(is_customer_issue: bool, customer_id) -> None:
    if is_customer_issue and not customer_id:
        raise ValidationError("customer_id is required for customer issues")
    if customer_id:
        _require(Customer, customer_id, "Customer")


def sla_deadline(ticket: TechnicalService) -> datetime:
    return ticket.reported_at + timedelta(hours=SLA_HOURS.get(ticket.priority, SLA_HOURS[1]))


def get_ticket(ticket_id: int, *, include_deleted: bool = False) -> TechnicalService:
    ticket = TechnicalService.visible(include_deleted).filter(TechnicalService.id == ticket_id).first()
    if ticket is None:
        raise NotFoundError("Technical service ticket not found", details={"ticket_id": ticket_id})
    return ticket


def _get_ticket_for_update(ticket_id: int) -> TechnicalService:
    ticket = lock_for_update(
        TechnicalService.visible().filter(TechnicalService.id == ticket_id)
    ).first()
    if ticket is None:
        raise NotFoundError("Technical service ticket not found", details={"ticket_id": ticket_id})
    return ticket


def list_tickets(
    *,
    store_id: int | None = None,
    status=None,
    assigned_to_employee_id: int | None = None,
    open_only: bool = False,
    include_deleted: bool = False,
) -> list[TechnicalService]:
    """Highest priority first, then oldest."""
    query = TechnicalService.visible(include_deleted)
    if store_id is not None:
        query = query.filter(TechnicalService.store_id == store_id)
    if status:
        query = query.filter(TechnicalService.status == parse_enum(TicketStatus, status, "status").value)
    if assigned_to_employee_id is not None:
        query = query.filter(TechnicalService.assigned_to_employee_id == assigned_to_employee_id)
    if open_only:
        query = query.filter(TechnicalService.status.notin_(CLOSED_TICKET_STATUSES))
    return query.order_by(
        TechnicalService.priority.desc(),
        TechnicalService.reported_at.asc(),
        TechnicalService.id.asc(),
    ).all()


def create_ticket(payload: dict) -> TechnicalService:
    patch = validate_payload(model=TechnicalService, payload=payload, policy=TICKET_POLICY, partial=False)
    priority = _validate_priority(2 if patch.get("priority") is None else patch["priority"])
    is_customer_issue = bool(patch.get("is_customer_issue", False))
    reported_at = patch.get("reported_at") or utcnow()

    def _op():
        _require(Store, patch["store_id"], "Store")
        _require(Employee, patch["reported_by_employee_id"], "Employee")
        _validate_customer_issue(is_customer_issue, patch.get("customer_id"))

        document_type, prefix = document_service.TECHNICAL_SERVICE
        ticket = TechnicalService(
            service_number=document_service.next_document_number(
                document_type=document_type, prefix=prefix, year=reported_at.year,
            ),
            title=patch["title"],
            description=patch["description"],
            store_id=patch["store_id"],
            reported_by_employee_id=patch["reported_by_employee_id"],
            is_customer_issue=is_customer_issue,
            customer_id=patch.get("customer_id"),
            status=TicketStatus.OPEN.value,
            priority=priority,
            reported_at=reported_at,
        )
        db.session.add(ticket)
        db.session.commit()
        return ticket

    ticket = run_with_retry(_op)
    logger.info("Ticket %s created (priority %s)", ticket.service_number, ticket.priority)
    safe_notify(lambda: notifications.ticket_created(ticket), "ticket.created")
    return ticket


def update_ticket(ticket_id: int, payload: dict) -> TechnicalService:
    patch = validate_payload(model=TechnicalService, payload=payload, policy=TICKET_UPDATE_POLICY, partial=True)
    if "priority" in patch:
        _validate_priority(patch["priority"])

    def _op():
        ticket = _get_ticket_for_update(ticket_id)
        if ticket.status in CLOSED_TICKET_STATUSES:
            raise InvalidStateTransitionError(
                "Closed tickets cannot be edited",
                details={"ticket_id": ticket.id, "status": ticket.status},
            )
        _validate_customer_issue(
            patch.get("is_customer_issue", ticket.is_customer_issue),
            patch.get("customer_id", ticket.customer_id),
        )
        for key, value in patch.items():
            setattr(ticket, key, value)
        db.session.commit()
        return ticket

    return run_with_retry(_op)


def assign_ticket(ticket_id: int, employee_id: int) -> TechnicalService:
    """OPEN -> IN_PROGRESS; an IN_PROGRESS ticket may be reassigned."""
    if not employee_id:
        raise ValidationError("employee_id is required")

    def _op():
        ticket = _get_ticket_for_update(ticket_id)
        if ticket.status in CLOSED_TICKET_STATUSES:
            raise InvalidStateTransitionError(
                f"Cannot assign a {ticket.status} ticket",
                details={"ticket_id": ticket.id, "status": ticket.status},
            )
        _require(Employee, employee_id, "Employee")
        ticket.assigned_to_employee_id = employee_id
        ticket.status = TicketStatus.IN_PROGRESS.value
        db.session.commit()
        return ticket

    ticket = run_with_retry(_op)
    logger.info("Ticket %s assigned to employee %s", ticket.service_number, employee_id)
    safe_notify(lambda: notifications.ticket_assigned(ticket), "ticket.assigned")
    return ticket


def resolve_ticket(ticket_id: int, resolution: str | None, *, status=TicketStatus.RESOLVED) -> TechnicalService:
    """Close a ticket as RESOLVED or UNRESOLVABLE; resolution text is required."""
    target = parse_enum(TicketStatus, status, "status")
    if target.value not in CLOSED_TICKET_STATUSES:
        raise ValidationError("status must be RESOLVED or UNRESOLVABLE")
    resolution = (resolution or "").strip()
    if not resolution:
        raise ValidationError("resolution is required")

    def _op():
        ticket = _get_ticket_for_update(ticket_id)
        if ticket.status in CLOSED_TICKET_STATUSES:
            raise InvalidStateTransitionError(
                "Ticket is already closed",
                details={"ticket_id": ticket.id, "status": ticket.status},
            )
        ticket.status = target.value
        ticket.resolution = resolution
        ticket.resolved_at = utcnow()
        db.session.commit()
        return ticket

    ticket = run_with_retry(_op)
    logger.info("Ticket %s closed as %s", ticket.service_number, ticket.status)
    safe_notify(lambda: notifications.ticket_resolved(ticket), "ticket.resolved")
    return ticket


def delete_ticket(ticket_id: int) -> TechnicalService:
    def _op():
        ticket = get_ticket(ticket_id)
        ticket.soft_delete()
        db.session.commit()
        return ticket

    return run_with_retry(_op)


def sla_violations(*, store_id: int | None = None, now: datetime | None = None) -> list[dict]:
    """Tickets past their resolution target, most overdue first."""
    now = now or utcnow()
    query = TechnicalService.visible()
    if store_id is not None:
        query = query.filter(TechnicalService.store_id == store_id)

    rows = []
    for ticket in query.all():
        deadline = sla_deadline(ticket)
        finished_at = ticket.resolved_at if ticket.status in CLOSED_TICKET_STATUSES else None
        reference = finished_at or now
        if reference <= deadline:
            continue
        rows.append({
            "ticket": ticket.to_dict(),
            "sla_hours": SLA_HOURS.get(ticket.priority, SLA_HOURS[1]),
            "deadline": to_utc_z(deadline),
            "overdue_hours": round((reference - deadline).total_seconds() / 3600, 1),
            "is_open": finished_at is None,
        })
    rows.sort(key=lambda r: (-r["overdue_hours"], r["ticket"]["id"]))
    return rows
