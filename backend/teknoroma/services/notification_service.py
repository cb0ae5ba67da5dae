# Overview: In-process publish/subscribe hub for role, user, and broadcast notifications.

"""
Notification hub.

Topics:
- role:<ROLE>  every employee with that role (e.g. role:WAREHOUSE)
- user:<id>    a single employee
- all          broadcast

Each topic keeps a bounded ring of recent events so HTTP clients can poll
with ?after=<seq>. Subscribers are plain callables invoked synchronously
after the event is recorded. A failing subscriber is logged and skipped;
publishing never raises into the caller's business transaction.

The module-level `notifications` hub is bound to the app in create_app().
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable

from ..errors import ValidationError
from ..models.enums import EmployeeRole
from ..time_utils import to_utc_z, utcnow

logger = logging.getLogger(__name__)

BROADCAST_TOPIC = "all"
DEFAULT_BUFFER_SIZE = 200

PRIORITY_LABELS = {4: "CRITICAL", 3: "HIGH", 2: "MEDIUM", 1: "LOW"}


def role_topic(role: EmployeeRole | str) -> str:
    value = role.value if isinstance(role, EmployeeRole) else str(role)
    return f"role:{value}"


def user_topic(employee_id: int) -> str:
    return f"user:{int(employee_id)}"


def validate_topic(topic: str | None) -> str:
    if not topic or not isinstance(topic, str):
        raise ValidationError("topic is required")
    topic = topic.strip()
    if topic == BROADCAST_TOPIC:
        return topic
    kind, _, rest = topic.partition(":")
    if kind == "role":
        try:
            return role_topic(EmployeeRole(rest.upper()))
        except ValueError:
            raise ValidationError(f"Unknown role in topic: {rest}")
    if kind == "user":
        if rest.isdigit():
            return user_topic(int(rest))
        raise ValidationError("user topic must be user:<employee_id>")
    raise ValidationError("topic must be 'all', 'role:<ROLE>' or 'user:<id>'")


@dataclass(frozen=True)
class Notification:
    seq: int
    topic: str
    event_type: str
    payload: dict = field(default_factory=dict)
    created_at: Any = None

    def to_dict(self) -> dict:
        return {
            "seq": self.seq,
            "topic": self.topic,
            "event_type": self.event_type,
            "payload": self.payload,
            "created_at": to_utc_z(self.created_at),
        }


class NotificationHub:
    """Thread-safe notification fan-out with per-topic history."""

    def __init__(self, app=None, buffer_size: int = DEFAULT_BUFFER_SIZE):
        self._lock = threading.Lock()
        self._seq = 0
        self._buffer_size = buffer_size
        self._history: dict[str, deque] = {}
        self._subscribers: dict[str, list[Callable[[Notification], None]]] = {}
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self._buffer_size = int(app.config.get("NOTIFICATION_BUFFER_SIZE", DEFAULT_BUFFER_SIZE))
        app.extensions["notifications"] = self

    # ------------------------------------------------------------------
    # Core pub/sub
    # ------------------------------------------------------------------

    def subscribe(self, topic: str, callback: Callable[[Notification], None]) -> Callable[[], None]:
        """Register callback for topic; returns a function that unsubscribes it."""
        topic = validate_topic(topic)
        with self._lock:
            self._subscribers.setdefault(topic, []).append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(topic, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return _unsubscribe

    def publish(self, topic: str, event_type: str, payload: dict | None = None) -> Notification:
        topic = validate_topic(topic)
        with self._lock:
            self._seq += 1
            notification = Notification(
                seq=self._seq,
                topic=topic,
                event_type=event_type,
                payload=dict(payload or {}),
                created_at=utcnow(),
            )
            ring = self._history.get(topic)
            if ring is None or ring.maxlen != self._buffer_size:
                ring = deque(ring or (), maxlen=self._buffer_size)
                self._history[topic] = ring
            ring.append(notification)
            callbacks = list(self._subscribers.get(topic, ()))

        for callback in callbacks:
            try:
                callback(notification)
            except Exception:
                logger.exception("Notification subscriber failed for %s (%s)", topic, event_type)

        logger.info("Published %s to %s (seq=%d)", event_type, topic, notification.seq)
        return notification

    def recent(self, topic: str, *, after: int = 0, limit: int | None = None) -> list[Notification]:
        """Events on topic with seq > after, oldest first."""
        topic = validate_topic(topic)
        with self._lock:
            events = [n for n in self._history.get(topic, ()) if n.seq > after]
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    def last_seq(self) -> int:
        with self._lock:
            return self._seq

    def reset(self) -> None:
        with self._lock:
            self._seq = 0
            self._history.clear()
            self._subscribers.clear()

    # ------------------------------------------------------------------
    # Addressing helpers
    # ------------------------------------------------------------------

    def notify_role(self, role: EmployeeRole | str, event_type: str, payload: dict | None = None) -> Notification:
        return self.publish(role_topic(role), event_type, payload)

    def notify_user(self, employee_id: int, event_type: str, payload: dict | None = None) -> Notification:
        return self.publish(user_topic(employee_id), event_type, payload)

    def notify_all(self, event_type: str, payload: dict | None = None) -> Notification:
        return self.publish(BROADCAST_TOPIC, event_type, payload)

    # ------------------------------------------------------------------
    # Typed business events
    # ------------------------------------------------------------------

    def sale_created(self, sale) -> None:
        payload = {
            "sale_id": sale.id,
            "sale_number": sale.sale_number,
            "store_id": sale.store_id,
            "cash_register_number": sale.cash_register_number,
            "total_cents": sale.total_cents,
            "product_summary": ", ".join(f"{d.quantity}x {d.product_name}" for d in sale.details),
            "message": f"New sale {sale.sale_number}",
        }
        self.notify_role(EmployeeRole.WAREHOUSE, "sale.created", payload)
        self.notify_role(EmployeeRole.CASHIER, "sale.created", payload)

    def mobile_sale(self, sale) -> None:
        """A sale taken on the shop floor; cashiers prepare the invoice."""
        employee_name = sale.employee.full_name if sale.employee else None
        customer_name = sale.customer.full_name if sale.customer else None
        self.notify_role(EmployeeRole.CASHIER, "sale.mobile", {
            "sale_id": sale.id,
            "sale_number": sale.sale_number,
            "employee_name": employee_name,
            "customer_name": customer_name,
            "total_cents": sale.total_cents,
            "message": f"Mobile sale {sale.sale_number} by {employee_name} for {customer_name}",
        })

    def critical_stock(self, product) -> None:
        payload = {
            "product_id": product.id,
            "product_name": product.name,
            "units_in_stock": product.units_in_stock,
            "critical_stock_level": product.critical_stock_level,
            "stock_status": product.stock_status,
            "message": (
                f"Critical stock: {product.name} "
                f"{product.units_in_stock} left (critical level {product.critical_stock_level})"
            ),
        }
        self.notify_role(EmployeeRole.BRANCH_MANAGER, "stock.critical", payload)
        self.notify_role(EmployeeRole.WAREHOUSE, "stock.critical", payload)

    def payment_confirmed(self, sale) -> None:
        self.notify_role(EmployeeRole.WAREHOUSE, "sale.payment_confirmed", {
            "sale_id": sale.id,
            "sale_number": sale.sale_number,
            "cash_register_number": sale.cash_register_number,
            "message": f"Payment received for {sale.sale_number}, prepare the goods",
        })

    def ticket_created(self, ticket) -> None:
        label = PRIORITY_LABELS.get(ticket.priority, "LOW")
        issue = "Customer issue" if ticket.is_customer_issue else "System issue"
        payload = {
            "ticket_id": ticket.id,
            "service_number": ticket.service_number,
            "title": ticket.title,
            "priority": ticket.priority,
            "priority_label": label,
            "is_customer_issue": ticket.is_customer_issue,
            "message": f"[{label}] {issue}: {ticket.title}",
        }
        self.notify_role(EmployeeRole.TECHNICAL_SERVICE, "ticket.created", payload)
        # High and critical tickets also reach the branch manager
        if ticket.priority >= 3:
            self.notify_role(EmployeeRole.BRANCH_MANAGER, "ticket.created", payload)

    def ticket_assigned(self, ticket) -> None:
        self.notify_user(ticket.assigned_to_employee_id, "ticket.assigned", {
            "ticket_id": ticket.id,
            "service_number": ticket.service_number,
            "message": f"Ticket {ticket.service_number} was assigned to you",
        })

    def ticket_resolved(self, ticket) -> None:
        payload = {
            "ticket_id": ticket.id,
            "service_number": ticket.service_number,
            "status": ticket.status,
            "resolution": ticket.resolution,
            "message": f"Ticket {ticket.service_number} closed as {ticket.status}",
        }
        self.notify_role(EmployeeRole.TECHNICAL_SERVICE, "ticket.resolved", payload)
        self.notify_user(ticket.reported_by_employee_id, "ticket.resolved", payload)


def safe_notify(action: Callable[[], None], description: str) -> None:
    """Run a post-commit notification; failures are logged, never raised."""
    try:
        action()
    except Exception:
        logger.exception("Failed to publish %s notification", description)


notifications = NotificationHub()
