# backend/teknoroma/routes/notifications.py
"""
Notification polling.

Clients remember the highest seq they have seen and poll with ?after=<seq>.
Only the most recent NOTIFICATION_BUFFER_SIZE events per topic are kept.
"""
from flask import Blueprint, jsonify, request

from ..services.notification_service import notifications
from .params import arg_int

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
def poll_notifications():
    """
    Query params:
    - topic: all | role:<ROLE> | user:<employee_id> (required)
    - after: int seq (optional, default 0)
    - limit: int (optional)
    """
    events = notifications.recent(
        request.args.get("topic"),
        after=arg_int("after", 0),
        limit=arg_int("limit"),
    )
    return jsonify({
        "items": [n.to_dict() for n in events],
        "count": len(events),
        "last_seq": notifications.last_seq(),
    }), 200
