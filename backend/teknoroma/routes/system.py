# backend/teknoroma/routes/system.py
"""
System health and version endpoints.

Health covers the database and the exchange-rate cache; version reports
the package version for deployment debugging.
"""

import os
import time
from importlib.metadata import PackageNotFoundError, version as package_version

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import Product, Store
from ..services.notification_service import notifications
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        store_count = db.session.query(Store).filter(Store.is_deleted.is_(False)).count()
        product_count = db.session.query(Product).filter(Product.is_deleted.is_(False)).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "stores": store_count,
                "products": product_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_notification_health() -> dict:
    return {
        "status": "healthy",
        "details": {"last_seq": notifications.last_seq()},
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: all checks healthy
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    notification_health = check_notification_health()

    all_checks = [database_health, notification_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "notifications": notification_health,
        }
    }
    return response, http_status


@system_bp.get("/version")
def get_version():
    try:
        app_version = package_version("teknoroma")
    except PackageNotFoundError:
        app_version = "unknown"
    return {
        "name": "teknoroma",
        "version": app_version,
        "build": os.environ.get("BUILD_SHA", "dev"),
    }, 200
