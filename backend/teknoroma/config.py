# backend/teknoroma/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/teknoroma.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///teknoroma.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Sales (basis points: 2000 = 20%)
    TAX_RATE_BPS = _env_int("TAX_RATE_BPS", 2000)
    SALES_QUOTA_CENTS = _env_int("SALES_QUOTA_CENTS", 1_000_000)
    COMMISSION_RATE_BPS = _env_int("COMMISSION_RATE_BPS", 1000)

    # Reporting
    UNSOLD_PRODUCT_DAYS = _env_int("UNSOLD_PRODUCT_DAYS", 90)

    # TCMB exchange-rate feed
    EXCHANGE_RATE_URL = os.environ.get(
        "EXCHANGE_RATE_URL", "https://www.tcmb.gov.tr/kurlar/today.xml"
    )
    # Formatted with yyyymm and ddmmyyyy
    EXCHANGE_RATE_HISTORY_URL = os.environ.get(
        "EXCHANGE_RATE_HISTORY_URL", "https://www.tcmb.gov.tr/kurlar/{yyyymm}/{ddmmyyyy}.xml"
    )
    EXCHANGE_RATE_TIMEOUT = float(os.environ.get("EXCHANGE_RATE_TIMEOUT", "10"))
    EXCHANGE_RATE_TODAY_TTL = _env_int("EXCHANGE_RATE_TODAY_TTL", 3600)
    EXCHANGE_RATE_HISTORY_TTL = _env_int("EXCHANGE_RATE_HISTORY_TTL", 7 * 24 * 3600)

    # Recent events kept per notification topic for polling clients
    NOTIFICATION_BUFFER_SIZE = _env_int("NOTIFICATION_BUFFER_SIZE", 200)
