# backend/teknoroma/routes/exchange_rates.py
"""
TCMB exchange rates (TRY per unit of foreign currency).

Rates come from the central bank feed, cached; when the feed is
unreachable the static fallback table is served with source="fallback".
"""
from flask import Blueprint, jsonify, request

from ..errors import ValidationError
from ..services.exchange_rate_service import exchange_rates, normalize_currency
from ..validation import coerce_decimal
from .params import arg_date

exchange_rates_bp = Blueprint("exchange_rates", __name__, url_prefix="/api/exchange-rates")


@exchange_rates_bp.get("")
def list_rates():
    """Query params: date (optional ISO date for historical rates)."""
    table = exchange_rates.get_rate_table(arg_date("date"))
    payload = table.to_dict()
    payload["rates"]["TRY"] = "1"
    return jsonify(payload), 200


@exchange_rates_bp.get("/convert")
def convert():
    """
    Query params:
    - amount: decimal (required)
    - from: currency code (default TRY)
    - to: currency code (default TRY)
    - date: ISO date (optional)
    """
    raw_amount = request.args.get("amount")
    if raw_amount is None or raw_amount.strip() == "":
        raise ValidationError("amount is required")
    amount = coerce_decimal("amount", raw_amount)
    source = normalize_currency(request.args.get("from") or "TRY")
    target = normalize_currency(request.args.get("to") or "TRY")
    on_date = arg_date("date")

    amount_try = exchange_rates.convert_to_try(amount, source, on_date)
    result = amount_try if target == "TRY" else exchange_rates.convert_from_try(amount_try, target, on_date)

    return jsonify({
        "amount": raw_amount.strip(),
        "from": source,
        "to": target,
        "date": on_date.isoformat() if on_date else None,
        "result": str(result),
    }), 200


@exchange_rates_bp.get("/<string:currency>")
def get_rate(currency: str):
    code = normalize_currency(currency)
    on_date = arg_date("date")
    rate = (
        exchange_rates.get_historical_rate(code, on_date)
        if on_date else exchange_rates.get_current_rate(code)
    )
    return jsonify({
        "currency": code,
        "base": "TRY",
        "date": on_date.isoformat() if on_date else None,
        "rate": str(rate),
    }), 200
