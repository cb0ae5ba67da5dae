# Overview: Query-string and JSON body helpers shared by the API blueprints.

from flask import request

from ..errors import ValidationError
from ..time_utils import parse_iso_date, parse_iso_datetime

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def arg_bool(name: str, default: bool = False) -> bool:
    value = arg_optional_bool(name)
    return default if value is None else value


def arg_optional_bool(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return None
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValidationError(f"{name} must be true or false")


def include_deleted() -> bool:
    return arg_bool("include_deleted")


def arg_int(name: str, default: int | None = None) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def require_arg_int(name: str) -> int:
    value = arg_int(name)
    if value is None:
        raise ValidationError(f"{name} is required")
    return value


def body_datetime(payload: dict, key: str):
    value = payload.get(key)
    if value is None or value == "":
        return None
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")


def arg_date(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")
