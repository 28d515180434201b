from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from flask import jsonify, request

from .errors import ValidationError


def to_decimal(val, default="0"):
    if val is None:
        return Decimal(default)
    s = str(val).strip().replace(",", "")
    if s == "":
        return Decimal(default)
    try:
        return Decimal(s)
    except InvalidOperation:
        raise ValidationError(f"'{val}' is not a valid number")


def to_amount(val, field="value"):
    """Decimal with at most two places, as stored in the Numeric columns."""
    d = to_decimal(val)
    if not d.is_finite():
        raise ValidationError(f"{field} must be a number")
    if d != d.quantize(Decimal("0.01")):
        raise ValidationError(f"{field} cannot have more than 2 decimal places")
    return d


def parse_date(val, field="date"):
    if val is None or val == "":
        return None
    if isinstance(val, date):
        return val
    try:
        return datetime.strptime(str(val).strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format")


def clean(val, max_len=None, field="value"):
    s = (val or "").strip() if isinstance(val, str) or val is None else str(val).strip()
    if max_len is not None and len(s) > max_len:
        raise ValidationError(f"{field} cannot be more than {max_len} characters")
    return s or None


def json_payload():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def json_object(data, key):
    """Nested object of a request body; missing means empty."""
    val = data.get(key)
    if val is None:
        return {}
    if not isinstance(val, dict):
        raise ValidationError(f"{key} must be an object")
    return val


def ok(data=None, status=200):
    return jsonify({"success": True, "data": data}), status


def money_str(val):
    return str(val if val is not None else Decimal("0.00"))
