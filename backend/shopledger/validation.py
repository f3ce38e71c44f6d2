from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from flask import jsonify

from .time_utils import parse_iso_date


CENTS = Decimal("0.01")

# Largest amount a Numeric(14, 2) column holds
MAX_AMOUNT = Decimal("999999999999.99")

_PLAIN_AMOUNT_RE = re.compile(r"^\d+(\.\d{1,2})?$")
_AMOUNT_CHARS_RE = re.compile(r"^[\d.,]+$")


class LedgerError(ValueError):
    """Base for every error a service raises on purpose."""

    status_code = 400

    def __init__(self, code: str, message: str | None = None):
        self.code = code
        self.message = message or code
        super().__init__(self.message)


class ValidationError(LedgerError):
    """400-level input problem."""

    status_code = 400


class AuthorizationError(LedgerError):
    """403-level: role insufficient or acting outside the bound location."""

    status_code = 403


class NotFoundError(LedgerError):
    """404-level. Also used for records owned by another location."""

    status_code = 404


class ConflictError(LedgerError):
    """409-level business rule conflict (e.g., action disabled at location)."""

    status_code = 409


def error_response(exc: LedgerError):
    return jsonify({"ok": False, "error": exc.code, "message": exc.message}), exc.status_code


def internal_error_response():
    return jsonify({"ok": False, "error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


def require_date(value: Any, *, code: str = "DATE_REQUIRED") -> date:
    """Parse a required YYYY-MM-DD value from client input."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(code, "date is required (YYYY-MM-DD)")
    if not isinstance(value, str):
        raise ValidationError("DATE_INVALID", "date must be a YYYY-MM-DD string")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError("DATE_INVALID", f"Invalid date: {value!r}")


def _grouped_integer(s: str, sep: str) -> str | None:
    """Strip `sep` from "1.234.567" style grouping; None when groups are malformed."""
    groups = s.split(sep)
    head = groups[0]
    if not (1 <= len(head) <= 3) or head.startswith("0"):
        return None
    if any(len(g) != 3 for g in groups[1:]):
        return None
    return "".join(groups)


def _normalize_separators(s: str) -> str | None:
    """
    Collapse locale formatting to a plain "1234.56" string.

    The right-most separator is the decimal mark when both kinds appear, and
    everything left of it must be well-formed thousands groups.
    A single separator followed by exactly three digits groups thousands only
    when the head is 1-3 digits without a leading zero; "1234,567" and
    "0,500" are neither grouping nor a two-place fraction and get rejected.
    """
    has_dot = "." in s
    has_comma = "," in s

    if has_dot and has_comma:
        decimal_mark = "." if s.rfind(".") > s.rfind(",") else ","
        thousands = "," if decimal_mark == "." else "."
        if s.count(decimal_mark) > 1:
            return None
        integer, fraction = s.split(decimal_mark)
        integer = _grouped_integer(integer, thousands)
        if integer is None:
            return None
        return f"{integer}.{fraction}"

    if not has_dot and not has_comma:
        return s

    sep = "." if has_dot else ","
    if s.count(sep) > 1:
        return _grouped_integer(s, sep)

    head, tail = s.split(sep)
    if not head:
        return None
    if len(tail) == 3:
        return _grouped_integer(s, sep)
    return f"{head}.{tail}"


def parse_amount(raw: Any, *, allow_zero: bool = False, field: str = "amount") -> Decimal:
    """
    Parse a money amount from client input into a 2-place Decimal.

    Accepts 15000, 15000,50, 15.000,50, 15000.50 and 15,000.50.
    Rejects signs, exponents, letters and more than two fraction digits.
    """
    if isinstance(raw, bool) or raw is None:
        raise ValidationError("AMOUNT_INVALID", f"{field} is required")

    if isinstance(raw, (int, Decimal)):
        text = str(raw)
    elif isinstance(raw, float):
        text = repr(raw)
    elif isinstance(raw, str):
        text = raw.strip()
    else:
        raise ValidationError("AMOUNT_INVALID", f"{field} must be a decimal string")

    if not text or not _AMOUNT_CHARS_RE.match(text):
        raise ValidationError("AMOUNT_INVALID", f"{field} must be a non-negative decimal")

    normalized = _normalize_separators(text)
    if normalized is None or not _PLAIN_AMOUNT_RE.match(normalized):
        raise ValidationError("AMOUNT_INVALID", f"{field} has an invalid format: {raw!r}")

    try:
        value = Decimal(normalized).quantize(CENTS)
    except InvalidOperation:
        raise ValidationError("AMOUNT_INVALID", f"{field} has an invalid format: {raw!r}")

    if value > MAX_AMOUNT:
        raise ValidationError("AMOUNT_INVALID", f"{field} exceeds {MAX_AMOUNT}")
    if value == 0 and not allow_zero:
        raise ValidationError("AMOUNT_INVALID", f"{field} must be greater than zero")
    return value


def format_amount(value: Decimal | int | None) -> str:
    """Serialize money as a decimal string with exactly two fraction digits."""
    if value is None:
        value = Decimal("0")
    return str(Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))


def require_bool(payload: dict, key: str) -> bool:
    value = payload.get(key)
    if not isinstance(value, bool):
        raise ValidationError("BAD_REQUEST", f"{key} must be a boolean")
    return value


def optional_int(payload: dict, key: str, *, minimum: int = 0) -> int | None:
    if key not in payload or payload[key] is None:
        return None
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("BAD_REQUEST", f"{key} must be an integer")
    if value < minimum:
        raise ValidationError("BAD_REQUEST", f"{key} must be >= {minimum}")
    return value
