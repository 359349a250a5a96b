from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from .errors import InvalidValue, MissingRequiredField
from .time_utils import parse_iso_datetime


# Maximum money amount: 9,999,999.99 in cents
MAX_AMOUNT_CENTS = 999_999_999

PAYMENT_METHODS = ("CASH", "BANK_TRANSFER")
PAYMENT_FREQUENCIES = ("ONE_TIME", "WEEKLY", "BI_WEEKLY", "MONTHLY", "QUARTERLY", "CUSTOM")


def require_fields(payload: dict, fields: Iterable[str]) -> None:
    """Raise MissingRequiredField listing every absent or blank field."""
    missing = []
    for name in fields:
        value = payload.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    if missing:
        raise MissingRequiredField.for_fields(missing)


def parse_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """
    Strict integer coercion.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals
    and scientific notation so "12.5" or 1e3 never silently truncate.
    """
    if value is None:
        raise MissingRequiredField.for_fields([field])

    if isinstance(value, bool):
        raise InvalidValue(f"{field} must be an integer", details={"field": field})

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise MissingRequiredField.for_fields([field])
        if "e" in stripped.lower():
            raise InvalidValue(
                f"{field} must be a plain integer (scientific notation not allowed)",
                details={"field": field},
            )
        if "." in stripped:
            raise InvalidValue(f"{field} must be an integer (no decimals)", details={"field": field})
        try:
            result = int(stripped)
        except ValueError:
            raise InvalidValue(f"{field} must be an integer", details={"field": field})
    else:
        raise InvalidValue(f"{field} must be an integer", details={"field": field})

    if minimum is not None and result < minimum:
        raise InvalidValue(f"{field} must be >= {minimum}", details={"field": field, "value": result})
    return result


def parse_cents(value: Any, field: str, *, minimum: int = 0) -> int:
    cents = parse_int(value, field, minimum=minimum)
    if cents > MAX_AMOUNT_CENTS:
        raise InvalidValue(
            f"{field} exceeds maximum of {MAX_AMOUNT_CENTS} cents",
            details={"field": field, "value": cents},
        )
    return cents


def parse_choice(value: Any, field: str, choices: Iterable[str], *, default: str | None = None) -> str:
    if value is None or value == "":
        if default is None:
            raise MissingRequiredField.for_fields([field])
        return default
    normalized = str(value).strip().upper()
    allowed = tuple(choices)
    if normalized not in allowed:
        raise InvalidValue(
            f"{field} must be one of: {', '.join(allowed)}",
            details={"field": field, "value": value},
        )
    return normalized


def parse_datetime(value: Any, field: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise InvalidValue(f"{field} must be an ISO-8601 datetime", details={"field": field, "value": value})


def optional_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None
