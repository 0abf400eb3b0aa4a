# parcel_router/app/validation.py
# guard helpers used by the entity constructors and @validates hooks
import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from .errors import ValidationError

# 4 digits + 2 letters, e.g. 1234AB
POSTCODE_PATTERN = re.compile(r"^[0-9]{4}[A-Z]{2}$")


def required(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} cannot be empty", {"field": field})
    return str(value).strip()


def trim_or_empty(value: Optional[str]) -> str:
    return (value or "").strip()


def not_none(value: Any, field: str) -> Any:
    if value is None:
        raise ValidationError(f"{field} cannot be null", {"field": field})
    return value


def to_decimal(value: Any, field: str) -> Decimal:
    if value is None:
        raise ValidationError(f"{field} cannot be null", {"field": field})
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", {"field": field})
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", {"field": field})
    if not number.is_finite():
        raise ValidationError(f"{field} must be a finite number", {"field": field})
    return number


def quantize(number: Decimal, places: int, field: str) -> Decimal:
    try:
        return number.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"{field} is out of range", {"field": field})


def greater_than(value: Any, minimum: Decimal, field: str, places: Optional[int] = None) -> Decimal:
    number = to_decimal(value, field)
    if places is not None:
        # the check applies to the stored, rounded amount
        number = quantize(number, places, field)
    if number <= minimum:
        raise ValidationError(f"{field} must be greater than {minimum}", {"field": field})
    return number


def not_negative(value: Any, field: str, places: Optional[int] = None) -> Decimal:
    number = to_decimal(value, field)
    if places is not None:
        number = quantize(number, places, field)
    if number < 0:
        raise ValidationError(f"{field} cannot be negative", {"field": field})
    return number


def postcode(value: Optional[str], field: str) -> str:
    clean = required(value, field).upper()
    if not POSTCODE_PATTERN.match(clean):
        raise ValidationError(f"{field} must be in format 1234AB (4 digits + 2 letters)",
                              {"field": field, "value": clean})
    return clean


def not_default_date(value: Optional[datetime], field: str) -> datetime:
    if value is None or value == datetime.min:
        raise ValidationError(f"{field} must be set", {"field": field})
    return value
