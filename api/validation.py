from __future__ import annotations

import re
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .errors import ValidationFailed

UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

MONEY_PLACES = Decimal("0.01")


def quantize_money(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def validate_id(value, field: str = "id") -> uuid.UUID:
    """Parse an identifier in canonical UUID text form.

    ``uuid.UUID`` instances pass through. Anything else that is not the
    8-4-4-4-12 hex form (braces, urn prefix, bare hex) is rejected.
    """
    if isinstance(value, uuid.UUID):
        return value
    raw = (str(value) if value is not None else "").strip()
    if not raw:
        raise ValidationFailed(f"{field} must not be empty")
    if not UUID_RE.match(raw):
        raise ValidationFailed(f"{field} must be a valid UUID")
    return uuid.UUID(raw)


def validate_ids(values, field: str = "ids") -> list[uuid.UUID]:
    if values is None:
        return []
    if isinstance(values, (str, bytes)):
        raise ValidationFailed(f"{field} must be a list")
    out: list[uuid.UUID] = []
    seen: set[uuid.UUID] = set()
    for v in values:
        pid = validate_id(v, field)
        if pid in seen:
            continue
        seen.add(pid)
        out.append(pid)
    return out


def validate_quantity(value, field: str = "quantity") -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValidationFailed(f"{field} must be a positive integer")
    try:
        qty = int(value)
    except (OverflowError, ValueError, InvalidOperation):
        raise ValidationFailed(f"{field} must be a positive integer")
    if qty != value or qty <= 0:
        raise ValidationFailed(f"{field} must be a positive integer")
    return qty


def validate_number(value, field: str, *, allow_zero: bool = False) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationFailed(f"{field} is required")
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationFailed(f"{field} must be a number")
    if not d.is_finite():
        raise ValidationFailed(f"{field} must be a number")
    if allow_zero:
        if d < 0:
            raise ValidationFailed(f"{field} must be a non-negative number")
    elif d <= 0:
        raise ValidationFailed(f"{field} must be a positive number")
    return d


def validate_percentage(value, field: str = "discount_percentage") -> Decimal:
    d = validate_number(value, field, allow_zero=True)
    if d > 100:
        raise ValidationFailed(f"{field} must be between 0 and 100")
    return d


def parse_date(value, field: str) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        raw = (str(value) if value is not None else "").strip()
        if not raw:
            raise ValidationFailed(f"{field} is required")
        try:
            dt = parse_datetime(raw)
        except ValueError:
            dt = None
        if dt is None:
            raise ValidationFailed(f"{field} is not a valid date")
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt, timezone.get_default_timezone())
    return dt


def validate_window(start: datetime, end: datetime, *, start_field: str = "start_date", end_field: str = "end_date") -> None:
    if start >= end:
        raise ValidationFailed(f"{start_field} must be before {end_field}")
