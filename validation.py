"""
validation.py
Field-level checks run before a product or subscription is written.
Each validator returns a list of FieldError; an empty list means the input is valid.
"""

from __future__ import annotations

import math
from datetime import date

import lifecycle
from errors import FieldError
from models import CALENDAR_UNITS, CREDITS_UNIT, DURATION_UNITS, Product


def _as_int(value) -> int | None:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if not f.is_integer():
        return None
    return int(f)


def _as_date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def validate_product_inputs(name: str, price, unit: str, value=None, credits_included=None) -> list[FieldError]:
    errors: list[FieldError] = []
    if not (name or "").strip():
        errors.append(FieldError("name", "Product name is required."))

    try:
        p = float(price)
    except (TypeError, ValueError):
        errors.append(FieldError("price", "Price must be numeric."))
    else:
        if not math.isfinite(p):
            errors.append(FieldError("price", "Price must be a finite number."))
        elif p < 0:
            errors.append(FieldError("price", "Price cannot be negative."))

    if unit not in DURATION_UNITS:
        errors.append(FieldError("duration_unit", f"Duration unit must be one of: {', '.join(DURATION_UNITS)}."))
    elif unit in CALENDAR_UNITS:
        v = _as_int(value)
        if v is None or v <= 0:
            errors.append(FieldError("duration_value", "Duration must be a whole number greater than 0."))
    elif unit == CREDITS_UNIT:
        c = _as_int(credits_included)
        if c is None or c <= 0:
            errors.append(FieldError("credits_included", "Credits included must be greater than 0 for credit products."))
    return errors


def validate_product(product: Product) -> list[FieldError]:
    d = product.duration
    return validate_product_inputs(
        product.name,
        product.price,
        d.unit,
        value=getattr(d, "value", None),
        credits_included=getattr(d, "credits_included", None),
    )


def validate_subscription_inputs(
    product: Product | None,
    start_date,
    end_date,
    credits_used: int = 0,
    member_id=None,
    require_member: bool = False,
) -> list[FieldError]:
    """
    Checks shared by the create and edit forms.
    Dates may be date objects or ISO strings; empty means missing.
    """
    errors: list[FieldError] = []
    if require_member and not member_id:
        errors.append(FieldError("member_id", "Select a member."))
    if product is None:
        errors.append(FieldError("product_id", "Select a subscription product."))

    sd = ed = None
    try:
        sd = _as_date(start_date)
        if sd is None:
            errors.append(FieldError("start_date", "Start date is required."))
    except ValueError:
        errors.append(FieldError("start_date", "Start date must be a valid ISO date (YYYY-MM-DD)."))
    try:
        ed = _as_date(end_date)
    except ValueError:
        errors.append(FieldError("end_date", "End date must be a valid ISO date (YYYY-MM-DD)."))

    if product is not None:
        if product.is_credit_based:
            if ed is not None:
                errors.append(FieldError("end_date", "Credit subscriptions have no end date."))
            errors.extend(lifecycle.credit_errors(product, credits_used))
        elif ed is None and not any(e.field == "end_date" for e in errors):
            errors.append(FieldError("end_date", "End date is required for this subscription product."))

    end_date_failed = any(e.field == "end_date" for e in errors)
    if sd is not None and ed is not None and ed <= sd and not end_date_failed:
        errors.append(FieldError("end_date", "End date must be after start date."))
    return errors
