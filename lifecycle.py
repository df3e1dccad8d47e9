"""
lifecycle.py
Subscription lifecycle: end-date resolution, credit accounting, derived status.

Everything here is a pure function of its arguments. The current time is
always passed in by the caller (see system_clock) so results are reproducible.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable

from config import EXPIRING_SOON_DAYS
from errors import ConfigurationError, FieldError, ValidationError
from models import (
    CalendarPolicy,
    CreditPolicy,
    DurationPolicy,
    Product,
    Subscription,
    SubscriptionDetail,
    SubscriptionStatus,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now()


# ---------- Duration resolution ----------

def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    return date(y, m, min(start.day, last_day.day))


def resolve_end_date(start_date: date, policy: DurationPolicy) -> date | None:
    """
    End date of a subscription starting on start_date.
    Credit policies have no end date and return None.
    """
    if isinstance(policy, CreditPolicy):
        return None
    if not isinstance(policy, CalendarPolicy):
        raise ConfigurationError(f"Unsupported duration policy: {policy!r}.")
    if policy.value <= 0:
        raise ConfigurationError("Duration value must be greater than 0.")

    if policy.unit == "days":
        return start_date + timedelta(days=policy.value)
    if policy.unit == "weeks":
        return start_date + timedelta(weeks=policy.value)
    if policy.unit == "months":
        return add_months(start_date, policy.value)
    if policy.unit == "years":
        return add_months(start_date, 12 * policy.value)
    raise ConfigurationError(f"Unknown duration unit: {policy.unit!r}.")


# ---------- Credit accounting ----------

def _credits_included(product: Product) -> int:
    if not isinstance(product.duration, CreditPolicy):
        raise ConfigurationError(f"Product {product.name!r} is not credit based.")
    return product.duration.credits_included


def credit_errors(product: Product, credits_used: int) -> list[FieldError]:
    total = _credits_included(product)
    if credits_used < 0:
        return [FieldError("credits_used", "Credits used cannot be negative.")]
    if credits_used > total:
        return [FieldError("credits_used", f"Credits used cannot exceed credits included ({total}).")]
    return []


def remaining_credits(product: Product, subscription: Subscription) -> int:
    return max(0, _credits_included(product) - subscription.credits_used)


def set_credits_used(product: Product, subscription: Subscription, credits_used: int) -> Subscription:
    """Return a copy with credits_used replaced, or raise ValidationError."""
    errors = credit_errors(product, credits_used)
    if errors:
        logger.warning(
            "Rejected credits_used=%s for subscription %s (product %s)",
            credits_used, subscription.id, product.id,
        )
        raise ValidationError(errors)
    return replace(subscription, credits_used=credits_used)


def record_usage(product: Product, subscription: Subscription, delta: int = 1) -> Subscription:
    """Consume delta credits. The given subscription is left untouched either way."""
    return set_credits_used(product, subscription, subscription.credits_used + delta)


def credit_usage_percent(product: Product, subscription: Subscription) -> int:
    total = _credits_included(product)
    return min(100, round(subscription.credits_used / total * 100))


# ---------- Status ----------

def to_date(now: date | datetime) -> date:
    return now.date() if isinstance(now, datetime) else now


def _instant(now: date | datetime) -> datetime:
    return now if isinstance(now, datetime) else datetime.combine(now, time.min)


def _day_start(day: date, now: datetime) -> datetime:
    # an end date counts from the first instant of that day
    return datetime.combine(day, time.min, tzinfo=now.tzinfo)


def resolve_status(
    is_active: bool,
    end_date: date | None,
    now: date | datetime,
    window_days: int = EXPIRING_SOON_DAYS,
) -> SubscriptionStatus:
    if not is_active:
        return SubscriptionStatus.INACTIVE
    if end_date is None:
        return SubscriptionStatus.ACTIVE

    instant = _instant(now)
    ends = _day_start(end_date, instant)
    if ends < instant:
        return SubscriptionStatus.EXPIRED
    if ends < instant + timedelta(days=window_days):
        return SubscriptionStatus.EXPIRING_SOON
    return SubscriptionStatus.ACTIVE


def subscription_status(subscription: Subscription, now: date | datetime) -> SubscriptionStatus:
    return resolve_status(subscription.is_active, subscription.end_date, now)


def expires_within(subscription: Subscription, now: date | datetime, days: int) -> bool:
    """
    Display threshold for views that look further ahead than the canonical
    window (renewals list). Only enabled, not yet expired subscriptions match.
    """
    if subscription_status(subscription, now) not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRING_SOON):
        return False
    if subscription.end_date is None:
        return False
    instant = _instant(now)
    return _day_start(subscription.end_date, instant) < instant + timedelta(days=days)


# ---------- List helpers ----------

STATUS_FILTERS = {
    "all": None,
    "active": SubscriptionStatus.ACTIVE,
    "expiring_soon": SubscriptionStatus.EXPIRING_SOON,
    "expired": SubscriptionStatus.EXPIRED,
    "inactive": SubscriptionStatus.INACTIVE,
}


def filter_subscriptions(
    details: Iterable[SubscriptionDetail],
    now: date | datetime,
    status: str = "all",
    search: str = "",
) -> list[SubscriptionDetail]:
    wanted = STATUS_FILTERS[status]
    term = search.strip().lower()
    out = []
    for d in details:
        if wanted is not None and subscription_status(d.subscription, now) != wanted:
            continue
        if term:
            haystack = [d.member.first_name, d.member.last_name, d.member.email or "", d.product.name]
            if not any(term in h.lower() for h in haystack):
                continue
        out.append(d)
    return out


def subscription_stats(details: Iterable[SubscriptionDetail], now: date | datetime) -> dict:
    active = 0
    expiring = 0
    revenue = 0.0
    for d in details:
        status = subscription_status(d.subscription, now)
        if status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRING_SOON):
            active += 1
            revenue += d.product.price
        if status == SubscriptionStatus.EXPIRING_SOON:
            expiring += 1
    return {"active_subscriptions": active, "total_revenue": revenue, "expiring_soon": expiring}


def filter_products(products: Iterable[Product], search: str = "", unit: str = "all", status: str = "all") -> list[Product]:
    term = search.strip().lower()
    out = []
    for p in products:
        if term and term not in p.name.lower() and term not in (p.description or "").lower():
            continue
        if unit != "all" and p.duration.unit != unit:
            continue
        if status == "active" and not p.is_active:
            continue
        if status == "inactive" and p.is_active:
            continue
        out.append(p)
    return out


def product_stats(products: list[Product]) -> dict:
    total = len(products)
    return {
        "active_products": sum(1 for p in products if p.is_active),
        "total_products": total,
        "average_price": (sum(p.price for p in products) / total) if total else 0.0,
        "credit_products": sum(1 for p in products if p.is_credit_based),
    }
