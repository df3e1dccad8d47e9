"""
models.py
Domain types: duration policies, products, subscriptions, members.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Union

from errors import ConfigurationError

# Calendar units advance the end date; "credits" means no calendar expiry
CALENDAR_UNITS = ("days", "weeks", "months", "years")
CREDITS_UNIT = "credits"
DURATION_UNITS = CALENDAR_UNITS + (CREDITS_UNIT,)


class SubscriptionStatus(str, Enum):
    ACTIVE = "Active"
    EXPIRING_SOON = "ExpiringSoon"
    EXPIRED = "Expired"
    INACTIVE = "Inactive"


@dataclass(frozen=True)
class CalendarPolicy:
    unit: str  # days/weeks/months/years
    value: int


@dataclass(frozen=True)
class CreditPolicy:
    credits_included: int
    unit: str = CREDITS_UNIT


DurationPolicy = Union[CalendarPolicy, CreditPolicy]


def duration_policy(unit: str, value: int | None = None, credits_included: int | None = None) -> DurationPolicy:
    """
    Build the policy for a product row or form.
    Raises ConfigurationError when the combination cannot describe a valid policy.
    """
    if unit == CREDITS_UNIT:
        if credits_included is None or int(credits_included) <= 0:
            raise ConfigurationError("Credit products need a positive number of credits included.")
        return CreditPolicy(credits_included=int(credits_included))
    if unit not in CALENDAR_UNITS:
        raise ConfigurationError(f"Unknown duration unit: {unit!r}.")
    if value is None or int(value) <= 0:
        raise ConfigurationError("Duration value must be greater than 0.")
    return CalendarPolicy(unit=unit, value=int(value))


@dataclass(frozen=True)
class Product:
    id: int | None
    name: str
    description: str | None
    price: float
    duration: DurationPolicy
    is_active: bool = True

    @property
    def is_credit_based(self) -> bool:
        return isinstance(self.duration, CreditPolicy)

    @property
    def credits_included(self) -> int | None:
        if isinstance(self.duration, CreditPolicy):
            return self.duration.credits_included
        return None


@dataclass(frozen=True)
class Subscription:
    id: int | None
    member_id: int
    product_id: int
    start_date: date
    end_date: date | None
    credits_used: int = 0  # only meaningful for credit products
    auto_renew: bool = False
    is_active: bool = True
    created_by: int | None = None


@dataclass(frozen=True)
class Member:
    id: int | None
    first_name: str
    last_name: str
    email: str | None
    phone: str | None
    status: str = "active"  # active/expired/suspended

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class SubscriptionDetail:
    """A subscription joined with the member and product it references (list views)."""
    subscription: Subscription
    member: Member
    product: Product
