"""
utils.py
Dates, display labels, table/CSV exports, sample data.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
import pandas as pd

import db
import lifecycle
from models import CalendarPolicy, CreditPolicy, Member, Product, Subscription, SubscriptionDetail, SubscriptionStatus

DURATION_LABELS = {
    "days": ("Day", "Days"),
    "weeks": ("Week", "Weeks"),
    "months": ("Month", "Months"),
    "years": ("Year", "Years"),
    "credits": ("Credit", "Credits"),
}

STATUS_LABELS = {
    SubscriptionStatus.ACTIVE: "Active",
    SubscriptionStatus.EXPIRING_SOON: "Expiring soon",
    SubscriptionStatus.EXPIRED: "Expired",
    SubscriptionStatus.INACTIVE: "Inactive",
}


def duration_label(product: Product) -> str:
    d = product.duration
    n = d.credits_included if isinstance(d, CreditPolicy) else d.value
    singular, plural = DURATION_LABELS[d.unit]
    return f"{n} {singular if n == 1 else plural}"


def credits_label(product: Product, subscription: Subscription) -> str:
    if not product.is_credit_based:
        return "-"
    return f"{lifecycle.remaining_credits(product, subscription)}/{product.credits_included}"


def members_dataframe(members: list[Member]) -> pd.DataFrame:
    cols = ["id", "name", "email", "phone", "status"]
    rows = [{"id": m.id, "name": m.full_name, "email": m.email, "phone": m.phone, "status": m.status} for m in members]
    return pd.DataFrame(rows, columns=cols)


def products_dataframe(products: list[Product]) -> pd.DataFrame:
    cols = ["id", "name", "description", "price", "duration", "credits_included", "status"]
    rows = [
        {
            "id": p.id,
            "name": p.name,
            "description": p.description or "",
            "price": p.price,
            "duration": duration_label(p),
            "credits_included": p.credits_included,
            "status": "Active" if p.is_active else "Inactive",
        }
        for p in products
    ]
    return pd.DataFrame(rows, columns=cols)


def subscriptions_dataframe(details: list[SubscriptionDetail], now) -> pd.DataFrame:
    cols = ["id", "member", "email", "product", "price", "start_date", "end_date", "credits", "auto_renew", "status"]
    rows = []
    for d in details:
        s = d.subscription
        rows.append({
            "id": s.id,
            "member": d.member.full_name,
            "email": d.member.email or "",
            "product": d.product.name,
            "price": d.product.price,
            "start_date": s.start_date.isoformat(),
            "end_date": s.end_date.isoformat() if s.end_date else "",
            "credits": credits_label(d.product, s),
            "auto_renew": s.auto_renew,
            "status": STATUS_LABELS[lifecycle.subscription_status(s, now)],
        })
    return pd.DataFrame(rows, columns=cols)


def dataframe_to_csv_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


def insert_sample_data(today: date | None = None, created_by: int | None = None) -> None:
    """
    Insert 3 members, 3 products and one subscription each
    (safe to run multiple times: adds new rows each time).
    """
    today = today or datetime.now().date()

    monthly = db.save_product(Product(None, "Monthly", "Open gym, one month", 50.0, CalendarPolicy("months", 1)))
    quarterly = db.save_product(Product(None, "Quarterly", "Open gym, three months", 135.0, CalendarPolicy("months", 3)))
    ten_pack = db.save_product(Product(None, "10 classes", "Ten class entries", 80.0, CreditPolicy(10)))

    ahmed = db.save_member(Member(None, "Ahmed", "Hassan", "ahmed@example.com", "01000000001"))
    mona = db.save_member(Member(None, "Mona", "Ali", "mona@example.com", "01000000002"))
    omar = db.save_member(Member(None, "Omar", "Samy", None, "01000000003"))

    # Ahmed: expires in ~5 days
    start = today - timedelta(days=26)
    db.save_subscription(Subscription(
        None, ahmed.id, monthly.id, start, lifecycle.resolve_end_date(start, monthly.duration), created_by=created_by,
    ))

    # Mona: credit pack, a few classes used
    db.save_subscription(Subscription(
        None, mona.id, ten_pack.id, today - timedelta(days=10), None, credits_used=3, created_by=created_by,
    ))

    # Omar: expired
    start = today - timedelta(days=95)
    db.save_subscription(Subscription(
        None, omar.id, quarterly.id, start, lifecycle.resolve_end_date(start, quarterly.duration), created_by=created_by,
    ))
