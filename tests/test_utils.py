from __future__ import annotations

from datetime import date

import db
import lifecycle
import utils
from models import CalendarPolicy, CreditPolicy, Product, SubscriptionStatus


def test_duration_label():
    assert utils.duration_label(Product(None, "a", None, 1.0, CalendarPolicy("months", 1))) == "1 Month"
    assert utils.duration_label(Product(None, "a", None, 1.0, CalendarPolicy("weeks", 3))) == "3 Weeks"
    assert utils.duration_label(Product(None, "a", None, 1.0, CreditPolicy(10))) == "10 Credits"


def test_sample_data_statuses(today):
    utils.insert_sample_data(today)
    details = db.list_subscriptions()
    by_member = {d.member.first_name: lifecycle.subscription_status(d.subscription, today) for d in details}
    assert by_member == {
        "Ahmed": SubscriptionStatus.EXPIRING_SOON,
        "Mona": SubscriptionStatus.ACTIVE,
        "Omar": SubscriptionStatus.EXPIRED,
    }


def test_subscriptions_csv_export(today):
    utils.insert_sample_data(today)
    df = utils.subscriptions_dataframe(db.list_subscriptions(), today)
    assert set(df["status"]) == {"Expiring soon", "Active", "Expired"}
    assert df.loc[df["member"] == "Mona Ali", "credits"].item() == "7/10"
    assert df.loc[df["member"] == "Mona Ali", "end_date"].item() == ""

    csv = utils.dataframe_to_csv_bytes(df).decode("utf-8")
    assert csv.splitlines()[0] == "id,member,email,product,price,start_date,end_date,credits,auto_renew,status"


def test_empty_products_dataframe_keeps_columns():
    df = utils.products_dataframe([])
    assert df.empty
    assert list(df.columns) == ["id", "name", "description", "price", "duration", "credits_included", "status"]
