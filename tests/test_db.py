from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

import db
import lifecycle
from errors import NotFoundError, ValidationError
from models import CalendarPolicy, CreditPolicy, Member, Product, Subscription


def test_product_round_trip(monthly, ten_pack):
    saved = db.save_product(monthly)
    assert saved.id is not None
    assert saved.duration == CalendarPolicy("months", 1)
    assert saved.credits_included is None

    pack = db.save_product(ten_pack)
    assert db.load_product(pack.id).duration == CreditPolicy(10)
    assert [p.name for p in db.list_products()] == ["10 classes", "Monthly"]


def test_product_update_and_active_filter(monthly):
    saved = db.save_product(monthly)
    db.save_product(replace(saved, is_active=False, price=45.0))
    assert db.load_product(saved.id).price == 45.0
    assert db.list_products(active_only=True) == []


def test_invalid_product_is_not_written():
    with pytest.raises(ValidationError) as exc:
        db.save_product(Product(None, "", None, -5.0, CalendarPolicy("days", 0)))
    assert set(exc.value.as_dict()) == {"name", "price", "duration_value"}
    assert db.list_products() == []


def test_load_missing_raises_not_found():
    with pytest.raises(NotFoundError):
        db.load_product(999)
    with pytest.raises(NotFoundError):
        db.load_subscription(999)
    with pytest.raises(NotFoundError):
        db.load_member(999)


def test_subscription_create_with_computed_end_date(member, monthly):
    product = db.save_product(monthly)
    start = date(2024, 1, 31)
    sub = db.save_subscription(Subscription(
        None, member.id, product.id, start, lifecycle.resolve_end_date(start, product.duration), created_by=1,
    ))
    loaded = db.load_subscription(sub.id)
    assert loaded.end_date == date(2024, 2, 29)
    assert loaded.credits_used == 0
    assert loaded.is_active is True
    assert loaded.created_by == 1


def test_calendar_subscription_credits_are_not_stored(member, monthly):
    product = db.save_product(monthly)
    sub = db.save_subscription(Subscription(None, member.id, product.id, date(2024, 1, 1), date(2024, 2, 1), credits_used=5))
    assert db.load_subscription(sub.id).credits_used == 0


def test_credit_overdraft_leaves_stored_value(member, ten_pack):
    product = db.save_product(ten_pack)
    sub = db.save_subscription(Subscription(None, member.id, product.id, date(2024, 1, 1), None, credits_used=3))

    with pytest.raises(ValidationError):
        db.save_subscription(replace(sub, credits_used=11))
    assert db.load_subscription(sub.id).credits_used == 3

    db.save_subscription(lifecycle.record_usage(product, sub, 2))
    assert db.load_subscription(sub.id).credits_used == 5


def test_subscription_with_unknown_member_or_product(member, monthly):
    with pytest.raises(NotFoundError):
        db.save_subscription(Subscription(None, 42, 1, date(2024, 1, 1), date(2024, 2, 1)))
    with pytest.raises(NotFoundError):
        db.save_subscription(Subscription(None, member.id, 42, date(2024, 1, 1), date(2024, 2, 1)))


def test_list_and_delete_subscriptions(member, monthly, ten_pack):
    m = db.save_product(monthly)
    p = db.save_product(ten_pack)
    first = db.save_subscription(Subscription(None, member.id, m.id, date(2024, 1, 1), date(2024, 2, 1)))
    db.save_subscription(Subscription(None, member.id, p.id, date(2024, 3, 1), None))

    details = db.list_subscriptions()
    assert [d.product.name for d in details] == ["10 classes", "Monthly"]
    assert details[0].member.full_name == "Mona Ali"
    assert details[0].product.credits_included == 10

    db.delete_subscription(first.id)
    assert len(db.list_subscriptions()) == 1
    with pytest.raises(NotFoundError):
        db.delete_subscription(first.id)


def test_member_validation_and_active_listing():
    with pytest.raises(ValidationError) as exc:
        db.save_member(Member(None, " ", "", None, None))
    assert set(exc.value.as_dict()) == {"first_name", "last_name"}

    db.save_member(Member(None, "Omar", "Samy", None, None, status="suspended"))
    db.save_member(Member(None, "Ahmed", "Hassan", None, None))
    assert [m.first_name for m in db.list_members(active_only=True)] == ["Ahmed"]


def test_credit_allotment_cannot_drop_below_usage(member, ten_pack):
    product = db.save_product(ten_pack)
    sub = db.save_subscription(Subscription(None, member.id, product.id, date(2024, 1, 1), None, credits_used=8))

    with pytest.raises(ValidationError) as exc:
        db.save_product(replace(product, duration=CreditPolicy(5)))
    assert set(exc.value.as_dict()) == {"credits_included"}
    assert db.load_product(product.id).credits_included == 10

    db.save_product(replace(product, duration=CreditPolicy(8), price=70.0))
    assert db.load_product(product.id).credits_included == 8
    db.save_subscription(replace(sub, is_active=False))
    assert db.load_subscription(sub.id).is_active is False


def test_duration_unit_cannot_switch_under_subscriptions(member, monthly, ten_pack):
    cal = db.save_product(monthly)
    db.save_subscription(Subscription(None, member.id, cal.id, date(2024, 1, 1), date(2024, 2, 1)))
    with pytest.raises(ValidationError) as exc:
        db.save_product(replace(cal, duration=CreditPolicy(10)))
    assert set(exc.value.as_dict()) == {"duration_unit"}

    pack = db.save_product(ten_pack)
    db.save_subscription(Subscription(None, member.id, pack.id, date(2024, 1, 1), None))
    with pytest.raises(ValidationError) as exc:
        db.save_product(replace(pack, duration=CalendarPolicy("months", 1)))
    assert set(exc.value.as_dict()) == {"duration_unit"}

    assert db.save_product(replace(cal, duration=CalendarPolicy("weeks", 4))).duration == CalendarPolicy("weeks", 4)


def test_unused_product_can_change_unit(monthly):
    cal = db.save_product(monthly)
    assert db.save_product(replace(cal, duration=CreditPolicy(5))).credits_included == 5


def test_non_finite_price_is_a_field_error(monthly):
    with pytest.raises(ValidationError) as exc:
        db.save_product(replace(monthly, price=float("nan")))
    assert set(exc.value.as_dict()) == {"price"}
    assert db.list_products() == []
