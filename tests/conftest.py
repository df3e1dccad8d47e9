from __future__ import annotations

from datetime import date

import pytest

import auth
import db
from models import CalendarPolicy, CreditPolicy, Member, Product


@pytest.fixture(autouse=True)
def tmp_db(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "gym.db")
    db.init_db("admin", auth.hash_password("admin123", rounds=4))
    return tmp_path / "gym.db"


@pytest.fixture
def monthly():
    return Product(None, "Monthly", None, 50.0, CalendarPolicy("months", 1))


@pytest.fixture
def ten_pack():
    return Product(None, "10 classes", "Ten entries", 80.0, CreditPolicy(10))


@pytest.fixture
def member():
    return db.save_member(Member(None, "Mona", "Ali", "mona@example.com", "01000000002"))


@pytest.fixture
def today():
    return date(2024, 6, 15)
