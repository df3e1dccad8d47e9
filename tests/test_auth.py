from __future__ import annotations

import pytest

import auth
import db


def test_default_admin_login_forces_password_change():
    user = auth.login("admin", "admin123")
    assert user is not None
    assert user.username == "admin"
    assert db.is_force_password_change()


def test_wrong_password():
    assert auth.login("admin", "nope") is None
    assert auth.login("ghost", "admin123") is None


def test_change_password():
    user = auth.login("admin", "admin123")
    auth.change_password(user, "s3cret-pass")
    assert auth.login("admin", "admin123") is None
    assert auth.login("admin", "s3cret-pass") == user
    assert not db.is_force_password_change()


def test_short_password_rejected():
    user = auth.login("admin", "admin123")
    with pytest.raises(ValueError):
        auth.change_password(user, "abc")


def test_long_passwords_use_first_72_bytes():
    h = auth.hash_password("x" * 100, rounds=4)
    assert auth.verify_password("x" * 72, h)
