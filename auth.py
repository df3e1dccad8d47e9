"""
auth.py
Authentication utilities (bcrypt hashing, verify, login, change password).

login() hands back a CurrentUser; the console keeps it in the session and
passes it to operations that record who did what.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import bcrypt
import db

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    username: str


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str, rounds: int = 12) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(_to_bcrypt_secret(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))


def login(username: str, password: str) -> CurrentUser | None:
    admin = db.fetch_one("SELECT * FROM admin_users WHERE username = ?", (username,))
    if not admin or not verify_password(password, admin["password_hash"]):
        logger.warning("Failed login for %r", username)
        return None
    logger.info("User %r logged in", username)
    return CurrentUser(id=admin["id"], username=admin["username"])


def change_password(user: CurrentUser, new_password: str) -> None:
    if len(new_password) < 6:
        raise ValueError("Password must be at least 6 characters.")
    db.execute(
        "UPDATE admin_users SET password_hash = ? WHERE id = ?",
        (hash_password(new_password), user.id),
    )
    db.clear_force_password_change()
    logger.info("Password changed for %r", user.username)
