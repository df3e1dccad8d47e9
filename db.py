"""
db.py
SQLite helpers + initialization, and the load/save boundary used by the console.
Rows become dataclasses here and nowhere else.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone

import validation
from config import DB_FILE
from errors import FieldError, NotFoundError, ValidationError
from models import CalendarPolicy, Member, Product, Subscription, SubscriptionDetail, duration_policy

logger = logging.getLogger(__name__)


@contextmanager
def get_conn():
    conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS admin_users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS members (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            first_name TEXT NOT NULL,
            last_name TEXT NOT NULL,
            email TEXT,
            phone TEXT,
            status TEXT NOT NULL CHECK(status IN ('active','expired','suspended')),
            created_at TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS subscription_products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            description TEXT,
            price REAL NOT NULL CHECK(price >= 0),
            duration_unit TEXT NOT NULL CHECK(duration_unit IN ('days','weeks','months','years','credits')),
            duration_value INTEGER,
            credits_included INTEGER,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS subscriptions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            member_id INTEGER NOT NULL,
            product_id INTEGER NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT,
            credits_used INTEGER NOT NULL DEFAULT 0,
            auto_renew INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_by INTEGER,
            created_at TEXT NOT NULL,
            FOREIGN KEY(member_id) REFERENCES members(id) ON DELETE CASCADE,
            FOREIGN KEY(product_id) REFERENCES subscription_products(id)
        )
        """
    )

    # Small settings table (used to force password change on first login)
    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


def _get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return str(row["value"])
    return default


def _set_setting(key: str, value: str) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def init_db(default_admin_username: str, default_admin_hash: str) -> None:
    """
    Initialize the database.
    - Create tables
    - Insert the default admin if no admin exists
    - Force password change on first login
    """
    _create_tables()

    admin = fetch_one("SELECT id FROM admin_users LIMIT 1")
    if not admin:
        execute(
            "INSERT INTO admin_users(username, password_hash, created_at) VALUES(?,?,?)",
            (default_admin_username, default_admin_hash, _now_iso()),
        )
        _set_setting("force_password_change", "1")
        logger.info("Created default admin user %r", default_admin_username)
    elif _get_setting("force_password_change") is None:
        _set_setting("force_password_change", "0")


def is_force_password_change() -> bool:
    return _get_setting("force_password_change") == "1"


def clear_force_password_change() -> None:
    _set_setting("force_password_change", "0")


# ---------- Row mapping ----------

def _parse_date(value) -> date | None:
    return date.fromisoformat(value) if value else None


def _row_to_member(r) -> Member:
    return Member(
        id=r["id"],
        first_name=r["first_name"],
        last_name=r["last_name"],
        email=r["email"],
        phone=r["phone"],
        status=r["status"],
    )


def _row_to_product(r) -> Product:
    return Product(
        id=r["id"],
        name=r["name"],
        description=r["description"],
        price=float(r["price"]),
        duration=duration_policy(r["duration_unit"], r["duration_value"], r["credits_included"]),
        is_active=bool(r["is_active"]),
    )


def _row_to_subscription(r) -> Subscription:
    return Subscription(
        id=r["id"],
        member_id=r["member_id"],
        product_id=r["product_id"],
        start_date=date.fromisoformat(r["start_date"]),
        end_date=_parse_date(r["end_date"]),
        credits_used=int(r["credits_used"]),
        auto_renew=bool(r["auto_renew"]),
        is_active=bool(r["is_active"]),
        created_by=r["created_by"],
    )


# ---------- Members ----------

def load_member(member_id: int) -> Member:
    row = fetch_one("SELECT * FROM members WHERE id = ?", (member_id,))
    if row is None:
        raise NotFoundError("Member", member_id)
    return _row_to_member(row)


def list_members(active_only: bool = False) -> list[Member]:
    sql = "SELECT * FROM members"
    if active_only:
        sql += " WHERE status = 'active'"
    sql += " ORDER BY last_name ASC, first_name ASC"
    return [_row_to_member(r) for r in fetch_all(sql)]


def save_member(member: Member) -> Member:
    errors = []
    if not member.first_name.strip():
        errors.append(FieldError("first_name", "First name is required."))
    if not member.last_name.strip():
        errors.append(FieldError("last_name", "Last name is required."))
    if errors:
        raise ValidationError(errors)

    params = (member.first_name.strip(), member.last_name.strip(), member.email or None, member.phone or None, member.status)
    if member.id is None:
        new_id = execute(
            "INSERT INTO members(first_name, last_name, email, phone, status, created_at) VALUES(?,?,?,?,?,?)",
            params + (_now_iso(),),
        )
        logger.info("Member %s created", new_id)
        return load_member(new_id)

    load_member(member.id)
    execute(
        "UPDATE members SET first_name=?, last_name=?, email=?, phone=?, status=? WHERE id=?",
        params + (member.id,),
    )
    logger.info("Member %s updated", member.id)
    return load_member(member.id)


# ---------- Products ----------

def load_product(product_id: int) -> Product:
    row = fetch_one("SELECT * FROM subscription_products WHERE id = ?", (product_id,))
    if row is None:
        raise NotFoundError("Product", product_id)
    return _row_to_product(row)


def list_products(active_only: bool = False) -> list[Product]:
    sql = "SELECT * FROM subscription_products"
    if active_only:
        sql += " WHERE is_active = 1"
    sql += " ORDER BY name ASC"
    return [_row_to_product(r) for r in fetch_all(sql)]


def _product_change_errors(current: Product, product: Product) -> list[FieldError]:
    """
    Existing subscriptions must stay valid under the edited duration policy.
    """
    subs = [_row_to_subscription(r) for r in fetch_all("SELECT * FROM subscriptions WHERE product_id = ?", (product.id,))]
    if not subs:
        return []

    if product.is_credit_based:
        if not current.is_credit_based and any(s.end_date is not None for s in subs):
            return [FieldError("duration_unit", "Subscriptions with an end date use this product; it cannot become credit based.")]
        most_used = max(s.credits_used for s in subs)
        if most_used > product.credits_included:
            return [FieldError(
                "credits_included",
                f"Credits included cannot be lower than credits already used by a subscription ({most_used}).",
            )]
    elif current.is_credit_based:
        return [FieldError("duration_unit", "Credit subscriptions use this product; it cannot switch to a calendar duration.")]
    return []


def save_product(product: Product) -> Product:
    errors = validation.validate_product(product)
    if errors:
        logger.warning("Product %r rejected: %s", product.name, errors)
        raise ValidationError(errors)

    d = product.duration
    value = d.value if isinstance(d, CalendarPolicy) else None
    params = (
        product.name.strip(),
        (product.description or "").strip() or None,
        float(product.price),
        d.unit,
        value,
        product.credits_included,
        int(product.is_active),
    )
    if product.id is None:
        new_id = execute(
            """
            INSERT INTO subscription_products(name, description, price, duration_unit, duration_value,
                credits_included, is_active, created_at)
            VALUES(?,?,?,?,?,?,?,?)
            """,
            params + (_now_iso(),),
        )
        logger.info("Product %s created (%s)", new_id, product.name)
        return load_product(new_id)

    current = load_product(product.id)
    errors = _product_change_errors(current, product)
    if errors:
        logger.warning("Product %s change rejected: %s", product.id, errors)
        raise ValidationError(errors)

    execute(
        """
        UPDATE subscription_products SET name=?, description=?, price=?, duration_unit=?,
            duration_value=?, credits_included=?, is_active=?
        WHERE id=?
        """,
        params + (product.id,),
    )
    logger.info("Product %s updated", product.id)
    return load_product(product.id)


# ---------- Subscriptions ----------

def load_subscription(subscription_id: int) -> Subscription:
    row = fetch_one("SELECT * FROM subscriptions WHERE id = ?", (subscription_id,))
    if row is None:
        raise NotFoundError("Subscription", subscription_id)
    return _row_to_subscription(row)


def save_subscription(subscription: Subscription) -> Subscription:
    """
    Validate and write a single subscription. Concurrent edits are last-writer-wins.
    """
    load_member(subscription.member_id)
    product = load_product(subscription.product_id)
    errors = validation.validate_subscription_inputs(
        product,
        subscription.start_date,
        subscription.end_date,
        credits_used=subscription.credits_used,
        member_id=subscription.member_id,
    )
    if errors:
        logger.warning("Subscription %s rejected: %s", subscription.id, errors)
        raise ValidationError(errors)

    params = (
        subscription.member_id,
        subscription.product_id,
        subscription.start_date.isoformat(),
        subscription.end_date.isoformat() if subscription.end_date else None,
        subscription.credits_used if product.is_credit_based else 0,
        int(subscription.auto_renew),
        int(subscription.is_active),
    )
    if subscription.id is None:
        new_id = execute(
            """
            INSERT INTO subscriptions(member_id, product_id, start_date, end_date, credits_used,
                auto_renew, is_active, created_by, created_at)
            VALUES(?,?,?,?,?,?,?,?,?)
            """,
            params + (subscription.created_by, _now_iso()),
        )
        logger.info("Subscription %s created for member %s", new_id, subscription.member_id)
        return load_subscription(new_id)

    load_subscription(subscription.id)
    execute(
        """
        UPDATE subscriptions SET member_id=?, product_id=?, start_date=?, end_date=?, credits_used=?,
            auto_renew=?, is_active=?
        WHERE id=?
        """,
        params + (subscription.id,),
    )
    logger.info("Subscription %s updated", subscription.id)
    return load_subscription(subscription.id)


def delete_subscription(subscription_id: int) -> None:
    load_subscription(subscription_id)
    execute("DELETE FROM subscriptions WHERE id = ?", (subscription_id,))
    logger.info("Subscription %s deleted", subscription_id)


def list_subscriptions() -> list[SubscriptionDetail]:
    rows = fetch_all(
        """
        SELECT s.*,
            m.first_name, m.last_name, m.email, m.phone, m.status,
            p.name, p.description, p.price, p.duration_unit, p.duration_value,
            p.credits_included, p.is_active AS product_active
        FROM subscriptions s
        JOIN members m ON m.id = s.member_id
        JOIN subscription_products p ON p.id = s.product_id
        ORDER BY s.start_date DESC, s.id DESC
        """
    )
    out = []
    for r in rows:
        member = Member(
            id=r["member_id"],
            first_name=r["first_name"],
            last_name=r["last_name"],
            email=r["email"],
            phone=r["phone"],
            status=r["status"],
        )
        product = Product(
            id=r["product_id"],
            name=r["name"],
            description=r["description"],
            price=float(r["price"]),
            duration=duration_policy(r["duration_unit"], r["duration_value"], r["credits_included"]),
            is_active=bool(r["product_active"]),
        )
        out.append(SubscriptionDetail(_row_to_subscription(r), member, product))
    return out
