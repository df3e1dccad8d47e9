"""
app.py
Streamlit gym administration console: members, subscription products, subscriptions.
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from dataclasses import replace

import streamlit as st

import auth
import config
import db
import lifecycle
import utils
import validation
from errors import GymError, NotFoundError, ValidationError
from models import CREDITS_UNIT, DURATION_UNITS, Member, Product, Subscription, duration_policy

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

st.set_page_config(page_title="Gym Console", layout="wide")

# Injected time source; tests and demos can swap it
clock: lifecycle.Clock = lifecycle.system_clock


def init_once():
    if st.session_state.get("db_ready"):
        return
    db.init_db(config.DEFAULT_ADMIN_USERNAME, auth.hash_password(config.DEFAULT_ADMIN_PASSWORD))
    st.session_state.db_ready = True


def require_login():
    if "user" not in st.session_state:
        st.session_state.user = None


def current_user() -> auth.CurrentUser | None:
    return st.session_state.get("user")


def logout():
    st.session_state.user = None
    st.success("Logged out.")


def show_field_errors(errors) -> None:
    for e in errors:
        st.error(f"{e.field}: {e.message}")


def login_screen():
    st.title("🔐 Gym Console Login")

    col1, col2 = st.columns([1, 1])
    with col1:
        username = st.text_input("Username", value=config.DEFAULT_ADMIN_USERNAME)
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            user = auth.login(username.strip(), password)
            if user:
                st.session_state.user = user
                st.rerun()
            else:
                st.error("Invalid username or password.")

    with col2:
        st.info(
            "First run creates a default admin (see GYM_DEFAULT_ADMIN_USERNAME / "
            "GYM_DEFAULT_ADMIN_PASSWORD).\n\nYou will be forced to change the password on first login."
        )


def password_form(key: str) -> None:
    new1 = st.text_input("New password", type="password", key=f"{key}_1")
    new2 = st.text_input("Confirm new password", type="password", key=f"{key}_2")
    if st.button("Update password", type="primary", key=f"{key}_btn"):
        if new1 != new2:
            st.error("Passwords do not match.")
            return
        try:
            auth.change_password(current_user(), new1)
        except ValueError as e:
            st.error(str(e))
            return
        st.success("Password updated.")
        st.rerun()


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")
    st.warning("You must change the default password before using the console.")
    password_form("force_pw")


# ---------- Pages ----------

def dashboard_page(now):
    st.header("📊 Dashboard")

    details = db.list_subscriptions()
    stats = lifecycle.subscription_stats(details, now)
    members = db.list_members()

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Members", len(members))
    c2.metric("Active subscriptions", stats["active_subscriptions"])
    c3.metric(f"Expiring in next {config.EXPIRING_SOON_DAYS} days", stats["expiring_soon"])
    c4.metric("Revenue (active subscriptions)", f"{stats['total_revenue']:.2f}")

    st.divider()

    st.subheader("Expiring soon")
    expiring = lifecycle.filter_subscriptions(details, now, status="expiring_soon")
    if expiring:
        st.dataframe(utils.subscriptions_dataframe(expiring, now), use_container_width=True, hide_index=True)
    else:
        st.caption("No subscriptions expiring soon.")


def members_page():
    st.header("👥 Members")

    st.dataframe(utils.members_dataframe(db.list_members()), use_container_width=True, hide_index=True)

    st.divider()
    st.subheader("➕ Add Member")
    col1, col2 = st.columns(2)
    with col1:
        first_name = st.text_input("First name")
        last_name = st.text_input("Last name")
    with col2:
        email = st.text_input("Email (optional)")
        phone = st.text_input("Phone (optional)")
        status = st.selectbox("Status", ["active", "expired", "suspended"])

    if st.button("Save member", type="primary"):
        try:
            db.save_member(Member(None, first_name, last_name, email.strip() or None, phone.strip() or None, status))
        except ValidationError as e:
            show_field_errors(e.errors)
            return
        st.success("Member added.")
        st.rerun()


def product_form(existing: Product | None = None):
    if existing:
        st.subheader(f"✏️ Edit Product (ID: {existing.id})")
    else:
        st.subheader("➕ New Product")

    key = f"product_{existing.id if existing else 'new'}"
    col1, col2, col3 = st.columns(3)
    with col1:
        name = st.text_input("Name", value=existing.name if existing else "", key=f"{key}_name")
        description = st.text_input(
            "Description (optional)", value=(existing.description or "") if existing else "", key=f"{key}_desc"
        )
    with col2:
        price = st.text_input("Price", value=str(existing.price) if existing else "50", key=f"{key}_price")
        unit = st.selectbox(
            "Duration unit",
            options=list(DURATION_UNITS),
            index=list(DURATION_UNITS).index(existing.duration.unit) if existing else 2,
            key=f"{key}_unit",
        )
    with col3:
        value = credits = None
        if unit == CREDITS_UNIT:
            credits = st.number_input(
                "Credits included", min_value=0, step=1,
                value=(existing.credits_included or 10) if existing else 10, key=f"{key}_credits",
            )
        else:
            value = st.number_input(
                "Duration value", min_value=0, step=1,
                value=getattr(existing.duration, "value", 1) if existing else 1, key=f"{key}_value",
            )
        is_active = st.checkbox("Active (sellable)", value=existing.is_active if existing else True, key=f"{key}_active")

    errors = validation.validate_product_inputs(name, price, unit, value, credits)
    show_field_errors(errors)

    if st.button("Save product", type="primary", disabled=bool(errors), key=f"{key}_save"):
        product = Product(
            id=existing.id if existing else None,
            name=name,
            description=description,
            price=float(price),
            duration=duration_policy(unit, value, credits),
            is_active=is_active,
        )
        try:
            db.save_product(product)
        except ValidationError as e:
            show_field_errors(e.errors)
            return
        st.success("Product saved.")
        st.rerun()


def products_page():
    st.header("🏷️ Subscription Products")

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (name/description)", key="product_search")
        unit = st.selectbox("Duration", ["all"] + list(DURATION_UNITS), key="product_unit")
        status = st.selectbox("Status", ["all", "active", "inactive"], key="product_status")

    products = lifecycle.filter_products(db.list_products(), search=search, unit=unit, status=status)
    stats = lifecycle.product_stats(products)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Active products", stats["active_products"])
    c2.metric("Total products", stats["total_products"])
    c3.metric("Average price", f"{stats['average_price']:.2f}")
    c4.metric("Credit products", stats["credit_products"])

    st.dataframe(utils.products_dataframe(products), use_container_width=True, hide_index=True)

    st.divider()
    ids = [str(p.id) for p in products]
    selected = st.selectbox("Edit product", options=["(new)"] + ids)
    if selected == "(new)":
        product_form()
    else:
        product_form(db.load_product(int(selected)))


def new_subscription_form(now):
    st.subheader("➕ New Subscription")

    members = db.list_members(active_only=True)
    products = db.list_products(active_only=True)
    if not members or not products:
        st.info("You need at least one active member and one active product.")
        return

    member_opts = {f"{m.full_name} - ID {m.id}": m.id for m in members}
    product_opts = {f"{p.name} ({utils.duration_label(p)}, {p.price:.2f})": p for p in products}

    col1, col2, col3 = st.columns(3)
    with col1:
        member_id = member_opts[st.selectbox("Member", list(member_opts.keys()))]
        product = product_opts[st.selectbox("Product", list(product_opts.keys()))]
    with col2:
        start_date = st.date_input("Start date", value=lifecycle.to_date(now))
        auto_end = lifecycle.resolve_end_date(start_date, product.duration)
        if auto_end is None:
            end_date = None
            st.caption("Credit products have no end date.")
        else:
            end_date = st.date_input("End date (auto-calculated, editable)", value=auto_end)
    with col3:
        auto_renew = st.checkbox("Auto renew", value=False)
        is_active = st.checkbox("Active", value=True)

    errors = validation.validate_subscription_inputs(product, start_date, end_date, 0, member_id, require_member=True)
    show_field_errors(errors)

    if st.button("Create subscription", type="primary", disabled=bool(errors)):
        user = current_user()
        sub = Subscription(
            None, member_id, product.id, start_date, end_date,
            credits_used=0, auto_renew=auto_renew, is_active=is_active,
            created_by=user.id if user else None,
        )
        try:
            db.save_subscription(sub)
        except ValidationError as e:
            show_field_errors(e.errors)
            return
        except NotFoundError as e:
            st.error(str(e))
            return
        st.success("Subscription created.")
        st.rerun()


def edit_subscription_form(subscription_id: int, now):
    try:
        sub = db.load_subscription(subscription_id)
        product = db.load_product(sub.product_id)
    except NotFoundError as e:
        st.error(str(e))
        return

    st.subheader(f"✏️ Edit Subscription (ID: {sub.id}) - {product.name}")
    status = lifecycle.subscription_status(sub, now)
    st.write(f"Status: **{utils.STATUS_LABELS[status]}**")

    key = f"sub_{sub.id}"
    col1, col2, col3 = st.columns(3)
    with col1:
        start_date = st.date_input("Start date", value=sub.start_date, key=f"{key}_start")
        end_date = None
        if not product.is_credit_based:
            end_date = st.date_input("End date", value=sub.end_date or start_date, key=f"{key}_end")
    with col2:
        credits_used = sub.credits_used
        if product.is_credit_based:
            credits_used = int(st.number_input(
                "Credits used", min_value=0, max_value=product.credits_included,
                value=sub.credits_used, step=1, key=f"{key}_credits",
            ))
            preview = replace(sub, credits_used=credits_used)
            st.write(f"Remaining: **{utils.credits_label(product, preview)}**")
            st.progress(lifecycle.credit_usage_percent(product, preview) / 100)
    with col3:
        auto_renew = st.checkbox("Auto renew", value=sub.auto_renew, key=f"{key}_renew")
        is_active = st.checkbox("Active", value=sub.is_active, key=f"{key}_active")

    errors = validation.validate_subscription_inputs(product, start_date, end_date, credits_used)
    show_field_errors(errors)

    c1, c2, c3 = st.columns(3)
    with c1:
        if st.button("Save changes", type="primary", disabled=bool(errors), key=f"{key}_save"):
            updated = replace(
                sub, start_date=start_date, end_date=end_date,
                credits_used=credits_used, auto_renew=auto_renew, is_active=is_active,
            )
            try:
                db.save_subscription(updated)
            except ValidationError as e:
                show_field_errors(e.errors)
                return
            st.success("Subscription updated.")
            st.rerun()
    with c2:
        if product.is_credit_based and st.button("Record 1 credit used", key=f"{key}_use"):
            try:
                db.save_subscription(lifecycle.record_usage(product, sub, 1))
            except ValidationError as e:
                show_field_errors(e.errors)
                return
            st.success("Usage recorded.")
            st.rerun()
    with c3:
        confirm = st.checkbox("Confirm delete", value=False, key=f"{key}_del_confirm")
        if st.button("Delete", disabled=not confirm, key=f"{key}_delete"):
            db.delete_subscription(sub.id)
            st.success("Subscription deleted.")
            st.rerun()


def subscriptions_page(now):
    st.header("🧾 Subscriptions")

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (member/email/product)", key="sub_search")
        status = st.selectbox("Status", list(lifecycle.STATUS_FILTERS.keys()), key="sub_status")

    details = lifecycle.filter_subscriptions(db.list_subscriptions(), now, status=status, search=search)
    stats = lifecycle.subscription_stats(details, now)

    c1, c2, c3 = st.columns(3)
    c1.metric("Active subscriptions", stats["active_subscriptions"])
    c2.metric("Revenue (active)", f"{stats['total_revenue']:.2f}")
    c3.metric("Expiring soon", stats["expiring_soon"])

    st.dataframe(utils.subscriptions_dataframe(details, now), use_container_width=True, hide_index=True)

    st.divider()
    ids = [str(d.subscription.id) for d in details]
    selected = st.selectbox("Edit subscription", options=["(new)"] + ids)
    if selected == "(new)":
        new_subscription_form(now)
    else:
        edit_subscription_form(int(selected), now)


def renewals_page(now):
    days = config.RENEWAL_WINDOW_DAYS
    st.header(f"🔁 Renewals due (next {days} days)")

    details = [d for d in db.list_subscriptions() if lifecycle.expires_within(d.subscription, now, days)]
    details.sort(key=lambda d: d.subscription.end_date)
    if details:
        st.dataframe(utils.subscriptions_dataframe(details, now), use_container_width=True, hide_index=True)
    else:
        st.caption("No subscriptions due for renewal.")


def reports_page(now):
    st.header("📄 Reports")

    st.subheader("Export subscriptions to CSV")
    details = db.list_subscriptions()
    if details:
        st.download_button(
            "Download subscriptions.csv",
            data=utils.dataframe_to_csv_bytes(utils.subscriptions_dataframe(details, now)),
            file_name="subscriptions.csv",
            mime="text/csv",
        )
    else:
        st.caption("No subscriptions to export.")

    st.divider()

    st.subheader("Export products to CSV")
    products = db.list_products()
    if products:
        st.download_button(
            "Download products.csv",
            data=utils.dataframe_to_csv_bytes(utils.products_dataframe(products)),
            file_name="products.csv",
            mime="text/csv",
        )
    else:
        st.caption("No products to export.")


def settings_page(now):
    st.header("⚙️ Settings")

    st.subheader("Change password")
    password_form("settings_pw")

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert 3 sample members, products and subscriptions (adds new rows each run).")
    if st.button("Insert sample data"):
        user = current_user()
        utils.insert_sample_data(lifecycle.to_date(now), created_by=user.id if user else None)
        st.success("Sample data inserted.")
        st.rerun()


def main_app():
    user = current_user()
    st.sidebar.title("🏋️ Gym Console")
    st.sidebar.caption(f"Logged in as: {user.username}")

    pages = ["Dashboard", "Members", "Products", "Subscriptions", "Renewals", "Reports", "Settings"]
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    render_page(st.session_state.page, clock())


def render_page(page: str, now) -> None:
    """Draw one page; lookup and validation failures become an error banner."""
    try:
        if page == "Dashboard":
            dashboard_page(now)
        elif page == "Members":
            members_page()
        elif page == "Products":
            products_page()
        elif page == "Subscriptions":
            subscriptions_page(now)
        elif page == "Renewals":
            renewals_page(now)
        elif page == "Reports":
            reports_page(now)
        elif page == "Settings":
            settings_page(now)
    except ValidationError as e:
        logger.warning("Page %s rejected input: %s", page, e)
        show_field_errors(e.errors)
    except GymError as e:
        logger.exception("Page %s failed", page)
        st.error(str(e))


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if current_user() is None:
        login_screen()
        return

    # Force password change on first login after DB creation
    if db.is_force_password_change():
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
