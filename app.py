"""
app.py
Streamlit Club Management System (owner + staff).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging

import streamlit as st
from dotenv import find_dotenv, load_dotenv

import auth
import db
import utils
from club import Club
from errors import ClubError
from models import GYM_CODE, Category, Sport, code_for_category, code_for_sport
from reports import ReportingEngine

load_dotenv(find_dotenv())
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

st.set_page_config(page_title="Club Management System", layout="wide")


def init_once():
    # Initialize DB + default owner if needed
    if "db_ready" not in st.session_state:
        db.init_db(auth.hash_password("owner123"))
        st.session_state.db_ready = True


def require_login():
    if "logged_in" not in st.session_state:
        st.session_state.logged_in = False
    if "username" not in st.session_state:
        st.session_state.username = None


def logout():
    st.session_state.logged_in = False
    st.session_state.username = None
    st.success("Logged out.")


@st.cache_resource
def shared_club() -> Club:
    """
    One Club per process: every session goes through the same state and lock.
    Built after init_once, so a saved club always exists.
    """
    logger.info("Loading club state from %s", db.DB_FILE)
    return Club(db.load_club_state(), clock=utils.now_ms, on_change=db.save_club_state)


def attempt(action, success: str | None = None):
    """
    Run a club operation, showing ClubError messages instead of raising.
    Returns the operation result, or None on failure.
    """
    try:
        result = action()
    except ClubError as e:
        st.error(e.message)
        return None
    if success:
        st.success(success)
    return result


def login_screen():
    st.title("🔐 Club Login")

    col1, col2 = st.columns([1, 1])
    with col1:
        username = st.text_input("Username", value="owner")
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            if auth.login(username.strip(), password):
                st.session_state.logged_in = True
                st.session_state.username = username.strip()
                st.rerun()
            else:
                st.error("Invalid username or password.")

    with col2:
        st.info(
            "First run creates a default owner:\n\n"
            "- username: **owner**\n"
            "- password: **owner123**\n\n"
            "You will be forced to change it on first login."
        )


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")

    st.warning("You must change the default password before using the app.")
    new1 = st.text_input("New password", type="password")
    new2 = st.text_input("Confirm new password", type="password")

    if st.button("Update password", type="primary"):
        if len(new1) < 6:
            st.error("Password must be at least 6 characters.")
            return
        if new1 != new2:
            st.error("Passwords do not match.")
            return
        auth.change_password(st.session_state.username, new1)
        st.success("Password updated. You can continue.")
        st.rerun()


def dashboard_page(club: Club, engine: ReportingEngine, caller: str):
    st.header("📊 Dashboard")

    members = attempt(lambda: club.list_members(caller))
    if members is None:
        return
    open_payments = club.pending_payments(caller)
    delinquent = engine.delinquent_members(caller)

    c1, c2, c3 = st.columns(3)
    c1.metric("Members", len(members))
    c2.metric("Pending payments", len(open_payments))
    c3.metric("Delinquent members", len(delinquent))

    st.divider()

    st.subheader("Delinquent members")
    if delinquent:
        st.dataframe(utils.members_frame(delinquent), use_container_width=True, hide_index=True)
    else:
        st.caption("No member has an overdue payment.")


def members_page(club: Club, caller: str):
    st.header("👥 Members")

    st.subheader("➕ Register member")
    category_labels = {f"{c.value} (code {code_for_category(c)})": code_for_category(c) for c in Category}
    sport_labels = {"(none)": None}
    sport_labels.update({f"{s.value} (code {code_for_sport(s)})": code_for_sport(s) for s in Sport})

    col1, col2, col3 = st.columns(3)
    with col1:
        member_id = st.number_input("Member ID", min_value=0, step=1, value=0)
        full_name = st.text_input("Full name")
    with col2:
        category_code = category_labels[st.selectbox("Category", list(category_labels.keys()))]
    with col3:
        activity_code = sport_labels[st.selectbox("Sport (category B only)", list(sport_labels.keys()))]

    if st.button("Register", type="primary", disabled=not full_name.strip()):
        payment = attempt(
            lambda: club.register_member(caller, int(member_id), full_name.strip(), category_code, activity_code)
        )
        if payment:
            st.success(f"Member registered. First payment of {payment.amount} due {utils.format_ts(payment.due_date)}.")

    st.divider()

    members = attempt(lambda: club.list_members(caller))
    if members is None:
        return
    st.dataframe(utils.members_frame(members), use_container_width=True, hide_index=True)

    st.subheader("Lookup")
    lookup_id = st.number_input("Member ID to look up", min_value=0, step=1, value=0, key="lookup_id")
    if st.button("Find"):
        member = attempt(lambda: club.get_member(caller, int(lookup_id)))
        if member:
            st.write(member)
        else:
            st.caption("No member with that ID.")


def payments_page(club: Club, caller: str):
    st.header("💳 Payments")

    members = attempt(lambda: club.list_members(caller))
    if members is None:
        return
    if not members:
        st.info("No members yet. Register a member first.")
        return

    options = {f"{m.full_name} - ID {m.member_id}": m.member_id for m in members}
    member_id = options[st.selectbox("Member", list(options.keys()))]

    history = club.payment_history(caller, member_id)
    now = utils.now_ms()
    st.dataframe(utils.payments_frame(history, now), use_container_width=True, hide_index=True)

    st.subheader("Settle payment")
    open_amounts = sorted({p.amount for p in history if p.is_pending})
    if not open_amounts:
        st.caption("No pending payments for this member.")
        return
    amount = st.selectbox("Amount", open_amounts)
    if st.button("Record payment", type="primary"):
        if attempt(lambda: club.settle_payment(caller, member_id, int(amount)), "Payment recorded."):
            st.rerun()


def billing_page(club: Club, caller: str):
    st.header("🔁 Billing cycle")

    costs = attempt(lambda: club.get_costs(caller))
    if costs is None:
        return
    last = club.get_last_billing_date(caller)
    st.write(f"Last billing: **{utils.format_ts(last) or 'never'}**")
    st.write(
        f"Discount of **{costs.discount_amount}** after **{costs.streak_required}** "
        "consecutive on-time payments."
    )

    if st.button("Run billing cycle", type="primary"):
        attempt(lambda: club.run_billing_cycle(caller), "Billing cycle completed.")


def reports_page(club: Club, engine: ReportingEngine, caller: str):
    st.header("🧾 Reports")

    st.subheader("Revenue by category")
    revenue = attempt(lambda: engine.revenue_by_category(caller))
    if revenue is None:
        return
    st.dataframe(utils.revenue_frame(revenue), use_container_width=True, hide_index=True)

    st.divider()

    st.subheader("Eligible members by activity")
    activity_labels = {f"{s.value} (code {code_for_sport(s)})": code_for_sport(s) for s in Sport}
    activity_labels[f"Gym (code {GYM_CODE})"] = GYM_CODE
    code = activity_labels[st.selectbox("Activity", list(activity_labels.keys()))]
    eligible = attempt(lambda: engine.eligible_members_for_activity(caller, code))
    if eligible is not None:
        st.dataframe(utils.members_frame(eligible), use_container_width=True, hide_index=True)

    st.divider()

    st.subheader("Exports")
    st.download_button(
        "Download members.csv",
        data=utils.frame_to_csv_bytes(utils.members_frame(club.list_members(caller))),
        file_name="members.csv",
        mime="text/csv",
    )
    st.download_button(
        "Download payments.csv",
        data=utils.frame_to_csv_bytes(utils.payments_frame(club.payment_history(caller), utils.now_ms())),
        file_name="payments.csv",
        mime="text/csv",
    )


def settings_page(club: Club, caller: str):
    st.header("⚙️ Settings")

    st.subheader("Costs")
    costs = attempt(lambda: club.get_costs(caller))
    if costs is None:
        return
    c1, c2, c3 = st.columns(3)
    with c1:
        category = st.selectbox("Category", list(Category), format_func=lambda c: c.value)
        category_code = code_for_category(category)
        price = st.number_input("Price", min_value=0, step=100, value=costs.price_for(category))
        if st.button("Update price"):
            attempt(lambda: club.update_category_price(caller, category_code, int(price)), "Price updated.")
    with c2:
        discount = st.number_input("Discount amount", min_value=0, step=100, value=costs.discount_amount)
        if st.button("Update discount"):
            attempt(lambda: club.update_discount_amount(caller, int(discount)), "Discount updated.")
    with c3:
        streak = st.number_input("Payments required", min_value=0, step=1, value=costs.streak_required)
        if st.button("Update streak"):
            attempt(lambda: club.update_discount_streak(caller, int(streak)), "Streak updated.")

    st.divider()

    st.subheader("Policy")
    enforced = attempt(lambda: club.get_enforcement(caller))
    if enforced is not None:
        st.write(f"Enforcement: **{'on' if enforced else 'off'}**")
        st.write("Staff: " + (", ".join(club.list_staff(caller)) or "(none)"))

    if club.is_admin(caller):
        if st.button("Toggle enforcement"):
            attempt(lambda: club.toggle_enforcement(caller), "Enforcement toggled.")

        accounts = db.list_accounts()
        c1, c2 = st.columns(2)
        with c1:
            staff_id = st.selectbox("Account", accounts)
            if st.button("Add staff"):
                attempt(lambda: club.add_staff(caller, staff_id), "Staff added.")
            if st.button("Remove staff"):
                attempt(lambda: club.remove_staff(caller, staff_id), "Staff removed.")
        with c2:
            new_owner = st.selectbox("New owner", accounts, key="new_owner")
            confirm = st.checkbox("Confirm transfer", value=False)
            if st.button("Transfer ownership", disabled=not confirm):
                attempt(lambda: club.transfer_ownership(caller, new_owner), "Ownership transferred.")

        st.subheader("New account")
        username = st.text_input("Username", key="new_username")
        password = st.text_input("Password", type="password", key="new_password")
        if st.button("Create account"):
            if not username.strip() or len(password) < 6:
                st.error("Username required and password must be at least 6 characters.")
            elif auth.get_account(username.strip()):
                st.error("Account already exists.")
            else:
                auth.create_account(username.strip(), password)
                st.success("Account created.")

    st.divider()

    st.subheader("Change password")
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password", type="primary"):
        if len(p1) < 6:
            st.error("Password must be at least 6 characters.")
        elif p1 != p2:
            st.error("Passwords do not match.")
        else:
            auth.change_password(caller, p1)
            st.success("Password updated.")

    st.divider()

    st.subheader("Sample data")
    st.caption("Register 3 sample members, one per category.")
    if st.button("Insert sample data"):
        attempt(lambda: utils.insert_sample_data(club, caller), "Sample data inserted.")


def main_app():
    caller = st.session_state.username
    club = shared_club()
    engine = ReportingEngine(club, clock=utils.now_ms)

    st.sidebar.title("🏟️ Club System")
    st.sidebar.caption(f"Logged in as: {caller}")

    pages = ["Dashboard", "Members", "Payments", "Billing", "Reports", "Settings"]
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    if not club.may_act(caller):
        st.warning("Your account has no access to club operations while the policy is enforced.")

    if st.session_state.page == "Dashboard":
        dashboard_page(club, engine, caller)
    elif st.session_state.page == "Members":
        members_page(club, caller)
    elif st.session_state.page == "Payments":
        payments_page(club, caller)
    elif st.session_state.page == "Billing":
        billing_page(club, caller)
    elif st.session_state.page == "Reports":
        reports_page(club, engine, caller)
    elif st.session_state.page == "Settings":
        settings_page(club, caller)


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.logged_in:
        login_screen()
        return

    # Force password change on first login after DB creation
    if db.is_force_password_change():
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
