"""
Streamlit Frontend for Expense Tracker

DESIGN PRINCIPLES:
1. A 4-digit PIN is all it takes to get in
2. Trackers down the sidebar, the selected tracker's expenses in the page
3. Every delete asks for confirmation
4. Totals come from the same aggregation the summary flow uses

Run with:  streamlit run app/main.py
"""

import asyncio
from datetime import date

import streamlit as st

from expense_tracker.config import get_settings, validate_all_settings
from expense_tracker.models.expense import Currency, Tracker, User
from expense_tracker.orchestrator import (
    AccountFlow,
    AuthenticationError,
    TrackerFlow,
    create_app_components,
)
from expense_tracker.services.storage import ConflictError, NotFoundError, StorageError
from expense_tracker.validation import ValidationError


st.set_page_config(
    page_title="Expense Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components()


def main():
    """Main application entry point."""
    try:
        account_flow, tracker_flow, _ = get_components()
    except StorageError as e:
        st.error(f"Could not open storage: {e}")
        render_settings_page()
        st.stop()

    if "user" not in st.session_state:
        st.session_state.user = None

    user = st.session_state.user
    if user is None:
        render_auth_page(account_flow)
        return

    st.sidebar.title("💰 Expense Tracker")
    st.sidebar.caption(f"Logged in · prefers {user.preferred_currency.value}")
    if st.sidebar.button("🚪 Log out"):
        st.session_state.user = None
        st.session_state.tracker_id = None
        st.rerun()
    st.sidebar.markdown("---")

    tracker = render_tracker_sidebar(tracker_flow, user)

    if tracker is None:
        st.title("Welcome")
        st.info("Create a tracker in the sidebar to start recording expenses.")
        return

    render_tracker_page(tracker_flow, tracker)


def render_auth_page(account_flow: AccountFlow):
    """Render login and registration."""
    st.title("💰 Expense Tracker")
    st.markdown("Enter your 4-digit PIN to continue.")

    login_tab, register_tab = st.tabs(["🔑 Log in", "🆕 Create PIN"])

    with login_tab:
        pin = st.text_input("PIN", max_chars=4, type="password", key="login_pin")
        if st.button("Log in", type="primary"):
            try:
                st.session_state.user = run_async(account_flow.login(pin))
                st.rerun()
            except (ValidationError, AuthenticationError) as e:
                st.error(str(e))

    with register_tab:
        new_pin = st.text_input("Choose a PIN", max_chars=4, type="password", key="new_pin")
        default_currency = get_settings().app.default_currency
        currency = st.selectbox(
            "Preferred currency",
            options=list(Currency),
            index=list(Currency).index(Currency(default_currency)),
            format_func=lambda c: f"{c.symbol} {c.label}",
        )
        if st.button("Create account", type="primary"):
            try:
                st.session_state.user = run_async(account_flow.register({
                    "pin": new_pin,
                    "preferred_currency": currency.value,
                }))
                st.rerun()
            except (ValidationError, ConflictError) as e:
                st.error(str(e))


def render_tracker_sidebar(tracker_flow: TrackerFlow, user: User):
    """List trackers in the sidebar; return the selected one, if any."""
    trackers = run_async(tracker_flow.list_trackers(user.id))

    with st.sidebar.expander("➕ New tracker", expanded=not trackers):
        name = st.text_input("Name", max_chars=50, key="tracker_name")
        currency = st.selectbox(
            "Currency",
            options=list(Currency),
            index=list(Currency).index(user.preferred_currency),
            format_func=lambda c: f"{c.symbol} {c.value}",
            key="tracker_currency",
        )
        if st.button("Create tracker"):
            try:
                tracker = run_async(tracker_flow.create_tracker(
                    user.id, {"name": name, "currency": currency.value}
                ))
                st.session_state.tracker_id = tracker.id
                st.rerun()
            except (ValidationError, NotFoundError) as e:
                st.error(str(e))

    if not trackers:
        return None

    ids = [t.id for t in trackers]
    selected = st.session_state.get("tracker_id")
    index = ids.index(selected) if selected in ids else 0

    tracker = st.sidebar.radio(
        "Your trackers",
        options=trackers,
        index=index,
        format_func=lambda t: f"{t.name} ({t.currency.symbol})",
    )
    st.session_state.tracker_id = tracker.id
    return tracker


def render_tracker_page(tracker_flow: TrackerFlow, tracker: Tracker):
    """Render one tracker: add form, totals and the expense list."""
    currency = tracker.currency

    header, delete_col = st.columns([4, 1])
    with header:
        st.title(tracker.name)
    with delete_col:
        if st.checkbox("Confirm delete", key=f"confirm_delete_{tracker.id}"):
            if st.button("🗑️ Delete tracker"):
                run_async(tracker_flow.delete_tracker(tracker.id))
                st.session_state.tracker_id = None
                st.rerun()

    render_expense_form(tracker_flow, tracker)

    expenses = run_async(tracker_flow.list_expenses(tracker.id))
    summary = run_async(tracker_flow.summarize(tracker.id))

    st.markdown("---")
    total_col, breakdown_col = st.columns([1, 2])

    with total_col:
        st.markdown("### Total spent")
        st.markdown(
            f'<div class="big-number">{currency.format(summary.grand_total)}</div>',
            unsafe_allow_html=True,
        )
        st.caption(f"{len(expenses)} expenses")

    with breakdown_col:
        st.markdown("### By category")
        if not summary.entries:
            st.info("No expenses yet.")
        for entry in summary.by_total():
            share = entry.share(summary.grand_total)
            st.markdown(
                f"**{entry.category}** · {currency.format(entry.total)} "
                f"({share}%, {entry.count} items)"
            )
            st.progress(min(float(share) / 100, 1.0))

    st.markdown("---")
    st.markdown("### Expenses")

    for expense in expenses:
        cols = st.columns([2, 2, 4, 2, 1])
        cols[0].write(expense.date.strftime("%d %b %Y"))
        cols[1].write(expense.category)
        cols[2].write(expense.description or "—")
        cols[3].write(currency.format(expense.amount))
        if cols[4].button("🗑️", key=f"delete_{expense.id}"):
            run_async(tracker_flow.delete_expense(expense.id))
            st.rerun()


def render_expense_form(tracker_flow: TrackerFlow, tracker: Tracker):
    """Render the add-expense form."""
    with st.form("add_expense", clear_on_submit=True):
        col1, col2, col3 = st.columns(3)
        with col1:
            amount = st.number_input(
                f"Amount ({tracker.currency.symbol})",
                min_value=0.0,
                step=0.01,
                format="%.2f",
            )
        with col2:
            category = st.text_input("Category", max_chars=50)
        with col3:
            spent_on = st.date_input("Date", value=date.today())
        description = st.text_input("Description (optional)", max_chars=200)

        if st.form_submit_button("➕ Add expense", type="primary"):
            try:
                run_async(tracker_flow.add_expense({
                    "tracker_id": tracker.id,
                    "amount": amount,
                    "category": category,
                    "description": description,
                    "date": spent_on.isoformat(),
                }))
                st.rerun()
            except (ValidationError, NotFoundError) as e:
                st.error(str(e))


def render_settings_page():
    """Render configuration status."""
    st.markdown("### Configuration")

    status = validate_all_settings()
    for name, key in [("Storage", "storage"), ("Application", "app")]:
        if status.get(key, False):
            st.success(f"✅ {name} settings loaded")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', 'Not configured')}")

    st.markdown(
        "Storage is chosen with `TRACKER_STORAGE_BACKEND` (`json` or `sql`). "
        "See `.env.example` for all variables."
    )


if __name__ == "__main__":
    main()
