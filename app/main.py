"""
Streamlit Frontend for Car Fund Tracker

One person saving up for a car: salary in, bills out, money moved
between cash, a safety buffer and the car fund.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before anything risky
3. Clear error messages in simple language
4. Visual feedback for all operations
5. No hidden actions

The UI never touches storage directly. Every button calls the
tracker, which returns a result to show.
"""

import asyncio
import json
from datetime import date

import streamlit as st

from car_fund.models.state import EntryType
from car_fund.orchestrator import CarFundTracker, create_app_components
from car_fund.queries import LedgerFilter, format_money


# Page configuration
st.set_page_config(
    page_title="Car Fund Tracker",
    page_icon="🚗",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


ENTRY_TYPE_LABELS = {
    EntryType.INCOME: "Income",
    EntryType.EXPENSE: "Expense",
    EntryType.DEBT: "Debt payment",
    EntryType.MOVE_TO_CAR: "Move cash → car fund",
    EntryType.MOVE_TO_BUFFER: "Move cash → buffer",
    EntryType.MOVE_BUFFER_TO_CAR: "Move buffer → car fund",
    EntryType.MOVE_CAR_TO_BUFFER: "Move car fund → buffer",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# Query parameter carrying this browser's session token across reloads
SESSION_PARAM = "session"


def get_tracker() -> CarFundTracker:
    """
    Get or create this browser session's tracker.

    Each browser session holds its own tracker and therefore its own
    sign-in; local state on disk is shared.
    """
    if "tracker" not in st.session_state:
        session_token = st.query_params.get(SESSION_PARAM)
        try:
            tracker = create_app_components(session_token=session_token)
        except Exception as e:
            st.error(f"Failed to initialize cloud sync: {e}")
            tracker = create_app_components(use_cloud=False)
        run_async(tracker.start())
        st.session_state.tracker = tracker
    return st.session_state.tracker


def remember_session(tracker: CarFundTracker):
    """Keep the session token in the URL so a reload stays signed in."""
    token = tracker.session_token
    if token:
        st.query_params[SESSION_PARAM] = token
    elif SESSION_PARAM in st.query_params:
        del st.query_params[SESSION_PARAM]


def show_result(result):
    if result.success:
        st.success(result.message)
        for warning in result.warnings:
            st.warning(warning)
    else:
        st.error(result.message)


def money(tracker: CarFundTracker, amount: float) -> str:
    return format_money(amount, tracker.currency)


def main():
    """Main application entry point."""
    tracker = get_tracker()

    # Finish a sign-in when arriving from a sign-in link
    token = st.query_params.get("token")
    if token:
        status = run_async(tracker.complete_sign_in(token))
        del st.query_params["token"]
        st.toast(status)
    remember_session(tracker)

    # Sidebar navigation
    st.sidebar.title("🚗 Car Fund Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "➕ Add Entry", "📒 Ledger", "⚙️ Setup", "☁️ Cloud Sync", "💾 Backup"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.caption(f"Sync: {tracker.sync_status}")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Set your goal and monthly costs in Setup
        2. Log salary, expenses and debt payments
        3. Move spare cash to the buffer, then the car fund
        """
    )

    # Route to appropriate page
    if page == "📊 Dashboard":
        render_dashboard_page(tracker)
    elif page == "➕ Add Entry":
        render_entry_page(tracker)
    elif page == "📒 Ledger":
        render_ledger_page(tracker)
    elif page == "⚙️ Setup":
        render_setup_page(tracker)
    elif page == "☁️ Cloud Sync":
        render_sync_page(tracker)
    elif page == "💾 Backup":
        render_backup_page(tracker)


def render_dashboard_page(tracker: CarFundTracker):
    """Render the dashboard page."""
    st.title("📊 Dashboard")

    board = tracker.dashboard()
    state = board.state

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Car fund", money(tracker, state.car_fund))
    col2.metric("Buffer", money(tracker, state.buffer))
    col3.metric("Cash", money(tracker, state.cash))
    col4.metric("Remaining", money(tracker, board.remaining))

    st.markdown(f'<div class="big-number">{board.progress_percent}%</div>', unsafe_allow_html=True)
    st.progress(board.progress_percent / 100)

    estimate = board.estimate
    if estimate.is_known:
        st.info(
            f"Estimated buy date: **{estimate.estimated_date.isoformat()}** "
            f"(rate {money(tracker, estimate.adjusted_rate)}/month"
            f"{', buffer not full yet' if estimate.buffer_discounted else ''})"
        )
    else:
        st.info("Estimated buy date: unknown. Your net rate over the last 60 days is not positive.")

    for warning in board.warnings:
        st.warning(f"⚠ {warning}")
    st.caption(board.allocation_hint)

    st.markdown("---")
    st.markdown("### Quick actions")
    col1, col2 = st.columns(2)

    with col1:
        salary = st.number_input("Salary amount", min_value=0.0, step=50.0, key="salary_amount")
        if st.button("💶 Add salary"):
            show_result(tracker.add_salary(salary))

        hours = st.number_input("Hours worked", min_value=0.0, step=0.5, key="hours_worked")
        if st.button(f"⏱ Log hours @ {money(tracker, state.hourly_rate)}/h"):
            show_result(tracker.apply_hours(hours))

    with col2:
        debt = st.number_input("Debt payment", min_value=0.0, step=50.0, key="debt_amount")
        if st.button("💳 Pay debt"):
            show_result(tracker.pay_debt(debt))

        if st.button(f"🏠 Log monthly costs ({money(tracker, state.monthly_costs)})"):
            show_result(tracker.apply_monthly_costs())


def render_entry_page(tracker: CarFundTracker):
    """Render the add-entry page."""
    st.title("➕ Add Entry")
    st.markdown("Record any transaction or move money between buckets.")

    if "pending_entry" not in st.session_state:
        st.session_state.pending_entry = None

    with st.form("entry_form"):
        entry_type = st.selectbox(
            "Type",
            options=list(EntryType),
            format_func=lambda t: ENTRY_TYPE_LABELS[t],
        )
        amount = st.number_input("Amount", min_value=0.0, step=10.0)
        entry_date = st.date_input("Date", value=date.today())
        desc = st.text_input("Description")
        submitted = st.form_submit_button("Add", type="primary")

    if submitted:
        request = {
            "entry_type": entry_type,
            "amount": amount,
            "date": entry_date.isoformat(),
            "desc": desc,
        }
        warnings = tracker.preview(entry_type, amount)
        if warnings:
            # Ask before applying
            st.session_state.pending_entry = (request, warnings)
        else:
            show_result(tracker.record(**request))

    if st.session_state.pending_entry:
        request, warnings = st.session_state.pending_entry
        for warning in warnings:
            st.warning(warning)

        col1, col2 = st.columns(2)
        with col1:
            if st.button("✅ Yes, do it", type="primary"):
                st.session_state.pending_entry = None
                show_result(tracker.record(**request))
        with col2:
            if st.button("❌ Cancel"):
                st.session_state.pending_entry = None
                st.rerun()


def render_ledger_page(tracker: CarFundTracker):
    """Render the ledger page."""
    st.title("📒 Ledger")

    col1, col2 = st.columns([2, 1])
    with col1:
        search = st.text_input("Search descriptions")
    with col2:
        ledger_filter = st.selectbox(
            "Filter",
            options=list(LedgerFilter),
            format_func=lambda f: f.value.title(),
        )

    view = tracker.ledger(search=search, ledger_filter=ledger_filter)

    if not view.data_found:
        st.info("No entries match.")
        return

    st.dataframe(
        [
            {
                "Date": row.entry.date,
                "Type": row.label,
                "Description": row.entry.desc or "—",
                "Amount": row.display_amount,
            }
            for row in view.rows
        ],
        use_container_width=True,
        hide_index=True,
    )
    st.caption(view.summary(tracker.currency))


def render_setup_page(tracker: CarFundTracker):
    """Render the setup page."""
    st.title("⚙️ Setup")

    state = tracker.load()

    with st.form("settings_form"):
        col1, col2 = st.columns(2)
        with col1:
            goal = st.number_input("Car goal", value=state.goal, step=100.0)
            starting_savings = st.number_input(
                "Starting savings",
                value=state.starting_savings,
                step=50.0,
                help="Moves cash only while the ledger is empty",
            )
            buffer_target = st.number_input("Buffer target", value=state.buffer_target, step=100.0)
            hourly_rate = st.number_input("Hourly rate", value=state.hourly_rate, step=1.0)
        with col2:
            rent = st.number_input("Rent", value=state.rent, step=10.0)
            bills = st.number_input("Bills", value=state.bills, step=10.0)
            food = st.number_input("Food", value=state.food, step=10.0)
            smoking = st.number_input("Smoking", value=state.smoking, step=10.0)
            social = st.number_input("Social", value=state.social, step=10.0)

        if st.form_submit_button("💾 Save settings", type="primary"):
            show_result(tracker.update_settings({
                "goal": goal,
                "starting_savings": starting_savings,
                "buffer_target": buffer_target,
                "hourly_rate": hourly_rate,
                "rent": rent,
                "bills": bills,
                "food": food,
                "smoking": smoking,
                "social": social,
            }))

    st.markdown("---")
    st.markdown("### Danger zone")
    confirm = st.checkbox("I understand this clears the ledger and all buckets.")
    if st.button("🗑 Reset everything", disabled=not confirm):
        show_result(tracker.reset_all())


def render_sync_page(tracker: CarFundTracker):
    """Render the cloud sync page."""
    st.title("☁️ Cloud Sync")

    if not tracker.cloud_enabled:
        st.info(
            "Cloud sync is off. Set CAR_FUND_SYNC_ENABLED=true and the "
            "GOOGLE_SHEETS_* variables in `.env` to turn it on."
        )
        return

    st.markdown(f"**Status:** {tracker.sync_status}")

    email = tracker.signed_in_email
    if email:
        st.success(f"Signed in as {email}")
        col1, col2 = st.columns(2)
        with col1:
            if st.button("🔄 Sync now", type="primary"):
                with st.spinner("Syncing..."):
                    st.info(run_async(tracker.sync_now()))
        with col2:
            if st.button("🚪 Sign out"):
                run_async(tracker.sign_out())
                remember_session(tracker)
                st.rerun()
    else:
        address = st.text_input("Email")
        if st.button("✉️ Send sign-in link", type="primary"):
            status = run_async(tracker.begin_sign_in(address))
            if status.startswith("Auth error"):
                st.error(status)
            else:
                st.success(status)


def render_backup_page(tracker: CarFundTracker):
    """Render the export/import page."""
    st.title("💾 Backup")

    st.download_button(
        "⬇️ Export JSON",
        data=tracker.export_json(),
        file_name=f"car-fund-{date.today().isoformat()}.json",
        mime="application/json",
    )

    st.markdown("---")
    uploaded = st.file_uploader("Import a JSON backup", type=["json"])
    if uploaded is not None:
        st.warning("Importing replaces everything you have now.")
        if st.button("⬆️ Import", type="primary"):
            show_result(tracker.import_json(uploaded.getvalue()))

    if tracker.audit_logger:
        with st.expander("Recent activity"):
            for event in tracker.audit_logger.recent_events(limit=20):
                st.text(json.dumps(event.to_log_dict(), default=str))


if __name__ == "__main__":
    main()
