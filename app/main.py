"""
Streamlit Frontend for Expense Tracker

A thin host around the orchestrator flows. Every widget interaction
reruns this script; each rerun:
1. Fires any session deadline that has passed (token refresh, inactivity)
2. Records the interaction as user activity
3. Renders the auth page or the signed-in pages

DESIGN PRINCIPLES:
1. The UI never talks to the backend directly, only to the flows
2. Validation messages are shown as returned, nothing is re-worded
3. Work done while offline is queued and the user is told so

Each browser session gets its own components in st.session_state: the
signed-in session and everything it owns (expense list, offline queue,
local storage) belong to one user.
Only the logging setup and the HTTP connection pool are process-wide.
"""

from datetime import date

import pandas as pd
import plotly.express as px
import requests
import streamlit as st

from expense_tracker.audit import configure_logging
from expense_tracker.config import get_settings, validate_all_settings
from expense_tracker.events import MOUSEDOWN, RELOAD_REQUESTED
from expense_tracker.insights import (
    ExpenseFilter,
    category_breakdown,
    chart_axis_max,
    monthly_totals,
    page_count,
    paginate,
    total_spent,
)
from expense_tracker.models import ExpenseCategory, RecurrenceFrequency
from expense_tracker.orchestrator import AppComponents, AuthFlow, ExpenseFlow, get_session_components
from expense_tracker.services.local_storage import MemoryStorage
from expense_tracker.services.remote import RemoteError
from expense_tracker.validation import check_password_strength


# Page configuration
st.set_page_config(
    page_title="Expense Tracker",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)


@st.cache_resource
def get_http_session() -> requests.Session:
    """Process-wide connection pool (cached); holds no user state."""
    configure_logging(get_settings().app.log_level)
    return requests.Session()


def get_components() -> AppComponents:
    """Get or create this browser session's components."""
    if "components" not in st.session_state:
        components = get_session_components(
            st.session_state,
            app_settings=get_settings().app,
            local_storage=MemoryStorage(),
            http=get_http_session(),
        )
        components.bus.subscribe(RELOAD_REQUESTED, _on_reload_requested)
    return st.session_state.components


def _on_reload_requested(event) -> None:
    st.session_state.notice = "You were signed out after a period of inactivity."


def main():
    """Main application entry point."""
    components = get_components()

    components.lifecycle.poll()
    components.bus.publish(MOUSEDOWN)

    if components.client is None:
        st.sidebar.warning("Demo mode: no backend configured, data is kept in memory.")

    render_connectivity(components)

    notice = st.session_state.pop("notice", None)
    if notice:
        st.info(notice)

    if not components.lifecycle.is_authenticated:
        render_auth_page(components.auth_flow)
        return

    user = components.lifecycle.session.user
    st.sidebar.title("💸 Expense Tracker")
    st.sidebar.markdown(f"**{user.display_name}**  \n{user.email}")
    if st.sidebar.button("Sign out"):
        components.auth_flow.sign_out()
        st.rerun()
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🧾 Expenses", "📈 Insights", "🎯 Budget", "🔁 Recurring", "⚙️ Settings"],
        index=0,
    )

    flow = components.expense_flow
    if "loaded" not in st.session_state:
        load_expenses(flow)
        st.session_state.loaded = True

    # Route to appropriate page
    if page == "🧾 Expenses":
        render_expenses_page(flow)
    elif page == "📈 Insights":
        render_insights_page(flow)
    elif page == "🎯 Budget":
        render_budget_page(flow)
    elif page == "🔁 Recurring":
        render_recurring_page(flow)
    elif page == "⚙️ Settings":
        render_settings_page(components)


def load_expenses(flow: ExpenseFlow) -> None:
    try:
        flow.refresh()
    except RemoteError as e:
        st.error(f"Could not load expenses: {e}")


def render_connectivity(components: AppComponents):
    """Offline indicator and the switch the host uses to report connectivity."""
    online = st.sidebar.toggle("Online", value=components.connectivity.is_online)
    if online != components.connectivity.is_online:
        components.connectivity.set_online(online)

    pending = len(components.queue)
    if not components.connectivity.is_online:
        st.warning(f"📴 You are offline. Changes are saved locally ({pending} pending).")
    elif pending:
        st.sidebar.info(f"{pending} change(s) waiting to sync")
        if st.sidebar.button("Sync now"):
            report = components.expense_flow.replay_pending()
            st.sidebar.success(f"Synced {len(report.succeeded)}, {len(report.requeued)} still pending")


# =============================================================================
# AUTH
# =============================================================================

def render_auth_page(auth_flow: AuthFlow):
    """Sign in, sign up and password reset."""
    st.title("💸 Expense Tracker")

    sign_in_tab, sign_up_tab, reset_tab = st.tabs(["Sign in", "Sign up", "Reset password"])

    with sign_in_tab:
        with st.form("sign_in"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            remember_me = st.checkbox("Remember me")
            submitted = st.form_submit_button("Sign in")
        if submitted:
            session, messages = auth_flow.sign_in(email, password, remember_me=remember_me)
            if session:
                st.rerun()
            for message in messages:
                st.error(message)

    with sign_up_tab:
        with st.form("sign_up"):
            col1, col2 = st.columns(2)
            with col1:
                first_name = st.text_input("First name")
            with col2:
                last_name = st.text_input("Last name")
            email = st.text_input("Email", key="sign_up_email")
            password = st.text_input("Password", type="password", key="sign_up_password")
            submitted = st.form_submit_button("Create account")
        if password:
            for requirement in check_password_strength(password):
                st.caption(f"• {requirement}")
        if submitted:
            session, messages = auth_flow.sign_up(first_name, last_name, email, password)
            if session:
                st.rerun()
            elif messages:
                for message in messages:
                    st.error(message)
            else:
                st.success("Account created. Check your email to confirm it.")

    with reset_tab:
        email = st.text_input("Email", key="reset_email")
        if st.button("Send code"):
            messages = auth_flow.request_reset_code(email)
            if messages:
                st.error(messages[0])
            else:
                st.success("A 6-digit verification code has been sent to your email")

        with st.form("reset_password"):
            code = st.text_input("Verification code")
            new_password = st.text_input("New password", type="password")
            confirm_password = st.text_input("Confirm password", type="password")
            submitted = st.form_submit_button("Reset password")
        if submitted:
            session, messages = auth_flow.reset_password(email, code, new_password, confirm_password)
            if session:
                st.session_state.notice = "Password has been reset successfully"
                st.rerun()
            for message in messages:
                st.error(message)


# =============================================================================
# EXPENSES
# =============================================================================

def render_expenses_page(flow: ExpenseFlow):
    """Add form, filters, table, CSV."""
    st.title("🧾 Expenses")

    with st.expander("➕ Add expense", expanded=not flow.expenses):
        with st.form("add_expense", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                amount = st.text_input("Amount")
                category = st.selectbox("Category", options=[c.value for c in ExpenseCategory])
            with col2:
                expense_date = st.date_input("Date", value=date.today())
                description = st.text_input("Description")
            submitted = st.form_submit_button("Add")
        if submitted:
            try:
                result, expense, queued = flow.add_expense(amount, category, description, expense_date)
            except RemoteError as e:
                st.error(str(e))
            else:
                if not result.is_valid:
                    for message in result.messages:
                        st.error(message)
                elif queued:
                    st.info("Saved offline. It will be synced when you are back online.")
                else:
                    st.success("Expense added")

    # Filters
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        category_filter = st.selectbox(
            "Category",
            options=[None] + list(ExpenseCategory),
            format_func=lambda x: "All Categories" if x is None else x.value,
        )
    with col2:
        start_date = st.date_input("From", value=None)
    with col3:
        end_date = st.date_input("To", value=None)
    with col4:
        search = st.text_input("Search")

    criteria = ExpenseFilter(
        category=category_filter,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    if start_date and end_date and end_date < start_date:
        st.warning("The end date is before the start date, so nothing matches")

    rows = flow.filtered(criteria)
    rows_per_page = get_settings().app.rows_per_page
    pages = page_count(len(rows), rows_per_page)

    if not rows:
        st.info("No expenses found" if criteria.is_active or criteria.search else "No expenses yet")
    else:
        page = st.number_input("Page", min_value=1, max_value=max(pages, 1), value=1) - 1
        for expense in paginate(rows, page, rows_per_page):
            render_expense_row(flow, expense)
        st.caption(f"{len(rows)} expense(s), page {page + 1} of {pages}")

    st.markdown("---")
    col1, col2 = st.columns(2)
    with col1:
        file_name, csv_text = flow.export(criteria)
        st.download_button("⬇ Export CSV", csv_text, file_name=file_name, mime="text/csv")
    with col2:
        uploaded = st.file_uploader("Import CSV", type=["csv"])
        if uploaded is not None and st.button("Import"):
            try:
                report = flow.import_csv(uploaded.getvalue())
            except RemoteError as e:
                st.error(str(e))
            else:
                st.success(
                    f"Imported {report.imported}, queued {report.queued}, skipped {report.skipped}"
                )


def render_expense_row(flow: ExpenseFlow, expense):
    col1, col2, col3, col4, col5 = st.columns([2, 2, 4, 2, 2])
    col1.write(expense.date.isoformat())
    col2.write(expense.category.value)
    col3.write(expense.description or "-")
    col4.write(f"{expense.amount:,.2f}")
    with col5:
        if st.button("🗑️", key=f"delete_{expense.id}"):
            try:
                queued = flow.delete_expense(expense.id)
            except RemoteError as e:
                st.error(str(e))
            else:
                if queued:
                    st.info("Delete queued")
                st.rerun()

    with st.expander("Edit", expanded=False):
        with st.form(f"edit_{expense.id}"):
            amount = st.text_input("Amount", value=str(expense.amount))
            categories = [c.value for c in ExpenseCategory]
            category = st.selectbox("Category", options=categories, index=categories.index(expense.category.value))
            description = st.text_input("Description", value=expense.description)
            expense_date = st.date_input("Date", value=expense.date)
            submitted = st.form_submit_button("Save")
        if submitted:
            try:
                result, _, queued = flow.update_expense(expense.id, amount, category, description, expense_date)
            except RemoteError as e:
                st.error(str(e))
            else:
                if not result.is_valid:
                    for message in result.messages:
                        st.error(message)
                else:
                    if queued:
                        st.info("Saved offline. It will be synced when you are back online.")
                    st.rerun()


# =============================================================================
# INSIGHTS
# =============================================================================

def render_insights_page(flow: ExpenseFlow):
    """Category pie and monthly bars."""
    st.title("📈 Insights")
    expenses = flow.expenses
    st.metric("Total Spent", f"{total_spent(expenses):,.2f}")

    col1, col2 = st.columns(2)
    with col1:
        slices = category_breakdown(expenses)
        if slices:
            df_cat = pd.DataFrame(
                [{"Category": s.category.value, "Amount": float(s.amount)} for s in slices]
            )
            fig_cat = px.pie(df_cat, names="Category", values="Amount", title="Spending by Category", hole=0.4)
            st.plotly_chart(fig_cat, use_container_width=True)
        else:
            st.info("No spending to chart yet")

    with col2:
        totals = monthly_totals(expenses, months=get_settings().app.chart_months)
        df_month = pd.DataFrame([{"Month": t.label, "Amount": float(t.amount)} for t in totals])
        fig_month = px.bar(df_month, x="Month", y="Amount", title="Monthly Spending")
        fig_month.update_yaxes(range=[0, max(chart_axis_max(totals), 1000)])
        st.plotly_chart(fig_month, use_container_width=True)


# =============================================================================
# BUDGET AND RECURRING
# =============================================================================

def render_budget_page(flow: ExpenseFlow):
    st.title("🎯 Monthly Budget")

    try:
        summary = flow.budget_summary()
        budget = flow.get_budget()
    except RemoteError as e:
        st.error(str(e))
        return

    if summary is not None:
        col1, col2, col3 = st.columns(3)
        col1.metric("Budget", f"{summary.budget:,.2f}")
        col2.metric("Spent", f"{summary.spent:,.2f}")
        col3.metric("Remaining", f"{summary.remaining:,.2f}")
        st.progress(min(summary.percentage, 100.0) / 100)
        if summary.over_budget:
            st.error("You are over budget this month")

    with st.form("budget"):
        amount = st.number_input(
            "Monthly budget",
            min_value=0.0,
            value=float(budget.amount) if budget else 0.0,
            step=50.0,
        )
        submitted = st.form_submit_button("Save budget")
    if submitted:
        try:
            _, queued = flow.save_budget(amount)
        except RemoteError as e:
            st.error(str(e))
        else:
            st.success("Budget saved offline" if queued else "Budget saved")


def render_recurring_page(flow: ExpenseFlow):
    st.title("🔁 Recurring Expenses")

    try:
        items = flow.list_recurring()
    except RemoteError as e:
        st.error(str(e))
        items = []

    if items:
        st.dataframe(
            pd.DataFrame([
                {
                    "Description": item.description,
                    "Category": item.category.value,
                    "Amount": float(item.amount),
                    "Frequency": item.frequency.value,
                    "Day": item.day_of_month,
                }
                for item in items
            ]),
            use_container_width=True,
        )
        to_delete = st.selectbox(
            "Remove",
            options=[None] + items,
            format_func=lambda x: "-" if x is None else f"{x.description} ({x.amount})",
        )
        if to_delete is not None and st.button("Delete recurring expense"):
            flow.delete_recurring(to_delete.id)
            st.rerun()
    else:
        st.info("No recurring expenses yet")

    with st.form("recurring", clear_on_submit=True):
        description = st.text_input("Description")
        category = st.selectbox("Category", options=[c.value for c in ExpenseCategory])
        amount = st.number_input("Amount", min_value=0.0, step=1.0)
        frequency = st.selectbox("Frequency", options=[f.value for f in RecurrenceFrequency])
        day_of_month = st.number_input("Day of month", min_value=1, max_value=31, value=1)
        submitted = st.form_submit_button("Add")
    if submitted:
        try:
            _, queued = flow.save_recurring(description, category, amount, frequency, int(day_of_month))
        except RemoteError as e:
            st.error(str(e))
        else:
            st.success("Saved offline" if queued else "Recurring expense added")


def render_settings_page(components: AppComponents):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")
    status = validate_all_settings()
    for name, key in [("Supabase project", "supabase"), ("Application settings", "app")]:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', 'Not configured')}")

    st.markdown("### Pending changes")
    pending = components.queue.pending
    if pending:
        for action in pending:
            st.write(f"• {action.describe()} (attempts: {action.attempts})")
    else:
        st.write("Nothing waiting to sync.")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file with "
        "`SUPABASE_URL` and `SUPABASE_ANON_KEY`."
    )


if __name__ == "__main__":
    main()
