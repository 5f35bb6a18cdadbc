"""
Streamlit Frontend for the Exemption Tracker

The dashboard freelancers use to keep their foreign income under the
annual exemption limit.

DESIGN PRINCIPLES:
1. The limit status is always visible
2. Every recorded entry shows the rate it was converted at
3. Clear error messages in simple language
4. Works without storage credentials (demo mode)

Each browser session gets its own flows and ledger; nothing is shared
between sessions except the storage backend.
"""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import streamlit as st

from exemption_tracker.config import validate_all_settings
from exemption_tracker.export import ExportError
from exemption_tracker.ledger import InvalidEntry, format_amount
from exemption_tracker.models.income import (
    DOMESTIC_CURRENCY,
    CompanyStatus,
    Currency,
    ExportKind,
    IncomeSource,
    NotificationSeverity,
    ThresholdState,
)
from exemption_tracker.notifications import latest
from exemption_tracker.onboarding import SignupWizard
from exemption_tracker.orchestrator import (
    IncomeTrackingFlow,
    RegistrationFlow,
    create_app_components,
)
from exemption_tracker.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="Exemption Tracker",
    page_icon="💱",
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
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
    .info-box {
        padding: 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
    }
</style>
""", unsafe_allow_html=True)


SEVERITY_ICONS = {
    NotificationSeverity.INFO: "🔔",
    NotificationSeverity.WARNING: "⚠️",
    NotificationSeverity.SUCCESS: "✅",
}

STATE_BOXES = {
    ThresholdState.NORMAL: "info-box",
    ThresholdState.APPROACHING: "warning-box",
    ThresholdState.EXCEEDED: "error-box",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def get_components() -> tuple[IncomeTrackingFlow, RegistrationFlow, bool]:
    """Get or create this session's components."""
    if "components" not in st.session_state:
        income_flow, registration_flow, sheets_client = create_app_components(use_storage=True)
        st.session_state.components = (income_flow, registration_flow, sheets_client is not None)
    return st.session_state.components


def main():
    """Main application entry point."""
    income_flow, registration_flow, has_storage = get_components()

    if "user_id" not in st.session_state:
        st.session_state.user_id = None
        st.session_state.profile = None

    st.sidebar.title("💱 Exemption Tracker")
    if not has_storage:
        st.sidebar.caption("Demo mode: entries are kept for this session only")
    st.sidebar.markdown("---")

    if st.session_state.user_id is None:
        render_signup_page(income_flow, registration_flow)
        return

    unread = income_flow.notifications.unread_count
    page = st.sidebar.radio(
        "Navigate to:",
        [
            "📊 Dashboard",
            "💱 Exchange Rates",
            "✅ Tasks",
            "📥 Downloads",
            f"🔔 Notifications ({unread})",
            "⚙️ Settings",
        ],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How it works:**
        1. Fetch today's exchange rates
        2. Record each foreign payment
        3. Watch the exemption limit bar
        """
    )

    if page == "📊 Dashboard":
        render_dashboard_page(income_flow)
    elif page == "💱 Exchange Rates":
        render_rates_page(income_flow)
    elif page == "✅ Tasks":
        render_tasks_page(income_flow)
    elif page == "📥 Downloads":
        render_downloads_page(income_flow)
    elif page.startswith("🔔"):
        render_notifications_page(income_flow)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_signup_page(income_flow: IncomeTrackingFlow, registration_flow: RegistrationFlow):
    """Render the four-step signup wizard."""
    if "wizard" not in st.session_state:
        st.session_state.wizard = SignupWizard()
    wizard: SignupWizard = st.session_state.wizard

    st.title(wizard.title)
    st.progress(wizard.progress, text=f"Step {wizard.current_step} / {wizard.total_steps}")

    data = wizard.data
    step = wizard.current_step

    with st.form(f"signup_step_{step}"):
        if step == 1:
            first_name = st.text_input("First name", value=data.get("first_name", ""))
            last_name = st.text_input("Last name", value=data.get("last_name", ""))
            national_id = st.text_input(
                "National ID",
                value=data.get("national_id", ""),
                max_chars=11,
            )
            fields = dict(first_name=first_name, last_name=last_name, national_id=national_id)
        elif step == 2:
            tax_office = st.text_input("Tax office", value=data.get("tax_office", ""))
            tax_id = st.text_input("Tax ID (optional)", value=data.get("tax_id", ""))
            address = st.text_area("Address", value=data.get("address", ""))
            fields = dict(tax_office=tax_office, tax_id=tax_id, address=address)
        elif step == 3:
            phone = st.text_input("Phone", value=data.get("phone", ""))
            email = st.text_input("Email", value=data.get("email", ""))
            password = st.text_input("Password", type="password")
            fields = dict(phone=phone, email=email, password=password)
        else:
            sources = list(IncomeSource)
            statuses = list(CompanyStatus)
            income_source = st.selectbox(
                "Income source",
                options=sources,
                index=sources.index(IncomeSource(data["income_source"])),
                format_func=lambda x: x.value.replace("_", " ").title(),
            )
            company_status = st.selectbox(
                "Company status",
                options=statuses,
                index=statuses.index(CompanyStatus(data["company_status"])),
                format_func=lambda x: x.value.replace("_", " ").title(),
            )
            fields = dict(income_source=income_source, company_status=company_status)

        col1, col2 = st.columns(2)
        with col1:
            back = st.form_submit_button("← Back", disabled=step == 1)
        with col2:
            label = "Create account" if wizard.is_last_step else "Next →"
            forward = st.form_submit_button(label, type="primary")

    if back:
        wizard.back()
        st.rerun()

    if forward:
        wizard.update(**fields)
        issues = wizard.next()
        if issues:
            for issue in issues:
                st.error(issue.message)
            return

        if step < wizard.total_steps:
            st.rerun()

        user_id = str(uuid4())
        try:
            profile = run_async(registration_flow.register(wizard, user_id))
        except (ValueError, StorageError) as e:
            st.error(f"❌ Could not create your account: {e}")
            return

        run_async(income_flow.load(user_id))
        st.session_state.user_id = user_id
        st.session_state.profile = profile
        del st.session_state.wizard
        st.rerun()


def render_limit_status(income_flow: IncomeTrackingFlow):
    """Exemption limit progress bar and headline numbers."""
    status = income_flow.ledger.threshold_status()

    col1, col2, col3 = st.columns(3)
    col1.metric("Total income", f"{format_amount(status.total, 2)} {DOMESTIC_CURRENCY}")
    col2.metric("Exemption limit", f"{format_amount(status.threshold)} {DOMESTIC_CURRENCY}")
    col3.metric("Remaining", f"{format_amount(status.headroom, 2)} {DOMESTIC_CURRENCY}")

    st.progress(min(status.usage_ratio, 1.0), text=f"{status.usage_ratio:.0%} of the limit used")

    if status.state != ThresholdState.NORMAL:
        notice = latest(
            income_flow.notifications,
            titles=(income_flow.ledger.EXCEEDED_TITLE, income_flow.ledger.APPROACHING_TITLE),
        )
        if notice is not None:
            st.markdown(f"""
            <div class="{STATE_BOXES[status.state]}">
                <h4>{notice.title}</h4>
                <p>{notice.message}</p>
            </div>
            """, unsafe_allow_html=True)


def render_dashboard_page(income_flow: IncomeTrackingFlow):
    """Render the income tracker."""
    st.title("📊 Income Dashboard")
    render_limit_status(income_flow)

    st.markdown("---")
    st.subheader("➕ Record income")

    with st.form("income_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            entry_date = st.date_input("Date", value=date.today())
            description = st.text_input("Description", placeholder="Stripe payout")
        with col2:
            amount = st.number_input("Amount", min_value=0.0, step=10.0, format="%.2f")
            currency = st.selectbox("Currency", options=list(Currency), format_func=lambda c: c.value)

        suggested = income_flow.rate_for(currency)
        exchange_rate = st.text_input(
            f"Rate ({DOMESTIC_CURRENCY} per unit)",
            value=str(suggested) if suggested is not None else "",
            help="Fetch rates on the Exchange Rates page to pre-fill this",
        )
        submitted = st.form_submit_button("💾 Record", type="primary")

    if submitted:
        data = {
            "date": entry_date,
            "description": description,
            "amount": Decimal(str(amount)),
            "currency": currency,
            "exchange_rate": exchange_rate,
        }
        try:
            entry, result = run_async(
                income_flow.record_income(st.session_state.user_id, data)
            )
        except InvalidEntry as e:
            st.error(str(e))
        else:
            st.success(
                f"✅ {entry.amount} {entry.currency.value} = "
                f"{entry.domestic_value:.2f} {DOMESTIC_CURRENCY} recorded"
            )
            for warning in result.warnings:
                st.warning(f"⚠️ {warning}")

    st.markdown("---")
    render_charts(income_flow)
    render_entries_table(income_flow)


def render_charts(income_flow: IncomeTrackingFlow):
    """Monthly and per-currency breakdowns."""
    buckets = income_flow.ledger.monthly_breakdown()
    if not buckets:
        return

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Monthly income")
        st.bar_chart(
            {b.month: float(b.total_domestic_value) for b in buckets},
        )
    with col2:
        st.subheader("By currency")
        st.bar_chart(
            {c.value: float(v) for c, v in income_flow.ledger.currency_distribution().items()},
        )


def render_entries_table(income_flow: IncomeTrackingFlow):
    st.subheader("📋 Entries")
    entries = income_flow.ledger.entries()
    if not entries:
        st.info("No income recorded yet.")
        return

    st.dataframe(
        [
            {
                "Date": e.date.isoformat(),
                "Description": e.description,
                "Amount": f"{e.amount} {e.currency.value}",
                "Rate": str(e.exchange_rate),
                "Domestic Value": f"{format_amount(e.domestic_value, 2)} {DOMESTIC_CURRENCY}",
            }
            for e in entries
        ],
        use_container_width=True,
        hide_index=True,
    )


def render_rates_page(income_flow: IncomeTrackingFlow):
    """Render the exchange rate panel."""
    st.title("💱 Exchange Rates")

    if st.button("🔄 Fetch today's rates"):
        with st.spinner("Fetching rates..."):
            run_async(income_flow.fetch_rates())

    table = income_flow.rates
    if table is None:
        st.info("No rates fetched yet.")
        return

    st.caption(f"Source: {table.source.upper()} · {table.fetched_at:%Y-%m-%d %H:%M} UTC")
    for quote in table.quotes:
        col1, col2, col3 = st.columns(3)
        col1.markdown(f"**{quote.code.value}** {quote.name}")
        col2.metric("Buying", f"{quote.buying:.4f}")
        col3.metric("Selling", f"{quote.selling:.4f}")


def render_tasks_page(income_flow: IncomeTrackingFlow):
    """Render the compliance checklist."""
    st.title("✅ Compliance Tasks")
    tasks = income_flow.tasks
    st.caption(f"{tasks.completed_count}/{len(tasks.tasks)} completed")

    for task in tasks.tasks:
        checked = st.checkbox(
            task.text,
            value=task.completed,
            key=f"task_{task.id}",
            help=task.details,
        )
        if checked != task.completed:
            run_async(income_flow.toggle_task(task.id))
            st.rerun()
        if task.completed and task.completed_date:
            st.caption(f"✓ Completed on {task.completed_date:%d.%m.%Y}")


def render_downloads_page(income_flow: IncomeTrackingFlow):
    """Render the report and petition downloads."""
    st.title("📥 Downloads")

    options = [
        (ExportKind.SPREADSHEET, "📗 Income report (Excel)", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
        (ExportKind.CSV, "📄 Income report (CSV)", "text/csv"),
        (ExportKind.DOCUMENT, "📝 Tax office petition (PDF)", "application/pdf"),
    ]

    for kind, label, mime in options:
        try:
            content, filename = run_async(
                income_flow.export(kind, profile=st.session_state.profile)
            )
        except ExportError as e:
            st.error(f"❌ {label}: {e}")
            continue
        st.download_button(label, data=content, file_name=filename, mime=mime)


def render_notifications_page(income_flow: IncomeTrackingFlow):
    """Render the notification list."""
    st.title("🔔 Notifications")
    center = income_flow.notifications

    if st.button("Clear all"):
        center.clear()
        st.rerun()

    for notification in center.notifications:
        icon = SEVERITY_ICONS[notification.severity]
        with st.container(border=True):
            st.markdown(f"{icon} **{notification.title}**")
            st.write(notification.message)
            st.caption(f"{notification.timestamp:%Y-%m-%d %H:%M}")
        center.mark_as_read(notification.id)


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    status = validate_all_settings()

    sections = [
        ("Exemption threshold", "exemption"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Exchange rates", "rates"),
        ("Application", "app"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
