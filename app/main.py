"""
Streamlit Frontend for FinSight

Three steps for the user:
1. Describe a monthly budget (income, savings goal, expenses)
2. Read the AI analysis and ask follow-up questions
3. Compare the same budget across up to four other cities

All state lives in st.session_state and is lost on reload.
Every change to the comparison board goes through the orchestrator.
"""

import asyncio
from decimal import Decimal

import streamlit as st
from pydantic import ValidationError

from finsight.agents import GREETING, ChatMessage
from finsight.errors import FinSightError
from finsight.models.budget import (
    BudgetInput,
    BudgetInputChange,
    Expense,
    SavingsGoalType,
)
from finsight.models.comparison import CityEntry, CityEntryStatus
from finsight.orchestrator import (
    ComparisonOrchestrator,
    add_and_analyze,
    analyze_city,
    create_app_components,
    recompute_all,
)


# Page configuration
st.set_page_config(
    page_title="FinSight",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .primary-card {
        border-left: 5px solid #0ea5e9;
        padding-left: 10px;
    }
    .big-number {
        font-size: 2em;
        font-weight: bold;
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


def default_budget() -> BudgetInput:
    return BudgetInput(
        city="San Francisco",
        monthly_pre_tax_income=Decimal("6000"),
        savings_goal_type=SavingsGoalType.PERCENTAGE,
        savings_goal_value=Decimal("20"),
        expenses=[
            Expense(name="Rent/Mortgage", amount=Decimal("1500")),
            Expense(name="Groceries", amount=Decimal("400")),
            Expense(name="Utilities", amount=Decimal("150")),
        ],
    )


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components()


def format_currency(value) -> str:
    return f"${value:,.2f}"


def main():
    """Main application entry point."""
    try:
        engine, chat_agent, audit_logger = get_components()
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        st.info("Set GEMINI_API_KEY in your environment or .env file.")
        render_settings_page()
        st.stop()

    if "budget" not in st.session_state:
        st.session_state.budget = default_budget()
    if "orchestrator" not in st.session_state:
        st.session_state.orchestrator = None
    if "chat_history" not in st.session_state:
        st.session_state.chat_history = []

    st.sidebar.title("💸 FinSight")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🧾 Budget Setup", "📊 Analysis & Results", "🌎 City Comparison", "⚙️ Settings"],
        index=0,
    )

    if page == "🧾 Budget Setup":
        render_setup_page(engine, audit_logger)
    elif page == "📊 Analysis & Results":
        render_results_page(chat_agent)
    elif page == "🌎 City Comparison":
        render_comparison_page()
    elif page == "⚙️ Settings":
        render_settings_page()


def render_setup_page(engine, audit_logger):
    """Render the budget form."""
    st.title("🧾 Budget Setup")
    budget: BudgetInput = st.session_state.budget

    city = st.text_input("City", value=budget.city)
    income = st.number_input(
        "Monthly Pre-Tax Income ($)",
        value=float(budget.monthly_pre_tax_income) if budget.monthly_pre_tax_income is not None else None,
        min_value=0.0,
        step=100.0,
        placeholder="e.g., 6000",
    )

    col1, col2 = st.columns(2)
    with col1:
        goal_type = st.radio(
            "Savings Goal",
            options=list(SavingsGoalType),
            index=list(SavingsGoalType).index(budget.savings_goal_type),
            format_func=lambda t: "Percentage" if t == SavingsGoalType.PERCENTAGE else "Fixed Amount",
            horizontal=True,
        )
    with col2:
        goal_value = budget.savings_goal_value if goal_type == budget.savings_goal_type else None
        goal_value = st.number_input(
            "Percent of after-tax income" if goal_type == SavingsGoalType.PERCENTAGE else "Amount ($)",
            value=float(goal_value) if goal_value is not None else None,
            min_value=0.0,
            max_value=100.0 if goal_type == SavingsGoalType.PERCENTAGE else None,
        )

    st.markdown("### Monthly Expenses")
    expenses = []
    for expense in budget.expenses:
        c1, c2, c3 = st.columns([3, 2, 1])
        name = c1.text_input("Name", value=expense.name, key=f"name-{expense.id}")
        amount = c2.number_input(
            "Amount ($)",
            value=float(expense.amount) if expense.amount is not None else None,
            min_value=0.0,
            key=f"amount-{expense.id}",
        )
        if not c3.button("🗑️", key=f"remove-{expense.id}"):
            expenses.append(Expense(id=expense.id, name=name, amount=amount))

    try:
        st.session_state.budget = BudgetInput(
            city=city,
            monthly_pre_tax_income=income,
            savings_goal_type=goal_type,
            savings_goal_value=goal_value,
            expenses=expenses,
        )
    except ValidationError as e:
        st.error(f"Please check your budget: {e.errors()[0]['msg']}")
        return

    col1, col2, col3 = st.columns(3)
    if col1.button("➕ Add Expense"):
        st.session_state.budget = st.session_state.budget.apply_change(
            BudgetInputChange(expenses=st.session_state.budget.expenses + [Expense()])
        )
        st.rerun()
    if col2.button("↩️ Reset"):
        st.session_state.budget = default_budget()
        st.session_state.orchestrator = None
        st.session_state.chat_history = []
        st.rerun()
    if col3.button("✨ Generate Budget Plan", type="primary"):
        orchestrator = ComparisonOrchestrator(
            engine=engine,
            primary_input=st.session_state.budget,
            audit_logger=audit_logger,
        )
        with st.spinner("AI is analyzing your finances..."):
            run_async(analyze_city(orchestrator, orchestrator.primary.city))
        st.session_state.orchestrator = orchestrator
        st.session_state.chat_history = []
        st.success("Done! Open 'Analysis & Results'.")


def render_results_page(chat_agent):
    """Render the primary analysis and the chat."""
    st.title("📊 Your Personal Budget Analysis")
    orchestrator = st.session_state.orchestrator
    if orchestrator is None:
        st.info("Generate a budget plan first.")
        return

    entry = orchestrator.primary
    if entry.last_error:
        st.error(entry.last_error)
    analysis = entry.analysis
    if analysis is None:
        return

    st.markdown(f"*{analysis.summary}*")

    cols = st.columns(4)
    cols[0].metric("After-Tax Income", format_currency(analysis.calculated_after_tax_income))
    cols[1].metric("Total Taxes", format_currency(analysis.tax_breakdown.total))
    cols[2].metric("Savings", format_currency(analysis.savings_amount))
    cols[3].metric("Disposable Income", format_currency(analysis.disposable_income))

    with st.expander("🧮 Tax Breakdown"):
        st.markdown(f"- Federal: {format_currency(analysis.tax_breakdown.federal)}")
        st.markdown(f"- State: {format_currency(analysis.tax_breakdown.state)}")
        st.markdown(f"- Other (FICA, local): {format_currency(analysis.tax_breakdown.other)}")

    with st.expander("💵 Cash Flow", expanded=True):
        for line in entry.cash_flow:
            label = f"&nbsp;&nbsp;&nbsp;&nbsp;{line.label}" if line.detail else f"**{line.label}**"
            c1, c2 = st.columns([3, 1])
            c1.markdown(label)
            c2.markdown(format_currency(line.amount))

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("AI Recommendations")
        for tip in analysis.recommendations:
            st.markdown(f"✅ {tip}")
    with col2:
        st.subheader("Cash Flow Enhancement Tips")
        for tip in analysis.cashflow_advice:
            st.markdown(f"✅ {tip}")

    st.subheader("💬 Financial Chat")
    history: list[ChatMessage] = st.session_state.chat_history
    with st.chat_message("assistant"):
        st.write(GREETING)
    for message in history:
        with st.chat_message("user" if message.author == "user" else "assistant"):
            st.write(message.text)

    question = st.chat_input("Ask about your budget...")
    if question:
        reply = run_async(chat_agent.send(analysis, question, history))
        history.append(ChatMessage(author="user", text=question))
        history.append(ChatMessage(author="ai", text=reply.text))
        st.rerun()


def render_comparison_page():
    """Render the city comparison board."""
    st.title("🌎 Cost of Living Comparison")
    orchestrator: ComparisonOrchestrator = st.session_state.orchestrator
    if orchestrator is None or orchestrator.primary.analysis is None:
        st.info("Generate a budget plan first.")
        return

    st.markdown(
        "Compare how your budget stacks up in different cities. "
        "Adjust the pre-tax income per city to see how salary differences "
        "change your bottom line."
    )

    if orchestrator.can_add_city:
        with st.form("add-city", clear_on_submit=True):
            new_city = st.text_input("City Name", placeholder="e.g., Chicago")
            if st.form_submit_button("+ Add City") and new_city.strip():
                try:
                    with st.spinner(f"Analyzing {new_city}..."):
                        run_async(add_and_analyze(orchestrator, new_city))
                except FinSightError as e:
                    st.warning(e.user_message)

    if st.button("🔄 Recalculate All"):
        with st.spinner("Recalculating every city..."):
            run_async(recompute_all(orchestrator))

    entries = orchestrator.entries
    columns = st.columns(len(entries))
    for column, entry in zip(columns, entries):
        with column:
            render_city_card(orchestrator, entry)


def render_city_card(orchestrator: ComparisonOrchestrator, entry: CityEntry):
    """Render one city on the board."""
    title = f"{entry.city} (Primary)" if entry.is_primary else entry.city
    st.markdown(f"<div class='primary-card'><h4>{title}</h4></div>" if entry.is_primary else f"#### {title}",
                unsafe_allow_html=True)

    analysis = entry.analysis
    if analysis is not None:
        st.markdown(f"After-Tax Income: **{format_currency(analysis.calculated_after_tax_income)}**")
        st.markdown(f"Total Taxes: -{format_currency(analysis.tax_breakdown.total)}")
        st.markdown(f"Total Expenses: -{format_currency(analysis.total_expenses)}")
        st.markdown(f"Savings: -{format_currency(analysis.savings_amount)}")
        st.markdown(
            f"<span class='big-number'>{format_currency(analysis.disposable_income)}</span>",
            unsafe_allow_html=True,
        )
        st.caption(analysis.summary)
        if entry.has_pending_edits:
            st.caption("✏️ Edited since this analysis; recalculate to update.")
    elif entry.status == CityEntryStatus.FAILED:
        st.error("Could not analyze city.")

    if entry.last_error:
        st.error(entry.last_error)

    income = st.number_input(
        "Monthly Pre-Tax Income",
        value=float(entry.input.monthly_pre_tax_income) if entry.input.monthly_pre_tax_income is not None else None,
        min_value=0.0,
        key=f"income-{entry.key}",
    )
    if st.button("Recalculate", key=f"recalc-{entry.key}"):
        try:
            orchestrator.edit_input(entry.city, {"monthly_pre_tax_income": income})
            with st.spinner(f"Analyzing {entry.city}..."):
                run_async(analyze_city(orchestrator, entry.city))
        except FinSightError as e:
            st.warning(e.user_message)
        st.rerun()

    if not entry.is_primary and st.button("Remove", key=f"remove-{entry.key}"):
        orchestrator.remove_city(entry.city)
        st.rerun()


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    from finsight.config import get_settings, validate_all_settings

    status = validate_all_settings()

    services = [
        ("Gemini (AI)", "gemini"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if status.get("app"):
        app_settings = get_settings().app
        st.markdown("### Comparison")
        st.markdown(f"- Max comparison cities: {app_settings.max_comparison_cities}")
        timeout = app_settings.analysis_timeout_seconds
        st.markdown(f"- Analysis timeout: {f'{timeout:g}s' if timeout else 'none'}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
