"""
Streamlit Frontend for Kakeibo

The household budget book people open every day.

DESIGN PRINCIPLES:
1. One month on screen at a time
2. Clear error messages next to the field that caused them
3. AI output only pre-fills forms; nothing is saved without "Save"
4. No business rules here: validation, storage and arithmetic live in kakeibo/
"""

import asyncio
from datetime import date
from typing import Optional

import streamlit as st

from kakeibo.aggregation import MonthlySummary, format_yen
from kakeibo.config import validate_all_settings
from kakeibo.models.records import Category, ExpenseType, MonthSelector, fixed_categories
from kakeibo.orchestrator import AssistantFlow, LedgerFlow, create_app_components


# Page configuration
st.set_page_config(
    page_title="Kakeibo",
    page_icon="💴",
    layout="wide",
    initial_sidebar_state="expanded",
)


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


def show_issues(result) -> None:
    """Show validation issues under the form."""
    for issue in result.issues:
        if issue.severity == "error":
            st.error(issue.message)
        else:
            st.warning(issue.message)


def main():
    """Main application entry point."""
    ledger_flow, assistant_flow, _ = get_components()

    if "month" not in st.session_state:
        st.session_state.month = MonthSelector.current()

    st.sidebar.title("💴 Kakeibo")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Month", "➕ Add Record", "🧾 Scan Receipt", "🎯 Budgets",
         "📌 Fixed Costs", "💡 Assistant", "⚙️ Settings"],
        index=0,
    )

    render_month_selector()

    if page == "📊 Month":
        render_month_page(ledger_flow)
    elif page == "➕ Add Record":
        render_add_page(ledger_flow)
    elif page == "🧾 Scan Receipt":
        render_receipt_page(ledger_flow, assistant_flow)
    elif page == "🎯 Budgets":
        render_budgets_page(ledger_flow)
    elif page == "📌 Fixed Costs":
        render_fixed_costs_page(ledger_flow)
    elif page == "💡 Assistant":
        render_assistant_page(assistant_flow)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_month_selector():
    month: MonthSelector = st.session_state.month

    st.sidebar.markdown("---")
    col1, col2, col3 = st.sidebar.columns([1, 2, 1])
    with col1:
        if st.button("◀", key="prev_month"):
            st.session_state.month = month.previous()
            st.rerun()
    with col2:
        st.markdown(f"**{month.display_label}**")
    with col3:
        if st.button("▶", key="next_month", disabled=not month.can_advance()):
            st.session_state.month = month.next()
            st.rerun()


def render_summary_metrics(summary: MonthlySummary):
    col1, col2, col3 = st.columns(3)
    col1.metric("Income", format_yen(summary.total_income))
    col2.metric("Spending", format_yen(summary.total_spent))
    col3.metric("Balance", format_yen(summary.balance))

    col1, col2 = st.columns(2)
    col1.metric("Fixed costs", format_yen(summary.fixed_cost))
    col2.metric("Variable costs", format_yen(summary.variable_cost))

    if summary.overall_budget.is_set:
        st.markdown(
            f"**Budget:** {format_yen(summary.overall_budget.limit)} · "
            f"{format_yen(summary.remaining_budget)} left"
        )
        st.progress(min(summary.budget_progress, 100.0) / 100)
        if summary.overall_budget.is_over:
            st.error("You are over budget this month.")


def render_month_page(ledger_flow: LedgerFlow):
    """Render the month overview."""
    month: MonthSelector = st.session_state.month
    summary = ledger_flow.monthly_summary(month)

    st.title(f"📊 {month.display_label}")
    render_summary_metrics(summary)

    unposted = ledger_flow.store.unposted_fixed_costs(month)
    if unposted:
        if st.button(f"📌 Post {len(unposted)} fixed cost(s) for this month"):
            ledger_flow.post_fixed_costs(month)
            st.rerun()

    if summary.unclassified_categories:
        st.warning(
            "Some expenses use categories that no longer exist and were counted "
            f"as variable: {', '.join(summary.unclassified_categories)}"
        )

    breakdown = summary.category_breakdown()
    if breakdown:
        st.markdown("### By category")
        st.bar_chart({"Amount (¥)": dict(breakdown)})

        for status in summary.category_budgets:
            if status.is_set:
                st.markdown(
                    f"**{status.category}:** {format_yen(status.spent)} / "
                    f"{format_yen(status.limit)}"
                )
                st.progress(min(status.progress, 100.0) / 100)

    st.markdown("### Expenses")
    if not summary.expenses:
        st.info("No expenses recorded this month.")
    for expense in summary.expenses:
        col1, col2, col3, col4 = st.columns([4, 2, 1, 1])
        col1.markdown(
            f"{expense.date.isoformat()} · **{expense.category}** · "
            f"{expense.description or '-'}"
        )
        col2.markdown(format_yen(expense.amount))
        if col3.button("✏️", key=f"edit_exp_{expense.id}"):
            st.session_state.editing_expense = expense.id
            st.rerun()
        if col4.button("🗑️", key=f"del_exp_{expense.id}"):
            ledger_flow.delete_expense(expense.id)
            st.rerun()
    render_expense_editor(ledger_flow)

    st.markdown("### Incomes")
    if not summary.incomes:
        st.info("No income recorded this month.")
    for income in summary.incomes:
        col1, col2, col3, col4 = st.columns([4, 2, 1, 1])
        col1.markdown(f"{income.date.isoformat()} · {income.description or '-'}")
        col2.markdown(format_yen(income.amount))
        if col3.button("✏️", key=f"edit_inc_{income.id}"):
            st.session_state.editing_income = income.id
            st.rerun()
        if col4.button("🗑️", key=f"del_inc_{income.id}"):
            ledger_flow.delete_income(income.id)
            st.rerun()
    render_income_editor(ledger_flow)

    with st.expander("📤 Share this month"):
        st.text_area("Summary", value=ledger_flow.share_text(month), height=240)


def render_expense_editor(ledger_flow: LedgerFlow):
    """Edit form for the expense picked with ✏️, if any."""
    expense_id = st.session_state.get("editing_expense")
    if expense_id is None:
        return
    expense = ledger_flow.store.get_expense(expense_id)
    if expense is None:
        st.session_state.editing_expense = None
        return

    st.markdown(f"#### Edit expense from {expense.date.isoformat()}")
    if expense.known_category is None:
        st.warning(f"'{expense.category}' is no longer a category; please pick a new one.")
    if expense_form(ledger_flow, expense.as_prefill(), f"edit_exp_form_{expense.id}", expense.id):
        st.session_state.editing_expense = None
        st.rerun()
    if st.button("Cancel", key=f"cancel_exp_{expense.id}"):
        st.session_state.editing_expense = None
        st.rerun()


def render_income_editor(ledger_flow: LedgerFlow):
    """Edit form for the income picked with ✏️, if any."""
    income_id = st.session_state.get("editing_income")
    if income_id is None:
        return
    income = ledger_flow.store.get_income(income_id)
    if income is None:
        st.session_state.editing_income = None
        return

    st.markdown(f"#### Edit income from {income.date.isoformat()}")
    if income_form(ledger_flow, income.as_prefill(), f"edit_inc_form_{income.id}", income.id):
        st.session_state.editing_income = None
        st.rerun()
    if st.button("Cancel", key=f"cancel_inc_{income.id}"):
        st.session_state.editing_income = None
        st.rerun()


def expense_form(
    ledger_flow: LedgerFlow,
    prefill: dict,
    key: str,
    expense_id: Optional[str] = None,
) -> bool:
    """Expense form; returns True once something was saved. With expense_id it edits."""
    categories = list(Category)
    with st.form(key):
        amount = st.number_input(
            "Amount (¥) *",
            min_value=0,
            step=100,
            value=int(prefill.get("amount") or 0),
        )
        day = st.date_input("Date *", value=prefill.get("date") or date.today())
        category = st.selectbox(
            "Category *",
            options=categories,
            index=categories.index(prefill.get("category") or Category.FOOD),
            format_func=lambda c: (
                f"{c.value} ({'fixed' if c in fixed_categories() else 'variable'})"
            ),
        )
        description = st.text_input("Description *", value=prefill.get("description", ""))
        submitted = st.form_submit_button("💾 Save expense", type="primary")

    if not submitted:
        return False

    expense, result = ledger_flow.submit_expense(
        amount, day, category, description, expense_id=expense_id
    )
    show_issues(result)
    if expense is None:
        return False
    st.success(f"Saved {format_yen(expense.amount)} for {expense.category}.")
    return True


def income_form(
    ledger_flow: LedgerFlow,
    prefill: dict,
    key: str,
    income_id: Optional[str] = None,
) -> bool:
    """Income form; returns True once something was saved. With income_id it edits."""
    with st.form(key):
        amount = st.number_input(
            "Amount (¥) *",
            min_value=0,
            step=1000,
            value=int(prefill.get("amount") or 0),
        )
        day = st.date_input("Date *", value=prefill.get("date") or date.today())
        description = st.text_input("Description", value=prefill.get("description", ""))
        submitted = st.form_submit_button("💾 Save income", type="primary")

    if not submitted:
        return False

    income, result = ledger_flow.submit_income(amount, day, description, income_id=income_id)
    show_issues(result)
    if income is None:
        return False
    st.success(f"Saved income of {format_yen(income.amount)}.")
    return True


def render_add_page(ledger_flow: LedgerFlow):
    """Render the manual entry page."""
    st.title("➕ Add Record")
    expense_tab, income_tab = st.tabs(["Expense", "Income"])

    with expense_tab:
        expense_form(ledger_flow, {}, "expense_form")

    with income_tab:
        income_form(ledger_flow, {}, "income_form")


def render_receipt_page(ledger_flow: LedgerFlow, assistant_flow: AssistantFlow):
    """Render the receipt scanning page."""
    st.title("🧾 Scan Receipt")
    st.markdown("Take or upload a photo of a receipt. You can edit everything before saving.")

    if "receipt_prefill" not in st.session_state:
        st.session_state.receipt_prefill = None

    photo = st.camera_input("Take a photo") or st.file_uploader(
        "...or upload one",
        type=["jpg", "jpeg", "png", "webp"],
    )

    if photo is not None and st.button("🔍 Read receipt", type="primary"):
        with st.spinner("Reading your receipt..."):
            extraction, message = run_async(
                assistant_flow.scan_receipt(
                    image_bytes=photo.getvalue(),
                    filename=photo.name,
                    mime_type=photo.type,
                )
            )
        if extraction is None:
            st.error(message)
        else:
            st.info(message)
            st.session_state.receipt_prefill = extraction.as_prefill()

    if st.session_state.receipt_prefill is not None:
        if expense_form(ledger_flow, st.session_state.receipt_prefill, "receipt_form"):
            st.session_state.receipt_prefill = None


def render_budgets_page(ledger_flow: LedgerFlow):
    """Render the budget settings page."""
    st.title("🎯 Budgets")
    st.markdown("Leave a field at 0 for no budget.")

    budgets = ledger_flow.store.budgets
    with st.form("budget_form"):
        overall = st.number_input(
            "Overall monthly budget (¥)",
            min_value=0,
            step=1000,
            value=budgets.overall,
        )
        category_values = {}
        for expense_type in ExpenseType:
            st.markdown(f"**{expense_type.value} costs**")
            for category in Category:
                if (category in fixed_categories()) != (expense_type is ExpenseType.FIXED):
                    continue
                category_values[category] = st.number_input(
                    category.value,
                    min_value=0,
                    step=1000,
                    value=budgets.limit_for(category.value),
                )
        submitted = st.form_submit_button("💾 Save budgets", type="primary")

    if submitted:
        saved, result = ledger_flow.save_budgets(overall, category_values)
        show_issues(result)
        if saved is not None:
            st.success("Budgets saved.")


def render_fixed_costs_page(ledger_flow: LedgerFlow):
    """Render the recurring fixed cost page."""
    st.title("📌 Fixed Costs")
    st.markdown("These are added as expenses each month when you post them.")

    templates = ledger_flow.store.fixed_costs
    if not templates:
        st.info("No fixed costs set up yet.")
    for template in templates:
        col1, col2, col3, col4 = st.columns([4, 2, 1, 1])
        col1.markdown(f"**{template.label}** · {template.category.value}")
        col2.markdown(format_yen(template.amount))
        if col3.button("✏️", key=f"edit_fc_{template.id}"):
            st.session_state.editing_fixed_cost = template.id
            st.rerun()
        if col4.button("🗑️", key=f"del_fc_{template.id}"):
            ledger_flow.delete_fixed_cost(template.id)
            st.rerun()

    editing = ledger_flow.store.get_fixed_cost(st.session_state.get("editing_fixed_cost") or "")
    if editing is not None:
        st.markdown(f"#### Edit {editing.label}")
        if fixed_cost_form(ledger_flow, editing.as_prefill(), f"edit_fc_form_{editing.id}", editing.id):
            st.session_state.editing_fixed_cost = None
            st.rerun()
        if st.button("Cancel", key=f"cancel_fc_{editing.id}"):
            st.session_state.editing_fixed_cost = None
            st.rerun()
    else:
        st.markdown("#### New fixed cost")
        if fixed_cost_form(ledger_flow, {}, "fixed_cost_form"):
            st.rerun()


def fixed_cost_form(
    ledger_flow: LedgerFlow,
    prefill: dict,
    key: str,
    template_id: Optional[str] = None,
) -> bool:
    """Fixed cost form; returns True once something was saved. With template_id it edits."""
    categories = fixed_categories()
    with st.form(key):
        amount = st.number_input(
            "Monthly amount (¥) *",
            min_value=0,
            step=1000,
            value=int(prefill.get("amount") or 0),
        )
        category = st.selectbox(
            "Category *",
            options=categories,
            index=categories.index(prefill.get("category") or categories[0]),
            format_func=lambda c: c.value,
        )
        description = st.text_input("Description", value=prefill.get("description", ""))
        label = "💾 Save fixed cost" if template_id else "➕ Add fixed cost"
        submitted = st.form_submit_button(label, type="primary")

    if not submitted:
        return False

    template, result = ledger_flow.submit_fixed_cost(
        amount, category, description, template_id=template_id
    )
    show_issues(result)
    return template is not None


def render_assistant_page(assistant_flow: AssistantFlow):
    """Render the AI assistant page."""
    month: MonthSelector = st.session_state.month
    st.title("💡 Assistant")

    st.markdown(f"### Savings tips for {month.display_label}")
    if st.button("✨ Get tips", type="primary"):
        with st.spinner("Thinking..."):
            st.session_state.tips = run_async(assistant_flow.savings_tips(month))
    if st.session_state.get("tips"):
        st.markdown(st.session_state.tips)

    st.markdown("---")
    st.markdown("### Sales nearby")
    use_coordinates = st.toggle("Use coordinates instead of an address")
    address = latitude = longitude = None
    if use_coordinates:
        col1, col2 = st.columns(2)
        latitude = col1.number_input("Latitude", min_value=-90.0, max_value=90.0, value=35.68)
        longitude = col2.number_input("Longitude", min_value=-180.0, max_value=180.0, value=139.76)
    else:
        address = st.text_input("Address or area", placeholder="e.g. Setagaya, Tokyo")

    if st.button("🔎 Find sales"):
        with st.spinner("Searching for sales..."):
            info, message = run_async(
                assistant_flow.sales_info(address=address, latitude=latitude, longitude=longitude)
            )
        if info is None:
            st.error(message)
        else:
            st.markdown(info.text)
            if info.sources:
                st.markdown("**Sources**")
                for source in info.sources:
                    st.markdown(f"- [{source.title or source.uri}]({source.uri})")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Gemini (AI features)", "gemini"),
        ("Storage", "storage"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Ready")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "Create a `.env` file with `GEMINI_API_KEY` to enable the AI features. "
        "Records are stored under `KAKEIBO_STORAGE_DATA_DIR` (default `~/.kakeibo`)."
    )


if __name__ == "__main__":
    main()
