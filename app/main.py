"""
Streamlit Frontend for Expense Tracker

The browser client: record expenses against categories, see them grouped
by category with a running total and a per-category chart, and manage the
category list.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every failure shows its error kind
3. The grouped list always comes from the latest successful reload
4. Editing an expense removes the original first; cancelling loses it
"""

import asyncio

import streamlit as st

from expense_tracker.audit import configure_logging
from expense_tracker.config import get_settings
from expense_tracker.errors import ExpenseTrackerError
from expense_tracker.models.expense import format_amount
from expense_tracker.orchestrator import AppComponents, create_app_components
from expense_tracker.services.storage import InMemoryDatabase
from expense_tracker.validation import ExpenseValidator


st.set_page_config(
    page_title="Expense Tracker",
    page_icon="💵",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
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


def show_error(prefix: str, error: Exception):
    """Errors always carry their kind, e.g. 'HasDependentExpenses: ...'."""
    if isinstance(error, ExpenseTrackerError):
        st.error(f"{prefix}: {error}")
    else:
        st.error(f"{prefix}: {type(error).__name__}: {error}")


@st.cache_resource
def get_shared_database() -> InMemoryDatabase:
    """One in-memory database for every browser session of this process."""
    return InMemoryDatabase()


@st.cache_resource
def setup_logging() -> None:
    settings = get_settings().app
    configure_logging("DEBUG" if settings.debug_mode else settings.log_level)


def create_session_components() -> AppComponents:
    settings = get_settings().app
    try:
        components = create_app_components(memory_db=get_shared_database())
        run_async(components.startup(seed_defaults=settings.seed_default_categories))
    except Exception as e:
        st.error(f"Failed to initialize {settings.storage_backend} storage: {e}")
        st.warning("Falling back to in-memory storage. Nothing will be persisted.")
        components = create_app_components(backend="memory", memory_db=get_shared_database())
        run_async(components.startup(seed_defaults=settings.seed_default_categories))
    return components


def get_components() -> AppComponents:
    """
    Get or create this browser session's components.

    Components hold a write lock and a cached snapshot, so they are kept in
    st.session_state rather than shared between sessions. Sessions only
    share the underlying storage.
    """
    setup_logging()
    if "components" not in st.session_state:
        st.session_state.components = create_session_components()
    return st.session_state.components


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("💵 Expense Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📋 Expenses", "🏷️ Categories", "⚙️ Settings"],
        index=0,
    )

    if page == "📋 Expenses":
        render_expense_form(components)
        render_expenses_page(components)
    elif page == "🏷️ Categories":
        render_categories_page(components)
    elif page == "⚙️ Settings":
        render_settings_page(components)


def render_expense_form(components: AppComponents):
    """Add-expense form; doubles as the resubmission form of a pending edit."""
    snapshot = components.projector.snapshot
    pending = st.session_state.get("pending_edit")

    if pending is not None:
        st.title("✏️ Edit Expense")
        st.markdown("""
        <div class="warning-box">
            <p>The original expense has already been removed.
            <strong>Save</strong> to record the edited values, or
            <strong>Cancel</strong> to discard it permanently.</p>
        </div>
        """, unsafe_allow_html=True)
        draft = pending.draft
    else:
        st.title("➕ Add Expense")
        draft = {"description": "", "amount": "", "payee": "", "category_reference_id": None}

    categories = list(snapshot.categories)
    reference_ids = [c.reference_id for c in categories]
    default_index = (
        reference_ids.index(draft["category_reference_id"])
        if draft["category_reference_id"] in reference_ids
        else None
    )

    with st.form("expense-form", clear_on_submit=pending is None):
        col1, col2 = st.columns(2)
        with col1:
            description = st.text_input("Description *", value=draft["description"])
            amount = st.text_input("Amount *", value=draft["amount"], placeholder="0.00")
        with col2:
            payee = st.text_input("Payee *", value=draft["payee"])
            category = st.selectbox(
                "Category *",
                options=categories,
                index=default_index,
                format_func=lambda c: c.name,
                placeholder="Select a category",
            )
        submitted = st.form_submit_button("💾 Save", type="primary")

    if pending is not None and st.button("✖️ Cancel edit"):
        run_async(components.expense_flow.abandon_edit(pending))
        st.session_state.pending_edit = None
        st.warning("Edit cancelled. The original expense was not restored.")
        st.rerun()

    if not submitted:
        return

    reference_id = category.reference_id if category is not None else None
    try:
        if pending is not None:
            _, expense = run_async(components.expense_flow.resubmit_edit(
                pending,
                description=description,
                amount=amount,
                payee=payee,
                category_reference_id=reference_id,
            ))
            st.session_state.pending_edit = None
        else:
            expense = run_async(components.expense_flow.add_expense(
                description=description,
                amount=amount,
                payee=payee,
                category_reference_id=reference_id,
            ))
        st.success(f"Expense saved: {expense.description} (${expense.amount_str})")
        st.rerun()
    except ExpenseTrackerError as e:
        if getattr(e, "issues", None):
            st.error(ExpenseValidator.get_user_friendly_summary(e))
        else:
            show_error("Error saving expense", e)


def render_expenses_page(components: AppComponents):
    """Grouped list, total and per-category chart."""
    st.markdown("---")
    st.subheader("📋 Expenses by Category")

    if st.button("🔄 Refresh"):
        try:
            run_async(components.projector.reload())
        except ExpenseTrackerError as e:
            show_error("Error loading expenses", e)

    snapshot = components.projector.snapshot
    if snapshot.expense_count() == 0:
        st.info("No expenses found.")
        return

    editing = st.session_state.get("pending_edit") is not None

    for category in snapshot.categories:
        bucket = snapshot.bucket(category.reference_id)
        if not bucket:
            continue
        st.markdown(f"**{category.name}**")
        for index, expense in enumerate(bucket):
            col1, col2, col3 = st.columns([6, 1, 1])
            with col1:
                st.write(f"{expense.description}: ${expense.amount_str} - {expense.payee}")
            with col2:
                edit_key = f"edit-{snapshot.version}-{category.reference_id}-{index}"
                if st.button("Edit", key=edit_key, disabled=editing):
                    try:
                        st.session_state.pending_edit = run_async(
                            components.expense_flow.begin_edit(category.reference_id, index)
                        )
                        st.rerun()
                    except ExpenseTrackerError as e:
                        show_error("Error editing expense", e)
            with col3:
                remove_key = f"remove-{snapshot.version}-{category.reference_id}-{index}"
                if st.button("X", key=remove_key, disabled=editing):
                    try:
                        run_async(components.expense_flow.remove_expense(
                            category.reference_id, index
                        ))
                        st.rerun()
                    except ExpenseTrackerError as e:
                        show_error("Failed to delete expense", e)

    st.markdown("---")
    st.markdown("### Total")
    st.markdown(
        f'<p class="big-number">${format_amount(components.projector.totals())}</p>',
        unsafe_allow_html=True,
    )

    chart_data = {
        category.name: float(total)
        for category, total in components.projector.category_totals()
        if total > 0
    }
    if chart_data:
        st.bar_chart(chart_data)


def render_categories_page(components: AppComponents):
    """Add, rename and delete categories."""
    st.title("🏷️ Categories")

    with st.form("category-form", clear_on_submit=True):
        new_name = st.text_input("New category name")
        if st.form_submit_button("Add Category", type="primary"):
            try:
                run_async(components.category_flow.add_category(new_name))
                st.success("Category added successfully!")
            except ExpenseTrackerError as e:
                show_error("Error adding category", e)

    st.markdown("---")

    for category in components.projector.snapshot.categories:
        col1, col2, col3 = st.columns([4, 1, 1])
        with col1:
            renamed = st.text_input(
                "Name",
                value=category.name,
                key=f"name-{category.id}",
                label_visibility="collapsed",
            )
        with col2:
            if st.button("Rename", key=f"rename-{category.id}"):
                try:
                    run_async(components.category_flow.rename_category(category.id, renamed))
                    st.rerun()
                except ExpenseTrackerError as e:
                    show_error("Error renaming category", e)
        with col3:
            if st.button("Delete", key=f"delete-{category.id}"):
                try:
                    run_async(components.category_flow.delete_category(category.id))
                    st.rerun()
                except ExpenseTrackerError as e:
                    show_error("Error deleting category", e)


def render_settings_page(components: AppComponents):
    """Render the settings page."""
    st.title("⚙️ Settings")

    from expense_tracker.config import validate_all_settings

    status = validate_all_settings()
    settings = get_settings().app
    st.markdown(f"**Storage backend:** {settings.storage_backend}")

    for name, key in [("Application", "app"), ("HTTP API", "api"), ("Google Sheets", "google_sheets")]:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Recent Activity")
    events = run_async(components.audit_logger.recent_events(limit=20))
    for event in events:
        st.markdown(f"- `{event.timestamp:%Y-%m-%d %H:%M}` {event.description}")


if __name__ == "__main__":
    main()
