"""
Streamlit Frontend for Household Ledger

The screens a family uses every day: dashboard, expenses, shopping list,
recurring bills, balance, analytics, flyer offers and family settings.

DESIGN PRINCIPLES:
1. Every action shows its result immediately (local state first)
2. Remote sync happens behind the scenes and never blocks the screen
3. Deleting an expense and importing a sync code need explicit confirmation
4. Clear messages in simple language

Streamlit reruns this script on every interaction, so each action runs on
a short-lived event loop and drains the remote writes before it closes.
"""

import asyncio
from datetime import date

import streamlit as st

from household_ledger.config import validate_all_settings
from household_ledger.models.household import (
    CATEGORY_PALETTE,
    CategoryIcon,
    ExpenseFilter,
    FamilyProfile,
    Frequency,
    Member,
)
from household_ledger.orchestrator import AppComponents, create_app_components
from household_ledger.snapshot import SnapshotDecodeError
from household_ledger.state import DueStatus, days_until_due, due_status
from household_ledger.validation import EntryValidationError
from household_ledger.views import shopping_items_by_store


# Page configuration
st.set_page_config(
    page_title="Household Ledger",
    page_icon="🏠",
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
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components()


def run_command(components: AppComponents, command, *args, **kwargs):
    """Apply a store command and wait for its remote writes."""
    async def _run():
        result = command(*args, **kwargs)
        await components.store.drain()
        return result
    return run_async(_run())


def show_warnings(result) -> None:
    for warning in getattr(result, "warnings", None) or []:
        st.warning(warning)


def main():
    """Main application entry point."""
    components = get_components()
    store = components.store

    if store.profile is None and "resume_tried" not in st.session_state:
        st.session_state.resume_tried = True
        with st.spinner("Loading your household..."):
            run_async(components.session.resume())

    if store.profile is None:
        render_login_page(components)
        return

    due_offers = components.offers.run_if_due()
    if due_offers:
        st.toast(f"🛒 {len(due_offers)} new flyers to check")

    st.sidebar.title(f"🏠 {store.profile.family_name}")
    st.sidebar.markdown("---")

    pending = len(store.pending_shopping_items())
    due = len(store.due_recurring())
    page = st.sidebar.radio(
        "Navigate to:",
        [
            "📊 Dashboard",
            "💶 Balance",
            "🧾 Expenses",
            f"🛒 Shopping list ({pending})",
            f"🔁 Recurring bills ({due})",
            "📈 Analytics",
            "🏷️ Offers",
            "👪 Family & sync",
            "⚙️ Settings",
        ],
        index=0,
    )

    st.sidebar.markdown("---")
    if st.sidebar.button("🚪 Log out"):
        components.session.end()
        st.rerun()

    if page.startswith("📊"):
        render_dashboard_page(components)
    elif page.startswith("💶"):
        render_balance_page(components)
    elif page.startswith("🧾"):
        render_expenses_page(components)
    elif page.startswith("🛒"):
        render_shopping_page(components)
    elif page.startswith("🔁"):
        render_recurring_page(components)
    elif page.startswith("📈"):
        render_analytics_page(components)
    elif page.startswith("🏷️"):
        render_offers_page(components)
    elif page.startswith("👪"):
        render_family_page(components)
    else:
        render_settings_page()


def render_login_page(components: AppComponents):
    st.title("🏠 Household Ledger")
    st.markdown("Create your family or join an existing one with its family code.")

    with st.form("login"):
        family_name = st.text_input("Family name")
        family_code = st.text_input("Family code (leave empty to create a new family)")
        member_name = st.text_input("Your name")
        submitted = st.form_submit_button("Start", type="primary")

    if submitted:
        if not family_name.strip() or not member_name.strip():
            st.error("Please enter the family name and your name.")
            return
        profile = FamilyProfile(
            id=family_code.strip() or None,
            family_name=family_name,
            members=[Member(name=member_name, is_admin=not family_code.strip())],
        )
        with st.spinner("Loading your household..."):
            report = run_async(components.session.start(profile))
        if report.failed:
            st.warning(
                "Some data could not be loaded: "
                + ", ".join(c.value for c in report.failed)
            )
        st.rerun()


def render_dashboard_page(components: AppComponents):
    store = components.store
    entry = components.entry
    st.title("📊 Dashboard")

    # Receipt scanner
    with st.expander("📷 Scan a receipt"):
        uploaded = st.file_uploader(
            "Receipt photo",
            type=["jpg", "jpeg", "png", "webp"],
        )
        if uploaded and st.button("🔍 Read receipt", type="primary"):
            with st.spinner("Reading your receipt... Please wait."):
                imported = run_async(
                    _import_and_drain(components, uploaded.read())
                )
            if imported.mutation:
                st.success(f"✅ Added {len(imported.mutation.entity)} expenses")
            else:
                st.error(imported.scan.error or "No items found on this receipt.")

    # Due bills
    today = date.today()
    for item in store.due_recurring():
        days = days_until_due(item, today)
        if due_status(item, today) == DueStatus.OVERDUE:
            st.error(f"⏰ {item.product} ({item.amount}) is {-days} days overdue")
        else:
            st.warning(f"🔔 {item.product} ({item.amount}) is due in {days} days")

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("🛒 To buy today")
        pending = store.pending_shopping_items()
        if pending:
            for item in pending[:3]:
                st.markdown(f"- {item.product} · *{item.store}*")
        else:
            st.caption("Shopping list is empty.")
    with col2:
        st.subheader("💡 AI insight")
        if st.button("Analyze my spending"):
            with st.spinner("Thinking..."):
                st.info(run_async(entry.spending_insight()))


async def _import_and_drain(components: AppComponents, image_bytes: bytes):
    imported = await components.entry.import_receipt(image_bytes)
    await components.store.drain()
    return imported


async def _add_and_drain(components: AppComponents, **entry):
    result = await components.entry.add_expense(**entry)
    await components.store.drain()
    return result


def render_expenses_page(components: AppComponents):
    store = components.store
    st.title("🧾 Expenses")

    history = store.product_history()
    with st.form("add_expense", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            product = st.text_input("Product")
            quantity = st.number_input("Quantity", min_value=0.01, value=1.0, step=1.0)
            unit_price = st.number_input("Unit price", min_value=0.0, value=0.0, step=0.5)
        with col2:
            known_stores = [s.name for s in store.stores]
            suggested = history.get(product.strip()) if product else None
            store_name = st.selectbox(
                "Store",
                options=known_stores,
                index=known_stores.index(suggested) if suggested in known_stores else 0,
            )
            new_store = st.text_input("...or a new store")
            total = st.number_input("Total (leave 0 to use quantity x price)", min_value=0.0, value=0.0)
        submitted = st.form_submit_button("➕ Add expense", type="primary")

    if submitted:
        try:
            result = run_async(_add_and_drain(
                components,
                product=product,
                store=new_store.strip() or store_name,
                total=total or None,
                quantity=quantity,
                unit_price=unit_price if not total else None,
            ))
            st.success(f"✅ Added {result.entity.product} ({result.entity.category})")
            show_warnings(result)
        except EntryValidationError as e:
            st.error(str(e))

    st.markdown("---")

    # Filters
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        store_filter = st.selectbox("Store", [""] + [s.name for s in store.stores])
    with col2:
        category_filter = st.selectbox("Category", [""] + list(store.category_names()))
    with col3:
        start = st.date_input("From", value=None)
    with col4:
        end = st.date_input("To", value=None)

    expense_filter = ExpenseFilter(
        store=store_filter, category=category_filter, start_date=start, end_date=end
    )
    rows = store.expense_rows(expense_filter)
    st.metric("Total", f"{store.filtered_total(expense_filter):,.2f}")
    st.dataframe(
        [{k: v for k, v in row.items() if k not in ("id", "color", "member_id")} for row in rows],
        use_container_width=True,
    )
    st.download_button(
        "⬇️ Export CSV",
        data=store.export_expenses_csv(expense_filter),
        file_name="expenses.csv",
        mime="text/csv",
    )

    with st.expander("🗑️ Delete an expense"):
        options = {f"{e.date[:10]} · {e.product} · {e.total}": e.id for e in store.expenses}
        if options:
            label = st.selectbox("Expense", list(options))
            sure = st.checkbox("Yes, delete this expense permanently")
            if st.button("Delete"):
                result = run_command(
                    components, store.delete_expense, options[label], lambda _: sure
                )
                if result is None:
                    st.info("Tick the confirmation box to delete.")
                else:
                    st.rerun()


def render_balance_page(components: AppComponents):
    store = components.store
    st.title("💶 Balance")

    summary = store.balance()
    col1, col2, col3 = st.columns(3)
    col1.metric("Income", f"{summary.income_total:,.2f}")
    col2.metric("Expenses", f"{summary.expense_total:,.2f}")
    col3.metric("Balance", f"{summary.balance:,.2f}")

    with st.form("add_income", clear_on_submit=True):
        source = st.text_input("Source")
        amount = st.number_input("Amount", min_value=0.0, step=10.0)
        received = st.date_input("Date", value=date.today())
        if st.form_submit_button("➕ Add income"):
            try:
                run_command(components, store.add_income, source, amount, received.isoformat())
                st.rerun()
            except EntryValidationError as e:
                st.error(str(e))

    for income in reversed(store.incomes):
        col1, col2 = st.columns([5, 1])
        col1.markdown(f"**{income.source}** · {income.amount} · {income.date[:10]}")
        if col2.button("🗑️", key=f"income-{income.id}"):
            run_command(components, store.delete_income, income.id)
            st.rerun()


def render_shopping_page(components: AppComponents):
    store = components.store
    st.title("🛒 Shopping list")

    history = store.product_history()
    with st.form("add_item", clear_on_submit=True):
        product = st.text_input("Product", help="Known products suggest their last store")
        store_names = [s.name for s in store.stores]
        suggested = history.get(product.strip()) if product else None
        store_name = st.selectbox(
            "Store",
            store_names,
            index=store_names.index(suggested) if suggested in store_names else 0,
        )
        if st.form_submit_button("➕ Add"):
            try:
                run_command(components, store.add_shopping_item, product, store_name)
                st.rerun()
            except EntryValidationError as e:
                st.error(str(e))

    for store_name, items in shopping_items_by_store(store.shopping_list).items():
        st.subheader(store_name)
        for item in items:
            col1, col2 = st.columns([5, 1])
            checked = col1.checkbox(item.product, value=item.completed, key=f"item-{item.id}")
            if checked != item.completed:
                run_command(components, store.toggle_shopping_item, item.id)
                st.rerun()
            if col2.button("🗑️", key=f"del-{item.id}"):
                run_command(components, store.delete_shopping_item, item.id)
                st.rerun()

    if any(item.completed for item in store.shopping_list):
        if st.button("🧹 Clear completed"):
            run_command(components, store.clear_completed_shopping_items)
            st.rerun()


def render_recurring_page(components: AppComponents):
    store = components.store
    st.title("🔁 Recurring bills")

    with st.form("add_recurring", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            product = st.text_input("Bill")
            amount = st.number_input("Amount", min_value=0.0, step=5.0)
            store_name = st.text_input("Paid to")
        with col2:
            frequency = st.selectbox("Frequency", list(Frequency), format_func=lambda f: f.value.title())
            next_due = st.date_input("Next due date", value=date.today())
            reminder_days = st.number_input("Remind me days before", min_value=0, value=3)
        note_label = st.text_input("Note label (optional)", placeholder="Contract number")
        note_value = st.text_input("Note value")
        if st.form_submit_button("➕ Add bill"):
            fields = [{"label": note_label, "value": note_value}] if note_label.strip() else []
            try:
                result = run_command(
                    components, store.add_recurring,
                    product, amount, store_name, frequency, next_due, reminder_days, fields,
                )
                show_warnings(result)
            except EntryValidationError as e:
                st.error(str(e))

    today = date.today()
    for item in sorted(store.recurring_expenses, key=lambda r: r.next_due_date):
        status = due_status(item, today)
        badge = {"overdue": "🔴", "due_soon": "🟡", "not_due": "🟢"}[status.value]
        with st.container(border=True):
            col1, col2, col3 = st.columns([4, 1, 1])
            col1.markdown(
                f"{badge} **{item.product}** · {item.amount} · {item.store}  \n"
                f"{item.frequency.value.title()}, next due {item.next_due_date.isoformat()}"
            )
            for custom in item.custom_fields:
                col1.caption(f"{custom.label}: {custom.value}")
            if col2.button("✅ Paid", key=f"pay-{item.id}"):
                run_command(components, store.process_recurring, item.id)
                st.rerun()
            if col3.button("🗑️", key=f"rec-{item.id}"):
                run_command(components, store.delete_recurring, item.id)
                st.rerun()


def render_analytics_page(components: AppComponents):
    store = components.store
    st.title("📈 Analytics")

    monthly = store.monthly_totals()
    if not monthly:
        st.info("Add some expenses to see your analytics.")
        return

    st.subheader("By month")
    st.bar_chart({m.label: float(m.total) for m in reversed(monthly)})

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Top categories")
        for name, total in store.category_totals():
            match = store.lookup_category(name)
            st.markdown(f"`{match.icon.value}` **{name}** · {total:,.2f}")
    with col2:
        st.subheader("By store")
        for name, total in store.store_totals():
            st.markdown(f"**{name}** · {total:,.2f}")


def render_offers_page(components: AppComponents):
    offers = components.offers
    store = components.store
    st.title("🏷️ Flyer offers")

    prefs = offers.preferences
    with st.form("offer_prefs"):
        city = st.text_input("City", value=prefs.city)
        selected = st.multiselect(
            "Stores",
            options=sorted({s.name for s in store.stores} | set(prefs.selected_stores)),
            default=prefs.selected_stores,
        )
        notify = st.checkbox("Check automatically once a day", value=prefs.has_enabled_notifications)
        if st.form_submit_button("💾 Save"):
            offers.update_preferences(
                city=city, selected_stores=selected, has_enabled_notifications=notify
            )
            st.success("Preferences saved on this device.")

    if st.button("🔎 Find flyers now", type="primary"):
        for offer in offers.run_now():
            st.markdown(f"**{offer.store_name}**: [open flyer search]({offer.flyer_link})")


def render_family_page(components: AppComponents):
    store = components.store
    profile = store.profile
    st.title("👪 Family & sync")

    st.markdown(f"**Family code:** `{profile.id}`")
    for member in profile.members:
        st.markdown(f"- {member.name}{' (admin)' if member.is_admin else ''}")

    st.subheader("🏪 Stores")
    with st.form("add_store", clear_on_submit=True):
        name = st.text_input("Store name")
        if st.form_submit_button("➕ Add store"):
            try:
                run_command(components, store.add_store, name)
            except EntryValidationError as e:
                st.error(str(e))
    st.caption(", ".join(s.name for s in store.stores))

    st.subheader("🏷️ Categories")
    with st.form("add_category", clear_on_submit=True):
        name = st.text_input("Category name")
        icon = st.selectbox("Icon", list(CategoryIcon), format_func=lambda i: i.value)
        color = st.selectbox("Color", CATEGORY_PALETTE)
        if st.form_submit_button("➕ Add category"):
            try:
                run_command(components, store.add_category, name, icon.value, color)
            except EntryValidationError as e:
                st.error(str(e))
    for category in store.categories:
        col1, col2 = st.columns([5, 1])
        col1.markdown(f"`{category.icon.value}` {category.name}")
        if col2.button("🗑️", key=f"cat-{category.id}"):
            run_command(components, store.delete_category, category.id)
            st.rerun()

    st.subheader("📄 Google Sheet link")
    url = st.text_input("Sheet URL", value=profile.google_sheet_url or "")
    if st.button("💾 Save link"):
        run_command(components, store.set_google_sheet_url, url)
        st.success("Saved.")

    st.subheader("🔄 Sync code")
    st.text_area("Copy this code to another device", value=store.export_snapshot_token(), height=100)
    token = st.text_area("...or paste a code from another device")
    replace = st.checkbox("I understand this REPLACES all data on this device")
    if st.button("⬇️ Import"):
        try:
            imported = store.import_snapshot_token(token, lambda _: replace)
        except SnapshotDecodeError:
            st.error("Invalid or damaged code. Copy the whole code and try again.")
        else:
            if imported is None:
                st.info("Tick the confirmation box to import.")
            else:
                st.success("Sync complete!")
                st.rerun()


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")
    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (AI)", "gemini"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Recent sync activity")
    for event in get_components().audit_logger.recent_events(limit=20):
        st.caption(
            f"{event.timestamp:%H:%M:%S} · {event.event_type.value} · {event.description}"
        )


if __name__ == "__main__":
    main()
