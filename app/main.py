"""
Streamlit Frontend for Money Manager

Pages:
- Dashboard: balance, this month's income/expenses, recent activity
- Accounts: list, add, transfer between own accounts
- Expenses / Incomes: list, add (with receipt upload), CSV import
- Debts: money lent and repayments
- Investments: holdings and portfolio summary
- Assistant: chat with optional financial context
- Settings: currency and service status

Every call goes through an actions class and comes back as an
ActionResult; failures are shown with st.error and never raise.
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from money_manager.chat.formatting import format_currency, get_date_range_presets
from money_manager.config import validate_all_settings
from money_manager.models import (
    AccountCreate,
    CategoryType,
    ChatSettings,
    DebtCreate,
    ExpenseCreate,
    FinancialDataRequest,
    IncomeCreate,
    InvestmentCreate,
    InvestmentType,
    MessageSender,
)
from money_manager.orchestrator import AppComponents, create_app_components


st.set_page_config(
    page_title="Money Manager",
    page_icon="💰",
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


def show(result, success_message=None):
    """Render an ActionResult; returns its data on success, else None."""
    if not result.success:
        st.error(result.error)
        return None
    if success_message or result.message:
        st.success(success_message or result.message)
    return result.data


def currency() -> str:
    return st.session_state.get("currency", "USD")


def money(amount) -> str:
    return format_currency(amount, currency())


def import_csv(title: str, key: str, importer):
    """File uploader that runs importer(text) and reports per-row errors."""
    with st.expander(title):
        upload = st.file_uploader("CSV file", type=["csv"], key=key)
        if upload is not None and st.button("Import", key=f"{key}_button"):
            imported = show(run_async(importer(upload.getvalue().decode("utf-8-sig"))))
            if imported is not None:
                st.success(f"Imported {imported.success_count} of {imported.total_rows} rows")
                for error in imported.errors:
                    st.warning(f"Row {error.row}: {error.error}")
            return imported
    return None


# =============================================================================
# AUTH
# =============================================================================

def render_login(app: AppComponents):
    st.title("💰 Money Manager")
    login_tab, register_tab = st.tabs(["Sign in", "Create account"])

    with login_tab:
        with st.form("login"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Sign in", type="primary"):
                try:
                    st.session_state.user = run_async(app.users.authenticate(email, password))
                    st.rerun()
                except Exception as e:
                    st.error(str(e))

    with register_tab:
        with st.form("register"):
            name = st.text_input("Name")
            email = st.text_input("Email", key="register_email")
            password = st.text_input("Password", type="password", key="register_password")
            if st.form_submit_button("Create account"):
                show(run_async(app.users.register_user(name, email, password)), "Account created. Please sign in.")


# =============================================================================
# PAGES
# =============================================================================

def render_dashboard(app: AppComponents, user):
    st.title("📊 Dashboard")
    stats = show(run_async(app.transactions.get_dashboard_stats(user)))
    if stats is None:
        return

    cols = st.columns(5)
    cols[0].metric("Total balance", money(stats.total_balance))
    cols[1].metric("Income this month", money(stats.monthly_income))
    cols[2].metric("Expenses this month", money(stats.monthly_expenses))
    cols[3].metric("Savings rate", f"{stats.savings_rate:.1f}%")
    cols[4].metric("Investments", money(stats.total_investments))

    st.markdown("### Recent transactions")
    recent = show(run_async(app.transactions.get_recent_transactions(user, limit=10))) or []
    if not recent:
        st.info("No transactions yet.")
    for t in recent:
        sign = "+" if t.type.value == "INCOME" else "-"
        st.write(f"{t.date.isoformat()} · **{t.title}** · {t.category} · {t.account} · {sign}{money(t.amount)}")

    st.markdown("### Spending by category")
    breakdown = show(run_async(app.transactions.get_category_breakdown(user, "EXPENSE"))) or []
    for item in breakdown:
        st.write(f"- **{item.category}**: {money(item.total)}")


def render_accounts(app: AppComponents, user):
    st.title("🏦 Accounts")
    accounts = show(run_async(app.accounts.get_user_accounts(user))) or []
    for account in accounts:
        st.write(f"**{account.display_name}** · {account.holder_name} · {account.account_number} · {money(account.balance)}")

    with st.expander("Add account"):
        with st.form("add_account"):
            holder = st.text_input("Holder name")
            number = st.text_input("Account number")
            bank = st.text_input("Bank name")
            account_type = st.selectbox("Type", ["SAVINGS", "CHECKING", "CURRENT", "CREDIT", "WALLET"])
            balance = st.number_input("Opening balance", min_value=0.0, step=100.0)
            if st.form_submit_button("Save account", type="primary"):
                try:
                    data = AccountCreate(
                        holder_name=holder,
                        account_number=number,
                        bank_name=bank,
                        account_type=account_type,
                        balance=Decimal(str(round(balance, 2))),
                    )
                    show(run_async(app.accounts.create_account(user, data)), "Account added")
                except ValueError as e:
                    st.error(str(e))

    if len(accounts) >= 2:
        with st.expander("Transfer between accounts"):
            labels = {a.id: f"{a.display_name} · {a.account_number}" for a in accounts}
            with st.form("transfer"):
                source = st.selectbox("From", list(labels), format_func=labels.get)
                target = st.selectbox("To", list(labels), format_func=labels.get, index=1)
                amount = st.number_input("Amount", min_value=0.0, step=100.0)
                notes = st.text_input("Notes")
                if st.form_submit_button("Transfer"):
                    show(
                        run_async(app.accounts.transfer_money(
                            user, source, target, Decimal(str(round(amount, 2))), notes or None
                        )),
                        "Transfer completed",
                    )

    import_csv("Import accounts", "csv_accounts", lambda text: app.accounts.bulk_import_accounts(user, text))


def render_ledger(app: AppComponents, user, kind: CategoryType):
    is_expense = kind == CategoryType.EXPENSE
    actions = app.expenses if is_expense else app.incomes
    st.title("💸 Expenses" if is_expense else "💵 Incomes")

    entries = show(run_async(actions.get_expenses(user) if is_expense else actions.get_incomes(user))) or []
    for entry in entries:
        st.write(
            f"{entry.date.isoformat()} · **{entry.title}** · {entry.category.name} · "
            f"{entry.account_label} · {money(entry.amount)}"
        )

    categories = show(run_async(app.categories.get_categories(user, kind))) or []
    accounts = show(run_async(app.accounts.get_user_accounts(user))) or []
    account_labels = {None: "Cash"}
    account_labels.update({a.id: a.display_name for a in accounts})

    with st.expander("Add " + ("expense" if is_expense else "income")):
        receipt_url = None
        if is_expense:
            receipt = st.file_uploader("Receipt (optional)", type=["jpg", "jpeg", "png", "webp"])
            if receipt is not None and st.button("Upload receipt"):
                receipt_url = show(run_async(app.receipts.upload_receipt(
                    user, receipt.getvalue(), receipt.name, receipt.type
                )))
                st.session_state.receipt_url = receipt_url
            receipt_url = st.session_state.get("receipt_url")

        with st.form(f"add_{kind.value.lower()}"):
            title = st.text_input("Title")
            amount = st.number_input("Amount", min_value=0.0, step=10.0)
            entry_date = st.date_input("Date", value=date.today())
            category = st.selectbox("Category", categories, format_func=lambda c: c.name)
            account_id = st.selectbox("Account", list(account_labels), format_func=account_labels.get)
            tags = st.text_input("Tags (comma separated)")
            notes = st.text_area("Notes")
            if st.form_submit_button("Save", type="primary") and category is not None:
                payload = dict(
                    title=title,
                    amount=Decimal(str(round(amount, 2))),
                    date=entry_date,
                    category_id=category.id,
                    account_id=account_id,
                    tags=[t for t in tags.split(",") if t.strip()],
                    notes=notes or None,
                )
                try:
                    if is_expense:
                        result = run_async(actions.create_expense(user, ExpenseCreate(receipt_url=receipt_url, **payload)))
                        st.session_state.pop("receipt_url", None)
                    else:
                        result = run_async(actions.create_income(user, IncomeCreate(**payload)))
                    show(result, "Saved")
                except ValueError as e:
                    st.error(str(e))

    import_csv("Import CSV", f"csv_{kind.value}", lambda text: (
        actions.bulk_import_expenses(user, text) if is_expense else actions.bulk_import_incomes(user, text)
    ))


def render_debts(app: AppComponents, user):
    st.title("🤝 Money Lent")
    debts = show(run_async(app.debts.get_user_debts(user))) or []
    accounts = show(run_async(app.accounts.get_user_accounts(user))) or []
    account_labels = {None: "Cash"}
    account_labels.update({a.id: a.display_name for a in accounts})
    for debt in debts:
        with st.container(border=True):
            st.write(
                f"**{debt.borrower_name}** · {debt.status.value} · lent {money(debt.amount)} · "
                f"interest {money(debt.interest_amount)} · remaining {money(debt.remaining_amount)}"
            )
            if debt.remaining_amount > 0:
                amount = st.number_input("Repayment", min_value=0.0, step=10.0, key=f"repay_{debt.id}")
                into = st.selectbox(
                    "Received into", list(account_labels), format_func=account_labels.get, key=f"repay_acc_{debt.id}"
                )
                if st.button("Record repayment", key=f"repay_btn_{debt.id}"):
                    show(
                        run_async(app.debts.add_repayment(
                            user, debt.id, Decimal(str(round(amount, 2))), account_id=into
                        )),
                        "Repayment recorded",
                    )

    with st.expander("Lend money"):
        with st.form("add_debt"):
            borrower = st.text_input("Borrower")
            amount = st.number_input("Amount", min_value=0.0, step=100.0)
            rate = st.number_input("Annual interest rate (%)", min_value=0.0, step=0.5)
            lent_date = st.date_input("Lent on", value=date.today())
            due_date = st.date_input("Due on", value=None)
            account_id = st.selectbox("From account", list(account_labels), format_func=account_labels.get)
            if st.form_submit_button("Save", type="primary"):
                try:
                    data = DebtCreate(
                        borrower_name=borrower,
                        amount=Decimal(str(round(amount, 2))),
                        interest_rate=Decimal(str(rate)),
                        lent_date=lent_date,
                        due_date=due_date,
                        account_id=account_id,
                    )
                    show(run_async(app.debts.create_debt(user, data)), "Saved")
                except ValueError as e:
                    st.error(str(e))

    imported = import_csv("Import debts", "csv_debts", lambda text: app.debts.bulk_import_debts(user, text))
    if imported is not None:
        st.session_state.debt_id_mapping = imported.id_mapping
    import_csv("Import repayments", "csv_repayments", lambda text: app.debts.bulk_import_repayments(
        user, text, st.session_state.get("debt_id_mapping")
    ))


def render_investments(app: AppComponents, user):
    st.title("📈 Investments")
    summary = show(run_async(app.investments.get_portfolio_summary(user)))
    if summary is not None:
        cols = st.columns(3)
        cols[0].metric("Invested", money(summary.total_invested))
        cols[1].metric("Current value", money(summary.current_value))
        cols[2].metric("Gain / loss", money(summary.gain_loss), f"{summary.gain_loss_percentage:.2f}%")

    for investment in show(run_async(app.investments.get_user_investments(user))) or []:
        st.write(f"**{investment.name}** · {investment.type.value} · {money(investment.current_value)}")

    accounts = show(run_async(app.accounts.get_user_accounts(user))) or []
    if not accounts:
        st.info("Add an account before recording investments.")
        return
    labels = {a.id: a.display_name for a in accounts}
    with st.expander("Add investment"):
        with st.form("add_investment"):
            name = st.text_input("Name")
            investment_type = st.selectbox("Type", list(InvestmentType), format_func=lambda t: t.value)
            quantity = st.number_input("Quantity", min_value=0.0, value=1.0)
            price = st.number_input("Purchase price", min_value=0.0, step=10.0)
            account_id = st.selectbox("Funding account", list(labels), format_func=labels.get)
            if st.form_submit_button("Save", type="primary"):
                try:
                    data = InvestmentCreate(
                        name=name,
                        type=investment_type,
                        quantity=Decimal(str(quantity)),
                        purchase_price=Decimal(str(round(price, 2))),
                        account_id=account_id,
                    )
                    show(run_async(app.investments.create_investment(user, data)), "Saved")
                except ValueError as e:
                    st.error(str(e))


def render_assistant(app: AppComponents, user):
    st.title("🤖 Assistant")

    threads = show(run_async(app.chat_threads.get_chat_threads(user))) or []
    options = {None: "➕ New chat"}
    options.update({t.id: ("📌 " if t.is_pinned else "") + t.title for t in threads})
    thread_id = st.sidebar.selectbox("Conversations", list(options), format_func=options.get)

    presets = get_date_range_presets()
    preset_key = st.selectbox(
        "Include my financial data",
        [None, *presets],
        format_func=lambda k: "Don't include" if k is None else presets[k].label,
    )
    context = None
    if preset_key is not None:
        preset = presets[preset_key]
        request = FinancialDataRequest(start_date=preset.start_date, end_date=preset.end_date)
        context = show(run_async(app.financial_data.get_financial_data_for_chat(user, request)))

    if thread_id is not None:
        thread = show(run_async(app.chat_threads.get_chat_thread(user, thread_id)))
        for message in thread.conversations if thread else []:
            role = "user" if message.sender == MessageSender.USER else "assistant"
            with st.chat_message(role):
                st.markdown(message.content)

    prompt = st.chat_input("Ask about your finances")
    if prompt:
        with st.chat_message("user"):
            st.markdown(prompt)
        with st.chat_message("assistant"):
            placeholder = st.empty()
            turn = run_async(app.chat_flow.send_message(
                user,
                thread_id,
                prompt,
                financial_context=context,
                settings=ChatSettings(),
                on_token=placeholder.markdown,
            ))
            if turn is not None:
                placeholder.markdown(turn.assistant_message.content)
        st.rerun()


def render_settings(app: AppComponents, user):
    st.title("⚙️ Settings")

    codes = ["USD", "INR", "NPR"]
    selected = st.selectbox("Currency", codes, index=codes.index(currency()) if currency() in codes else 0)
    if st.button("Save currency"):
        saved = show(run_async(app.users.update_user_currency(user, selected)), "Currency updated")
        if saved:
            st.session_state.currency = saved

    st.markdown("### Connection Status")
    status = validate_all_settings()
    for name, key in [
        ("Database", "database"),
        ("Gemini (Assistant)", "gemini"),
        ("Cloudinary (Receipts)", "cloudinary"),
        ("SMTP (Email)", "smtp"),
    ]:
        if status.get(key, False):
            st.success(f"✅ {name} - Connected")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', 'Not configured')}")

    if st.button("Sign out"):
        st.session_state.clear()
        st.rerun()


PAGES = {
    "📊 Dashboard": render_dashboard,
    "🏦 Accounts": render_accounts,
    "💸 Expenses": lambda app, user: render_ledger(app, user, CategoryType.EXPENSE),
    "💵 Incomes": lambda app, user: render_ledger(app, user, CategoryType.INCOME),
    "🤝 Debts": render_debts,
    "📈 Investments": render_investments,
    "🤖 Assistant": render_assistant,
    "⚙️ Settings": render_settings,
}


def main():
    """Main application entry point."""
    app = get_components()

    user = st.session_state.get("user")
    if user is None:
        render_login(app)
        return

    if "currency" not in st.session_state:
        st.session_state.currency = show(run_async(app.users.get_user_currency(user))) or "USD"

    st.sidebar.title("💰 Money Manager")
    st.sidebar.caption(user.email or "")
    page = st.sidebar.radio("Navigate to:", list(PAGES), index=0)
    PAGES[page](app, user)


if __name__ == "__main__":
    main()
