"""
Tests for investments, dashboard analytics and the chat financial context.
"""

from datetime import date
from decimal import Decimal

from money_manager.models import (
    FinancialDataRequest,
    InvestmentCreate,
    InvestmentType,
    InvestmentUpdate,
    TransactionType,
)

from conftest import balance, category_id, expense_data, income_data, make_account, make_user, run


def _stock(account_id: int, quantity="10", price="20.00", **overrides) -> InvestmentCreate:
    values = dict(
        name="ACME Corp",
        type=InvestmentType.STOCKS,
        symbol="ACME",
        quantity=Decimal(quantity),
        purchase_price=Decimal(price),
        account_id=account_id,
    )
    values.update(overrides)
    return InvestmentCreate(**values)


class TestInvestmentActions:
    """Tests for buying, revaluing and selling investments."""

    def test_purchase_debits_cost(self, db, session, accounts, investments):
        """Test that buying moves quantity x price out of the account."""
        account = make_account(accounts, session, opening="1000.00")

        result = run(investments.create_investment(session, _stock(account.id)))

        assert result.success, result.error
        assert result.data.current_price == Decimal("20.00")
        assert balance(db, account.id) == Decimal("800.00")

    def test_fixed_deposit_debits_principal(self, db, session, accounts, investments):
        """Test that a fixed deposit costs its price, not price x quantity."""
        account = make_account(accounts, session, opening="5000.00")

        run(investments.create_investment(session, _stock(
            account.id, quantity="5", price="1000.00", type=InvestmentType.FIXED_DEPOSIT, name="FD", symbol=None,
        )))

        assert balance(db, account.id) == Decimal("4000.00")

    def test_purchase_beyond_balance(self, db, session, accounts, investments):
        """Test the insufficient balance message."""
        account = make_account(accounts, session, opening="100.00")

        result = run(investments.create_investment(session, _stock(account.id)))

        assert result.error == "Insufficient balance. Available: 100.00, required: 200.00"
        assert balance(db, account.id) == Decimal("100.00")

    def test_portfolio_summary(self, db, session, accounts, investments):
        """Test gain/loss after a price update."""
        account = make_account(accounts, session, opening="1000.00")
        stock = run(investments.create_investment(session, _stock(account.id))).data
        run(investments.update_investment(session, stock.id, InvestmentUpdate(current_price=Decimal("25.00"))))

        summary = run(investments.get_portfolio_summary(session)).data

        assert summary.total_invested == Decimal("200.00")
        assert summary.current_value == Decimal("250.00")
        assert summary.gain_loss == Decimal("50.00")
        assert summary.gain_loss_percentage == 25.0
        assert summary.count == 1

    def test_empty_portfolio(self, db, session, investments):
        """Test that an empty portfolio reports zero percent."""
        summary = run(investments.get_portfolio_summary(session)).data

        assert summary.gain_loss_percentage == 0.0
        assert summary.total_invested == Decimal("0.00")

    def test_sell_refunds_cost(self, db, session, accounts, investments):
        """Test that deleting an investment credits its cost back."""
        account = make_account(accounts, session, opening="1000.00")
        stock = run(investments.create_investment(session, _stock(account.id))).data

        run(investments.delete_investment(session, stock.id))

        assert balance(db, account.id) == Decimal("1000.00")

    def test_sub_cent_price_round_trip(self, db, session, accounts, investments):
        """Test that selling refunds exactly what buying charged."""
        account = make_account(accounts, session, opening="1000.00")
        stock = run(investments.create_investment(session, _stock(account.id, quantity="3", price="10.125"))).data

        assert balance(db, account.id) == Decimal("969.61")

        run(investments.delete_investment(session, stock.id))

        assert balance(db, account.id) == Decimal("1000.00")


class TestDashboard:
    """Tests for recent activity, monthly figures and breakdowns."""

    def test_recent_transactions_merged_newest_first(self, db, session, expenses, incomes, transactions):
        """Test that expenses and incomes are interleaved by date."""
        run(incomes.create_income(session, income_data(db, "2000.00")))
        run(expenses.create_expense(session, expense_data(db, "30.00")))
        run(expenses.create_expense(session, expense_data(db, "15.00", date=date(2024, 2, 20), title="Old")))

        result = run(transactions.get_recent_transactions(session, limit=2))

        assert [(t.type, t.title) for t in result.data] == [
            (TransactionType.EXPENSE, "Lunch"),
            (TransactionType.INCOME, "Salary"),
        ]
        assert result.data[0].account == "Cash"

    def test_monthly_figures(self, db, session, accounts, expenses, incomes, transactions):
        """Test income, expenses and savings rate for one month."""
        account = make_account(accounts, session, opening="0.00")
        run(incomes.create_income(session, income_data(db, "2000.00", account.id)))
        run(expenses.create_expense(session, expense_data(db, "500.00", account.id)))
        run(expenses.create_expense(session, expense_data(db, "99.00", date=date(2024, 4, 1))))

        stats = run(transactions.get_dashboard_stats(session, month=date(2024, 3, 10))).data

        assert stats.total_balance == Decimal("1500.00")
        assert stats.monthly_income == Decimal("2000.00")
        assert stats.monthly_expenses == Decimal("500.00")
        assert stats.savings_rate == 75.0
        assert len(stats.recent_transactions) == 3

    def test_savings_rate_without_income(self, db, session, expenses, transactions):
        """Test that a month without income has a zero savings rate."""
        run(expenses.create_expense(session, expense_data(db, "50.00")))

        stats = run(transactions.get_dashboard_stats(session, month=date(2024, 3, 1))).data

        assert stats.savings_rate == 0.0
        assert stats.monthly_expenses == Decimal("50.00")

    def test_category_breakdown(self, db, session, expenses, transactions):
        """Test per-category totals sorted by amount."""
        run(expenses.create_expense(session, expense_data(db, "20.00")))
        run(expenses.create_expense(session, expense_data(db, "30.00")))
        run(expenses.create_expense(
            session, expense_data(db, "80.00", category_id=category_id(db, "Transportation"))
        ))

        result = run(transactions.get_category_breakdown(session, TransactionType.EXPENSE))

        assert [(c.category, c.total) for c in result.data] == [
            ("Transportation", Decimal("80.00")),
            ("Food & Dining", Decimal("50.00")),
        ]

    def test_breakdown_date_filter(self, db, session, expenses, transactions):
        """Test that the optional range limits the totals."""
        run(expenses.create_expense(session, expense_data(db, "20.00", date=date(2024, 1, 5))))
        run(expenses.create_expense(session, expense_data(db, "30.00", date=date(2024, 3, 5))))

        result = run(transactions.get_category_breakdown(
            session, TransactionType.EXPENSE, start_date=date(2024, 3, 1), end_date=date(2024, 3, 31)
        ))

        assert [c.total for c in result.data] == [Decimal("30.00")]


class TestFinancialContext:
    """Tests for the markdown snapshot given to the assistant."""

    REQUEST = FinancialDataRequest(start_date=date(2024, 3, 1), end_date=date(2024, 3, 31))

    def test_converts_into_user_currency(self, db, expenses, incomes, financial_data):
        """Test INR amounts shown and summed as NPR for an NPR user."""
        npr_user = make_user(db, "npr@example.com", currency="NPR")
        run(incomes.create_income(npr_user, income_data(db, "100.00", currency="INR")))
        run(expenses.create_expense(npr_user, expense_data(db, "16.00")))

        result = run(financial_data.get_financial_data_for_chat(npr_user, self.REQUEST))

        assert result.success, result.error
        summary = result.data.summary
        assert summary.currency == "NPR"
        assert summary.total_income == Decimal("160.00")
        assert summary.total_expenses == Decimal("16.00")
        assert summary.net_amount == Decimal("144.00")
        assert summary.period == "2024-03-01 to 2024-03-31"

        markdown = result.data.markdown
        assert markdown.startswith("# Financial Data Summary")
        assert "## Income Transactions (1 items)" in markdown
        assert "| 2024-03-01 | Salary | Salary | Cash | ₨ 160.00 | None | None |" in markdown
        assert "- **Food & Dining**: ₨ 16.00" in markdown

    def test_rupee_entries_shown_in_dollars(self, db, expenses, financial_data):
        """Test that INR spending is summed as dollars for a USD user."""
        usd_user = make_user(db, "usd@example.com")
        run(expenses.create_expense(usd_user, expense_data(db, "8750.00", currency="INR")))

        summary = run(financial_data.get_financial_data_for_chat(usd_user, self.REQUEST)).data.summary

        assert summary.currency == "USD"
        assert summary.total_expenses == Decimal("100.00")

    def test_excluding_expenses(self, db, session, expenses, incomes, financial_data):
        """Test include_expenses=False."""
        run(incomes.create_income(session, income_data(db, "10.00")))
        run(expenses.create_expense(session, expense_data(db, "5.00")))
        request = self.REQUEST.model_copy(update={"include_expenses": False})

        context = run(financial_data.get_financial_data_for_chat(session, request)).data

        assert context.summary.transaction_count == 1
        assert "Expense Transactions" not in context.markdown

    def test_requires_session(self, db, financial_data):
        """Test that the snapshot needs an authenticated caller."""
        result = run(financial_data.get_financial_data_for_chat(None, self.REQUEST))

        assert result.error == "Unauthorized"
