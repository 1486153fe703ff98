"""
Financial data for the chat assistant: the user's incomes and expenses
over a date range, summarised in the user's currency and rendered as
markdown for the system prompt.
"""

from decimal import Decimal

from money_manager.actions.accounts import user_currency
from money_manager.actions.base import BaseActions, server_action
from money_manager.actions.expenses import ExpenseActions
from money_manager.actions.incomes import IncomeActions
from money_manager.chat.formatting import convert_currency, format_financial_data_as_markdown
from money_manager.models.chat import (
    FinancialContext,
    FinancialDataRequest,
    FinancialDataSummary,
)
from money_manager.models.finance import UserSession
from money_manager.utils.money import to_money


class FinancialDataActions(BaseActions):

    @server_action("Failed to fetch financial data")
    async def get_financial_data_for_chat(
        self,
        session: UserSession,
        request: FinancialDataRequest,
    ) -> FinancialContext:
        with self._db.session_scope() as db_session:
            currency = user_currency(db_session, session.user_id)

        incomes = []
        if request.include_incomes:
            incomes = IncomeActions(self._db, self._audit)._list(
                session.user_id, start=request.start_date, end=request.end_date
            )
        expenses = []
        if request.include_expenses:
            expenses = ExpenseActions(self._db, self._audit)._list(
                session.user_id, start=request.start_date, end=request.end_date
            )

        total_income = sum(
            (convert_currency(i.amount, i.currency, currency) for i in incomes), Decimal("0")
        )
        total_expenses = sum(
            (convert_currency(e.amount, e.currency, currency) for e in expenses), Decimal("0")
        )
        summary = FinancialDataSummary(
            total_income=to_money(total_income),
            total_expenses=to_money(total_expenses),
            net_amount=to_money(total_income - total_expenses),
            transaction_count=len(incomes) + len(expenses),
            period=f"{request.start_date.isoformat()} to {request.end_date.isoformat()}",
            currency=currency,
        )

        self._logger.info(
            "financial_context_built",
            user_id=session.user_id,
            transactions=summary.transaction_count,
            period=summary.period,
        )
        return FinancialContext(
            markdown=format_financial_data_as_markdown(incomes, expenses, currency, summary),
            summary=summary,
            request=request,
        )
