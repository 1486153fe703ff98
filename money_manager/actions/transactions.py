"""
Transactions & Analytics

Read-only views across incomes and expenses: the recent activity feed,
the dashboard figures for one month, and per-category totals.
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from money_manager.actions.base import BaseActions, server_action
from money_manager.models.finance import (
    CategoryTotal,
    DashboardStats,
    Expense,
    Income,
    Investment,
    Transaction,
    TransactionType,
    UserSession,
)
from money_manager.services.storage.schema import (
    AccountRecord,
    CategoryRecord,
    ExpenseRecord,
    IncomeRecord,
    InvestmentRecord,
)
from money_manager.utils.money import to_decimal, to_money


RECORDS = {
    TransactionType.EXPENSE: (ExpenseRecord, Expense),
    TransactionType.INCOME: (IncomeRecord, Income),
}


def month_bounds(month: date) -> tuple[date, date]:
    last_day = calendar.monthrange(month.year, month.month)[1]
    return month.replace(day=1), month.replace(day=last_day)


def to_transaction(entry: Union[Expense, Income], kind: TransactionType) -> Transaction:
    return Transaction(
        id=entry.id,
        type=kind,
        title=entry.title,
        amount=entry.amount,
        date=entry.date,
        category=entry.category.name,
        account=entry.account_label,
    )


class TransactionActions(BaseActions):

    def _recent(self, db_session: Session, user_id: int, limit: int) -> list[Transaction]:
        merged = []
        for kind, (record, model) in RECORDS.items():
            records = db_session.scalars(
                select(record)
                .where(record.user_id == user_id)
                .order_by(record.date.desc(), record.created_at.desc())
                .limit(limit)
            ).unique().all()
            merged.extend((r.date, r.created_at, to_transaction(model.model_validate(r), kind)) for r in records)

        merged.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [transaction for _, _, transaction in merged[:limit]]

    @staticmethod
    def _sum_between(db_session: Session, record, user_id: int, start: date, end: date) -> Decimal:
        total = db_session.scalar(
            select(func.coalesce(func.sum(record.amount), 0))
            .where(record.user_id == user_id, record.date >= start, record.date <= end)
        )
        return to_decimal(total)

    @server_action("Failed to fetch recent transactions")
    async def get_recent_transactions(self, session: UserSession, limit: int = 10) -> list[Transaction]:
        with self._db.session_scope() as db_session:
            return self._recent(db_session, session.user_id, max(0, limit))

    @server_action("Failed to fetch dashboard stats")
    async def get_dashboard_stats(
        self,
        session: UserSession,
        month: Optional[date] = None,
    ) -> DashboardStats:
        """
        Figures for the dashboard cards.

        savings_rate is (income - expenses) / income x 100 and 0 when the
        month has no income. Investments count at their current value.
        """
        start, end = month_bounds(month or date.today())
        with self._db.session_scope() as db_session:
            balance = to_decimal(db_session.scalar(
                select(func.coalesce(func.sum(AccountRecord.balance), 0))
                .where(AccountRecord.user_id == session.user_id)
            ))
            income = self._sum_between(db_session, IncomeRecord, session.user_id, start, end)
            expenses = self._sum_between(db_session, ExpenseRecord, session.user_id, start, end)
            investments = [
                Investment.model_validate(r)
                for r in db_session.scalars(
                    select(InvestmentRecord).where(InvestmentRecord.user_id == session.user_id)
                )
            ]
            recent = self._recent(db_session, session.user_id, 5)

        savings_rate = float((income - expenses) / income * 100) if income > 0 else 0.0
        return DashboardStats(
            total_balance=to_money(balance),
            monthly_income=to_money(income),
            monthly_expenses=to_money(expenses),
            savings_rate=round(savings_rate, 2),
            total_investments=to_money(sum((i.current_value for i in investments), Decimal("0"))),
            recent_transactions=recent,
        )

    @server_action("Failed to fetch category breakdown")
    async def get_category_breakdown(
        self,
        session: UserSession,
        transaction_type: TransactionType,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[CategoryTotal]:
        record = RECORDS[TransactionType(transaction_type)][0]
        total = func.sum(record.amount)
        query = (
            select(CategoryRecord.name, total)
            .select_from(record)
            .join(CategoryRecord, record.category_id == CategoryRecord.id)
            .where(record.user_id == session.user_id)
            .group_by(CategoryRecord.name)
            .order_by(total.desc())
        )
        if start_date is not None:
            query = query.where(record.date >= start_date)
        if end_date is not None:
            query = query.where(record.date <= end_date)

        with self._db.session_scope() as db_session:
            rows = db_session.execute(query).all()
        return [CategoryTotal(category=name, total=to_money(amount)) for name, amount in rows]
