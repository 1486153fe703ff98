"""
Expense actions. Creating an expense takes its amount out of the linked
account; see ledger.py for the full bookkeeping rules.
"""

from datetime import date
from typing import Optional

from money_manager.actions.ledger import LedgerActions
from money_manager.actions.base import server_action
from money_manager.models.audit import AuditEventType
from money_manager.models.finance import (
    CategoryType,
    Expense,
    ExpenseCreate,
    ExpenseUpdate,
    ImportResult,
    UserSession,
)
from money_manager.services.storage.schema import ExpenseRecord


class ExpenseActions(LedgerActions):
    record_class = ExpenseRecord
    read_model = Expense
    create_model = ExpenseCreate
    category_type = CategoryType.EXPENSE
    sign = -1
    entity = "Expense"
    created_event = AuditEventType.EXPENSE_CREATED
    updated_event = AuditEventType.EXPENSE_UPDATED
    deleted_event = AuditEventType.EXPENSE_DELETED

    @server_action("Failed to fetch expenses")
    async def get_expenses(self, session: UserSession) -> list[Expense]:
        return self._list(session.user_id)

    @server_action("Failed to fetch expenses by category")
    async def get_expenses_by_category(self, session: UserSession, category_id: int) -> list[Expense]:
        return self._list(session.user_id, category_id=category_id)

    @server_action("Failed to fetch expenses by date range")
    async def get_expenses_by_date_range(
        self,
        session: UserSession,
        start_date: date,
        end_date: date,
    ) -> list[Expense]:
        return self._list(session.user_id, start=start_date, end=end_date)

    @server_action("Failed to create expense")
    async def create_expense(self, session: UserSession, data: ExpenseCreate) -> Expense:
        return await self._create(session, data)

    @server_action("Failed to update expense")
    async def update_expense(
        self,
        session: UserSession,
        expense_id: int,
        data: ExpenseUpdate,
    ) -> Expense:
        return await self._update(session, expense_id, data)

    @server_action("Failed to delete expense")
    async def delete_expense(self, session: UserSession, expense_id: int) -> bool:
        return await self._delete(session, expense_id)

    @server_action("Failed to delete expenses")
    async def bulk_delete_expenses(self, session: UserSession, expense_ids: list[int]) -> int:
        return await self._bulk_delete(session, expense_ids)

    @server_action("Failed to process bulk import")
    async def bulk_import_expenses(
        self,
        session: UserSession,
        csv_text: str,
        default_account_id: Optional[int] = None,
    ) -> ImportResult:
        return await self._bulk_import(session, csv_text, default_account_id)

    @server_action("Failed to attach receipt")
    async def attach_receipt(self, session: UserSession, expense_id: int, receipt_url: str) -> Expense:
        return await self._update(session, expense_id, ExpenseUpdate(receipt_url=receipt_url))
