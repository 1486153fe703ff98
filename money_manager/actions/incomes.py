"""
Income actions. The mirror image of expenses: creating an income adds its
amount to the linked account.
"""

from datetime import date
from typing import Optional

from money_manager.actions.ledger import LedgerActions
from money_manager.actions.base import server_action
from money_manager.models.audit import AuditEventType
from money_manager.models.finance import (
    CategoryType,
    ImportResult,
    Income,
    IncomeCreate,
    IncomeUpdate,
    UserSession,
)
from money_manager.services.storage.schema import IncomeRecord


class IncomeActions(LedgerActions):
    record_class = IncomeRecord
    read_model = Income
    create_model = IncomeCreate
    category_type = CategoryType.INCOME
    sign = 1
    entity = "Income"
    created_event = AuditEventType.INCOME_CREATED
    updated_event = AuditEventType.INCOME_UPDATED
    deleted_event = AuditEventType.INCOME_DELETED

    @server_action("Failed to fetch incomes")
    async def get_incomes(self, session: UserSession) -> list[Income]:
        return self._list(session.user_id)

    @server_action("Failed to fetch incomes by category")
    async def get_incomes_by_category(self, session: UserSession, category_id: int) -> list[Income]:
        return self._list(session.user_id, category_id=category_id)

    @server_action("Failed to fetch incomes by date range")
    async def get_incomes_by_date_range(
        self,
        session: UserSession,
        start_date: date,
        end_date: date,
    ) -> list[Income]:
        return self._list(session.user_id, start=start_date, end=end_date)

    @server_action("Failed to create income")
    async def create_income(self, session: UserSession, data: IncomeCreate) -> Income:
        return await self._create(session, data)

    @server_action("Failed to update income")
    async def update_income(
        self,
        session: UserSession,
        income_id: int,
        data: IncomeUpdate,
    ) -> Income:
        return await self._update(session, income_id, data)

    @server_action("Failed to delete income")
    async def delete_income(self, session: UserSession, income_id: int) -> bool:
        return await self._delete(session, income_id)

    @server_action("Failed to delete incomes")
    async def bulk_delete_incomes(self, session: UserSession, income_ids: list[int]) -> int:
        return await self._bulk_delete(session, income_ids)

    @server_action("Failed to process bulk import")
    async def bulk_import_incomes(
        self,
        session: UserSession,
        csv_text: str,
        default_account_id: Optional[int] = None,
    ) -> ImportResult:
        return await self._bulk_import(session, csv_text, default_account_id)
