"""
Ledger Actions

Expenses and incomes are the same bookkeeping with opposite signs. An
expense takes money out of its account, an income puts it in:

    create      balance += sign * amount
    update      same account:    balance += sign * (new - old)
                account changed: old -= sign * old_amount
                                 new += sign * new_amount
    delete      balance -= sign * amount

sign is -1 for expenses and +1 for incomes. Entries without an account
are cash and move nothing.
"""

from datetime import date
from decimal import Decimal
from typing import Any, ClassVar, Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from money_manager.actions.accounts import user_currency
from money_manager.actions.base import BaseActions
from money_manager.actions.categories import get_category_for_entry, visible_to
from money_manager.exceptions import ValidationError
from money_manager.importers import (
    REQUIRED_COLUMNS,
    AccountRef,
    CategoryRef,
    CsvImportError,
    match_account,
    match_category,
    parse_csv,
    parse_row,
)
from money_manager.models.audit import AuditEventType
from money_manager.models.finance import (
    CategoryType,
    Expense,
    ExpenseCreate,
    ExpenseUpdate,
    ImportResult,
    Income,
    IncomeCreate,
    IncomeUpdate,
    RecurringFrequency,
    UserSession,
)
from money_manager.services.storage.schema import (
    AccountRecord,
    CategoryRecord,
    ExpenseRecord,
    IncomeRecord,
)


EntryModel = Union[Expense, Income]
EntryCreate = Union[ExpenseCreate, IncomeCreate]
EntryUpdate = Union[ExpenseUpdate, IncomeUpdate]
EntryRecord = Union[ExpenseRecord, IncomeRecord]

# Columns an update may not null out
REQUIRED_FIELDS = ("title", "amount", "date", "category_id", "currency", "tags", "is_recurring")


class LedgerActions(BaseActions):
    """Shared implementation; subclasses bind the entity specifics."""

    record_class: ClassVar[type]
    read_model: ClassVar[type]
    create_model: ClassVar[type]
    category_type: ClassVar[CategoryType]
    sign: ClassVar[int]
    entity: ClassVar[str]
    created_event: ClassVar[AuditEventType]
    updated_event: ClassVar[AuditEventType]
    deleted_event: ClassVar[AuditEventType]

    # =========================================================================
    # QUERIES
    # =========================================================================

    def _list(
        self,
        user_id: int,
        category_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[EntryModel]:
        record = self.record_class
        query = select(record).where(record.user_id == user_id)
        if category_id is not None:
            query = query.where(record.category_id == category_id)
        if start is not None:
            query = query.where(record.date >= start)
        if end is not None:
            query = query.where(record.date <= end)
        query = query.order_by(record.date.desc(), record.id.desc())

        with self._db.session_scope() as db_session:
            records = db_session.scalars(query).unique().all()
            return [self.read_model.model_validate(r) for r in records]

    # =========================================================================
    # WRITES
    # =========================================================================

    def _validate_account(
        self,
        db_session: Session,
        account_id: Optional[int],
        user_id: int,
    ) -> None:
        if account_id is not None:
            self._get_account_for_user(db_session, account_id, user_id)

    async def _create(
        self,
        session: UserSession,
        data: EntryCreate,
        correlation_id: Optional[UUID] = None,
    ) -> EntryModel:
        with self._db.session_scope() as db_session:
            get_category_for_entry(db_session, session.user_id, data.category_id, self.category_type)
            self._validate_account(db_session, data.account_id, session.user_id)

            values = data.model_dump()
            values["currency"] = (values.get("currency") or user_currency(db_session, session.user_id)).upper()
            record = self.record_class(user_id=session.user_id, **values)
            db_session.add(record)
            self._adjust_balance(db_session, record.account_id, self.sign * record.amount)
            db_session.flush()
            db_session.refresh(record)
            entry = self.read_model.model_validate(record)

        await self._audit.log_entry_changed(
            self.created_event,
            session.user_id,
            entry.id,
            entry.title,
            entry.amount,
            account_id=entry.account_id,
            correlation_id=correlation_id,
        )
        return entry

    async def _update(
        self,
        session: UserSession,
        entry_id: int,
        data: EntryUpdate,
    ) -> EntryModel:
        changes = data.model_dump(exclude_unset=True)
        for field in REQUIRED_FIELDS:
            if field in changes and changes[field] is None:
                del changes[field]

        with self._db.session_scope() as db_session:
            record = self._get_owned(db_session, self.record_class, entry_id, session.user_id, self.entity)
            old_amount = Decimal(record.amount)
            old_account_id = record.account_id

            if "category_id" in changes:
                get_category_for_entry(db_session, session.user_id, changes["category_id"], self.category_type)
            if "account_id" in changes:
                self._validate_account(db_session, changes["account_id"], session.user_id)
            if changes.get("tags") is not None:
                changes["tags"] = [t.strip() for t in changes["tags"] if t and t.strip()]
            if "is_recurring" in changes and not changes["is_recurring"]:
                changes["recurring_frequency"] = None
            if changes.get("is_recurring") and not (changes.get("recurring_frequency") or record.recurring_frequency):
                changes["recurring_frequency"] = RecurringFrequency.MONTHLY

            for field, value in changes.items():
                setattr(record, field, value)

            new_amount = Decimal(record.amount)
            new_account_id = record.account_id
            if new_account_id == old_account_id:
                self._adjust_balance(db_session, new_account_id, self.sign * (new_amount - old_amount))
            else:
                self._adjust_balance(db_session, old_account_id, -self.sign * old_amount)
                self._adjust_balance(db_session, new_account_id, self.sign * new_amount)

            db_session.flush()
            db_session.refresh(record)
            entry = self.read_model.model_validate(record)

        await self._audit.log_entry_changed(
            self.updated_event,
            session.user_id,
            entry.id,
            entry.title,
            entry.amount,
            account_id=entry.account_id,
        )
        return entry

    async def _delete(self, session: UserSession, entry_id: int) -> bool:
        with self._db.session_scope() as db_session:
            record = self._get_owned(db_session, self.record_class, entry_id, session.user_id, self.entity)
            title, amount, account_id = record.title, Decimal(record.amount), record.account_id
            self._adjust_balance(db_session, account_id, -self.sign * amount)
            db_session.delete(record)

        await self._audit.log_entry_changed(
            self.deleted_event, session.user_id, entry_id, title, amount, account_id=account_id
        )
        return True

    async def _bulk_delete(self, session: UserSession, entry_ids: list[int]) -> int:
        with self._db.session_scope() as db_session:
            records = self._owned_ids(db_session, self.record_class, entry_ids, session.user_id, self.entity)
            deleted = []
            for record in records:
                amount = Decimal(record.amount)
                self._adjust_balance(db_session, record.account_id, -self.sign * amount)
                deleted.append((record.id, record.title, amount, record.account_id))
                db_session.delete(record)

        for entry_id, title, amount, account_id in deleted:
            await self._audit.log_entry_changed(
                self.deleted_event, session.user_id, entry_id, title, amount, account_id=account_id
            )
        return len(deleted)

    # =========================================================================
    # CSV IMPORT
    # =========================================================================

    def _import_refs(self, user_id: int) -> tuple[list[CategoryRef], list[AccountRef]]:
        with self._db.session_scope() as db_session:
            categories = [
                CategoryRef(id=c.id, name=c.name)
                for c in db_session.scalars(
                    select(CategoryRecord)
                    .where(visible_to(user_id), CategoryRecord.type == self.category_type)
                    .order_by(CategoryRecord.user_id.is_(None), CategoryRecord.name)
                )
            ]
            accounts = [
                AccountRef(
                    id=a.id,
                    holder_name=a.holder_name,
                    bank_name=a.bank_name,
                    account_number=a.account_number,
                )
                for a in db_session.scalars(
                    select(AccountRecord).where(AccountRecord.user_id == user_id).order_by(AccountRecord.id)
                )
            ]
        return categories, accounts

    def _build_create(
        self,
        cells: list[str],
        headers: list[str],
        row_number: int,
        categories: list[CategoryRef],
        accounts: list[AccountRef],
        default_account_id: Optional[int],
    ) -> EntryCreate:
        parsed = parse_row(headers, cells, row_number)
        category = match_category(parsed.category_name, categories)
        payload: dict[str, Any] = {
            "title": parsed.title,
            "description": parsed.description,
            "amount": parsed.amount,
            "currency": parsed.currency,
            "date": parsed.date,
            "category_id": category.id,
            "account_id": match_account(parsed.account_name, accounts, default_account_id),
            "tags": list(parsed.tags),
            "notes": parsed.notes,
            "is_recurring": parsed.is_recurring,
            "recurring_frequency": parsed.recurring_frequency,
        }
        return self.create_model(**payload)

    async def _bulk_import(
        self,
        session: UserSession,
        csv_text: str,
        default_account_id: Optional[int] = None,
    ) -> ImportResult:
        """Import every valid row; collect the rest as row errors."""
        try:
            headers, rows = parse_csv(csv_text, required=REQUIRED_COLUMNS)
        except CsvImportError as e:
            raise ValidationError(str(e))

        categories, accounts = self._import_refs(session.user_id)

        async def import_row(row_number: int, cells: list[str], correlation_id: UUID) -> None:
            data = self._build_create(
                cells, headers, row_number, categories, accounts, default_account_id
            )
            await self._create(session, data, correlation_id=correlation_id)

        return await self._import_rows(session, self.entity.lower(), rows, import_row)
