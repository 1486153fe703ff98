"""
Account actions, including self transfers between a user's accounts.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from money_manager.actions.base import BaseActions, describe_validation_error, server_action
from money_manager.actions.categories import get_or_create_self_transfer_category
from money_manager.exceptions import (
    DuplicateError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from money_manager.importers import ACCOUNT_COLUMNS, CsvImportError, parse_account_row, parse_csv
from money_manager.models.audit import AuditEventType
from money_manager.models.finance import (
    Account,
    AccountCreate,
    AccountUpdate,
    BulkCreateResult,
    ImportResult,
    TransferResult,
    UserSession,
)
from money_manager.services.storage.schema import (
    AccountRecord,
    ExpenseRecord,
    InvestmentRecord,
    UserRecord,
)


TRANSFER_TAGS = ["Transfer", "Self-Transfer"]


def user_currency(db_session: Session, user_id: int) -> str:
    currency = db_session.scalar(select(UserRecord.currency).where(UserRecord.id == user_id))
    return currency or "USD"


class AccountActions(BaseActions):

    @staticmethod
    def _check_unique_number(
        db_session: Session,
        account_number: str,
        exclude_id: Optional[int] = None,
    ) -> None:
        query = select(func.count()).select_from(AccountRecord).where(
            AccountRecord.account_number == account_number
        )
        if exclude_id is not None:
            query = query.where(AccountRecord.id != exclude_id)
        if db_session.scalar(query):
            raise DuplicateError(f"An account with number {account_number} already exists")

    @staticmethod
    def _check_no_investments(db_session: Session, account_ids: list[int]) -> None:
        count = db_session.scalar(
            select(func.count()).select_from(InvestmentRecord)
            .where(InvestmentRecord.account_id.in_(account_ids))
        )
        if count:
            raise ValidationError(
                f"Account is linked to {count} investment(s); delete those first"
            )

    @server_action("Failed to fetch accounts")
    async def get_user_accounts(self, session: UserSession) -> list[Account]:
        with self._db.session_scope() as db_session:
            records = db_session.scalars(
                select(AccountRecord)
                .where(AccountRecord.user_id == session.user_id)
                .order_by(AccountRecord.created_at.desc(), AccountRecord.id.desc())
            ).all()
            return [Account.model_validate(r) for r in records]

    @server_action("Failed to fetch account")
    async def get_account(self, session: UserSession, account_id: int) -> Account:
        with self._db.session_scope() as db_session:
            record = self._get_account_for_user(db_session, account_id, session.user_id)
            return Account.model_validate(record)

    def _insert_account(self, db_session: Session, user_id: int, data: AccountCreate) -> Account:
        self._check_unique_number(db_session, data.account_number)
        record = AccountRecord(user_id=user_id, **data.model_dump())
        db_session.add(record)
        db_session.flush()
        return Account.model_validate(record)

    @server_action("Failed to create account")
    async def create_account(self, session: UserSession, data: AccountCreate) -> Account:
        with self._db.session_scope() as db_session:
            account = self._insert_account(db_session, session.user_id, data)

        await self._audit.log_account_changed(
            AuditEventType.ACCOUNT_CREATED, session.user_id, account.id, account.bank_name
        )
        return account

    @server_action("Failed to create accounts")
    async def bulk_create_accounts(
        self,
        session: UserSession,
        accounts: Sequence[Union[AccountCreate, dict[str, Any]]],
    ) -> BulkCreateResult:
        """
        Create several accounts in one transaction.

        Entries that fail validation or reuse an account number are skipped
        and reported as "Account <n>: <reason>", counting from 1; the rest
        are created.
        """
        result = BulkCreateResult(total=len(accounts))
        with self._db.session_scope() as db_session:
            for index, item in enumerate(accounts, start=1):
                try:
                    data = item if isinstance(item, AccountCreate) else AccountCreate.model_validate(item)
                    result.created.append(self._insert_account(db_session, session.user_id, data))
                except PydanticValidationError as e:
                    result.errors.append(f"Account {index}: {describe_validation_error(e)}")
                except DuplicateError as e:
                    result.errors.append(f"Account {index}: {e}")

        self._logger.info(
            "accounts_bulk_created",
            user_id=session.user_id,
            success_count=result.success_count,
            error_count=len(result.errors),
        )
        for account in result.created:
            await self._audit.log_account_changed(
                AuditEventType.ACCOUNT_CREATED, session.user_id, account.id, account.bank_name
            )
        return result

    @server_action("Failed to import accounts")
    async def bulk_import_accounts(self, session: UserSession, csv_text: str) -> ImportResult:
        """Import accounts from CSV; the balance column becomes the opening balance."""
        try:
            headers, rows = parse_csv(csv_text, required=ACCOUNT_COLUMNS)
        except CsvImportError as e:
            raise ValidationError(str(e))

        async def import_row(row_number: int, cells: list[str], correlation_id: UUID) -> None:
            data = AccountCreate(**parse_account_row(headers, cells))
            with self._db.session_scope() as db_session:
                account = self._insert_account(db_session, session.user_id, data)
            await self._audit.log_account_changed(
                AuditEventType.ACCOUNT_CREATED,
                session.user_id,
                account.id,
                account.bank_name,
                correlation_id=correlation_id,
            )

        return await self._import_rows(session, "account", rows, import_row)

    @server_action("Failed to update account")
    async def update_account(
        self,
        session: UserSession,
        account_id: int,
        data: AccountUpdate,
    ) -> Account:
        changes = data.model_dump(exclude_unset=True)
        with self._db.session_scope() as db_session:
            record = self._get_account_for_user(db_session, account_id, session.user_id)
            number = changes.get("account_number")
            if number and number != record.account_number:
                self._check_unique_number(db_session, number, exclude_id=record.id)
            for field, value in changes.items():
                setattr(record, field, value)
            db_session.flush()
            account = Account.model_validate(record)

        await self._audit.log_account_changed(
            AuditEventType.ACCOUNT_UPDATED, session.user_id, account.id, account.bank_name
        )
        return account

    @server_action("Failed to delete account")
    async def delete_account(self, session: UserSession, account_id: int) -> bool:
        with self._db.session_scope() as db_session:
            record = self._get_account_for_user(db_session, account_id, session.user_id)
            self._check_no_investments(db_session, [record.id])
            bank_name = record.bank_name
            db_session.delete(record)

        await self._audit.log_account_changed(
            AuditEventType.ACCOUNT_DELETED, session.user_id, account_id, bank_name
        )
        return True

    @server_action("Failed to delete accounts")
    async def bulk_delete_accounts(self, session: UserSession, account_ids: list[int]) -> int:
        with self._db.session_scope() as db_session:
            records = self._owned_ids(db_session, AccountRecord, account_ids, session.user_id, "Account")
            self._check_no_investments(db_session, [r.id for r in records])
            deleted = [(r.id, r.bank_name) for r in records]
            for record in records:
                db_session.delete(record)

        for account_id, bank_name in deleted:
            await self._audit.log_account_changed(
                AuditEventType.ACCOUNT_DELETED, session.user_id, account_id, bank_name
            )
        return len(deleted)

    @server_action("Failed to calculate total balance")
    async def get_total_balance(self, session: UserSession) -> Decimal:
        with self._db.session_scope() as db_session:
            total = db_session.scalar(
                select(func.coalesce(func.sum(AccountRecord.balance), 0))
                .where(AccountRecord.user_id == session.user_id)
            )
            return Decimal(str(total or 0))

    @server_action("Failed to transfer money")
    async def transfer_money(
        self,
        session: UserSession,
        from_account_id: int,
        to_account_id: int,
        amount: Decimal,
        notes: Optional[str] = None,
    ) -> TransferResult:
        """
        Move money between two of the user's accounts.

        Both balance updates and the zero-amount bookkeeping expense commit
        together or not at all.
        """
        amount = Decimal(str(amount))
        if from_account_id == to_account_id:
            raise ValidationError("Source and destination accounts cannot be the same")
        if not amount.is_finite() or amount <= 0:
            raise ValidationError("Transfer amount must be greater than 0")

        with self._db.session_scope() as db_session:
            currency = user_currency(db_session, session.user_id)
            from_account = db_session.get(AccountRecord, from_account_id)
            to_account = db_session.get(AccountRecord, to_account_id)
            if from_account is None or from_account.user_id != session.user_id:
                raise NotFoundError("Source account not found or unauthorized")
            if to_account is None or to_account.user_id != session.user_id:
                raise NotFoundError("Destination account not found or unauthorized")

            if from_account.balance < amount:
                raise InsufficientBalanceError(
                    f"Insufficient balance. Available: {from_account.balance} {currency}"
                )

            category = get_or_create_self_transfer_category(db_session, session.user_id)

            self._adjust_balance(db_session, from_account.id, -amount)
            self._adjust_balance(db_session, to_account.id, amount)

            transfer_notes = (
                f"Transfer Amount: {amount} {currency} | "
                f"From: {from_account.bank_name} ({from_account.account_number}) | "
                f"To: {to_account.bank_name} ({to_account.account_number})"
            )
            if notes:
                transfer_notes += f" | Notes: {notes}"

            # Zero amount keeps transfers out of expense totals
            expense = ExpenseRecord(
                user_id=session.user_id,
                category_id=category.id,
                account_id=from_account.id,
                title=f"Transfer: {from_account.bank_name} → {to_account.bank_name}",
                description="Money transfer between accounts",
                amount=Decimal("0"),
                currency=currency,
                date=date.today(),
                tags=list(TRANSFER_TAGS),
                notes=transfer_notes,
                is_recurring=False,
            )
            db_session.add(expense)
            db_session.flush()
            db_session.refresh(from_account)
            db_session.refresh(to_account)

            result = TransferResult(
                from_account=Account.model_validate(from_account),
                to_account=Account.model_validate(to_account),
                amount=amount,
                expense_id=expense.id,
            )

        self._logger.info(
            "transfer_completed",
            user_id=session.user_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=str(amount),
        )
        await self._audit.log_transfer(session.user_id, from_account_id, to_account_id, amount)
        return result
