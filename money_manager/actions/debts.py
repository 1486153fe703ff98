"""
Debt Actions

Money lent to someone. Lending takes the principal out of the linked
account; repayments put money back. Interest is simple interest computed
on read (see utils/interest.py), never stored.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from money_manager.actions.base import BaseActions, server_action
from money_manager.exceptions import (
    InsufficientBalanceError,
    ValidationError,
    not_found,
)
from money_manager.importers import (
    DEBT_COLUMNS,
    REPAYMENT_COLUMNS,
    CsvImportError,
    parse_csv,
    parse_debt_row,
    parse_repayment_row,
)
from money_manager.models.audit import AuditEventType
from money_manager.models.finance import (
    Debt,
    DebtCreate,
    DebtRepayment,
    DebtUpdate,
    ImportResult,
    UserSession,
)
from money_manager.services.storage.schema import DebtRecord, DebtRepaymentRecord
from money_manager.utils.interest import (
    calculate_remaining_with_interest,
    determine_debt_status,
)
from money_manager.utils.money import to_decimal, to_money


def debt_to_model(record: DebtRecord, today: Optional[date] = None) -> Debt:
    """Read model with interest and remaining amount filled in."""
    debt = Debt.model_validate(record)
    calc = calculate_remaining_with_interest(
        debt.amount,
        debt.interest_rate,
        debt.lent_date,
        debt.due_date,
        [r.amount for r in debt.repayments],
        today,
    )
    return debt.model_copy(update={
        "interest_amount": to_money(calc.interest_amount),
        "total_with_interest": to_money(calc.total_with_interest),
        "remaining_amount": to_money(calc.remaining_amount),
    })


class DebtActions(BaseActions):

    def _refresh_status(self, record: DebtRecord, today: Optional[date] = None) -> None:
        calc = calculate_remaining_with_interest(
            record.amount,
            record.interest_rate,
            record.lent_date,
            record.due_date,
            [r.amount for r in record.repayments],
            today,
        )
        record.status = determine_debt_status(
            record.status,
            calc.total_with_interest,
            calc.total_repaid,
            record.due_date,
            today,
        )

    @staticmethod
    def _check_repayment(record: DebtRecord, amount: Decimal) -> None:
        """Refuse a repayment larger than what is still owed, at cent precision."""
        calc = calculate_remaining_with_interest(
            record.amount,
            record.interest_rate,
            record.lent_date,
            record.due_date,
            [r.amount for r in record.repayments],
        )
        remaining = to_money(calc.remaining_amount)
        if to_money(amount) > remaining:
            raise ValidationError(
                f"Repayment amount ({to_money(amount)}) exceeds remaining debt ({remaining:.2f})"
            )

    def _load(self, db_session: Session, debt_id: int, user_id: int) -> DebtRecord:
        return self._get_owned(db_session, DebtRecord, debt_id, user_id, "Debt")

    @server_action("Failed to fetch debts")
    async def get_user_debts(self, session: UserSession) -> list[Debt]:
        with self._db.session_scope() as db_session:
            records = db_session.scalars(
                select(DebtRecord)
                .where(DebtRecord.user_id == session.user_id)
                .order_by(DebtRecord.lent_date.desc(), DebtRecord.id.desc())
            ).all()
            return [debt_to_model(r) for r in records]

    @server_action("Failed to fetch debt")
    async def get_debt(self, session: UserSession, debt_id: int) -> Debt:
        with self._db.session_scope() as db_session:
            return debt_to_model(self._load(db_session, debt_id, session.user_id))

    @server_action("Failed to create debt")
    async def create_debt(self, session: UserSession, data: DebtCreate) -> Debt:
        with self._db.session_scope() as db_session:
            if data.account_id is not None:
                account = self._get_account_for_user(db_session, data.account_id, session.user_id)
                if to_decimal(account.balance) < data.amount:
                    raise InsufficientBalanceError()

            record = DebtRecord(user_id=session.user_id, **data.model_dump())
            db_session.add(record)
            self._adjust_balance(db_session, record.account_id, -data.amount)
            db_session.flush()
            db_session.refresh(record)
            debt = debt_to_model(record)

        await self._audit.log_debt_changed(
            AuditEventType.DEBT_CREATED, session.user_id, debt.id, debt.borrower_name, debt.amount
        )
        return debt

    @server_action("Failed to update debt")
    async def update_debt(self, session: UserSession, debt_id: int, data: DebtUpdate) -> Debt:
        changes = data.model_dump(exclude_unset=True)
        for field in ("borrower_name", "interest_rate", "status"):
            if field in changes and changes[field] is None:
                del changes[field]

        with self._db.session_scope() as db_session:
            record = self._load(db_session, debt_id, session.user_id)
            due_date = changes.get("due_date", record.due_date)
            if due_date is not None and due_date < record.lent_date:
                raise ValidationError("Due date cannot be before lent date")

            for field, value in changes.items():
                setattr(record, field, value)
            db_session.flush()
            db_session.refresh(record)
            return debt_to_model(record)

    @server_action("Failed to delete debt")
    async def delete_debt(self, session: UserSession, debt_id: int) -> bool:
        with self._db.session_scope() as db_session:
            record = self._load(db_session, debt_id, session.user_id)
            borrower, amount = record.borrower_name, to_decimal(record.amount)
            self._adjust_balance(db_session, record.account_id, amount)
            db_session.delete(record)

        await self._audit.log_debt_changed(
            AuditEventType.DEBT_DELETED, session.user_id, debt_id, borrower, amount
        )
        return True

    @server_action("Failed to delete debts")
    async def bulk_delete_debts(self, session: UserSession, debt_ids: list[int]) -> int:
        with self._db.session_scope() as db_session:
            records = self._owned_ids(db_session, DebtRecord, debt_ids, session.user_id, "Debt")
            deleted = []
            for record in records:
                amount = to_decimal(record.amount)
                self._adjust_balance(db_session, record.account_id, amount)
                deleted.append((record.id, record.borrower_name, amount))
                db_session.delete(record)

        for debt_id, borrower, amount in deleted:
            await self._audit.log_debt_changed(
                AuditEventType.DEBT_DELETED, session.user_id, debt_id, borrower, amount
            )
        return len(deleted)

    # =========================================================================
    # REPAYMENTS
    # =========================================================================

    @server_action("Failed to add repayment")
    async def add_repayment(
        self,
        session: UserSession,
        debt_id: int,
        amount: Decimal,
        notes: Optional[str] = None,
        account_id: Optional[int] = None,
    ) -> DebtRepayment:
        """
        Record a repayment against a debt.

        The amount may not exceed what is still owed including interest,
        compared at cent precision. The money lands in account_id when
        given; without one the repayment was received in cash.
        """
        amount = to_decimal(amount)
        if not amount.is_finite() or amount <= 0:
            raise ValidationError("Repayment amount must be greater than 0")

        with self._db.session_scope() as db_session:
            record = self._load(db_session, debt_id, session.user_id)
            self._check_repayment(record, amount)

            if account_id is not None:
                self._get_account_for_user(db_session, account_id, session.user_id)

            repayment = DebtRepaymentRecord(
                debt_id=record.id,
                account_id=account_id,
                amount=to_money(amount),
                repayment_date=datetime.utcnow(),
                notes=notes,
            )
            record.repayments.append(repayment)
            self._refresh_status(record)
            self._adjust_balance(db_session, account_id, to_money(amount))
            db_session.flush()
            result = DebtRepayment.model_validate(repayment)
            status = record.status

        await self._audit.log_repayment_changed(
            AuditEventType.REPAYMENT_ADDED, session.user_id, debt_id, result.id, result.amount, status.value
        )
        return result

    @server_action("Failed to delete repayment")
    async def delete_repayment(self, session: UserSession, repayment_id: int, debt_id: int) -> bool:
        with self._db.session_scope() as db_session:
            record = self._load(db_session, debt_id, session.user_id)
            repayment = next((r for r in record.repayments if r.id == repayment_id), None)
            if repayment is None:
                raise not_found("Repayment")

            amount, account_id = to_decimal(repayment.amount), repayment.account_id
            record.repayments.remove(repayment)
            self._refresh_status(record)
            self._adjust_balance(db_session, account_id, -amount)
            status = record.status

        await self._audit.log_repayment_changed(
            AuditEventType.REPAYMENT_DELETED, session.user_id, debt_id, repayment_id, amount, status.value
        )
        return True

    # =========================================================================
    # IMPORT
    # =========================================================================

    @server_action("Failed to import debts")
    async def bulk_import_debts(self, session: UserSession, csv_text: str) -> ImportResult:
        """
        Import debts from CSV as a record of past lending.

        Imported debts are not linked to an account and move no balance:
        the money left the account before the import. When the file has an
        id column, ImportResult.id_mapping maps it onto the new debt ids so
        a repayments file exported alongside can be imported against them.
        """
        try:
            headers, rows = parse_csv(csv_text, required=DEBT_COLUMNS)
        except CsvImportError as e:
            raise ValidationError(str(e))

        id_mapping: dict[int, int] = {}

        async def import_row(row_number: int, cells: list[str], correlation_id: UUID) -> None:
            payload, original_id = parse_debt_row(headers, cells)
            data = DebtCreate(**payload)
            with self._db.session_scope() as db_session:
                record = DebtRecord(user_id=session.user_id, **data.model_dump())
                db_session.add(record)
                db_session.flush()
                debt_id = record.id

            if original_id is not None:
                id_mapping[original_id] = debt_id
            await self._audit.log_debt_changed(
                AuditEventType.DEBT_CREATED,
                session.user_id,
                debt_id,
                data.borrower_name,
                data.amount,
                correlation_id=correlation_id,
            )

        result = await self._import_rows(session, "debt", rows, import_row)
        result.id_mapping = id_mapping
        return result

    @server_action("Failed to import repayments")
    async def bulk_import_repayments(
        self,
        session: UserSession,
        csv_text: str,
        debt_id_mapping: Optional[dict[int, int]] = None,
    ) -> ImportResult:
        """
        Import repayments from CSV against the user's debts.

        The debt id column is translated through debt_id_mapping (the
        id_mapping of a debt import) when it has an entry. Imported
        repayments move no balance, but each one may still not exceed what
        is left on its debt, and the debt status follows the repayments.
        """
        try:
            headers, rows = parse_csv(csv_text, required=REPAYMENT_COLUMNS)
        except CsvImportError as e:
            raise ValidationError(str(e))

        mapping = debt_id_mapping or {}

        async def import_row(row_number: int, cells: list[str], correlation_id: UUID) -> None:
            row = parse_repayment_row(headers, cells)
            debt_id = mapping.get(row["debt_id"], row["debt_id"])
            with self._db.session_scope() as db_session:
                record = self._load(db_session, debt_id, session.user_id)
                self._check_repayment(record, row["amount"])
                repayment = DebtRepaymentRecord(
                    debt_id=record.id,
                    amount=row["amount"],
                    repayment_date=datetime.combine(row["repayment_date"], time.min),
                    notes=row["notes"],
                )
                record.repayments.append(repayment)
                self._refresh_status(record)
                db_session.flush()
                repayment_id, status = repayment.id, record.status

            await self._audit.log_repayment_changed(
                AuditEventType.REPAYMENT_ADDED,
                session.user_id,
                debt_id,
                repayment_id,
                row["amount"],
                status.value,
                correlation_id=correlation_id,
            )

        return await self._import_rows(session, "repayment", rows, import_row)
