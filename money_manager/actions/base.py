"""
Action Base

Actions are the service layer the UI calls. Each public action:
- takes the caller's UserSession first
- runs its writes inside one DatabaseClient.session_scope()
- returns an ActionResult instead of raising

The server_action decorator is the error boundary. Domain errors become
failures carrying their own message; anything unexpected is logged with
its traceback and reported with the action's generic failure message.
"""

import functools
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from money_manager.audit import AuditLogger, create_correlation_id
from money_manager.exceptions import (
    MoneyManagerError,
    UnauthorizedError,
    not_found,
)
from money_manager.importers import RowError
from money_manager.models.finance import ActionResult, ImportResult, ImportRowError, UserSession
from money_manager.services.storage import DatabaseClient, StorageError
from money_manager.services.storage.schema import AccountRecord, Base


logger = structlog.get_logger()

RecordT = TypeVar("RecordT", bound=Base)

# Imports one numbered CSV row; receives (row_number, cells, correlation_id)
RowImporter = Callable[[int, list[str], UUID], Awaitable[Any]]


def require_user(session: Optional[UserSession]) -> UserSession:
    """Reject calls without an authenticated session."""
    if session is None or not session.user_id:
        raise UnauthorizedError()
    return session


def describe_validation_error(error: PydanticValidationError) -> str:
    """Flatten pydantic errors into one user-presentable line."""
    messages = []
    for err in error.errors():
        field = ".".join(str(part) for part in err.get("loc", ()))
        msg = err.get("msg", "Invalid value").removeprefix("Value error, ")
        messages.append(f"{field}: {msg}" if field else msg)
    return "; ".join(messages) or "Invalid input"


def server_action(failure_message: str):
    """
    Wrap an async action method into the ActionResult error surface.

    The wrapped method receives the already-verified session and may
    return plain data (wrapped into ActionResult.ok) or an ActionResult.
    """
    def decorator(func: Callable[..., Awaitable]):
        @functools.wraps(func)
        async def wrapper(self, session: Optional[UserSession], *args, **kwargs) -> ActionResult:
            try:
                user = require_user(session)
                result = await func(self, user, *args, **kwargs)
            except UnauthorizedError:
                return ActionResult.fail("Unauthorized")
            except PydanticValidationError as e:
                return ActionResult.fail(describe_validation_error(e))
            except StorageError as e:
                logger.error("action_storage_failed", action=func.__name__, error=str(e), exc_info=True)
                return ActionResult.fail(failure_message)
            except MoneyManagerError as e:
                logger.warning("action_rejected", action=func.__name__, error=str(e))
                return ActionResult.fail(str(e))
            except Exception as e:
                logger.error("action_failed", action=func.__name__, error=str(e), exc_info=True)
                return ActionResult.fail(failure_message)

            if isinstance(result, ActionResult):
                return result
            return ActionResult.ok(result)

        return wrapper
    return decorator


class BaseActions:
    """Shared plumbing for every actions class."""

    def __init__(
        self,
        db: DatabaseClient,
        audit: Optional[AuditLogger] = None,
    ):
        self._db = db
        self._audit = audit or AuditLogger()
        self._logger = structlog.get_logger()

    @staticmethod
    def _get_owned(
        db_session: Session,
        model: type[RecordT],
        record_id: int,
        user_id: int,
        entity: str,
    ) -> RecordT:
        """Fetch a record by id, failing unless it belongs to the user."""
        record = db_session.get(model, record_id)
        if record is None or record.user_id != user_id:
            raise not_found(entity)
        return record

    @staticmethod
    def _owned_ids(
        db_session: Session,
        model: type[RecordT],
        ids: list[int],
        user_id: int,
        entity: str,
    ) -> list[RecordT]:
        """Fetch all ids, failing if any is missing or foreign."""
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return []
        records = db_session.scalars(
            select(model).where(model.id.in_(unique_ids), model.user_id == user_id)
        ).unique().all()
        if len(records) != len(unique_ids):
            raise not_found(f"One or more {entity.lower()}s")
        return list(records)

    @staticmethod
    def _adjust_balance(
        db_session: Session,
        account_id: Optional[int],
        delta: Decimal,
    ) -> None:
        """
        Move an account balance by delta on the database side.

        A None account means cash; nothing to move.
        """
        if account_id is None or delta == 0:
            return
        db_session.execute(
            update(AccountRecord)
            .where(AccountRecord.id == account_id)
            .values(balance=AccountRecord.balance + delta)
        )

    @staticmethod
    def _get_account_for_user(
        db_session: Session,
        account_id: int,
        user_id: int,
    ) -> AccountRecord:
        account = db_session.get(AccountRecord, account_id)
        if account is None or account.user_id != user_id:
            raise not_found("Account")
        return account

    async def _import_rows(
        self,
        session: UserSession,
        entity_type: str,
        rows: Sequence[tuple[int, list[str]]],
        import_row: RowImporter,
    ) -> ImportResult:
        """
        Run import_row over every data row and collect failures as row errors.

        Each row commits on its own, so one bad row never rolls back the
        rows before it. Every event of one import shares a correlation id.
        """
        correlation_id = create_correlation_id()
        result = ImportResult(total_rows=len(rows))

        for row_number, cells in rows:
            try:
                await import_row(row_number, cells, correlation_id)
                result.success_count += 1
            except RowError as e:
                result.errors.append(ImportRowError(row=row_number, error=str(e)))
            except PydanticValidationError as e:
                result.errors.append(ImportRowError(row=row_number, error=describe_validation_error(e)))
            except MoneyManagerError as e:
                result.errors.append(ImportRowError(row=row_number, error=str(e)))
            except Exception as e:
                self._logger.warning(
                    "import_row_failed",
                    entity=entity_type,
                    row=row_number,
                    error=str(e),
                )
                result.errors.append(ImportRowError(row=row_number, error="Failed to import row"))

        self._logger.info(
            "import_completed",
            entity=entity_type,
            user_id=session.user_id,
            success_count=result.success_count,
            error_count=result.error_count,
        )
        await self._audit.log_import_completed(
            session.user_id,
            entity_type,
            result.success_count,
            result.error_count,
            correlation_id,
        )
        return result
