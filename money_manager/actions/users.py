"""
User actions: registration, sign-in and currency preference.
"""

from typing import Optional

from sqlalchemy import func, select
from werkzeug.security import check_password_hash, generate_password_hash

from money_manager.actions.base import BaseActions, server_action
from money_manager.audit import AuditLogger
from money_manager.config import get_settings
from money_manager.exceptions import DuplicateError, UnauthorizedError, ValidationError
from money_manager.models.finance import ActionResult, User, UserSession
from money_manager.services.email import SmtpEmailService
from money_manager.services.storage import DatabaseClient
from money_manager.services.storage.schema import UserRecord


MIN_PASSWORD_LENGTH = 8


class UserActions(BaseActions):

    def __init__(
        self,
        db: DatabaseClient,
        audit: Optional[AuditLogger] = None,
        email_service: Optional[SmtpEmailService] = None,
    ):
        super().__init__(db, audit)
        self._email = email_service

    async def register_user(self, name: str, email: str, password: str) -> ActionResult:
        """
        Create a user account.

        The welcome email is best effort; a send failure never fails
        registration.
        """
        try:
            user = await self._register(name, email, password)
        except (ValidationError, DuplicateError) as e:
            return ActionResult.fail(str(e))
        except Exception as e:
            self._logger.error("register_user_failed", error=str(e), exc_info=True)
            return ActionResult.fail("Failed to create account")

        await self._send_welcome(user)
        return ActionResult.ok(user, message="Account created successfully")

    async def _register(self, name: str, email: str, password: str) -> User:
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if not name:
            raise ValidationError("Name is required")
        if "@" not in email:
            raise ValidationError("A valid email is required")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        with self._db.session_scope() as db_session:
            exists = db_session.scalar(
                select(func.count()).select_from(UserRecord).where(UserRecord.email == email)
            )
            if exists:
                raise DuplicateError("An account with this email already exists")

            record = UserRecord(
                name=name,
                email=email,
                password_hash=generate_password_hash(password),
                currency=get_settings().app.default_currency,
            )
            db_session.add(record)
            db_session.flush()
            user = User.model_validate(record)

        self._logger.info("user_registered", user_id=user.id)
        await self._audit.log_user_registered(user.id, user.email)
        return user

    async def _send_welcome(self, user: User) -> None:
        if self._email is None:
            return
        try:
            await self._email.send_welcome_email(user.email, user.name)
        except Exception as e:
            self._logger.warning("welcome_email_failed", user_id=user.id, error=str(e))
            await self._audit.log_email_failed(user.email, str(e))

    async def authenticate(self, email: str, password: str) -> UserSession:
        """
        Check credentials.

        Raises:
            UnauthorizedError: On unknown email or wrong password
        """
        email = (email or "").strip().lower()
        with self._db.session_scope() as db_session:
            record = db_session.scalar(select(UserRecord).where(UserRecord.email == email))
            if record is None or not check_password_hash(record.password_hash, password or ""):
                raise UnauthorizedError("Invalid email or password")
            return UserSession(user_id=record.id, email=record.email, name=record.name)

    @server_action("Failed to fetch user currency")
    async def get_user_currency(self, session: UserSession) -> str:
        with self._db.session_scope() as db_session:
            record = db_session.get(UserRecord, session.user_id)
            if record is None:
                raise UnauthorizedError()
            return record.currency

    @server_action("Failed to update currency")
    async def update_user_currency(self, session: UserSession, currency: str) -> str:
        currency = (currency or "").strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError("Currency must be a 3-letter code")

        with self._db.session_scope() as db_session:
            record = db_session.get(UserRecord, session.user_id)
            if record is None:
                raise UnauthorizedError()
            record.currency = currency

        self._logger.info("user_currency_updated", user_id=session.user_id, currency=currency)
        return currency
