"""
Investment actions. Buying an investment moves its cost out of the funding
account; deleting it moves the cost back.
"""

from decimal import Decimal

from sqlalchemy import select

from money_manager.actions.base import BaseActions, server_action
from money_manager.exceptions import InsufficientBalanceError, ValidationError
from money_manager.models.audit import AuditEventType
from money_manager.models.finance import (
    Investment,
    InvestmentCreate,
    InvestmentUpdate,
    PortfolioSummary,
    UserSession,
)
from money_manager.services.storage.schema import InvestmentRecord
from money_manager.utils.money import to_decimal, to_money


def summarize_portfolio(investments: list[Investment]) -> PortfolioSummary:
    invested = sum((i.cost for i in investments), Decimal("0"))
    current = sum((i.current_value for i in investments), Decimal("0"))
    gain = current - invested
    percentage = float(gain / invested * 100) if invested > 0 else 0.0
    return PortfolioSummary(
        total_invested=to_money(invested),
        current_value=to_money(current),
        gain_loss=to_money(gain),
        gain_loss_percentage=round(percentage, 2),
        count=len(investments),
    )


class InvestmentActions(BaseActions):

    def _list(self, user_id: int) -> list[Investment]:
        with self._db.session_scope() as db_session:
            records = db_session.scalars(
                select(InvestmentRecord)
                .where(InvestmentRecord.user_id == user_id)
                .order_by(InvestmentRecord.purchase_date.desc(), InvestmentRecord.id.desc())
            ).all()
            return [Investment.model_validate(r) for r in records]

    @server_action("Failed to fetch investments")
    async def get_user_investments(self, session: UserSession) -> list[Investment]:
        return self._list(session.user_id)

    @server_action("Failed to create investment")
    async def create_investment(self, session: UserSession, data: InvestmentCreate) -> Investment:
        cost = data.cost
        with self._db.session_scope() as db_session:
            account = self._get_account_for_user(db_session, data.account_id, session.user_id)
            if to_decimal(account.balance) < cost:
                raise InsufficientBalanceError(
                    f"Insufficient balance. Available: {to_money(account.balance)}, required: {to_money(cost)}"
                )

            record = InvestmentRecord(user_id=session.user_id, **data.model_dump())
            db_session.add(record)
            self._adjust_balance(db_session, data.account_id, -cost)
            db_session.flush()
            db_session.refresh(record)
            investment = Investment.model_validate(record)

        await self._audit.log_investment_changed(
            AuditEventType.INVESTMENT_CREATED, session.user_id, investment.id, investment.name, cost
        )
        return investment

    @server_action("Failed to update investment")
    async def update_investment(
        self,
        session: UserSession,
        investment_id: int,
        data: InvestmentUpdate,
    ) -> Investment:
        changes = data.model_dump(exclude_unset=True)
        for field in ("name", "current_price"):
            if field in changes and changes[field] is None:
                del changes[field]

        with self._db.session_scope() as db_session:
            record = self._get_owned(db_session, InvestmentRecord, investment_id, session.user_id, "Investment")
            maturity = changes.get("maturity_date", record.maturity_date)
            if maturity is not None and maturity < record.purchase_date:
                raise ValidationError("Maturity date cannot be before purchase date")

            for field, value in changes.items():
                setattr(record, field, value)
            db_session.flush()
            db_session.refresh(record)
            return Investment.model_validate(record)

    @server_action("Failed to delete investment")
    async def delete_investment(self, session: UserSession, investment_id: int) -> bool:
        with self._db.session_scope() as db_session:
            record = self._get_owned(db_session, InvestmentRecord, investment_id, session.user_id, "Investment")
            investment = Investment.model_validate(record)
            self._adjust_balance(db_session, record.account_id, investment.cost)
            db_session.delete(record)

        await self._audit.log_investment_changed(
            AuditEventType.INVESTMENT_DELETED, session.user_id, investment_id, investment.name, investment.cost
        )
        return True

    @server_action("Failed to fetch portfolio summary")
    async def get_portfolio_summary(self, session: UserSession) -> PortfolioSummary:
        return summarize_portfolio(self._list(session.user_id))
