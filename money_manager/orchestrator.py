"""
Application wiring.

create_app_components builds the database client, audit logger, external
services and every actions class once, sharing them between callers. The
UI and tests take what they need from the returned AppComponents.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from money_manager.actions import (
    AccountActions,
    CategoryActions,
    ChatThreadActions,
    DebtActions,
    ExpenseActions,
    FinancialDataActions,
    IncomeActions,
    InvestmentActions,
    ReceiptActions,
    TransactionActions,
    UserActions,
)
from money_manager.agents import ChatAgent
from money_manager.audit import AuditLogger
from money_manager.chat.flow import ChatFlow
from money_manager.services.email import SmtpEmailService
from money_manager.services.image import CloudinaryReceiptService
from money_manager.services.storage import DatabaseClient, SqlAuditStorage


logger = structlog.get_logger()


@dataclass
class AppComponents:
    db: DatabaseClient
    audit: AuditLogger
    users: UserActions
    categories: CategoryActions
    accounts: AccountActions
    expenses: ExpenseActions
    incomes: IncomeActions
    debts: DebtActions
    investments: InvestmentActions
    transactions: TransactionActions
    receipts: ReceiptActions
    chat_threads: ChatThreadActions
    financial_data: FinancialDataActions
    chat_agent: ChatAgent
    chat_flow: ChatFlow


def create_app_components(
    database_url: Optional[str] = None,
    use_audit_storage: bool = True,
    receipt_service: Optional[CloudinaryReceiptService] = None,
    chat_agent: Optional[ChatAgent] = None,
    email_service: Optional[SmtpEmailService] = None,
) -> AppComponents:
    """
    Factory for all application components.

    Creates the schema and seeds the global categories. With
    use_audit_storage=False audit events are only logged, not stored.
    """
    db = DatabaseClient(database_url)
    db.connect()
    db.create_all()

    audit = AuditLogger(SqlAuditStorage(db) if use_audit_storage else None)
    agent = chat_agent or ChatAgent()
    email = email_service or SmtpEmailService()

    categories = CategoryActions(db, audit)
    categories.ensure_default_categories()

    threads = ChatThreadActions(db, audit, title_generator=agent if agent.configured else None)

    logger.info("app_components_created", database=db.engine.url.render_as_string(hide_password=True))
    return AppComponents(
        db=db,
        audit=audit,
        users=UserActions(db, audit, email_service=email),
        categories=categories,
        accounts=AccountActions(db, audit),
        expenses=ExpenseActions(db, audit),
        incomes=IncomeActions(db, audit),
        debts=DebtActions(db, audit),
        investments=InvestmentActions(db, audit),
        transactions=TransactionActions(db, audit),
        receipts=ReceiptActions(db, audit, receipt_service=receipt_service),
        chat_threads=threads,
        financial_data=FinancialDataActions(db, audit),
        chat_agent=agent,
        chat_flow=ChatFlow(threads, agent, audit),
    )
