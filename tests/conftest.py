"""
Shared fixtures.

Every test gets its own in-memory SQLite database with the global
categories seeded and one registered user. External services (Gemini,
Cloudinary, SMTP) are replaced by the fakes below; no test touches the
network.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy import select

from money_manager.actions import (
    AccountActions,
    CategoryActions,
    ChatThreadActions,
    DebtActions,
    ExpenseActions,
    FinancialDataActions,
    IncomeActions,
    InvestmentActions,
    TransactionActions,
)
from money_manager.audit import AuditLogger
from money_manager.chat.sse import encode_event
from money_manager.models import (
    AccountCreate,
    CategoryType,
    ExpenseCreate,
    IncomeCreate,
    UserSession,
)
from money_manager.services.storage import DatabaseClient
from money_manager.services.storage.schema import AccountRecord, CategoryRecord, UserRecord


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def db():
    client = DatabaseClient("sqlite://", echo=False)
    client.create_all()
    CategoryActions(client).ensure_default_categories()
    yield client
    client.drop_all()


@pytest.fixture
def audit():
    return AuditLogger()


def make_user(db: DatabaseClient, email: str, currency: str = "USD") -> UserSession:
    with db.session_scope() as db_session:
        record = UserRecord(name="Test User", email=email, password_hash="x", currency=currency)
        db_session.add(record)
        db_session.flush()
        return UserSession(user_id=record.id, email=record.email, name=record.name)


@pytest.fixture
def session(db) -> UserSession:
    return make_user(db, "user@example.com")


@pytest.fixture
def other_session(db) -> UserSession:
    return make_user(db, "other@example.com")


@pytest.fixture
def accounts(db, audit):
    return AccountActions(db, audit)


@pytest.fixture
def expenses(db, audit):
    return ExpenseActions(db, audit)


@pytest.fixture
def incomes(db, audit):
    return IncomeActions(db, audit)


@pytest.fixture
def debts(db, audit):
    return DebtActions(db, audit)


@pytest.fixture
def investments(db, audit):
    return InvestmentActions(db, audit)


@pytest.fixture
def transactions(db, audit):
    return TransactionActions(db, audit)


@pytest.fixture
def financial_data(db, audit):
    return FinancialDataActions(db, audit)


@pytest.fixture
def chat_threads(db, audit):
    return ChatThreadActions(db, audit, title_generator=FakeTitleGenerator("Monthly Budget Review"))


# =============================================================================
# HELPERS
# =============================================================================

def category_id(db: DatabaseClient, name: str) -> int:
    with db.session_scope() as db_session:
        return db_session.scalar(
            select(CategoryRecord.id).where(CategoryRecord.name == name, CategoryRecord.user_id.is_(None))
        )


def balance(db: DatabaseClient, account_id: int) -> Decimal:
    with db.session_scope() as db_session:
        return Decimal(db_session.get(AccountRecord, account_id).balance)


def make_account(
    accounts: AccountActions,
    session: UserSession,
    number: str = "ACC-001",
    bank: str = "First Bank",
    holder: str = "Test User",
    opening: str = "1000.00",
):
    result = run(accounts.create_account(session, AccountCreate(
        holder_name=holder,
        account_number=number,
        bank_name=bank,
        balance=Decimal(opening),
    )))
    assert result.success, result.error
    return result.data


def expense_data(db, amount: str, account_id: Optional[int] = None, **overrides) -> ExpenseCreate:
    values = dict(
        title="Lunch",
        amount=Decimal(amount),
        date=date(2024, 3, 15),
        category_id=category_id(db, "Food & Dining"),
        account_id=account_id,
    )
    values.update(overrides)
    return ExpenseCreate(**values)


def income_data(db, amount: str, account_id: Optional[int] = None, **overrides) -> IncomeCreate:
    values = dict(
        title="Salary",
        amount=Decimal(amount),
        date=date(2024, 3, 1),
        category_id=category_id(db, "Salary"),
        account_id=account_id,
    )
    values.update(overrides)
    return IncomeCreate(**values)


# =============================================================================
# FAKES
# =============================================================================

class FakeTitleGenerator:
    def __init__(self, title: str = "", error: Optional[Exception] = None):
        self.title = title
        self.error = error
        self.calls = []

    async def generate_title(self, message: str) -> str:
        self.calls.append(message)
        if self.error is not None:
            raise self.error
        return self.title


class FakeStreamingAgent:
    """Replays pre-encoded SSE bytes, optionally split into odd-sized chunks."""

    configured = False

    def __init__(self, events=None, chunk_size: Optional[int] = None, error: Optional[Exception] = None):
        self.events = events if events is not None else []
        self.chunk_size = chunk_size
        self.error = error
        self.calls = []

    async def sse_stream(self, messages, settings=None, system_prompt=None):
        self.calls.append({"messages": list(messages), "system_prompt": system_prompt})
        payload = "".join(encode_event(name, data) for name, data in self.events).encode("utf-8")
        size = self.chunk_size or len(payload) or 1
        for start in range(0, len(payload), size):
            yield payload[start:start + size]
        if self.error is not None:
            raise self.error


class FakeReceiptService:
    def __init__(self, url: str = "https://res.cloudinary.com/demo/receipt.jpg", error: Optional[Exception] = None):
        self.url = url
        self.error = error
        self.uploads = []

    async def upload_receipt(self, image_bytes: bytes, filename: str, mime_type: str) -> str:
        self.uploads.append((filename, mime_type, len(image_bytes)))
        if self.error is not None:
            raise self.error
        return self.url


class FakeEmailService:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.sent = []

    async def send_welcome_email(self, email: str, name: Optional[str] = None) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append(email)
        return True
