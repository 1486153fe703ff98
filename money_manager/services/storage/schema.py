"""
Relational Schema

SQLAlchemy declarative tables for every entity. Money columns are
Numeric(14, 2) so amounts round-trip as Decimal.

Deleting a user cascades to everything they own; deleting a debt cascades
to its repayments; deleting a thread cascades to its conversations.
"""

from datetime import date, date as date_type, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from money_manager.models.audit import AuditEventType, AuditSeverity
from money_manager.models.chat import (
    DEFAULT_THREAD_TITLE,
    Feedback,
    MessageSender,
    MessageType,
)
from money_manager.models.finance import (
    CategoryType,
    DebtStatus,
    InvestmentType,
    RecurringFrequency,
)


Money = Numeric(14, 2)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class UserRecord(TimestampMixin, Base):
    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_email"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    accounts = relationship("AccountRecord", back_populates="user", cascade="all, delete-orphan")
    chat_threads = relationship("ChatThreadRecord", back_populates="user", cascade="all, delete-orphan")


class CategoryRecord(TimestampMixin, Base):
    __tablename__ = "categories"

    __table_args__ = (
        Index("idx_categories_type", "type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[CategoryType] = mapped_column(Enum(CategoryType), nullable=False)
    color: Mapped[str] = mapped_column(String(20), default="#6B7280", nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(20))
    included_in_budget: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # NULL means a global category visible to everyone
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))


class AccountRecord(TimestampMixin, Base):
    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("account_number", name="uq_account_number"),
        Index("idx_accounts_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    holder_name: Mapped[str] = mapped_column(String(200), nullable=False)
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(200), nullable=False)
    branch_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    branch_code: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    account_type: Mapped[str] = mapped_column(String(50), default="SAVINGS", nullable=False)
    balance: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    account_opening_date: Mapped[Optional[date]] = mapped_column(Date)
    nickname: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    user = relationship("UserRecord", back_populates="accounts")


class _LedgerColumns(TimestampMixin):
    """Columns shared by expenses and incomes."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False)
    account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("accounts.id", ondelete="SET NULL"))
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_frequency: Mapped[Optional[RecurringFrequency]] = mapped_column(Enum(RecurringFrequency))


class ExpenseRecord(_LedgerColumns, Base):
    __tablename__ = "expenses"

    __table_args__ = (
        Index("idx_expenses_user_date", "user_id", "date"),
    )

    receipt_url: Mapped[Optional[str]] = mapped_column(String(500))

    category = relationship("CategoryRecord", lazy="joined")
    account = relationship("AccountRecord", lazy="joined")


class IncomeRecord(_LedgerColumns, Base):
    __tablename__ = "incomes"

    __table_args__ = (
        Index("idx_incomes_user_date", "user_id", "date"),
    )

    category = relationship("CategoryRecord", lazy="joined")
    account = relationship("AccountRecord", lazy="joined")


class DebtRecord(TimestampMixin, Base):
    __tablename__ = "debts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("accounts.id", ondelete="SET NULL"))
    borrower_name: Mapped[str] = mapped_column(String(200), nullable=False)
    borrower_contact: Mapped[Optional[str]] = mapped_column(String(100))
    borrower_email: Mapped[Optional[str]] = mapped_column(String(255))
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    interest_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), default=Decimal("0"), nullable=False)
    lent_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[DebtStatus] = mapped_column(Enum(DebtStatus), default=DebtStatus.ACTIVE, nullable=False)
    purpose: Mapped[Optional[str]] = mapped_column(String(500))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    repayments = relationship(
        "DebtRepaymentRecord",
        back_populates="debt",
        cascade="all, delete-orphan",
        order_by="DebtRepaymentRecord.repayment_date",
        lazy="selectin",
    )


class DebtRepaymentRecord(Base):
    __tablename__ = "debt_repayments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    debt_id: Mapped[int] = mapped_column(ForeignKey("debts.id", ondelete="CASCADE"), nullable=False)
    account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("accounts.id", ondelete="SET NULL"))
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    repayment_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    debt = relationship("DebtRecord", back_populates="repayments")


class InvestmentRecord(TimestampMixin, Base):
    __tablename__ = "investments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[InvestmentType] = mapped_column(Enum(InvestmentType), nullable=False)
    symbol: Mapped[Optional[str]] = mapped_column(String(20))
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    purchase_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    current_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    interest_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(7, 4))
    maturity_date: Mapped[Optional[date]] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text)


class ChatThreadRecord(TimestampMixin, Base):
    __tablename__ = "chat_threads"

    __table_args__ = (
        Index("idx_chat_threads_user_active", "user_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), default=DEFAULT_THREAD_TITLE, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_message_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    user = relationship("UserRecord", back_populates="chat_threads")
    conversations = relationship(
        "ChatConversationRecord",
        back_populates="thread",
        cascade="all, delete-orphan",
        order_by="ChatConversationRecord.id",
    )


class ChatConversationRecord(TimestampMixin, Base):
    __tablename__ = "chat_conversations"

    __table_args__ = (
        Index("idx_chat_conversations_thread", "thread_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(ForeignKey("chat_threads.id", ondelete="CASCADE"), nullable=False)
    content: Mapped[str] = mapped_column(Text, default="", nullable=False)
    sender: Mapped[MessageSender] = mapped_column(Enum(MessageSender), nullable=False)
    message_type: Mapped[MessageType] = mapped_column(Enum(MessageType), default=MessageType.TEXT, nullable=False)
    is_processing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    feedback: Mapped[Optional[Feedback]] = mapped_column(Enum(Feedback))
    comments: Mapped[Optional[str]] = mapped_column(Text)
    response_time_seconds: Mapped[Optional[float]] = mapped_column(Float)
    token_count: Mapped[Optional[int]] = mapped_column(Integer)
    input_tokens: Mapped[Optional[int]] = mapped_column(Integer)
    output_tokens: Mapped[Optional[int]] = mapped_column(Integer)
    intermediate_steps: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON)
    system_prompt: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)

    thread = relationship("ChatThreadRecord", back_populates="conversations")


class AuditEventRecord(Base):
    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_correlation", "correlation_id"),
        Index("idx_audit_entity", "entity_type", "entity_id"),
    )

    event_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    event_type: Mapped[AuditEventType] = mapped_column(Enum(AuditEventType), nullable=False)
    severity: Mapped[AuditSeverity] = mapped_column(Enum(AuditSeverity), nullable=False)
    user_id: Mapped[Optional[int]] = mapped_column(Integer)
    entity_type: Mapped[Optional[str]] = mapped_column(String(50))
    entity_id: Mapped[Optional[int]] = mapped_column(Integer)
    correlation_id: Mapped[Optional[str]] = mapped_column(String(36))
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    is_user_action: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
