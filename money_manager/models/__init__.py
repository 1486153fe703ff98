"""
Data Models Package

This package contains all Pydantic models used in Money Manager.
All data flowing through the actions layer must conform to these schemas.
"""

from money_manager.models.finance import (
    Account,
    AccountCreate,
    AccountUpdate,
    ActionResult,
    BulkCreateResult,
    Category,
    CategoryCreate,
    CategoryTotal,
    CategoryType,
    CategoryUpdate,
    DashboardStats,
    Debt,
    DebtCreate,
    DebtRepayment,
    DebtStatus,
    DebtUpdate,
    Expense,
    ExpenseCreate,
    ExpenseUpdate,
    ImportResult,
    ImportRowError,
    Income,
    IncomeCreate,
    IncomeUpdate,
    Investment,
    InvestmentCreate,
    InvestmentType,
    InvestmentUpdate,
    PortfolioSummary,
    RecurringFrequency,
    Transaction,
    TransactionType,
    TransferResult,
    User,
    UserSession,
    investment_cost,
)
from money_manager.models.chat import (
    DEFAULT_THREAD_TITLE,
    ChatConversation,
    ChatMessage,
    ChatSettings,
    ChatThread,
    ChatThreadCreate,
    ChatThreadSummary,
    ChatThreadUpdate,
    ChatTurn,
    ConversationCreate,
    ConversationUpdate,
    DateRangePreset,
    DeleteAllResult,
    Feedback,
    FinancialContext,
    FinancialDataRequest,
    FinancialDataSummary,
    MessageSender,
    MessageType,
    StreamEvent,
    StreamEventType,
    TokenCounts,
)
from money_manager.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "Account",
    "AccountCreate",
    "AccountUpdate",
    "ActionResult",
    "BulkCreateResult",
    "Category",
    "CategoryCreate",
    "CategoryTotal",
    "CategoryType",
    "CategoryUpdate",
    "DashboardStats",
    "Debt",
    "DebtCreate",
    "DebtRepayment",
    "DebtStatus",
    "DebtUpdate",
    "Expense",
    "ExpenseCreate",
    "ExpenseUpdate",
    "ImportResult",
    "ImportRowError",
    "Income",
    "IncomeCreate",
    "IncomeUpdate",
    "Investment",
    "InvestmentCreate",
    "InvestmentType",
    "InvestmentUpdate",
    "PortfolioSummary",
    "RecurringFrequency",
    "Transaction",
    "TransactionType",
    "TransferResult",
    "User",
    "UserSession",
    "investment_cost",
    # Chat models
    "DEFAULT_THREAD_TITLE",
    "ChatConversation",
    "ChatMessage",
    "ChatSettings",
    "ChatThread",
    "ChatThreadCreate",
    "ChatThreadSummary",
    "ChatThreadUpdate",
    "ChatTurn",
    "ConversationCreate",
    "ConversationUpdate",
    "DateRangePreset",
    "DeleteAllResult",
    "Feedback",
    "FinancialContext",
    "FinancialDataRequest",
    "FinancialDataSummary",
    "MessageSender",
    "MessageType",
    "StreamEvent",
    "StreamEventType",
    "TokenCounts",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
