"""
Audit Models for Money Manager

Every action that moves money or changes a user's records is logged for
audit purposes. This provides:
1. Traceability of every balance change
2. Debugging information when things go wrong
3. A history the user can reconstruct

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every balance-moving action has its own event type.
    """
    # Users
    USER_REGISTERED = "user_registered"
    EMAIL_FAILED = "email_failed"

    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"
    TRANSFER_COMPLETED = "transfer_completed"

    # Ledger entries
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    INCOME_CREATED = "income_created"
    INCOME_UPDATED = "income_updated"
    INCOME_DELETED = "income_deleted"
    IMPORT_COMPLETED = "import_completed"

    # Debts
    DEBT_CREATED = "debt_created"
    DEBT_DELETED = "debt_deleted"
    REPAYMENT_ADDED = "repayment_added"
    REPAYMENT_DELETED = "repayment_deleted"

    # Investments
    INVESTMENT_CREATED = "investment_created"
    INVESTMENT_DELETED = "investment_deleted"

    # Receipts
    RECEIPT_UPLOADED = "receipt_uploaded"

    # Chat
    CHAT_MESSAGE_COMPLETED = "chat_message_completed"
    CHAT_STREAM_FAILED = "chat_stream_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    user_id: Optional[int] = Field(
        default=None,
        description="User whose records were touched"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'account', 'debt')"
    )
    entity_id: Optional[int] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all rows of one import)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


def _money(amount: Decimal) -> str:
    return f"{Decimal(amount):.2f}"


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_created(user_id, expense_id, title, amount)
        event = AuditEventBuilder.transfer_completed(user_id, from_id, to_id, amount)
    """

    @staticmethod
    def user_registered(user_id: int, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description=f"User registered: {email}",
            is_user_action=True,
        )

    @staticmethod
    def account_changed(
        event_type: AuditEventType,
        user_id: int,
        account_id: int,
        bank_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account {verb}: {bank_name}",
            is_user_action=True,
        )

    @staticmethod
    def transfer_completed(
        user_id: int,
        from_account_id: int,
        to_account_id: int,
        amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_COMPLETED,
            user_id=user_id,
            entity_type="account",
            entity_id=from_account_id,
            description=f"Transferred {_money(amount)} between accounts",
            details={
                "from_account_id": from_account_id,
                "to_account_id": to_account_id,
                "amount": _money(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_changed(
        event_type: AuditEventType,
        user_id: int,
        entity_id: int,
        title: str,
        amount: Decimal,
        account_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Expense and income create/update/delete share one shape."""
        entity_type, verb = event_type.value.split("_", 1)
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} {verb}: {title} - {_money(amount)}",
            details={
                "amount": _money(amount),
                "account_id": account_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_completed(
        user_id: int,
        entity_type: str,
        success_count: int,
        error_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        severity = AuditSeverity.WARNING if error_count else AuditSeverity.INFO
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            severity=severity,
            user_id=user_id,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Imported {success_count} {entity_type} rows ({error_count} failed)",
            details={
                "success_count": success_count,
                "error_count": error_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def debt_changed(
        event_type: AuditEventType,
        user_id: int,
        debt_id: int,
        borrower_name: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt {event_type.value.split('_', 1)[1]}: {borrower_name} - {_money(amount)}",
            details={"amount": _money(amount)},
            is_user_action=True,
        )

    @staticmethod
    def repayment_changed(
        event_type: AuditEventType,
        user_id: int,
        debt_id: int,
        repayment_id: int,
        amount: Decimal,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Repayment {event_type.value.split('_', 1)[1]}: {_money(amount)}",
            details={
                "repayment_id": repayment_id,
                "amount": _money(amount),
                "status": status,
            },
            is_user_action=True,
        )

    @staticmethod
    def investment_changed(
        event_type: AuditEventType,
        user_id: int,
        investment_id: int,
        name: str,
        cost: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="investment",
            entity_id=investment_id,
            description=f"Investment {event_type.value.split('_', 1)[1]}: {name} - {_money(cost)}",
            details={"cost": _money(cost)},
            is_user_action=True,
        )

    @staticmethod
    def receipt_uploaded(
        filename: str,
        file_size: int,
        url: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            entity_type="receipt",
            description=f"Receipt uploaded: {filename}",
            details={
                "filename": filename,
                "file_size_bytes": file_size,
                "url": url,
            },
            is_user_action=True,
        )

    @staticmethod
    def chat_message_completed(
        user_id: int,
        thread_id: int,
        conversation_id: int,
        response_time_seconds: float,
        token_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHAT_MESSAGE_COMPLETED,
            user_id=user_id,
            entity_type="chat_thread",
            entity_id=thread_id,
            correlation_id=correlation_id,
            description=f"Assistant replied in {response_time_seconds:.2f}s",
            details={
                "conversation_id": conversation_id,
                "token_count": token_count,
            },
        )

    @staticmethod
    def chat_stream_failed(
        user_id: int,
        thread_id: Optional[int],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHAT_STREAM_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type="chat_thread",
            entity_id=thread_id,
            correlation_id=correlation_id,
            description="Chat stream failed",
            error_message=error_message,
        )

    @staticmethod
    def email_failed(
        email: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EMAIL_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="email",
            description=f"Email to {email} could not be sent",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
