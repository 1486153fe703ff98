"""
Audit Logger

DESIGN DECISION: Every action that moves money is logged.
This provides:
1. Complete traceability of balance changes
2. Debugging capability
3. A history the user can review

The audit logger:
- Is async so actions await it the same way they await storage
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from money_manager.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from money_manager.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit_events table (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_user_registered(self, user_id: int, email: str) -> None:
        await self.log(AuditEventBuilder.user_registered(user_id=user_id, email=email))

    async def log_account_changed(
        self,
        event_type: AuditEventType,
        user_id: int,
        account_id: int,
        bank_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log account creation, update or deletion."""
        event = AuditEventBuilder.account_changed(
            event_type=event_type,
            user_id=user_id,
            account_id=account_id,
            bank_name=bank_name,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transfer(
        self,
        user_id: int,
        from_account_id: int,
        to_account_id: int,
        amount: Decimal,
    ) -> None:
        """Log a self transfer between two accounts."""
        event = AuditEventBuilder.transfer_completed(
            user_id=user_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount,
        )
        await self.log(event)

    async def log_entry_changed(
        self,
        event_type: AuditEventType,
        user_id: int,
        entity_id: int,
        title: str,
        amount: Decimal,
        account_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an expense or income change."""
        event = AuditEventBuilder.entry_changed(
            event_type=event_type,
            user_id=user_id,
            entity_id=entity_id,
            title=title,
            amount=amount,
            account_id=account_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_import_completed(
        self,
        user_id: int,
        entity_type: str,
        success_count: int,
        error_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log the outcome of a CSV import."""
        event = AuditEventBuilder.import_completed(
            user_id=user_id,
            entity_type=entity_type,
            success_count=success_count,
            error_count=error_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_debt_changed(
        self,
        event_type: AuditEventType,
        user_id: int,
        debt_id: int,
        borrower_name: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.debt_changed(
            event_type=event_type,
            user_id=user_id,
            debt_id=debt_id,
            borrower_name=borrower_name,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_repayment_changed(
        self,
        event_type: AuditEventType,
        user_id: int,
        debt_id: int,
        repayment_id: int,
        amount: Decimal,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.repayment_changed(
            event_type=event_type,
            user_id=user_id,
            debt_id=debt_id,
            repayment_id=repayment_id,
            amount=amount,
            status=status,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_investment_changed(
        self,
        event_type: AuditEventType,
        user_id: int,
        investment_id: int,
        name: str,
        cost: Decimal,
    ) -> None:
        event = AuditEventBuilder.investment_changed(
            event_type=event_type,
            user_id=user_id,
            investment_id=investment_id,
            name=name,
            cost=cost,
        )
        await self.log(event)

    async def log_receipt_uploaded(
        self,
        filename: str,
        file_size: int,
        url: str,
    ) -> None:
        """Log receipt upload."""
        event = AuditEventBuilder.receipt_uploaded(
            filename=filename,
            file_size=file_size,
            url=url,
        )
        await self.log(event)

    async def log_chat_completed(
        self,
        user_id: int,
        thread_id: int,
        conversation_id: int,
        response_time_seconds: float,
        token_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.chat_message_completed(
            user_id=user_id,
            thread_id=thread_id,
            conversation_id=conversation_id,
            response_time_seconds=response_time_seconds,
            token_count=token_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_chat_failed(
        self,
        user_id: int,
        thread_id: Optional[int],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.chat_stream_failed(
            user_id=user_id,
            thread_id=thread_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_email_failed(self, email: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.email_failed(email=email, error_message=error_message))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step user action (e.g., a CSV import
    or a chat message). Pass it through all subsequent operations.
    """
    return uuid4()
