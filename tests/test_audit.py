"""
Tests for audit persistence through SqlAuditStorage.
"""

from decimal import Decimal

from money_manager.actions import ExpenseActions
from money_manager.audit import AuditLogger
from money_manager.models.audit import AuditEventType, AuditSeverity
from money_manager.services.storage import SqlAuditStorage

from conftest import expense_data, run


class FailingStorage:
    async def append_event(self, event):
        raise RuntimeError("disk full")


class TestAuditStorage:
    """Audit events written by actions can be read back."""

    def test_expense_lifecycle_is_recorded(self, db, session):
        """Test create and delete events for one expense."""
        audit = AuditLogger(SqlAuditStorage(db))
        expenses = ExpenseActions(db, audit)
        expense = run(expenses.create_expense(session, expense_data(db, "12.50"))).data
        run(expenses.delete_expense(session, expense.id))

        events = run(SqlAuditStorage(db).get_events_by_entity("expense", expense.id))

        assert {e.event_type for e in events} == {
            AuditEventType.EXPENSE_CREATED,
            AuditEventType.EXPENSE_DELETED,
        }
        assert all(e.user_id == session.user_id for e in events)
        assert all(e.details["amount"] == "12.50" for e in events)

    def test_import_rows_share_a_correlation_id(self, db, session):
        """Test that every event of one CSV import is linked."""
        storage = SqlAuditStorage(db)
        expenses = ExpenseActions(db, AuditLogger(storage))
        csv_text = (
            "title,amount,date,category\n"
            "Coffee,4.50,2024-03-01,Food & Dining\n"
            "Bus,2.00,2024-03-02,Transportation\n"
            "Bad,x,2024-03-02,Transportation\n"
        )
        run(expenses.bulk_import_expenses(session, csv_text))

        summary = next(
            e for e in run(storage.get_recent_events()) if e.event_type == AuditEventType.IMPORT_COMPLETED
        )
        linked = run(storage.get_events_by_correlation_id(summary.correlation_id))

        assert summary.severity == AuditSeverity.WARNING
        assert len(linked) == 3

    def test_storage_failure_does_not_fail_action(self, db, session):
        """Test that a broken audit backend is only logged."""
        expenses = ExpenseActions(db, AuditLogger(FailingStorage()))

        result = run(expenses.create_expense(session, expense_data(db, "1.00")))

        assert result.success
        assert result.data.amount == Decimal("1.00")
