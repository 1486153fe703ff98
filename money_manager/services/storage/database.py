"""
SQLAlchemy Storage Implementation

DESIGN DECISION: A relational database is the system of record because
every money movement touches two rows (the entry and its account balance)
and both must commit or neither does.

DatabaseClient owns the engine and hands out transactional sessions.
Actions open one session_scope() per operation; everything inside it
commits together.
"""

from contextlib import contextmanager
from typing import Iterator, Optional
from uuid import UUID

import structlog
from sqlalchemy import create_engine, event, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import retry, stop_after_attempt, wait_exponential

from money_manager.config import get_settings
from money_manager.exceptions import DuplicateError
from money_manager.models.audit import AuditEvent
from money_manager.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    StorageError,
)
from money_manager.services.storage.schema import AuditEventRecord, Base


logger = structlog.get_logger()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseClient:
    """
    Low-level database wrapper.

    Handles engine creation, schema setup and transactional sessions,
    with retry logic around the initial connection.
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        settings = get_settings().database
        self._url = url or settings.url
        self._echo = settings.echo if echo is None else echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    def _create_engine(self) -> Engine:
        kwargs = {"echo": self._echo}
        if self._url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            # In-memory databases live only as long as their one connection
            if self._url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool

        engine = create_engine(self._url, **kwargs)
        if self._url.startswith("sqlite"):
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> Engine:
        """
        Verify the database is reachable.

        Raises:
            ConnectionError: If the database cannot be reached
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError as e:
            raise ConnectionError(f"Failed to connect to database: {e}")
        return self.engine

    def create_all(self) -> None:
        """Create all tables that don't exist yet."""
        Base.metadata.create_all(self.engine)
        logger.info("database_schema_ready", url=self._safe_url())

    def drop_all(self) -> None:
        Base.metadata.drop_all(self.engine)

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                expire_on_commit=False,
            )
        return self._session_factory

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        One database transaction.

        Commits when the block exits cleanly, rolls back on any exception.
        Unique-constraint violations surface as DuplicateError.
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            logger.warning("database_integrity_error", error=str(e.orig))
            raise DuplicateError(f"Record violates a database constraint: {e.orig}")
        except OperationalError as e:
            session.rollback()
            raise StorageError(f"Database operation failed: {e.orig}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _safe_url(self) -> str:
        return self.engine.url.render_as_string(hide_password=True)


class SqlAuditStorage(AuditStorageInterface):
    """Append-only audit log in the audit_events table."""

    def __init__(self, client: DatabaseClient):
        self._client = client

    @staticmethod
    def _event_to_record(event: AuditEvent) -> AuditEventRecord:
        return AuditEventRecord(
            event_id=str(event.event_id),
            timestamp=event.timestamp,
            event_type=event.event_type,
            severity=event.severity,
            user_id=event.user_id,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            correlation_id=str(event.correlation_id) if event.correlation_id else None,
            description=event.description,
            details=event.details,
            error_message=event.error_message,
            is_user_action=event.is_user_action,
        )

    @staticmethod
    def _record_to_event(record: AuditEventRecord) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(record.event_id),
            timestamp=record.timestamp,
            event_type=record.event_type,
            severity=record.severity,
            user_id=record.user_id,
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            correlation_id=UUID(record.correlation_id) if record.correlation_id else None,
            description=record.description,
            details=record.details or {},
            error_message=record.error_message,
            is_user_action=record.is_user_action,
        )

    async def append_event(self, event: AuditEvent) -> bool:
        with self._client.session_scope() as session:
            session.add(self._event_to_record(event))
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        with self._client.session_scope() as session:
            records = session.scalars(
                select(AuditEventRecord)
                .where(AuditEventRecord.correlation_id == str(correlation_id))
                .order_by(AuditEventRecord.timestamp)
            ).all()
            return [self._record_to_event(r) for r in records]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: int,
    ) -> list[AuditEvent]:
        with self._client.session_scope() as session:
            records = session.scalars(
                select(AuditEventRecord)
                .where(
                    AuditEventRecord.entity_type == entity_type,
                    AuditEventRecord.entity_id == entity_id,
                )
                .order_by(AuditEventRecord.timestamp)
            ).all()
            return [self._record_to_event(r) for r in records]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        with self._client.session_scope() as session:
            records = session.scalars(
                select(AuditEventRecord)
                .order_by(AuditEventRecord.timestamp.desc())
                .limit(limit)
            ).all()
            return [self._record_to_event(r) for r in records]
