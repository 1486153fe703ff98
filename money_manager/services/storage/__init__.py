"""
Storage Services Package

Provides the SQLAlchemy schema, the transactional database client and
the audit storage interface.
"""

from money_manager.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    StorageError,
)
from money_manager.services.storage.database import (
    DatabaseClient,
    SqlAuditStorage,
)
from money_manager.services.storage.schema import Base

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # SQLAlchemy implementation
    "Base",
    "DatabaseClient",
    "SqlAuditStorage",
]
