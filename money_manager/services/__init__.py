"""Services package."""

from money_manager.services.email import (
    EmailError,
    SmtpEmailService,
)
from money_manager.services.image import (
    CloudinaryReceiptService,
    InvalidReceiptError,
    ReceiptUploadError,
)
from money_manager.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DatabaseClient,
    SqlAuditStorage,
    StorageError,
)

__all__ = [
    # Email services
    "EmailError",
    "SmtpEmailService",
    # Image services
    "CloudinaryReceiptService",
    "InvalidReceiptError",
    "ReceiptUploadError",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DatabaseClient",
    "SqlAuditStorage",
    "StorageError",
]
