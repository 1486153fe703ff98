"""Receipt image services package."""

from money_manager.services.image.cloudinary_service import (
    CloudinaryReceiptService,
    InvalidReceiptError,
    ReceiptUploadError,
)

__all__ = [
    "CloudinaryReceiptService",
    "InvalidReceiptError",
    "ReceiptUploadError",
]
