"""
Receipt upload action. Returns the public URL for the expense form; the
URL is stored on the expense by ExpenseActions.attach_receipt or with
the expense itself.
"""

from typing import Optional

from money_manager.actions.base import BaseActions, server_action
from money_manager.audit import AuditLogger
from money_manager.models.finance import ActionResult, UserSession
from money_manager.services.image import (
    CloudinaryReceiptService,
    InvalidReceiptError,
    ReceiptUploadError,
)
from money_manager.services.storage import DatabaseClient


class ReceiptActions(BaseActions):

    def __init__(
        self,
        db: DatabaseClient,
        audit: Optional[AuditLogger] = None,
        receipt_service: Optional[CloudinaryReceiptService] = None,
    ):
        super().__init__(db, audit)
        self._receipts = receipt_service or CloudinaryReceiptService()

    @server_action("Failed to upload receipt")
    async def upload_receipt(
        self,
        session: UserSession,
        file_bytes: bytes,
        filename: str,
        mime_type: str,
    ) -> ActionResult:
        try:
            url = await self._receipts.upload_receipt(file_bytes, filename, mime_type)
        except InvalidReceiptError as e:
            return ActionResult.fail(str(e))
        except ReceiptUploadError as e:
            self._logger.error("receipt_upload_failed", filename=filename, error=str(e))
            await self._audit.log_external_service_error("cloudinary", str(e))
            return ActionResult.fail("Failed to upload receipt")

        self._logger.info("receipt_uploaded", user_id=session.user_id, filename=filename)
        await self._audit.log_receipt_uploaded(filename, len(file_bytes), url)
        return ActionResult.ok(url, message="Receipt uploaded successfully")
