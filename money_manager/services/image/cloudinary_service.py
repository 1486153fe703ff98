"""
Receipt Upload Service using Cloudinary

DESIGN DECISION: Receipt images live in blob storage, the expense row keeps
only the public URL. Uploads happen before the expense is saved, so a
receipt can be attached while the form is still being filled.

This service handles:
1. File type and size checks
2. Verifying the bytes really are an image
3. Upload to Cloudinary with retries
"""

import hashlib
from datetime import datetime
from io import BytesIO
from typing import Optional

import cloudinary
import cloudinary.uploader
from PIL import Image, UnidentifiedImageError
from tenacity import retry, stop_after_attempt, wait_exponential

from money_manager.config import get_settings


class ReceiptUploadError(Exception):
    """Base exception for receipt upload errors."""
    pass


class InvalidReceiptError(ReceiptUploadError):
    """File rejected before upload (type, size or unreadable image)."""
    pass


class CloudinaryReceiptService:
    """
    Uploads receipt images to Cloudinary.

    Flow:
    1. Receive raw image bytes with filename and MIME type
    2. Reject anything that is not a supported image under the size limit
    3. Upload and return the secure URL
    """

    def __init__(self):
        # Cloudinary credentials are only required once an upload happens
        self._settings = None
        self._app_settings = get_settings().app
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            self._settings = get_settings().cloudinary
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    @staticmethod
    def _generate_public_id(filename: str, now: Optional[datetime] = None) -> str:
        """
        Generate a unique public ID for Cloudinary.

        Format: receipt-{timestamp_ms}-{filename_hash}
        """
        now = now or datetime.utcnow()
        timestamp = int(now.timestamp() * 1000)
        filename_hash = hashlib.md5(f"{filename}{timestamp}".encode()).hexdigest()[:8]
        return f"receipt-{timestamp}-{filename_hash}"

    def validate(self, image_bytes: bytes, mime_type: str) -> None:
        """
        Check a receipt before uploading it.

        Raises:
            InvalidReceiptError: With a message suitable for the user
        """
        if not image_bytes:
            raise InvalidReceiptError("No image file provided")

        if (mime_type or "").lower() not in self._app_settings.supported_receipt_types_list:
            raise InvalidReceiptError(
                "Invalid file type. Please upload JPEG, PNG, or WebP images only."
            )

        if len(image_bytes) > self._app_settings.max_receipt_size_bytes:
            raise InvalidReceiptError(
                f"File size too large. Please upload an image under "
                f"{self._app_settings.max_receipt_size_mb}MB."
            )

        try:
            with Image.open(BytesIO(image_bytes)) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError):
            raise InvalidReceiptError("The uploaded file is not a readable image.")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _upload(self, image_bytes: bytes, public_id: str) -> dict:
        return cloudinary.uploader.upload(
            image_bytes,
            public_id=public_id,
            folder=self._settings.folder,
            resource_type="image",
            transformation=[
                {"quality": "auto:good"},
                {"fetch_format": "auto"},
            ],
        )

    async def upload_receipt(
        self,
        image_bytes: bytes,
        filename: str,
        mime_type: str,
    ) -> str:
        """
        Validate and upload a receipt image.

        Returns:
            The public URL of the uploaded image

        Raises:
            InvalidReceiptError: If the file is rejected
            ReceiptUploadError: If the upload fails
        """
        self.validate(image_bytes, mime_type)

        try:
            self._configure()
            result = self._upload(image_bytes, self._generate_public_id(filename))
        except cloudinary.exceptions.Error as e:
            raise ReceiptUploadError(f"Cloudinary error: {e}")
        except Exception as e:
            raise ReceiptUploadError(f"Failed to upload image: {e}")

        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise ReceiptUploadError("No URL returned from Cloudinary")
        return url
