"""
Tests for users, receipts, email and application wiring.
"""

from io import BytesIO

import pytest
from PIL import Image

from money_manager.actions import ReceiptActions, UserActions
from money_manager.exceptions import UnauthorizedError
from money_manager.orchestrator import create_app_components
from money_manager.services.email import render_welcome_email
from money_manager.services.image import (
    CloudinaryReceiptService,
    InvalidReceiptError,
    ReceiptUploadError,
)

from conftest import FakeEmailService, FakeReceiptService, FakeStreamingAgent, run


def _png() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (4, 4), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


class TestUserActions:
    """Tests for registration, sign-in and currency."""

    def test_register_and_authenticate(self, db, audit):
        """Test that a registered user can sign in with a normalised email."""
        email = FakeEmailService()
        users = UserActions(db, audit, email_service=email)

        result = run(users.register_user("Asha Rao", "  Asha@Example.com ", "correct-horse"))

        assert result.success, result.error
        assert result.data.email == "asha@example.com"
        assert result.data.currency == "USD"
        assert email.sent == ["asha@example.com"]

        session = run(users.authenticate("ASHA@example.com", "correct-horse"))
        assert session.user_id == result.data.id

    def test_wrong_password(self, db, audit):
        """Test that bad credentials raise."""
        users = UserActions(db, audit)
        run(users.register_user("Asha", "asha@example.com", "correct-horse"))

        with pytest.raises(UnauthorizedError, match="Invalid email or password"):
            run(users.authenticate("asha@example.com", "wrong-horse"))

    def test_duplicate_and_weak_password(self, db, audit):
        """Test registration validation messages."""
        users = UserActions(db, audit)
        run(users.register_user("Asha", "asha@example.com", "correct-horse"))

        assert run(users.register_user("Other", "asha@example.com", "correct-horse")).error == \
            "An account with this email already exists"
        assert run(users.register_user("Other", "other@example.com", "short")).error == \
            "Password must be at least 8 characters"

    def test_welcome_email_failure_does_not_fail_registration(self, db, audit):
        """Test that a broken mail server only logs."""
        users = UserActions(db, audit, email_service=FakeEmailService(error=OSError("smtp down")))

        result = run(users.register_user("Asha", "asha@example.com", "correct-horse"))

        assert result.success
        assert result.message == "Account created successfully"

    def test_currency(self, db, audit, session):
        """Test reading and updating the currency preference."""
        users = UserActions(db, audit)

        assert run(users.get_user_currency(session)).data == "USD"
        assert run(users.update_user_currency(session, "npr")).data == "NPR"
        assert run(users.get_user_currency(session)).data == "NPR"
        assert run(users.update_user_currency(session, "RUPEES")).error == "Currency must be a 3-letter code"


class TestReceipts:
    """Tests for receipt validation and the upload action."""

    def test_validate_accepts_real_image(self):
        """Test that a small PNG passes validation."""
        CloudinaryReceiptService().validate(_png(), "image/png")

    def test_validate_rejections(self):
        """Test type, emptiness and content checks."""
        service = CloudinaryReceiptService()

        with pytest.raises(InvalidReceiptError, match="No image file provided"):
            service.validate(b"", "image/png")
        with pytest.raises(InvalidReceiptError, match="Invalid file type"):
            service.validate(_png(), "application/pdf")
        with pytest.raises(InvalidReceiptError, match="not a readable image"):
            service.validate(b"definitely not a png", "image/png")

    def test_public_id_format(self):
        """Test the receipt-<ms>-<hash> public id."""
        public_id = CloudinaryReceiptService._generate_public_id("r.jpg")

        prefix, timestamp, digest = public_id.split("-")
        assert prefix == "receipt"
        assert timestamp.isdigit()
        assert len(digest) == 8

    def test_upload_success(self, db, audit, session):
        """Test that the action returns the uploaded URL."""
        service = FakeReceiptService()

        result = run(ReceiptActions(db, audit, receipt_service=service).upload_receipt(
            session, _png(), "lunch.png", "image/png"
        ))

        assert result.success
        assert result.data == "https://res.cloudinary.com/demo/receipt.jpg"
        assert result.message == "Receipt uploaded successfully"
        assert service.uploads[0][:2] == ("lunch.png", "image/png")

    def test_invalid_receipt_message_passed_through(self, db, audit, session):
        """Test that validation errors reach the user verbatim."""
        service = FakeReceiptService(error=InvalidReceiptError("File size too large."))

        result = run(ReceiptActions(db, audit, receipt_service=service).upload_receipt(
            session, b"x", "big.png", "image/png"
        ))

        assert result.error == "File size too large."

    def test_upload_failure_is_generic(self, db, audit, session):
        """Test that provider errors are not leaked."""
        service = FakeReceiptService(error=ReceiptUploadError("Cloudinary error: 401 bad key"))

        result = run(ReceiptActions(db, audit, receipt_service=service).upload_receipt(
            session, _png(), "r.png", "image/png"
        ))

        assert result.error == "Failed to upload receipt"

    def test_upload_requires_session(self, db, audit):
        """Test the Unauthorized path."""
        result = run(ReceiptActions(db, audit, receipt_service=FakeReceiptService()).upload_receipt(
            None, _png(), "r.png", "image/png"
        ))

        assert result.error == "Unauthorized"


class TestWelcomeEmail:

    def test_first_name_used(self):
        """Test the greeting uses the first name."""
        text, html = render_welcome_email("asha@example.com", "Asha Rao")

        assert text.startswith("Welcome to MoneyManager, Asha!")
        assert "asha@example.com" in html

    def test_no_name(self):
        text, _ = render_welcome_email("x@example.com")
        assert "Welcome to MoneyManager, there!" in text


class TestAppComponents:
    """Tests for the application factory."""

    def test_components_share_one_database(self):
        """Test that the factory seeds categories and wires every action."""
        components = create_app_components(
            database_url="sqlite://",
            receipt_service=FakeReceiptService(),
            chat_agent=FakeStreamingAgent(),
            email_service=FakeEmailService(),
        )
        try:
            registered = run(components.users.register_user("Asha", "asha@example.com", "correct-horse"))
            session = run(components.users.authenticate("asha@example.com", "correct-horse"))

            categories = run(components.categories.get_categories(session)).data

            assert registered.success
            assert any(c.name == "Salary" for c in categories)
            assert components.chat_flow is not None
        finally:
            components.db.drop_all()
