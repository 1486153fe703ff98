"""Email services package."""

from money_manager.services.email.smtp_service import (
    WELCOME_SUBJECT,
    EmailError,
    SmtpEmailService,
    render_welcome_email,
)

__all__ = [
    "WELCOME_SUBJECT",
    "EmailError",
    "SmtpEmailService",
    "render_welcome_email",
]
