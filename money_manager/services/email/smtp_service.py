"""
Email Service over SMTP

Sends the welcome email after registration. Sending is best effort:
callers log failures and carry on.
"""

import smtplib
from email.message import EmailMessage
from typing import Optional

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from money_manager.config import get_settings


WELCOME_SUBJECT = "Welcome to MoneyManager - Your Financial Journey Starts Here! 🎉"


class EmailError(Exception):
    """Failed to send an email."""
    pass


def render_welcome_email(email: str, name: Optional[str] = None) -> tuple[str, str]:
    """Return (text, html) bodies of the welcome email."""
    first_name = (name or "").split(" ")[0] or "there"

    text = (
        f"Welcome to MoneyManager, {first_name}!\n\n"
        "You've taken the first step towards better financial management.\n\n"
        "Start by adding your bank accounts, then track your income and expenses.\n"
        "Lend money? Record it as a debt and log repayments as they come in.\n"
        "The AI assistant can answer questions about any period of your finances.\n\n"
        f"This email was sent to {email} because you created a MoneyManager account.\n"
    )
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        "<h1>Welcome to MoneyManager! 🎉</h1>"
        f"<h2>Hi {first_name}! 👋</h2>"
        "<p>You've taken the first step towards better financial management.</p>"
        "<ul>"
        "<li>💰 Track income and expenses across all your accounts</li>"
        "<li>🤝 Keep tabs on money you've lent, with interest</li>"
        "<li>📈 Follow your investments</li>"
        "<li>🤖 Ask the assistant about your spending</li>"
        "</ul>"
        f'<p style="color: #9ca3af;">This email was sent to {email} because you '
        "created a MoneyManager account.</p>"
        "</div>"
    )
    return text, html


class SmtpEmailService:
    """Thin wrapper over smtplib with retries."""

    def __init__(self):
        self._settings = get_settings().smtp

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    def _build_message(
        self,
        to_email: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
    ) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self._settings.from_address
        message["To"] = to_email
        message.set_content(text)
        if html:
            message.add_alternative(html, subtype="html")
        return message

    @retry(
        retry=retry_if_exception_type((smtplib.SMTPException, OSError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _send(self, message: EmailMessage) -> None:
        s = self._settings
        if s.use_ssl:
            with smtplib.SMTP_SSL(s.host, s.port) as server:
                if s.username and s.password:
                    server.login(s.username, s.password)
                server.send_message(message)
            return

        with smtplib.SMTP(s.host, s.port) as server:
            server.ehlo()
            if s.use_tls:
                server.starttls()
                server.ehlo()
            if s.username and s.password:
                server.login(s.username, s.password)
            server.send_message(message)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
    ) -> bool:
        """
        Send one email.

        Returns False when email is disabled.

        Raises:
            EmailError: If the SMTP exchange fails after retries
        """
        if not self.enabled:
            return False
        try:
            self._send(self._build_message(to_email, subject, text, html))
        except (smtplib.SMTPException, OSError) as e:
            raise EmailError(f"Failed to send email to {to_email}: {e}")
        return True

    async def send_welcome_email(self, email: str, name: Optional[str] = None) -> bool:
        text, html = render_welcome_email(email, name)
        return await self.send_email(email, WELCOME_SUBJECT, text, html)
