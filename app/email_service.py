# app/email_service.py
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from html import escape
from typing import Callable, List, Optional

from fastapi.concurrency import run_in_threadpool

from app.core.config import settings
from app.logging_config import get_logger

logger = get_logger("email")

BRAND = "Vestitus"

_LAYOUT = """
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2 style="color: #333;">{title}</h2>
    {body}
    <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
    <p style="color: #999; font-size: 12px;">{footer}</p>
</body>
</html>
"""

_FOOTER = f"This is an automated message from {BRAND}. Please do not reply."


class EmailService:
    """Account notification emails: OTP, welcome, reset and account changes"""

    def __init__(self, enabled: Optional[bool] = None):
        self.enabled = settings.email_enabled if enabled is None else enabled
        if not self.enabled:
            logger.info("Email service is DISABLED. Set EMAIL_ENABLED=true to enable.")

    def send_email(
        self,
        to_emails: List[str],
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        """Send email with HTML and optional text fallback"""
        if not self.enabled:
            logger.info(f"[EMAIL DISABLED] Would send: {subject} to {to_emails}")
            return True

        if not settings.smtp_user or not settings.smtp_password:
            logger.error("SMTP credentials not configured")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{settings.smtp_from_name} <{settings.smtp_from_email}>"
            msg['To'] = ', '.join(to_emails)

            if text_body:
                msg.attach(MIMEText(text_body, 'plain', 'utf-8'))
            msg.attach(MIMEText(html_body, 'html', 'utf-8'))

            with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
                server.starttls()
                server.login(settings.smtp_user, settings.smtp_password)
                server.send_message(msg)

            logger.info(f"Email sent successfully: {subject} to {to_emails}")
            return True

        except Exception as e:
            logger.error(f"Failed to send email: {e}", exc_info=True)
            return False

    def _send(self, to_email: str, subject: str, title: str, paragraphs: List[str]) -> bool:
        html_body = _LAYOUT.format(
            title=escape(title),
            body="\n    ".join(p if p.startswith("<") else f"<p>{escape(p)}</p>" for p in paragraphs),
            footer=_FOOTER,
        )
        text_lines = [title, ""] + [p for p in paragraphs if not p.startswith("<")] + ["", f"{BRAND}"]
        return self.send_email([to_email], subject, html_body, "\n".join(text_lines))

    def send_otp_email(self, email: str, otp: str) -> bool:
        """Password reset code; the HTML version shows the code in a banner"""
        minutes = settings.otp_expire_minutes
        html_body = _LAYOUT.format(
            title="Password Reset Request",
            body=f"""<p>You requested to reset your password. Use the code below:</p>
    <div style="background: #f4f4f4; padding: 20px; text-align: center; margin: 20px 0;">
        <h1 style="color: #4CAF50; letter-spacing: 5px; margin: 0;">{escape(otp)}</h1>
    </div>
    <p>This code expires in {minutes} minutes.</p>
    <p>If you didn't request a password reset, please ignore this email.</p>""",
            footer=_FOOTER,
        )
        text_body = (
            f"Password Reset Request\n\nYour code: {otp}\n"
            f"This code expires in {minutes} minutes.\n\n{BRAND}"
        )
        return self.send_email([email], "Password Reset OTP", html_body, text_body)

    def send_welcome_email(self, email: str, full_name: str) -> bool:
        return self._send(
            email,
            f"Welcome to {BRAND}!",
            f"Welcome to {BRAND}, {full_name}!",
            [
                "Thank you for creating an account with us.",
                "You can now browse our collection and save your favourite items.",
            ],
        )

    def send_password_reset_confirmation(self, email: str, full_name: str) -> bool:
        return self._send(
            email,
            "Password Reset Successful",
            "Password Reset Successful",
            [
                f"Hi {full_name},",
                "Your password has been reset successfully.",
                "If you did not make this change, please contact support immediately.",
            ],
        )

    def send_email_change_notification(self, old_email: str, new_email: str, full_name: str) -> bool:
        return self._send(
            old_email,
            "Email Address Changed",
            "Email Address Changed",
            [
                f"Hi {full_name},",
                f"The email address on your account was changed to {new_email}.",
                "If you did not make this change, please contact support immediately.",
            ],
        )

    def send_account_deletion_notification(self, email: str, full_name: str) -> bool:
        return self._send(
            email,
            "Account Deleted",
            "Account Deletion Confirmation",
            [
                f"Hi {full_name},",
                f"Your {BRAND} account and its data have been deleted.",
                "We're sorry to see you go.",
            ],
        )


async def notify(send: Callable[..., bool], *args) -> bool:
    """
    Run a notification off the event loop. Never raises.

    The state change that triggered it has already been committed, so a
    failure here is logged and reported as False only.
    """
    try:
        delivered = await run_in_threadpool(send, *args)
    except Exception:
        logger.error(f"Notification {getattr(send, '__name__', send)} failed", exc_info=True)
        return False

    if not delivered:
        logger.warning(f"Notification {getattr(send, '__name__', send)} was not delivered")
    return delivered


def get_email_service() -> EmailService:
    """Dependency injection for FastAPI."""
    return email_service


# Singleton instance
email_service = EmailService()
