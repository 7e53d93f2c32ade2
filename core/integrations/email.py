"""Email integration utilities for sending emails."""

import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional
import logging

from core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Email service for sending emails via SMTP."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
    ):
        self.smtp_host = smtp_host or settings.smtp_host
        self.smtp_port = smtp_port or settings.smtp_port
        self.smtp_user = smtp_user or settings.smtp_user
        self.smtp_password = smtp_password or settings.smtp_password
        self.from_email = from_email or settings.from_email

    @property
    def configured(self) -> bool:
        return bool(self.smtp_host)

    def send_email(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: Optional[str] = None,
    ) -> bool:
        """
        Send an email.

        Delivery problems are logged and reported through the return value;
        they never propagate to the caller.

        Returns:
            True if email sent successfully
        """
        if not self.configured:
            logger.warning("SMTP is not configured; skipping email '%s'", subject)
            return False

        msg = MIMEMultipart("alternative")
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain"))
        if html_body:
            msg.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email '%s': %s", subject, e)
            return False

        logger.info("Email '%s' sent", subject)
        return True


class EmailTemplates:
    """Pre-configured email templates."""

    @staticmethod
    def access_code(
        candidate_email: str,
        code: str,
        expires_at: datetime,
        issuer_label: str,
        temporary_password: Optional[str] = None,
    ) -> dict:
        """Access code delivered to a candidate."""
        portal_name = settings.portal_name
        login_url = f"{settings.public_base_url.rstrip('/')}/login"
        expiry = expires_at.strftime("%d-%b-%Y %H:%M UTC")

        password_line = ""
        password_html = ""
        if temporary_password:
            password_line = (
                f"Your temporary password is: {temporary_password} "
                "(you will be asked to change it after your first login).\n\n"
            )
            password_html = (
                f"<p>Your temporary password is: <strong>{escape(temporary_password)}</strong>"
                "<br>You will be asked to change it after your first login.</p>"
            )

        text = (
            f"Hello {candidate_email},\n\n"
            f"{issuer_label} has generated an access code for you to log in to "
            f"{portal_name}.\n\n"
            f"Your access code: {code}\n\n"
            f"The code can be used once and is valid until {expiry}.\n\n"
            f"Log in and complete your profile here: {login_url}\n\n"
            f"{password_line}"
            f"The {portal_name} Team"
        )
        html = f"""
            <html>
            <body>
                <h2>Your {escape(portal_name)} access code</h2>
                <p>{escape(issuer_label)} has generated an access code for you.</p>
                <p style="font-size: 24px; letter-spacing: 2px;"><strong>{escape(code)}</strong></p>
                <p>The code can be used once and is valid until {expiry}.</p>
                {password_html}
                <p><a href="{escape(login_url)}">Log in to {escape(portal_name)}</a></p>
                <p>The {escape(portal_name)} Team</p>
            </body>
            </html>
        """
        return {
            "subject": f"Your {portal_name} Portal Access Code",
            "text_body": text,
            "html_body": html,
        }

    @staticmethod
    def password_reset(username: str, reset_link: str, valid_minutes: int) -> dict:
        """Password reset link."""
        portal_name = settings.portal_name
        text = (
            f"Hello {username},\n\n"
            f"You have requested to reset the password for your {portal_name} account. "
            f"Use the link below to choose a new password:\n\n"
            f"{reset_link}\n\n"
            f"This link is valid for {valid_minutes} minutes. If you did not request "
            "a password reset, please ignore this email.\n\n"
            f"The {portal_name} Team"
        )
        html = f"""
            <html>
            <body>
                <p>Hello <strong>{escape(username)}</strong>,</p>
                <p>You have requested to reset the password for your {escape(portal_name)} account.</p>
                <p><a href="{escape(reset_link)}">Reset your password</a></p>
                <p>This link is valid for <strong>{valid_minutes} minutes</strong>.
                If you did not request a password reset, please ignore this email.</p>
                <p>The {escape(portal_name)} Team</p>
            </body>
            </html>
        """
        return {
            "subject": f"Password Reset Request for Your {portal_name} Account",
            "text_body": text,
            "html_body": html,
        }


def send_access_code_email(
    candidate_email: str,
    code: str,
    expires_at: datetime,
    issuer_label: str,
    temporary_password: Optional[str] = None,
    service: Optional[EmailService] = None,
) -> bool:
    """Deliver an access code. Runs as a background task after issuance."""
    service = service or EmailService()
    message = EmailTemplates.access_code(
        candidate_email, code, expires_at, issuer_label, temporary_password
    )
    return service.send_email(candidate_email, **message)


def send_password_reset_email(
    email: str,
    username: str,
    token: str,
    service: Optional[EmailService] = None,
) -> bool:
    """Deliver a password reset link. Runs as a background task."""
    service = service or EmailService()
    reset_link = f"{settings.public_base_url.rstrip('/')}/reset-password?token={token}"
    message = EmailTemplates.password_reset(
        username, reset_link, settings.password_reset_expire_minutes
    )
    return service.send_email(email, **message)
