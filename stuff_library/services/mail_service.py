# stuff_library/services/mail_service.py
from __future__ import annotations

from dataclasses import dataclass
from smtplib import SMTPException

from flask import current_app
from flask_mail import BadHeaderError, Message

from stuff_library.errors import ConfigurationMissingError
from stuff_library.extensions import mail


@dataclass
class EmailResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


class MailService:
    @staticmethod
    def _ensure_configured():
        cfg = current_app.config
        if cfg.get("MAIL_SUPPRESS_SEND"):
            return
        if not cfg.get("MAIL_SERVER") or not cfg.get("MAIL_USERNAME") or not cfg.get("MAIL_PASSWORD"):
            raise ConfigurationMissingError(
                "Mail credentials not found. Set MAIL_SERVER, MAIL_USERNAME and MAIL_PASSWORD."
            )

    @staticmethod
    def send_email(to: str, subject: str, html: str) -> EmailResult:
        """
        Sends one HTML email through Flask-Mail.
        Missing SMTP credentials raise ConfigurationMissingError; delivery
        errors are logged and reported as EmailResult(success=False).
        """
        MailService._ensure_configured()

        if not to:
            return EmailResult(False, error="missing_email")

        try:
            msg = Message(subject=subject, recipients=[to], html=html)
            mail.send(msg)
            current_app.logger.info(f"[mail] Sent '{subject}' to {to}")
            return EmailResult(True, message_id=msg.msgId)
        except (SMTPException, OSError, BadHeaderError) as e:
            current_app.logger.warning(f"[mail] Could not send mail to {to}: {e}")
            return EmailResult(False, error=str(e))
