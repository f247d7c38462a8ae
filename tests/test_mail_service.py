from smtplib import SMTPException
from unittest.mock import patch

import pytest

from stuff_library.errors import ConfigurationMissingError
from stuff_library.extensions import mail
from stuff_library.services import email_templates
from stuff_library.services.mail_service import MailService


def test_send_email_returns_message_id(app):
    with mail.record_messages() as outbox:
        result = MailService.send_email("bo@example.com", "Subject", "<p>Body</p>")

    assert result.success is True
    assert result.message_id
    assert len(outbox) == 1
    assert outbox[0].recipients == ["bo@example.com"]
    assert outbox[0].html == "<p>Body</p>"


def test_missing_recipient_is_a_failed_result(app):
    result = MailService.send_email("", "Subject", "<p/>")
    assert result.success is False
    assert result.error == "missing_email"


def test_missing_credentials_raise_when_sending_for_real(app):
    app.config["MAIL_SUPPRESS_SEND"] = False
    app.config["MAIL_USERNAME"] = ""
    with pytest.raises(ConfigurationMissingError):
        MailService.send_email("bo@example.com", "Subject", "<p/>")


def test_smtp_error_is_reported_not_raised(app):
    with patch("stuff_library.services.mail_service.mail.send", side_effect=SMTPException("421")):
        result = MailService.send_email("bo@example.com", "Subject", "<p/>")
    assert result.success is False
    assert "421" in result.error


def test_header_injection_is_reported_not_raised(app):
    result = MailService.send_email("bo@example.com", "Drill\nBits", "<p/>")
    assert result.success is False


def test_template_subjects_are_single_line():
    template = email_templates.borrow_request_received(
        recipient_name="Lena",
        borrower_name="Bo",
        item_name="Drill\r\nBits",
        requested_return_date="2026-11-01",
        approval_url="https://example.com/borrow-approval/1",
    )
    assert template.subject == "Bo wants to borrow your Drill Bits"
