from __future__ import annotations

import re
from dataclasses import dataclass

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from stuff_library.errors import (
    ConfigurationMissingError,
    InvalidOperationError,
    TransientDependencyError,
)

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


@dataclass
class SmsResult:
    success: bool
    message_id: str | None = None
    status: str | None = None
    error: str | None = None


@dataclass
class SmsSettings:
    account_sid: str
    auth_token: str
    from_number: str

    @classmethod
    def from_config(cls, config) -> "SmsSettings":
        return cls(
            account_sid=config.get("TWILIO_ACCOUNT_SID") or "",
            auth_token=config.get("TWILIO_AUTH_TOKEN") or "",
            from_number=config.get("TWILIO_PHONE_NUMBER") or "",
        )


def normalize_phone_number(raw: str) -> str:
    """
    E.164 formatting for US-centric input:
    "+..." passes through, 11 digits starting with 1 get "+",
    10 digits get "+1", anything else gets "+".
    """
    if not raw or not raw.strip():
        raise InvalidOperationError("Phone number is required but was empty")

    clean = re.sub(r"[^\d+]", "", raw.strip())
    # a "+" is only meaningful as the first character
    clean = clean[:1] + clean[1:].replace("+", "")

    if clean.startswith("+"):
        formatted = clean
    elif len(clean) == 11 and clean.startswith("1"):
        formatted = f"+{clean}"
    elif len(clean) == 10:
        formatted = f"+1{clean}"
    else:
        formatted = f"+{clean}"

    if not E164_PATTERN.match(formatted):
        raise InvalidOperationError(
            f'Invalid phone number format after formatting: "{formatted}". Expected E.164 (+1234567890).'
        )
    return formatted


class SmsService:
    """
    Legacy SMS channel over the Twilio REST API.

    Settings are passed in explicitly rather than read from current_app so
    that sends can run on worker threads outside the request context.
    """

    def __init__(self, settings: SmsSettings, logger):
        self.settings = settings
        self.logger = logger

    def _client(self) -> Client:
        sid = self.settings.account_sid
        token = self.settings.auth_token
        if not sid or not token:
            raise ConfigurationMissingError(
                "Twilio credentials not found. Set TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN."
            )
        if not sid.startswith("AC"):
            raise ConfigurationMissingError(
                f"Invalid TWILIO_ACCOUNT_SID format: must start with 'AC' but got '{sid[:2]}***'"
            )
        if not self.settings.from_number:
            raise ConfigurationMissingError("TWILIO_PHONE_NUMBER is required")
        return Client(sid, token)

    def send_sms(self, to: str, body: str) -> SmsResult:
        client = self._client()
        formatted_to = normalize_phone_number(to)
        self.logger.info(f'[sms] Phone number formatting: "{to}" -> "{formatted_to}"')

        try:
            message = client.messages.create(
                body=body,
                from_=self.settings.from_number,
                to=formatted_to,
            )
        except TwilioException as e:
            raise TransientDependencyError(f"SMS delivery failed: {e}") from e

        self.logger.info(f"[sms] SMS sent: {message.sid}")
        return SmsResult(True, message_id=message.sid, status=message.status)


def borrow_request_sms(borrower_name: str, item_name: str, approval_url: str) -> str:
    return (
        f'Stuff Library: {borrower_name} wants to borrow your "{item_name}". '
        f"View their video request and respond here: {approval_url}"
    )


def borrow_response_sms(owner_name: str, item_name: str, approved: bool, message: str) -> str:
    status = "Approved" if approved else "Declined"
    return (
        f'Stuff Library: {status} - {owner_name} responded to your "{item_name}" request: "{message}"'
    )


def return_sms(borrower_name: str, item_name: str, borrower_notes: str | None = None) -> str:
    body = f'Stuff Library: {borrower_name} has returned your "{item_name}".'
    if borrower_notes:
        body += f' Notes: "{borrower_notes}"'
    return body


def cancellation_sms(canceller_name: str, item_name: str, is_owner_cancelling: bool) -> str:
    if is_owner_cancelling:
        return f'Stuff Library: {canceller_name} cancelled your request to borrow "{item_name}".'
    return f'Stuff Library: {canceller_name} cancelled their request to borrow your "{item_name}".'
