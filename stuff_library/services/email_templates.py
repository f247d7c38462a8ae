from __future__ import annotations

import re
from dataclasses import dataclass

from markupsafe import escape


@dataclass
class EmailTemplate:
    subject: str
    html: str
    to: str | None = None  # overrides the recipient's address


def _one_line(subject: str) -> str:
    # mail headers may not contain line breaks
    return re.sub(r"\s*[\r\n]+\s*", " ", subject).strip()


def _wrap(heading: str, *paragraphs: str, link: str | None = None, link_text: str = "Open") -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs if p)
    button = f'<p><a href="{escape(link)}">{escape(link_text)}</a></p>' if link else ""
    return f"<html><body><h2>{escape(heading)}</h2>{body}{button}</body></html>"


def borrow_request_received(recipient_name, borrower_name, item_name, requested_return_date,
                            approval_url, request_message=None, video_url=None) -> EmailTemplate:
    return EmailTemplate(
        subject=_one_line(f"{borrower_name} wants to borrow your {item_name}"),
        html=_wrap(
            "New borrow request",
            f"Hi {escape(recipient_name)},",
            f"{escape(borrower_name)} would like to borrow your <b>{escape(item_name)}</b> "
            f"until {escape(requested_return_date)}.",
            f"&ldquo;{escape(request_message)}&rdquo;" if request_message else "",
            f'<a href="{escape(video_url)}">Watch their video introduction</a>' if video_url else "",
            link=approval_url,
            link_text="Review request",
        ),
    )


def borrow_request_approved(recipient_name, lender_name, item_name, return_date,
                            lender_message=None, contact_info=None) -> EmailTemplate:
    return EmailTemplate(
        subject=_one_line(f"Your request for {item_name} was approved"),
        html=_wrap(
            "Request approved",
            f"Hi {escape(recipient_name)},",
            f"{escape(lender_name)} approved your request for <b>{escape(item_name)}</b>. "
            f"Please return it by {escape(return_date)}.",
            f"&ldquo;{escape(lender_message)}&rdquo;" if lender_message else "",
            f"Contact: {escape(contact_info)}" if contact_info else "",
        ),
    )


def borrow_request_declined(recipient_name, lender_name, item_name, lender_message=None) -> EmailTemplate:
    return EmailTemplate(
        subject=_one_line(f"Update on your request for {item_name}"),
        html=_wrap(
            "Request update",
            f"Hi {escape(recipient_name)},",
            f"{escape(lender_name)} couldn't lend you <b>{escape(item_name)}</b> this time.",
            f"&ldquo;{escape(lender_message)}&rdquo;" if lender_message else "",
        ),
    )


def borrow_request_cancelled(recipient_name, canceller_name, item_name) -> EmailTemplate:
    return EmailTemplate(
        subject=_one_line(f"Borrow request for {item_name} was cancelled"),
        html=_wrap(
            "Request cancelled",
            f"Hi {escape(recipient_name)},",
            f"{escape(canceller_name)} cancelled the borrow request for <b>{escape(item_name)}</b>.",
        ),
    )


def item_returned(recipient_name, borrower_name, item_name, return_date,
                  borrower_notes=None, confirm_return_url=None) -> EmailTemplate:
    return EmailTemplate(
        subject=_one_line(f"{item_name} has been returned"),
        html=_wrap(
            "Item returned",
            f"Hi {escape(recipient_name)},",
            f"{escape(borrower_name)} marked <b>{escape(item_name)}</b> as returned on {escape(return_date)}.",
            f"Notes: {escape(borrower_notes)}" if borrower_notes else "",
            link=confirm_return_url,
            link_text="Confirm return",
        ),
    )


def return_reminder(recipient_name, item_name, lender_name, return_date, contact_info=None) -> EmailTemplate:
    return EmailTemplate(
        subject=_one_line(f"Reminder: {item_name} is due tomorrow"),
        html=_wrap(
            "Return reminder",
            f"Hi {escape(recipient_name)},",
            f"<b>{escape(item_name)}</b> borrowed from {escape(lender_name)} is due back on {escape(return_date)}.",
            f"Contact: {escape(contact_info)}" if contact_info else "",
        ),
    )
