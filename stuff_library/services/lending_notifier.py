"""
Per-event fan-out for the borrow lifecycle.

Every event produces one in-app notification (emailed when the recipient
has an address) and, where the recipient has a phone number, a legacy SMS
that runs on a worker thread alongside the in-app work. Each channel
reports its own outcome; one failing never affects the others.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from datetime import datetime

from flask import current_app

from stuff_library.errors import (
    ConfigurationMissingError,
    InvalidOperationError,
    NotificationError,
    TransientDependencyError,
)
from stuff_library.models.notification import NotificationType
from stuff_library.services import email_templates
from stuff_library.services.notification_service import NotificationService
from stuff_library.services.sms_service import (
    SmsService,
    SmsSettings,
    borrow_request_sms,
    borrow_response_sms,
    cancellation_sms,
    return_sms,
)


def get_sms_executor() -> ThreadPoolExecutor:
    executor = current_app.extensions.get("sms_executor")
    if executor is None:
        executor = ThreadPoolExecutor(
            max_workers=current_app.config.get("SMS_WORKERS", 4),
            thread_name_prefix="sms",
        )
        current_app.extensions["sms_executor"] = executor
    return executor


def _name(user, fallback: str) -> str:
    return (getattr(user, "name", None) or fallback) if user else fallback


def _date(value) -> str:
    return value.strftime("%Y-%m-%d") if value else ""


class LendingNotifier:
    @staticmethod
    def _url(path: str) -> str:
        return f"{current_app.config.get('APP_BASE_URL', '').rstrip('/')}{path}"

    @staticmethod
    def _submit_sms(to: str | None, body: str):
        if not to:
            return None
        service = SmsService(SmsSettings.from_config(current_app.config), current_app.logger)
        return get_sms_executor().submit(service.send_sms, to, body)

    @staticmethod
    def _collect_sms(future) -> bool | None:
        if future is None:
            return None
        try:
            return future.result(timeout=current_app.config.get("SMS_TIMEOUT_SECONDS", 15)).success
        except (ConfigurationMissingError, InvalidOperationError, TransientDependencyError, FutureTimeout) as e:
            current_app.logger.error(f"[notifications] Failed to send SMS notification: {e}")
            return False
        except Exception as e:
            current_app.logger.exception(f"[notifications] Unexpected SMS failure: {e}")
            return False

    @staticmethod
    def _dispatch(recipient, notification_kwargs: dict, email_template, sms_to=None, sms_body=None) -> dict:
        sms_future = LendingNotifier._submit_sms(sms_to, sms_body)

        wants_email = bool(email_template and (email_template.to or getattr(recipient, "email", None)))
        in_app = False
        email = None
        try:
            notification = NotificationService.create_notification(
                send_email=wants_email,
                email_template=email_template if wants_email else None,
                **notification_kwargs,
            )
            in_app = True
            if wants_email:
                email = bool(notification.email_sent)
        except NotificationError as e:
            current_app.logger.error(f"[notifications] Failed to send in-app notification: {e}")
            if wants_email:
                email = False
        except Exception as e:
            current_app.logger.exception(f"[notifications] Unexpected notification failure: {e}")
            if wants_email:
                email = False

        return {"in_app": in_app, "email": email, "sms": LendingNotifier._collect_sms(sms_future)}

    @staticmethod
    def borrow_request_received(borrow_request, approval_url: str | None = None) -> dict:
        borrower, lender, item = borrow_request.borrower, borrow_request.lender, borrow_request.item
        borrower_name = _name(borrower, "Someone")
        approval_url = approval_url or LendingNotifier._url(f"/borrow-approval/{borrow_request.id}")

        template = email_templates.borrow_request_received(
            recipient_name=_name(lender, "there"),
            borrower_name=borrower_name,
            item_name=item.name,
            requested_return_date=_date(borrow_request.requested_return_date),
            approval_url=approval_url,
            request_message=borrow_request.request_message,
            video_url=borrow_request.video_url,
        )
        return LendingNotifier._dispatch(
            lender,
            dict(
                user_id=borrow_request.lender_id,
                type=NotificationType.BORROW_REQUEST_RECEIVED,
                title="New Borrow Request",
                message=f'{borrower_name} wants to borrow your "{item.name}"',
                action_url=f"/lender/requests/{borrow_request.id}",
                related_item_id=borrow_request.item_id,
                related_request_id=borrow_request.id,
                metadata={
                    "borrower_name": borrower_name,
                    "item_name": item.name,
                    "request_message": borrow_request.request_message,
                    "video_url": borrow_request.video_url,
                },
            ),
            template,
            sms_to=getattr(lender, "phone", None),
            sms_body=borrow_request_sms(borrower_name, item.name, approval_url),
        )

    @staticmethod
    def borrow_request_approved(borrow_request) -> dict:
        borrower, lender, item = borrow_request.borrower, borrow_request.lender, borrow_request.item
        lender_name = _name(lender, "The owner")

        template = email_templates.borrow_request_approved(
            recipient_name=_name(borrower, "there"),
            lender_name=lender_name,
            item_name=item.name,
            return_date=_date(borrow_request.requested_return_date),
            lender_message=borrow_request.lender_message,
            contact_info=getattr(lender, "phone", None),
        )
        return LendingNotifier._dispatch(
            borrower,
            dict(
                user_id=borrow_request.borrower_id,
                type=NotificationType.BORROW_REQUEST_APPROVED,
                title="Request Approved!",
                message=f'{lender_name} approved your request for "{item.name}"',
                action_url=f"/borrow-requests/{borrow_request.id}",
                related_item_id=borrow_request.item_id,
                related_request_id=borrow_request.id,
                metadata={
                    "lender_name": lender_name,
                    "item_name": item.name,
                    "lender_message": borrow_request.lender_message,
                },
            ),
            template,
            sms_to=getattr(borrower, "phone", None),
            sms_body=borrow_response_sms(
                lender_name, item.name, True, borrow_request.lender_message or "Request approved"
            ),
        )

    @staticmethod
    def borrow_request_declined(borrow_request) -> dict:
        borrower, lender, item = borrow_request.borrower, borrow_request.lender, borrow_request.item
        lender_name = _name(lender, "The owner")

        template = email_templates.borrow_request_declined(
            recipient_name=_name(borrower, "there"),
            lender_name=lender_name,
            item_name=item.name,
            lender_message=borrow_request.lender_message,
        )
        return LendingNotifier._dispatch(
            borrower,
            dict(
                user_id=borrow_request.borrower_id,
                type=NotificationType.BORROW_REQUEST_DECLINED,
                title="Request Update",
                message=f"Your request for \"{item.name}\" couldn't be approved this time",
                action_url=f"/borrow-requests/{borrow_request.id}",
                related_item_id=borrow_request.item_id,
                related_request_id=borrow_request.id,
                metadata={
                    "lender_name": lender_name,
                    "item_name": item.name,
                    "lender_message": borrow_request.lender_message,
                },
            ),
            template,
            sms_to=getattr(borrower, "phone", None),
            sms_body=borrow_response_sms(
                lender_name, item.name, False, borrow_request.lender_message or "Request declined"
            ),
        )

    @staticmethod
    def borrow_request_cancelled(borrow_request, cancelled_by_id: int) -> dict:
        item = borrow_request.item
        owner_cancelling = cancelled_by_id == borrow_request.lender_id
        if owner_cancelling:
            recipient, canceller = borrow_request.borrower, borrow_request.lender
        else:
            recipient, canceller = borrow_request.lender, borrow_request.borrower
        canceller_name = _name(canceller, "User")

        template = email_templates.borrow_request_cancelled(
            recipient_name=_name(recipient, "there"),
            canceller_name=canceller_name,
            item_name=item.name,
        )
        return LendingNotifier._dispatch(
            recipient,
            dict(
                user_id=recipient.id,
                type=NotificationType.BORROW_REQUEST_CANCELLED,
                title="Request Cancelled",
                message=f'{canceller_name} cancelled the borrow request for "{item.name}"',
                action_url=f"/borrow-requests/{borrow_request.id}",
                related_item_id=borrow_request.item_id,
                related_request_id=borrow_request.id,
                metadata={"canceller_name": canceller_name, "item_name": item.name},
            ),
            template,
            sms_to=getattr(recipient, "phone", None),
            sms_body=cancellation_sms(canceller_name, item.name, owner_cancelling),
        )

    @staticmethod
    def item_returned(borrow_request, borrower_notes: str | None = None) -> dict:
        borrower, lender, item = borrow_request.borrower, borrow_request.lender, borrow_request.item
        borrower_name = _name(borrower, "The borrower")
        returned_at = borrow_request.returned_at or datetime.utcnow()

        template = email_templates.item_returned(
            recipient_name=_name(lender, "there"),
            borrower_name=borrower_name,
            item_name=item.name,
            return_date=_date(returned_at),
            borrower_notes=borrower_notes,
            confirm_return_url=LendingNotifier._url(f"/borrow-requests/{borrow_request.id}"),
        )
        return LendingNotifier._dispatch(
            lender,
            dict(
                user_id=borrow_request.lender_id,
                type=NotificationType.ITEM_RETURNED,
                title="Item Returned",
                message=f'{borrower_name} has marked "{item.name}" as returned',
                action_url=f"/borrow-requests/{borrow_request.id}",
                related_item_id=borrow_request.item_id,
                related_request_id=borrow_request.id,
                metadata={
                    "borrower_name": borrower_name,
                    "item_name": item.name,
                    "returned_at": returned_at.isoformat(),
                    "borrower_notes": borrower_notes,
                },
            ),
            template,
            sms_to=getattr(lender, "phone", None),
            sms_body=return_sms(borrower_name, item.name, borrower_notes),
        )

    @staticmethod
    def return_reminder(borrow_request) -> dict:
        borrower, lender, item = borrow_request.borrower, borrow_request.lender, borrow_request.item
        lender_name = _name(lender, "the owner")

        template = email_templates.return_reminder(
            recipient_name=_name(borrower, "there"),
            item_name=item.name,
            lender_name=lender_name,
            return_date=_date(borrow_request.requested_return_date),
            contact_info=getattr(lender, "phone", None),
        )
        return LendingNotifier._dispatch(
            borrower,
            dict(
                user_id=borrow_request.borrower_id,
                type=NotificationType.ITEM_DUE_TOMORROW,
                title="Return Reminder",
                message=f'"{item.name}" is due back tomorrow',
                action_url=f"/borrow-requests/{borrow_request.id}",
                related_item_id=borrow_request.item_id,
                related_request_id=borrow_request.id,
                metadata={
                    "item_name": item.name,
                    "lender_name": lender_name,
                    "due_date": borrow_request.requested_return_date.isoformat(),
                },
            ),
            template,
        )
