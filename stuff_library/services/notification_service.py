from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from stuff_library.errors import (
    ConfigurationMissingError,
    NotFoundError,
    NotificationError,
    TransientDependencyError,
)
from stuff_library.models.notification import Notification, NotificationType
from stuff_library.repositories.notification_repo import NotificationRepo
from stuff_library.repositories.user_repo import UserRepo
from stuff_library.services.email_templates import EmailTemplate
from stuff_library.services.mail_service import MailService


class NotificationService:
    @staticmethod
    def _send_and_mark(notification: Notification, email_template: EmailTemplate, to_email: str) -> bool:
        """
        Best-effort email for an in-app notification. The row is authoritative;
        a failed send leaves email_sent False and is only logged.
        """
        try:
            result = MailService.send_email(to_email, email_template.subject, email_template.html)
        except (ConfigurationMissingError, TransientDependencyError) as e:
            current_app.logger.error(f"[notifications] Failed to send notification email: {e}")
            return False

        if not result.success:
            current_app.logger.warning(
                f"[notifications] Email for notification {notification.id} not sent: {result.error}"
            )
            return False

        notification.email_sent = True
        notification.email_sent_at = datetime.utcnow()
        NotificationRepo.commit()
        return True

    @staticmethod
    def create_notification(
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        action_url: str | None = None,
        related_item_id: int | None = None,
        related_request_id: int | None = None,
        metadata: dict | None = None,
        send_email: bool = False,
        email_template: EmailTemplate | None = None,
    ) -> Notification:
        """
        Creates an in-app notification and optionally emails it.

        If a notification for the same user/type and the same
        related_request_id (preferred) or related_item_id was created inside
        the dedupe window, that row is returned instead of a new one; a
        pending email is sent on it at most once.
        """
        try:
            recipient = UserRepo.get_by_id(user_id)

            def _address():
                if email_template and email_template.to:
                    return email_template.to
                return recipient.email if recipient else None

            if related_request_id is not None or related_item_id is not None:
                window = current_app.config.get("NOTIFICATION_DEDUPE_MINUTES", 10)
                cutoff = datetime.utcnow() - timedelta(minutes=window)
                existing = NotificationRepo.find_recent_duplicate(
                    user_id,
                    NotificationType(type),
                    cutoff,
                    related_request_id=related_request_id,
                    related_item_id=related_item_id,
                )
                if existing:
                    current_app.logger.info(
                        f"[notifications] Reusing notification {existing.id} ({existing.type.value}) for user {user_id}"
                    )
                    if send_email and email_template and not existing.email_sent and _address():
                        NotificationService._send_and_mark(existing, email_template, _address())
                    return existing

            notification = NotificationRepo.log(Notification(
                user_id=user_id,
                type=NotificationType(type),
                title=title,
                message=message,
                action_url=action_url,
                related_item_id=related_item_id,
                related_request_id=related_request_id,
                meta=metadata or {},
            ))

            if send_email and email_template and _address():
                NotificationService._send_and_mark(notification, email_template, _address())

            return notification
        except SQLAlchemyError as e:
            NotificationRepo.rollback()
            current_app.logger.error(f"[notifications] Error creating notification: {e}")
            raise NotificationError("Failed to create notification") from e

    @staticmethod
    def list_for_user(user_id: int, limit: int = 50, offset: int = 0,
                      unread_only: bool = False, types=None):
        q = NotificationRepo.query_for_user(user_id, unread_only=unread_only, types=types)
        total = q.count()
        rows = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total, offset + len(rows) < total

    @staticmethod
    def mark_as_read(notification_id: int, user_id: int) -> Notification:
        notification = NotificationRepo.get(notification_id)
        if not notification or notification.user_id != user_id:
            raise NotFoundError("Notification not found")
        notification.is_read = True
        NotificationRepo.commit()
        return notification

    @staticmethod
    def mark_all_as_read(user_id: int) -> int:
        count = NotificationRepo.query_for_user(user_id, unread_only=True).update(
            {Notification.is_read: True}, synchronize_session=False
        )
        NotificationRepo.commit()
        return count

    @staticmethod
    def unread_count(user_id: int) -> int:
        return NotificationRepo.query_for_user(user_id, unread_only=True).count()
