from datetime import datetime
from stuff_library.models.notification import Notification
from stuff_library.extensions import db


class NotificationRepo:
    @staticmethod
    def get(notification_id: int):
        return db.session.get(Notification, notification_id)

    @staticmethod
    def find_recent_duplicate(user_id: int, notif_type, since: datetime,
                              related_request_id=None, related_item_id=None):
        """
        Newest notification for the same recipient/type created after `since`.
        related_request_id wins over related_item_id as the discriminator.
        """
        q = Notification.query.filter(
            Notification.user_id == user_id,
            Notification.type == notif_type,
            Notification.created_at >= since,
        )
        if related_request_id is not None:
            q = q.filter(Notification.related_request_id == related_request_id)
        elif related_item_id is not None:
            q = q.filter(Notification.related_item_id == related_item_id)
        else:
            return None
        return q.order_by(Notification.created_at.desc(), Notification.id.desc()).first()

    @staticmethod
    def already_sent(related_request_id: int, notif_type) -> bool:
        return Notification.query.filter_by(
            related_request_id=related_request_id, type=notif_type
        ).first() is not None

    @staticmethod
    def query_for_user(user_id: int, unread_only: bool = False, types=None):
        q = Notification.query.filter(Notification.user_id == user_id)
        if unread_only:
            q = q.filter(Notification.is_read.is_(False))
        if types:
            q = q.filter(Notification.type.in_(types))
        return q

    @staticmethod
    def log(entry: Notification):
        db.session.add(entry)
        db.session.commit()
        return entry

    @staticmethod
    def commit():
        db.session.commit()

    @staticmethod
    def rollback():
        db.session.rollback()
