import enum
from datetime import datetime
from stuff_library.extensions import db


class NotificationType(str, enum.Enum):
    BORROW_REQUEST_RECEIVED = "BORROW_REQUEST_RECEIVED"
    BORROW_REQUEST_APPROVED = "BORROW_REQUEST_APPROVED"
    BORROW_REQUEST_DECLINED = "BORROW_REQUEST_DECLINED"
    BORROW_REQUEST_CANCELLED = "BORROW_REQUEST_CANCELLED"
    ITEM_RETURNED = "ITEM_RETURNED"
    ITEM_DUE_TOMORROW = "ITEM_DUE_TOMORROW"
    ITEM_OVERDUE = "ITEM_OVERDUE"
    LIBRARY_INVITATION = "LIBRARY_INVITATION"
    LIBRARY_ITEM_ADDED = "LIBRARY_ITEM_ADDED"
    SYSTEM_ANNOUNCEMENT = "SYSTEM_ANNOUNCEMENT"


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    type = db.Column(db.Enum(NotificationType, name="notification_type"), nullable=False, index=True)

    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.String(1000), nullable=False)
    action_url = db.Column(db.String(500), nullable=True)

    related_item_id = db.Column(db.Integer, nullable=True, index=True)
    related_request_id = db.Column(db.Integer, nullable=True, index=True)

    # "metadata" is reserved on declarative models
    meta = db.Column("metadata", db.JSON, nullable=True)

    is_read = db.Column(db.Boolean, nullable=False, default=False)
    email_sent = db.Column(db.Boolean, nullable=False, default=False)
    email_sent_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    user = db.relationship("User", backref="notifications")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "action_url": self.action_url,
            "related_item_id": self.related_item_id,
            "related_request_id": self.related_request_id,
            "metadata": self.meta or {},
            "is_read": bool(self.is_read),
            "email_sent": bool(self.email_sent),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
