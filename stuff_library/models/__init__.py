from stuff_library.models.user import User
from stuff_library.models.item import Item
from stuff_library.models.borrow_request import BorrowRequest, BorrowRequestStatus, OPEN_STATUSES
from stuff_library.models.notification import Notification, NotificationType
from stuff_library.models.audit_log import AuditLog, AuditAction

__all__ = [
    "User",
    "Item",
    "BorrowRequest",
    "BorrowRequestStatus",
    "OPEN_STATUSES",
    "Notification",
    "NotificationType",
    "AuditLog",
    "AuditAction",
]
