import enum
from datetime import datetime
from stuff_library.extensions import db


class AuditAction(str, enum.Enum):
    BORROW_REQUEST_CREATED = "BORROW_REQUEST_CREATED"
    BORROW_REQUEST_APPROVED = "BORROW_REQUEST_APPROVED"
    BORROW_REQUEST_ACTIVATED = "BORROW_REQUEST_ACTIVATED"
    BORROW_REQUEST_DECLINED = "BORROW_REQUEST_DECLINED"
    BORROW_REQUEST_CANCELLED = "BORROW_REQUEST_CANCELLED"
    BORROW_REQUEST_RETURNED = "BORROW_REQUEST_RETURNED"
    ITEM_AVAILABILITY_UPDATED = "ITEM_AVAILABILITY_UPDATED"


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    action = db.Column(db.String(50), nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)  # actor

    entity_type = db.Column(db.String(30), nullable=False)  # BORROW_REQUEST / ITEM
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    details = db.Column(db.JSON, nullable=True)
    meta = db.Column("metadata", db.JSON, nullable=True)

    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
