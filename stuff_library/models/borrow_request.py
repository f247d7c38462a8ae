import enum
from datetime import datetime
from sqlalchemy import text
from stuff_library.extensions import db


class BorrowRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    ACTIVE = "ACTIVE"
    RETURNED = "RETURNED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"


OPEN_STATUSES = (
    BorrowRequestStatus.PENDING,
    BorrowRequestStatus.APPROVED,
    BorrowRequestStatus.ACTIVE,
)

# Filtered-index predicate: at most one open request per item
_OPEN_PREDICATE = text("status IN ('PENDING', 'APPROVED', 'ACTIVE')")


class BorrowRequest(db.Model):
    __tablename__ = "borrow_requests"
    __table_args__ = (
        db.Index(
            "uq_borrow_requests_open_item",
            "item_id",
            unique=True,
            sqlite_where=_OPEN_PREDICATE,
            postgresql_where=_OPEN_PREDICATE,
            mssql_where=_OPEN_PREDICATE,
        ),
    )

    id = db.Column(db.Integer, primary_key=True)

    borrower_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    lender_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    status = db.Column(
        db.Enum(BorrowRequestStatus, name="borrow_request_status"),
        nullable=False,
        default=BorrowRequestStatus.PENDING,
        index=True,
    )

    request_message = db.Column(db.Text, nullable=True)
    lender_message = db.Column(db.Text, nullable=True)
    video_url = db.Column(db.String(500), nullable=True)

    requested_return_date = db.Column(db.DateTime, nullable=False)
    actual_return_date = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    approved_at = db.Column(db.DateTime, nullable=True)
    returned_at = db.Column(db.DateTime, nullable=True)

    borrower = db.relationship("User", foreign_keys=[borrower_id], backref="borrow_requests_sent")
    lender = db.relationship("User", foreign_keys=[lender_id], backref="borrow_requests_received")
    item = db.relationship("Item", backref="borrow_requests")

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status.value,
            "borrower_id": self.borrower_id,
            "lender_id": self.lender_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "request_message": self.request_message,
            "lender_message": self.lender_message,
            "video_url": self.video_url,
            "requested_return_date": self.requested_return_date.isoformat(),
            "actual_return_date": self.actual_return_date.isoformat() if self.actual_return_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "returned_at": self.returned_at.isoformat() if self.returned_at else None,
        }
