from datetime import datetime
from sqlalchemy import or_
from stuff_library.models.borrow_request import BorrowRequest, BorrowRequestStatus, OPEN_STATUSES
from stuff_library.extensions import db


class BorrowRequestRepo:
    @staticmethod
    def get(request_id: int):
        return db.session.get(BorrowRequest, request_id)

    @staticmethod
    def open_for_item(item_id: int):
        """Open requests for the item, newest first."""
        return (
            BorrowRequest.query
            .filter(
                BorrowRequest.item_id == item_id,
                BorrowRequest.status.in_(OPEN_STATUSES),
            )
            .order_by(BorrowRequest.created_at.desc(), BorrowRequest.id.desc())
            .all()
        )

    @staticmethod
    def list_for_user(user_id: int):
        return (
            BorrowRequest.query
            .filter(or_(BorrowRequest.borrower_id == user_id, BorrowRequest.lender_id == user_id))
            .order_by(BorrowRequest.created_at.desc(), BorrowRequest.id.desc())
            .all()
        )

    @staticmethod
    def find_due_between(start: datetime, end: datetime):
        return BorrowRequest.query.filter(
            BorrowRequest.status.in_([BorrowRequestStatus.APPROVED, BorrowRequestStatus.ACTIVE]),
            BorrowRequest.requested_return_date >= start,
            BorrowRequest.requested_return_date <= end,
        ).all()

    @staticmethod
    def add(borrow_request: BorrowRequest):
        db.session.add(borrow_request)
        db.session.flush()
        return borrow_request

    @staticmethod
    def commit():
        db.session.commit()

    @staticmethod
    def rollback():
        db.session.rollback()
