from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from stuff_library.extensions import db
from stuff_library.errors import NotFoundError, InvalidOperationError
from stuff_library.models.borrow_request import BorrowRequest, BorrowRequestStatus
from stuff_library.models.audit_log import AuditAction
from stuff_library.repositories.item_repo import ItemRepo
from stuff_library.repositories.borrow_request_repo import BorrowRequestRepo
from stuff_library.services.availability_service import AvailabilityService
from stuff_library.services.audit_log_service import AuditLogService, ENTITY_BORROW_REQUEST

S = BorrowRequestStatus

HOLDING_STATUSES = (S.APPROVED, S.ACTIVE)
RELEASING_STATUSES = (S.RETURNED, S.CANCELLED, S.DECLINED)

ALLOWED_TRANSITIONS = {
    S.PENDING: {S.APPROVED, S.DECLINED, S.CANCELLED},
    S.APPROVED: {S.ACTIVE, S.CANCELLED, S.RETURNED},
    S.ACTIVE: {S.RETURNED, S.CANCELLED},
    S.RETURNED: set(),
    S.DECLINED: set(),
    S.CANCELLED: set(),
}

NOT_AVAILABLE_MESSAGE = "Item is not available for borrowing"


def is_transition_allowed(previous: BorrowRequestStatus, new: BorrowRequestStatus) -> bool:
    # re-applying the current status is always accepted
    return previous == new or new in ALLOWED_TRANSITIONS.get(previous, set())


class BorrowRequestService:
    @staticmethod
    def create_borrow_request(
        borrower_id: int,
        item_id: int,
        requested_return_date: datetime,
        request_message: str | None = None,
        video_url: str | None = None,
    ) -> BorrowRequest:
        item = ItemRepo.get(item_id)
        if not item:
            raise NotFoundError("Item not found")

        if item.owner_id == borrower_id:
            raise InvalidOperationError("Cannot borrow your own item")

        if not AvailabilityService.is_item_available(item_id):
            raise InvalidOperationError(NOT_AVAILABLE_MESSAGE)

        borrow_request = BorrowRequest(
            borrower_id=borrower_id,
            lender_id=item.owner_id,
            item_id=item_id,
            request_message=request_message or None,
            video_url=video_url or None,
            requested_return_date=requested_return_date,
            status=S.PENDING,
        )

        # check + insert + audit row share one commit; the open-request
        # unique index rejects a concurrent writer that slipped past the check
        try:
            BorrowRequestRepo.add(borrow_request)
        except IntegrityError:
            BorrowRequestRepo.rollback()
            current_app.logger.warning(
                f"[borrow] Concurrent open request detected for item {item_id}"
            )
            raise InvalidOperationError(NOT_AVAILABLE_MESSAGE)

        AuditLogService.log_entry(
            action=AuditAction.BORROW_REQUEST_CREATED,
            user_id=borrower_id,
            entity_type=ENTITY_BORROW_REQUEST,
            entity_id=borrow_request.id,
            details={
                "item_id": item_id,
                "item_name": item.name,
                "lender_id": item.owner_id,
                "requested_return_date": requested_return_date.isoformat(),
                "has_message": bool(request_message),
                "has_video": bool(video_url),
            },
        )

        BorrowRequestRepo.commit()
        current_app.logger.info(
            f"[borrow] Request {borrow_request.id} created: borrower={borrower_id} item={item_id}"
        )
        return borrow_request

    @staticmethod
    def update_item_availability(item, borrow_request_id: int, new_status: BorrowRequestStatus,
                                 user_id: int | None = None):
        """
        Moves the item's current_borrow_request_id pointer for a status change.
        Does not commit. With user_id, a flip in availability is audited.
        """
        was_available = item.current_borrow_request_id is None

        if new_status in HOLDING_STATUSES:
            ItemRepo.set_current_borrow_request(item, borrow_request_id)
        elif new_status in RELEASING_STATUSES:
            ItemRepo.set_current_borrow_request(item, None)
        else:
            return

        is_now_available = item.current_borrow_request_id is None
        if user_id is not None and was_available != is_now_available:
            db.session.flush()
            AuditLogService.log_item_availability_change(
                item_id=item.id,
                user_id=user_id,
                borrow_request_id=borrow_request_id,
                new_status=new_status,
                was_available=was_available,
                is_now_available=is_now_available,
            )

    @staticmethod
    def update_status(
        borrow_request_id: int,
        new_status: BorrowRequestStatus,
        lender_message: str | None = None,
        actual_return_date: datetime | None = None,
        actor_id: int | None = None,
    ) -> BorrowRequest:
        borrow_request = BorrowRequestRepo.get(borrow_request_id)
        if not borrow_request:
            raise NotFoundError("Borrow request not found")

        try:
            new_status = S(new_status)
        except ValueError:
            raise InvalidOperationError(f"Unknown borrow request status: {new_status}")
        previous_status = borrow_request.status

        if current_app.config.get("BORROW_REQUEST_STRICT_TRANSITIONS", True):
            if not is_transition_allowed(previous_status, new_status):
                raise InvalidOperationError(
                    f"Cannot change a {previous_status.value} request to {new_status.value}"
                )
        elif not is_transition_allowed(previous_status, new_status):
            current_app.logger.warning(
                f"[borrow] Unchecked transition {previous_status.value} -> {new_status.value} "
                f"on request {borrow_request_id}"
            )

        now = datetime.utcnow()
        borrow_request.status = new_status
        borrow_request.lender_message = lender_message or None
        borrow_request.actual_return_date = actual_return_date

        if new_status == S.APPROVED:
            if previous_status != S.APPROVED or borrow_request.approved_at is None:
                borrow_request.approved_at = now
        else:
            borrow_request.approved_at = None

        if new_status == S.RETURNED:
            if previous_status != S.RETURNED or borrow_request.returned_at is None:
                borrow_request.returned_at = now
        else:
            borrow_request.returned_at = None

        BorrowRequestService.update_item_availability(
            borrow_request.item, borrow_request.id, new_status, user_id=actor_id
        )

        BorrowRequestRepo.commit()
        current_app.logger.info(
            f"[borrow] Request {borrow_request.id}: {previous_status.value} -> {new_status.value}"
        )
        return borrow_request
