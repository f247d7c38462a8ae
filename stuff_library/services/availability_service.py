from __future__ import annotations

from dataclasses import dataclass

from stuff_library.models.borrow_request import BorrowRequest
from stuff_library.repositories.item_repo import ItemRepo
from stuff_library.repositories.borrow_request_repo import BorrowRequestRepo


@dataclass
class ItemAvailability:
    item_id: int
    is_available: bool
    current_borrow_request_id: int | None
    active_borrow_request: BorrowRequest | None

    def to_dict(self) -> dict:
        active = self.active_borrow_request
        return {
            "item_id": self.item_id,
            "is_available": self.is_available,
            "current_borrow_request_id": self.current_borrow_request_id,
            "active_borrow_request": {
                "id": active.id,
                "status": active.status.value,
                "borrower_id": active.borrower_id,
                "requested_return_date": active.requested_return_date.isoformat(),
            } if active else None,
        }


class AvailabilityService:
    """
    An item is free only when its current_borrow_request_id pointer is empty
    AND no PENDING/APPROVED/ACTIVE request exists for it. The pointer caches
    the query result; both are checked.
    """

    @staticmethod
    def is_item_available(item_id: int) -> bool:
        item = ItemRepo.get(item_id)
        if not item:
            return False
        if item.current_borrow_request_id is not None:
            return False
        return not BorrowRequestRepo.open_for_item(item_id)

    @staticmethod
    def get_item_availability(item_id: int) -> ItemAvailability | None:
        item = ItemRepo.get(item_id)
        if not item:
            return None

        open_requests = BorrowRequestRepo.open_for_item(item_id)
        return ItemAvailability(
            item_id=item.id,
            is_available=item.current_borrow_request_id is None and not open_requests,
            current_borrow_request_id=item.current_borrow_request_id,
            active_borrow_request=open_requests[0] if open_requests else None,
        )
