from stuff_library.extensions import db
from stuff_library.models import BorrowRequestStatus as S, Item
from stuff_library.services.availability_service import AvailabilityService
from stuff_library.services.borrow_request_service import BorrowRequestService


def _pointer_and_query_agree(item_id):
    info = AvailabilityService.get_item_availability(item_id)
    item = db.session.get(Item, item_id)
    return info.is_available == (item.current_borrow_request_id is None and info.active_borrow_request is None)


def test_unknown_item(app):
    assert AvailabilityService.is_item_available(404) is False
    assert AvailabilityService.get_item_availability(404) is None


def test_fresh_item_is_available(item):
    info = AvailabilityService.get_item_availability(item.id)
    assert info.is_available is True
    assert info.active_borrow_request is None
    assert info.to_dict()["active_borrow_request"] is None


def test_worked_example(lender, borrower, item, return_date):
    br = BorrowRequestService.create_borrow_request(borrower.id, item.id, return_date)
    info = AvailabilityService.get_item_availability(item.id)
    assert info.is_available is False
    assert info.active_borrow_request.id == br.id
    assert _pointer_and_query_agree(item.id)

    BorrowRequestService.update_status(br.id, S.APPROVED)
    assert db.session.get(Item, item.id).current_borrow_request_id == br.id
    assert _pointer_and_query_agree(item.id)

    BorrowRequestService.update_status(br.id, S.ACTIVE)
    BorrowRequestService.update_status(br.id, S.RETURNED)
    assert db.session.get(Item, item.id).current_borrow_request_id is None
    assert AvailabilityService.is_item_available(item.id) is True
    assert _pointer_and_query_agree(item.id)

    # free again for a new request
    again = BorrowRequestService.create_borrow_request(borrower.id, item.id, return_date)
    assert again.status == S.PENDING
