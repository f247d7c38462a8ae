from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from stuff_library.errors import InvalidOperationError, NotFoundError
from stuff_library.extensions import db
from stuff_library.models import AuditLog, BorrowRequest, BorrowRequestStatus as S, Item
from stuff_library.services.availability_service import AvailabilityService
from stuff_library.services.borrow_request_service import BorrowRequestService, is_transition_allowed


def _create(borrower, item, return_date, **kwargs):
    return BorrowRequestService.create_borrow_request(
        borrower_id=borrower.id,
        item_id=item.id,
        requested_return_date=return_date,
        **kwargs,
    )


def test_create_yields_pending_request_and_blocks_item(borrower, lender, item, return_date):
    br = _create(borrower, item, return_date, request_message="Hanging shelves")

    assert br.status == S.PENDING
    assert br.lender_id == lender.id
    assert br.request_message == "Hanging shelves"
    # pointer untouched, the open request alone blocks the item
    assert db.session.get(Item, item.id).current_borrow_request_id is None
    assert AvailabilityService.is_item_available(item.id) is False


def test_create_writes_one_creation_audit_entry(borrower, item, return_date):
    br = _create(borrower, item, return_date, video_url="https://video.example/abc")

    rows = AuditLog.query.filter_by(entity_type="BORROW_REQUEST", entity_id=br.id).all()
    assert [r.action for r in rows] == ["BORROW_REQUEST_CREATED"]
    assert rows[0].user_id == borrower.id
    assert rows[0].details["has_video"] is True
    assert rows[0].details["has_message"] is False
    assert rows[0].details["item_name"] == "Cordless Drill"


def test_create_unknown_item_is_not_found(borrower, return_date):
    with pytest.raises(NotFoundError, match="Item not found"):
        BorrowRequestService.create_borrow_request(borrower.id, 999, return_date)


def test_owner_cannot_borrow_own_item(lender, item, return_date):
    with pytest.raises(InvalidOperationError, match="Cannot borrow your own item"):
        _create(lender, item, return_date)


def test_owner_check_wins_over_availability(lender, borrower, item, return_date):
    _create(borrower, item, return_date)
    with pytest.raises(InvalidOperationError, match="Cannot borrow your own item"):
        _create(lender, item, return_date)


def test_create_against_open_request_fails(borrower, stranger, item, return_date):
    _create(borrower, item, return_date)
    with pytest.raises(InvalidOperationError, match="Item is not available for borrowing"):
        _create(stranger, item, return_date)
    assert BorrowRequest.query.count() == 1


def test_create_against_pointer_only_fails(borrower, item, return_date):
    item.current_borrow_request_id = 12345
    db.session.commit()
    with pytest.raises(InvalidOperationError, match="not available"):
        _create(borrower, item, return_date)


def test_unique_index_rejects_second_open_request(borrower, stranger, item, return_date):
    _create(borrower, item, return_date)
    db.session.add(BorrowRequest(
        borrower_id=stranger.id,
        lender_id=item.owner_id,
        item_id=item.id,
        requested_return_date=return_date,
        status=S.PENDING,
    ))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


def test_race_past_availability_check_is_reported_as_unavailable(borrower, stranger, item, return_date):
    _create(borrower, item, return_date)
    with patch.object(AvailabilityService, "is_item_available", return_value=True):
        with pytest.raises(InvalidOperationError, match="not available"):
            _create(stranger, item, return_date)
    assert BorrowRequest.query.count() == 1


def test_audit_failure_does_not_block_create(borrower, item, return_date):
    with patch(
        "stuff_library.services.audit_log_service.AuditLogRepo.add",
        side_effect=SQLAlchemyError("audit table down"),
    ):
        br = _create(borrower, item, return_date)

    db.session.expire_all()
    assert db.session.get(BorrowRequest, br.id).status == S.PENDING
    assert AuditLog.query.count() == 0


def test_approve_then_return_moves_pointer(borrower, item, return_date):
    br = _create(borrower, item, return_date)

    BorrowRequestService.update_status(br.id, S.APPROVED, lender_message="Enjoy")
    assert item.current_borrow_request_id == br.id
    assert br.approved_at is not None
    assert br.lender_message == "Enjoy"

    BorrowRequestService.update_status(br.id, S.ACTIVE)
    assert item.current_borrow_request_id == br.id
    assert br.approved_at is None

    BorrowRequestService.update_status(br.id, S.RETURNED)
    assert item.current_borrow_request_id is None
    assert br.returned_at is not None
    assert AvailabilityService.is_item_available(item.id) is True


@pytest.mark.parametrize("release", [S.CANCELLED, S.RETURNED])
def test_releasing_an_approved_request_clears_pointer(borrower, item, return_date, release):
    br = _create(borrower, item, return_date)
    BorrowRequestService.update_status(br.id, S.APPROVED)
    BorrowRequestService.update_status(br.id, release)
    assert item.current_borrow_request_id is None
    assert AvailabilityService.is_item_available(item.id) is True


def test_decline_clears_pointer_and_frees_item(borrower, item, return_date):
    br = _create(borrower, item, return_date)
    BorrowRequestService.update_status(br.id, S.DECLINED, lender_message="Sorry")
    assert item.current_borrow_request_id is None
    assert AvailabilityService.is_item_available(item.id) is True


def test_repeated_transition_is_idempotent_for_pointer(borrower, item, return_date):
    br = _create(borrower, item, return_date)
    BorrowRequestService.update_status(br.id, S.APPROVED)
    first_approved_at = br.approved_at

    BorrowRequestService.update_status(br.id, S.APPROVED)
    assert item.current_borrow_request_id == br.id
    assert br.approved_at == first_approved_at


def test_illegal_transition_rejected_in_strict_mode(borrower, item, return_date):
    br = _create(borrower, item, return_date)
    with pytest.raises(InvalidOperationError):
        BorrowRequestService.update_status(br.id, S.RETURNED)
    db.session.expire_all()
    assert db.session.get(BorrowRequest, br.id).status == S.PENDING


def test_permissive_mode_allows_administrative_correction(app, borrower, item, return_date):
    app.config["BORROW_REQUEST_STRICT_TRANSITIONS"] = False
    br = _create(borrower, item, return_date)
    BorrowRequestService.update_status(br.id, S.RETURNED)
    assert br.status == S.RETURNED
    assert item.current_borrow_request_id is None


def test_unknown_status_string_is_invalid(borrower, item, return_date):
    br = _create(borrower, item, return_date)
    with pytest.raises(InvalidOperationError):
        BorrowRequestService.update_status(br.id, "LOST")


def test_update_unknown_request_is_not_found(app):
    with pytest.raises(NotFoundError, match="Borrow request not found"):
        BorrowRequestService.update_status(42, S.APPROVED)


def test_actor_id_audits_availability_flip(borrower, lender, item, return_date):
    br = _create(borrower, item, return_date)
    BorrowRequestService.update_status(br.id, S.APPROVED, actor_id=lender.id)
    BorrowRequestService.update_status(br.id, S.ACTIVE, actor_id=lender.id)  # no flip

    rows = AuditLog.query.filter_by(entity_type="ITEM", entity_id=item.id).all()
    assert len(rows) == 1
    assert rows[0].details["availability_change"] == {"from": True, "to": False}


def test_transition_table():
    assert is_transition_allowed(S.PENDING, S.APPROVED)
    assert is_transition_allowed(S.APPROVED, S.ACTIVE)
    assert is_transition_allowed(S.ACTIVE, S.CANCELLED)
    assert is_transition_allowed(S.RETURNED, S.RETURNED)
    assert not is_transition_allowed(S.DECLINED, S.APPROVED)
    assert not is_transition_allowed(S.PENDING, S.ACTIVE)
