import logging
from unittest.mock import patch

from sqlalchemy.exc import SQLAlchemyError

from stuff_library.models import AuditAction, AuditLog, BorrowRequestStatus as S
from stuff_library.services.audit_log_service import AuditLogService, STATUS_CHANGE_ACTIONS


def test_status_change_maps_to_action(app, lender):
    row = AuditLogService.log_status_change(7, lender.id, S.PENDING, S.APPROVED, {"action": "approve"}, commit=True)

    assert row.action == AuditAction.BORROW_REQUEST_APPROVED.value
    assert row.details["status_change"] == {"from": "PENDING", "to": "APPROVED"}
    assert row.details["action"] == "approve"
    assert row.meta["previous_state"] == {"status": "PENDING"}
    assert AuditLog.query.count() == 1


def test_status_change_accepts_plain_strings(app, lender):
    row = AuditLogService.log_status_change(7, lender.id, "ACTIVE", "RETURNED", commit=True)
    assert row.action == "BORROW_REQUEST_RETURNED"


def test_cancellations_share_one_action():
    cancels = [k for k, v in STATUS_CHANGE_ACTIONS.items() if v == AuditAction.BORROW_REQUEST_CANCELLED]
    assert sorted(cancels) == ["ACTIVE-CANCELLED", "APPROVED-CANCELLED", "PENDING-CANCELLED"]


def test_unknown_transition_warns_and_writes_nothing(app, lender, caplog):
    with caplog.at_level(logging.WARNING):
        row = AuditLogService.log_status_change(7, lender.id, S.PENDING, S.RETURNED, commit=True)

    assert row is None
    assert AuditLog.query.count() == 0
    assert "Unknown status transition: PENDING-RETURNED" in caplog.text


def test_write_failure_is_swallowed_and_logged(app, lender, caplog):
    with patch(
        "stuff_library.services.audit_log_service.AuditLogRepo.add",
        side_effect=SQLAlchemyError("disk full"),
    ):
        with caplog.at_level(logging.ERROR):
            row = AuditLogService.log_entry(
                AuditAction.BORROW_REQUEST_CREATED, lender.id, "BORROW_REQUEST", 1, commit=True
            )

    assert row is None
    assert "Failed to log audit entry" in caplog.text


def test_list_for_entity_returns_in_insertion_order(app, lender):
    AuditLogService.log_status_change(3, lender.id, "PENDING", "APPROVED", commit=True)
    AuditLogService.log_status_change(3, lender.id, "APPROVED", "ACTIVE", commit=True)
    AuditLogService.log_status_change(4, lender.id, "PENDING", "DECLINED", commit=True)

    rows = AuditLogService.list_for_entity("BORROW_REQUEST", 3)
    assert [r.action for r in rows] == ["BORROW_REQUEST_APPROVED", "BORROW_REQUEST_ACTIVATED"]
