from datetime import datetime

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from stuff_library.errors import NotFoundError
from stuff_library.models.borrow_request import BorrowRequestStatus as S
from stuff_library.repositories.borrow_request_repo import BorrowRequestRepo
from stuff_library.services.audit_log_service import AuditLogService
from stuff_library.services.borrow_request_service import BorrowRequestService
from stuff_library.services.lending_notifier import LendingNotifier

borrow_request_bp = Blueprint("borrow_requests", __name__)

ACTIONS = ("approve", "decline", "activate", "return", "cancel", "confirm-return", "lender-return")


def _current_user_id() -> int:
    return int(get_jwt_identity())


def _json_error(message, code=400):
    return jsonify({"success": False, "message": message}), code


def _parse_date(value):
    if not value:
        return None
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)


@borrow_request_bp.post("/")
@jwt_required()
def create_borrow_request():
    data = request.get_json(silent=True) or {}
    user_id = _current_user_id()

    try:
        item_id = int(data["item_id"])
        return_date = _parse_date(data["requested_return_date"])
    except (KeyError, TypeError, ValueError):
        return _json_error("item_id and requested_return_date are required")
    if return_date is None:
        return _json_error("item_id and requested_return_date are required")

    try:
        br = BorrowRequestService.create_borrow_request(
            borrower_id=user_id,
            item_id=item_id,
            requested_return_date=return_date,
            request_message=data.get("request_message"),
            video_url=data.get("video_url"),
        )
    except NotFoundError as e:
        return _json_error(str(e), 404)
    except ValueError as e:
        return _json_error(str(e), 400)

    notifications = LendingNotifier.borrow_request_received(br)
    return jsonify({"success": True, "data": br.to_dict(), "notifications": notifications}), 201


@borrow_request_bp.get("/")
@jwt_required()
def list_borrow_requests():
    user_id = _current_user_id()
    rows = BorrowRequestRepo.list_for_user(user_id)
    holding = (S.APPROVED, S.ACTIVE)

    return jsonify({
        "success": True,
        "sent_requests": [r.to_dict() for r in rows if r.borrower_id == user_id],
        "received_requests": [r.to_dict() for r in rows if r.lender_id == user_id],
        "active_borrows": [r.to_dict() for r in rows if r.borrower_id == user_id and r.status in holding],
        "on_loan": [r.to_dict() for r in rows if r.lender_id == user_id and r.status in holding],
    })


@borrow_request_bp.get("/<int:request_id>")
@jwt_required()
def get_borrow_request(request_id: int):
    user_id = _current_user_id()
    br = BorrowRequestRepo.get(request_id)
    if not br:
        return _json_error("Borrow request not found", 404)
    if user_id not in (br.borrower_id, br.lender_id):
        return _json_error("Access denied - you are not authorized to view this request", 403)
    return jsonify({"success": True, "data": br.to_dict()})


def _resolve_action(action, br, user_id):
    """
    Maps a user action to (new_status, error_response). error_response is
    None when the actor may perform the action on the current status.
    """
    is_lender = br.lender_id == user_id
    is_borrower = br.borrower_id == user_id

    if action in ("approve", "decline"):
        if not is_lender:
            return None, _json_error("Only the item owner can approve or decline requests", 403)
        if br.status != S.PENDING:
            return None, _json_error(f"Cannot {action} a request with status: {br.status.value}")
        return (S.APPROVED if action == "approve" else S.DECLINED), None

    if action == "activate":
        if not is_lender:
            return None, _json_error("Only the item owner can hand over items", 403)
        if br.status != S.APPROVED:
            return None, _json_error("Can only hand over approved requests")
        return S.ACTIVE, None

    if action == "return":
        if not is_borrower:
            return None, _json_error("Only the borrower can mark items as returned", 403)
        if br.status != S.ACTIVE:
            return None, _json_error("Can only return items that are currently active")
        return S.RETURNED, None

    if action == "cancel":
        if is_borrower:
            if br.status not in (S.PENDING, S.APPROVED):
                return None, _json_error("Can only cancel pending or approved requests")
        elif is_lender:
            if br.status != S.PENDING:
                return None, _json_error("Lenders can only cancel pending requests")
        else:
            return None, _json_error("Only borrower or lender can cancel requests", 403)
        return S.CANCELLED, None

    if action == "confirm-return":
        if not is_lender:
            return None, _json_error("Only the item owner can confirm returns", 403)
        if br.status != S.RETURNED:
            return None, _json_error("Can only confirm items that have been marked as returned")
        return S.RETURNED, None

    # lender-return
    if not is_lender:
        return None, _json_error("Only the item owner can check in items", 403)
    if br.status not in (S.APPROVED, S.ACTIVE):
        return None, _json_error("Can only check in items that are currently active or approved")
    return S.RETURNED, None


@borrow_request_bp.patch("/<int:request_id>")
@jwt_required()
def update_borrow_request(request_id: int):
    data = request.get_json(silent=True) or {}
    action = data.get("action")
    message = data.get("message")
    user_id = _current_user_id()

    if action not in ACTIONS:
        return _json_error(f"Action must be one of: {', '.join(ACTIONS)}")

    br = BorrowRequestRepo.get(request_id)
    if not br:
        return _json_error("Borrow request not found", 404)

    new_status, error = _resolve_action(action, br, user_id)
    if error:
        return error

    # lender_message is only rewritten by the lender's own responses
    if action in ("approve", "decline"):
        lender_message = message or f"Request {action}d"
    elif action == "confirm-return":
        lender_message = message or "Return confirmed by lender"
    elif action == "lender-return":
        lender_message = message or "Item checked in by owner"
    else:
        lender_message = br.lender_message

    try:
        actual_return_date = _parse_date(data.get("actual_return_date"))
    except ValueError:
        return _json_error("actual_return_date must be an ISO date")
    if new_status == S.RETURNED and actual_return_date is None:
        actual_return_date = br.actual_return_date or datetime.utcnow()

    previous_status = br.status
    try:
        br = BorrowRequestService.update_status(
            request_id,
            new_status,
            lender_message=lender_message,
            actual_return_date=actual_return_date,
            actor_id=user_id,
        )
    except NotFoundError as e:
        return _json_error(str(e), 404)
    except ValueError as e:
        return _json_error(str(e), 400)

    if previous_status != new_status:
        AuditLogService.log_status_change(
            br.id,
            user_id,
            previous_status,
            new_status,
            {"action": action, "message": message, "item_id": br.item_id, "item_name": br.item.name},
            commit=True,
        )

    notifications = None
    if action == "approve":
        notifications = LendingNotifier.borrow_request_approved(br)
    elif action == "decline":
        notifications = LendingNotifier.borrow_request_declined(br)
    elif action in ("return", "lender-return"):
        notifications = LendingNotifier.item_returned(br, borrower_notes=message if action == "return" else None)
    elif action == "cancel":
        notifications = LendingNotifier.borrow_request_cancelled(br, cancelled_by_id=user_id)

    return jsonify({"success": True, "data": br.to_dict(), "notifications": notifications})
