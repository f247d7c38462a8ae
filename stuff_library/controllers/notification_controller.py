from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required, get_jwt_identity

from stuff_library.errors import NotFoundError
from stuff_library.models.notification import NotificationType
from stuff_library.services.notification_service import NotificationService

notif_bp = Blueprint("notifications", __name__)


@notif_bp.get("/")
@jwt_required()
def list_notifications():
    user_id = int(get_jwt_identity())
    limit = min(request.args.get("limit", 50, type=int), 100)
    offset = request.args.get("offset", 0, type=int)
    unread_only = request.args.get("unread_only", "false").lower() == "true"

    try:
        types = [NotificationType(t) for t in request.args.getlist("type")]
    except ValueError:
        return jsonify({"success": False, "message": "Unknown notification type"}), 400

    rows, total, has_more = NotificationService.list_for_user(
        user_id, limit=limit, offset=offset, unread_only=unread_only, types=types
    )
    return jsonify({
        "success": True,
        "data": [n.to_dict() for n in rows],
        "total": total,
        "has_more": has_more,
    })


@notif_bp.get("/count")
@jwt_required()
def unread_count():
    user_id = int(get_jwt_identity())
    return jsonify({"success": True, "unread": NotificationService.unread_count(user_id)})


@notif_bp.post("/<int:notification_id>/read")
@jwt_required()
def mark_read(notification_id: int):
    user_id = int(get_jwt_identity())
    try:
        n = NotificationService.mark_as_read(notification_id, user_id)
        return jsonify({"success": True, "data": n.to_dict()})
    except NotFoundError as e:
        return jsonify({"success": False, "message": str(e)}), 404


@notif_bp.post("/read-all")
@jwt_required()
def mark_all_read():
    user_id = int(get_jwt_identity())
    updated = NotificationService.mark_all_as_read(user_id)
    return jsonify({"success": True, "updated": updated})
