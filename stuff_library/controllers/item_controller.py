from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from stuff_library.services.availability_service import AvailabilityService

item_bp = Blueprint("items", __name__)


@item_bp.get("/<int:item_id>/availability")
@jwt_required()
def item_availability(item_id: int):
    availability = AvailabilityService.get_item_availability(item_id)
    if availability is None:
        return jsonify({"success": False, "message": "Item not found"}), 404
    return jsonify({"success": True, "data": availability.to_dict()})
