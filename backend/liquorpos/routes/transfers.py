# Overview: Flask API route for moving stock between locations.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import PosError
from ..extensions import db
from ..services import transfer_service
from ..validation import require_int

transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.route("", methods=["POST"])
@require_auth
def transfer_route():
    """
    Move stock between two locations, lot by lot.

    Request body:
    {
        "source_location_id": int,
        "destination_location_id": int,
        "lines": [{"variant_id": int, "quantity": int}]
    }

    Each line commits on its own, so a failed line leaves earlier lines moved.

    Returns:
        200: Every line transferred
        207: Some lines failed (see results[].error)
        400: Invalid request
        404: Location not found
        409: Every line failed, or source equals destination
    """
    data = request.get_json(silent=True) or {}
    try:
        result = transfer_service.transfer_stock(
            require_int(data.get("source_location_id"), "source_location_id"),
            require_int(data.get("destination_location_id"), "destination_location_id"),
            data.get("lines"),
            actor_id=g.current_user.id,
        )
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to transfer stock")
        return jsonify({"error": "Failed to transfer stock"}), 500

    status = 207 if result["failed"] and result["completed"] else (409 if result["failed"] else 200)
    return jsonify(result), status
