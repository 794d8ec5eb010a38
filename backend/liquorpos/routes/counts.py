# Overview: Flask API routes for cycle counts.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import PosError
from ..extensions import db
from ..services import count_service
from ..validation import require_int

counts_bp = Blueprint("counts", __name__, url_prefix="/api/cycle-counts")


@counts_bp.route("/baseline", methods=["GET"])
@require_auth
def baseline_route():
    """
    Count sheet for a location: every stock row with quantity > 0, physical
    quantity preset to the system quantity.

    Query parameters:
    - location_id: Location ID (required)

    Returns:
        200: {"location_id": int, "lines": [...]}
        400: Missing or invalid location_id
        404: Location not found
    """
    try:
        location_id = require_int(request.args.get("location_id"), "location_id")
        return jsonify({"location_id": location_id, "lines": count_service.load_count_baseline(location_id)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@counts_bp.route("/scan", methods=["POST"])
@require_auth
def scan_route():
    """
    Record one scanned unit on the count sheet.

    Request body:
    {
        "location_id": int,
        "upc": str,
        "lines": [...]  // current count sheet, as returned by /baseline
    }

    Returns:
        200: {"lines": [...]} with the scanned line bumped or appended
        400: Invalid request
        404: Location or barcode not found
    """
    data = request.get_json(silent=True) or {}
    try:
        lines = count_service.add_count_item(
            require_int(data.get("location_id"), "location_id"),
            data.get("upc"),
            baseline=data.get("lines"),
        )
        return jsonify({"lines": lines}), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record count scan")
        return jsonify({"error": "Failed to record count scan"}), 500


@counts_bp.route("/complete", methods=["POST"])
@require_auth
@require_role("admin", "manager")
def complete_route():
    """
    Apply a finished count. Lines whose physical quantity matches the
    system quantity are skipped.

    Request body:
    {
        "location_id": int,
        "lines": [{"variant_id": int, "lot_number": str (optional),
                   "system_quantity": int, "physical_quantity": int}]
    }

    Returns:
        200: {"adjustments": [...], "skipped": int}
        400: Invalid request
        403: Forbidden
        404: Location not found
    """
    data = request.get_json(silent=True) or {}
    try:
        result = count_service.complete_cycle_count(
            require_int(data.get("location_id"), "location_id"),
            data.get("lines"),
            actor_id=g.current_user.id,
        )
        return jsonify(result), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to complete cycle count")
        return jsonify({"error": "Failed to complete cycle count"}), 500
