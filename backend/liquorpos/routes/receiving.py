# Overview: Flask API routes for receiving batches into the warehouse.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import PosError
from ..extensions import db
from ..services import receiving_service
from ..validation import optional_int

receiving_bp = Blueprint("receiving", __name__, url_prefix="/api/receiving")


@receiving_bp.post("/scan")
@require_auth
def scan_route():
    """
    Resolve a scanned barcode for the receiving sheet.

    Request body:
    {
        "upc": str
    }

    Returns:
        200: {"variant": {...}, "quantity": 1}
        400: Missing barcode, or the variant has no UPC
        404: Barcode not found
    """
    data = request.get_json(silent=True) or {}
    try:
        variant = receiving_service.scan_for_receiving(data.get("upc"))
        return jsonify({"variant": variant.to_dict(), "quantity": 1}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@receiving_bp.get("/purchase-orders/<int:po_id>/lines")
@require_auth
def purchase_order_lines_route(po_id: int):
    """
    Outstanding lines of a sent purchase order (ordered minus already received).

    Returns:
        200: {"po_id": int, "lines": [...]}
        404: Purchase order not found
        409: Purchase order is not sent
    """
    try:
        return jsonify({"po_id": po_id, "lines": receiving_service.lines_from_purchase_order(po_id)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@receiving_bp.post("/sessions")
@require_auth
def complete_receiving_route():
    """
    Receive a batch into the warehouse in one transaction.

    Request body:
    {
        "lines": [{"variant_id": int or "upc": str, "quantity": int,
                   "lot_number": str (optional), "expiry_date": "YYYY-MM-DD" (optional)}],
        "po_id": int (optional)
    }

    Any invalid line rejects the whole batch. A linked order moves to
    received once every line is covered.

    Returns:
        201: Completed session with its items
        400: Invalid line (nothing is written)
        404: Variant or purchase order not found
        409: Purchase order is not sent
    """
    data = request.get_json(silent=True) or {}
    try:
        session = receiving_service.complete_receiving(
            data.get("lines"),
            received_by=g.current_user.id,
            po_id=optional_int(data.get("po_id"), "po_id"),
        )
        return jsonify(session.to_dict(include_items=True)), 201
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to complete receiving")
        return jsonify({"error": "Failed to complete receiving"}), 500


@receiving_bp.get("/sessions")
@require_auth
def list_sessions_route():
    sessions = receiving_service.list_receiving_sessions(
        status=request.args.get("status"),
        limit=request.args.get("limit", default=50, type=int),
    )
    return jsonify({"items": [s.to_dict() for s in sessions], "count": len(sessions)}), 200


@receiving_bp.get("/sessions/<int:session_id>")
@require_auth
def get_session_route(session_id: int):
    try:
        return jsonify(receiving_service.get_receiving_session(session_id).to_dict(include_items=True)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
