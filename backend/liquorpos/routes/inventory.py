# Overview: Flask API routes for locations, stock levels, manual adjustments and the transaction ledger.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import can_view_costs, require_auth, require_role
from ..errors import PosError
from ..extensions import db
from ..services import location_service, stock_service
from ..validation import require_int, to_bool

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/locations")
@require_auth
def list_locations_route():
    return jsonify({"items": [l.to_dict() for l in location_service.list_locations()]}), 200


@inventory_bp.get("/stock")
@require_auth
def list_stock_route():
    levels = stock_service.list_stock_levels(
        location_id=request.args.get("location_id", type=int),
        variant_id=request.args.get("variant_id", type=int),
        include_zero=to_bool(request.args.get("include_zero")),
    )
    costs = can_view_costs()
    return jsonify({"items": [l.to_dict(include_cost=costs) for l in levels], "count": len(levels)}), 200


@inventory_bp.get("/totals")
@require_auth
def variant_totals_route():
    """Per-variant floor/backroom/warehouse quantities."""
    totals = stock_service.variant_totals(search=request.args.get("search"))
    return jsonify({"items": totals, "count": len(totals)}), 200


@inventory_bp.post("/adjust")
@require_auth
@require_role("admin", "manager")
def adjust_stock_route():
    """Body: {"variant_id", "location_id", "quantity_change", "lot_number"?, "notes"?}"""
    data = request.get_json(silent=True) or {}
    try:
        level = stock_service.adjust_stock(
            require_int(data.get("variant_id"), "variant_id"),
            require_int(data.get("location_id"), "location_id"),
            require_int(data.get("quantity_change"), "quantity_change"),
            lot_number=data.get("lot_number"),
            actor_id=g.current_user.id,
            note=data.get("notes"),
        )
        return jsonify(level.to_dict(include_cost=True)), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Failed to adjust stock"}), 500


@inventory_bp.get("/transactions")
@require_auth
@require_role("admin", "manager")
def list_transactions_route():
    try:
        txs = stock_service.list_transactions(
            variant_id=request.args.get("variant_id", type=int),
            location_id=request.args.get("location_id", type=int),
            kind=request.args.get("type"),
            limit=request.args.get("limit", default=100, type=int),
        )
        return jsonify({"items": [t.to_dict() for t in txs], "count": len(txs)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
