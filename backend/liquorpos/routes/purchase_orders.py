# Overview: Flask API routes for distributors and purchase orders (admin and manager only).

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import PosError
from ..extensions import db
from ..services import purchase_order_service as po_service
from ..validation import require_int

purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")
distributors_bp = Blueprint("distributors", __name__, url_prefix="/api/distributors")

PURCHASING_ROLES = ("admin", "manager")


def _error(e: PosError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


def _failure(action: str):
    db.session.rollback()
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": f"Failed to {action}"}), 500


# ---------------------------------------------------------------------------
# Distributors
# ---------------------------------------------------------------------------

@distributors_bp.get("")
@require_auth
@require_role(*PURCHASING_ROLES)
def list_distributors_route():
    distributors = po_service.list_distributors()
    return jsonify({"items": [d.to_dict() for d in distributors]}), 200


@distributors_bp.post("")
@require_auth
@require_role(*PURCHASING_ROLES)
def create_distributor_route():
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(po_service.create_distributor(data).to_dict()), 201
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("create distributor")


@distributors_bp.get("/<int:distributor_id>")
@require_auth
@require_role(*PURCHASING_ROLES)
def get_distributor_route(distributor_id: int):
    try:
        return jsonify(po_service.get_distributor(distributor_id).to_dict()), 200
    except PosError as e:
        return _error(e)


@distributors_bp.delete("/<int:distributor_id>")
@require_auth
@require_role(*PURCHASING_ROLES)
def delete_distributor_route(distributor_id: int):
    try:
        po_service.delete_distributor(distributor_id)
        return jsonify({"deleted": True}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("delete distributor")


# ---------------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------------

@purchase_orders_bp.get("")
@require_auth
@require_role(*PURCHASING_ROLES)
def list_purchase_orders_route():
    orders = po_service.list_purchase_orders(status=request.args.get("status"))
    return jsonify({"items": [po.to_dict() for po in orders], "count": len(orders)}), 200


@purchase_orders_bp.post("")
@require_auth
@require_role(*PURCHASING_ROLES)
def create_purchase_order_route():
    """
    Create a draft purchase order.

    Request body:
    {
        "distributor_id": int,
        "items": [{"variant_id": int, "quantity": int, "unit_cost": number (optional)}],
        "notes": str (optional)
    }

    unit_cost defaults to the variant cost.

    Returns:
        201: Draft order with items
        400: Invalid request
        403: Forbidden
        404: Distributor or variant not found
    """
    data = request.get_json(silent=True) or {}
    try:
        po = po_service.create_purchase_order(
            require_int(data.get("distributor_id"), "distributor_id"),
            data.get("items") or [],
            created_by=g.current_user.id,
            notes=data.get("notes"),
        )
        return jsonify(po_service.purchase_order_dict(po)), 201
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("create purchase order")


@purchase_orders_bp.get("/<int:po_id>")
@require_auth
@require_role(*PURCHASING_ROLES)
def get_purchase_order_route(po_id: int):
    try:
        return jsonify(po_service.purchase_order_dict(po_service.get_purchase_order(po_id))), 200
    except PosError as e:
        return _error(e)


@purchase_orders_bp.put("/<int:po_id>/items")
@require_auth
@require_role(*PURCHASING_ROLES)
def update_items_route(po_id: int):
    data = request.get_json(silent=True) or {}
    try:
        po = po_service.update_purchase_order_items(po_id, data.get("items") or [], notes=data.get("notes"))
        return jsonify(po_service.purchase_order_dict(po)), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("update purchase order")


@purchase_orders_bp.post("/<int:po_id>/send")
@require_auth
@require_role(*PURCHASING_ROLES)
def send_purchase_order_route(po_id: int):
    """
    Mark the order sent and render the message for the distributor. The
    client opens the mail or WhatsApp link itself.

    Request body:
    {
        "channel": "email" | "whatsapp" (optional),
        "contact": str (optional, overrides the distributor email or phone)
    }

    Returns:
        200: {"purchase_order": {...}, "message": {...} or null}
        400: Unknown channel, or no email or phone to send to
        404: Purchase order not found
        409: Order is received or cancelled
    """
    data = request.get_json(silent=True) or {}
    try:
        po, message = po_service.mark_purchase_order_sent(
            po_id, channel=data.get("channel"), contact=data.get("contact")
        )
        return jsonify({"purchase_order": po_service.purchase_order_dict(po), "message": message}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("send purchase order")


@purchase_orders_bp.post("/<int:po_id>/cancel")
@require_auth
@require_role(*PURCHASING_ROLES)
def cancel_purchase_order_route(po_id: int):
    try:
        po = po_service.cancel_purchase_order(po_id)
        return jsonify(po_service.purchase_order_dict(po)), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("cancel purchase order")


@purchase_orders_bp.get("/<int:po_id>/progress")
@require_auth
@require_role(*PURCHASING_ROLES)
def receipt_progress_route(po_id: int):
    try:
        return jsonify({"po_id": po_id, "items": po_service.receipt_progress(po_id)}), 200
    except PosError as e:
        return _error(e)
