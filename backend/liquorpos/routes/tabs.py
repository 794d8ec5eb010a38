# Overview: Flask API routes for customer tabs.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import PosError
from ..extensions import db
from ..services import tab_service
from ..validation import optional_int, to_bool

tabs_bp = Blueprint("tabs", __name__, url_prefix="/api/tabs")


def _error(e: PosError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


def _failure(action: str):
    db.session.rollback()
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": f"Failed to {action}"}), 500


@tabs_bp.get("")
@require_auth
def list_tabs_route():
    tabs = tab_service.list_tabs(status=request.args.get("status"))
    return jsonify({"items": [t.to_dict() for t in tabs], "count": len(tabs)}), 200


@tabs_bp.post("")
@require_auth
def open_tab_route():
    """
    Open a tab for a known customer or a walk-in name.

    Request body:
    {
        "customer_id": int (optional),
        "customer_name": str (required without customer_id)
    }

    Returns:
        201: Tab opened
        400: No name given
        404: Customer not found
    """
    data = request.get_json(silent=True) or {}
    try:
        tab = tab_service.open_tab(
            customer_id=optional_int(data.get("customer_id"), "customer_id"),
            customer_name=data.get("customer_name"),
            opened_by=g.current_user.id,
        )
        return jsonify(tab.to_dict(include_items=True)), 201
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("open tab")


@tabs_bp.get("/<int:tab_id>")
@require_auth
def get_tab_route(tab_id: int):
    try:
        return jsonify(tab_service.get_tab(tab_id).to_dict(include_items=True)), 200
    except PosError as e:
        return _error(e)


@tabs_bp.post("/<int:tab_id>/items")
@require_auth
def add_items_route(tab_id: int):
    """
    Add items to an open tab. Stock is not touched until cash-out.

    Request body:
    {
        "items": [{"variant_id": int or "upc": str, "quantity": int}]
    }

    Returns:
        200: Tab with items and updated total
        400: Invalid request
        404: Tab or variant not found
        409: Tab is closed, or the floor cannot cover the tab quantity
    """
    data = request.get_json(silent=True) or {}
    try:
        tab = tab_service.add_tab_items(tab_id, data.get("items") or [], added_by=g.current_user.id)
        return jsonify(tab.to_dict(include_items=True)), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("add items to tab")


@tabs_bp.delete("/<int:tab_id>/items/<int:item_id>")
@require_auth
def remove_item_route(tab_id: int, item_id: int):
    try:
        tab = tab_service.remove_tab_item(tab_id, item_id)
        return jsonify(tab.to_dict(include_items=True)), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("remove tab item")


@tabs_bp.post("/<int:tab_id>/cash-out")
@require_auth
def cash_out_route(tab_id: int):
    """
    Settle the tab as a sale and close it.

    Request body:
    {
        "payment_method": "cash" | "mpesa",
        "received_amount": number (required for cash),
        "age_verified": bool (optional)
    }

    Returns:
        200: {"sale": {...}, "tab": {...}}
        400: Empty tab or invalid payment
        404: Tab not found
        409: Tab already closed, or floor stock short
    """
    data = request.get_json(silent=True) or {}
    try:
        sale = tab_service.cash_out_tab(
            tab_id,
            payment_method=data.get("payment_method"),
            received_amount=data.get("received_amount"),
            closed_by=g.current_user.id,
            age_verified=to_bool(data.get("age_verified")),
        )
        return jsonify({
            "sale": sale.to_dict(include_items=True),
            "tab": tab_service.get_tab(tab_id).to_dict(),
        }), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("cash out tab")
