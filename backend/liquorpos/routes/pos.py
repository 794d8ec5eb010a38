# Overview: Flask API routes for the point-of-sale screen (cart and checkout).

"""
The cart is client state: every cart call posts the current cart
({"cart": [{"variant_id", "quantity"}, ...]}) and gets back the updated
cart with prices and KRA tax totals.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import PosError
from ..extensions import db
from ..services import pos_service
from ..validation import optional_int, to_bool

pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _error(e: PosError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


@pos_bp.post("/scan")
@require_auth
def scan_route():
    """
    Add one unit of the scanned barcode to the cart.

    Request body:
    {
        "cart": [{"variant_id": int, "quantity": int}],
        "upc": str
    }

    Returns:
        200: Cart payload plus "scanned" (the line that changed)
        404: Barcode not found (details.quick_add is true)
        409: Not enough stock on the floor
    """
    data = request.get_json(silent=True) or {}
    try:
        cart = pos_service.load_cart(data.get("cart"))
        line = pos_service.scan_into_cart(cart, data.get("upc"))
        payload = pos_service.cart_payload(cart)
        payload["scanned"] = line.to_dict()
        return jsonify(payload), 200
    except PosError as e:
        return _error(e)


@pos_bp.post("/cart/quantity")
@require_auth
def update_quantity_route():
    """
    Set a cart line to an exact quantity; 0 removes the line.

    Request body:
    {
        "cart": [...],
        "variant_id": int,
        "quantity": int
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        cart = pos_service.load_cart(data.get("cart"))
        cart = pos_service.update_cart_quantity(cart, data.get("variant_id"), data.get("quantity"))
        return jsonify(pos_service.cart_payload(cart)), 200
    except PosError as e:
        return _error(e)


@pos_bp.post("/cart/remove")
@require_auth
def remove_line_route():
    data = request.get_json(silent=True) or {}
    try:
        cart = pos_service.load_cart(data.get("cart"))
        cart = pos_service.remove_from_cart(cart, data.get("variant_id"))
        return jsonify(pos_service.cart_payload(cart)), 200
    except PosError as e:
        return _error(e)


@pos_bp.post("/quote")
@require_auth
def quote_route():
    data = request.get_json(silent=True) or {}
    try:
        cart = pos_service.load_cart(data.get("cart"))
        return jsonify(pos_service.cart_payload(cart)), 200
    except PosError as e:
        return _error(e)


@pos_bp.post("/checkout")
@require_auth
def checkout_route():
    """
    Complete a sale from the cart and decrement floor stock.

    Request body:
    {
        "cart": [{"variant_id": int, "quantity": int}],
        "payment_method": "cash" | "mpesa",
        "received_amount": number (required for cash),
        "customer_id": int (optional),
        "age_verified": bool (optional)
    }

    Returns:
        201: Sale with its items
        400: Empty cart, unknown payment method, or cash short of the total
        404: Variant or customer not found
        409: Floor stock no longer covers the cart
    """
    data = request.get_json(silent=True) or {}
    try:
        sale = pos_service.checkout(
            data.get("cart"),
            payment_method=data.get("payment_method"),
            received_amount=data.get("received_amount"),
            sold_by=g.current_user.id,
            customer_id=optional_int(data.get("customer_id"), "customer_id"),
            age_verified=to_bool(data.get("age_verified")),
        )
        return jsonify(sale.to_dict(include_items=True)), 201
    except PosError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to complete checkout")
        return jsonify({"error": "Failed to complete sale"}), 500


@pos_bp.get("/sales")
@require_auth
def list_sales_route():
    sales = pos_service.list_sales(limit=request.args.get("limit", default=50, type=int))
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200


@pos_bp.get("/sales/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        return jsonify(pos_service.get_sale(sale_id).to_dict(include_items=True)), 200
    except PosError as e:
        return _error(e)
