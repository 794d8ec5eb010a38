# Overview: Flask API routes for customers.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import PosError
from ..extensions import db
from ..services import customer_service

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    customers = customer_service.list_customers(search=request.args.get("search"))
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        return jsonify(customer_service.get_customer(customer_id).to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.post("")
@require_auth
def create_customer_route():
    data = request.get_json(silent=True) or {}
    try:
        customer = customer_service.create_customer(data)
        return jsonify(customer.to_dict()), 201
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Failed to create customer"}), 500
