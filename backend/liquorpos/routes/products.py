# Overview: Flask API routes for the product catalog and barcode lookup.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import can_view_costs, require_auth, require_role
from ..errors import PosError
from ..extensions import db
from ..services import catalog_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _error(e: PosError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


def _failure(action: str):
    db.session.rollback()
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": f"Failed to {action}"}), 500


@products_bp.get("/variants")
@require_auth
def list_variants_route():
    search = request.args.get("search")
    limit = request.args.get("limit", type=int)
    variants = catalog_service.list_variants(search=search, limit=limit)
    costs = can_view_costs()
    return jsonify({
        "items": [v.to_dict(include_cost=costs) for v in variants],
        "count": len(variants),
    }), 200


@products_bp.get("/variants/<int:variant_id>")
@require_auth
def get_variant_route(variant_id: int):
    try:
        variant = catalog_service.get_variant(variant_id)
        return jsonify(variant.to_dict(include_cost=can_view_costs())), 200
    except PosError as e:
        return _error(e)


@products_bp.get("/lookup")
@require_auth
def lookup_route():
    """GET /api/products/lookup?upc=... ; 404 carries quick_add=true."""
    try:
        variant = catalog_service.lookup_variant_by_upc(request.args.get("upc"))
        return jsonify(variant.to_dict(include_cost=can_view_costs())), 200
    except PosError as e:
        return _error(e)


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        return jsonify(product.to_dict(include_variants=True, include_cost=can_view_costs())), 200
    except PosError as e:
        return _error(e)


@products_bp.post("")
@require_auth
@require_role("admin", "manager")
def create_product_route():
    """
    Body: {"brand", "category", "name"?, "product_type"?, "description"?,
           "variants": [{"size_ml", "price", "cost"?, "sku"?, "upc"?, ...}]}
    """
    data = request.get_json(silent=True) or {}
    try:
        product = catalog_service.create_product(
            brand=data.get("brand"),
            category=data.get("category"),
            name=data.get("name"),
            product_type=data.get("product_type") or "liquor",
            description=data.get("description"),
            image_url=data.get("image_url"),
            variants=data.get("variants") or [],
        )
        return jsonify(product.to_dict(include_variants=True, include_cost=True)), 201
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("create product")


@products_bp.post("/quick-add")
@require_auth
def quick_add_route():
    """Create a product at a barcode the scanner could not resolve."""
    data = request.get_json(silent=True) or {}
    try:
        variant = catalog_service.quick_add_variant(
            upc=data.get("upc"),
            brand=data.get("brand"),
            category=data.get("category"),
            size_ml=data.get("size_ml"),
            price=data.get("price"),
            cost=data.get("cost") or 0,
            sku=data.get("sku"),
            product_type=data.get("product_type") or "liquor",
            name=data.get("name"),
        )
        return jsonify(variant.to_dict(include_cost=can_view_costs())), 201
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("add product")


@products_bp.patch("/<int:product_id>")
@require_auth
@require_role("admin", "manager")
def update_product_route(product_id: int):
    data = request.get_json(silent=True) or {}
    try:
        product = catalog_service.update_product(product_id, data)
        return jsonify(product.to_dict(include_variants=True, include_cost=True)), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("update product")


@products_bp.post("/<int:product_id>/variants")
@require_auth
@require_role("admin", "manager")
def add_variant_route(product_id: int):
    data = request.get_json(silent=True) or {}
    try:
        variant = catalog_service.add_variant(product_id, data)
        return jsonify(variant.to_dict(include_cost=True)), 201
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("add variant")


@products_bp.patch("/variants/<int:variant_id>")
@require_auth
@require_role("admin", "manager")
def update_variant_route(variant_id: int):
    data = request.get_json(silent=True) or {}
    try:
        variant = catalog_service.update_variant(variant_id, data)
        return jsonify(variant.to_dict(include_cost=True)), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("update variant")


@products_bp.delete("/variants/<int:variant_id>")
@require_auth
@require_role("admin", "manager")
def delete_variant_route(variant_id: int):
    try:
        catalog_service.delete_variant(variant_id)
        return jsonify({"ok": True}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        return _failure("delete variant")


@products_bp.get("/brands")
@require_auth
def list_brands_route():
    return jsonify({"items": [b.to_dict() for b in catalog_service.list_brands()]}), 200


@products_bp.get("/categories")
@require_auth
def list_categories_route():
    return jsonify({"items": [c.to_dict() for c in catalog_service.list_categories()]}), 200
