# Overview: Flask API routes for user administration (admin only).

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import PosError
from ..extensions import db
from ..services import auth_service, session_service
from ..validation import to_bool

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_role("admin")
def list_users_route():
    users = auth_service.list_users()
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@admin_bp.patch("/users/<int:user_id>")
@require_auth
@require_role("admin")
def update_user_route(user_id: int):
    """Body: {"role": "admin|manager|staff", "is_approved": bool} (both optional)."""
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.update_user(
            user_id,
            role=data.get("role"),
            is_approved=to_bool(data["is_approved"]) if "is_approved" in data else None,
            acting_user_id=g.current_user.id,
        )
        if not user.is_approved:
            session_service.revoke_all_user_sessions(user.id, reason="Approval revoked")
        return jsonify(user.to_dict()), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update user %s", user_id)
        return jsonify({"error": "Failed to update user"}), 500
