# Overview: Flask API routes for sign-up, sign-in and sessions.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import bearer_token, require_auth
from ..errors import PosError
from ..extensions import db
from ..services import auth_service, session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Self-registration. The first account becomes an approved admin; later
    accounts are staff awaiting approval and receive no session.
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.register_user(
            data.get("email"),
            data.get("password"),
            full_name=data.get("full_name"),
        )
        return jsonify({
            "user": user.to_dict(),
            "awaiting_approval": not user.is_approved,
        }), 201
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Failed to register"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Exchange credentials for a session token.

    Request body:
    {
        "email": str,
        "password": str
    }

    Returns:
        200: {"user": {...}, "token": str}
        400: Missing email or password
        401: Invalid credentials
        403: Account awaiting approval
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    try:
        user = auth_service.authenticate(email, password)
        _session, token = session_service.create_session(
            user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify({"user": user.to_dict(), "token": token}), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to log in")
        return jsonify({"error": "Failed to log in"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(bearer_token())
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({"user": user.to_dict(), "can_view_costs": user.can_view_costs}), 200
