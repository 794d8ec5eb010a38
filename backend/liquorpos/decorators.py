# Overview: Request and role decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .services import session_service


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session token (Authorization: Bearer <token>).

    Sets g.current_user. Returns 401 if the header is missing, or the token
    is invalid, expired, revoked or belongs to an unapproved account.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if user is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require one of the given roles. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.current_user.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def can_view_costs() -> bool:
    return _is_authenticated() and g.current_user.can_view_costs
