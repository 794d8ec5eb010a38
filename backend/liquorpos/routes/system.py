# Overview: Flask API routes for system health.

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text

from ..extensions import db

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


@system_bp.get("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        db_ok = False
    status = 200 if db_ok else 503
    return jsonify({
        "status": "ok" if db_ok else "degraded",
        "database": "ok" if db_ok else "unreachable",
        "store": current_app.config.get("STORE_NAME"),
    }), status
