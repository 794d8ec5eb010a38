# Overview: Flask API routes for the dashboard, daily snapshots and sales reports.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import PosError
from ..services import reporting_service
from ..time_utils import utcnow
from ..validation import optional_date

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")
reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@dashboard_bp.get("")
@require_auth
def dashboard_route():
    return jsonify(reporting_service.dashboard()), 200


@dashboard_bp.get("/daily-snapshots")
@require_auth
def daily_snapshot_route():
    """?date=YYYY-MM-DD (defaults to today). Stock values for admins only."""
    try:
        day = optional_date(request.args.get("date"), "date") or utcnow().date()
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    include_values = g.current_user.role == "admin"
    return jsonify(reporting_service.daily_snapshot(day, include_values=include_values)), 200


@reports_bp.get("/summary")
@require_auth
@require_role("admin", "manager")
def summary_route():
    days = request.args.get("days", default=30, type=int)
    return jsonify(reporting_service.sales_summary(days=days)), 200


@reports_bp.get("/revenue")
@require_auth
@require_role("admin", "manager")
def revenue_route():
    days = request.args.get("days", default=30, type=int)
    return jsonify({"days": days, "items": reporting_service.revenue_by_day(days=days)}), 200


@reports_bp.get("/top-movers")
@require_auth
@require_role("admin", "manager")
def top_movers_route():
    movers = reporting_service.top_movers(
        days=request.args.get("days", default=7, type=int),
        limit=request.args.get("limit", default=5, type=int),
    )
    return jsonify({"items": movers}), 200


@reports_bp.get("/dead-stock")
@require_auth
@require_role("admin", "manager")
def dead_stock_route():
    items = reporting_service.dead_stock(
        days=request.args.get("days", type=int),
        min_age_days=request.args.get("min_age_days", type=int),
    )
    return jsonify({"items": items, "count": len(items)}), 200
