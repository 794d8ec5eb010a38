# backend/liquorpos/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Hot lookups (location ids, variant-by-UPC)
    from .services.query_cache import QueryCache
    cache = QueryCache(default_ttl=app.config["QUERY_CACHE_DEFAULT_TTL_SECONDS"])
    app.extensions["query_cache"] = cache
    if not app.config.get("TESTING"):
        cache.start_sweeper(app.config["QUERY_CACHE_SWEEP_SECONDS"])

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.admin import admin_bp
    from .routes.products import products_bp
    from .routes.inventory import inventory_bp
    from .routes.pos import pos_bp
    from .routes.tabs import tabs_bp
    from .routes.customers import customers_bp
    from .routes.purchase_orders import purchase_orders_bp, distributors_bp
    from .routes.receiving import receiving_bp
    from .routes.transfers import transfers_bp
    from .routes.counts import counts_bp
    from .routes.reports import dashboard_bp, reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(tabs_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(purchase_orders_bp)
    app.register_blueprint(distributors_bp)
    app.register_blueprint(receiving_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(counts_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(reports_bp)

    allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS") or [])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
