# backend/techstore/__init__.py
from __future__ import annotations

from flask import Flask, request

from .config import Config
from .extensions import Database, connect_with_retry, db, migrate


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    database = Database(db)
    with app.app_context():
        connect_with_retry(
            database,
            attempts=app.config["DB_CONNECT_ATTEMPTS"],
            backoff_base=app.config["DB_CONNECT_BACKOFF"],
        )

    from .commerce import build_services
    app.extensions["commerce"] = build_services(database, app.config)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.checkout import checkout_bp
    from .routes.orders import orders_bp
    from .routes.refunds import refunds_bp
    from .routes.revenue import revenue_bp
    from .routes.pricing import pricing_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(refunds_bp)
    app.register_blueprint(revenue_bp)
    app.register_blueprint(pricing_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "X-User-Id, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
