"""Limt Backend Application Factory."""

import logging

from flask import Flask
from flask_cors import CORS
from prometheus_client import make_wsgi_app
from werkzeug.middleware.dispatcher import DispatcherMiddleware

from .config import Config
from .models import get_db, init_db


def create_app(config_class: type = Config) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.config.setdefault("DB_URI", config_class.get_db_uri())

    _init_logging(app)

    # Initialize CORS
    CORS(app, resources={
        r"/api/*": {
            "origins": app.config.get("CORS_ORIGINS", "*"),
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
        }
    })

    # Initialize database
    with app.app_context():
        db = init_db(app)

    from .auth import init_auth
    init_auth(app)

    # Initialize services
    _init_services(app, db)

    # Register blueprints
    from .routes import domains_bp, plans_bp

    app.register_blueprint(plans_bp, url_prefix="/api/v1/plans")
    app.register_blueprint(domains_bp, url_prefix="/api/v1/domains")

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Health check endpoint
    @app.route("/healthz")
    def health_check():
        """Health check endpoint."""
        try:
            db = get_db()
            db.executesql("SELECT 1")
            return {"status": "healthy", "database": "connected"}, 200
        except Exception as e:
            app.logger.error(f"Health check failed: {e}")
            return {"status": "unhealthy", "database": "unavailable"}, 503

    # Readiness check endpoint
    @app.route("/readyz")
    def readiness_check():
        """Readiness check endpoint."""
        return {"status": "ready"}, 200

    # Add Prometheus metrics endpoint
    if app.config.get("PROMETHEUS_ENABLED"):
        app.wsgi_app = DispatcherMiddleware(
            app.wsgi_app,
            {"/metrics": make_wsgi_app()}
        )

    return app


def _init_logging(app: Flask) -> None:
    """Configure root logging from LOG_LEVEL and LOG_FORMAT."""
    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format=app.config.get("LOG_FORMAT"),
    )
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))


def _init_services(app: Flask, db) -> None:
    """Initialize application services.

    Args:
        app: Flask application instance.
        db: Open DAL shared by the services.
    """
    from .actions import DomainService, PlanService
    from .auth import current_session
    from .usage import PyDALUsageProvider
    from .utils.ratelimit import InMemoryRateLimiter, RateLimitConfig

    plan_service = PlanService(db, PyDALUsageProvider(db), current_session)

    verify_limiter = InMemoryRateLimiter(RateLimitConfig(
        requests=app.config["VERIFY_RATE_LIMIT"],
        window=app.config["VERIFY_RATE_WINDOW"],
        key_prefix="verify",
    ))

    domain_service = DomainService(
        db,
        plan_service,
        current_session,
        rate_limiter=verify_limiter,
        dns_timeout=app.config["DNS_TIMEOUT_SECONDS"],
        cname_target=app.config["DNS_CNAME_TARGET"],
    )

    app.extensions["limt.plans"] = plan_service
    app.extensions["limt.domains"] = domain_service
    app.logger.info("Plan and domain services initialized")
