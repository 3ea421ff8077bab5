import logging
import os

from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from config import config
from onlylocks.errors import ApiError

logger = logging.getLogger(__name__)

db = SQLAlchemy()
cache = Cache()
migrate = Migrate()


def get_real_ip():
    """
    Get the real client IP address, accounting for reverse proxies.
    Checks X-Forwarded-For, X-Real-IP, and falls back to remote_addr.
    """
    # X-Forwarded-For: client, proxy1, proxy2, ...
    if request.headers.get("X-Forwarded-For"):
        return request.headers.get("X-Forwarded-For").split(",")[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers.get("X-Real-IP")
    return get_remote_address()


# Storage backend comes from RATELIMIT_STORAGE_URI in the app config
limiter = Limiter(
    key_func=get_real_ip,
    default_limits=["10000 per day", "1000 per hour"],
)


def create_app(config_name=None):
    app = Flask(__name__)

    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    # Initialize extensions
    db.init_app(app)
    cache.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    from onlylocks.routes.games import bp as games_bp

    app.register_blueprint(games_bp, url_prefix="/api/games")

    from onlylocks.routes.players import bp as players_bp

    app.register_blueprint(players_bp, url_prefix="/api/players")

    from onlylocks.routes.teams import bp as teams_bp

    app.register_blueprint(teams_bp, url_prefix="/api/teams")

    from onlylocks.routes.users import bp as users_bp

    app.register_blueprint(users_bp, url_prefix="/api/users")

    from onlylocks.routes.updates import bp as updates_bp

    app.register_blueprint(updates_bp, url_prefix="/api/updates")

    @app.route("/health")
    @limiter.exempt
    def health():
        return jsonify({"status": "ok"})

    register_error_handlers(app)

    from onlylocks.utils.logging_config import setup_logging

    setup_logging(app)

    show_config_warnings(app, config_name)

    with app.app_context():
        db.create_all()

    # Initialize and start background scheduler
    if not app.config.get("TESTING", False):
        from onlylocks.services.scheduler_service import scheduler_service

        scheduler_service.init_app(app)

    return app


def show_config_warnings(app, config_name):
    """Log configuration warnings and status"""
    logger.info(f"Only Locks starting with '{config_name}' configuration")

    if config_name == "production" and app.config.get("DEBUG"):
        logger.warning("DEBUG mode is enabled in production!")

    if not app.config.get("NBA_API_KEY") and not app.config.get("TESTING"):
        logger.warning("NBA_API_KEY not set: data refresh jobs will fail")

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if "sqlite" in db_url:
        logger.info("Using SQLite database")
    elif "postgresql" in db_url:
        logger.info("Using PostgreSQL database")
    else:
        logger.info(
            f"Using database: {db_url.split('://')[0] if '://' in db_url else 'Unknown'}"
        )


def register_error_handlers(app):
    """Register global JSON error handlers"""

    @app.after_request
    def after_request(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            db.session.rollback()
        app.logger.info(
            f"{error.status_code} {error.message} - Path: {request.path} - Method: {request.method}"
        )
        return jsonify(error.to_dict()), error.status_code

    def _error(message, status):
        return jsonify({"error": {"message": message, "status": status}}), status

    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(
            f"400 Bad Request: {str(error)} - Path: {request.path} - Method: {request.method}"
        )
        return _error("Bad request", 400)

    @app.errorhandler(404)
    def not_found_error(error):
        return _error("Resource not found", 404)

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return _error("Method not allowed", 405)

    @app.errorhandler(429)
    def too_many_requests_error(error):
        return _error("Too many requests", 429)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return _error("Internal server error", 500)


from onlylocks import models  # noqa: F401, E402 - imported for model registration
