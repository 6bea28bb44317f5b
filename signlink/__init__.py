# File: signlink/__init__.py
# DESCRIPTION: Initializes the signlink Flask app and registers routes and error handlers.

import atexit

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from signlink.api.routes_api import api_bp
from signlink.api.routes_signing import signing_bp
from signlink.api.services import EXTENSION_KEY, AppServices
from signlink.config import Settings
from signlink.core.delivery import DeliveryDispatcher
from signlink.core.errors import SignLinkError
from signlink.core.janitor import RetentionJanitor
from signlink.core.lifecycle import SignLinkService
from signlink.core.logging_config import configure_logging
from signlink.core.rate_limit import RateLimiter
from signlink.core.store import SignRequestStore
from signlink.core.timeutil import to_iso, utcnow
from signlink.db.session import create_db_engine, create_session_factory, init_db
from signlink.integrations.smtp.mailer import EmailTransport
from signlink.integrations.twilio.sms import SmsTransport

logger = configure_logging(name="signlink", logfile="signlink.log")

MAX_BODY_BYTES = 8 * 1024 * 1024


def create_app(settings=None, store=None, dispatcher=None, clock=None, start_background=None):
    """Create and configure the signlink Flask application."""
    settings = settings or Settings.from_env()
    clock = clock or utcnow

    if store is None:
        engine = create_db_engine(settings.database_url)
        init_db(engine)
        store = SignRequestStore(create_session_factory(engine))

    if dispatcher is None:
        dispatcher = DeliveryDispatcher(
            EmailTransport.from_settings(settings),
            SmsTransport.from_settings(settings),
        )

    rate_limiter = RateLimiter(settings.rate_limit_window_ms, settings.rate_limit_max)
    services = AppServices(
        settings=settings,
        store=store,
        service=SignLinkService(store, dispatcher, settings.public_base_url, clock=clock),
        rate_limiter=rate_limiter,
        janitor=RetentionJanitor(
            store,
            retention_days=settings.retention_days,
            interval_seconds=settings.cleanup_interval_ms / 1000,
            clock=clock,
            rate_limiter=rate_limiter,
        ),
    )

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_BODY_BYTES
    app.extensions[EXTENSION_KEY] = services

    app.register_blueprint(api_bp)
    app.register_blueprint(signing_bp)

    @app.before_request
    def answer_preflight():
        if request.method == "OPTIONS":
            return "", 204
        return None

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.route("/health")
    def health():
        return {"ok": True, "time": to_iso(clock())}, 200

    @app.errorhandler(SignLinkError)
    def handle_sign_link_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        if not request.path.startswith("/api/"):
            return error
        code = error.name.upper().replace(" ", "_")
        return jsonify({"error": error.description, "code": code}), error.code

    # Global error handler
    @app.errorhandler(Exception)
    def handle_error(error):
        logger.error("Unhandled error occurred", exc_info=True)
        return jsonify({"error": "Internal server error.", "code": "INTERNAL_ERROR"}), 500

    if settings.run_background_jobs if start_background is None else start_background:
        services.janitor.start()
        atexit.register(services.janitor.stop, settings.shutdown_grace_ms / 1000)

    logger.info(f"signlink application initialized ({settings.public_base_url})")
    return app
