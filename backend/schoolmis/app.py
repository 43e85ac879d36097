"""Flask application factory."""

from __future__ import annotations

import logging
import time

from flask import Flask, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .config import Settings
from .db import MongoStore
from .routes import BLUEPRINTS
from .routes.common import SETTINGS_KEY, STORE_EXTENSION

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def _register_request_logging(app: Flask) -> None:
    access_logger = logging.getLogger("schoolmis.access")

    @app.before_request
    def _start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def _log_request(response):
        started = g.pop("request_started", None)
        duration_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        access_logger.info(
            "%s %s %s %.1fms",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
        )
        return response


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return jsonify({"error": exc.description or exc.name}), exc.code

    @app.errorhandler(Exception)
    def _unhandled_error(exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error."}), 500


def create_app(settings: Settings | None = None, store: MongoStore | None = None) -> Flask:
    """Build the API application for ``settings``.

    ``store`` defaults to a :class:`MongoStore` bound to the same settings;
    tests pass a stand-in.
    """

    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    insecure = settings.default_secrets()
    if insecure:
        logger.warning(
            "Using built-in default %s; set them in backend/.env before deploying",
            ", ".join(insecure),
        )

    app = Flask(__name__)
    app.secret_key = settings.secret_key
    app.config["SESSION_COOKIE_NAME"] = settings.session_cookie_name
    app.config[SETTINGS_KEY] = settings
    app.extensions[STORE_EXTENSION] = store if store is not None else MongoStore(settings)

    CORS(
        app,
        resources={r"/api/*": {"origins": [settings.frontend_url]}},
        supports_credentials=True,
    )

    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)

    _register_request_logging(app)
    _register_error_handlers(app)

    return app


__all__ = ["configure_logging", "create_app"]
