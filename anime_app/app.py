import logging

from flask import Flask, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import get_config
from .errors import AppError, Internal, Unauthorized
from .extensions import db, login_manager, migrate
from .routes.animes import animes_bp
from .routes.auth import auth_bp
from .routes.reviews import reviews_bp
from .models.anime import Anime
from .models.review import Review
from .models.user import User
from .services import authenticator
from .services.annict import AnnictClient

logger = logging.getLogger(__name__)


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or get_config())
    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # One outbound client per process; services are built per request around it
    app.extensions["annict"] = AnnictClient(
        app.config.get("ANNICT_ACCESS_TOKEN", ""),
        endpoint=app.config["ANNICT_API_URL"],
        timeout=app.config["ANNICT_TIMEOUT"],
    )

    # Auth config: stateless bearer tokens, no session cookie
    login_manager.session_protection = None

    @login_manager.request_loader
    def load_user_from_request(req):
        header = req.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme != "Bearer" or not token:
            return None
        try:
            return authenticator().user_for_token(token.strip())
        except Unauthorized as exc:
            logger.debug("Rejected bearer token: %s", exc)
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"ok": False, "error": "Authentication required"}), 401

    _register_error_handlers(app)

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(animes_bp, url_prefix="/api")
    app.register_blueprint(reviews_bp, url_prefix="/api")

    @app.get("/health")
    def health():
        try:
            db.session.execute(db.text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Health check failed")
            db.session.rollback()
            return jsonify({"status": "error", "db": "unreachable"}), 503
        return jsonify({"status": "ok", "db": "connected"})

    with app.app_context():
        db.create_all()

    return app


def _register_error_handlers(app: Flask):
    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        if error.expose:
            logger.info("%s %s -> %s: %s", request.method, request.path, error.status_code, error)
        else:
            # Full detail stays in the log; the client gets the opaque message
            logger.error(
                "%s %s -> %s: %s",
                request.method,
                request.path,
                error.status_code,
                error,
                exc_info=error,
            )
        return jsonify({"ok": False, "error": error.message}), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        # Routing errors (404, 405, ...) keep their own responses
        if isinstance(error, HTTPException):
            return error
        logger.exception("%s %s -> unhandled %s", request.method, request.path, type(error).__name__)
        internal = Internal()
        return jsonify({"ok": False, "error": internal.message}), internal.status_code
