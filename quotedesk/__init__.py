import logging

from flask import Flask, jsonify, redirect, url_for
from flask.logging import default_handler
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager, current_user
from werkzeug.exceptions import HTTPException

from config import Config

db = SQLAlchemy()

migrate = Migrate()
login_manager = LoginManager()

log = logging.getLogger(__name__)


def _configure_logging(app):
    pkg_logger = logging.getLogger("quotedesk")
    if default_handler not in pkg_logger.handlers:
        pkg_logger.addHandler(default_handler)
    pkg_logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))


def _register_error_handlers(app):
    from .errors import QuoteDeskError

    @app.errorhandler(QuoteDeskError)
    def handle_domain_error(e):
        # nothing half-applied may ride along with a later commit
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({
            "success": False,
            "error": (e.name or "error").lower().replace(" ", "_"),
            "message": e.description,
        }), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        log.error("Unhandled error: %s", e, exc_info=True)
        db.session.rollback()
        return jsonify({"success": False, "error": "server_error", "message": "Server Error"}), 500


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    _configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)

    login_manager.init_app(app)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "error": "unauthorized", "message": "Login required"}), 401

    # Blueprints
    from .auth.routes import auth_bp
    from .business.routes import business_bp
    from .items.routes import items_bp
    from .quotations.routes import quotations_bp
    from .templates_master.routes import templates_bp
    from .dashboard.routes import dashboard_bp
    from .cli import register_cli

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(business_bp, url_prefix="/business")
    app.register_blueprint(items_bp, url_prefix="/items")
    app.register_blueprint(quotations_bp, url_prefix="/quotations")
    app.register_blueprint(templates_bp, url_prefix="/templates")
    app.register_blueprint(dashboard_bp, url_prefix="/dashboard")

    register_cli(app)
    _register_error_handlers(app)

    @app.route("/")
    def home():
        if current_user.is_authenticated:
            return redirect(url_for("dashboard.stats"))
        return jsonify({"success": True, "data": {"service": "quotedesk"}})

    return app
