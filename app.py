import os
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from config import Config
from extensions import db, login_manager, init_extensions
from logger import init_app_logging
from ledger.exceptions import LedgerError, AuthenticationError
from models import User



def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # ------------------------------------------------------------------------------------------
    # LOGGING - rotating app.log, console outside production
    # ------------------------------------------------------------------------------------------
    init_app_logging(app)

    # ----------------------------------------------------------------------------------------------------------------------------------
    # DATABASE URI Fix
    # --------------------------------------------------------------------------------------------------------------------------------------------
    DATABASE_URI = app.config.get("SQLALCHEMY_DATABASE_URI")

    if DATABASE_URI.startswith("sqlite:///") and not DATABASE_URI.startswith("sqlite:///:memory:"):
        os.makedirs(os.path.dirname(DATABASE_URI.replace("sqlite:///", "", 1)), exist_ok=True)

    if DATABASE_URI.startswith("postgres://"):
        DATABASE_URI = DATABASE_URI.replace("postgres://", "postgresql+pg8000://", 1)
        app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URI

    # --------------------------------------------------------------------------------------------------------------------------
    # Initialize extensions
    # ----------------------------------------------------------------------------------------------------------------------------
    init_extensions(app)

    register_blueprints(app)
    register_error_handlers(app)

    # ------------------------------------------------------------------------------------------------------------------------
    # Flask-Login user_loader - inside create_app to avoid circular imports
    # ------------------------------------------------------------------------------------------------------------------------
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        error = AuthenticationError()
        return jsonify(error.to_dict()), error.status_code

    # ----------------------
    # Basic routes
    # ----------------------
    @app.route("/healthz")
    def healthz():
        return {"status": "ok"}, 200

    return app


def register_blueprints(app):
    """Register all blueprints"""
    from blueprints.auth import bp as auth_bp
    from blueprints.agents import bp as agents_bp
    from blueprints.reports import bp as reports_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(agents_bp)
    app.register_blueprint(reports_bp)


def register_error_handlers(app):
    """Map ledger exceptions to JSON responses; anything else is a logged 500."""

    @app.errorhandler(LedgerError)
    def handle_ledger_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"error": error.description, "code": error.name.upper().replace(" ", "_")}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        app.logger.exception(f"Unhandled error: {error}")
        return jsonify({"error": "Internal server error", "code": "INTERNAL"}), 500
