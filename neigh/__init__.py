import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import click
from flask import Flask, jsonify

from .extensions import db, migrate, login_manager, csrf, mail
from .config import Config
from .models.user import User
from .services.notifications import ConversationNotifier

# Blueprints
from .blueprints.errors import errors_bp
from .blueprints.auth import auth_bp
from .blueprints.tasks import tasks_bp
from .blueprints.assignments import assignments_bp
from .blueprints.invoices import invoices_bp
from .blueprints.cart import cart_bp
from .blueprints.payments import payments_bp
from .blueprints.messages import messages_bp


# Optional: Sentry
def _init_sentry(app):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=app.config.get("SENTRY_TRACES_SAMPLE_RATE", 0.0),
            environment=os.getenv("ENV", "development"),
            release=app.config.get("APP_VERSION") or os.getenv("GIT_COMMIT", None),
            send_default_pii=False,
        )
        app.logger.info("Sentry initialized.")
    except Exception as e:
        app.logger.warning(f"Sentry init failed: {e}")


def _init_logging(app):
    level_name = app.config.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    app.logger.setLevel(level)

    # Formatter: text or JSON
    if app.config.get("LOG_JSON", False):
        import json_log_formatter
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s")

    handlers = []
    log_dir = app.config.get("LOG_DIR")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        log_path = Path(log_dir) / app.config.get("LOG_FILENAME", "neigh.log")
        # Rotating file handler (5MB x 5)
        handlers.append(RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8"))

    # Stream to stdout as well (useful on dev/docker)
    handlers.append(logging.StreamHandler())

    # app.logger is the "neigh" logger, so service modules (neigh.*) propagate here
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)

    app.logger.info("Logging initialized.")


def _register_cli(app):
    @app.cli.command("seed-categories")
    def seed_categories_command():
        """Create the default task categories."""
        from .services.task_service import seed_categories
        added = seed_categories()
        click.echo(f"Added {added} categories.")


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    app.config.from_pyfile("config.py", silent=True)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    mail.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "message": "Unauthorized"}), 401

    # Collaborators handed to the services by the blueprints
    app.extensions["neigh.notifier"] = ConversationNotifier()
    app.extensions.setdefault("neigh.paypal", None)

    # Logging must come before blueprints so errors during register are captured
    _init_logging(app)
    _init_sentry(app)

    # Blueprints
    app.register_blueprint(errors_bp)  # error handlers
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(tasks_bp, url_prefix="/tasks")
    app.register_blueprint(assignments_bp, url_prefix="/assignments")
    app.register_blueprint(invoices_bp, url_prefix="/invoices")
    app.register_blueprint(cart_bp, url_prefix="/cart")
    app.register_blueprint(payments_bp, url_prefix="/payments")
    app.register_blueprint(messages_bp, url_prefix="/messages")

    _register_cli(app)

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "app": app.config.get("APP_NAME"), "version": app.config.get("APP_VERSION")})

    return app
