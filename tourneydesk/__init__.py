"""Initialize the Flask app and its extensions."""

import os

import click
import firebase_admin
from firebase_admin import credentials, firestore
from flask import Flask, current_app, g, jsonify, session
from werkzeug.middleware.proxy_fix import ProxyFix

from .constants import (
    BRACKET_LOCK_TIMEOUT,
    DEFAULT_MATCH_DURATION,
    MATCHES_PER_DAY,
    ROUND_SPACING_DAYS,
    USERS_COLLECTION,
)
from .extensions import csrf, mail


def _init_firebase(app):
    """Initialize the Firebase Admin SDK from env, a local file or default credentials."""
    cred = None
    project_id = None

    # First, try to load from environment variable (for production)
    cred_json = os.environ.get("FIREBASE_CREDENTIALS_JSON")
    if cred_json:
        import json

        try:
            cred_info = json.loads(cred_json)
            project_id = cred_info.get("project_id")
            cred = credentials.Certificate(cred_info)
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error parsing FIREBASE_CREDENTIALS_JSON: {e}")

    # If env var fails or is not present, try loading from file (for local dev)
    if not cred:
        cred_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)), "firebase_credentials.json"
        )
        if os.path.exists(cred_path):
            import json

            try:
                with open(cred_path, "r") as f:
                    project_id = json.load(f).get("project_id")
                cred = credentials.Certificate(cred_path)
            except (json.JSONDecodeError, ValueError) as e:
                app.logger.error(f"Error loading credentials from file: {e}")

    if not cred:
        try:
            cred = credentials.ApplicationDefault()
            project_id = os.environ.get("FIREBASE_PROJECT_ID")
        except Exception as e:
            app.logger.error(
                f"Could not find any valid credentials (env, file, or default): {e}"
            )

    if cred and not firebase_admin._apps:
        try:
            options = {"projectId": project_id} if project_id else None
            firebase_admin.initialize_app(cred, options)
        except ValueError:
            app.logger.info("Firebase app already initialized.")


def create_app(test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration
    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY") or "dev",
        MAIL_SERVER=os.environ.get("MAIL_SERVER") or "smtp.gmail.com",
        MAIL_PORT=int(os.environ.get("MAIL_PORT") or 587),
        MAIL_USE_TLS=(os.environ.get("MAIL_USE_TLS") or "true").lower()
        in ["true", "1", "t"],
        MAIL_USE_SSL=(os.environ.get("MAIL_USE_SSL") or "false").lower()
        in ["true", "1", "t"],
        MAIL_USERNAME=os.environ.get("MAIL_USERNAME"),
        MAIL_PASSWORD=os.environ.get("MAIL_PASSWORD"),
        MAIL_DEFAULT_SENDER=os.environ.get("MAIL_DEFAULT_SENDER")
        or "noreply@tourneydesk.com",
        MATCHES_PER_DAY=int(os.environ.get("MATCHES_PER_DAY") or MATCHES_PER_DAY),
        ROUND_SPACING_DAYS=int(
            os.environ.get("ROUND_SPACING_DAYS") or ROUND_SPACING_DAYS
        ),
        DEFAULT_MATCH_DURATION=int(
            os.environ.get("DEFAULT_MATCH_DURATION") or DEFAULT_MATCH_DURATION
        ),
        BRACKET_LOCK_TIMEOUT=float(
            os.environ.get("BRACKET_LOCK_TIMEOUT") or BRACKET_LOCK_TIMEOUT
        ),
        APP_BASE_URL=os.environ.get("APP_BASE_URL") or "http://localhost:5000",
    )

    if test_config:
        app.config.update(test_config)

    # Initialize Firebase Admin SDK only if not in testing mode
    if not app.config.get("TESTING"):
        _init_firebase(app)

    # Initialize extensions
    mail.init_app(app)
    csrf.init_app(app)

    # Register blueprints
    from . import tournament as tournament_bp

    app.register_blueprint(tournament_bp.bp)

    from . import registration as registration_bp

    app.register_blueprint(registration_bp.bp)

    from . import match as match_bp

    app.register_blueprint(match_bp.bp)

    from . import notifications as notifications_bp

    app.register_blueprint(notifications_bp.bp)

    from . import error_handlers

    app.register_blueprint(error_handlers.error_handlers_bp)

    @app.route("/health")
    def health():
        """Liveness check."""
        return jsonify({"status": "OK", "app": "tourneydesk"})

    @app.before_request
    def load_logged_in_user():
        """If a user_id is in the session, load the user data from Firestore and store it in g."""
        user_id = session.get("user_id")
        g.user = None
        if user_id is None:
            return

        try:
            db = firestore.client()
            user_doc = db.collection(USERS_COLLECTION).document(user_id).get()
            if user_doc.exists:
                g.user = user_doc.to_dict()
                g.user["uid"] = user_id
            else:
                # User ID in session but no user in DB. Clear the session.
                session.clear()
                current_app.logger.warning(
                    f"User {user_id} in session but not found in Firestore."
                )
        except Exception as e:
            current_app.logger.error(f"Error loading user from session: {e}")
            session.clear()

    @app.cli.command("send-reminders")
    def send_reminders():
        """Notify approved captains of tournaments starting tomorrow."""
        from .notifications.services import NotificationService

        sent = NotificationService.notify_upcoming_tournaments(firestore.client())
        click.echo(f"Sent {sent} tournament reminders.")

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app
