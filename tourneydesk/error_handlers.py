"""JSON error handlers for the API."""

from flask import Blueprint, current_app, jsonify
from flask_wtf.csrf import CSRFError
from google.api_core.exceptions import GoogleAPICallError, RetryError

from .errors import AppError, NotFoundError, ValidationError

error_handlers_bp = Blueprint("error_handlers", __name__)


def _error(code, message, status_code):
    return jsonify({"success": False, "code": code, "message": message}), status_code


@error_handlers_bp.app_errorhandler(ValidationError)
def handle_validation_error(error):
    """Handles validation errors, raised before anything was written."""
    current_app.logger.warning(f"Validation Error: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@error_handlers_bp.app_errorhandler(NotFoundError)
def handle_not_found_error(error):
    """Handles not found errors."""
    current_app.logger.warning(f"Not Found Error: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Handles the remaining application errors (conflicts, configuration, locks)."""
    if error.status_code >= 500:  # noqa: PLR2004
        current_app.logger.error(f"Application Error: {error.message}")
    else:
        current_app.logger.warning(f"Application Error: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@error_handlers_bp.app_errorhandler(PermissionError)
def handle_permission_error(error):
    current_app.logger.warning(f"Forbidden: {error}")
    return _error("forbidden", str(error) or "Forbidden.", 403)


@error_handlers_bp.app_errorhandler(GoogleAPICallError)
@error_handlers_bp.app_errorhandler(RetryError)
def handle_storage_error(error):
    """Handles Firestore errors without exposing their details."""
    current_app.logger.error(f"Storage Error: {error}")
    return _error(
        "storage_error", "The data store is unavailable. Please try again later.", 503
    )


@error_handlers_bp.app_errorhandler(CSRFError)
def handle_csrf_error(e):
    """Handles CSRF errors, which usually indicate an expired session."""
    current_app.logger.warning(f"CSRF Error: {e.description}")
    return _error("csrf_error", "Your session may have expired. Please retry.", 400)


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    """Handles generic 404 errors for routes that don't exist."""
    return _error("not_found", "Resource not found.", 404)


@error_handlers_bp.app_errorhandler(405)
def handle_405(e):
    return _error("method_not_allowed", "Method not allowed.", 405)


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}")
    return _error("internal_error", "An unexpected error occurred.", 500)
