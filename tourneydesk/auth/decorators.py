"""Decorators and guards for authenticated routes."""

from __future__ import annotations

from functools import wraps
from typing import Any

from flask import g, jsonify, session


def login_required(f=None, admin_required=False):
    """Reject the request with 401 if the user is not logged in.

    Usage:
    @login_required
    def protected_view():
        ...

    @login_required(admin_required=True)
    def admin_view():
        ...
    """

    def decorator(func):
        @wraps(func)
        def decorated_function(*args, **kwargs):
            if "user_id" not in session:
                return (
                    jsonify(
                        {
                            "success": False,
                            "code": "unauthorized",
                            "message": "Authentication required.",
                        }
                    ),
                    401,
                )
            if admin_required and not session.get("is_admin"):
                return (
                    jsonify(
                        {
                            "success": False,
                            "code": "forbidden",
                            "message": "You are not authorized to perform this action.",
                        }
                    ),
                    403,
                )
            return func(*args, **kwargs)

        return decorated_function

    if f:
        return decorator(f)
    return decorator


def current_user_id() -> str:
    """Return the logged-in user's id."""
    return str(session["user_id"])


def is_admin() -> bool:
    return bool(session.get("is_admin"))


def ensure_organizer(tournament: dict[str, Any]) -> None:
    """Raise PermissionError unless the session user may manage the tournament."""
    if is_admin():
        return
    if tournament.get("organizer_id") != current_user_id():
        raise PermissionError("Not authorized to manage this tournament.")


def current_user() -> dict[str, Any]:
    """Return the user profile loaded for this request, if any."""
    return getattr(g, "user", None) or {}
