"""Session helpers for authenticated API routes.

Logging in and issuing sessions is handled by an external identity flow;
this package only reads the session it leaves behind.
"""

from .decorators import current_user_id, ensure_organizer, is_admin, login_required

__all__ = ["current_user_id", "ensure_organizer", "is_admin", "login_required"]
