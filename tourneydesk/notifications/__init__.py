"""Notifications blueprint."""

from flask import Blueprint

bp = Blueprint("notifications", __name__, url_prefix="/notifications")

from . import routes  # noqa: E402, F401
from .models import BracketEvent, EventKind  # noqa: E402
from .services import (  # noqa: E402
    FirestoreNotifier,
    NotificationService,
    Notifier,
    NullNotifier,
)

__all__ = [
    "BracketEvent",
    "EventKind",
    "FirestoreNotifier",
    "NotificationService",
    "Notifier",
    "NullNotifier",
    "routes",
]
