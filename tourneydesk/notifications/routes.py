"""Routes for the notifications blueprint."""

from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import current_app, request

from tourneydesk.auth.decorators import current_user_id, ensure_organizer, login_required
from tourneydesk.errors import ValidationError
from tourneydesk.utils import api_response, first_form_error

from . import bp
from .forms import AnnouncementForm, ConditionsUpdateForm
from .services import NotificationService, load_tournament


@bp.route("/", methods=["GET"])
@login_required
def list_notifications() -> Any:
    """List the session user's notifications, newest first."""
    db = firestore.client()
    unread_only = request.args.get("unread", "").lower() in ("1", "true", "yes")
    limit = min(request.args.get("limit", 50, type=int) or 50, 200)
    notifications = NotificationService.list_notifications(
        db, current_user_id(), unread_only=unread_only, limit=limit
    )
    return api_response(notifications, count=len(notifications))


@bp.route("/<string:notification_id>/read", methods=["POST"])
@login_required
def mark_read(notification_id: str) -> Any:
    db = firestore.client()
    NotificationService.mark_read(db, current_user_id(), notification_id)
    return api_response(message="Notification marked as read.")


@bp.route("/read-all", methods=["POST"])
@login_required
def mark_all_read() -> Any:
    db = firestore.client()
    updated = NotificationService.mark_all_read(db, current_user_id())
    return api_response({"updated": updated}, message="All notifications marked as read.")


@bp.route("/unread-count", methods=["GET"])
@login_required
def unread_count() -> Any:
    db = firestore.client()
    return api_response({"count": NotificationService.unread_count(db, current_user_id())})


@bp.route("/<string:notification_id>", methods=["DELETE"])
@login_required
def delete_notification(notification_id: str) -> Any:
    db = firestore.client()
    NotificationService.delete_notification(db, current_user_id(), notification_id)
    return api_response(message="Notification deleted.")


@bp.route("/tournament/<string:tournament_id>/announcement", methods=["POST"])
@login_required
def announce(tournament_id: str) -> Any:
    """Send an organizer announcement to every approved captain."""
    db = firestore.client()
    tournament = load_tournament(db, tournament_id)
    ensure_organizer(tournament)
    form = AnnouncementForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    count = NotificationService.announce(
        db,
        tournament,
        form.title.data,
        form.message.data,
        priority=form.priority.data,
        send_emails=bool(form.send_email.data),
        sender_id=current_user_id(),
    )
    return api_response(
        {"notificationCount": count},
        message=f"Announcement sent to {count} participants.",
    )


@bp.route("/tournament/<string:tournament_id>/weather-venue-update", methods=["POST"])
@login_required
def conditions_update(tournament_id: str) -> Any:
    """Broadcast an urgent weather or venue change."""
    db = firestore.client()
    tournament = load_tournament(db, tournament_id)
    ensure_organizer(tournament)
    form = ConditionsUpdateForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    count = NotificationService.send_conditions_update(
        db,
        tournament,
        form.type.data,
        form.title.data,
        form.message.data,
        new_venue=form.new_venue.data or None,
        weather_condition=form.weather_condition.data or None,
        sender_id=current_user_id(),
    )
    current_app.logger.info(
        f"{form.type.data.title()} update for {tournament_id} sent to {count} captains."
    )
    return api_response(
        {"notificationCount": count},
        message=f"{form.type.data.title()} update sent to {count} participants.",
    )
