"""Notification delivery and the in-app notification feed."""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any, Optional, Protocol, cast

from firebase_admin import firestore
from flask import current_app, has_app_context

from tourneydesk.constants import (
    FIRESTORE_BATCH_LIMIT,
    NOTIFICATIONS_COLLECTION,
    REGISTRATIONS_COLLECTION,
    TOURNAMENTS_COLLECTION,
)
from tourneydesk.errors import NotFoundError, TournamentNotFound, ValidationError
from tourneydesk.utils import EmailError, send_email

from .models import BracketEvent, EventKind, Recipient

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)

ANNOUNCEMENT_PRIORITIES = ("low", "medium", "high", "urgent")


def load_tournament(db: Client, tournament_id: str) -> dict[str, Any]:
    doc = cast(
        "DocumentSnapshot",
        db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).get(),
    )
    data = doc.to_dict() if doc.exists else None
    if not data:
        raise TournamentNotFound()
    data["id"] = tournament_id
    return data


class Notifier(Protocol):
    """Receives bracket events; delivery and retry are the notifier's concern."""

    def publish(self, event: BracketEvent) -> None: ...


class NullNotifier:
    """Notifier that drops every event."""

    def publish(self, event: BracketEvent) -> None:
        logger.debug("Dropping %s event for %s", event.kind.value, event.tournament_id)


class FirestoreNotifier:
    """Stores in-app notifications and emails the affected captains."""

    def __init__(self, db: Client, send_emails: bool = True) -> None:
        self.db = db
        self.send_emails = send_emails

    def publish(self, event: BracketEvent) -> None:
        """Deliver an event. Failures are logged and never reach the caller."""
        handlers = {
            EventKind.BRACKET_GENERATED: self._bracket_generated,
            EventKind.MATCH_RESULT_RECORDED: self._match_result,
            EventKind.SCHEDULE_CHANGED: self._schedule_changed,
            EventKind.PROGRESSION_FAILED: self._progression_failed,
        }
        try:
            tournament = load_tournament(self.db, event.tournament_id)
            handlers[event.kind](event, tournament)
        except Exception as e:
            logger.error(
                f"Failed to deliver {event.kind.value} for tournament "
                f"{event.tournament_id}: {e}"
            )

    def _recipients(self, registration_ids: list[Optional[str]]) -> list[Recipient]:
        ids = list(dict.fromkeys(r for r in registration_ids if r))
        if not ids:
            return []
        refs = [self.db.collection(REGISTRATIONS_COLLECTION).document(r) for r in ids]
        recipients: list[Recipient] = []
        for doc in self.db.get_all(refs):
            if not doc.exists:
                continue
            data = doc.to_dict() or {}
            if not data.get("captainId"):
                continue
            recipients.append(
                {
                    "user_id": data["captainId"],
                    "email": data.get("captainEmail"),
                    "name": data.get("teamName") or data.get("captainName") or "",
                    "registration_id": doc.id,
                }
            )
        return recipients

    def _store(self, recipient_id: str, payload: dict[str, Any]) -> None:
        doc = {
            "recipient": recipient_id,
            "read": False,
            "createdAt": firestore.SERVER_TIMESTAMP,
            **payload,
        }
        self.db.collection(NOTIFICATIONS_COLLECTION).add(doc)

    def _email(self, recipient: Recipient, subject: str, template: str, **context: Any) -> None:
        if not self.send_emails or not recipient.get("email") or not has_app_context():
            return
        try:
            send_email(
                to=recipient["email"],
                subject=subject,
                template=f"email/{template}.html",
                recipient=recipient,
                **context,
            )
        except EmailError as e:
            logger.error(f"Email to {recipient['email']} failed: {e}")

    def _action_url(self, tournament_id: str) -> str:
        base = current_app.config.get("APP_BASE_URL", "") if has_app_context() else ""
        return f"{base}/tournaments/{tournament_id}"

    def _bracket_generated(self, event: BracketEvent, tournament: dict[str, Any]) -> None:
        participant_ids = []
        for match in event.matches:
            participant_ids.extend([match.get("participant1"), match.get("participant2")])
        message = event.message or (
            f"The tournament bracket for {tournament.get('name')} has been updated."
        )
        for recipient in self._recipients(participant_ids):
            self._store(
                recipient["user_id"],
                {
                    "type": "tournament",
                    "title": "Tournament Bracket Updated",
                    "message": message,
                    "priority": "medium",
                    "actionUrl": self._action_url(tournament["id"]),
                    "actionText": "View Bracket",
                    "relatedId": tournament["id"],
                    "relatedModel": "Tournament",
                    "metadata": {"tournamentName": tournament.get("name")},
                },
            )
            self._email(
                recipient,
                f"Bracket published: {tournament.get('name')}",
                "bracket_generated",
                tournament=tournament,
                match_count=len(event.matches),
            )

    def _match_result(self, event: BracketEvent, tournament: dict[str, Any]) -> None:
        match = event.match or {}
        winner = match.get("winner")
        for recipient in self._recipients([match.get("participant1"), match.get("participant2")]):
            is_winner = recipient["registration_id"] == winner
            title = "Match Won! 🏆" if is_winner else "Match Result Posted"
            message = (
                f"Congratulations! You won your match in {tournament.get('name')}."
                if is_winner
                else f"Your match result has been posted for {tournament.get('name')}."
            )
            self._store(
                recipient["user_id"],
                {
                    "type": "tournament",
                    "title": title,
                    "message": message,
                    "priority": "medium",
                    "actionUrl": self._action_url(tournament["id"]),
                    "actionText": "View Tournament",
                    "relatedId": match.get("id"),
                    "relatedModel": "Match",
                    "metadata": {
                        "tournamentName": tournament.get("name"),
                        "matchDate": match.get("scheduledDate"),
                    },
                },
            )
            self._email(
                recipient,
                f"Match result: {tournament.get('name')}",
                "match_result",
                tournament=tournament,
                match=match,
                is_winner=is_winner,
            )

    def _schedule_changed(self, event: BracketEvent, tournament: dict[str, Any]) -> None:
        match = event.match or {}
        message = event.message or "Your match schedule has changed."
        for recipient in self._recipients([match.get("participant1"), match.get("participant2")]):
            self._store(
                recipient["user_id"],
                {
                    "type": "schedule",
                    "title": "Match Schedule Updated",
                    "message": message,
                    "priority": "high",
                    "actionUrl": self._action_url(tournament["id"]),
                    "actionText": "View Match",
                    "relatedId": match.get("id"),
                    "relatedModel": "Match",
                    "metadata": {
                        "tournamentName": tournament.get("name"),
                        **event.metadata,
                    },
                },
            )
            self._email(
                recipient,
                f"Schedule change: {tournament.get('name')}",
                "schedule_changed",
                tournament=tournament,
                match=match,
                change_message=message,
            )

    def _progression_failed(self, event: BracketEvent, tournament: dict[str, Any]) -> None:
        organizer_id = tournament.get("organizer_id")
        if not organizer_id:
            return
        match = event.match or {}
        self._store(
            organizer_id,
            {
                "type": "system",
                "title": "Bracket Needs Attention",
                "message": event.message
                or "A winner could not be advanced to the next match.",
                "priority": "high",
                "actionUrl": self._action_url(tournament["id"]),
                "actionText": "Review Bracket",
                "relatedId": match.get("id"),
                "relatedModel": "Match",
                "metadata": {"tournamentName": tournament.get("name"), **event.metadata},
            },
        )


class NotificationService:
    """Handles the in-app notification feed."""

    @staticmethod
    def list_notifications(
        db: Client, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> list[dict[str, Any]]:
        """Fetch a user's notifications, newest first."""
        query = db.collection(NOTIFICATIONS_COLLECTION).where(
            filter=firestore.FieldFilter("recipient", "==", user_id)
        )
        if unread_only:
            query = query.where(filter=firestore.FieldFilter("read", "==", False))

        notifications = []
        for doc in query.stream():
            data = doc.to_dict()
            if data:
                data["id"] = doc.id
                notifications.append(data)

        def created(n: dict[str, Any]) -> Any:
            value = n.get("createdAt")
            if isinstance(value, datetime.datetime):
                return value.timestamp()
            return 0

        notifications.sort(key=created, reverse=True)
        return notifications[:limit]

    @staticmethod
    def unread_count(db: Client, user_id: str) -> int:
        return len(NotificationService.list_notifications(db, user_id, unread_only=True, limit=10_000))

    @staticmethod
    def mark_read(db: Client, user_id: str, notification_id: str) -> None:
        """Mark one notification as read, checking it belongs to the user."""
        ref = db.collection(NOTIFICATIONS_COLLECTION).document(notification_id)
        doc = cast("DocumentSnapshot", ref.get())
        data = doc.to_dict() if doc.exists else None
        if not data or data.get("recipient") != user_id:
            raise NotFoundError("Notification not found.")
        ref.update({"read": True, "readAt": firestore.SERVER_TIMESTAMP})

    @staticmethod
    def mark_all_read(db: Client, user_id: str) -> int:
        """Mark every unread notification of the user as read."""
        unread = NotificationService.list_notifications(db, user_id, unread_only=True, limit=10_000)
        for start in range(0, len(unread), FIRESTORE_BATCH_LIMIT):
            batch = db.batch()
            for n in unread[start : start + FIRESTORE_BATCH_LIMIT]:
                ref = db.collection(NOTIFICATIONS_COLLECTION).document(n["id"])
                batch.update(ref, {"read": True, "readAt": firestore.SERVER_TIMESTAMP})
            batch.commit()
        return len(unread)

    @staticmethod
    def delete_notification(db: Client, user_id: str, notification_id: str) -> None:
        """Delete one of the user's notifications."""
        ref = db.collection(NOTIFICATIONS_COLLECTION).document(notification_id)
        doc = cast("DocumentSnapshot", ref.get())
        data = doc.to_dict() if doc.exists else None
        if not data or data.get("recipient") != user_id:
            raise NotFoundError("Notification not found.")
        ref.delete()

    @staticmethod
    def broadcast(
        db: Client,
        tournament: dict[str, Any],
        payload: dict[str, Any],
        email_subject: Optional[str] = None,
        **email_context: Any,
    ) -> int:
        """Notify every approved captain of a tournament.

        The notifications are written in batches; when `email_subject` is
        given each captain with an address is also emailed.

        Returns:
            The number of captains notified.
        """
        registrations = (
            db.collection(REGISTRATIONS_COLLECTION)
            .where(filter=firestore.FieldFilter("tournamentId", "==", tournament["id"]))
            .where(filter=firestore.FieldFilter("status", "==", "approved"))
            .stream()
        )
        captains: dict[str, dict[str, Any]] = {}
        for reg in registrations:
            data = reg.to_dict() or {}
            if data.get("captainId"):
                captains.setdefault(data["captainId"], data)

        recipients = list(captains.items())
        for start in range(0, len(recipients), FIRESTORE_BATCH_LIMIT):
            batch = db.batch()
            for captain_id, _ in recipients[start : start + FIRESTORE_BATCH_LIMIT]:
                batch.set(
                    db.collection(NOTIFICATIONS_COLLECTION).document(),
                    {
                        "recipient": captain_id,
                        "relatedId": tournament["id"],
                        "relatedModel": "Tournament",
                        "actionUrl": f"/tournaments/{tournament['id']}",
                        "read": False,
                        "createdAt": firestore.SERVER_TIMESTAMP,
                        **payload,
                    },
                )
            batch.commit()

        if email_subject and has_app_context():
            for _, data in recipients:
                email = data.get("captainEmail")
                if not email:
                    continue
                try:
                    send_email(
                        to=email,
                        subject=email_subject,
                        template="email/announcement.html",
                        tournament=tournament,
                        title=payload.get("title"),
                        message=payload.get("message"),
                        name=data.get("teamName") or data.get("captainName"),
                        **email_context,
                    )
                except EmailError as e:
                    logger.error(f"Announcement email to {email} failed: {e}")

        logger.info(
            f"Broadcast {payload.get('type')} for tournament {tournament['id']} "
            f"to {len(recipients)} captains."
        )
        return len(recipients)

    @staticmethod
    def announce(
        db: Client,
        tournament: dict[str, Any],
        title: str,
        message: str,
        priority: str = "medium",
        send_emails: bool = False,
        sender_id: Optional[str] = None,
    ) -> int:
        """Send an organizer announcement to the tournament's approved captains."""
        if priority not in ANNOUNCEMENT_PRIORITIES:
            raise ValidationError(f"Unknown priority: {priority}")
        return NotificationService.broadcast(
            db,
            tournament,
            {
                "type": "announcement",
                "title": title,
                "message": message,
                "priority": priority,
                "actionText": "View Tournament",
                "createdBy": sender_id,
                "metadata": {"tournamentName": tournament.get("name")},
            },
            email_subject=f"{tournament.get('name')}: {title}" if send_emails else None,
        )

    @staticmethod
    def send_conditions_update(
        db: Client,
        tournament: dict[str, Any],
        kind: str,
        title: str,
        message: str,
        new_venue: Optional[str] = None,
        weather_condition: Optional[str] = None,
        sender_id: Optional[str] = None,
    ) -> int:
        """Broadcast an urgent weather or venue change, always by email too.

        A venue update that names a new venue also moves the tournament there.
        """
        if kind not in ("weather", "venue"):
            raise ValidationError("Update type must be weather or venue.")
        if kind == "venue" and new_venue:
            db.collection(TOURNAMENTS_COLLECTION).document(tournament["id"]).update(
                {"venue": new_venue, "updatedAt": firestore.SERVER_TIMESTAMP}
            )
            tournament = {**tournament, "venue": new_venue}
        return NotificationService.broadcast(
            db,
            tournament,
            {
                "type": kind,
                "title": title,
                "message": message,
                "priority": "urgent",
                "actionText": "View Details",
                "createdBy": sender_id,
                "metadata": {
                    "tournamentName": tournament.get("name"),
                    "venue": tournament.get("venue"),
                    "weather": weather_condition,
                },
            },
            email_subject=f"Urgent {kind} update: {tournament.get('name')}",
            update_kind=kind,
            weather_condition=weather_condition,
        )

    @staticmethod
    def notify_registration_status(
        db: Client, registration: dict[str, Any], tournament: dict[str, Any]
    ) -> None:
        """Tell a captain their registration was approved or rejected."""
        approved = registration.get("status") == "approved"
        title = "Registration Confirmed! 🎉" if approved else "Registration Update"
        message = (
            f"Your registration for {tournament.get('name')} has been confirmed. "
            "Get ready to compete!"
            if approved
            else f"Your registration for {tournament.get('name')} was not approved. "
            "Please contact the organizer."
        )
        captain_id = registration.get("captainId")
        if not captain_id:
            return
        db.collection(NOTIFICATIONS_COLLECTION).add(
            {
                "recipient": captain_id,
                "type": "registration",
                "title": title,
                "message": message,
                "priority": "medium" if approved else "high",
                "relatedId": registration.get("id"),
                "relatedModel": "Registration",
                "metadata": {"tournamentName": tournament.get("name")},
                "read": False,
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )
        email = registration.get("captainEmail")
        if email and approved and has_app_context():
            try:
                send_email(
                    to=email,
                    subject=f"Registration confirmed: {tournament.get('name')}",
                    template="email/registration_confirmed.html",
                    registration=registration,
                    tournament=tournament,
                )
            except EmailError as e:
                logger.error(f"Registration email to {email} failed: {e}")

    @staticmethod
    def notify_upcoming_tournaments(
        db: Client, now: Optional[datetime.datetime] = None
    ) -> int:
        """Remind approved captains of tournaments starting tomorrow."""
        now = now or datetime.datetime.now(datetime.timezone.utc)
        tomorrow = (now + datetime.timedelta(days=1)).date()

        sent = 0
        for doc in db.collection(TOURNAMENTS_COLLECTION).stream():
            data = doc.to_dict() or {}
            start = data.get("startDate")
            if not isinstance(start, datetime.datetime) or start.date() != tomorrow:
                continue
            if data.get("status") not in ("open", "full", "in-progress"):
                continue
            registrations = (
                db.collection(REGISTRATIONS_COLLECTION)
                .where(filter=firestore.FieldFilter("tournamentId", "==", doc.id))
                .where(filter=firestore.FieldFilter("status", "==", "approved"))
                .stream()
            )
            for reg in registrations:
                reg_data = reg.to_dict() or {}
                if not reg_data.get("captainId"):
                    continue
                db.collection(NOTIFICATIONS_COLLECTION).add(
                    {
                        "recipient": reg_data["captainId"],
                        "type": "tournament",
                        "title": "Tournament Starting Tomorrow! 🏆",
                        "message": f"{data.get('name')} starts tomorrow at "
                        f"{data.get('venue')}. Make sure you're ready!",
                        "priority": "high",
                        "relatedId": doc.id,
                        "relatedModel": "Tournament",
                        "metadata": {"tournamentName": data.get("name")},
                        "read": False,
                        "createdAt": firestore.SERVER_TIMESTAMP,
                    }
                )
                sent += 1
        logger.info(f"Sent {sent} tournament reminders.")
        return sent
