"""Service layer for tournament business logic."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional, cast

from firebase_admin import firestore
from flask import has_app_context

from tourneydesk.bracket import (
    MatchStatus,
    RegistrationStatus,
    TournamentFormat,
    TournamentStatus,
)
from tourneydesk.bracket.models import as_utc
from tourneydesk.constants import (
    FIRESTORE_BATCH_LIMIT,
    MATCHES_COLLECTION,
    REGISTRATIONS_COLLECTION,
    TOURNAMENTS_COLLECTION,
)
from tourneydesk.errors import TournamentNotFound, ValidationError
from tourneydesk.match.services import FixtureService
from tourneydesk.utils import EmailError, send_email

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)

# Fields that are frozen once play has started
LOCKED_FIELDS = ("format", "maxParticipants", "startDate", "endDate")
CAPACITY_STATUSES = (TournamentStatus.OPEN.value, TournamentStatus.FULL.value)
PODIUM_SIZE = 3


def capacity_status(status: str, current: int, capacity: Optional[int]) -> str:
    """Apply the full/open rule while registration is running."""
    if status not in CAPACITY_STATUSES or not capacity:
        return status
    if current >= capacity:
        return TournamentStatus.FULL.value
    return TournamentStatus.OPEN.value


def count_registrations(
    db: Client, tournament_id: str, statuses: tuple[str, ...]
) -> int:
    """Count a tournament's registrations whose status is in `statuses`."""
    docs = (
        db.collection(REGISTRATIONS_COLLECTION)
        .where(filter=firestore.FieldFilter("tournamentId", "==", tournament_id))
        .stream()
    )
    return sum(1 for doc in docs if (doc.to_dict() or {}).get("status") in statuses)


class TournamentService:
    """Handles business logic and data access for tournaments."""

    @staticmethod
    def get_tournament(db: Client, tournament_id: str) -> dict[str, Any]:
        """Fetch a tournament by id."""
        doc = cast(
            "DocumentSnapshot",
            db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).get(),
        )
        data = doc.to_dict() if doc.exists else None
        if not data:
            raise TournamentNotFound()
        data["id"] = tournament_id
        return data

    @staticmethod
    def list_tournaments(
        db: Client,
        status: Optional[str] = None,
        sport: Optional[str] = None,
        organizer_id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """List tournaments, soonest first, with optional filters."""
        query: Any = db.collection(TOURNAMENTS_COLLECTION)
        if status:
            query = query.where(filter=firestore.FieldFilter("status", "==", status))
        if sport:
            query = query.where(filter=firestore.FieldFilter("sport", "==", sport))
        if organizer_id:
            query = query.where(
                filter=firestore.FieldFilter("organizer_id", "==", organizer_id)
            )

        tournaments = []
        for doc in query.stream():
            data = doc.to_dict()
            if data:
                data["id"] = doc.id
                tournaments.append(data)

        def start(t: dict[str, Any]) -> float:
            value = as_utc(t.get("startDate"))
            return value.timestamp() if value else float("inf")

        tournaments.sort(key=start)
        return tournaments

    @staticmethod
    def create_tournament(
        db: Client, data: dict[str, Any], organizer_id: str
    ) -> dict[str, Any]:
        """Create a tournament in draft status."""
        TournamentFormat.parse(data.get("format"))
        tournament_data = {
            **data,
            "currentParticipants": 0,
            "status": TournamentStatus.DRAFT.value,
            "organizer_id": organizer_id,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        _, ref = db.collection(TOURNAMENTS_COLLECTION).add(tournament_data)
        logger.info(f"Tournament {ref.id} created by {organizer_id}.")
        return {**tournament_data, "id": ref.id}

    @staticmethod
    def update_tournament(
        db: Client, tournament_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply a partial update to a tournament.

        Format, capacity and dates are locked once play has started, and
        capacity can never drop below the current number of registrations.
        """
        tournament = TournamentService.get_tournament(db, tournament_id)
        status = tournament.get("status", TournamentStatus.DRAFT.value)
        updates = {k: v for k, v in updates.items() if v is not None}
        if not updates:
            return tournament

        started = status in (
            TournamentStatus.IN_PROGRESS.value,
            TournamentStatus.COMPLETED.value,
        )
        if started and any(field in updates for field in LOCKED_FIELDS):
            raise ValidationError(
                "Cannot modify tournament format, capacity or dates after the "
                "tournament has started."
            )
        if "format" in updates:
            TournamentFormat.parse(updates["format"])

        merged = {**tournament, **updates}
        start, end = as_utc(merged.get("startDate")), as_utc(merged.get("endDate"))
        deadline = as_utc(merged.get("registrationDeadline"))
        if start and end and end < start:
            raise ValidationError("End date must be on or after the start date.")
        if start and deadline and deadline > start:
            raise ValidationError(
                "Registration deadline must be on or before the start date."
            )

        if "maxParticipants" in updates:
            occupancy = count_registrations(
                db,
                tournament_id,
                (RegistrationStatus.PENDING.value, RegistrationStatus.APPROVED.value),
            )
            if updates["maxParticipants"] < occupancy:
                raise ValidationError(
                    f"Capacity cannot be lower than the {occupancy} current "
                    f"registrations."
                )
            updates["status"] = capacity_status(
                status,
                tournament.get("currentParticipants", 0),
                updates["maxParticipants"],
            )

        updates["updatedAt"] = firestore.SERVER_TIMESTAMP
        db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).update(updates)
        return {**tournament, **updates}

    @staticmethod
    def _set_status(db: Client, tournament_id: str, status: str) -> None:
        db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).update(
            {"status": status, "updatedAt": firestore.SERVER_TIMESTAMP}
        )
        logger.info(f"Tournament {tournament_id} is now {status}.")

    @staticmethod
    def open_registration(db: Client, tournament_id: str) -> dict[str, Any]:
        """Move a draft tournament to open registration."""
        tournament = TournamentService.get_tournament(db, tournament_id)
        if tournament.get("status") != TournamentStatus.DRAFT.value:
            raise ValidationError("Only draft tournaments can be opened.")
        status = capacity_status(
            TournamentStatus.OPEN.value,
            tournament.get("currentParticipants", 0),
            tournament.get("maxParticipants"),
        )
        TournamentService._set_status(db, tournament_id, status)
        return {**tournament, "status": status}

    @staticmethod
    def start_tournament(db: Client, tournament_id: str) -> dict[str, Any]:
        """Put a tournament in progress; its bracket must exist."""
        tournament = TournamentService.get_tournament(db, tournament_id)
        if tournament.get("status") not in (
            TournamentStatus.DRAFT.value,
            *CAPACITY_STATUSES,
        ):
            raise ValidationError(
                f"A {tournament.get('status')} tournament cannot be started."
            )
        has_matches = any(
            True
            for _ in db.collection(MATCHES_COLLECTION)
            .where(filter=firestore.FieldFilter("tournamentId", "==", tournament_id))
            .limit(1)
            .stream()
        )
        if not has_matches:
            raise ValidationError("Generate the fixtures before starting the tournament.")
        TournamentService._set_status(db, tournament_id, TournamentStatus.IN_PROGRESS.value)
        return {**tournament, "status": TournamentStatus.IN_PROGRESS.value}

    @staticmethod
    def complete_tournament(db: Client, tournament_id: str) -> dict[str, Any]:
        """Close a tournament once every match is decided and email the podium.

        Returns the tournament with its final standings.
        """
        fixtures = FixtureService(db)
        tournament = fixtures.get_tournament(tournament_id)
        if tournament.get("status") == TournamentStatus.COMPLETED.value:
            raise ValidationError("The tournament is already completed.")

        matches = fixtures.list_fixtures(tournament_id)
        if not matches:
            raise ValidationError("The tournament has no fixtures.")
        open_matches = [
            m
            for m in matches
            if not m.get("isBye")
            and m.get("status")
            not in (MatchStatus.COMPLETED.value, MatchStatus.CANCELLED.value)
        ]
        if open_matches:
            raise ValidationError(
                f"Cannot finalize tournament. {len(open_matches)} matches are still "
                f"incomplete."
            )

        final_standings = fixtures.get_standings(tournament_id)
        TournamentService._set_status(db, tournament_id, TournamentStatus.COMPLETED.value)
        tournament["status"] = TournamentStatus.COMPLETED.value
        podium = final_standings[:PODIUM_SIZE]
        TournamentService._email_results(db, tournament, podium)
        return {**tournament, "standings": final_standings, "podium": podium}

    @staticmethod
    def _email_results(
        db: Client, tournament: dict[str, Any], podium: list[dict[str, Any]]
    ) -> None:
        if not has_app_context():
            return
        registrations = (
            db.collection(REGISTRATIONS_COLLECTION)
            .where(filter=firestore.FieldFilter("tournamentId", "==", tournament["id"]))
            .where(
                filter=firestore.FieldFilter(
                    "status", "==", RegistrationStatus.APPROVED.value
                )
            )
            .stream()
        )
        for doc in registrations:
            data = doc.to_dict() or {}
            email = data.get("captainEmail")
            if not email:
                continue
            try:
                send_email(
                    to=email,
                    subject=f"Final results: {tournament.get('name')}",
                    template="email/tournament_results.html",
                    tournament=tournament,
                    podium=podium,
                    name=data.get("teamName") or data.get("captainName"),
                )
            except EmailError as e:
                logger.error(f"Results email to {email} failed: {e}")

    @staticmethod
    def delete_tournament(db: Client, tournament_id: str) -> int:
        """Delete a tournament with its matches and registrations.

        Returns the number of documents removed.
        """
        TournamentService.get_tournament(db, tournament_id)
        refs = []
        for collection in (MATCHES_COLLECTION, REGISTRATIONS_COLLECTION):
            docs = (
                db.collection(collection)
                .where(filter=firestore.FieldFilter("tournamentId", "==", tournament_id))
                .stream()
            )
            refs.extend(db.collection(collection).document(doc.id) for doc in docs)
        refs.append(db.collection(TOURNAMENTS_COLLECTION).document(tournament_id))

        for start in range(0, len(refs), FIRESTORE_BATCH_LIMIT):
            batch = db.batch()
            for ref in refs[start : start + FIRESTORE_BATCH_LIMIT]:
                batch.delete(ref)
            batch.commit()
        logger.info(f"Deleted tournament {tournament_id} and {len(refs) - 1} related documents.")
        return len(refs)

    @staticmethod
    def sync_capacity(db: Client, tournament_id: str) -> dict[str, Any]:
        """Recount approved registrations and reapply the full/open rule."""
        tournament = TournamentService.get_tournament(db, tournament_id)
        approved = count_registrations(
            db, tournament_id, (RegistrationStatus.APPROVED.value,)
        )
        status = capacity_status(
            tournament.get("status", TournamentStatus.DRAFT.value),
            approved,
            tournament.get("maxParticipants"),
        )
        updates = {
            "currentParticipants": approved,
            "status": status,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).update(updates)
        return {**tournament, **updates}
