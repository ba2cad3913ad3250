"""Service layer for tournament registrations."""

from __future__ import annotations

import datetime
import logging
import secrets
import string
from typing import TYPE_CHECKING, Any, Optional, cast

from firebase_admin import firestore

from tourneydesk.bracket import RegistrationStatus, TournamentStatus
from tourneydesk.bracket.models import as_utc
from tourneydesk.constants import (
    DEFAULT_MIN_TEAM_SIZE,
    MIN_TEAM_SIZES,
    PAYMENT_REFERENCE_PREFIX,
    REGISTRATIONS_COLLECTION,
    TOURNAMENTS_COLLECTION,
)
from tourneydesk.errors import (
    CapacityExceeded,
    DuplicateResourceError,
    RegistrationClosed,
    RegistrationNotFound,
    TournamentNotFound,
    ValidationError,
)
from tourneydesk.match.locks import tournament_lock
from tourneydesk.notifications.services import NotificationService
from tourneydesk.tournament.services import TournamentService, capacity_status

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

logger = logging.getLogger(__name__)

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
ACTIVE_STATUSES = (RegistrationStatus.PENDING.value, RegistrationStatus.APPROVED.value)


def payment_reference(now: Optional[datetime.datetime] = None) -> str:
    """Generate a bank-transfer reference such as TOURN-20250601-7QX2A."""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(5))
    return f"{PAYMENT_REFERENCE_PREFIX}-{now:%Y%m%d}-{suffix}"


def min_team_size(sport: Optional[str]) -> int:
    return MIN_TEAM_SIZES.get(sport or "", DEFAULT_MIN_TEAM_SIZE)


def _read_tournament(transaction: Transaction, ref: DocumentReference) -> dict[str, Any]:
    snapshot = ref.get(transaction=transaction)
    data = snapshot.to_dict() if snapshot.exists else None
    if not data:
        raise TournamentNotFound()
    data["id"] = ref.id
    return data


def _tournament_registrations(
    transaction: Transaction, db: Client, tournament_id: str
) -> list[tuple[str, dict[str, Any]]]:
    """A tournament's registrations, read inside the transaction."""
    query = db.collection(REGISTRATIONS_COLLECTION).where(
        filter=firestore.FieldFilter("tournamentId", "==", tournament_id)
    )
    return [(doc.id, doc.to_dict() or {}) for doc in transaction.get(query)]


class RegistrationService:
    """Handles registration, approval and withdrawal."""

    @staticmethod
    def get_registration(db: Client, registration_id: str) -> dict[str, Any]:
        doc = cast(
            "DocumentSnapshot",
            db.collection(REGISTRATIONS_COLLECTION).document(registration_id).get(),
        )
        data = doc.to_dict() if doc.exists else None
        if not data:
            raise RegistrationNotFound()
        data["id"] = registration_id
        return data

    @staticmethod
    def _check_open(
        tournament: dict[str, Any],
        registrations: list[dict[str, Any]],
        captain_id: str,
        now: datetime.datetime,
    ) -> None:
        """Raise unless the captain may join the tournament's current registrations."""
        status = tournament.get("status")
        if status == TournamentStatus.FULL.value:
            raise CapacityExceeded()
        if status != TournamentStatus.OPEN.value:
            raise RegistrationClosed()
        deadline = as_utc(tournament.get("registrationDeadline"))
        if deadline is not None and now > deadline + datetime.timedelta(days=1):
            raise RegistrationClosed("The registration deadline has passed.")

        active = [r for r in registrations if r.get("status") in ACTIVE_STATUSES]
        if any(r.get("captainId") == captain_id for r in active):
            raise DuplicateResourceError(
                "You are already registered for this tournament."
            )
        capacity = tournament.get("maxParticipants")
        if capacity and len(active) >= capacity:
            raise CapacityExceeded()

    @staticmethod
    def _create(
        db: Client,
        tournament_id: str,
        user: dict[str, Any],
        fields: dict[str, Any],
        now: datetime.datetime,
    ) -> dict[str, Any]:
        """Check capacity and store the registration in one transaction."""
        registration = {
            "tournamentId": tournament_id,
            "captainId": user["uid"],
            "captainName": user.get("name") or user.get("username") or "",
            "captainEmail": user.get("email"),
            "status": RegistrationStatus.PENDING.value,
            "paymentReference": payment_reference(now),
            "paymentStatus": "pending",
            "registrationDate": now,
            "createdAt": firestore.SERVER_TIMESTAMP,
            **fields,
        }
        tournament_ref = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)
        registration_ref = db.collection(REGISTRATIONS_COLLECTION).document()

        @firestore.transactional
        def _commit(transaction: Transaction) -> None:
            tournament = _read_tournament(transaction, tournament_ref)
            registrations = _tournament_registrations(transaction, db, tournament_id)
            RegistrationService._check_open(
                tournament, [r for _, r in registrations], user["uid"], now
            )
            transaction.set(registration_ref, registration)

        with tournament_lock(tournament_id):
            _commit(db.transaction())
        logger.info(
            f"Registration {registration_ref.id} ({fields.get('type')}) created for "
            f"tournament {tournament_id}."
        )
        return {**registration, "id": registration_ref.id}

    @staticmethod
    def register_individual(
        db: Client,
        tournament_id: str,
        user: dict[str, Any],
        emergency_contact: dict[str, str],
        notes: Optional[str] = None,
        now: Optional[datetime.datetime] = None,
    ) -> dict[str, Any]:
        """Register the user as an individual participant."""
        now = now or datetime.datetime.now(datetime.timezone.utc)
        return RegistrationService._create(
            db,
            tournament_id,
            user,
            {
                "type": "individual",
                "teamName": None,
                "teamMembers": [user["uid"]],
                "emergencyContact": emergency_contact,
                "notes": notes,
            },
            now,
        )

    @staticmethod
    def register_team(
        db: Client,
        tournament_id: str,
        user: dict[str, Any],
        team_name: str,
        team_members: list[str],
        emergency_contact: dict[str, str],
        notes: Optional[str] = None,
        now: Optional[datetime.datetime] = None,
    ) -> dict[str, Any]:
        """Register a team captained by the user.

        The captain always counts as a team member.
        """
        now = now or datetime.datetime.now(datetime.timezone.utc)
        if not team_name or not team_name.strip():
            raise ValidationError("Team name is required.")
        tournament = TournamentService.get_tournament(db, tournament_id)

        members = list(dict.fromkeys([user["uid"], *(m for m in team_members if m)]))
        required = min_team_size(tournament.get("sport"))
        if len(members) < required:
            raise ValidationError(
                f"{tournament.get('sport') or 'This sport'} teams need at least "
                f"{required} members."
            )

        return RegistrationService._create(
            db,
            tournament_id,
            user,
            {
                "type": "team",
                "teamName": team_name.strip(),
                "teamMembers": members,
                "emergencyContact": emergency_contact,
                "notes": notes,
            },
            now,
        )

    @staticmethod
    def update_status(
        db: Client, registration_id: str, status: str, notes: Optional[str] = None
    ) -> dict[str, Any]:
        """Approve or reject a registration and keep the tournament's count in step.

        The capacity check and both writes share one transaction, so two
        approvals racing for the last slot cannot both succeed.
        """
        try:
            new_status = RegistrationStatus(status)
        except ValueError as e:
            raise ValidationError(f"Invalid status: {status}.") from e

        registration = RegistrationService.get_registration(db, registration_id)
        tournament_id = registration["tournamentId"]
        registration_ref = db.collection(REGISTRATIONS_COLLECTION).document(
            registration_id
        )
        tournament_ref = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)
        approved_value = RegistrationStatus.APPROVED.value

        @firestore.transactional
        def _apply(
            transaction: Transaction,
        ) -> tuple[Optional[dict[str, Any]], dict[str, Any]]:
            tournament = _read_tournament(transaction, tournament_ref)
            entries = dict(_tournament_registrations(transaction, db, tournament_id))
            current = entries.get(registration_id)
            if current is None:
                raise RegistrationNotFound()
            if current.get("status") == new_status.value:
                return None, tournament

            approved = sum(
                1 for r in entries.values() if r.get("status") == approved_value
            )
            capacity = tournament.get("maxParticipants")
            if new_status is RegistrationStatus.APPROVED:
                if capacity and approved >= capacity:
                    raise CapacityExceeded(
                        "Approving this registration would exceed the tournament capacity."
                    )
                approved += 1
            elif current.get("status") == approved_value:
                approved -= 1

            updates = {
                "status": new_status.value,
                "reviewNotes": notes,
                "reviewedAt": firestore.SERVER_TIMESTAMP,
            }
            transaction.update(registration_ref, updates)
            transaction.update(
                tournament_ref,
                {
                    "currentParticipants": approved,
                    "status": capacity_status(
                        tournament.get("status", TournamentStatus.DRAFT.value),
                        approved,
                        capacity,
                    ),
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )
            return {**current, **updates, "id": registration_id}, tournament

        with tournament_lock(tournament_id):
            updated, tournament = _apply(db.transaction())
        if updated is None:
            return registration
        logger.info(f"Registration {registration_id} is now {new_status.value}.")

        if new_status is not RegistrationStatus.PENDING:
            NotificationService.notify_registration_status(db, updated, tournament)
        return updated

    @staticmethod
    def withdraw(db: Client, registration_id: str, user_id: str) -> None:
        """Let a captain withdraw a pending registration, freeing its slot."""
        registration = RegistrationService.get_registration(db, registration_id)
        if registration.get("captainId") != user_id:
            raise PermissionError("Only the captain can withdraw this registration.")
        if registration.get("status") != RegistrationStatus.PENDING.value:
            raise ValidationError("Only pending registrations can be withdrawn.")
        db.collection(REGISTRATIONS_COLLECTION).document(registration_id).delete()
        TournamentService.sync_capacity(db, registration["tournamentId"])
        logger.info(f"Registration {registration_id} withdrawn by {user_id}.")

    @staticmethod
    def list_for_tournament(
        db: Client, tournament_id: str, status: Optional[str] = None
    ) -> list[dict[str, Any]]:
        query = db.collection(REGISTRATIONS_COLLECTION).where(
            filter=firestore.FieldFilter("tournamentId", "==", tournament_id)
        )
        if status:
            query = query.where(filter=firestore.FieldFilter("status", "==", status))
        registrations = []
        for doc in query.stream():
            data = doc.to_dict()
            if data:
                data["id"] = doc.id
                registrations.append(data)
        return registrations

    @staticmethod
    def list_for_user(db: Client, user_id: str) -> list[dict[str, Any]]:
        """Registrations the user captains or plays in."""
        seen = {}
        queries = (
            db.collection(REGISTRATIONS_COLLECTION).where(
                filter=firestore.FieldFilter("captainId", "==", user_id)
            ),
            db.collection(REGISTRATIONS_COLLECTION).where(
                filter=firestore.FieldFilter("teamMembers", "array_contains", user_id)
            ),
        )
        for query in queries:
            for doc in query.stream():
                if doc.id in seen:
                    continue
                data = doc.to_dict()
                if data:
                    data["id"] = doc.id
                    seen[doc.id] = data
        return list(seen.values())
