"""Service layer for fixtures: generation, results, progression and views."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, cast

from firebase_admin import firestore

from tourneydesk.bracket import (
    BracketGenerator,
    Match,
    MatchResult,
    MatchStatus,
    Participant,
    RegistrationStatus,
    ScheduleWindow,
    TournamentFormat,
    TournamentStatus,
    apply_result,
    place_winner,
    standings,
)
from tourneydesk.bracket.models import as_utc
from tourneydesk.constants import (
    BRACKET_LOCK_TIMEOUT,
    DEFAULT_MATCH_DURATION,
    FIRESTORE_BATCH_LIMIT,
    MATCHES_COLLECTION,
    MATCHES_PER_DAY,
    REGISTRATIONS_COLLECTION,
    ROUND_SPACING_DAYS,
    TOURNAMENTS_COLLECTION,
)
from tourneydesk.errors import (
    AppError,
    BracketConfigurationError,
    CapacityExceeded,
    MatchNotFound,
    RegenerationNotConfirmed,
    TournamentNotFound,
    ValidationError,
)
from tourneydesk.notifications.models import BracketEvent, EventKind
from tourneydesk.notifications.services import NullNotifier

from .locks import tournament_lock

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

    from tourneydesk.notifications.services import Notifier

    from .models import Bracket

logger = logging.getLogger(__name__)

ROUND_NAMES = {0: "Final", 1: "Semi-finals", 2: "Quarter-finals"}


@dataclass
class RecordOutcome:
    """A committed result, plus the progression failure that followed it, if any."""

    match: dict[str, Any]
    progression_error: Optional[AppError] = None

    @property
    def progressed(self) -> bool:
        return self.progression_error is None


def _match_dict(match: Match) -> dict[str, Any]:
    return {"id": match.id, **match.to_document()}


def _registration_sort_key(data: dict[str, Any]) -> float:
    value = data.get("registrationDate")
    if isinstance(value, datetime.datetime):
        return as_utc(value).timestamp()
    return 0.0


def round_name(round_number: int, total_rounds: int, fmt: TournamentFormat) -> str:
    """Human-readable name of a bracket round."""
    if fmt is TournamentFormat.ROUND_ROBIN:
        return "Round Robin"
    return ROUND_NAMES.get(total_rounds - round_number, f"Round {round_number}")


class FixtureService:
    """Handles bracket generation, result recording and winner progression.

    Every mutation of a tournament's match set runs under the tournament's
    in-process lock; single-document read-modify-writes additionally run in
    Firestore transactions.
    """

    def __init__(
        self,
        db: Client,
        notifier: Optional[Notifier] = None,
        matches_per_day: int = MATCHES_PER_DAY,
        round_spacing_days: int = ROUND_SPACING_DAYS,
        default_duration: int = DEFAULT_MATCH_DURATION,
        lock_timeout: float = BRACKET_LOCK_TIMEOUT,
    ) -> None:
        self.db = db
        self.notifier = notifier or NullNotifier()
        self.matches_per_day = matches_per_day
        self.round_spacing_days = round_spacing_days
        self.default_duration = default_duration
        self.lock_timeout = lock_timeout

    @classmethod
    def from_config(
        cls, db: Client, config: dict[str, Any], notifier: Optional[Notifier] = None
    ) -> FixtureService:
        """Build a service from a Flask config mapping."""
        return cls(
            db,
            notifier,
            matches_per_day=int(config.get("MATCHES_PER_DAY", MATCHES_PER_DAY)),
            round_spacing_days=int(config.get("ROUND_SPACING_DAYS", ROUND_SPACING_DAYS)),
            default_duration=int(
                config.get("DEFAULT_MATCH_DURATION", DEFAULT_MATCH_DURATION)
            ),
            lock_timeout=float(config.get("BRACKET_LOCK_TIMEOUT", BRACKET_LOCK_TIMEOUT)),
        )

    # Reads

    def get_tournament(self, tournament_id: str) -> dict[str, Any]:
        doc = cast(
            "DocumentSnapshot",
            self.db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).get(),
        )
        data = doc.to_dict() if doc.exists else None
        if not data:
            raise TournamentNotFound()
        data["id"] = tournament_id
        return data

    def _match_ref(self, match_id: str) -> DocumentReference:
        return self.db.collection(MATCHES_COLLECTION).document(match_id)

    def _commit_writes(
        self, writes: list[tuple[str, DocumentReference, Optional[dict[str, Any]]]]
    ) -> None:
        """Commit writes in batches that stay under Firestore's per-batch cap.

        Each batch commits on its own. If one fails, the earlier batches
        stay applied and the match set is partial until it is regenerated.
        """
        for start in range(0, len(writes), FIRESTORE_BATCH_LIMIT):
            batch = self.db.batch()
            for op, ref, data in writes[start : start + FIRESTORE_BATCH_LIMIT]:
                if op == "delete":
                    batch.delete(ref)
                elif op == "set":
                    batch.set(ref, data)
                else:
                    batch.update(ref, data)
            batch.commit()

    def _load_match(self, match_id: str) -> Match:
        doc = cast("DocumentSnapshot", self._match_ref(match_id).get())
        data = doc.to_dict() if doc.exists else None
        if not data:
            raise MatchNotFound()
        return Match.from_document(match_id, data)

    def _tournament_matches(self, tournament_id: str) -> list[Match]:
        docs = (
            self.db.collection(MATCHES_COLLECTION)
            .where(filter=firestore.FieldFilter("tournamentId", "==", tournament_id))
            .stream()
        )
        matches = [Match.from_document(doc.id, doc.to_dict() or {}) for doc in docs]
        matches.sort(key=lambda m: (m.round, m.match_number))
        return matches

    def _participants(
        self, tournament_id: str, approved_only: bool = False
    ) -> list[Participant]:
        """Registrations of a tournament in registration order."""
        query = self.db.collection(REGISTRATIONS_COLLECTION).where(
            filter=firestore.FieldFilter("tournamentId", "==", tournament_id)
        )
        if approved_only:
            query = query.where(
                filter=firestore.FieldFilter(
                    "status", "==", RegistrationStatus.APPROVED.value
                )
            )
        docs = [(doc.id, doc.to_dict() or {}) for doc in query.stream()]
        docs.sort(key=lambda item: _registration_sort_key(item[1]))
        return [Participant.from_document(doc_id, data) for doc_id, data in docs]

    # Generation

    def generate_bracket(
        self, tournament_id: str, confirm: bool = False
    ) -> list[dict[str, Any]]:
        """Replace the tournament's match set with a freshly generated bracket.

        Raises:
            InsufficientParticipants: Fewer than two approved registrations.
            CapacityExceeded: More approved registrations than maxParticipants.
            RegenerationNotConfirmed: Played matches exist and confirm is False.
        """
        tournament = self.get_tournament(tournament_id)
        fmt = TournamentFormat.parse(tournament.get("format"))
        participants = self._participants(tournament_id, approved_only=True)

        capacity = tournament.get("maxParticipants")
        if capacity and len(participants) > capacity:
            raise CapacityExceeded(
                f"{len(participants)} approved registrations exceed the capacity "
                f"of {capacity}."
            )

        window = ScheduleWindow(
            as_utc(tournament.get("startDate")), as_utc(tournament.get("endDate"))
        )
        generator = BracketGenerator(
            tournament_id,
            id_factory=lambda: self.db.collection(MATCHES_COLLECTION).document().id,
            matches_per_day=self.matches_per_day,
            round_spacing_days=self.round_spacing_days,
            venue=tournament.get("venue"),
            estimated_duration=self.default_duration,
        )

        with tournament_lock(tournament_id, self.lock_timeout):
            existing = self._tournament_matches(tournament_id)
            played = [m for m in existing if m.is_completed and not m.is_bye]
            if played and not confirm:
                raise RegenerationNotConfirmed()

            matches = generator.generate(participants, fmt, window)

            writes: list[tuple[str, DocumentReference, Optional[dict[str, Any]]]] = [
                ("delete", self._match_ref(match.id), None) for match in existing
            ]
            for match in matches:
                writes.append(
                    (
                        "set",
                        self._match_ref(match.id),
                        {
                            **match.to_document(),
                            "createdAt": firestore.SERVER_TIMESTAMP,
                            "updatedAt": firestore.SERVER_TIMESTAMP,
                        },
                    )
                )
            tournament_update: dict[str, Any] = {"updatedAt": firestore.SERVER_TIMESTAMP}
            if tournament.get("status") == TournamentStatus.DRAFT.value:
                tournament_update["status"] = TournamentStatus.OPEN.value
            writes.append(
                (
                    "update",
                    self.db.collection(TOURNAMENTS_COLLECTION).document(tournament_id),
                    tournament_update,
                )
            )
            self._commit_writes(writes)

        logger.info(
            f"Generated {len(matches)} matches for tournament {tournament_id} "
            f"({fmt.value}), replacing {len(existing)}."
        )
        documents = [_match_dict(m) for m in matches]
        self.notifier.publish(
            BracketEvent(
                EventKind.BRACKET_GENERATED,
                tournament_id,
                matches=documents,
                message=f"The bracket for {tournament.get('name')} has been "
                f"generated with {len(documents)} matches.",
            )
        )
        return documents

    # Results

    def record_result(
        self, match_id: str, result: MatchResult, correction: bool = False
    ) -> RecordOutcome:
        """Commit a result, then progress the winner as a separate step.

        Validation failures abort before any write. A progression failure
        does not undo the committed result; it is returned on the outcome.
        """
        match = self._load_match(match_id)
        tournament = self.get_tournament(match.tournament_id)
        fmt = TournamentFormat.parse(tournament.get("format"))
        match_ref = self._match_ref(match_id)

        @firestore.transactional
        def _commit(transaction: Transaction, ref: DocumentReference) -> Match:
            snapshot = ref.get(transaction=transaction)
            data = snapshot.to_dict() if snapshot.exists else None
            if not data:
                raise MatchNotFound()
            current = Match.from_document(match_id, data)
            apply_result(current, result, fmt, correction=correction)
            document = current.to_document()
            transaction.update(
                ref,
                {
                    "result": document["result"],
                    "status": document["status"],
                    "winner": document["winner"],
                    "actualDuration": document["actualDuration"],
                    "resultHistory": document["resultHistory"],
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )
            return current

        progression_error = None
        with tournament_lock(match.tournament_id, self.lock_timeout):
            recorded = _commit(self.db.transaction(), match_ref)
            logger.info(
                f"Recorded result for match {match_id} "
                f"({recorded.bracket_position}), winner {recorded.winner}."
            )

            if fmt.is_elimination and recorded.winner:
                try:
                    self._progress(recorded)
                except AppError as e:
                    progression_error = e
                    logger.error(
                        f"Result for match {match_id} was recorded but progression "
                        f"failed: {e.message}"
                    )

        document = _match_dict(recorded)
        if progression_error is not None:
            self.notifier.publish(
                BracketEvent(
                    EventKind.PROGRESSION_FAILED,
                    match.tournament_id,
                    match=document,
                    message=f"The winner of {recorded.bracket_position} could not "
                    f"be advanced: {progression_error.message}",
                    metadata={"code": progression_error.code},
                )
            )
        self.notifier.publish(
            BracketEvent(EventKind.MATCH_RESULT_RECORDED, match.tournament_id, match=document)
        )
        return RecordOutcome(document, progression_error)

    # Progression

    def progress_winner(self, match_id: str) -> list[dict[str, Any]]:
        """Advance a completed match's winner; returns the downstream matches filled."""
        match = self._load_match(match_id)
        tournament = self.get_tournament(match.tournament_id)
        fmt = TournamentFormat.parse(tournament.get("format"))
        if not fmt.is_elimination:
            raise ValidationError("Only elimination matches progress winners.")
        if not match.is_completed or not match.winner:
            raise ValidationError("The match has no winner to progress.")

        with tournament_lock(match.tournament_id, self.lock_timeout):
            filled = self._progress(match)
        return [_match_dict(m) for m in filled]

    def _is_final(self, match: Match) -> bool:
        matches = self._tournament_matches(match.tournament_id)
        total_rounds = max((m.round for m in matches), default=match.round)
        return match.round >= total_rounds

    def _progress(self, completed: Match) -> list[Match]:
        """Place the winner downstream and cascade through bye shells.

        Each step is its own transaction, so a concurrent fill of the same
        slot is re-read and detected rather than overwritten.
        """
        filled: list[Match] = []
        current = completed
        while current.winner:
            if not current.next_match_id:
                if self._is_final(current):
                    break
                raise BracketConfigurationError(
                    f"Match {current.bracket_position} has no next match."
                )

            source = current

            @firestore.transactional
            def _step(
                transaction: Transaction, ref: DocumentReference
            ) -> tuple[Match, bool]:
                snapshot = ref.get(transaction=transaction)
                data = snapshot.to_dict() if snapshot.exists else None
                if not data:
                    raise BracketConfigurationError(
                        f"Next match of {source.bracket_position} does not exist."
                    )
                downstream = Match.from_document(ref.id, data)
                slot = place_winner(source, downstream)
                if slot is None:
                    return downstream, False
                updates: dict[str, Any] = {
                    f"participant{slot}": source.winner,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                }
                if downstream.is_completed:
                    updates["status"] = downstream.status.value
                    updates["winner"] = downstream.winner
                transaction.update(ref, updates)
                return downstream, True

            downstream, changed = _step(
                self.db.transaction(), self._match_ref(current.next_match_id)
            )
            if changed:
                filled.append(downstream)
                logger.info(
                    f"Advanced {source.winner} from {source.bracket_position} "
                    f"to {downstream.bracket_position}."
                )
            if not (downstream.is_bye and downstream.is_completed):
                break
            current = downstream
        return filled

    # Maintenance

    def update_status(self, match_id: str, status: str) -> dict[str, Any]:
        """Move a match between scheduled, in-progress, postponed and cancelled."""
        try:
            new_status = MatchStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown match status: {status}.") from e
        if new_status is MatchStatus.COMPLETED:
            raise ValidationError("Record a result to complete a match.")

        match = self._load_match(match_id)
        with tournament_lock(match.tournament_id, self.lock_timeout):
            match = self._load_match(match_id)
            if match.is_completed:
                raise ValidationError(
                    "Completed matches cannot change status. Submit a correction instead."
                )
            self._match_ref(match_id).update(
                {"status": new_status.value, "updatedAt": firestore.SERVER_TIMESTAMP}
            )
        match.status = new_status
        return _match_dict(match)

    def update_schedule(
        self,
        match_id: str,
        scheduled_date: Optional[datetime.datetime] = None,
        venue: Optional[str] = None,
        court: Optional[str] = None,
    ) -> dict[str, Any]:
        """Change a match's date, venue or court and notify both sides."""
        if scheduled_date is None and venue is None and court is None:
            raise ValidationError("Provide a new date, venue or court.")

        match = self._load_match(match_id)
        if match.is_completed:
            raise ValidationError("Completed matches cannot be rescheduled.")

        updates: dict[str, Any] = {}
        changes = []
        if scheduled_date is not None:
            scheduled_date = as_utc(scheduled_date)
            if scheduled_date != as_utc(match.scheduled_date):
                previous = match.scheduled_date
                changes.append(
                    f"Date changed from {previous:%Y-%m-%d %H:%M} to "
                    f"{scheduled_date:%Y-%m-%d %H:%M}"
                    if previous
                    else f"Date set to {scheduled_date:%Y-%m-%d %H:%M}"
                )
                updates["scheduledDate"] = scheduled_date
                match.scheduled_date = scheduled_date
        if venue is not None and venue != match.venue:
            changes.append(f"Venue changed to {venue}")
            updates["venue"] = venue
            match.venue = venue
        if court is not None and court != match.court:
            changes.append(f"Court changed to {court}")
            updates["court"] = court
            match.court = court

        document = _match_dict(match)
        if not updates:
            return document

        updates["updatedAt"] = firestore.SERVER_TIMESTAMP
        self._match_ref(match_id).update(updates)
        summary = "; ".join(changes)
        logger.info(f"Rescheduled match {match_id}: {summary}")
        self.notifier.publish(
            BracketEvent(
                EventKind.SCHEDULE_CHANGED,
                match.tournament_id,
                match=document,
                message=f"Match {match.bracket_position} updated. {summary}.",
                metadata={"changes": changes},
            )
        )
        return document

    # Views

    def get_fixture(self, match_id: str) -> dict[str, Any]:
        return _match_dict(self._load_match(match_id))

    def list_fixtures(
        self,
        tournament_id: str,
        round_number: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """List a tournament's matches, optionally filtered by round and status."""
        self.get_tournament(tournament_id)
        matches = self._tournament_matches(tournament_id)
        if round_number is not None:
            matches = [m for m in matches if m.round == round_number]
        if status:
            matches = [m for m in matches if m.status.value == status]
        return [_match_dict(m) for m in matches]

    def get_bracket(self, tournament_id: str) -> Bracket:
        """Group the tournament's matches by round."""
        tournament = self.get_tournament(tournament_id)
        fmt = TournamentFormat.parse(tournament.get("format"))
        matches = self._tournament_matches(tournament_id)
        total_rounds = max((m.round for m in matches), default=0)

        rounds = []
        for number in range(1, total_rounds + 1):
            rounds.append(
                {
                    "round": number,
                    "name": round_name(number, total_rounds, fmt),
                    "matches": [_match_dict(m) for m in matches if m.round == number],
                }
            )
        return {
            "tournamentId": tournament_id,
            "format": fmt.value,
            "totalRounds": total_rounds,
            "rounds": rounds,
        }

    def get_standings(self, tournament_id: str) -> list[dict[str, Any]]:
        """Compute the standings table from freshly read registrations and matches."""
        tournament = self.get_tournament(tournament_id)
        fmt = TournamentFormat.parse(tournament.get("format"))
        participants = self._participants(tournament_id)
        matches = self._tournament_matches(tournament_id)
        return [row.to_dict() for row in standings(fmt, participants, matches)]
