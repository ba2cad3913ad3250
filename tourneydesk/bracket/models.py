"""Domain models for the bracket engine.

Plain dataclasses with no storage dependencies. Each model converts itself to
and from the camelCase document shape stored in Firestore.
"""

from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass, field
from typing import Any, Optional

from tourneydesk.errors import ValidationError


class TournamentFormat(str, enum.Enum):
    """Supported bracket formats."""

    SINGLE_ELIMINATION = "single-elimination"
    ROUND_ROBIN = "round-robin"

    @property
    def is_elimination(self) -> bool:
        return self is TournamentFormat.SINGLE_ELIMINATION

    @classmethod
    def parse(cls, value: Any) -> TournamentFormat:
        """Convert a stored or submitted value, rejecting unknown formats."""
        try:
            return cls(value)
        except ValueError as e:
            raise ValidationError(f"Unsupported tournament format: {value}.") from e


class TournamentStatus(str, enum.Enum):
    DRAFT = "draft"
    OPEN = "open"
    FULL = "full"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class MatchStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"


class RegistrationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def as_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    """Attach UTC to naive datetimes so they compare with stored timestamps."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=datetime.timezone.utc)


@dataclass
class Participant:
    """An approved (or candidate) registration placed into a bracket."""

    id: str
    name: str = ""
    status: RegistrationStatus = RegistrationStatus.APPROVED

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> Participant:
        name = data.get("teamName") or data.get("captainName") or doc_id
        return cls(
            id=doc_id,
            name=name,
            status=RegistrationStatus(data.get("status", "pending")),
        )


@dataclass(frozen=True)
class ScheduleWindow:
    """The tournament's date range used to spread matches over days."""

    start: Optional[datetime.datetime] = None
    end: Optional[datetime.datetime] = None

    @property
    def days(self) -> Optional[int]:
        if self.start is None or self.end is None:
            return None
        return max((self.end.date() - self.start.date()).days + 1, 1)

    def day(self, offset: int) -> Optional[datetime.datetime]:
        """Return the start date shifted by offset days, clamped to the end."""
        if self.start is None:
            return None
        scheduled = as_utc(self.start) + datetime.timedelta(days=offset)
        end = as_utc(self.end)
        if end is not None and scheduled > end:
            return end
        return scheduled


@dataclass
class SetScore:
    participant1_score: int
    participant2_score: int


@dataclass
class MatchResult:
    """A submitted or stored match score."""

    participant1_score: int
    participant2_score: int
    completed_at: Optional[datetime.datetime] = None
    notes: Optional[str] = None
    sets: list[SetScore] = field(default_factory=list)
    overtime: bool = False
    forfeit: bool = False
    forfeiting_side: Optional[int] = None

    def to_document(self) -> dict[str, Any]:
        return {
            "participant1Score": self.participant1_score,
            "participant2Score": self.participant2_score,
            "completedAt": self.completed_at,
            "notes": self.notes,
            "sets": [
                {
                    "participant1Score": s.participant1_score,
                    "participant2Score": s.participant2_score,
                }
                for s in self.sets
            ],
            "overtime": self.overtime,
            "forfeit": self.forfeit,
            "forfeitingSide": self.forfeiting_side,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> MatchResult:
        return cls(
            participant1_score=data.get("participant1Score", 0),
            participant2_score=data.get("participant2Score", 0),
            completed_at=data.get("completedAt"),
            notes=data.get("notes"),
            sets=[
                SetScore(s.get("participant1Score", 0), s.get("participant2Score", 0))
                for s in data.get("sets") or []
            ],
            overtime=bool(data.get("overtime", False)),
            forfeit=bool(data.get("forfeit", False)),
            forfeiting_side=data.get("forfeitingSide"),
        )


@dataclass
class Match:
    """A single contest between two participant slots.

    A slot holding None is TBD, waiting for an upstream winner. A bye has at
    most one occupant and auto-advances it.
    """

    id: str
    tournament_id: str
    round: int
    match_number: int
    bracket_position: str
    participant1: Optional[str] = None
    participant2: Optional[str] = None
    scheduled_date: Optional[datetime.datetime] = None
    venue: Optional[str] = None
    court: Optional[str] = None
    status: MatchStatus = MatchStatus.SCHEDULED
    result: Optional[MatchResult] = None
    winner: Optional[str] = None
    next_match_id: Optional[str] = None
    next_match_slot: Optional[int] = None
    previous_matches: list[str] = field(default_factory=list)
    is_bye: bool = False
    estimated_duration: int = 60
    actual_duration: Optional[int] = None
    result_history: list[dict[str, Any]] = field(default_factory=list)

    @property
    def has_both_participants(self) -> bool:
        return self.participant1 is not None and self.participant2 is not None

    @property
    def is_completed(self) -> bool:
        return self.status is MatchStatus.COMPLETED

    def occupant(self, slot: int) -> Optional[str]:
        if slot == 1:
            return self.participant1
        if slot == 2:  # noqa: PLR2004
            return self.participant2
        raise ValueError(f"Invalid slot: {slot}")

    def set_occupant(self, slot: int, participant_id: str) -> None:
        if slot == 1:
            self.participant1 = participant_id
        elif slot == 2:  # noqa: PLR2004
            self.participant2 = participant_id
        else:
            raise ValueError(f"Invalid slot: {slot}")

    def to_document(self) -> dict[str, Any]:
        """Serialize to the Firestore match document shape."""
        return {
            "tournamentId": self.tournament_id,
            "round": self.round,
            "matchNumber": self.match_number,
            "bracketPosition": self.bracket_position,
            "participant1": self.participant1,
            "participant2": self.participant2,
            "scheduledDate": self.scheduled_date,
            "venue": self.venue,
            "court": self.court,
            "status": self.status.value,
            "result": self.result.to_document() if self.result else None,
            "winner": self.winner,
            "nextMatchId": self.next_match_id,
            "nextMatchSlot": self.next_match_slot,
            "previousMatches": list(self.previous_matches),
            "isBye": self.is_bye,
            "estimatedDuration": self.estimated_duration,
            "actualDuration": self.actual_duration,
            "resultHistory": list(self.result_history),
        }

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> Match:
        """Build a match from a Firestore document."""
        result = data.get("result")
        return cls(
            id=doc_id,
            tournament_id=data.get("tournamentId", ""),
            round=int(data.get("round", 1)),
            match_number=int(data.get("matchNumber", 1)),
            bracket_position=data.get("bracketPosition", ""),
            participant1=data.get("participant1"),
            participant2=data.get("participant2"),
            scheduled_date=data.get("scheduledDate"),
            venue=data.get("venue"),
            court=data.get("court"),
            status=MatchStatus(data.get("status", MatchStatus.SCHEDULED.value)),
            result=MatchResult.from_document(result) if result else None,
            winner=data.get("winner"),
            next_match_id=data.get("nextMatchId"),
            next_match_slot=data.get("nextMatchSlot"),
            previous_matches=list(data.get("previousMatches") or []),
            is_bye=bool(data.get("isBye", False)),
            estimated_duration=int(data.get("estimatedDuration") or 60),
            actual_duration=data.get("actualDuration"),
            result_history=list(data.get("resultHistory") or []),
        )


@dataclass
class Standing:
    """One row of a standings table."""

    participant_id: str
    name: str = ""
    position: int = 0
    matches_played: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    points: int = 0
    goals_for: int = 0
    goals_against: int = 0
    eliminated: bool = False

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @property
    def win_percentage(self) -> float:
        if not self.matches_played:
            return 0.0
        return self.wins / self.matches_played * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "participantId": self.participant_id,
            "name": self.name,
            "position": self.position,
            "matchesPlayed": self.matches_played,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "points": self.points,
            "goalsFor": self.goals_for,
            "goalsAgainst": self.goals_against,
            "goalDifference": self.goal_difference,
            "winPercentage": round(self.win_percentage, 2),
            "eliminated": self.eliminated,
        }
