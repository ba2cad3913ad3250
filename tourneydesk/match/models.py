"""Data models for the fixtures blueprint."""

from __future__ import annotations

from typing import Any, Optional, TypedDict

from tourneydesk.core.types import FirestoreDocument


class Score(TypedDict, total=False):
    """A per-set score."""

    participant1Score: int
    participant2Score: int


class Result(Score, total=False):
    """The result map embedded in a match document."""

    completedAt: Any
    notes: Optional[str]
    sets: list[Score]
    overtime: bool
    forfeit: bool
    forfeitingSide: Optional[int]


class Match(FirestoreDocument, total=False):
    """A match document in Firestore."""

    tournamentId: str
    round: int
    matchNumber: int
    bracketPosition: str
    participant1: Optional[str]
    participant2: Optional[str]
    scheduledDate: Any
    venue: Optional[str]
    court: Optional[str]
    status: str
    result: Optional[Result]
    winner: Optional[str]
    nextMatchId: Optional[str]
    nextMatchSlot: Optional[int]
    previousMatches: list[str]
    isBye: bool
    estimatedDuration: int
    actualDuration: Optional[int]
    resultHistory: list[Result]


class BracketRound(TypedDict):
    """One column of the bracket view."""

    round: int
    name: str
    matches: list[Match]


class Bracket(TypedDict):
    tournamentId: str
    format: str
    totalRounds: int
    rounds: list[BracketRound]
