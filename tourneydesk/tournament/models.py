"""Data models for the tournament blueprint."""

from __future__ import annotations

from typing import Any, Optional

from tourneydesk.core.types import FirestoreDocument


class Tournament(FirestoreDocument, total=False):
    """A tournament document in Firestore."""

    name: str
    sport: str
    format: str
    startDate: Any
    endDate: Any
    registrationDeadline: Any
    venue: str
    maxParticipants: int
    currentParticipants: int
    entryFee: float
    description: Optional[str]
    rules: Optional[str]
    status: str
    organizer_id: str

    # Calculated fields
    podium: list[dict[str, Any]]
