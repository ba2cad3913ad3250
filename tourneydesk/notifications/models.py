"""Data models for the notifications blueprint."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional, TypedDict

from tourneydesk.core.types import FirestoreDocument


class EventKind(str, enum.Enum):
    """Events emitted after a successful bracket mutation."""

    BRACKET_GENERATED = "bracket-generated"
    MATCH_RESULT_RECORDED = "match-result-recorded"
    SCHEDULE_CHANGED = "schedule-changed"
    PROGRESSION_FAILED = "progression-failed"


@dataclass
class BracketEvent:
    """A bracket change to broadcast.

    bracket-generated carries the full match set in `matches`; the other
    kinds carry the single changed match in `match`.
    """

    kind: EventKind
    tournament_id: str
    matches: list[dict[str, Any]] = field(default_factory=list)
    match: Optional[dict[str, Any]] = None
    message: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


class Notification(FirestoreDocument, total=False):
    """A notification document in Firestore."""

    recipient: str
    type: str
    title: str
    message: str
    priority: str
    actionUrl: str
    actionText: str
    relatedId: str
    relatedModel: str
    metadata: dict[str, Any]
    createdBy: str
    read: bool
    readAt: Any


class Recipient(TypedDict):
    user_id: str
    email: Optional[str]
    name: str
    registration_id: str
