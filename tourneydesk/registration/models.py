"""Data models for the registration blueprint."""

from __future__ import annotations

from typing import Any, Optional, TypedDict

from tourneydesk.core.types import FirestoreDocument


class EmergencyContact(TypedDict, total=False):
    name: str
    phone: str
    relationship: str


class Registration(FirestoreDocument, total=False):
    """A registration document in Firestore."""

    tournamentId: str
    type: str  # individual/team
    captainId: str
    captainName: str
    captainEmail: str
    teamName: Optional[str]
    teamMembers: list[str]
    status: str  # pending/approved/rejected
    paymentReference: str
    paymentStatus: str
    emergencyContact: EmergencyContact
    notes: Optional[str]
    reviewNotes: Optional[str]
    registrationDate: Any
    reviewedAt: Any
