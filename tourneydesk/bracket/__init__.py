"""
Bracket engine

Bracket generation, result recording, winner progression and standings.
This package contains no storage or Flask dependencies.
"""

from .generator import BracketGenerator, generate
from .models import (
    Match,
    MatchResult,
    MatchStatus,
    Participant,
    RegistrationStatus,
    ScheduleWindow,
    SetScore,
    Standing,
    TournamentFormat,
    TournamentStatus,
)
from .progression import place_winner, target_slot
from .results import apply_result, derive_winner
from .standings import standings

__all__ = [
    "BracketGenerator",
    "generate",
    "Match",
    "MatchResult",
    "MatchStatus",
    "Participant",
    "RegistrationStatus",
    "ScheduleWindow",
    "SetScore",
    "Standing",
    "TournamentFormat",
    "TournamentStatus",
    "place_winner",
    "target_slot",
    "apply_result",
    "derive_winner",
    "standings",
]
