"""Result validation and winner derivation."""

from __future__ import annotations

import datetime
from typing import Any, Optional

from tourneydesk.errors import (
    DuplicateParticipantSlot,
    InvalidResult,
    ParticipantsIncomplete,
    ResultAlreadyRecorded,
)

from .models import Match, MatchResult, MatchStatus, TournamentFormat, as_utc

FORFEIT_SIDES = (1, 2)


def _check_score(value: Any, label: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidResult(f"{label} must be a non-negative integer.")


def validate_result(result: MatchResult) -> None:
    """Reject malformed scores before anything is written."""
    _check_score(result.participant1_score, "Participant 1 score")
    _check_score(result.participant2_score, "Participant 2 score")
    for number, set_score in enumerate(result.sets, start=1):
        _check_score(set_score.participant1_score, f"Set {number} participant 1 score")
        _check_score(set_score.participant2_score, f"Set {number} participant 2 score")
    if result.forfeit and result.forfeiting_side not in FORFEIT_SIDES:
        raise InvalidResult("A forfeit must name the forfeiting side (1 or 2).")
    if not result.forfeit and result.forfeiting_side is not None:
        raise InvalidResult("A forfeiting side was given without a forfeit.")


def derive_winner(match: Match, result: MatchResult) -> Optional[str]:
    """Return the winning participant id, or None for a draw.

    A forfeit awards the match to the side that did not forfeit. A set
    breakdown decides by sets won, otherwise the higher score wins.
    """
    if result.forfeit:
        return match.participant2 if result.forfeiting_side == 1 else match.participant1

    if result.sets:
        side1 = sum(1 for s in result.sets if s.participant1_score > s.participant2_score)
        side2 = sum(1 for s in result.sets if s.participant2_score > s.participant1_score)
    else:
        side1, side2 = result.participant1_score, result.participant2_score

    if side1 > side2:
        return match.participant1
    if side2 > side1:
        return match.participant2
    return None


def apply_result(
    match: Match,
    result: MatchResult,
    fmt: TournamentFormat,
    correction: bool = False,
    now: Optional[datetime.datetime] = None,
) -> Match:
    """Validate a result and apply it to the match in place.

    Raises:
        InvalidResult: Bad scores, a cancelled match, or a draw in elimination.
        ParticipantsIncomplete: A slot is still TBD.
        DuplicateParticipantSlot: Both slots hold the same participant.
        ResultAlreadyRecorded: The match is completed and this is no correction.
    """
    if match.status is MatchStatus.CANCELLED:
        raise InvalidResult("Cannot record a result for a cancelled match.")
    if not match.has_both_participants:
        raise ParticipantsIncomplete()
    if match.participant1 == match.participant2:
        raise DuplicateParticipantSlot()
    validate_result(result)
    if match.is_completed and match.result is not None and not correction:
        raise ResultAlreadyRecorded()

    winner = derive_winner(match, result)
    if winner is None and fmt.is_elimination:
        raise InvalidResult("Elimination matches cannot end in a draw.")

    if match.result is not None:
        match.result_history.append(match.result.to_document())

    completed_at = as_utc(result.completed_at) or now or datetime.datetime.now(
        datetime.timezone.utc
    )
    result.completed_at = completed_at
    match.result = result
    match.status = MatchStatus.COMPLETED
    match.winner = winner

    scheduled = as_utc(match.scheduled_date)
    if scheduled is not None:
        minutes = round((completed_at - scheduled).total_seconds() / 60)
        match.actual_duration = max(minutes, 0)
    return match
