"""Winner progression between linked elimination matches."""

from __future__ import annotations

from typing import Optional

from tourneydesk.errors import (
    BracketConfigurationError,
    DuplicateParticipantSlot,
    ProgressionConflict,
    ValidationError,
)

from .models import Match, MatchStatus


def complete_bye(match: Match) -> None:
    """Auto-complete a bye with its sole occupant as winner."""
    occupants = [p for p in (match.participant1, match.participant2) if p]
    if len(occupants) != 1:
        raise BracketConfigurationError(
            f"Bye {match.bracket_position} must have exactly one participant."
        )
    match.status = MatchStatus.COMPLETED
    match.winner = occupants[0]


def target_slot(completed: Match, downstream: Match) -> Optional[int]:
    """Return the downstream slot the winner belongs in.

    Returns None when the winner already sits in the downstream match, which
    makes repeated progression a no-op.

    Raises:
        ProgressionConflict: If the slot holds a different participant.
        DuplicateParticipantSlot: If the winner sits in the other slot.
    """
    if completed.winner is None:
        raise ValidationError(
            f"Match {completed.bracket_position} has no winner to progress."
        )
    if completed.next_match_id != downstream.id:
        raise BracketConfigurationError(
            f"Match {completed.bracket_position} does not feed "
            f"{downstream.bracket_position}."
        )

    slot = completed.next_match_slot
    if slot is not None:
        if downstream.occupant(slot) == completed.winner:
            return None
        if downstream.occupant(3 - slot) == completed.winner:
            raise DuplicateParticipantSlot(
                f"Winner of {completed.bracket_position} already holds the other "
                f"slot of {downstream.bracket_position}."
            )
    elif completed.winner in (downstream.participant1, downstream.participant2):
        return None
    elif downstream.participant1 is None:
        slot = 1
    elif downstream.participant2 is None:
        slot = 2
    else:
        raise ProgressionConflict(
            f"Match {downstream.bracket_position} has no open slot for the "
            f"winner of {completed.bracket_position}."
        )

    if downstream.occupant(slot) is not None:
        raise ProgressionConflict(
            f"Slot {slot} of match {downstream.bracket_position} already holds "
            f"another participant."
        )
    return slot


def place_winner(completed: Match, downstream: Match) -> Optional[int]:
    """Fill the downstream slot with the winner; returns the slot or None.

    A downstream bye shell completes as soon as its single occupant arrives.
    """
    slot = target_slot(completed, downstream)
    if slot is None:
        return None
    downstream.set_occupant(slot, completed.winner)
    if downstream.is_bye and len(downstream.previous_matches) <= 1:
        complete_bye(downstream)
    return slot
