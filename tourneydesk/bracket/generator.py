"""Bracket generation for round-robin and single-elimination tournaments."""

from __future__ import annotations

import itertools
import math
import uuid
from collections.abc import Callable, Sequence
from typing import Optional

from tourneydesk.constants import (
    DEFAULT_MATCH_DURATION,
    MATCHES_PER_DAY,
    ROUND_SPACING_DAYS,
)
from tourneydesk.errors import DuplicateParticipantSlot, InsufficientParticipants

from .models import Match, MatchStatus, Participant, ScheduleWindow, TournamentFormat
from .progression import complete_bye, place_winner

MIN_PARTICIPANTS = 2


def _default_id() -> str:
    return uuid.uuid4().hex


def _participant_ids(participants: Sequence[Participant | str]) -> list[str]:
    """Normalize participants to ids and enforce the generation preconditions."""
    ids = [p if isinstance(p, str) else p.id for p in participants]
    if len(ids) < MIN_PARTICIPANTS:
        raise InsufficientParticipants()
    if len(set(ids)) != len(ids):
        raise DuplicateParticipantSlot(
            "A participant can only be placed in the bracket once."
        )
    return ids


def round_label(round_number: int, total_rounds: int, index: int) -> str:
    """Return the descriptive bracket position, e.g. QF1, SF2, F1."""
    from_end = total_rounds - round_number
    if from_end == 0:
        return f"F{index + 1}"
    if from_end == 1:
        return f"SF{index + 1}"
    if from_end == 2:  # noqa: PLR2004
        return f"QF{index + 1}"
    return f"R{round_number}M{index + 1}"


def elimination_round_sizes(participant_count: int) -> list[int]:
    """Match counts per round; there are ceil(log2(n)) rounds."""
    total_rounds = math.ceil(math.log2(participant_count))
    sizes = []
    count = math.ceil(participant_count / 2)
    for _ in range(total_rounds):
        sizes.append(count)
        count = math.ceil(count / 2)
    return sizes


class BracketGenerator:
    """Turns an ordered list of approved participants into a match set.

    Usage:
        generator = BracketGenerator(tournament_id, id_factory=new_doc_id)
        matches = generator.generate(participants, TournamentFormat.ROUND_ROBIN, window)
    """

    def __init__(
        self,
        tournament_id: str,
        id_factory: Optional[Callable[[], str]] = None,
        matches_per_day: int = MATCHES_PER_DAY,
        round_spacing_days: int = ROUND_SPACING_DAYS,
        venue: Optional[str] = None,
        estimated_duration: int = DEFAULT_MATCH_DURATION,
    ) -> None:
        self.tournament_id = tournament_id
        self.id_factory = id_factory or _default_id
        self.matches_per_day = max(matches_per_day, 1)
        self.round_spacing_days = round_spacing_days
        self.venue = venue
        self.estimated_duration = estimated_duration

    def generate(
        self,
        participants: Sequence[Participant | str],
        fmt: TournamentFormat,
        window: Optional[ScheduleWindow] = None,
    ) -> list[Match]:
        """Generate the full match list, numbered from 1 in produced order."""
        ids = _participant_ids(participants)
        window = window or ScheduleWindow()
        if fmt is TournamentFormat.ROUND_ROBIN:
            return self._round_robin(ids, window)
        return self._single_elimination(ids, window)

    def _new_match(
        self, round_number: int, match_number: int, position: str
    ) -> Match:
        return Match(
            id=self.id_factory(),
            tournament_id=self.tournament_id,
            round=round_number,
            match_number=match_number,
            bracket_position=position,
            venue=self.venue,
            estimated_duration=self.estimated_duration,
        )

    def _matches_per_day(self, total: int, window: ScheduleWindow) -> int:
        # A short window raises the daily throughput so every match fits.
        days = window.days
        if days is None:
            return self.matches_per_day
        return max(self.matches_per_day, math.ceil(total / days))

    def _round_robin(self, ids: list[str], window: ScheduleWindow) -> list[Match]:
        pairs = list(itertools.combinations(ids, 2))
        per_day = self._matches_per_day(len(pairs), window)

        matches = []
        for index, (p1, p2) in enumerate(pairs):
            match = self._new_match(1, index + 1, f"RR{index + 1}")
            match.participant1 = p1
            match.participant2 = p2
            match.scheduled_date = window.day(index // per_day)
            matches.append(match)
        return matches

    def _single_elimination(
        self, ids: list[str], window: ScheduleWindow
    ) -> list[Match]:
        sizes = elimination_round_sizes(len(ids))
        total_rounds = len(sizes)

        rounds: list[list[Match]] = []
        match_number = 1
        for round_index, size in enumerate(sizes):
            round_number = round_index + 1
            scheduled = window.day(round_index * self.round_spacing_days)
            current = []
            for i in range(size):
                match = self._new_match(
                    round_number, match_number, round_label(round_number, total_rounds, i)
                )
                match.scheduled_date = scheduled
                match_number += 1
                current.append(match)
            rounds.append(current)

        # Round 1 is paired in input order; a leftover participant gets a bye.
        for i, match in enumerate(rounds[0]):
            match.participant1 = ids[2 * i]
            if 2 * i + 1 < len(ids):
                match.participant2 = ids[2 * i + 1]
            else:
                match.is_bye = True
                complete_bye(match)

        # Feeder k of a round goes to match k // 2 of the next one, slot k % 2 + 1.
        for previous, following in itertools.pairwise(rounds):
            for k, feeder in enumerate(previous):
                target = following[k // 2]
                feeder.next_match_id = target.id
                feeder.next_match_slot = k % 2 + 1
                target.previous_matches.append(feeder.id)
            for target in following:
                if len(target.previous_matches) == 1:
                    target.is_bye = True

        matches = [match for current in rounds for match in current]
        by_id = {match.id: match for match in matches}
        for match in matches:
            if (
                match.status is MatchStatus.COMPLETED
                and match.winner
                and match.next_match_id
            ):
                place_winner(match, by_id[match.next_match_id])
        return matches


def generate(
    participants: Sequence[Participant | str],
    fmt: TournamentFormat,
    window: Optional[ScheduleWindow] = None,
    tournament_id: str = "",
    **options,
) -> list[Match]:
    """Generate a bracket without keeping a generator around."""
    return BracketGenerator(tournament_id, **options).generate(participants, fmt, window)
