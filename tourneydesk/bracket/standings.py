"""Standings tables derived from completed matches."""

from __future__ import annotations

from collections.abc import Iterable

from tourneydesk.constants import POINTS_DRAW, POINTS_LOSS, POINTS_WIN

from .models import (
    Match,
    MatchStatus,
    Participant,
    RegistrationStatus,
    Standing,
    TournamentFormat,
)


def _initial_table(participants: Iterable[Participant]) -> dict[str, Standing]:
    table: dict[str, Standing] = {}
    for participant in participants:
        if participant.status is not RegistrationStatus.APPROVED:
            continue
        if participant.id not in table:
            table[participant.id] = Standing(
                participant_id=participant.id, name=participant.name
            )
    return table


def _scored_matches(matches: Iterable[Match], table: dict[str, Standing]) -> list[Match]:
    return [
        m
        for m in matches
        if m.status is MatchStatus.COMPLETED
        and m.result is not None
        and m.participant1 in table
        and m.participant2 in table
    ]


def _assign_positions(rows: list[Standing]) -> list[Standing]:
    for index, row in enumerate(rows):
        row.position = index + 1
    return rows


def round_robin_standings(
    participants: Iterable[Participant], matches: Iterable[Match]
) -> list[Standing]:
    """Points table: 3 for a win, 1 for a draw, sorted by points, GD, GF."""
    table = _initial_table(participants)
    if not table:
        return []

    for match in _scored_matches(matches, table):
        home = table[match.participant1]
        away = table[match.participant2]
        score1 = match.result.participant1_score
        score2 = match.result.participant2_score

        home.matches_played += 1
        away.matches_played += 1
        home.goals_for += score1
        home.goals_against += score2
        away.goals_for += score2
        away.goals_against += score1

        if match.winner == match.participant1:
            home.wins += 1
            home.points += POINTS_WIN
            away.losses += 1
            away.points += POINTS_LOSS
        elif match.winner == match.participant2:
            away.wins += 1
            away.points += POINTS_WIN
            home.losses += 1
            home.points += POINTS_LOSS
        else:
            home.draws += 1
            away.draws += 1
            home.points += POINTS_DRAW
            away.points += POINTS_DRAW

    # sorted() is stable, so residual ties keep the participants' input order
    rows = sorted(
        table.values(),
        key=lambda s: (-s.points, -s.goal_difference, -s.goals_for),
    )
    return _assign_positions(rows)


def elimination_standings(
    participants: Iterable[Participant], matches: Iterable[Match]
) -> list[Standing]:
    """Survival ranking: most wins first, then deepest run (matches played)."""
    table = _initial_table(participants)
    if not table:
        return []

    for match in _scored_matches(matches, table):
        home = table[match.participant1]
        away = table[match.participant2]
        home.matches_played += 1
        away.matches_played += 1

        if match.winner == match.participant1:
            home.wins += 1
            away.losses += 1
            away.eliminated = True
        elif match.winner == match.participant2:
            away.wins += 1
            home.losses += 1
            home.eliminated = True

    rows = sorted(table.values(), key=lambda s: (-s.wins, -s.matches_played))
    return _assign_positions(rows)


def standings(
    fmt: TournamentFormat,
    participants: Iterable[Participant],
    matches: Iterable[Match],
) -> list[Standing]:
    """Rank participants for the tournament's format."""
    if fmt is TournamentFormat.ROUND_ROBIN:
        return round_robin_standings(participants, matches)
    return elimination_standings(participants, matches)
