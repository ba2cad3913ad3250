"""Tests for the standings calculator."""

from __future__ import annotations

import unittest

from tourneydesk.bracket import (
    Match,
    MatchResult,
    MatchStatus,
    Participant,
    RegistrationStatus,
    TournamentFormat,
    standings,
)


def _played(
    match_id: str, p1: str, p2: str, s1: int, s2: int, winner: str | None
) -> Match:
    return Match(
        id=match_id,
        tournament_id="t1",
        round=1,
        match_number=1,
        bracket_position="RR1",
        participant1=p1,
        participant2=p2,
        status=MatchStatus.COMPLETED,
        result=MatchResult(s1, s2),
        winner=winner,
    )


class RoundRobinStandingsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.participants = [
            Participant("A", "Alpha"),
            Participant("B", "Bravo"),
            Participant("C", "Charlie"),
        ]

    def test_points_then_goal_difference_then_goals_for(self) -> None:
        """A 3-1 B, A 2-2 C, B 0-2 C: A and C level on points and difference, A scored more."""
        matches = [
            _played("m1", "A", "B", 3, 1, "A"),
            _played("m2", "A", "C", 2, 2, None),
            _played("m3", "B", "C", 0, 2, "C"),
        ]
        rows = standings(TournamentFormat.ROUND_ROBIN, self.participants, matches)
        self.assertEqual([r.participant_id for r in rows], ["A", "C", "B"])
        self.assertEqual([r.position for r in rows], [1, 2, 3])

        a, c, b = rows
        self.assertEqual((a.points, a.goal_difference, a.goals_for), (4, 2, 5))
        self.assertEqual((c.points, c.goal_difference, c.goals_for), (4, 2, 4))
        self.assertEqual((b.points, b.wins, b.draws, b.losses), (0, 0, 0, 2))

    def test_standings_are_deterministic(self) -> None:
        matches = [
            _played("m1", "A", "B", 3, 1, "A"),
            _played("m2", "B", "C", 1, 1, None),
        ]
        first = standings(TournamentFormat.ROUND_ROBIN, self.participants, matches)
        second = standings(TournamentFormat.ROUND_ROBIN, self.participants, matches)
        self.assertEqual(
            [r.to_dict() for r in first], [r.to_dict() for r in second]
        )

    def test_unplayed_and_unranked_are_ignored(self) -> None:
        participants = self.participants + [
            Participant("D", "Delta", RegistrationStatus.PENDING)
        ]
        scheduled = _played("m1", "A", "B", 0, 0, None)
        scheduled.status = MatchStatus.SCHEDULED
        matches = [scheduled, _played("m2", "A", "D", 5, 0, "A")]

        rows = standings(TournamentFormat.ROUND_ROBIN, participants, matches)
        self.assertEqual([r.participant_id for r in rows], ["A", "B", "C"])
        self.assertTrue(all(r.matches_played == 0 for r in rows))

    def test_residual_ties_keep_input_order(self) -> None:
        rows = standings(TournamentFormat.ROUND_ROBIN, self.participants, [])
        self.assertEqual([r.participant_id for r in rows], ["A", "B", "C"])

    def test_no_approved_participants(self) -> None:
        pending = [Participant("A", status=RegistrationStatus.PENDING)]
        self.assertEqual(standings(TournamentFormat.ROUND_ROBIN, pending, []), [])

    def test_to_dict(self) -> None:
        rows = standings(
            TournamentFormat.ROUND_ROBIN,
            self.participants,
            [_played("m1", "A", "B", 3, 1, "A")],
        )
        row = rows[0].to_dict()
        self.assertEqual(row["participantId"], "A")
        self.assertEqual(row["goalDifference"], 2)
        self.assertEqual(row["winPercentage"], 100.0)


class EliminationStandingsTestCase(unittest.TestCase):
    def test_survival_ranking(self) -> None:
        participants = [Participant(p) for p in "ABCD"]
        matches = [
            _played("sf1", "A", "B", 2, 0, "A"),
            _played("sf2", "C", "D", 0, 1, "D"),
            _played("f1", "A", "D", 3, 2, "A"),
        ]
        rows = standings(TournamentFormat.SINGLE_ELIMINATION, participants, matches)
        self.assertEqual([r.participant_id for r in rows], ["A", "D", "B", "C"])
        self.assertFalse(rows[0].eliminated)
        self.assertTrue(all(r.eliminated for r in rows[1:]))
        self.assertEqual(rows[0].wins, 2)


if __name__ == "__main__":
    unittest.main()
