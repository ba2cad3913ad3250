"""Tests for bracket generation."""

from __future__ import annotations

import datetime
import itertools
import unittest

from tourneydesk.bracket import (
    BracketGenerator,
    MatchStatus,
    Participant,
    ScheduleWindow,
    TournamentFormat,
    generate,
)
from tourneydesk.bracket.generator import elimination_round_sizes, round_label
from tourneydesk.errors import DuplicateParticipantSlot, InsufficientParticipants

START = datetime.datetime(2025, 6, 1, tzinfo=datetime.timezone.utc)


def _generator(**kwargs) -> BracketGenerator:
    counter = itertools.count(1)
    return BracketGenerator("t1", id_factory=lambda: f"m{next(counter)}", **kwargs)


class EliminationGeneratorTestCase(unittest.TestCase):
    """Single-elimination bracket structure."""

    def test_four_participants_link_into_final(self) -> None:
        """Two semi-finals feed slots 1 and 2 of the final."""
        matches = _generator().generate(
            ["A", "B", "C", "D"], TournamentFormat.SINGLE_ELIMINATION
        )
        self.assertEqual(len(matches), 3)
        sf1, sf2, final = matches

        self.assertEqual((sf1.participant1, sf1.participant2), ("A", "B"))
        self.assertEqual((sf2.participant1, sf2.participant2), ("C", "D"))
        self.assertEqual(
            [m.bracket_position for m in matches], ["SF1", "SF2", "F1"]
        )
        self.assertEqual([m.match_number for m in matches], [1, 2, 3])
        self.assertEqual((sf1.next_match_id, sf1.next_match_slot), (final.id, 1))
        self.assertEqual((sf2.next_match_id, sf2.next_match_slot), (final.id, 2))
        self.assertEqual(final.previous_matches, [sf1.id, sf2.id])
        self.assertIsNone(final.next_match_id)
        self.assertIsNone(final.participant1)
        self.assertIsNone(final.participant2)
        self.assertFalse(final.is_bye)

    def test_five_participants_bye_cascades(self) -> None:
        """The odd participant gets a bye that carries through the bye shell."""
        matches = _generator().generate(
            ["A", "B", "C", "D", "E"], TournamentFormat.SINGLE_ELIMINATION
        )
        self.assertEqual(len(matches), 6)
        self.assertEqual(max(m.round for m in matches), 3)

        round1 = [m for m in matches if m.round == 1]
        concrete = [m for m in round1 if not m.is_bye]
        byes = [m for m in round1 if m.is_bye]
        self.assertEqual(len(concrete), 2)
        self.assertEqual(len(byes), 1)

        bye = byes[0]
        self.assertEqual(bye.participant1, "E")
        self.assertIsNone(bye.participant2)
        self.assertEqual(bye.status, MatchStatus.COMPLETED)
        self.assertEqual(bye.winner, "E")

        by_id = {m.id: m for m in matches}
        shell = by_id[bye.next_match_id]
        self.assertTrue(shell.is_bye)
        self.assertEqual(shell.winner, "E")
        self.assertEqual(shell.status, MatchStatus.COMPLETED)

        final = by_id[shell.next_match_id]
        self.assertEqual(final.bracket_position, "F1")
        self.assertEqual(final.participant2, "E")
        self.assertIsNone(final.participant1)

    def test_three_participants(self) -> None:
        matches = _generator().generate(["A", "B", "C"], TournamentFormat.SINGLE_ELIMINATION)
        self.assertEqual(len(matches), 3)
        final = matches[-1]
        self.assertEqual(final.participant2, "C")
        self.assertEqual(final.previous_matches, [matches[0].id, matches[1].id])

    def test_two_participants_single_final(self) -> None:
        matches = _generator().generate(["A", "B"], TournamentFormat.SINGLE_ELIMINATION)
        self.assertEqual(len(matches), 1)
        self.assertEqual(matches[0].bracket_position, "F1")
        self.assertIsNone(matches[0].next_match_id)

    def test_every_non_final_match_has_a_link(self) -> None:
        for n in range(2, 18):
            with self.subTest(n=n):
                ids = [f"p{i}" for i in range(n)]
                matches = _generator().generate(ids, TournamentFormat.SINGLE_ELIMINATION)
                total_rounds = max(m.round for m in matches)
                for match in matches:
                    if match.round < total_rounds:
                        self.assertIsNotNone(match.next_match_id)
                        self.assertIn(match.next_match_slot, (1, 2))
                self.assertEqual(
                    [m.match_number for m in matches], list(range(1, len(matches) + 1))
                )
                placed = [
                    p for m in matches if m.round == 1
                    for p in (m.participant1, m.participant2) if p
                ]
                self.assertEqual(placed, ids)

    def test_rounds_are_spaced_and_clamped(self) -> None:
        """Round r is scheduled (r-1) * spacing days after the start, up to the end."""
        window = ScheduleWindow(START, START + datetime.timedelta(days=4))
        matches = _generator().generate(
            [f"p{i}" for i in range(8)], TournamentFormat.SINGLE_ELIMINATION, window
        )
        dates = {m.round: m.scheduled_date for m in matches}
        self.assertEqual(dates[1], START)
        self.assertEqual(dates[2], START + datetime.timedelta(days=3))
        self.assertEqual(dates[3], START + datetime.timedelta(days=4))

    def test_round_helpers(self) -> None:
        self.assertEqual(elimination_round_sizes(5), [3, 2, 1])
        self.assertEqual(elimination_round_sizes(8), [4, 2, 1])
        self.assertEqual(round_label(1, 4, 0), "R1M1")
        self.assertEqual(round_label(2, 4, 1), "QF2")
        self.assertEqual(round_label(4, 4, 0), "F1")


class RoundRobinGeneratorTestCase(unittest.TestCase):
    """Round-robin pairing and scheduling."""

    def test_four_participants_six_unique_pairs(self) -> None:
        matches = _generator().generate(["A", "B", "C", "D"], TournamentFormat.ROUND_ROBIN)
        self.assertEqual(len(matches), 6)
        pairs = {frozenset((m.participant1, m.participant2)) for m in matches}
        self.assertEqual(len(pairs), 6)
        self.assertEqual(
            [(m.participant1, m.participant2) for m in matches],
            [("A", "B"), ("A", "C"), ("A", "D"), ("B", "C"), ("B", "D"), ("C", "D")],
        )
        self.assertTrue(all(m.round == 1 for m in matches))
        self.assertEqual(
            [m.bracket_position for m in matches], [f"RR{i}" for i in range(1, 7)]
        )

    def test_matches_per_day(self) -> None:
        window = ScheduleWindow(START, START + datetime.timedelta(days=2))
        matches = _generator().generate(
            ["A", "B", "C", "D"], TournamentFormat.ROUND_ROBIN, window
        )
        offsets = [(m.scheduled_date - START).days for m in matches]
        self.assertEqual(offsets, [0, 0, 1, 1, 2, 2])

    def test_short_window_raises_daily_throughput(self) -> None:
        window = ScheduleWindow(START, START)
        matches = _generator().generate(
            ["A", "B", "C", "D"], TournamentFormat.ROUND_ROBIN, window
        )
        self.assertTrue(all(m.scheduled_date == START for m in matches))

    def test_without_window_leaves_dates_unset(self) -> None:
        matches = generate(
            [Participant("A"), Participant("B"), Participant("C")],
            TournamentFormat.ROUND_ROBIN,
        )
        self.assertEqual(len(matches), 3)
        self.assertTrue(all(m.scheduled_date is None for m in matches))


class GeneratorPreconditionsTestCase(unittest.TestCase):
    def test_fewer_than_two_participants(self) -> None:
        for fmt in TournamentFormat:
            with self.subTest(fmt=fmt), self.assertRaises(InsufficientParticipants):
                _generator().generate(["A"], fmt)

    def test_duplicate_participants(self) -> None:
        with self.assertRaises(DuplicateParticipantSlot):
            _generator().generate(["A", "B", "A"], TournamentFormat.ROUND_ROBIN)


if __name__ == "__main__":
    unittest.main()
