"""Tests for the fixtures blueprint using mockfirestore."""

from __future__ import annotations

import unittest
from unittest.mock import patch

from tests.helpers import PLAYER_ID, ApiTestCase


class FixtureRoutesTestCase(ApiTestCase):
    """Bracket generation, result recording and scheduling over HTTP."""

    def setUp(self) -> None:
        super().setUp()
        # Keep notification delivery off the mail server
        mail_patcher = patch("tourneydesk.notifications.services.send_email")
        self.mock_send = mail_patcher.start()
        self.addCleanup(mail_patcher.stop)

        self.login()
        self.create_tournament()
        self.registrations = self.approve_registrations("t1", 4)

    def _generate(self, **payload) -> list[dict]:
        response = self.client.post("/fixtures/generate/t1", json=payload)
        self.assertEqual(response.status_code, 201, response.get_json())
        return response.get_json()["data"]

    def _stored(self, match_id: str) -> dict:
        return self.mock_db.collection("matches").document(match_id).get().to_dict()

    def test_generate_bracket(self) -> None:
        response = self.client.post("/fixtures/generate/t1", json={})
        self.assertEqual(response.status_code, 201)
        body = response.get_json()
        self.assertEqual(body["count"], 3)
        self.assertEqual(
            [m["bracketPosition"] for m in body["data"]], ["SF1", "SF2", "F1"]
        )
        self.assertEqual(len(list(self.mock_db.collection("matches").stream())), 3)

        # Every captain placed in the bracket hears about it
        notifications = [
            doc.to_dict() for doc in self.mock_db.collection("notifications").stream()
        ]
        self.assertEqual(
            sorted(n["recipient"] for n in notifications),
            ["captain1", "captain2", "captain3", "captain4"],
        )

    def test_generate_requires_organizer(self) -> None:
        self.login(PLAYER_ID)
        response = self.client.post("/fixtures/generate/t1", json={})
        self.assertEqual(response.status_code, 403)

    def test_generate_with_too_few_participants(self) -> None:
        self.create_tournament("t2")
        response = self.client.post("/fixtures/generate/t2", json={})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["code"], "insufficient_participants")

    def test_record_result_progresses_winner(self) -> None:
        sf1, _, final = self._generate()
        response = self.client.post(
            f"/fixtures/{sf1['id']}/result",
            json={"participant1_score": 21, "participant2_score": 15},
        )

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["data"]["winner"], self.registrations[0])
        self.assertEqual(body["data"]["status"], "completed")
        self.assertEqual(body["progression"], {"success": True})
        self.assertEqual(self._stored(final["id"])["participant1"], self.registrations[0])

    def test_zero_scores_are_accepted(self) -> None:
        sf1, _, _ = self._generate()
        response = self.client.post(
            f"/fixtures/{sf1['id']}/result",
            json={"participant1_score": 0, "participant2_score": 3},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["data"]["winner"], self.registrations[1])

    def test_negative_score_is_rejected(self) -> None:
        sf1, _, _ = self._generate()
        response = self.client.post(
            f"/fixtures/{sf1['id']}/result",
            json={"participant1_score": -1, "participant2_score": 3},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["code"], "invalid_result")
        self.assertEqual(self._stored(sf1["id"])["status"], "scheduled")

    def test_fractional_scores_are_rejected(self) -> None:
        sf1, _, _ = self._generate()
        for score in (3.9, "2.5", True):
            response = self.client.post(
                f"/fixtures/{sf1['id']}/result",
                json={"participant1_score": score, "participant2_score": 1},
            )
            self.assertEqual(response.status_code, 400, score)
            self.assertEqual(response.get_json()["code"], "invalid_result")
        stored = self._stored(sf1["id"])
        self.assertEqual(stored["status"], "scheduled")
        self.assertIsNone(stored["result"])

    def test_sets_use_the_same_keys_as_scores(self) -> None:
        sf1, _, _ = self._generate()
        response = self.client.post(
            f"/fixtures/{sf1['id']}/result",
            json={
                "participant1_score": 1,
                "participant2_score": 2,
                "sets": [
                    {"participant1_score": 6, "participant2_score": 4},
                    {"participant1_score": 3, "participant2_score": 6},
                    {"participant1_score": 4, "participant2_score": 6},
                ],
            },
        )
        self.assertEqual(response.status_code, 200, response.get_json())
        stored = self._stored(sf1["id"])
        self.assertEqual(stored["winner"], self.registrations[1])
        self.assertEqual(
            stored["result"]["sets"][0], {"participant1Score": 6, "participant2Score": 4}
        )

    def test_fractional_set_scores_are_rejected(self) -> None:
        sf1, _, _ = self._generate()
        response = self.client.post(
            f"/fixtures/{sf1['id']}/result",
            json={
                "participant1_score": 1,
                "participant2_score": 0,
                "sets": [{"participant1_score": 6.5, "participant2_score": 4}],
            },
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["code"], "invalid_result")

    def test_tie_in_elimination_is_rejected(self) -> None:
        sf1, _, _ = self._generate()
        response = self.client.post(
            f"/fixtures/{sf1['id']}/result",
            json={"participant1_score": 2, "participant2_score": 2},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIsNone(self._stored(sf1["id"])["winner"])

    def test_forfeit_with_sets(self) -> None:
        sf1, _, _ = self._generate()
        response = self.client.post(
            f"/fixtures/{sf1['id']}/result",
            json={
                "participant1_score": 0,
                "participant2_score": 0,
                "forfeiting_side": 1,
                "sets": [],
            },
        )
        self.assertEqual(response.status_code, 200)
        result = self._stored(sf1["id"])["result"]
        self.assertTrue(result["forfeit"])
        self.assertEqual(self._stored(sf1["id"])["winner"], self.registrations[1])

    def test_malformed_sets(self) -> None:
        sf1, _, _ = self._generate()
        response = self.client.post(
            f"/fixtures/{sf1['id']}/result",
            json={"participant1_score": 2, "participant2_score": 1, "sets": "6-4"},
        )
        self.assertEqual(response.status_code, 400)

    def test_second_result_needs_correction(self) -> None:
        sf1, _, _ = self._generate()
        url = f"/fixtures/{sf1['id']}/result"
        self.client.post(url, json={"participant1_score": 3, "participant2_score": 1})

        response = self.client.post(
            url, json={"participant1_score": 3, "participant2_score": 2}
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["code"], "result_already_recorded")

        response = self.client.post(
            url,
            json={"participant1_score": 3, "participant2_score": 2, "correction": True},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self._stored(sf1["id"])["result"]["participant2Score"], 2)

    def test_progression_failure_keeps_the_result(self) -> None:
        """The result is stored and the failure reported when the next slot is taken."""
        sf1, _, final = self._generate()
        self.mock_db.collection("matches").document(final["id"]).update(
            {"participant1": "someone-else"}
        )
        response = self.client.post(
            f"/fixtures/{sf1['id']}/result",
            json={"participant1_score": 3, "participant2_score": 1},
        )

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertFalse(body["progression"]["success"])
        self.assertEqual(body["progression"]["code"], "progression_conflict")
        self.assertEqual(self._stored(sf1["id"])["status"], "completed")

        alerts = [
            doc.to_dict()
            for doc in self.mock_db.collection("notifications").stream()
            if doc.to_dict().get("title") == "Bracket Needs Attention"
        ]
        self.assertEqual(len(alerts), 1)

    def test_rerun_progression(self) -> None:
        sf1, _, final = self._generate()
        self.client.post(
            f"/fixtures/{sf1['id']}/result",
            json={"participant1_score": 3, "participant2_score": 1},
        )
        response = self.client.post(f"/fixtures/{sf1['id']}/progress")
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["data"], [])
        self.assertEqual(body["message"], "Winner was already advanced.")
        self.assertEqual(self._stored(final["id"])["participant1"], self.registrations[0])

    def test_regeneration_needs_confirmation(self) -> None:
        sf1, _, _ = self._generate()
        self.client.post(
            f"/fixtures/{sf1['id']}/result",
            json={"participant1_score": 3, "participant2_score": 1},
        )
        response = self.client.post("/fixtures/generate/t1", json={})
        self.assertEqual(response.status_code, 409)

        matches = self._generate(confirm=True)
        self.assertTrue(all(m["status"] == "scheduled" for m in matches[:2]))
        self.assertEqual(len(list(self.mock_db.collection("matches").stream())), 3)

    def test_list_and_view_fixtures(self) -> None:
        self._generate()
        response = self.client.get("/fixtures/tournament/t1?round=1")
        body = response.get_json()
        self.assertEqual(body["count"], 2)

        response = self.client.get("/fixtures/tournament/t1/bracket")
        bracket = response.get_json()["data"]
        self.assertEqual(bracket["totalRounds"], 2)
        self.assertEqual(
            [r["name"] for r in bracket["rounds"]], ["Semi-finals", "Final"]
        )

        match_id = body["data"][0]["id"]
        response = self.client.get(f"/fixtures/{match_id}")
        self.assertEqual(response.get_json()["data"]["id"], match_id)

    def test_view_missing_fixture(self) -> None:
        response = self.client.get("/fixtures/missing")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["code"], "match_not_found")

    def test_update_status(self) -> None:
        sf1, _, _ = self._generate()
        response = self.client.post(
            f"/fixtures/{sf1['id']}/status", json={"status": "postponed"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self._stored(sf1["id"])["status"], "postponed")

        response = self.client.post(
            f"/fixtures/{sf1['id']}/status", json={"status": "completed"}
        )
        self.assertEqual(response.status_code, 400)

    def test_update_schedule_notifies_both_sides(self) -> None:
        sf1, _, _ = self._generate()
        response = self.client.post(
            f"/fixtures/{sf1['id']}/schedule",
            json={"scheduled_date": "2025-07-02T14:00:00", "court": "Court 3"},
        )
        self.assertEqual(response.status_code, 200)
        stored = self._stored(sf1["id"])
        self.assertEqual(stored["court"], "Court 3")
        self.assertEqual(stored["scheduledDate"].hour, 14)

        schedule_notes = [
            doc.to_dict()
            for doc in self.mock_db.collection("notifications").stream()
            if doc.to_dict().get("type") == "schedule"
        ]
        self.assertEqual(
            sorted(n["recipient"] for n in schedule_notes), ["captain1", "captain2"]
        )

    def test_update_schedule_requires_a_change(self) -> None:
        sf1, _, _ = self._generate()
        response = self.client.post(f"/fixtures/{sf1['id']}/schedule", json={})
        self.assertEqual(response.status_code, 400)

        response = self.client.post(
            f"/fixtures/{sf1['id']}/schedule", json={"scheduled_date": "next tuesday"}
        )
        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":
    unittest.main()
