"""Shared setup for API route tests."""

from __future__ import annotations

import datetime
import unittest
from unittest.mock import patch

from tourneydesk import create_app
from tests.mock_utils import MockFirestoreBuilder, patch_mockfirestore

patch_mockfirestore()

ORGANIZER_ID = "organizer1"
PLAYER_ID = "player1"

FIRESTORE_TARGETS = (
    "tourneydesk.firestore",
    "tourneydesk.tournament.routes.firestore",
    "tourneydesk.tournament.services.firestore",
    "tourneydesk.registration.routes.firestore",
    "tourneydesk.registration.services.firestore",
    "tourneydesk.match.routes.firestore",
    "tourneydesk.match.services.firestore",
    "tourneydesk.notifications.routes.firestore",
    "tourneydesk.notifications.services.firestore",
)


class ApiTestCase(unittest.TestCase):
    """Runs the app against mockfirestore with a logged-in session helper."""

    def setUp(self) -> None:
        self.mock_db = MockFirestoreBuilder.mock_db()
        self.mock_firestore_module = MockFirestoreBuilder.firestore_module(self.mock_db)

        patchers = [patch("firebase_admin.initialize_app")] + [
            patch(target, new=self.mock_firestore_module) for target in FIRESTORE_TARGETS
        ]
        for p in patchers:
            p.start()
            self.addCleanup(p.stop)

        self.app = create_app(
            {"TESTING": True, "WTF_CSRF_ENABLED": False, "SERVER_NAME": "localhost"}
        )
        self.client = self.app.test_client()
        self.app_context = self.app.app_context()
        self.app_context.push()
        self.addCleanup(self.app_context.pop)

        users = self.mock_db.collection("users")
        users.document(ORGANIZER_ID).set(
            {"name": "Olive Organizer", "email": "olive@example.com", "isAdmin": False}
        )
        users.document(PLAYER_ID).set(
            {"name": "Pat Player", "email": "pat@example.com", "isAdmin": False}
        )

    def login(self, user_id: str = ORGANIZER_ID, is_admin: bool = False) -> None:
        with self.client.session_transaction() as sess:
            sess["user_id"] = user_id
            sess["is_admin"] = is_admin

    def create_tournament(self, tournament_id: str = "t1", **extra) -> str:
        data = {
            "name": "City Championship",
            "sport": "Tennis",
            "format": "single-elimination",
            "status": "open",
            "maxParticipants": 8,
            "currentParticipants": 0,
            "venue": "Riverside Courts",
            "organizer_id": ORGANIZER_ID,
        }
        data.update(extra)
        self.mock_db.collection("tournaments").document(tournament_id).set(data)
        return tournament_id

    def approve_registrations(self, tournament_id: str, count: int) -> list[str]:
        ids = []
        for i in range(count):
            reg_id = f"reg{i + 1}"
            self.mock_db.collection("registrations").document(reg_id).set(
                {
                    "tournamentId": tournament_id,
                    "captainId": f"captain{i + 1}",
                    "teamName": f"Team {i + 1}",
                    "status": "approved",
                    "registrationDate": datetime.datetime(
                        2025, 1, 1 + i, tzinfo=datetime.timezone.utc
                    ),
                }
            )
            ids.append(reg_id)
        return ids
