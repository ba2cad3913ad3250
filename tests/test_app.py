"""Tests for the app factory and the JSON error handlers."""

import unittest
from unittest.mock import patch

from flask import request
from google.api_core.exceptions import ServiceUnavailable

from tourneydesk import create_app
from tourneydesk.errors import BracketConfigurationError
from tests.mock_utils import MockFirestoreBuilder, patch_mockfirestore

patch_mockfirestore()


class AppFactoryTestCase(unittest.TestCase):
    """Test case for the app factory."""

    def setUp(self):
        """Set up the test client."""
        self.app = create_app({"TESTING": True, "WTF_CSRF_ENABLED": False})
        self.client = self.app.test_client()

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"status": "OK", "app": "tourneydesk"})

    def test_404_error_handler(self):
        """Unknown routes answer with the JSON error envelope."""
        response = self.client.get("/non_existent_page")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["code"], "not_found")

    def test_405_error_handler(self):
        response = self.client.delete("/health")
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.get_json()["code"], "method_not_allowed")

    def test_scheduling_config_from_env(self):
        with patch.dict("os.environ", {"MATCHES_PER_DAY": "4"}):
            app = create_app({"TESTING": True})
        self.assertEqual(app.config["MATCHES_PER_DAY"], 4)
        self.assertEqual(app.config["ROUND_SPACING_DAYS"], 3)

    def test_https_scheme_with_proxy_headers(self):
        """Test that X-Forwarded-Proto header is respected."""

        @self.app.route("/test_scheme")
        def test_scheme():
            return request.scheme

        response = self.client.get(
            "/test_scheme", headers={"X-Forwarded-Proto": "https"}
        )
        self.assertEqual(response.data.decode(), "https")

    def test_storage_errors_become_503(self):
        @self.app.route("/flaky")
        def flaky():
            raise ServiceUnavailable("backend down")

        response = self.client.get("/flaky")
        self.assertEqual(response.status_code, 503)
        body = response.get_json()
        self.assertEqual(body["code"], "storage_error")
        self.assertNotIn("backend down", body["message"])

    def test_server_side_app_errors(self):
        @self.app.route("/broken")
        def broken():
            raise BracketConfigurationError()

        with self.assertLogs(self.app.logger, level="ERROR"):
            response = self.client.get("/broken")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()["code"], "bracket_configuration_error")

    def test_csrf_is_enforced_by_default(self):
        app = create_app({"TESTING": True})
        response = app.test_client().post("/tournaments/", data={"name": "x"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["code"], "csrf_error")


class SendRemindersCommandTestCase(unittest.TestCase):
    def test_send_reminders(self):
        db = MockFirestoreBuilder.mock_db()
        module = MockFirestoreBuilder.firestore_module(db)
        with patch("tourneydesk.firestore", new=module), patch(
            "tourneydesk.notifications.services.firestore", new=module
        ):
            app = create_app({"TESTING": True})
            result = app.test_cli_runner().invoke(args=["send-reminders"])
        self.assertIn("Sent 0 tournament reminders.", result.output)


if __name__ == "__main__":
    unittest.main()
