"""
Tests for sync/api_client.py and sync/settings.py — request plumbing,
error mapping and the parent settings fallback chain.

The requests.Session is replaced by a mock; no network is used.
"""

import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import requests

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from errors import InvalidInputError, PersistenceError
from sync.api_client import AttenWellClient
from sync.settings import ParentSettings


def make_response(status=200, body=None, content_type="application/json"):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.headers = {"content-type": content_type}
    if body is None:
        response.json.side_effect = ValueError("no body")
    else:
        response.json.return_value = body
    return response


class ClientTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.session = MagicMock()
        self.client = AttenWellClient(
            base_url="https://api.example.test/api/",
            token="secret",
            timeout=5,
            session=self.session,
        )
        self.client.settings_cache_file = Path(self._tmp.name) / "parent_settings.json"


class TestRequests(ClientTestCase):

    def test_create_focus_session(self):
        self.session.request.return_value = make_response(201, {"id": 7})
        result = self.client.create_focus_session({"status": "completed"})

        self.assertEqual(result, {"id": 7})
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("POST", "https://api.example.test/api/focus/sessions/"))
        self.assertEqual(kwargs["json"], {"status": "completed"})
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer secret")
        self.assertEqual(kwargs["timeout"], 5)

    def test_update_break_time(self):
        self.session.request.return_value = make_response(200, {"ok": True})
        self.client.update_break_time(30)
        args, kwargs = self.session.request.call_args
        self.assertEqual(args[1], "https://api.example.test/api/break-time/update/")
        self.assertEqual(kwargs["json"], {"minutes": 30})

    def test_create_sudden_closure(self):
        self.session.request.return_value = make_response(204, content_type="")
        self.assertIsNone(self.client.create_sudden_closure({"status": "sudden_closure"}))
        self.assertEqual(
            self.session.request.call_args[0][1],
            "https://api.example.test/api/sudden-closures/create/",
        )

    def test_no_token_no_auth_header(self):
        client = AttenWellClient(base_url="https://api.example.test", session=self.session)
        client.token = ""
        self.session.request.return_value = make_response(200, {})
        client.update_break_time(5)
        self.assertNotIn("Authorization", self.session.request.call_args[1]["headers"])

    def test_http_error_maps_to_persistence_error(self):
        self.session.request.return_value = make_response(400, {"detail": "Invalid plan"})
        with self.assertRaises(PersistenceError) as ctx:
            self.client.create_focus_session({})
        self.assertEqual(str(ctx.exception), "Invalid plan")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_http_error_without_body(self):
        self.session.request.return_value = make_response(503, content_type="text/html")
        with self.assertRaises(PersistenceError) as ctx:
            self.client.create_focus_session({})
        self.assertEqual(str(ctx.exception), "HTTP 503")

    def test_transport_error(self):
        self.session.request.side_effect = requests.ConnectionError("unreachable")
        with self.assertRaises(PersistenceError) as ctx:
            self.client.update_break_time(10)
        self.assertIsNone(ctx.exception.status_code)


class TestParentSettingsFetch(ClientTestCase):

    def test_minutes_payload(self):
        self.session.request.return_value = make_response(
            200, {"study_minutes_per_phase": 25, "break_minutes_per_phase": 5}
        )
        settings = self.client.get_parent_settings()
        self.assertEqual(settings, ParentSettings(25, 5))
        self.assertEqual(self.session.request.call_args[0][0], "GET")

    def test_fetch_caches_settings(self):
        self.session.request.return_value = make_response(
            200, {"study_minutes_per_phase": 40, "break_minutes_per_phase": 10}
        )
        self.client.fetch_parent_settings()
        cached = json.loads(self.client.settings_cache_file.read_text())
        self.assertEqual(cached, {"study_minutes_per_phase": 40, "break_minutes_per_phase": 10})

    def test_fetch_falls_back_to_cache(self):
        self.client.settings_cache_file.write_text(
            json.dumps({"study_minutes_per_phase": 45, "break_minutes_per_phase": 20})
        )
        self.session.request.side_effect = requests.Timeout("slow")
        self.assertEqual(self.client.fetch_parent_settings(), ParentSettings(45, 20))

    def test_fetch_falls_back_to_defaults(self):
        self.session.request.side_effect = requests.ConnectionError("offline")
        self.assertEqual(self.client.fetch_parent_settings(), ParentSettings())

    def test_list_payload_falls_back(self):
        self.session.request.return_value = make_response(200, [{"study_minutes_per_phase": 30}])
        with self.assertRaises(InvalidInputError):
            self.client.get_parent_settings()
        self.assertEqual(self.client.fetch_parent_settings(), ParentSettings())

    def test_list_in_cache_file_falls_back(self):
        self.client.settings_cache_file.write_text(json.dumps([45, 20]))
        self.session.request.side_effect = requests.ConnectionError("offline")
        self.assertEqual(self.client.fetch_parent_settings(), ParentSettings())

    def test_out_of_range_settings_fall_back(self):
        self.session.request.return_value = make_response(200, {"study_minutes_per_phase": 500})
        with self.assertRaises(InvalidInputError):
            self.client.get_parent_settings()
        self.assertEqual(self.client.fetch_parent_settings(), ParentSettings())


class TestParentSettings(unittest.TestCase):

    def test_defaults(self):
        settings = ParentSettings()
        self.assertEqual(settings.study_minutes_per_phase, 30)
        self.assertEqual(settings.break_minutes_per_phase, 15)

    def test_hour_fields(self):
        settings = ParentSettings.from_api({"study_time_hours": 0.75, "break_time_hours": 0.25})
        self.assertEqual(settings, ParentSettings(45, 15))

    def test_minute_fields_win_over_hours(self):
        settings = ParentSettings.from_api({"study_minutes_per_phase": 20, "study_time_hours": 1})
        self.assertEqual(settings.study_minutes_per_phase, 20)

    def test_missing_fields_use_defaults(self):
        self.assertEqual(ParentSettings.from_api({}), ParentSettings())

    def test_bounds(self):
        ParentSettings(1, 1)
        ParentSettings(120, 60)
        for study, brk in ((0, 15), (121, 15), (30, 0), (30, 61)):
            with self.subTest(study=study, brk=brk):
                with self.assertRaises(InvalidInputError):
                    ParentSettings(study, brk)

    def test_non_object_payload_rejected(self):
        for payload in ([], ["study_time_hours"], "30", None):
            with self.subTest(payload=payload):
                with self.assertRaises(InvalidInputError):
                    ParentSettings.from_api(payload)

    def test_non_numeric_rejected(self):
        with self.assertRaises(InvalidInputError):
            ParentSettings("30", 15)
        with self.assertRaises(InvalidInputError):
            ParentSettings.from_api({"break_time_hours": "half"})


if __name__ == "__main__":
    unittest.main()
