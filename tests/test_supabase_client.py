import unittest
from unittest import mock

import requests

from portal.core.errors import ConfigurationError, RemoteRejected, RemoteUnavailable, SubscriptionUnavailable
from portal.schemas.participant import ParticipantStatus
from portal.services.gateway import MatchKey
from portal.services.supabase_client import SupabaseGateway

from factories import participant


def _response(status=200, payload=None, text=""):
    res = mock.Mock(status_code=status, text=text, reason="", content=b"x" if payload is not None or text else b"")
    if payload is None:
        res.json.side_effect = ValueError("not json")
    else:
        res.json.return_value = payload
    return res


class SupabaseGatewayTests(unittest.TestCase):
    def setUp(self):
        self.http = mock.Mock(headers={})
        self.gateway = SupabaseGateway("https://db.example/", "anon-key", timeout=7, session=self.http)

    def test_requires_url_and_key(self):
        with self.assertRaises(ConfigurationError):
            SupabaseGateway(None, "key")
        with self.assertRaises(ConfigurationError):
            SupabaseGateway("https://db.example", "")

    def test_auth_headers(self):
        self.assertEqual(self.http.headers["apikey"], "anon-key")
        self.assertEqual(self.http.headers["Authorization"], "Bearer anon-key")

    def test_fetch_team_rows(self):
        self.http.request.return_value = _response(
            payload=[{"id": 3, "team_id": "Chamba", "name": "Asha", "age_class": "Open", "sports": ["Chess"], "status": None}]
        )
        rows = self.gateway.fetch_team_participants("Chamba")
        self.assertEqual((rows[0].id, rows[0].age_class, rows[0].status), (3, "Open", ParticipantStatus.ACTIVE))
        method, url = self.http.request.call_args.args
        self.assertEqual((method, url), ("GET", "https://db.example/rest/v1/participants"))
        params = self.http.request.call_args.kwargs["params"]
        self.assertEqual(params["team_id"], "eq.Chamba")
        self.assertEqual(params["order"], "timestamp.desc")
        self.assertEqual(self.http.request.call_args.kwargs["timeout"], 7)

    def test_insert_sends_snake_case_rows(self):
        self.http.request.return_value = _response(payload=[{"id": 1, "team_id": "Chamba"}])
        self.gateway.insert_participants([participant(sports=["Chess", ""])])
        kwargs = self.http.request.call_args.kwargs
        self.assertEqual(kwargs["headers"], {"Prefer": "return=representation"})
        self.assertIn('"team_id": "Chamba"', kwargs["data"])
        self.assertIn('"sports": ["Chess"]', kwargs["data"])

    def test_status_update_by_team_and_timestamp(self):
        self.http.request.return_value = _response(payload=[])
        self.gateway.update_participant_status(
            MatchKey(team_id="Chamba", timestamp="2025-01-01T10:00:00.000Z"), ParticipantStatus.REQUESTED
        )
        params = self.http.request.call_args.kwargs["params"]
        self.assertEqual(params["team_id"], "eq.Chamba")
        self.assertEqual(params["timestamp"], "eq.2025-01-01T10:00:00.000Z")
        self.assertEqual(self.http.request.call_args.kwargs["data"], '{"status": "Requested"}')

    def test_unusable_key_is_rejected(self):
        with self.assertRaises(RemoteRejected):
            self.gateway.update_participant_status(MatchKey(), ParticipantStatus.REQUESTED)

    def test_error_classification(self):
        self.http.request.side_effect = requests.Timeout("timed out")
        with self.assertRaises(RemoteUnavailable):
            self.gateway.fetch_all_participants()

        self.http.request.side_effect = None
        self.http.request.return_value = _response(503, text="Service Unavailable")
        with self.assertRaises(RemoteUnavailable):
            self.gateway.fetch_all_participants()

        self.http.request.return_value = _response(409, payload={"message": "duplicate key"})
        with self.assertRaises(RemoteRejected) as ctx:
            self.gateway.fetch_all_participants()
        self.assertEqual((str(ctx.exception), ctx.exception.status), ("duplicate key", 409))

    def test_no_change_feed(self):
        with self.assertRaises(SubscriptionUnavailable):
            self.gateway.subscribe_to_team_changes("Chamba", lambda event: None)


if __name__ == "__main__":
    unittest.main()
