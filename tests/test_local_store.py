import tempfile
import unittest
from pathlib import Path

from portal.schemas.participant import DeleteRequest
from portal.services.local_store import LocalStore

from factories import draft, participant


class LocalStoreTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.cache_dir = Path(self._tmp.name)
        self.store = LocalStore(self.cache_dir)

    def test_missing_files_read_empty(self):
        self.assertEqual(self.store.load_drafts("Chamba"), [])
        self.assertEqual(self.store.load_pending("Chamba"), [])
        self.assertEqual(self.store.load_delete_requests(), [])

    def test_round_trip_keeps_camel_case_on_disk(self):
        self.store.save_submitted("Chamba", [participant(id=4)])
        raw = (self.cache_dir / "Chamba.submitted.json").read_text(encoding="utf-8")
        self.assertIn('"teamId": "Chamba"', raw)
        self.assertIn('"photoBase64"', raw)
        rows = self.store.load_submitted("Chamba")
        self.assertEqual(rows[0].id, 4)

    def test_teams_do_not_share_files(self):
        self.store.save_drafts("Chamba", [draft()])
        self.assertEqual(len(self.store.load_drafts("Chamba")), 1)
        self.assertEqual(self.store.load_drafts("Mandi"), [])

    def test_corrupt_file_reads_empty(self):
        (self.cache_dir / "Chamba.drafts.json").write_text("{not json", encoding="utf-8")
        with self.assertLogs("portal.services.local_store", level="WARNING"):
            self.assertEqual(self.store.load_drafts("Chamba"), [])

    def test_non_list_content_reads_empty(self):
        (self.cache_dir / "Chamba.pending.json").write_text('{"action": "appendMultiple"}', encoding="utf-8")
        self.assertEqual(self.store.load_pending("Chamba"), [])

    def test_unreadable_rows_are_skipped(self):
        (self.cache_dir / "Chamba.submitted.json").write_text(
            '[{"teamId": "Chamba", "name": "Ok"}, {"name": "Bad", "status": "Archived"}]', encoding="utf-8"
        )
        rows = self.store.load_submitted("Chamba")
        self.assertEqual([r.name for r in rows], ["Ok"])

    def test_delete_requests_are_shared(self):
        self.store.append_delete_request(DeleteRequest(row_id=1, team_id="Chamba", name="A"))
        self.store.append_delete_request(DeleteRequest(row_id=2, team_id="Mandi", name="B"))
        requests = self.store.load_delete_requests()
        self.assertEqual([r.team_id for r in requests], ["Chamba", "Mandi"])
        self.assertTrue(all(r.status == "pending" for r in requests))
        self.assertTrue(requests[0].req_id.startswith("req_"))


if __name__ == "__main__":
    unittest.main()
