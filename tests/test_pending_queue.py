import tempfile
import unittest
from pathlib import Path
from typing import List

from portal.core.errors import RemoteRejected, RemoteUnavailable
from portal.schemas.participant import ParticipantStatus
from portal.services.gateway import MatchKey
from portal.services.local_store import LocalStore
from portal.services.memory_gateway import MemoryGateway
from portal.services.pending_queue import APPEND_MULTIPLE, REQUEST_DELETE, PendingQueue

from factories import participant


class RecordingGateway(MemoryGateway):
    """Memory gateway that records calls and can fail the first N inserts."""

    def __init__(self, fail_inserts: int = 0, error=RemoteUnavailable) -> None:
        super().__init__()
        self.calls: List[str] = []
        self.fail_inserts = fail_inserts
        self.error = error

    def insert_participants(self, rows):
        self.calls.append("insert:" + ",".join(r.name for r in rows))
        if self.fail_inserts:
            self.fail_inserts -= 1
            raise self.error("insert refused")
        return super().insert_participants(rows)

    def update_participant_status(self, key, status):
        self.calls.append(f"status:{key.id or key.timestamp}:{status.value}")
        return super().update_participant_status(key, status)


class PendingQueueTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.store = LocalStore(Path(self._tmp.name))
        self.queue = PendingQueue(self.store, "Chamba")

    def test_entries_are_persisted_in_order(self):
        self.queue.enqueue_append([participant(name="A")])
        self.queue.enqueue_request_delete(MatchKey(team_id="Chamba", timestamp="2025-01-01T10:00:00.000Z"))
        actions = [e["action"] for e in PendingQueue(self.store, "Chamba").entries()]
        self.assertEqual(actions, [APPEND_MULTIPLE, REQUEST_DELETE])

    def test_queued_rows_are_active(self):
        self.queue.enqueue_append([participant(name="A", status=ParticipantStatus.DRAFT)])
        self.assertEqual(self.queue.entries()[0]["rows"][0]["status"], "Active")

    def test_flush_delivers_everything(self):
        gateway = RecordingGateway()
        self.queue.enqueue_append([participant(name="A", timestamp="2025-01-01T10:00:00.000Z")])
        self.queue.enqueue_request_delete(MatchKey(team_id="Chamba", timestamp="2025-01-01T10:00:00.000Z"))
        result = self.queue.flush(gateway)
        self.assertTrue(result.ok)
        self.assertEqual(result.delivered, 2)
        self.assertEqual(len(self.queue), 0)
        self.assertEqual(gateway.fetch_team_participants("Chamba")[0].status, ParticipantStatus.REQUESTED)

    def test_transient_failure_blocks_the_rest(self):
        gateway = RecordingGateway(fail_inserts=1)
        self.queue.enqueue_append([participant(name="A")])
        self.queue.enqueue_append([participant(name="B")])

        result = self.queue.flush(gateway)
        self.assertFalse(result.ok)
        self.assertEqual(result.error, "insert refused")
        self.assertEqual(gateway.calls, ["insert:A"])
        self.assertEqual(len(self.queue), 2)

        result = self.queue.flush(gateway)
        self.assertTrue(result.ok)
        self.assertEqual(gateway.calls, ["insert:A", "insert:A", "insert:B"])
        self.assertEqual(len(self.queue), 0)

    def test_permanent_rejection_is_dead_lettered(self):
        gateway = RecordingGateway(fail_inserts=1, error=RemoteRejected)
        self.queue.enqueue_append([participant(name="A")])
        self.queue.enqueue_append([participant(name="B")])

        result = self.queue.flush(gateway)
        self.assertTrue(result.ok)
        self.assertEqual((result.delivered, result.dead_lettered), (1, 1))
        parked = self.queue.dead_letters()
        self.assertEqual(parked[0]["rows"][0]["name"], "A")
        self.assertEqual(parked[0]["error"], "insert refused")

    def test_unknown_and_unusable_entries_are_dropped(self):
        self.store.save_pending(
            "Chamba",
            [
                {"action": "somethingElse"},
                {"action": REQUEST_DELETE, "payload": {"name": "No key"}},
            ],
        )
        result = self.queue.flush(RecordingGateway())
        self.assertEqual(result.dropped, 2)
        self.assertEqual(len(self.queue), 0)

    def test_unreadable_rows_are_parked_not_lost(self):
        self.store.save_pending("Chamba", [{"action": APPEND_MULTIPLE, "rows": [{"status": "Archived"}]}])
        result = self.queue.flush(RecordingGateway())
        self.assertEqual(result.dead_lettered, 1)
        self.assertEqual(len(self.queue.dead_letters()), 1)


if __name__ == "__main__":
    unittest.main()
