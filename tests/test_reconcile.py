import unittest

from portal.core.errors import IllegalTransition
from portal.schemas.participant import ParticipantStatus
from portal.services import reconcile
from portal.services.gateway import ChangeEvent, ChangeKind, MatchKey

from factories import participant

T1 = "2025-01-01T10:00:00.000Z"
T2 = "2025-01-01T10:00:00.001Z"
T3 = "2025-01-02T09:00:00.000Z"


class MergeSnapshotTests(unittest.TestCase):
    def test_canonical_rows_replace_local_copies(self):
        local = [participant(id=7, name="Stale", timestamp=T1)]
        canonical = [participant(id=7, name="Fresh", timestamp=T1)]
        merged = reconcile.merge_snapshot(canonical, local)
        self.assertEqual([r.name for r in merged], ["Fresh"])

    def test_unsynced_local_row_is_matched_by_timestamp(self):
        local = [participant(name="Queued", timestamp=T1)]
        canonical = [participant(id=3, name="Queued", timestamp=T1)]
        merged = reconcile.merge_snapshot(canonical, local)
        self.assertEqual(len(merged), 1)
        self.assertEqual(merged[0].id, 3)

    def test_local_only_rows_survive_newest_first(self):
        local = [participant(name="Offline", timestamp=T3)]
        canonical = [participant(id=1, name="Server", timestamp=T1)]
        merged = reconcile.merge_snapshot(canonical, local)
        self.assertEqual([r.name for r in merged], ["Offline", "Server"])

    def test_local_row_with_other_id_is_not_folded_by_timestamp(self):
        local = [participant(id=4, name="Kept", timestamp=T1)]
        canonical = [participant(id=5, name="Server", timestamp=T1)]
        merged = reconcile.merge_snapshot(canonical, local)
        self.assertEqual(sorted(r.id for r in merged), [4, 5])


class ApplyChangeTests(unittest.TestCase):
    def test_insert_replaces_tentative_row(self):
        rows = [participant(name="Pending", timestamp=T1)]
        event = ChangeEvent(ChangeKind.INSERT, participant(id=9, name="Pending", timestamp=T1))
        result, refetch = reconcile.apply_change(rows, event)
        self.assertFalse(refetch)
        self.assertEqual([(r.id, r.name) for r in result], [(9, "Pending")])

    def test_insert_of_unknown_row_is_prepended(self):
        rows = [participant(id=1, timestamp=T1)]
        result, _ = reconcile.apply_change(rows, ChangeEvent(ChangeKind.INSERT, participant(id=2, timestamp=T2)))
        self.assertEqual([r.id for r in result], [2, 1])

    def test_update_matches_id_before_timestamp(self):
        rows = [participant(id=1, timestamp=T1), participant(id=2, timestamp=T2)]
        updated = participant(id=2, timestamp=T1, status=ParticipantStatus.REQUESTED)
        result, _ = reconcile.apply_change(rows, ChangeEvent(ChangeKind.UPDATE, updated))
        self.assertEqual([r.status for r in result], [ParticipantStatus.ACTIVE, ParticipantStatus.REQUESTED])

    def test_delete_keeps_row_marked_deleted(self):
        rows = [participant(id=1, timestamp=T1), participant(id=2, timestamp=T2)]
        result, _ = reconcile.apply_change(rows, ChangeEvent(ChangeKind.DELETE, participant(id=1, timestamp=T1)))
        self.assertEqual(len(result), 2)
        self.assertEqual(result[0].status, ParticipantStatus.DELETED)
        self.assertEqual(result[1].status, ParticipantStatus.ACTIVE)

    def test_delete_then_reappear(self):
        rows = [participant(id=1, timestamp=T1)]
        rows, _ = reconcile.apply_change(rows, ChangeEvent(ChangeKind.DELETE, participant(id=1, timestamp=T1)))
        rows, _ = reconcile.apply_change(rows, ChangeEvent(ChangeKind.INSERT, participant(id=1, timestamp=T1)))
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].status, ParticipantStatus.ACTIVE)

    def test_insert_of_other_row_never_resurrects_deleted(self):
        rows = [participant(id=1, name="Gone", timestamp=T1)]
        rows, _ = reconcile.apply_change(rows, ChangeEvent(ChangeKind.DELETE, participant(id=1, timestamp=T1)))
        rows, _ = reconcile.apply_change(rows, ChangeEvent(ChangeKind.INSERT, participant(id=2, name="Other", timestamp=T1)))
        self.assertEqual(
            [(r.id, r.name, r.status) for r in rows],
            [(2, "Other", ParticipantStatus.ACTIVE), (1, "Gone", ParticipantStatus.DELETED)],
        )

    def test_unrecognised_event_requests_refetch(self):
        rows = [participant(id=1)]
        result, refetch = reconcile.apply_change(rows, ChangeEvent.from_payload({"eventType": "TRUNCATE"}))
        self.assertTrue(refetch)
        self.assertEqual(result, rows)

    def test_replay_in_receipt_order(self):
        events = [
            ChangeEvent.from_payload({"eventType": "INSERT", "new": {"id": 5, "team_id": "Chamba", "timestamp": T1}}),
            ChangeEvent.from_payload({"eventType": "UPDATE", "new": {"id": 5, "team_id": "Chamba", "timestamp": T1, "status": "Requested"}}),
        ]
        rows, refetch = reconcile.replay([], events)
        self.assertFalse(refetch)
        self.assertEqual([(r.id, r.status) for r in rows], [(5, ParticipantStatus.REQUESTED)])


class MarkStatusTests(unittest.TestCase):
    def test_forward_transition(self):
        rows, changed = reconcile.mark_status([participant(id=1)], MatchKey(id=1), ParticipantStatus.REQUESTED)
        self.assertEqual(changed, 1)
        self.assertEqual(rows[0].status, ParticipantStatus.REQUESTED)

    def test_backwards_move_needs_override(self):
        rows = [participant(id=1, status=ParticipantStatus.REQUESTED)]
        with self.assertRaises(IllegalTransition):
            reconcile.mark_status(rows, MatchKey(id=1), ParticipantStatus.ACTIVE)
        rows, _ = reconcile.mark_status(rows, MatchKey(id=1), ParticipantStatus.ACTIVE, override=True)
        self.assertEqual(rows[0].status, ParticipantStatus.ACTIVE)

    def test_deleted_is_terminal(self):
        rows = [participant(id=1, status=ParticipantStatus.DELETED)]
        with self.assertRaises(IllegalTransition):
            reconcile.mark_status(rows, MatchKey(id=1), ParticipantStatus.ACTIVE, override=True)


class MarkRejectedTests(unittest.TestCase):
    def test_only_unsynced_active_rows_are_flagged(self):
        rows = [
            participant(name="Refused", timestamp=T1),
            participant(id=3, name="Synced", timestamp=T1),
            participant(name="Other", timestamp=T2),
        ]
        result, changed = reconcile.mark_rejected(rows, {T1})
        self.assertEqual(changed, 1)
        self.assertEqual(
            [r.status for r in result],
            [ParticipantStatus.REJECTED, ParticipantStatus.ACTIVE, ParticipantStatus.ACTIVE],
        )
        self.assertFalse(result[0].counts_toward_quota)
        self.assertFalse(result[0].counts_toward_fee)


if __name__ == "__main__":
    unittest.main()
