import unittest

from portal.core.catalog import FeeSchedule
from portal.schemas.participant import ParticipantStatus
from portal.services.fees import billable_count, compute_fee, format_inr

from factories import draft, participant


class ComputeFeeTests(unittest.TestCase):
    def setUp(self):
        self.schedule = FeeSchedule()

    def test_base_covers_first_35(self):
        fee = compute_fee(35, "Chamba", self.schedule)
        self.assertEqual((fee.base, fee.extra_count, fee.extra_amount, fee.total), (300000, 0, 0, 300000))

    def test_surcharge_beyond_35(self):
        self.assertEqual(compute_fee(36, "Chamba", self.schedule).total, 307500)

    def test_reduced_base_teams(self):
        fee = compute_fee(40, "Solan", self.schedule)
        self.assertEqual(fee.base, 250000)
        self.assertEqual(fee.extra_count, 5)
        self.assertEqual(fee.total, 287500)
        self.assertEqual(compute_fee(0, "Bilaspur", self.schedule).total, 250000)

    def test_bad_counts_read_as_zero(self):
        self.assertEqual(compute_fee("abc", "Mandi", self.schedule).total, 300000)
        self.assertEqual(compute_fee(-4, "Mandi", self.schedule).extra_count, 0)

    def test_as_dict_keys(self):
        self.assertEqual(
            compute_fee(36, "Chamba", self.schedule).as_dict(),
            {"base": 300000, "extraCount": 1, "extraAmount": 7500, "total": 307500},
        )


class BillableCountTests(unittest.TestCase):
    def test_requested_and_deleted_rows_are_not_billed(self):
        submitted = [
            participant(id=1),
            participant(id=2, status=ParticipantStatus.REQUESTED),
            participant(id=3, status=ParticipantStatus.DELETED),
        ]
        self.assertEqual(billable_count(submitted, [draft(), draft()]), 3)


class FormatInrTests(unittest.TestCase):
    def test_indian_grouping(self):
        self.assertEqual(format_inr(300000), "₹3,00,000")
        self.assertEqual(format_inr(307500), "₹3,07,500")
        self.assertEqual(format_inr(7500), "₹7,500")
        self.assertEqual(format_inr(500), "₹500")


if __name__ == "__main__":
    unittest.main()
