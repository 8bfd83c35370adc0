import unittest

from portal.core.catalog import SPORTS, get_catalog
from portal.services.eligibility import EligibilityRules, parse_age


class ParseAgeTests(unittest.TestCase):
    def test_numbers_and_numeric_strings(self):
        self.assertEqual(parse_age(45), 45.0)
        self.assertEqual(parse_age(" 52 "), 52.0)

    def test_blank_and_garbage(self):
        for value in (None, "", "   ", "forty", True, float("nan")):
            with self.subTest(value=value):
                self.assertIsNone(parse_age(value))


class AgeClassTests(unittest.TestCase):
    def setUp(self):
        self.rules = EligibilityRules(get_catalog())

    def test_male_thresholds(self):
        self.assertEqual(self.rules.allowed_tiers("Male", 44), ["Open"])
        self.assertEqual(self.rules.allowed_tiers("Male", 45), ["Open", "Veteran"])
        self.assertEqual(self.rules.allowed_tiers("Male", 52), ["Open", "Veteran"])
        self.assertEqual(self.rules.allowed_tiers("Male", 53), ["Open", "Veteran", "Senior Veteran"])

    def test_female_thresholds(self):
        self.assertEqual(self.rules.allowed_tiers("Female", 39), ["Open"])
        self.assertEqual(self.rules.allowed_tiers("Female", 40), ["Open", "Veteran"])
        self.assertEqual(self.rules.allowed_tiers("Female", 70), ["Open", "Veteran"])

    def test_blank_age_offers_first_class_only(self):
        self.assertEqual(self.rules.allowed_tiers("Male", ""), ["Open"])
        self.assertEqual(self.rules.allowed_tiers("Female", None), ["Open"])

    def test_unknown_gender_offers_nothing(self):
        self.assertEqual(self.rules.allowed_age_classes("", 50), [])
        self.assertEqual(self.rules.allowed_age_classes("Other", 50), [])

    def test_labels(self):
        classes = self.rules.allowed_age_classes("Male", 60)
        self.assertEqual(classes[-1].label, "Men - Senior Veteran (53+)")
        self.assertEqual(classes[-1].as_dict()["minAge"], 53)


class AllowedSportsTests(unittest.TestCase):
    def setUp(self):
        self.rules = EligibilityRules(get_catalog())

    def test_no_gender_returns_full_catalog(self):
        self.assertEqual(self.rules.allowed_sports("", "Open"), SPORTS)

    def test_unknown_class_returns_full_catalog(self):
        self.assertEqual(self.rules.allowed_sports("Male", "Masters"), SPORTS)

    def test_men_open_excludes_walking(self):
        allowed = self.rules.allowed_sports("Male", "Open")
        self.assertNotIn("400 m walking", allowed)
        self.assertNotIn("800 m walking", allowed)
        self.assertIn("Football", allowed)
        self.assertEqual(len(allowed), len(SPORTS) - 2)

    def test_men_senior_veteran_allow_list_keeps_catalog_order(self):
        self.assertEqual(
            self.rules.allowed_sports("Male", "Senior Veteran"),
            (
                "800 m walking",
                "Table Tennis (Singles)",
                "Table Tennis (Doubles)",
                "Badminton (Singles)",
                "Badminton (Doubles)",
                "Quiz",
                "10k Marathon",
            ),
        )

    def test_women_veteran_gets_mixed_doubles(self):
        allowed = self.rules.allowed_sports("Female", "Veteran")
        self.assertIn("Badminton (Mixed Doubles)", allowed)
        self.assertIn("Table Tennis (Mixed Doubles)", allowed)
        self.assertNotIn("Chess", allowed)

    def test_women_open_excludes_football_and_lawn_tennis(self):
        allowed = self.rules.allowed_sports("Female", "Open")
        self.assertNotIn("Football", allowed)
        self.assertNotIn("Lawn Tennis", allowed)


if __name__ == "__main__":
    unittest.main()
