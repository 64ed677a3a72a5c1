import unittest

from hearuai_memory.preferences import UserPreferences
from hearuai_memory.storage import InMemoryStorage


class TestUserPreferences(unittest.TestCase):
    def setUp(self):
        self.storage = InMemoryStorage()
        self.prefs = UserPreferences("u1", self.storage)
        self.prefs.load()

    def test_set_user_names(self):
        self.assertFalse(self.prefs.has_user_names())

        self.prefs.set_user_names("Jane Doe", "Jane")

        self.assertEqual(self.prefs.get_full_name(), "Jane Doe")
        self.assertEqual(self.prefs.get_preferred_name(), "Jane")
        self.assertTrue(self.prefs.has_user_names())
        self.assertEqual(self.prefs.get("personalInfo")["name"], "Jane")

    def test_update_deep_merges(self):
        result = self.prefs.update({"sessionPreferences": {"voiceEnabled": True}, "communicationStyle": "casual"})

        self.assertTrue(result["sessionPreferences"]["voiceEnabled"])
        self.assertEqual(result["sessionPreferences"]["sessionLength"], "medium")
        self.assertEqual(result["communicationStyle"], "casual")

    def test_get_all_returns_copy(self):
        snapshot = self.prefs.get_all()
        snapshot["copingStrategies"].append("music")

        self.assertEqual(self.prefs.get_coping_strategies(), [])

    def test_coping_strategies_have_no_duplicates(self):
        self.assertTrue(self.prefs.add_coping_strategy("breathing"))
        self.assertFalse(self.prefs.add_coping_strategy("breathing"))
        self.assertEqual(self.prefs.get_coping_strategies(), ["breathing"])

        self.assertTrue(self.prefs.remove_coping_strategy("breathing"))
        self.assertFalse(self.prefs.remove_coping_strategy("breathing"))

    def test_gender_preference(self):
        self.assertEqual(self.prefs.get_gender_preference(), {"gender": "", "genderPreference": "auto"})

        self.prefs.set_gender_preference("female", "male")

        self.assertEqual(self.prefs.get_gender_preference(), {"gender": "female", "genderPreference": "male"})

    def test_relationship_patterns_and_goals(self):
        pattern = self.prefs.add_relationship_pattern({"type": "friendship"})
        self.assertIn("timestamp", pattern)
        self.assertEqual(self.prefs.get_relationship_patterns()[0]["type"], "friendship")

        self.assertTrue(self.prefs.add_therapy_goal("sleep better"))
        self.assertFalse(self.prefs.add_therapy_goal("sleep better"))
        self.assertEqual(self.prefs.get_therapy_goals(), ["sleep better"])

    def test_update_ignores_non_dict_sections(self):
        result = self.prefs.update({"personalInfo": None, "sessionPreferences": "off", "therapyGoals": ["rest"]})

        self.assertEqual(result["personalInfo"]["genderPreference"], "auto")
        self.assertTrue(result["sessionPreferences"]["proactiveEngagement"])
        self.assertEqual(result["therapyGoals"], ["rest"])

        self.prefs.set_user_names("Jane Doe", "Jane")
        self.assertEqual(self.prefs.get_preferred_name(), "Jane")

    def test_broken_sections_are_restored_on_load(self):
        self.storage.set_item(
            "hearuai_preferences_u3",
            {"version": 2, "personalInfo": None, "sessionPreferences": "off", "communicationStyle": "casual"},
        )
        prefs = UserPreferences("u3", self.storage)
        prefs.load()

        self.assertEqual(prefs.get_preferred_name(), "")
        self.assertEqual(prefs.get("sessionPreferences")["sessionLength"], "medium")
        self.assertEqual(prefs.get("communicationStyle"), "casual")

    def test_legacy_blob_is_migrated(self):
        self.storage.set_item(
            "hearuai_preferences_u2",
            {"personalInfo": {"name": "Sam"}, "copingStrategies": ["music"]},
        )

        prefs = UserPreferences("u2", self.storage)
        prefs.load()

        self.assertEqual(prefs.get_full_name(), "Sam")
        self.assertEqual(prefs.get_preferred_name(), "Sam")
        self.assertEqual(prefs.get_gender_preference()["genderPreference"], "auto")
        self.assertEqual(prefs.get_coping_strategies(), ["music"])
        self.assertTrue(prefs.get("sessionPreferences")["proactiveEngagement"])

    def test_saved_blob_is_versioned(self):
        self.prefs.add_coping_strategy("music")

        self.assertEqual(self.storage.get_item("hearuai_preferences_u1")["version"], 2)

    def test_clear_restores_defaults(self):
        self.prefs.set_user_names("Jane Doe", "Jane")
        self.prefs.clear()

        self.assertFalse(self.prefs.has_user_names())
        self.assertIsNone(self.storage.get_item("hearuai_preferences_u1"))


if __name__ == "__main__":
    unittest.main()
