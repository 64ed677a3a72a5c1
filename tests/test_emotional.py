import unittest
from datetime import datetime, timedelta

from hearuai_memory.analytics import TRIGGER_KEYWORDS
from hearuai_memory.config import EMOTION_CAPACITY
from hearuai_memory.emotional import EmotionalMemory
from hearuai_memory.storage import InMemoryStorage


def _today_at(hour: int) -> str:
    return datetime.now().replace(hour=hour, minute=0, second=0, microsecond=0).isoformat()


class TestEmotionalMemory(unittest.TestCase):
    def setUp(self):
        self.storage = InMemoryStorage()
        self.memory = EmotionalMemory("u1", self.storage)
        self.memory.load()

    def _store_deadline_day(self):
        self.memory.store(
            {
                "message": "Another deadline tomorrow",
                "sentiment": {"score": -0.5, "label": "negative"},
                "timestamp": _today_at(10),
            }
        )
        self.memory.store(
            {
                "message": "I missed the deadline again",
                "sentiment": {"score": -0.6, "label": "negative"},
                "timestamp": _today_at(11),
            }
        )
        self.memory.store(
            {
                "message": "Great day at the park",
                "sentiment": {"score": 0.8, "label": "positive"},
                "timestamp": _today_at(18),
            }
        )

    def test_trigger_key_is_the_keyword_itself(self):
        self._store_deadline_day()

        self.assertIn("deadline", self.memory.triggers)
        self.assertNotIn("work", self.memory.triggers)
        self.assertEqual(self.memory.triggers["deadline"]["count"], 2)
        self.assertEqual(self.memory.triggers["deadline"]["severity"], [0.5, 0.6])

    def test_entry_triggers_only_for_negative_scores(self):
        self._store_deadline_day()

        negative, _, positive = self.memory.emotions
        self.assertEqual(positive["triggers"], [])
        for trigger in negative["triggers"]:
            self.assertIn(trigger["type"], TRIGGER_KEYWORDS)
            self.assertIn(trigger["type"], negative["message"].lower())

    def test_mildly_negative_score_does_not_record_triggers(self):
        stored = self.memory.store({"message": "deadline stress", "sentiment": {"score": -0.2, "label": "negative"}})

        self.assertEqual(stored["triggers"], [])
        self.assertEqual(self.memory.triggers, {})

    def test_context_topics_matching_a_keyword_become_triggers(self):
        stored = self.memory.store(
            {
                "message": "feeling low",
                "sentiment": {"score": -0.5, "label": "negative"},
                "context": {"topics": ["Work"], "emotions": ["sad"]},
            }
        )

        self.assertEqual([t["type"] for t in stored["triggers"]], ["work"])
        self.assertEqual(self.memory.triggers["work"]["count"], 1)

    def test_mood_history_groups_a_day(self):
        self._store_deadline_day()

        self.assertEqual(len(self.memory.mood_history), 1)
        day = self.memory.mood_history[0]
        self.assertEqual(day["date"], datetime.now().date().isoformat())
        self.assertEqual(day["scores"], [-0.5, -0.6, 0.8])
        self.assertAlmostEqual(day["averageScore"], -0.1)

    def test_patterns_buckets(self):
        self._store_deadline_day()

        patterns = self.memory.patterns
        self.assertEqual(patterns["timeOfDay"]["morning"], [-0.5, -0.6])
        self.assertEqual(patterns["timeOfDay"]["evening"], [0.8])
        self.assertEqual(len(patterns["conversationLength"]["short"]), 3)
        self.assertEqual(len(patterns["dailySentiment"][datetime.now().date().isoformat()]), 3)

    def test_streaks_reset_on_state_change(self):
        self._store_deadline_day()

        streaks = self.memory.progress_metrics["streaks"]
        self.assertEqual(streaks["current"], "positive")
        self.assertEqual(streaks["positive"], 1)
        self.assertEqual(streaks["negative"], 2)
        weekly = self.memory.progress_metrics["weeklyProgress"]
        self.assertEqual(len(weekly), 1)
        self.assertEqual(weekly[0]["sessions"], 3)

    def test_risk_level_scenario(self):
        now = datetime.now()
        trigger = {
            "count": 12,
            "severity": [0.9, 0.8],
            "contexts": [],
            "firstSeen": now.isoformat(),
            "lastSeen": now.isoformat(),
        }

        self.assertEqual(self.memory.calculate_risk_level(trigger, now), "high")

    def test_high_risk_trigger_drives_recommendations_and_assessment(self):
        for _ in range(12):
            self.memory.store({"message": "I had a panic attack", "sentiment": {"score": -0.9, "label": "negative"}})

        recommendations = self.memory.generate_recommendations()
        self.assertEqual(recommendations[0]["type"], "trigger_management")
        self.assertEqual(recommendations[0]["triggers"], ["panic"])

        assessment = self.memory.calculate_risk_assessment()
        self.assertEqual(assessment["overallRisk"], "high")
        self.assertEqual(assessment["factors"][0]["type"], "triggers")

    def test_volatility_is_idempotent(self):
        self._store_deadline_day()

        first = self.memory.calculate_emotional_volatility()
        second = self.memory.calculate_emotional_volatility()
        self.assertEqual(first, second)
        self.assertEqual(first, "high")
        self.assertEqual(self.memory.calculate_mood_variance(), self.memory.calculate_mood_variance())

    def test_trends_need_five_entries(self):
        self._store_deadline_day()
        self.assertIsNone(self.memory.calculate_trends())

        for score in (0.1, 0.2):
            self.memory.store({"message": "ok", "sentiment": {"score": score, "label": "neutral"}})

        trends = self.memory.calculate_trends()
        self.assertEqual(trends["dataPoints"], 5)
        self.assertEqual(trends["momentum"], "stable")

    def test_relevant_patterns_for_query(self):
        self._store_deadline_day()

        relevant = self.memory.get_relevant_patterns("deadline")

        self.assertEqual(len(relevant["emotions"]), 2)
        self.assertIn("deadline", relevant["triggers"])
        self.assertIn("riskLevel", relevant["triggers"]["deadline"])

    def test_patterns_summary_shape(self):
        self._store_deadline_day()

        patterns = self.memory.get_patterns()

        self.assertEqual(len(patterns["recentEmotions"]), 3)
        self.assertEqual(patterns["triggers"][0]["trigger"], "deadline")
        self.assertEqual(patterns["moodSummary"]["last7Days"]["trend"], "insufficient_data")

    def test_export_import_round_trip(self):
        self._store_deadline_day()
        self.memory.add_emotional_goal({"title": "Sleep earlier"})

        exported = self.memory.export_data()
        self.assertEqual(exported["version"], "1.0")
        self.assertIn("exportDate", exported)

        fresh = EmotionalMemory("u2", InMemoryStorage())
        fresh.load()
        self.assertTrue(fresh.import_data(exported))

        self.assertEqual(fresh.emotions, self.memory.emotions)
        self.assertEqual(fresh.patterns, self.memory.patterns)
        self.assertEqual(fresh.triggers, self.memory.triggers)
        self.assertEqual(fresh.progress_metrics, self.memory.progress_metrics)
        self.assertEqual(fresh.mood_history, self.memory.mood_history)
        self.assertEqual(fresh.emotional_goals, self.memory.emotional_goals)

    def test_import_rejects_payload_without_version_or_date(self):
        self.assertFalse(self.memory.import_data({"emotions": [], "exportDate": "2024-01-01"}))
        self.assertFalse(self.memory.import_data({"emotions": [], "version": "1.0"}))
        self.assertFalse(self.memory.import_data(["not", "a", "dict"]))

    def test_goal_progress_clamps_and_completes(self):
        goal = self.memory.add_emotional_goal({"title": "Journal daily"})
        self.assertEqual(goal["status"], "active")

        self.memory.update_goal_progress(goal["id"], 40, notes="Three entries")
        self.assertEqual(self.memory.get_active_goals()[0]["progress"], 40)

        updated = self.memory.update_goal_progress(goal["id"], 140)
        self.assertEqual(updated["progress"], 100)
        self.assertEqual(updated["status"], "completed")
        self.assertEqual(self.memory.get_active_goals(), [])
        self.assertIsNone(self.memory.update_goal_progress("missing", 10))

    def test_state_survives_reload(self):
        self._store_deadline_day()

        reloaded = EmotionalMemory("u1", self.storage)
        reloaded.load()

        self.assertEqual(reloaded.triggers["deadline"]["count"], 2)
        self.assertEqual(len(reloaded.emotions), 3)

    def test_mood_history_keeps_ninety_days(self):
        start = datetime(2024, 1, 1, 12, 0)
        for offset in range(95):
            moment = start + timedelta(days=offset)
            self.memory.store({"message": "ok", "sentiment": {"score": 0.1}, "timestamp": moment.isoformat()})

        self.assertEqual(len(self.memory.mood_history), 90)
        self.assertEqual(self.memory.mood_history[0]["date"], "2024-01-06")

    def test_emotions_capped_at_capacity(self):
        self.assertEqual(self.memory.max_size, EMOTION_CAPACITY)
        self.assertEqual(EMOTION_CAPACITY, 2000)

        memory = EmotionalMemory("u9", self.storage, max_size=5)
        memory.load()
        for index in range(8):
            memory.store({"message": f"entry {index}", "sentiment": {"score": 0.1}})

        self.assertEqual([e["message"] for e in memory.emotions], [f"entry {i}" for i in range(3, 8)])
        stored = self.storage.get_item("hearuai_emotional_u9")
        self.assertEqual([e["message"] for e in stored["emotions"]], [f"entry {i}" for i in range(3, 8)])

    def test_recent_emotions_with_analysis(self):
        self._store_deadline_day()

        result = self.memory.get_recent_emotions(limit=2, include_analysis=True)

        self.assertEqual(len(result["emotions"]), 2)
        self.assertAlmostEqual(result["analysis"]["averageSentiment"], 0.1)


if __name__ == "__main__":
    unittest.main()
