"""Emotion-tagged interaction store and the analytics derived from it."""

from __future__ import annotations

import copy
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .analytics import (
    NEGATIVE_TRIGGER_THRESHOLD,
    calculate_emotional_volatility,
    calculate_momentum,
    calculate_mood_consistency,
    calculate_mood_trend,
    calculate_progress_trend,
    calculate_risk_level,
    calculate_topic_trend,
    extract_triggers,
    mean,
    message_length_category,
    month_key,
    streak_state,
    time_slot,
    week_key,
)
from .config import (
    EMOTION_CAPACITY,
    EXPORT_VERSION,
    JOURNAL_CAPACITY,
    MONTHLY_PROGRESS_LIMIT,
    MOOD_HISTORY_DAYS,
    TRIGGER_CONTEXT_LIMIT,
    TRIGGER_SEVERITY_LIMIT,
    WEEKLY_PROGRESS_LIMIT,
)
from .records import (
    EmotionalEntry,
    JournalEntry,
    MoodHistoryEntry,
    TriggerRecord,
    generate_id,
    now_iso,
    parse_timestamp,
    sentiment_score,
    text_of,
)
from .signals import extract_trigger_context
from .storage import KeyValueStorage, PersistentLayer

_EXPORTED_FIELDS = ("emotions", "patterns", "triggers", "progressMetrics", "moodHistory", "emotionalGoals")


def _empty_streaks() -> Dict[str, Any]:
    return {"positive": 0, "stable": 0, "current": "neutral"}


def _sort_key(value: Any) -> datetime:
    return parse_timestamp(value) or datetime.min


class EmotionalMemory(PersistentLayer):
    """Pattern, trigger, mood-history and progress analytics over emotions.

    Every ``store`` appends the entry and then updates the derived tables
    in place. Risk levels, trends and volatility are never stored; they are
    recomputed whenever they are read.
    """

    LAYER = "emotional"
    SCHEMA_VERSION = 1

    def __init__(
        self,
        user_id: str,
        storage: KeyValueStorage,
        max_size: int = EMOTION_CAPACITY,
    ) -> None:
        super().__init__(user_id, storage)
        self.max_size = max_size
        self.emotions: List[EmotionalEntry] = []
        self.patterns: Dict[str, Any] = {}
        self.triggers: Dict[str, TriggerRecord] = {}
        self.progress_metrics: Dict[str, Any] = {}
        self.mood_history: List[MoodHistoryEntry] = []
        self.emotional_goals: List[Dict[str, Any]] = []
        self.journal_entries: List[JournalEntry] = []

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _restore(self, data: Dict[str, Any]) -> None:
        def _list(name: str) -> list:
            value = data.get(name)
            return value if isinstance(value, list) else []

        def _dict(name: str) -> dict:
            value = data.get(name)
            return value if isinstance(value, dict) else {}

        self.emotions = _list("emotions")
        self.patterns = _dict("patterns")
        self.triggers = _dict("triggers")
        self.progress_metrics = _dict("progressMetrics")
        self.mood_history = _list("moodHistory")
        self.emotional_goals = _list("emotionalGoals")
        self.journal_entries = _list("journalEntries")

    def _serialise(self) -> Dict[str, Any]:
        return {
            "emotions": self.emotions,
            "patterns": self.patterns,
            "triggers": self.triggers,
            "progressMetrics": self.progress_metrics,
            "moodHistory": self.mood_history,
            "emotionalGoals": self.emotional_goals,
            "journalEntries": self.journal_entries,
        }

    def clear(self) -> None:
        self._restore({})
        self._remove_blob()

    # ------------------------------------------------------------------
    # Store and derived tables
    # ------------------------------------------------------------------

    def store(self, data: Dict[str, Any]) -> EmotionalEntry:
        entry: EmotionalEntry = {
            **data,  # type: ignore[typeddict-item]
            "id": generate_id("emotion"),
            "timestamp": data.get("timestamp") or now_iso(),
            "sessionId": data.get("sessionId") or "default",
        }
        entry["triggers"] = self._detect_entry_triggers(entry)

        self.emotions.append(entry)

        self._update_patterns(entry)
        self._update_triggers(entry)
        self._update_mood_history(entry)
        self._update_progress_metrics(entry)

        if len(self.emotions) > self.max_size:
            self.emotions = self.emotions[-self.max_size:]

        self.save()
        return entry

    @staticmethod
    def _detect_entry_triggers(entry: Dict[str, Any]) -> List[Dict[str, Any]]:
        score = sentiment_score(entry)
        if score is None or score >= NEGATIVE_TRIGGER_THRESHOLD:
            return []
        message = entry.get("message")
        return [
            {
                "type": keyword,
                "severity": abs(score),
                "context": extract_trigger_context(message, keyword),
            }
            for keyword in extract_triggers(message, entry.get("context"))
        ]

    @staticmethod
    def _entry_moment(entry: Dict[str, Any]) -> datetime:
        return parse_timestamp(entry.get("timestamp")) or datetime.now()

    def _update_patterns(self, entry: EmotionalEntry) -> None:
        for name in ("dailySentiment", "emotionalStates", "timeOfDay", "conversationLength", "topicEmotions"):
            if not isinstance(self.patterns.get(name), dict):
                self.patterns[name] = {}

        score = sentiment_score(entry)
        context = entry.get("context")
        timestamp = entry.get("timestamp")
        moment = self._entry_moment(entry)
        date = moment.date().isoformat()

        if score is not None:
            label = entry.get("sentiment", {}).get("label")
            self.patterns["dailySentiment"].setdefault(date, []).append(
                {"score": score, "label": label, "timestamp": timestamp}
            )
            self.patterns["timeOfDay"].setdefault(time_slot(moment.hour), []).append(score)

        if isinstance(context, dict) and isinstance(context.get("emotions"), list):
            states = self.patterns["emotionalStates"]
            for emotion in context["emotions"]:
                if isinstance(emotion, str):
                    states[emotion] = states.get(emotion, 0) + 1

        message = entry.get("message")
        if isinstance(message, str) and score is not None:
            category = message_length_category(len(message))
            self.patterns["conversationLength"].setdefault(category, []).append(score)

        if isinstance(context, dict) and isinstance(context.get("topics"), list) and score is not None:
            for topic in context["topics"]:
                if isinstance(topic, str):
                    self.patterns["topicEmotions"].setdefault(topic, []).append(
                        {"sentiment": score, "timestamp": timestamp}
                    )

    def _update_triggers(self, entry: EmotionalEntry) -> None:
        score = sentiment_score(entry)
        if score is None or score >= NEGATIVE_TRIGGER_THRESHOLD:
            return

        timestamp = entry["timestamp"]
        context = entry.get("context")
        for keyword in extract_triggers(entry.get("message"), context):
            record = self.triggers.get(keyword)
            if record is None:
                record = {
                    "count": 0,
                    "severity": [],
                    "contexts": [],
                    "firstSeen": timestamp,
                    "lastSeen": timestamp,
                }
                self.triggers[keyword] = record

            record["count"] += 1
            record["severity"].append(abs(score))
            record["contexts"].append(copy.deepcopy(context))
            record["lastSeen"] = timestamp

            if len(record["contexts"]) > TRIGGER_CONTEXT_LIMIT:
                record["contexts"] = record["contexts"][-TRIGGER_CONTEXT_LIMIT:]
            if len(record["severity"]) > TRIGGER_SEVERITY_LIMIT:
                record["severity"] = record["severity"][-TRIGGER_SEVERITY_LIMIT:]

    def _update_mood_history(self, entry: EmotionalEntry) -> None:
        score = sentiment_score(entry)
        if score is None:
            return

        date = self._entry_moment(entry).date().isoformat()
        timestamp = entry["timestamp"]
        existing = next((day for day in self.mood_history if day.get("date") == date), None)
        if existing is not None:
            existing["scores"].append(score)
            existing["averageScore"] = mean(existing["scores"])
            existing["lastUpdated"] = timestamp
        else:
            self.mood_history.append(
                {"date": date, "scores": [score], "averageScore": score, "lastUpdated": timestamp}
            )

        if len(self.mood_history) > MOOD_HISTORY_DAYS:
            self.mood_history.sort(key=lambda day: day.get("date", ""))
            self.mood_history = self.mood_history[-MOOD_HISTORY_DAYS:]

    def _update_progress_metrics(self, entry: EmotionalEntry) -> None:
        metrics = self.progress_metrics
        metrics.setdefault("weeklyProgress", [])
        metrics.setdefault("monthlyProgress", [])
        if not isinstance(metrics.get("streaks"), dict):
            metrics["streaks"] = _empty_streaks()

        score = sentiment_score(entry)
        if score is None:
            return

        moment = self._entry_moment(entry)
        self._add_progress_score(metrics["weeklyProgress"], "week", week_key(moment), score)
        self._add_progress_score(metrics["monthlyProgress"], "month", month_key(moment), score)
        self._update_streaks(score)

        if len(metrics["weeklyProgress"]) > WEEKLY_PROGRESS_LIMIT:
            metrics["weeklyProgress"] = metrics["weeklyProgress"][-WEEKLY_PROGRESS_LIMIT:]
        if len(metrics["monthlyProgress"]) > MONTHLY_PROGRESS_LIMIT:
            metrics["monthlyProgress"] = metrics["monthlyProgress"][-MONTHLY_PROGRESS_LIMIT:]

    @staticmethod
    def _add_progress_score(buckets: List[Dict[str, Any]], field: str, key: str, score: float) -> None:
        bucket = next((b for b in buckets if b.get(field) == key), None)
        if bucket is None:
            bucket = {field: key, "scores": [], "sessions": 0}
            buckets.append(bucket)
        bucket["scores"].append(score)
        bucket["sessions"] += 1
        bucket["average"] = mean(bucket["scores"])

    def _update_streaks(self, score: float) -> None:
        streaks = self.progress_metrics["streaks"]
        state = streak_state(score)
        if state == streaks.get("current"):
            streaks[state] = streaks.get(state, 0) + 1
        else:
            streaks["current"] = state
            streaks[state] = 1

    # ------------------------------------------------------------------
    # Query-driven reads
    # ------------------------------------------------------------------

    def get_relevant_patterns(self, query: str) -> Dict[str, Any]:
        query_lower = query.lower()

        def _matches(entry: Dict[str, Any]) -> bool:
            if query_lower in text_of(entry.get("message")):
                return True
            context = entry.get("context")
            topics = context.get("topics") if isinstance(context, dict) else None
            if isinstance(topics, list) and any(query_lower in text_of(topic) for topic in topics):
                return True
            entry_triggers = entry.get("triggers")
            if isinstance(entry_triggers, list):
                return any(
                    isinstance(t, dict) and t.get("type") and str(t["type"]).lower() in query_lower
                    for t in entry_triggers
                )
            return False

        return {
            "emotions": [entry for entry in self.emotions if _matches(entry)],
            "triggers": self.get_triggers_for_query(query_lower),
            "patterns": self.get_pattern_insights(query_lower),
        }

    def _describe_trigger(self, record: TriggerRecord, now: Optional[datetime] = None) -> Dict[str, Any]:
        return {
            **record,
            "averageSeverity": mean(record.get("severity") or []),
            "riskLevel": calculate_risk_level(record, now),
        }

    def get_triggers_for_query(self, query: str) -> Dict[str, Any]:
        query_lower = query.lower()
        return {
            trigger: self._describe_trigger(record)
            for trigger, record in self.triggers.items()
            if trigger.lower() in query_lower
        }

    def get_pattern_insights(self, query: str) -> Dict[str, Any]:
        query_lower = query.lower()
        insights: Dict[str, Any] = {}

        time_of_day = self.patterns.get("timeOfDay")
        if isinstance(time_of_day, dict):
            insights["timePatterns"] = {
                slot: {"average": mean(scores), "count": len(scores)}
                for slot, scores in time_of_day.items()
                if scores
            }

        topic_emotions = self.patterns.get("topicEmotions")
        if isinstance(topic_emotions, dict):
            insights["topicEmotions"] = {
                topic: {
                    "average": mean([float(item.get("sentiment") or 0.0) for item in data]),
                    "count": len(data),
                    "trend": calculate_topic_trend(data),
                }
                for topic, data in topic_emotions.items()
                if data and query_lower in topic.lower()
            }

        return insights

    def calculate_risk_level(self, trigger: TriggerRecord, now: Optional[datetime] = None) -> str:
        return calculate_risk_level(trigger, now)

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def get_patterns(self) -> Dict[str, Any]:
        return {
            **copy.deepcopy(self.patterns),
            "recentEmotions": self.emotions[-10:],
            "emotionalTrends": self.calculate_trends(),
            "triggers": self.get_top_triggers(),
            "moodSummary": self.get_mood_summary(),
            "progressInsights": self.get_progress_insights(),
        }

    def get_top_triggers(self, limit: int = 5) -> List[Dict[str, Any]]:
        described = [
            {"trigger": trigger, **self._describe_trigger(record)}
            for trigger, record in self.triggers.items()
        ]
        described.sort(key=lambda item: item.get("count", 0), reverse=True)
        return described[:limit]

    def _sorted_mood_history(self) -> List[MoodHistoryEntry]:
        return sorted(self.mood_history, key=lambda day: day.get("date", ""))

    def get_mood_summary(self) -> Optional[Dict[str, Any]]:
        history = self._sorted_mood_history()
        if not history:
            return None

        last_7 = history[-7:]
        last_30 = history[-30:]
        return {
            "last7Days": {
                "average": mean([day["averageScore"] for day in last_7]),
                "trend": calculate_mood_trend(last_7),
                "bestDay": max(last_7, key=lambda day: day["averageScore"]),
                "worstDay": min(last_7, key=lambda day: day["averageScore"]),
            },
            "last30Days": {
                "average": mean([day["averageScore"] for day in last_30]),
                "trend": calculate_mood_trend(last_30),
                "consistency": calculate_mood_consistency(last_30),
            },
        }

    def calculate_mood_trend(self, mood_days: List[Dict[str, Any]]) -> str:
        return calculate_mood_trend(mood_days)

    def calculate_mood_variance(self, mood_days: Optional[List[Dict[str, Any]]] = None) -> str:
        """Consistency band of daily averages (defaults to the last 30 days)."""

        days = mood_days if mood_days is not None else self._sorted_mood_history()[-30:]
        return calculate_mood_consistency(days)

    def get_progress_insights(self) -> Dict[str, Any]:
        metrics = self.progress_metrics
        insights: Dict[str, Any] = {
            "streaks": metrics.get("streaks"),
            "weeklyTrend": None,
            "monthlyTrend": None,
            "recommendations": [],
        }

        weekly = metrics.get("weeklyProgress") or []
        if len(weekly) >= 2:
            insights["weeklyTrend"] = calculate_progress_trend([w.get("average", 0.0) for w in weekly[-4:]])

        monthly = metrics.get("monthlyProgress") or []
        if len(monthly) >= 2:
            insights["monthlyTrend"] = calculate_progress_trend([m.get("average", 0.0) for m in monthly[-3:]])

        insights["recommendations"] = self.generate_recommendations()
        return insights

    def _high_risk_triggers(self) -> List[str]:
        return [
            trigger
            for trigger, record in self.triggers.items()
            if calculate_risk_level(record) == "high"
        ]

    def generate_recommendations(self) -> List[Dict[str, Any]]:
        recommendations: List[Dict[str, Any]] = []

        high_risk = self._high_risk_triggers()
        if high_risk:
            recommendations.append(
                {
                    "type": "trigger_management",
                    "priority": "high",
                    "message": f"Consider developing coping strategies for: {', '.join(high_risk)}",
                    "triggers": high_risk,
                }
            )

        time_of_day = self.patterns.get("timeOfDay")
        if isinstance(time_of_day, dict):
            time_scores = sorted(
                ({"time": slot, "average": mean(scores)} for slot, scores in time_of_day.items() if scores),
                key=lambda item: item["average"],
            )
            if time_scores and time_scores[0]["average"] < -0.3:
                lowest = time_scores[0]["time"]
                recommendations.append(
                    {
                        "type": "time_management",
                        "priority": "medium",
                        "message": (
                            f"Your mood tends to be lowest during {lowest}. "
                            "Consider scheduling self-care activities during this time."
                        ),
                        "timeSlot": lowest,
                    }
                )

        summary = self.get_mood_summary()
        if summary and summary["last30Days"]["consistency"] == "highly_variable":
            recommendations.append(
                {
                    "type": "mood_stability",
                    "priority": "medium",
                    "message": (
                        "Your mood has been quite variable lately. "
                        "Consider establishing a more consistent daily routine."
                    ),
                    "consistency": summary["last30Days"]["consistency"],
                }
            )

        return recommendations

    def get_recent_emotions(self, limit: int = 10, include_analysis: bool = False) -> Any:
        recent = []
        for entry in self.emotions[-limit:] if limit > 0 else []:
            context = entry.get("context")
            emotions = context.get("emotions") if isinstance(context, dict) else None
            recent.append(
                {
                    **entry,
                    "emotions": emotions if isinstance(emotions, list) else [],
                    "sentiment": entry.get("sentiment") or {"score": 0, "label": "neutral"},
                }
            )

        if not include_analysis:
            return recent

        scores = [sentiment_score(entry) or 0.0 for entry in recent]
        return {
            "emotions": recent,
            "analysis": {
                "averageSentiment": mean(scores),
                "dominantEmotions": self.get_dominant_emotions(recent),
                "volatility": calculate_emotional_volatility(recent),
            },
        }

    @staticmethod
    def get_dominant_emotions(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        counts: Counter[str] = Counter()
        for entry in entries:
            context = entry.get("context")
            if isinstance(context, dict) and isinstance(context.get("emotions"), list):
                counts.update(e for e in context["emotions"] if isinstance(e, str))
        return [{"emotion": emotion, "count": count} for emotion, count in counts.most_common(3)]

    def calculate_emotional_volatility(self, entries: Optional[List[Dict[str, Any]]] = None) -> str:
        return calculate_emotional_volatility(entries if entries is not None else self.emotions[-20:])

    def calculate_trends(self) -> Optional[Dict[str, Any]]:
        if len(self.emotions) < 5:
            return None

        recent = self.emotions[-20:]
        sentiments = [score for score in (sentiment_score(e) for e in recent) if score is not None]
        if not sentiments:
            return None

        slope = (sentiments[-1] - sentiments[0]) / len(sentiments) if len(sentiments) > 1 else 0.0
        if slope > 0.1:
            trend = "improving"
        elif slope < -0.1:
            trend = "declining"
        else:
            trend = "stable"

        return {
            "averageSentiment": mean(sentiments),
            "trend": trend,
            "momentum": calculate_momentum(sentiments),
            "confidence": min(len(sentiments) / 20, 1),
            "dataPoints": len(sentiments),
            "volatility": calculate_emotional_volatility(recent),
        }

    def get_all(self) -> Dict[str, Any]:
        return {"emotions": list(self.emotions), "patterns": copy.deepcopy(self.patterns)}

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    def add_emotional_goal(self, goal: Dict[str, Any]) -> Dict[str, Any]:
        emotional_goal = {
            "id": generate_id("emotion"),
            **goal,
            "createdAt": now_iso(),
            "status": "active",
            "progress": 0,
        }
        self.emotional_goals.append(emotional_goal)
        self.save()
        return emotional_goal

    def update_goal_progress(self, goal_id: str, progress: float, notes: str = "") -> Optional[Dict[str, Any]]:
        goal = next((g for g in self.emotional_goals if g.get("id") == goal_id), None)
        if goal is None:
            return None

        timestamp = now_iso()
        goal["progress"] = max(0, min(100, progress))
        goal["lastUpdated"] = timestamp
        if notes:
            goal.setdefault("progressNotes", []).append(
                {"date": timestamp, "progress": progress, "notes": notes}
            )
        if goal["progress"] >= 100:
            goal["status"] = "completed"
            goal["completedAt"] = timestamp

        self.save()
        return goal

    def get_active_goals(self) -> List[Dict[str, Any]]:
        return [goal for goal in self.emotional_goals if goal.get("status") == "active"]

    def get_completed_goals(self) -> List[Dict[str, Any]]:
        return [goal for goal in self.emotional_goals if goal.get("status") == "completed"]

    # ------------------------------------------------------------------
    # Insights and risk
    # ------------------------------------------------------------------

    def get_emotional_insights(self, timeframe: str = "30days") -> Dict[str, Any]:
        return {
            "timeframe": timeframe,
            "summary": self.get_mood_summary(),
            "trends": self.calculate_trends(),
            "triggers": self.get_top_triggers(),
            "recommendations": self.generate_recommendations(),
            "goals": {
                "active": self.get_active_goals(),
                "completed": self.get_completed_goals(),
            },
            "riskAssessment": self.calculate_risk_assessment(),
        }

    def calculate_risk_assessment(self) -> Dict[str, Any]:
        assessment: Dict[str, Any] = {"overallRisk": "low", "factors": [], "recommendations": []}

        high_risk = self._high_risk_triggers()
        if high_risk:
            assessment["factors"].append(
                {
                    "type": "triggers",
                    "severity": "high",
                    "description": f"{len(high_risk)} high-risk emotional triggers identified",
                }
            )

        if calculate_emotional_volatility(self.emotions[-20:]) == "high":
            assessment["factors"].append(
                {
                    "type": "volatility",
                    "severity": "medium",
                    "description": "High emotional volatility detected in recent interactions",
                }
            )

        trends = self.calculate_trends()
        if trends and trends["trend"] == "declining" and "negative" in trends["momentum"]:
            assessment["factors"].append(
                {
                    "type": "trend",
                    "severity": "medium",
                    "description": "Declining emotional trend with negative momentum",
                }
            )

        high_count = sum(1 for f in assessment["factors"] if f["severity"] == "high")
        medium_count = sum(1 for f in assessment["factors"] if f["severity"] == "medium")
        if high_count > 0 or medium_count > 2:
            assessment["overallRisk"] = "high"
        elif medium_count > 0:
            assessment["overallRisk"] = "medium"

        assessment["recommendations"] = [rec["message"] for rec in self.generate_recommendations()]
        return assessment

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_data(self) -> Dict[str, Any]:
        payload = copy.deepcopy(self._serialise())
        payload["exportDate"] = now_iso()
        payload["version"] = EXPORT_VERSION
        return payload

    def import_data(self, data: Any) -> bool:
        if not isinstance(data, dict) or not data.get("version") or not data.get("exportDate"):
            logging.warning("Emotional memory import rejected: missing version or exportDate.")
            return False

        incoming = {field: copy.deepcopy(data.get(field)) for field in _EXPORTED_FIELDS}
        # Older exports carry no journal; keep the current one in that case.
        if isinstance(data.get("journalEntries"), list):
            incoming["journalEntries"] = copy.deepcopy(data["journalEntries"])
        else:
            incoming["journalEntries"] = self.journal_entries
        self._restore(incoming)
        self.save()
        return True

    # ------------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------------

    def store_journal_entry(self, entry: Dict[str, Any]) -> JournalEntry:
        journal_entry: JournalEntry = {
            "id": generate_id("journal"),
            "content": entry.get("content") or "",
            "prompt": entry.get("prompt"),
            "type": entry.get("type") or "free_form",
            "mood": entry.get("mood"),
            "emotions": list(entry.get("emotions") or []),
            "tags": list(entry.get("tags") or []),
            "timestamp": entry.get("timestamp") or now_iso(),
            "sessionId": entry.get("sessionId"),
            "aiAnalysis": None,
            "insights": [],
            "patterns": [],
        }
        self.journal_entries.append(journal_entry)

        if len(self.journal_entries) > JOURNAL_CAPACITY:
            self.journal_entries = self.journal_entries[-JOURNAL_CAPACITY:]

        self.save()
        return journal_entry

    def get_journal_entries(
        self,
        limit: int = 20,
        entry_type: Optional[str] = None,
        date_range: Optional[Dict[str, Any]] = None,
        tags: Optional[List[str]] = None,
        sort_by: str = "timestamp",
        sort_order: str = "desc",
    ) -> List[JournalEntry]:
        entries = list(self.journal_entries)

        if entry_type:
            entries = [e for e in entries if e.get("type") == entry_type]

        if tags:
            entries = [e for e in entries if any(tag in (e.get("tags") or []) for tag in tags)]

        if date_range:
            start = parse_timestamp(date_range.get("start")) or datetime.min
            end = parse_timestamp(date_range.get("end")) or datetime.max
            entries = [e for e in entries if start <= _sort_key(e.get("timestamp")) <= end]

        entries.sort(key=lambda e: _sort_key(e.get(sort_by)), reverse=sort_order == "desc")
        return entries[:limit]

    def update_journal_entry(self, entry_id: str, updates: Dict[str, Any]) -> Optional[JournalEntry]:
        for index, entry in enumerate(self.journal_entries):
            if entry.get("id") != entry_id:
                continue
            updated: JournalEntry = {
                **entry,
                **{k: v for k, v in updates.items() if k != "id"},  # type: ignore[typeddict-item]
                "updatedAt": now_iso(),
            }
            self.journal_entries[index] = updated
            self.save()
            return updated
        return None

    def delete_journal_entry(self, entry_id: str) -> Optional[JournalEntry]:
        for index, entry in enumerate(self.journal_entries):
            if entry.get("id") == entry_id:
                deleted = self.journal_entries.pop(index)
                self.save()
                return deleted
        return None

    def analyze_journal_patterns(self) -> Dict[str, Any]:
        emotional_trends: Counter[str] = Counter()
        common_themes: Counter[str] = Counter()
        writing_frequency: Counter[str] = Counter()
        mood_progression: List[Dict[str, Any]] = []
        insightful_entries: List[Dict[str, Any]] = []

        for entry in self.journal_entries:
            emotions = entry.get("emotions") or []
            emotional_trends.update(emotions)
            common_themes.update(entry.get("tags") or [])

            if entry.get("mood"):
                mood_progression.append({"date": entry.get("timestamp"), "mood": entry["mood"]})

            moment = parse_timestamp(entry.get("timestamp"))
            if moment is not None:
                writing_frequency[moment.date().isoformat()] += 1

            content = entry.get("content") or ""
            if len(content) > 200 and len(emotions) > 2:
                insightful_entries.append(
                    {
                        "id": entry.get("id"),
                        "timestamp": entry.get("timestamp"),
                        "preview": f"{content[:100]}...",
                        "emotionCount": len(emotions),
                    }
                )

        return {
            "emotionalTrends": dict(emotional_trends),
            "commonThemes": dict(common_themes),
            "moodProgression": mood_progression,
            "writingFrequency": dict(writing_frequency),
            "insightfulEntries": insightful_entries,
        }

    def search_journal_entries(self, query: str) -> List[JournalEntry]:
        terms = [term for term in query.lower().split() if term]
        if not terms:
            return []

        def _matches(entry: Dict[str, Any]) -> bool:
            content = text_of(entry.get("content"))
            tags = " ".join(str(t) for t in entry.get("tags") or []).lower()
            emotions = " ".join(str(e) for e in entry.get("emotions") or []).lower()
            return any(term in content or term in tags or term in emotions for term in terms)

        matches = [entry for entry in self.journal_entries if _matches(entry)]
        matches.sort(key=lambda e: _sort_key(e.get("timestamp")), reverse=True)
        return matches

    def get_journal_insights(self, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        total = len(self.journal_entries)
        if total == 0:
            return None

        current = now or datetime.now()
        cutoff = current - timedelta(days=30)
        recent = [e for e in self.journal_entries if _sort_key(e.get("timestamp")) >= cutoff]

        word_counts = [len((e.get("content") or "").split(" ")) for e in self.journal_entries]
        emotions: Counter[str] = Counter()
        for entry in self.journal_entries:
            emotions.update(entry.get("emotions") or [])

        return {
            "totalEntries": total,
            "recentEntries": len(recent),
            "avgWordsPerEntry": round(mean(word_counts)),
            "topEmotions": [{"emotion": e, "count": c} for e, c in emotions.most_common(5)],
            "longestEntry": max(self.journal_entries, key=lambda e: len(e.get("content") or "")),
            "writingStreak": self.calculate_writing_streak(current.date()),
        }

    def calculate_writing_streak(self, today: Any = None) -> int:
        written_days = set()
        for entry in self.journal_entries:
            moment = parse_timestamp(entry.get("timestamp"))
            if moment is not None:
                written_days.add(moment.date())

        day = today or datetime.now().date()
        streak = 0
        while day in written_days:
            streak += 1
            day -= timedelta(days=1)
        return streak
