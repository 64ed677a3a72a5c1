"""Decide whether the companion should open a conversation on its own."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from .analytics import mean
from .records import parse_timestamp, sentiment_score, text_of

if TYPE_CHECKING:
    from .memory_manager import MemoryManager


LOW_MOOD_EMOTIONS = ("sad", "depressed", "hopeless", "lonely", "empty")
STRESS_EMOTIONS = ("anxious", "overwhelmed", "stressed", "worried", "panic", "tense")
ANXIETY_EMOTIONS = ("anxious", "worried", "nervous", "fearful", "panic")
ISOLATION_EMOTIONS = ("lonely", "isolated", "disconnected", "empty")
GOAL_KEYWORDS = ("goal", "progress", "achievement", "working on", "improve")
CRISIS_TRIGGERS = ("self-harm", "suicide", "crisis")
HIGH_RISK_EMOTIONS = ("despair", "hopelessness", "rage", "panic")
MEDIUM_RISK_EMOTIONS = ("sadness", "anxiety", "anger", "fear")

_AROUSAL_LEVELS = {"low": 0.0, "medium": 0.5, "high": 1.0}

INACTIVITY_THRESHOLD = timedelta(hours=24)
GOAL_REMINDER_THRESHOLD = timedelta(days=7)
DEFAULT_GOAL_DISCUSSION_AGE = timedelta(days=30)
ACTIVE_SESSION_WINDOW = timedelta(minutes=30)

# (start hour, end hour, check-in type); end is exclusive.
TIME_BASED_WINDOWS: tuple[tuple[int, int, str], ...] = (
    (9, 12, "morning_checkin"),
    (14, 17, "afternoon_checkin"),
    (19, 22, "evening_reflection"),
)

# Highest priority first.
PROACTIVE_MESSAGES: tuple[tuple[str, str, str, str], ...] = (
    (
        "crisisRisk",
        "crisis_support",
        "critical",
        "{greeting}, I'm sensing you might be going through a really difficult time right now. "
        "Please know that you're not alone, and I'm here to support you. "
        "Would you like to talk about what you're experiencing? 💜",
    ),
    (
        "lowMoodPattern",
        "mood_support",
        "high",
        "{greeting}, I noticed you might be going through a tough time lately. "
        "I'm here if you'd like to talk about what's on your mind. "
        "Sometimes sharing can help lighten the load. 💙",
    ),
    (
        "anxietyPattern",
        "anxiety_support",
        "high",
        "{greeting}, I've noticed some signs that you might be feeling anxious lately. "
        "Would you like to try some grounding techniques together, "
        "or talk through what's been on your mind? 🌸",
    ),
    (
        "stressPattern",
        "stress_support",
        "high",
        "{greeting}, it seems like you've been dealing with some stress recently. "
        "Would you like to try a quick breathing exercise together, "
        "or talk about what's been weighing on you? 🌱",
    ),
    (
        "isolationPattern",
        "connection_support",
        "medium",
        "{greeting}, I've been thinking about you and wanted to reach out. "
        "Sometimes when we're feeling disconnected, a gentle conversation can help. "
        "How are you doing today? 🤝",
    ),
    (
        "goalReminder",
        "goal_reminder",
        "medium",
        "{greeting}, I was thinking about the goals we discussed. "
        "How have you been feeling about your progress lately? "
        "I'd love to hear about any steps you've taken, big or small! 🎯",
    ),
    (
        "checkIn",
        "regular_checkin",
        "low",
        "{greeting}, just wanted to check in and see how you're doing. "
        "What's been the highlight of your day or week so far? ✨",
    ),
    (
        "inactivity",
        "reconnection",
        "medium",
        "{greeting}, it's been a while since we last talked. I hope you're doing well! "
        "I'm here whenever you need someone to listen or if you'd like to catch up. 🤗",
    ),
)


def _greeting(preferred_name: str) -> str:
    return f"Hi {preferred_name}" if preferred_name else "Hi there"


def _entry_emotions(entry: Dict[str, Any]) -> List[str]:
    """Context emotions plus the trigger keywords recorded on the entry."""

    labels: List[str] = []
    context = entry.get("context")
    if isinstance(context, dict) and isinstance(context.get("emotions"), list):
        labels.extend(str(e).lower() for e in context["emotions"])
    triggers = entry.get("triggers")
    if isinstance(triggers, list):
        labels.extend(str(t.get("type")).lower() for t in triggers if isinstance(t, dict) and t.get("type"))
    return labels


def summarize_emotional_patterns(recent_emotions: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Condense the latest emotional entries into the signals the detectors read."""

    if not recent_emotions:
        return {
            "recentTrend": "Neutral",
            "commonEmotions": [],
            "recentEmotions": [],
            "progressNotes": "No emotional data available yet",
        }

    scores = [s for s in (sentiment_score(e) for e in recent_emotions) if s is not None]
    average = mean(scores)
    if average > 0.3:
        trend = "Positive"
    elif average < -0.3:
        trend = "Negative"
    else:
        trend = "Neutral"

    counts: Counter[str] = Counter()
    intensities: List[float] = []
    arousals: List[float] = []
    for entry in recent_emotions:
        counts.update(_entry_emotions(entry))
        state = entry.get("emotionalState")
        if isinstance(state, dict):
            intensity = state.get("intensity")
            if isinstance(intensity, (int, float)):
                intensities.append(float(intensity))
            arousals.append(_AROUSAL_LEVELS.get(str(state.get("arousal")), 0.5))

    spread = (max(scores) - min(scores)) if len(scores) > 1 else 0.0

    return {
        "recentTrend": trend,
        "commonEmotions": [emotion for emotion, _ in counts.most_common(3)],
        "averageIntensity": mean(intensities) if intensities else None,
        "averageArousal": mean(arousals) if arousals else None,
        "emotionalVariability": spread,
        "recentEmotions": recent_emotions,
        "progressNotes": f"Based on {len(recent_emotions)} recent interactions",
    }


def _has_any(emotions: Iterable[str], vocabulary: Iterable[str]) -> bool:
    vocabulary = set(vocabulary)
    return any(emotion.lower() in vocabulary for emotion in emotions)


def detect_low_mood_pattern(patterns: Dict[str, Any]) -> bool:
    if patterns.get("recentTrend") != "Negative":
        return False
    intensity = patterns.get("averageIntensity")
    low_intensity = isinstance(intensity, (int, float)) and intensity < 0.3
    return _has_any(patterns.get("commonEmotions") or [], LOW_MOOD_EMOTIONS) or low_intensity


def detect_stress_pattern(patterns: Dict[str, Any]) -> bool:
    if _has_any(patterns.get("commonEmotions") or [], STRESS_EMOTIONS):
        return True
    arousal = patterns.get("averageArousal") or 0.0
    variability = patterns.get("emotionalVariability") or 0.0
    return arousal > 0.7 and variability > 0.6


def detect_anxiety_pattern(patterns: Dict[str, Any]) -> bool:
    if not _has_any(patterns.get("commonEmotions") or [], ANXIETY_EMOTIONS):
        return False
    return (patterns.get("averageArousal") or 0.0) > 0.6


def detect_isolation_pattern(patterns: Dict[str, Any]) -> bool:
    return _has_any(patterns.get("commonEmotions") or [], ISOLATION_EMOTIONS)


def assess_current_risk_level(recent_emotions: List[Dict[str, Any]]) -> str:
    if not recent_emotions:
        return "low"

    risk = 0.0
    for entry in recent_emotions:
        state = entry.get("emotionalState") if isinstance(entry.get("emotionalState"), dict) else {}
        primary = str(state.get("primary") or "").lower()
        intensity = state.get("intensity") if isinstance(state.get("intensity"), (int, float)) else 0.0
        if primary in HIGH_RISK_EMOTIONS:
            risk += intensity * 3
        elif primary in MEDIUM_RISK_EMOTIONS:
            risk += intensity * 2

        flagged = [
            t.get("type")
            for field in ("triggers", "triggerCategories")
            for t in entry.get(field) or []
            if isinstance(t, dict)
        ]
        message = text_of(entry.get("message"))
        if any(t in CRISIS_TRIGGERS for t in flagged) or any(word in message for word in CRISIS_TRIGGERS):
            risk += 5

    average = risk / len(recent_emotions)
    if average > 3:
        return "high"
    if average > 1.5:
        return "medium"
    return "low"


def last_goal_discussion(messages: List[Dict[str, Any]], now: datetime) -> datetime:
    for message in reversed(messages[-20:]):
        text = text_of(message.get("message") or message.get("content"))
        if any(keyword in text for keyword in GOAL_KEYWORDS):
            return parse_timestamp(message.get("timestamp")) or now
    return now - DEFAULT_GOAL_DISCUSSION_AGE


def should_remind_about_goals(therapy_goals: List[Any], messages: List[Dict[str, Any]], now: datetime) -> bool:
    if not therapy_goals:
        return False
    return now - last_goal_discussion(messages, now) > GOAL_REMINDER_THRESHOLD


def should_do_regular_check_in(last_activity: Optional[datetime], now: datetime) -> bool:
    if last_activity is None:
        return False
    days = (now - last_activity).total_seconds() / 86400.0
    return 3 <= days <= 5


def last_activity_time(memories: Iterable[Dict[str, Any]]) -> Optional[datetime]:
    stamps = [parse_timestamp(m.get("timestamp")) for m in memories]
    known = [stamp for stamp in stamps if stamp is not None]
    return max(known) if known else None


def collect_triggers(manager: "MemoryManager", now: Optional[datetime] = None) -> Dict[str, Any]:
    """Evaluate every detector against the manager's current memory."""

    current = now or datetime.now()
    recent = manager.emotional.emotions[-10:]
    patterns = summarize_emotional_patterns(recent)
    last_activity = last_activity_time([*manager.short_term.get_all(), *recent])
    therapy_goals = manager.preferences.get_therapy_goals()

    return {
        "inactivity": last_activity is not None and current - last_activity > INACTIVITY_THRESHOLD,
        "lowMoodPattern": detect_low_mood_pattern(patterns),
        "stressPattern": detect_stress_pattern(patterns),
        "anxietyPattern": detect_anxiety_pattern(patterns),
        "isolationPattern": detect_isolation_pattern(patterns),
        "goalReminder": should_remind_about_goals(therapy_goals, manager.emotional.emotions, current),
        "checkIn": should_do_regular_check_in(last_activity, current),
        "crisisRisk": assess_current_risk_level(recent) == "high",
    }


def generate_proactive_message(triggers: Dict[str, Any], preferred_name: str = "") -> Optional[Dict[str, str]]:
    greeting = _greeting(preferred_name)
    for flag, message_type, priority, template in PROACTIVE_MESSAGES:
        if triggers.get(flag):
            return {
                "type": message_type,
                "message": template.format(greeting=greeting),
                "priority": priority,
            }
    return None


def generate_time_based_message(
    trigger_type: str,
    patterns: Dict[str, Any],
    preferred_name: str = "",
) -> Optional[Dict[str, str]]:
    greeting = _greeting(preferred_name)
    if trigger_type == "morning_checkin":
        return {
            "type": "morning_checkin",
            "message": (
                f"{greeting}, good morning! ☀️ How are you feeling as you start your day? "
                "I'm here if you'd like to set some intentions or just check in."
            ),
            "priority": "low",
        }
    if trigger_type == "afternoon_checkin":
        if patterns.get("recentTrend") == "Negative":
            return {
                "type": "afternoon_support",
                "message": (
                    f"{greeting}, I hope your afternoon is going well. If you're feeling overwhelmed, "
                    "remember that it's okay to take a moment to breathe. 🌱"
                ),
                "priority": "medium",
            }
        return {
            "type": "afternoon_checkin",
            "message": (
                f"{greeting}, how's your day unfolding? "
                "Sometimes a mid-day check-in can help us stay grounded. 🌿"
            ),
            "priority": "low",
        }
    if trigger_type == "evening_reflection":
        return {
            "type": "evening_reflection",
            "message": (
                f"{greeting}, as the day winds down, how are you feeling? "
                "Would you like to reflect on something that went well today? 🌙"
            ),
            "priority": "low",
        }
    return None


def _engagement_allowed(manager: "MemoryManager", enabled: bool) -> bool:
    session = manager.preferences.get("sessionPreferences")
    if not isinstance(session, dict):
        session = {}
    return enabled and session.get("proactiveEngagement") is not False


def check_proactive_engagement(
    manager: "MemoryManager",
    now: Optional[datetime] = None,
    enabled: bool = True,
) -> Optional[Dict[str, Any]]:
    """Return the check-in message to send now, or ``None``."""

    if not _engagement_allowed(manager, enabled):
        return None

    try:
        triggers = collect_triggers(manager, now)
    except Exception as exc:  # noqa: BLE001
        logging.warning("Proactive engagement check failed: %s", exc)
        return None

    message = generate_proactive_message(triggers, manager.preferences.get_preferred_name())
    if message is None:
        return None
    return {**message, "triggers": triggers}


def time_based_trigger(hour: int) -> Optional[str]:
    for start, end, trigger_type in TIME_BASED_WINDOWS:
        if start <= hour < end:
            return trigger_type
    return None


def check_time_based_engagement(
    manager: "MemoryManager",
    now: Optional[datetime] = None,
    enabled: bool = True,
) -> Optional[Dict[str, str]]:
    """Time-of-day check-in, skipped while the user is mid-conversation."""

    if not _engagement_allowed(manager, enabled):
        return None

    current = now or datetime.now()
    trigger_type = time_based_trigger(current.hour)
    if trigger_type is None:
        return None

    recent = manager.emotional.emotions[-10:]
    last_activity = last_activity_time([*manager.short_term.get_all(), *recent])
    if last_activity is None or current - last_activity < ACTIVE_SESSION_WINDOW:
        return None

    patterns = summarize_emotional_patterns(recent)
    return generate_time_based_message(trigger_type, patterns, manager.preferences.get_preferred_name())
