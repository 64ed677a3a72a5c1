"""Derived emotional signals: trigger extraction, trends, volatility and risk.

All functions are pure and recompute from the data they are given. The
thresholds are heuristics kept identical across releases so that stored
histories keep producing the same labels.
"""

from __future__ import annotations

import statistics
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .records import parse_timestamp, sentiment_score

TRIGGER_KEYWORDS: tuple[str, ...] = (
    "stress", "anxiety", "worry", "fear", "panic", "overwhelm",
    "sad", "depressed", "lonely", "isolated", "hopeless",
    "angry", "frustrated", "irritated", "annoyed", "furious",
    "work", "job", "boss", "deadline", "pressure",
    "family", "relationship", "conflict", "argument",
    "money", "financial", "bills", "debt",
    "health", "illness", "pain", "tired", "exhausted",
    "rejection", "failure", "mistake", "criticism",
)

NEGATIVE_TRIGGER_THRESHOLD = -0.2
STREAK_THRESHOLD = 0.2


def mean(values: Sequence[float]) -> float:
    return statistics.fmean(values) if values else 0.0


def extract_triggers(message: Any, context: Any) -> List[str]:
    """Return dictionary keywords found in the message or the context topics.

    Keys are always the lowercase dictionary text, deduplicated in first-seen
    order.
    """

    found: List[str] = []
    if isinstance(message, str) and message:
        message_lower = message.lower()
        found.extend(keyword for keyword in TRIGGER_KEYWORDS if keyword in message_lower)

    topics = context.get("topics") if isinstance(context, dict) else None
    if isinstance(topics, list):
        for topic in topics:
            if isinstance(topic, str) and topic.lower() in TRIGGER_KEYWORDS:
                found.append(topic.lower())

    return list(dict.fromkeys(found))


def time_slot(hour: int) -> str:
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def message_length_category(length: int) -> str:
    if length < 50:
        return "short"
    if length < 200:
        return "medium"
    return "long"


def week_key(moment: datetime) -> str:
    iso_year, iso_week, _ = moment.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def month_key(moment: datetime) -> str:
    return f"{moment.year}-{moment.month:02d}"


def streak_state(score: float) -> str:
    if score > STREAK_THRESHOLD:
        return "positive"
    if score < -STREAK_THRESHOLD:
        return "negative"
    return "stable"


def calculate_risk_score(trigger: Dict[str, Any], now: Optional[datetime] = None) -> float:
    """``avgSeverity*40 + min(count/10, 1)*30 + max(0, (7 - days)/7)*30``."""

    severities = [float(s) for s in trigger.get("severity") or [] if isinstance(s, (int, float))]
    avg_severity = mean(severities)
    frequency = trigger.get("count") or 0

    last_seen = parse_timestamp(trigger.get("lastSeen"))
    current = now or datetime.now()
    if last_seen is None:
        recency_days = float("inf")
    else:
        recency_days = (current - last_seen).total_seconds() / 86400.0

    risk = avg_severity * 40
    risk += min(frequency / 10, 1) * 30
    risk += max(0.0, (7 - recency_days) / 7) * 30
    return risk


def calculate_risk_level(trigger: Dict[str, Any], now: Optional[datetime] = None) -> str:
    risk = calculate_risk_score(trigger, now)
    if risk > 70:
        return "high"
    if risk > 40:
        return "medium"
    return "low"


def calculate_mood_trend(mood_days: Sequence[Dict[str, Any]]) -> str:
    """Compare the first and second half of a run of daily averages."""

    if len(mood_days) < 3:
        return "insufficient_data"

    scores = [float(day.get("averageScore") or 0.0) for day in mood_days]
    middle = len(scores) // 2
    difference = mean(scores[middle:]) - mean(scores[:middle])

    if difference > 0.15:
        return "improving"
    if difference < -0.15:
        return "declining"
    return "stable"


def calculate_mood_consistency(mood_days: Sequence[Dict[str, Any]]) -> str:
    if len(mood_days) < 5:
        return "insufficient_data"

    scores = [float(day.get("averageScore") or 0.0) for day in mood_days]
    deviation = statistics.pstdev(scores)

    if deviation < 0.2:
        return "very_consistent"
    if deviation < 0.4:
        return "consistent"
    if deviation < 0.6:
        return "somewhat_variable"
    return "highly_variable"


def calculate_emotional_volatility(entries: Iterable[Dict[str, Any]]) -> str:
    scores = [score for score in (sentiment_score(e) for e in entries) if score is not None]
    if len(scores) < 2:
        return "insufficient_data"

    deviation = statistics.pstdev(scores)
    if deviation < 0.2:
        return "low"
    if deviation < 0.4:
        return "moderate"
    return "high"


def calculate_topic_trend(topic_data: Sequence[Dict[str, Any]]) -> str:
    """Last five observations against everything before them."""

    if len(topic_data) < 3:
        return "insufficient_data"

    recent = topic_data[-5:]
    older = topic_data[:-5]
    if not older:
        return "insufficient_data"

    difference = mean([float(item.get("sentiment") or 0.0) for item in recent]) - mean(
        [float(item.get("sentiment") or 0.0) for item in older]
    )
    if difference > 0.2:
        return "improving"
    if difference < -0.2:
        return "declining"
    return "stable"


def calculate_progress_trend(values: Sequence[float]) -> str:
    if len(values) < 2:
        return "insufficient_data"

    difference = values[-1] - values[0]
    if difference > 0.1:
        return "improving"
    if difference < -0.1:
        return "declining"
    return "stable"


def calculate_momentum(scores: Sequence[float]) -> str:
    """Average of the last five scores against the five before them."""

    if len(scores) < 5:
        return "stable"
    recent_five = scores[-5:]
    previous_five = scores[-10:-5]
    if not previous_five:
        return "stable"

    change = mean(recent_five) - mean(previous_five)
    if change > 0.2:
        return "accelerating_positive"
    if change > 0.05:
        return "gradually_improving"
    if change < -0.2:
        return "accelerating_negative"
    if change < -0.05:
        return "gradually_declining"
    return "stable"
