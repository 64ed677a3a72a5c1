"""Record shapes and small helpers shared by the memory layers.

Persisted and exported records keep the camelCase keys of the original
storage layout so existing blobs stay readable.
"""

from __future__ import annotations

import random
import string
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, TypedDict


class Sentiment(TypedDict):
    score: float
    label: str


class MessageContext(TypedDict, total=False):
    topics: List[str]
    emotions: List[str]
    themes: List[str]
    messageLength: int
    wordCount: int


class MemoryRecord(TypedDict, total=False):
    id: str
    timestamp: str
    message: str
    response: str
    sentiment: Sentiment
    context: MessageContext
    sessionId: str
    importance: float


class EmotionalState(TypedDict):
    primary: str
    intensity: float
    valence: str
    arousal: str
    complexity: str
    secondary: List[str]


class DetectedTrigger(TypedDict):
    type: str
    severity: float
    context: Dict[str, Any]


class EmotionalEntry(MemoryRecord, total=False):
    emotionalState: EmotionalState
    triggers: List[DetectedTrigger]


class TriggerRecord(TypedDict):
    count: int
    severity: List[float]
    contexts: List[Any]
    firstSeen: str
    lastSeen: str


class MoodHistoryEntry(TypedDict):
    date: str
    scores: List[float]
    averageScore: float
    lastUpdated: str


class JournalEntry(TypedDict, total=False):
    id: str
    content: str
    prompt: Optional[str]
    type: str
    mood: Any
    emotions: List[str]
    tags: List[str]
    timestamp: str
    sessionId: Optional[str]
    aiAnalysis: Any
    insights: List[Any]
    patterns: List[Any]
    updatedAt: str


_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_id(prefix: str) -> str:
    """Return ``<prefix>_<epoch-ms>_<9 random chars>``; unique in practice only."""

    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def now_iso() -> str:
    return datetime.now().isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp into a naive local datetime, or ``None``."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def sentiment_score(record: Any) -> Optional[float]:
    """Return the numeric sentiment score of a record, if it has one."""

    if not isinstance(record, dict):
        return None
    sentiment = record.get("sentiment")
    if not isinstance(sentiment, dict):
        return None
    score = sentiment.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return None
    return float(score)


def text_of(value: Any) -> str:
    """Lower-cased text of a string field; anything else becomes empty."""

    return value.lower() if isinstance(value, str) else ""
