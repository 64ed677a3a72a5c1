"""Keyword and pattern lookups that annotate a chat turn before it is stored.

Everything here is a fixed-dictionary heuristic. Results feed the memory
layers (topics, entities, emotional state) and the preferences layer
(coping strategies, relationship patterns).
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from .records import now_iso

EMOTION_KEYWORDS: Dict[str, tuple[str, ...]] = {
    "happy": ("happy", "joy", "excited", "glad", "cheerful"),
    "sad": ("sad", "depressed", "down", "upset", "crying"),
    "angry": ("angry", "mad", "furious", "annoyed", "frustrated"),
    "anxious": ("anxious", "worried", "nervous", "stressed", "panic"),
    "calm": ("calm", "peaceful", "relaxed", "serene", "tranquil"),
}

TOPIC_KEYWORDS: Dict[str, tuple[str, ...]] = {
    "work": ("work", "job", "career", "office", "boss", "colleague"),
    "family": ("family", "mother", "father", "parent", "sibling", "child"),
    "relationship": ("relationship", "partner", "boyfriend", "girlfriend", "marriage"),
    "health": ("health", "sick", "doctor", "medicine", "hospital", "pain"),
    "education": ("school", "university", "study", "exam", "teacher", "student"),
}

LOCATION_KEYWORDS = ("home", "work", "school", "hospital", "office", "park", "restaurant")

_PERSON_PATTERN = re.compile(r"\b[A-Z][a-z]+\s[A-Z][a-z]+\b")
_DATE_PATTERN = re.compile(
    r"\b(?:today|tomorrow|yesterday|\d{1,2}/\d{1,2}/\d{4}|\d{1,2}-\d{1,2}-\d{4})\b",
    re.IGNORECASE,
)

TRIGGER_CATEGORY_PATTERNS: Dict[str, re.Pattern[str]] = {
    name: re.compile(pattern, re.IGNORECASE)
    for name, pattern in {
        "stress": r"stress|pressure|overwhelm|burden|deadline",
        "anxiety": r"anxious|worry|nervous|panic|fear",
        "sadness": r"sad|depressed|down|lonely|hopeless",
        "anger": r"angry|frustrated|mad|irritated|furious",
        "work": r"work|job|boss|colleague|office|meeting",
        "relationship": r"relationship|partner|family|friend|conflict",
        "health": r"sick|pain|tired|exhausted|illness",
        "financial": r"money|bills|debt|financial|broke",
        "rejection": r"rejected|ignored|dismissed|excluded",
        "failure": r"failed|mistake|wrong|stupid|useless",
    }.items()
}

SECONDARY_EMOTION_PATTERNS: Dict[str, re.Pattern[str]] = {
    name: re.compile(pattern, re.IGNORECASE)
    for name, pattern in {
        "hope": r"hope|optimistic|better|improve|future",
        "fear": r"scared|afraid|terrified|worried",
        "shame": r"ashamed|embarrassed|guilty|regret",
        "pride": r"proud|accomplished|achieved|success",
        "gratitude": r"grateful|thankful|appreciate|blessed",
        "confusion": r"confused|lost|unclear|don't understand",
        "determination": r"determined|will|going to|committed",
        "vulnerability": r"vulnerable|exposed|raw|open",
    }.items()
}

COPING_STRATEGY_PATTERNS: Dict[str, re.Pattern[str]] = {
    name: re.compile(pattern)
    for name, pattern in {
        "breathing": r"breath|breathing|inhale|exhale|deep breath",
        "exercise": r"exercise|walk|run|gym|workout|physical activity",
        "meditation": r"meditat|mindful|calm|relax|zen|peace",
        "journaling": r"write|journal|diary|note|reflect",
        "music": r"music|song|listen|playlist|sound",
        "social": r"friend|family|talk|call|support|connect",
        "nature": r"nature|outside|park|garden|fresh air|outdoors",
        "creative": r"draw|paint|create|art|craft|hobby",
        "grounding": r"ground|5 things|senses|present|here and now",
        "positive_self_talk": r"affirmation|positive|self-talk|encourage",
        "problem_solving": r"plan|solution|step|organize|prioritize",
        "distraction": r"distract|movie|book|game|activity",
    }.items()
}

RELATIONSHIP_PATTERNS: Dict[str, re.Pattern[str]] = {
    name: re.compile(pattern)
    for name, pattern in {
        "conflict_resolution": r"conflict|argue|fight|disagree|resolve|compromise",
        "communication_style": r"communicate|express|listen|understand|explain",
        "emotional_support": r"support|comfort|care|empathy|understanding",
        "boundary_setting": r"boundary|limit|say no|respect|space",
        "trust_issues": r"trust|betrayal|honest|reliable|depend",
        "attachment_style": r"close|distance|independent|clingy|secure",
        "social_anxiety": r"social|crowd|people|shy|awkward|nervous",
        "family_dynamics": r"family|parent|sibling|relative|home",
        "romantic_relationship": r"partner|boyfriend|girlfriend|spouse|dating",
        "friendship": r"friend|buddy|companion|peer|social circle",
    }.items()
}

RELATIONSHIP_KEYWORDS: Dict[str, tuple[str, ...]] = {
    "conflict_resolution": ("problem", "issue", "solution", "work out"),
    "communication_style": ("talk", "speak", "conversation", "discuss"),
    "emotional_support": ("help", "there for", "understand", "feel"),
    "boundary_setting": ("no", "stop", "enough", "respect"),
    "trust_issues": ("believe", "faith", "doubt", "suspicious"),
    "attachment_style": ("need", "want", "alone", "together"),
    "social_anxiety": ("uncomfortable", "worried", "scared", "nervous"),
    "family_dynamics": ("mother", "father", "sister", "brother"),
    "romantic_relationship": ("love", "relationship", "together", "couple"),
    "friendship": ("hang out", "spend time", "close", "best friend"),
}

# First match wins, so the order matters.
TONE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (tone, re.compile(pattern))
    for tone, pattern in (
        ("positive", r"happy|joy|excited|grateful|love|amazing|wonderful|great"),
        ("negative", r"sad|angry|frustrated|upset|hurt|disappointed|terrible|awful"),
        ("anxious", r"worried|nervous|scared|anxious|panic|stress|overwhelmed"),
        ("neutral", r"okay|fine|normal|usual|regular|standard"),
        ("confused", r"confused|unsure|don't know|not sure|unclear|puzzled"),
        ("hopeful", r"hope|optimistic|better|improve|positive|forward|future"),
    )
)

PEOPLE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (label, re.compile(pattern, re.IGNORECASE))
    for label, pattern in (
        ("work_authority", r"boss|manager|supervisor"),
        ("work_peer", r"colleague|coworker"),
        ("romantic_partner", r"partner|spouse|husband|wife"),
        ("parent", r"parent|mom|dad|mother|father"),
        ("child", r"child|son|daughter|kid"),
        ("friend", r"friend"),
        ("professional", r"doctor|therapist|counselor"),
    )
)

_HIGH_AROUSAL = re.compile(r"excited|energetic|intense|overwhelming|panic|rage|ecstatic", re.IGNORECASE)
_LOW_AROUSAL = re.compile(r"calm|peaceful|tired|relaxed|sleepy|content", re.IGNORECASE)
_EMOTION_WORDS = re.compile(
    r"\b(happy|sad|angry|fear|surprise|disgust|joy|love|hate|hope|despair|excited|calm|"
    r"anxious|confident|confused|proud|ashamed|grateful|jealous|content)\b",
    re.IGNORECASE,
)
_INTENSIFIERS = re.compile(r"very|extremely|really|so|totally|completely|absolutely", re.IGNORECASE)
_MINIMIZERS = re.compile(r"little|bit|somewhat|kind of|sort of", re.IGNORECASE)
_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def _score(sentiment: Any) -> Optional[float]:
    if not isinstance(sentiment, dict):
        return None
    value = sentiment.get("score")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def extract_context(message: Any) -> Dict[str, Any]:
    """Topics, emotions and word counts for one message."""

    if not isinstance(message, str) or not message:
        return {"topics": [], "emotions": [], "themes": [], "messageLength": 0, "wordCount": 0}

    message_lower = message.lower()
    emotions = [
        emotion
        for emotion, keywords in EMOTION_KEYWORDS.items()
        if any(keyword in message_lower for keyword in keywords)
    ]
    topics = [
        topic
        for topic, keywords in TOPIC_KEYWORDS.items()
        if any(keyword in message_lower for keyword in keywords)
    ]
    return {
        "topics": topics,
        "emotions": emotions,
        "themes": [],
        "messageLength": len(message),
        "wordCount": len(message.split(" ")),
    }


def extract_topics(message: Any) -> List[str]:
    return extract_context(message)["topics"]


def extract_entities(message: Any) -> List[Dict[str, str]]:
    if not isinstance(message, str) or not message:
        return []

    entities = [{"type": "person", "value": name} for name in _PERSON_PATTERN.findall(message)]
    entities.extend({"type": "date", "value": date} for date in _DATE_PATTERN.findall(message))
    message_lower = message.lower()
    entities.extend(
        {"type": "location", "value": location}
        for location in LOCATION_KEYWORDS
        if location in message_lower
    )
    return entities


def calculate_arousal(message: str) -> str:
    if _HIGH_AROUSAL.search(message):
        return "high"
    if _LOW_AROUSAL.search(message):
        return "low"
    return "medium"


def calculate_emotional_complexity(message: str) -> str:
    unique = {word.lower() for word in _EMOTION_WORDS.findall(message)}
    if len(unique) >= 3:
        return "complex"
    if len(unique) == 2:
        return "mixed"
    return "simple"


def detect_secondary_emotions(message: str) -> List[str]:
    return [name for name, pattern in SECONDARY_EMOTION_PATTERNS.items() if pattern.search(message)]


def analyze_emotional_state(message: Any, sentiment: Any) -> Dict[str, Any]:
    text = message if isinstance(message, str) else ""
    score = _score(sentiment) or 0.0
    label = sentiment.get("label") if isinstance(sentiment, dict) else None

    if score > 0:
        valence = "positive"
    elif score < 0:
        valence = "negative"
    else:
        valence = "neutral"

    return {
        "primary": label or "neutral",
        "intensity": abs(score),
        "valence": valence,
        "arousal": calculate_arousal(text),
        "complexity": calculate_emotional_complexity(text),
        "secondary": detect_secondary_emotions(text),
    }


def assess_trigger_intensity(text: str) -> str:
    if _INTENSIFIERS.search(text):
        return "high"
    if _MINIMIZERS.search(text):
        return "low"
    return "medium"


def extract_time_reference(message: str) -> str:
    if re.search(r"today|now|currently|right now", message, re.IGNORECASE):
        return "present"
    if re.search(r"yesterday|last|ago|before", message, re.IGNORECASE):
        return "past"
    if re.search(r"tomorrow|will|going to|future", message, re.IGNORECASE):
        return "future"
    return "unspecified"


def extract_people_references(message: str) -> List[str]:
    return [label for label, pattern in PEOPLE_PATTERNS if pattern.search(message)]


def extract_trigger_context(message: Any, trigger: str) -> Dict[str, Any]:
    """Sentence, intensity, time and people surrounding a trigger word."""

    text = message if isinstance(message, str) else ""
    trigger_lower = trigger.lower()
    sentence = next(
        (part for part in _SENTENCE_SPLIT.split(text) if trigger_lower in part.lower()),
        None,
    )
    return {
        "sentence": sentence.strip() if sentence is not None else None,
        "intensity": assess_trigger_intensity(sentence or text),
        "timeReference": extract_time_reference(text),
        "peopleInvolved": extract_people_references(text),
    }


def detect_emotional_triggers(message: Any, sentiment: Any) -> List[Dict[str, Any]]:
    """Trigger categories for clearly negative turns only."""

    score = _score(sentiment)
    if not isinstance(message, str) or score is None or score >= -0.2:
        return []

    return [
        {
            "type": category,
            "severity": abs(score),
            "context": extract_trigger_context(message, category),
        }
        for category, pattern in TRIGGER_CATEGORY_PATTERNS.items()
        if pattern.search(message)
    ]


def identify_coping_strategies(message: Any) -> List[str]:
    if not isinstance(message, str):
        return []
    text = message.lower()
    return [name for name, pattern in COPING_STRATEGY_PATTERNS.items() if pattern.search(text)]


def detect_emotional_tone(message: str) -> str:
    text = message.lower()
    for tone, pattern in TONE_PATTERNS:
        if pattern.search(text):
            return tone
    return "neutral"


def _relationship_context(message: str, pattern_type: str) -> Dict[str, Any]:
    label = pattern_type.replace("_", " ", 1)
    keywords = RELATIONSHIP_KEYWORDS.get(pattern_type, ())
    sentences = [s for s in _SENTENCE_SPLIT.split(message) if s.strip()]
    relevant = [
        s
        for s in sentences
        if label in s.lower() or any(keyword in s.lower() for keyword in keywords)
    ]
    return {
        "relevantText": ". ".join(relevant),
        "messageLength": len(message),
        "emotionalTone": detect_emotional_tone(message),
    }


def detect_relationship_patterns(message: Any, response: Any = None) -> List[Dict[str, Any]]:
    if not isinstance(message, str):
        return []
    text = message.lower()
    return [
        {
            "type": name,
            "context": _relationship_context(message, name),
            "timestamp": now_iso(),
        }
        for name, pattern in RELATIONSHIP_PATTERNS.items()
        if pattern.search(text)
    ]
