"""Facade that writes one chat turn into every memory layer and reads them back."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .contextual import ContextualMemory
from .emotional import EmotionalMemory
from .errors import MemoryNotReadyError
from .long_term import LongTermMemory
from .preferences import UserPreferences
from .records import now_iso, parse_timestamp, sentiment_score, text_of
from .short_term import ShortTermMemory
from .signals import (
    analyze_emotional_state,
    detect_emotional_triggers,
    detect_relationship_patterns,
    extract_context,
    extract_entities,
    extract_topics,
    identify_coping_strategies,
)
from .storage import KeyValueStorage


def _recency_key(memory: Dict[str, Any]) -> datetime:
    return parse_timestamp(memory.get("timestamp")) or datetime.min


class MemoryManager:
    """Compose the memory layers for one user.

    The manager owns no globals: the storage backend and, optionally, any of
    the layers are passed in. Call :meth:`load` once before use; every other
    operation raises :class:`MemoryNotReadyError` until then.
    """

    def __init__(
        self,
        user_id: str,
        storage: KeyValueStorage,
        *,
        short_term: Optional[ShortTermMemory] = None,
        long_term: Optional[LongTermMemory] = None,
        emotional: Optional[EmotionalMemory] = None,
        contextual: Optional[ContextualMemory] = None,
        preferences: Optional[UserPreferences] = None,
    ) -> None:
        self.user_id = user_id
        self.storage = storage
        self.short_term = short_term or ShortTermMemory()
        self.long_term = long_term or LongTermMemory(user_id, storage)
        self.emotional = emotional or EmotionalMemory(user_id, storage)
        self.contextual = contextual or ContextualMemory(user_id, storage)
        self.preferences = preferences or UserPreferences(user_id, storage)
        self.ready = False

    def load(self) -> "MemoryManager":
        for layer in (self.long_term, self.emotional, self.contextual, self.preferences):
            layer.load()
        self.ready = True
        logging.info("Memory layers loaded for user %s.", self.user_id)
        return self

    def ensure_ready(self) -> None:
        if not self.ready:
            raise MemoryNotReadyError("MemoryManager.load() must be called before use.")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def store_memory(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Write one interaction into every layer and return the stored records."""

        self.ensure_ready()

        message = data.get("message")
        response = data.get("response")
        sentiment = data.get("sentiment")
        session_id = data.get("sessionId")
        timestamp = data.get("timestamp") or now_iso()
        context = data.get("context")
        if not isinstance(context, dict):
            context = extract_context(message)

        short_term = self.short_term.store(
            {
                "message": message,
                "response": response,
                "sentiment": sentiment,
                "timestamp": timestamp,
                "sessionId": session_id,
            }
        )

        long_term = self.long_term.store(
            {
                "message": message,
                "response": response,
                "sentiment": sentiment,
                "context": context,
                "timestamp": timestamp,
                "sessionId": session_id,
                "importance": self.calculate_importance(data),
            }
        )

        emotional_payload: Dict[str, Any] = {
            "message": message,
            "response": response,
            "sentiment": sentiment,
            "context": context,
            "timestamp": timestamp,
            "emotionalState": analyze_emotional_state(message, sentiment or {}),
            "triggerCategories": detect_emotional_triggers(message, sentiment),
        }
        if session_id:
            emotional_payload["sessionId"] = session_id
        if isinstance(message, str):
            emotional_payload["messageLength"] = len(message)
        if isinstance(response, str):
            emotional_payload["responseLength"] = len(response)
        emotional = self.emotional.store(emotional_payload)

        contextual = self.contextual.store(
            {
                "topics": extract_topics(message),
                "entities": extract_entities(message),
                "context": context,
                "message": message,
                "response": response,
                "timestamp": timestamp,
                "sessionId": session_id,
            }
        )

        coping = data.get("copingStrategies")
        if not isinstance(coping, list):
            coping = identify_coping_strategies(message)
        for strategy in coping:
            self.preferences.add_coping_strategy(strategy)

        relationships = data.get("relationshipPatterns")
        if not isinstance(relationships, list):
            relationships = detect_relationship_patterns(message, response)
        for pattern in relationships:
            self.preferences.add_relationship_pattern(pattern)

        return {
            "shortTerm": short_term,
            "longTerm": long_term,
            "emotional": emotional,
            "contextual": contextual,
        }

    def update_preferences(self, preferences: Dict[str, Any]) -> Dict[str, Any]:
        self.ensure_ready()
        return self.preferences.update(preferences)

    def clear_all_memories(self) -> None:
        self.ensure_ready()
        self.short_term.clear()
        self.long_term.clear()
        self.emotional.clear()
        self.contextual.clear()
        self.preferences.clear()
        logging.info("All memory layers cleared for user %s.", self.user_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_relevant_memories(
        self,
        query: str,
        include_short_term: bool = True,
        include_long_term: bool = True,
        include_emotional: bool = True,
        include_contextual: bool = True,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        self.ensure_ready()

        memories: List[Dict[str, Any]] = []
        if include_short_term:
            memories.extend(self.short_term.search(query))
        if include_long_term:
            memories.extend(self.long_term.search(query, limit))
        if include_emotional:
            memories.extend(self.emotional.get_relevant_patterns(query)["emotions"])
        if include_contextual:
            memories.extend(self.contextual.search(query))

        return self.rank_memories(memories, query)[:limit]

    def get_user_context(self) -> Dict[str, Any]:
        """Profile, recent memories and emotional patterns for prompt building."""

        self.ensure_ready()
        try:
            prefs = self.preferences
            raw = prefs.get_all()
            gender = prefs.get_gender_preference()
            user_profile = {
                "therapyGoals": prefs.get_therapy_goals(),
                "triggers": raw.get("triggers", []),
                "copingStrategies": prefs.get_coping_strategies(),
                "interests": raw.get("personalInfo", {}).get("interests", []),
                "relationshipPatterns": prefs.get_relationship_patterns(),
                "communicationStyle": raw.get("communicationStyle"),
                "preferredName": prefs.get_preferred_name(),
                "fullName": prefs.get_full_name(),
                "gender": gender["gender"],
                "genderPreference": gender["genderPreference"],
                "proactiveEngagement": raw.get("sessionPreferences", {}).get("proactiveEngagement", True),
            }
            return {
                "userProfile": user_profile,
                "recentMemories": self.get_recent_memories(10),
                "emotionalPatterns": self.emotional.get_patterns(),
            }
        except Exception as exc:  # noqa: BLE001
            logging.error("Error getting user context: %s", exc)
            return {"userProfile": {}, "recentMemories": [], "emotionalPatterns": {}}

    def get_recent_memories(self, limit: int = 10) -> List[Dict[str, Any]]:
        self.ensure_ready()
        combined = [*self.short_term.get_recent(limit), *self.long_term.get_all()]
        combined.sort(key=_recency_key, reverse=True)
        return combined[:limit] if limit > 0 else []

    def get_all_memories(self) -> Dict[str, Any]:
        self.ensure_ready()
        return {
            "shortTerm": self.short_term.get_all(),
            "longTerm": self.long_term.get_all(),
            "emotional": self.emotional.get_all(),
            "contextual": self.contextual.get_all(),
            "preferences": self.preferences.get_all(),
        }

    def export_memories(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "exportDate": now_iso(),
            **self.get_all_memories(),
        }

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    @staticmethod
    def calculate_importance(data: Dict[str, Any]) -> float:
        importance = 0.5
        score = sentiment_score(data)
        if score is not None:
            importance += abs(score) * 0.3
        message = data.get("message")
        if isinstance(message, str) and len(message) > 200:
            importance += 0.2
        return min(importance, 1.0)

    @staticmethod
    def calculate_relevance(memory: Dict[str, Any], query: str) -> int:
        """Count of query words found in the memory's message or content."""

        text = text_of(memory.get("message") or memory.get("content"))
        return sum(1 for word in query.lower().split() if word in text)

    def rank_memories(self, memories: List[Dict[str, Any]], query: str) -> List[Dict[str, Any]]:
        # Two stable passes: newest first, then by relevance.
        ranked = sorted(memories, key=_recency_key, reverse=True)
        ranked.sort(key=lambda memory: self.calculate_relevance(memory, query), reverse=True)
        return ranked
