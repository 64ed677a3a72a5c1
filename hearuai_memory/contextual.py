"""Topic and entity frequency indexes over conversation turns."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from .config import CONTEXT_CAPACITY
from .records import generate_id, now_iso, text_of
from .storage import KeyValueStorage, PersistentLayer


def _nested_context_text(context: Any) -> str:
    """Flatten the topics/emotions/themes of a nested context object."""

    if not isinstance(context, dict):
        return ""
    parts: List[str] = []
    for field in ("topics", "emotions", "themes"):
        values = context.get(field)
        if isinstance(values, list):
            parts.extend(str(value) for value in values)
    return " ".join(parts).lower()


class ContextualMemory(PersistentLayer):
    """Per-turn topic/entity records plus incremental frequency counters."""

    LAYER = "contextual"
    SCHEMA_VERSION = 1

    def __init__(
        self,
        user_id: str,
        storage: KeyValueStorage,
        max_size: int = CONTEXT_CAPACITY,
    ) -> None:
        super().__init__(user_id, storage)
        self.max_size = max_size
        self.contexts: List[Dict[str, Any]] = []
        self.topic_frequency: Dict[str, int] = {}
        self.entity_map: Dict[str, Dict[str, int]] = {}

    def _restore(self, data: Dict[str, Any]) -> None:
        contexts = data.get("contexts")
        topic_frequency = data.get("topicFrequency")
        entity_map = data.get("entityMap")
        self.contexts = contexts if isinstance(contexts, list) else []
        self.topic_frequency = topic_frequency if isinstance(topic_frequency, dict) else {}
        self.entity_map = entity_map if isinstance(entity_map, dict) else {}

    def _serialise(self) -> Dict[str, Any]:
        return {
            "contexts": self.contexts,
            "topicFrequency": self.topic_frequency,
            "entityMap": self.entity_map,
        }

    def store(self, data: Dict[str, Any]) -> Dict[str, Any]:
        context_entry = {
            **data,
            "id": generate_id("cm"),
            "timestamp": data.get("timestamp") or now_iso(),
        }
        self.contexts.append(context_entry)

        topics = data.get("topics")
        if isinstance(topics, list):
            for topic in topics:
                if not isinstance(topic, str):
                    continue
                self.topic_frequency[topic] = self.topic_frequency.get(topic, 0) + 1

        entities = data.get("entities")
        if isinstance(entities, list):
            for entity in entities:
                if not isinstance(entity, dict):
                    continue
                entity_type = entity.get("type")
                value = entity.get("value")
                if not isinstance(entity_type, str) or not isinstance(value, str):
                    continue
                bucket = self.entity_map.setdefault(entity_type, {})
                bucket[value] = bucket.get(value, 0) + 1

        if len(self.contexts) > self.max_size:
            self.contexts = self.contexts[-self.max_size:]

        self.save()
        return context_entry

    def search(self, query: str) -> List[Dict[str, Any]]:
        query_lower = query.lower()
        return [context for context in self.contexts if self._matches(context, query_lower)]

    @staticmethod
    def _matches(context: Dict[str, Any], query_lower: str) -> bool:
        topics = context.get("topics")
        if isinstance(topics, list) and any(query_lower in text_of(topic) for topic in topics):
            return True

        entities = context.get("entities")
        if isinstance(entities, list) and any(
            isinstance(entity, dict) and query_lower in text_of(entity.get("value"))
            for entity in entities
        ):
            return True

        nested = context.get("context")
        if isinstance(nested, str) and query_lower in nested.lower():
            return True
        if query_lower in _nested_context_text(nested):
            return True

        if query_lower in text_of(context.get("message")):
            return True

        return query_lower in text_of(context.get("response"))

    def get_topics(self) -> List[Tuple[str, int]]:
        ranked = sorted(self.topic_frequency.items(), key=lambda item: item[1], reverse=True)
        return ranked[:20]

    def get_entities(self, entity_type: str | None = None) -> Dict[str, Any]:
        if entity_type:
            return dict(self.entity_map.get(entity_type, {}))
        return {key: dict(values) for key, values in self.entity_map.items()}

    def get_all(self) -> Dict[str, Any]:
        return {
            "contexts": list(self.contexts),
            "topicFrequency": dict(self.topic_frequency),
            "entityMap": self.get_entities(),
        }

    def clear(self) -> None:
        self.contexts = []
        self.topic_frequency = {}
        self.entity_map = {}
        self._remove_blob()
