"""Durable, importance-ranked interaction archive."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from .config import LONG_TERM_CAPACITY
from .records import MemoryRecord, generate_id, now_iso, text_of
from .storage import KeyValueStorage, PersistentLayer


def _importance(memory: Dict[str, Any]) -> float:
    value = memory.get("importance")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _context_matches(context: Any, query_lower: str) -> bool:
    if isinstance(context, str):
        return query_lower in context.lower()
    if isinstance(context, (dict, list)):
        try:
            serialised = json.dumps(context, ensure_ascii=False)
        except (TypeError, ValueError):
            return False
        return query_lower in serialised.lower()
    return False


class LongTermMemory(PersistentLayer):
    """Archive capped at the highest-importance records.

    Every store rewrites the whole blob. The list is kept sorted by
    importance (descending, stable), so truncation always drops the
    least important records and ties keep their earlier order.
    """

    LAYER = "longterm"
    SCHEMA_VERSION = 1

    def __init__(
        self,
        user_id: str,
        storage: KeyValueStorage,
        max_size: int = LONG_TERM_CAPACITY,
    ) -> None:
        super().__init__(user_id, storage)
        self.max_size = max_size
        self.memories: List[MemoryRecord] = []

    def _migrate(self, raw: Any, version: int) -> Dict[str, Any]:
        # Version 0 stored the bare record array.
        if version == 0 and isinstance(raw, list):
            return {"memories": raw}
        return raw if isinstance(raw, dict) else {}

    def _restore(self, data: Dict[str, Any]) -> None:
        memories = data.get("memories")
        self.memories = [m for m in memories if isinstance(m, dict)] if isinstance(memories, list) else []

    def _serialise(self) -> Dict[str, Any]:
        return {"memories": self.memories}

    def store(self, data: Dict[str, Any]) -> MemoryRecord:
        importance = data.get("importance")
        memory: MemoryRecord = {
            **data,  # type: ignore[typeddict-item]
            "id": generate_id("ltm"),
            "timestamp": data.get("timestamp") or now_iso(),
            "importance": 0.5 if importance is None else importance,
        }

        self.memories.append(memory)
        self.memories.sort(key=_importance, reverse=True)
        if len(self.memories) > self.max_size:
            dropped = len(self.memories) - self.max_size
            self.memories = self.memories[: self.max_size]
            logging.debug("Long-term memory pruned %d low-importance records.", dropped)

        self.save()
        return memory

    def search(self, query: str, limit: int = 10) -> List[MemoryRecord]:
        query_lower = query.lower()
        matches: List[MemoryRecord] = []
        for memory in self.memories:
            if (
                query_lower in text_of(memory.get("message"))
                or query_lower in text_of(memory.get("response"))
                or _context_matches(memory.get("context"), query_lower)
            ):
                matches.append(memory)
        return matches[:limit]

    def get_important(self, count: int = 5) -> List[MemoryRecord]:
        self.memories.sort(key=_importance, reverse=True)
        return self.memories[:count]

    def get_all(self) -> List[MemoryRecord]:
        return list(self.memories)

    def clear(self) -> None:
        self.memories = []
        self._remove_blob()
