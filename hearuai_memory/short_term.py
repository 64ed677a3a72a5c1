"""Rolling window of the current session's interactions."""

from __future__ import annotations

from typing import Any, Dict, List

from .config import SHORT_TERM_CAPACITY
from .records import MemoryRecord, generate_id, now_iso, text_of


class ShortTermMemory:
    """Keeps the most recent interactions in process; nothing is persisted."""

    def __init__(self, max_size: int = SHORT_TERM_CAPACITY) -> None:
        self.max_size = max_size
        self.memories: List[MemoryRecord] = []

    def store(self, data: Dict[str, Any]) -> MemoryRecord:
        memory: MemoryRecord = {
            **data,  # type: ignore[typeddict-item]
            "id": generate_id("stm"),
            "timestamp": data.get("timestamp") or now_iso(),
        }
        self.memories.append(memory)

        if len(self.memories) > self.max_size:
            self.memories = self.memories[-self.max_size:]
        return memory

    def search(self, query: str) -> List[MemoryRecord]:
        query_lower = query.lower()
        return [
            memory
            for memory in self.memories
            if query_lower in text_of(memory.get("message"))
            or query_lower in text_of(memory.get("response"))
        ]

    def get_recent(self, count: int = 10) -> List[MemoryRecord]:
        if count <= 0:
            return []
        return self.memories[-count:]

    def get_all(self) -> List[MemoryRecord]:
        return list(self.memories)

    def clear(self) -> None:
        self.memories = []
