"""Custom exception classes used throughout the HearUAI memory service."""

from __future__ import annotations


class StorageError(RuntimeError):
    """Raised when a storage backend cannot read or write a blob."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class CompanionAPIError(RuntimeError):
    """Raised when the upstream chat model cannot produce a reply."""

    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


class MemoryNotReadyError(RuntimeError):
    """Raised when a memory manager is used before ``load()`` has completed."""
