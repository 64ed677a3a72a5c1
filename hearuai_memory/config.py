"""Configuration helpers and constants for the HearUAI memory service."""

from __future__ import annotations

import os
from pathlib import Path


def _load_env_file(path: str = "secrets.env") -> None:
    """Best-effort env loader so the companion client can pick up API keys."""

    env_path = Path(path)
    if not env_path.is_file():
        legacy = Path(".env")
        if path == "secrets.env" and legacy.is_file():
            env_path = legacy
        else:
            return

    try:
        content = env_path.read_text(encoding="utf-8")
    except OSError:
        return

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue
        cleaned = value.strip()
        if (
            (cleaned.startswith('"') and cleaned.endswith('"'))
            or (cleaned.startswith("'") and cleaned.endswith("'"))
        ):
            cleaned = cleaned[1:-1]
        os.environ.setdefault(key, cleaned)


def _parse_float_env(name: str, default: float) -> float:
    raw_value = os.environ.get(name)
    if raw_value is None:
        return default
    cleaned = raw_value.strip()
    if not cleaned:
        return default
    try:
        return float(cleaned)
    except ValueError:
        return default


_load_env_file()


STORAGE_KEY_PREFIX = "hearuai"
DEFAULT_DATA_DIR = "var/memory"
DEFAULT_USER_ID = "default"

COMPANION_TIMEOUT = _parse_float_env("COMPANION_TIMEOUT", 30.0)
COMPANION_MODEL = os.environ.get("COMPANION_MODEL", "gpt-4.1")

# Capacity limits. Pruning is drop-oldest except for long-term memory,
# which keeps the highest-importance records.
SHORT_TERM_CAPACITY = 50
LONG_TERM_CAPACITY = 500
EMOTION_CAPACITY = 2000
CONTEXT_CAPACITY = 1000
JOURNAL_CAPACITY = 500
MOOD_HISTORY_DAYS = 90
WEEKLY_PROGRESS_LIMIT = 12
MONTHLY_PROGRESS_LIMIT = 6
TRIGGER_SEVERITY_LIMIT = 20
TRIGGER_CONTEXT_LIMIT = 10

EXPORT_VERSION = "1.0"


def storage_key(layer: str, user_id: str) -> str:
    """Return the storage key that owns a layer's blob for a user."""

    return f"{STORAGE_KEY_PREFIX}_{layer}_{user_id}"


def _resolve_data_dir() -> str:
    """Return the directory holding persisted memory blobs."""

    configured = os.environ.get("HEARUAI_DATA_DIR", "").strip()
    if configured:
        return configured
    return DEFAULT_DATA_DIR


def _resolve_user_id() -> str:
    """Return the user id served by the default application instance."""

    configured = os.environ.get("HEARUAI_USER_ID", "").strip()
    if configured:
        return configured
    return DEFAULT_USER_ID
