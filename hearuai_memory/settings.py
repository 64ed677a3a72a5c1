"""Helpers for loading and saving operator-managed settings."""

from __future__ import annotations

import hashlib
import json
import os
from typing import Any, Dict, List

from .config import COMPANION_MODEL

DEFAULT_MODEL_SELECTIONS: Dict[str, Dict[str, str]] = {
    "companion": {"provider": "openai", "model": COMPANION_MODEL, "base_url": ""},
    "sentiment": {"provider": "openai", "model": "gpt-4.1-mini", "base_url": ""},
}

DEFAULT_MEMORY_SETTINGS: Dict[str, bool] = {
    "enabled": True,
    "proactive_engagement": True,
}

LLM_PROVIDERS: Dict[str, Dict[str, Any]] = {
    "openai": {
        "label": "OpenAI",
        "api_key_env": "OPENAI_API_KEY",
        "base_url_env": "OPENAI_BASE_URL",
        "models": [
            {"id": "gpt-4.1", "label": "GPT-4.1"},
            {"id": "gpt-4.1-mini", "label": "GPT-4.1 mini"},
            {"id": "gpt-4o", "label": "GPT-4o"},
        ],
    },
    "gemini": {
        "label": "Gemini (Google)",
        "api_key_env": "GEMINI_API_KEY",
        "base_url_env": "GEMINI_API_BASE",
        "models": [
            {"id": "gemini-1.5-flash", "label": "Gemini 1.5 Flash"},
            {"id": "gemini-1.5-pro", "label": "Gemini 1.5 Pro"},
            {"id": "gemini-2.0-flash", "label": "Gemini 2.0 Flash"},
        ],
    },
    "claude": {
        "label": "Claude (Anthropic)",
        "api_key_env": "ANTHROPIC_API_KEY",
        "base_url_env": "ANTHROPIC_API_BASE",
        "models": [
            {"id": "claude-3-5-sonnet-20240620", "label": "Claude 3.5 Sonnet"},
            {"id": "claude-3-haiku-20240307", "label": "Claude 3 Haiku"},
        ],
    },
}

_MODEL_SETTINGS_FILE = "model_settings.json"
_MEMORY_SETTINGS_FILE = "memory_settings.json"


def _coerce_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    return fallback


def _merge_memory_settings(raw: Any) -> Dict[str, bool]:
    merged = dict(DEFAULT_MEMORY_SETTINGS)
    if not isinstance(raw, dict):
        return merged
    for key, default_value in DEFAULT_MEMORY_SETTINGS.items():
        merged[key] = _coerce_bool(raw.get(key), default_value)
    return merged


def load_memory_settings() -> Dict[str, bool]:
    """Load the memory usage settings."""
    try:
        with open(_MEMORY_SETTINGS_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return dict(DEFAULT_MEMORY_SETTINGS)

    return _merge_memory_settings(data)


def save_memory_settings(payload: Dict[str, Any]) -> Dict[str, bool]:
    """Persist the memory usage settings."""
    current = load_memory_settings()
    incoming = payload if isinstance(payload, dict) else {}
    settings = _merge_memory_settings({**current, **incoming})
    with open(_MEMORY_SETTINGS_FILE, "w", encoding="utf-8") as f:
        json.dump(settings, f, ensure_ascii=False, indent=2)
    return settings


def _normalise_role(role: str, value: Any) -> Dict[str, str]:
    """Return a valid provider/model pair for ``role``, else the role default."""

    default = DEFAULT_MODEL_SELECTIONS[role]
    if not isinstance(value, dict):
        return dict(default)

    provider = str(value.get("provider") or default["provider"]).strip()
    model = str(value.get("model") or default["model"]).strip()
    meta = LLM_PROVIDERS.get(provider)
    if not meta or model not in {m["id"] for m in meta["models"]}:
        return dict(default)

    return {"provider": provider, "model": model, "base_url": str(value.get("base_url") or "").strip()}


def load_model_settings() -> Dict[str, Dict[str, str]]:
    """Load the selected LLM per role."""

    try:
        with open(_MODEL_SETTINGS_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        data = {}
    if not isinstance(data, dict):
        data = {}

    return {role: _normalise_role(role, data.get(role)) for role in DEFAULT_MODEL_SELECTIONS}


def save_model_settings(updates: Dict[str, Any]) -> Dict[str, Dict[str, str]]:
    """Merge per-role updates into the stored selection and persist it.

    Unknown roles are ignored. A role whose update names an unknown provider
    or model falls back to its default.
    """

    selection = load_model_settings()
    for role, value in (updates or {}).items():
        if role in selection and isinstance(value, dict):
            selection[role] = _normalise_role(role, {**selection[role], **value})

    with open(_MODEL_SETTINGS_FILE, "w", encoding="utf-8") as f:
        json.dump(selection, f, ensure_ascii=False, indent=2)
    return selection


def get_llm_options() -> Dict[str, List[Any]]:
    """Roles and provider/model choices offered by the settings endpoint."""

    providers = [
        {"id": provider_id, "label": meta["label"], "models": meta["models"]}
        for provider_id, meta in LLM_PROVIDERS.items()
    ]
    return {"roles": list(DEFAULT_MODEL_SELECTIONS), "providers": providers}


def resolve_llm_config(role: str) -> Dict[str, Any]:
    """Return LangChain-ready config for the given role's selected model."""

    if role not in DEFAULT_MODEL_SELECTIONS:
        raise ValueError(f"Unknown role '{role}' for model resolution.")

    selection = load_model_settings()[role]
    provider_id = selection["provider"]
    model_name = selection["model"]
    provider_meta = LLM_PROVIDERS[provider_id]

    api_key_name = provider_meta["api_key_env"]
    api_key = os.environ.get(api_key_name) or os.environ.get(api_key_name.lower())
    if not api_key:
        raise ValueError(f"Set {api_key_name} in secrets.env to enable the {role} model.")

    base_url = selection["base_url"] or os.environ.get(provider_meta["base_url_env"], "").strip() or None

    key_fingerprint = hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:12]
    return {
        "provider": provider_id,
        "model": model_name,
        "api_key": api_key,
        "base_url": base_url,
        "api_key_fingerprint": key_fingerprint,
    }
